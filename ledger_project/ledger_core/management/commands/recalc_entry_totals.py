from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Store
from ledger_core.services.integrity import recalculate_entry_totals


class Command(BaseCommand):
    help = "Re-sum posted journal entries of a store and balance the ones that drifted."

    def add_arguments(self, parser):
        parser.add_argument("store", help="Store slug.")
        parser.add_argument(
            "--entry",
            dest="entry_ids",
            action="append",
            type=int,
            help="Only this entry id (repeatable).",
        )

    def handle(self, *args, **options):
        try:
            store = Store.objects.get(slug=options["store"])
        except Store.DoesNotExist:
            raise CommandError(f"Store {options['store']} not found")

        report = recalculate_entry_totals(store, entry_ids=options["entry_ids"])
        self.stdout.write(self.style.SUCCESS(f"Corrected {report.corrected} entries"))
        # entries needing manual review are listed, not fixed
        for error in report.errors:
            self.stdout.write(
                self.style.WARNING(f"{error['entry_number']}: {error['error']}")
            )
