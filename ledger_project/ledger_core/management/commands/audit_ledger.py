import datetime

from django.core.management.base import BaseCommand, CommandError

from ledger_core.models import Store
from ledger_core.services.integrity import reconcile_accounts, validate_accounting_integrity


def _date(value):
    return datetime.date.fromisoformat(value)


class Command(BaseCommand):
    help = "Audit a store's ledger: entry integrity plus bucket reconciliation."

    def add_arguments(self, parser):
        parser.add_argument("store", help="Store slug.")
        parser.add_argument("--start", type=_date, help="First entry date (YYYY-MM-DD).")
        parser.add_argument("--end", type=_date, help="Last entry date (YYYY-MM-DD).")

    def handle(self, *args, **options):
        try:
            store = Store.objects.get(slug=options["store"])
        except Store.DoesNotExist:
            raise CommandError(f"Store {options['store']} not found")

        report = validate_accounting_integrity(store, options["start"], options["end"])
        for error in report.errors:
            self.stdout.write(self.style.ERROR(f"[{error['type']}] {error['message']}"))
        for warning in report.warnings:
            self.stdout.write(self.style.WARNING(f"[{warning['type']}] {warning['message']}"))

        reconciliation = reconcile_accounts(store, as_of=options["end"])
        summary = reconciliation.summary
        self.stdout.write(
            f"Reconciled {summary['reconciled_accounts']} of {summary['total_accounts']} accounts, "
            f"{summary['accounts_with_discrepancies']} with discrepancies"
        )

        if report.is_valid and not reconciliation.discrepancies:
            self.stdout.write(self.style.SUCCESS("Ledger is consistent"))
        else:
            # non-zero exit for schedulers / CI
            raise CommandError("Ledger audit found problems")
