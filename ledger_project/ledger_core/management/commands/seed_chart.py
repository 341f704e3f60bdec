from django.core.management.base import BaseCommand
from django.utils.text import slugify

from ledger_core.models import Store
from ledger_core.services.chart import initialize_default_chart


class Command(BaseCommand):
    help = (
        "Create the default retail chart of accounts and account mappings for a store."
    )

    # Define command-line arguments
    def add_arguments(self, parser):
        parser.add_argument(
            "store",  # slug of an existing store, or the name of a new one
            help="Store slug (created with this name when it doesn't exist).",
        )

    def handle(self, *args, **options):
        slug = slugify(options["store"]) or "store"
        # get_or_create returns (object, created)
        store, created = Store.objects.get_or_create(
            slug=slug, defaults={"name": options["store"]}
        )
        if created:
            self.stdout.write(self.style.SUCCESS(f"Created store: {store}"))

        # running it again only adds what is missing
        result = initialize_default_chart(store)
        self.stdout.write(
            self.style.SUCCESS(  # make message green
                f"{store}: {result['accounts_created']} accounts, "
                f"{result['mappings_created']} mappings created"
            )
        )
