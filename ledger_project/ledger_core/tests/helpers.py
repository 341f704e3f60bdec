import datetime
from decimal import Decimal

from ledger_core.models import Account, Store
from ledger_core.services.chart import initialize_default_chart
from ledger_core.services.posting import create_entry, post_entry

JAN_15 = datetime.date(2025, 1, 15)


def line(account, debit_bs=0, credit_bs=0, debit_usd=0, credit_usd=0, description=""):
    return {
        "account": account,
        "debit_amount_bs": Decimal(str(debit_bs)),
        "credit_amount_bs": Decimal(str(credit_bs)),
        "debit_amount_usd": Decimal(str(debit_usd)),
        "credit_amount_usd": Decimal(str(credit_usd)),
        "description": description,
    }


class LedgerFixtureMixin:
    """Store with the default retail chart and a couple of posting shortcuts."""

    store_slug = "main"

    def setUp(self):
        self.store = Store.objects.create(name="Main Store", slug=self.store_slug)
        initialize_default_chart(self.store)

    def acc(self, code, store=None):
        return Account.objects.get(store=store or self.store, code=code)

    def post(self, day, lines, **kwargs):
        entry = create_entry(self.store, day, lines, **kwargs)
        return post_entry(self.store, entry.pk)

    def post_sale(self, day, amount_bs, amount_usd=0):
        """Cash Bs against product sales."""
        return self.post(day, [
            line(self.acc("1.01.01.01"), debit_bs=amount_bs, debit_usd=amount_usd),
            line(self.acc("4.01.01"), credit_bs=amount_bs, credit_usd=amount_usd),
        ])
