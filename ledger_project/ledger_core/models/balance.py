from django.db import models
from ..managers import TenantManager
from .account import Account
from .store import Store

# currency × side suffixes shared by the opening/period/closing groups
BALANCE_SIDES = ("debit_bs", "credit_bs", "debit_usd", "credit_usd")


def _money():
    return models.DecimalField(max_digits=18, decimal_places=2, default=0)


# ---------- Per-account monthly balance bucket ----------
class AccountBalance(models.Model):
    """
    One row per (store, account, calendar month).
    closing_* = opening_* + period_* for all four currency/side columns.
    Only services.balances.update_account_balances writes these rows.
    """

    store = models.ForeignKey(
        Store, on_delete=models.CASCADE, related_name="account_balances"
    )
    account = models.ForeignKey(
        Account, on_delete=models.CASCADE, related_name="balances"
    )
    period_start = models.DateField()  # first day of the month
    period_end = models.DateField()    # last day of the month

    opening_debit_bs = _money()
    opening_credit_bs = _money()
    opening_debit_usd = _money()
    opening_credit_usd = _money()

    period_debit_bs = _money()
    period_credit_bs = _money()
    period_debit_usd = _money()
    period_credit_usd = _money()

    closing_debit_bs = _money()
    closing_credit_bs = _money()
    closing_debit_usd = _money()
    closing_credit_usd = _money()

    last_calculated_at = models.DateTimeField(null=True, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        db_table = "account_balances"
        ordering = ("store", "account", "period_start")
        constraints = [
            models.UniqueConstraint(
                fields=["store", "account", "period_start"],
                name="uq_account_balance_bucket",
            )
        ]

    def __str__(self):
        return f"{self.account.code} {self.period_start:%Y-%m}"

    def recompute_closing(self):
        for side in BALANCE_SIDES:
            setattr(
                self,
                f"closing_{side}",
                getattr(self, f"opening_{side}") + getattr(self, f"period_{side}"),
            )

    def signed_closing(self):
        """Closing balance per currency, signed by the account's nature."""
        bs = self.closing_debit_bs - self.closing_credit_bs
        usd = self.closing_debit_usd - self.closing_credit_usd
        if not self.account.is_debit_normal:
            bs, usd = -bs, -usd
        return {"balance_bs": bs, "balance_usd": usd}
