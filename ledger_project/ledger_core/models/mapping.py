from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .account import Account
from .store import Store

# Business movements that auto-entry generators translate into accounts
TRANSACTION_TYPES = [
    ("cash_asset", "Cash / bank asset"),
    ("accounts_receivable", "Accounts receivable"),
    ("accounts_payable", "Accounts payable"),
    ("sale_revenue", "Sale revenue"),
    ("sale_cost", "Cost of sales"),
    ("sale_tax", "Output VAT"),
    ("purchase_tax", "Input VAT"),
    ("inventory_asset", "Inventory"),
    ("purchase_expense", "Purchases"),
    ("income", "Other income"),
    ("expense", "General expense"),
    ("adjustment", "Adjustments"),
    ("transfer", "Transfers"),
    ("fx_gain_realized", "Realized FX gain"),
    ("fx_loss_realized", "Realized FX loss"),
    ("fx_gain_unrealized", "Unrealized FX gain"),
    ("fx_loss_unrealized", "Unrealized FX loss"),
]


# ---------- (store, transaction_type) → Account ----------
class AccountMapping(models.Model):
    """
    is_default mappings apply to every movement of the type;
    non-default ones carry `conditions` (e.g. {"method": "ZELLE"})
    and win when the movement matches them.
    """

    store = models.ForeignKey(
        Store, on_delete=models.CASCADE, related_name="account_mappings"
    )
    transaction_type = models.CharField(max_length=30, choices=TRANSACTION_TYPES)
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="mappings"
    )
    is_default = models.BooleanField(default=True)
    conditions = models.JSONField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        db_table = "account_mappings"
        constraints = [
            models.UniqueConstraint(
                fields=["store", "transaction_type"],
                condition=models.Q(is_default=True, is_active=True),
                name="uq_store_default_mapping",
            ),
        ]

    def __str__(self):
        return f"{self.transaction_type} → {self.account.code}"

    def clean(self):
        if self.account_id and self.account.store_id != self.store_id:
            raise ValidationError(
                "Mapped account must belong to the same store"
            )

    def matches(self, conditions):
        """True when every condition of this mapping is present in `conditions`."""
        if not self.conditions:
            return False
        conditions = conditions or {}
        return all(conditions.get(k) == v for k, v in self.conditions.items())
