from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .store import Store

# Choice Lists
ACCOUNT_TYPES = [
    # Used in Account model to classify general ledger accounts
    ("asset", "Asset"),
    ("liability", "Liability"),
    ("equity", "Equity"),
    ("revenue", "Revenue"),
    ("expense", "Expense"),
]

# Side on which each account type normally increases
DEBIT_NORMAL = "debit_normal"
CREDIT_NORMAL = "credit_normal"
DEBIT_NORMAL_TYPES = frozenset({"asset", "expense"})


def nature_for_type(account_type):
    """Assets/Expenses → debit normal, Liabilities/Equity/Revenue → credit normal."""
    if account_type in DEBIT_NORMAL_TYPES:
        return DEBIT_NORMAL
    return CREDIT_NORMAL


class Account(models.Model):
    """
    Ledger account in the Chart of Accounts.
    - code is unique per store ("1.01.01", "4.01.01", ...)
    - account_type: decides debit/credit nature and BS vs P&L
    - allows_entries: only these accounts may carry journal lines
    """

    store = models.ForeignKey(  # Each account belongs to one store
        Store,
        on_delete=models.CASCADE,
        related_name="accounts",
    )
    code = models.CharField(max_length=50)
    name = models.CharField(max_length=200)

    account_type = models.CharField(
        max_length=10,
        choices=ACCOUNT_TYPES,
    )
    # Optional hierarchy: 1 → 1.01 → 1.01.01
    parent = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,  # you can’t delete a parent if children exist
        related_name="children",
    )
    level = models.PositiveSmallIntegerField(default=1)

    # “soft deactivate” accounts (hide in UI, stop new postings)
    # without deleting history
    is_active = models.BooleanField(default=True)
    allows_entries = models.BooleanField(default=True)
    description = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        db_table = "chart_of_accounts"
        ordering = ("store", "code")
        indexes = [
            models.Index(fields=["store", "account_type"], name="coa_store_type_idx"),
            models.Index(fields=["store", "parent"], name="coa_store_parent_idx"),
        ]
        # Codes repeat across stores but must be unique within one
        constraints = [
            models.UniqueConstraint(
                fields=["store", "code"], name="uq_store_account_code"
            )
        ]

    def __str__(self):
        return f"{self.code} – {self.name}"

    @property
    def nature(self):
        return nature_for_type(self.account_type)

    @property
    def is_debit_normal(self):
        return self.nature == DEBIT_NORMAL

    def clean(self):
        # Parent account must belong to the same store
        if self.parent_id and self.parent.store_id != self.store_id:
            raise ValidationError(
                "Parent & child accounts must belong to the same store"
            )
        if self.parent_id and self.pk and self.parent_id == self.pk:
            raise ValidationError("An account cannot be its own parent")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
