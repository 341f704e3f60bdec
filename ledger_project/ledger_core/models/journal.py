from decimal import Decimal
from django.conf import settings
from django.db import models
from ..exceptions import InvalidStatusTransition
from ..managers import JournalLineManager, TenantManager
from .account import Account
from .store import Store

ENTRY_STATUS = [
    ("draft", "Draft"),          # still editable
    ("posted", "Posted"),        # reflected in balances
    ("cancelled", "Cancelled"),  # terminal
]

# Legal status moves; anything else is rejected on save
STATUS_TRANSITIONS = {
    "draft": {"posted", "cancelled"},
    "posted": {"cancelled"},
    "cancelled": set(),
}

ENTRY_TYPES = [
    ("manual", "Manual"),
    ("sale", "Sale"),
    ("purchase", "Purchase"),
    ("fiscal_invoice", "Fiscal invoice"),
    ("adjustment", "Adjustment"),
    ("transfer", "Transfer"),
    ("closing", "Period closing"),
    ("year_end", "Year-end transfer"),
]

CURRENCIES = [
    ("BS", "Bolívares"),
    ("USD", "US Dollar"),
    ("MIXED", "Mixed"),
]

# (debit, credit) pairs per currency, in line-field naming
AMOUNT_FIELDS = (
    "debit_amount_bs",
    "credit_amount_bs",
    "debit_amount_usd",
    "credit_amount_usd",
)
TOTAL_FIELDS = (
    "total_debit_bs",
    "total_credit_bs",
    "total_debit_usd",
    "total_credit_usd",
)

ZERO = Decimal("0.00")


# ---------- JournalEntry (Header) & JournalEntryLine ----------
class JournalEntry(models.Model):  # Represents one accounting transaction
    # Multi-tenant: every entry belongs to a store
    store = models.ForeignKey(
        Store, on_delete=models.CASCADE, related_name="journal_entries"
    )
    # "AS-YYYYMM-NNNN", allocated from EntrySequence
    number = models.CharField(max_length=32)
    date = models.DateField()
    entry_type = models.CharField(
        max_length=20, choices=ENTRY_TYPES, default="manual"
    )
    # optional polymorphic source info (sale, purchase_order, period_close ...)
    source_type = models.CharField(max_length=50, null=True, blank=True)
    source_id = models.CharField(max_length=64, null=True, blank=True)

    description = models.TextField(blank=True, default="")
    reference = models.CharField(max_length=200, null=True, blank=True)

    # Stored totals, kept equal to the line sums
    total_debit_bs = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    total_credit_bs = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    total_debit_usd = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    total_credit_usd = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    exchange_rate = models.DecimalField(
        max_digits=18, decimal_places=6, null=True, blank=True
    )
    currency = models.CharField(max_length=5, choices=CURRENCIES, default="BS")

    status = models.CharField(max_length=10, choices=ENTRY_STATUS, default="draft")
    is_auto_generated = models.BooleanField(default=False)

    posted_at = models.DateTimeField(null=True, blank=True)
    posted_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    cancellation_reason = models.TextField(blank=True, default="")

    # Track user who created it
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    metadata = models.JSONField(null=True, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        db_table = "journal_entries"
        ordering = ("store", "date", "number")
        indexes = [
            models.Index(fields=["store", "date"], name="je_store_date_idx"),
            models.Index(fields=["store", "status"], name="je_store_status_idx"),
            models.Index(fields=["store", "source_type", "source_id"], name="je_store_source_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["store", "number"], name="uq_store_entry_number"
            ),
            # One live auto-generated entry per business event
            models.UniqueConstraint(
                fields=["store", "source_type", "source_id"],
                condition=(
                    models.Q(is_auto_generated=True)
                    & ~models.Q(status="cancelled")
                ),
                name="uq_store_auto_entry_source",
            ),
        ]

    def __str__(self):
        return f"{self.number} {self.date} [{self.status}]"

    # Aggregate all four amount columns across the entry’s lines
    def line_totals(self):
        aggs = self.lines.aggregate(
            **{name: models.Sum(name) for name in AMOUNT_FIELDS}
        )
        return {name: aggs[name] or ZERO for name in AMOUNT_FIELDS}

    def is_balanced(self, tolerance=Decimal("0.01")):
        """Stored totals balance per currency within tolerance."""
        return (
            abs(self.total_debit_bs - self.total_credit_bs) <= tolerance
            and abs(self.total_debit_usd - self.total_credit_usd) <= tolerance
        )

    def save(self, *args, **kwargs):
        if self.pk:  # Does this row already exist in DB?
            orig_status = (
                JournalEntry.objects.filter(pk=self.pk)
                .values_list("status", flat=True)
                .first()
            )
            # status can only move forward along STATUS_TRANSITIONS
            if (
                orig_status is not None
                and orig_status != self.status
                and self.status not in STATUS_TRANSITIONS[orig_status]
            ):
                raise InvalidStatusTransition(
                    f"Cannot go from {orig_status} to {self.status}"
                )
        super().save(*args, **kwargs)


class JournalEntryLine(models.Model):  # Stores Lines (debits / credits)
    """
    Each line belongs to a journal entry and to a postable account and
    carries both the Bs and the USD side of the movement.
    """

    entry = models.ForeignKey(
        JournalEntry,
        on_delete=models.CASCADE,  # lines live and die with their entry
        related_name="lines",
    )
    line_number = models.PositiveIntegerField()

    # Can’t delete account if lines exist → PROTECT
    account = models.ForeignKey(
        Account, on_delete=models.PROTECT, related_name="journal_lines"
    )

    debit_amount_bs = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit_amount_bs = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    debit_amount_usd = models.DecimalField(max_digits=18, decimal_places=2, default=0)
    credit_amount_usd = models.DecimalField(max_digits=18, decimal_places=2, default=0)

    description = models.CharField(max_length=500, blank=True, default="")

    objects = JournalLineManager()

    class Meta:
        db_table = "journal_entry_lines"
        ordering = ("entry", "line_number")
        indexes = [
            models.Index(fields=["account"], name="jel_account_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["entry", "line_number"], name="uq_entry_line_number"
            ),
            # Enforce debits and credits must be non-negative
            models.CheckConstraint(
                condition=(
                    models.Q(debit_amount_bs__gte=0)
                    & models.Q(credit_amount_bs__gte=0)
                    & models.Q(debit_amount_usd__gte=0)
                    & models.Q(credit_amount_usd__gte=0)
                ),
                name="jel_non_negative_amounts",
            ),
        ]

    def __str__(self):
        return f"{self.entry.number}#{self.line_number} {self.account.code}"
