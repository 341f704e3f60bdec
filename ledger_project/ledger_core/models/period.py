from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from ..managers import TenantManager
from .store import Store

PERIOD_STATUS = [
    ("open", "Open"),
    ("closed", "Closed"),
    ("locked", "Locked"),  # terminal
]


# ---------- AccountingPeriod (monthly) ----------
class AccountingPeriod(models.Model):
    """
    Monthly bucket keyed by period_code "YYYY-MM".

    open → closed (close), closed → open (reopen), closed → locked (lock).
    No entry may be created or posted inside a non-open period.
    """

    # Every store has its own independent calendar of periods
    store = models.ForeignKey(
        Store, on_delete=models.CASCADE, related_name="periods"
    )
    period_code = models.CharField(max_length=7)  # Example: "2025-01"
    period_start = models.DateField()
    period_end = models.DateField()

    status = models.CharField(max_length=10, choices=PERIOD_STATUS, default="open")
    closed_at = models.DateTimeField(null=True, blank=True)
    closed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    closing_entry = models.ForeignKey(
        "ledger_core.JournalEntry", null=True, blank=True,
        on_delete=models.SET_NULL, related_name="+",
    )
    closing_note = models.TextField(blank=True, default="")

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        db_table = "accounting_periods"
        ordering = ("store", "period_start")
        indexes = [
            models.Index(fields=["store", "period_start", "period_end"], name="ap_store_range_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["store", "period_code"], name="uq_store_period_code"
            ),
        ]

    def __str__(self):
        return f"{self.store.slug} {self.period_code} [{self.status}]"

    @property
    def is_open(self):
        return self.status == "open"

    def clean(self):
        if self.period_start > self.period_end:
            raise ValidationError("period_start must not be after period_end")

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
