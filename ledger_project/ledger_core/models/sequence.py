from django.db import models
from .store import Store


# ---------- Per-store, per-month entry number counter ----------
class EntrySequence(models.Model):
    store = models.ForeignKey(
        Store, on_delete=models.CASCADE, related_name="entry_sequences"
    )
    period_key = models.CharField(max_length=6)  # "YYYYMM"
    next_value = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = "entry_sequences"
        constraints = [
            models.UniqueConstraint(
                fields=["store", "period_key"], name="uq_entry_sequence_key"
            ),
        ]

    def __str__(self):
        return f"{self.store_id}:{self.period_key} → {self.next_value}"
