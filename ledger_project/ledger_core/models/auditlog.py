from django.conf import settings  # To access global project settings
from django.db import models
from ..managers import TenantManager
from .store import Store


# ---------- Audit / Event log ----------
class AuditLog(models.Model):  # accountability across account/entry/period mutations
    # Nullable because some actions might not belong to a store
    store = models.ForeignKey(
        Store,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
    )
    # Nullable in case the action was automated (celery task, command)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True, blank=True, on_delete=models.SET_NULL
    )
    # Common choices: create, update, delete, post, cancel, close, reopen
    action = models.CharField(max_length=50)
    # (e.g., "JournalEntry", "Account", "AccountingPeriod")
    object_type = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    # before/after details of what changed, in JSON format
    changes = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        db_table = "audit_logs"
        indexes = [
            models.Index(fields=["store", "user"], name="audit_store_user_idx"),
            models.Index(fields=["store", "created_at"], name="audit_store_created_idx"),
        ]

    def __str__(self):
        time = self.created_at
        return f"[{time:%Y-%m-%d %H:%M}] {self.user} {self.action} {self.object_type}({self.object_id})"
