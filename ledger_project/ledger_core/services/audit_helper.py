import logging
from typing import Optional

from django.db import DatabaseError, transaction

from ..models import AuditLog, Store

logger = logging.getLogger(__name__)


def log_action(
    *,
    action: str,
    instance,
    user=None,
    store: Optional[Store] = None,
    changes: dict | None = None,
):
    """
    Central audit logger.
    Fire-and-forget: a failing audit write is logged and never
    propagates into the operation that triggered it.
    """

    if not store:
        store = getattr(instance, "store", None)

    try:
        # savepoint, so a failed insert leaves the caller's transaction usable
        with transaction.atomic():
            AuditLog.objects.create(
                store=store,
                user=user,
                action=action,
                object_type=instance.__class__.__name__,
                object_id=str(instance.pk),
                changes=changes,
            )
    except DatabaseError:
        logger.exception(
            "audit log write failed",
            extra={"action": action, "object_type": instance.__class__.__name__},
        )
