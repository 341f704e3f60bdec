import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task  # register this function as a Celery task
def rebuild_account_balances(store_id):
    # import lazily to avoid circular imports at module import time
    from .models import Store
    from .services.balances import rebuild_account_balances as rebuild

    store = Store.objects.get(pk=store_id)
    # Wipe and recompute every monthly bucket from posted lines
    buckets = rebuild(store)
    logger.info("balance rebuild task done", extra={"store_id": store_id, "buckets": buckets})
    return buckets


@shared_task
def recalculate_entry_totals_task(store_id, entry_ids=None):
    from .models import Store
    from .services.integrity import recalculate_entry_totals

    store = Store.objects.get(pk=store_id)
    report = recalculate_entry_totals(store, entry_ids=entry_ids)
    # Celery results must be serializable, so hand back plain data
    return {"corrected": report.corrected, "errors": report.errors}
