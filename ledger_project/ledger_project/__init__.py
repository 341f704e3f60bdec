# Celery instance is defined in ledger_project/celery.py
# Workers start with: celery -A ledger_project worker -l info
from .celery import celery_app

__all__ = ("celery_app",)
