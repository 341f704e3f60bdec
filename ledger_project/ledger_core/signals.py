from django.db.models.signals import pre_delete
from django.dispatch import receiver

from .exceptions import LedgerValidationError
from .models import Account, AccountingPeriod, JournalEntry, JournalEntryLine

"""Block deletion if account has ever been used in a journal line."""


# pre_delete signal auto-fires just before Django deletes a model instance
@receiver(pre_delete, sender=Account)
def prevent_delete_account_with_journal_lines(sender, instance, **kwargs):
    if JournalEntryLine.objects.filter(account=instance).exists():
        raise LedgerValidationError("Cannot delete account used in journal lines.")


"""Block deletion of posted entries; they are cancelled instead."""


@receiver(pre_delete, sender=JournalEntry)
def prevent_delete_posted_entry(sender, instance, **kwargs):
    if instance.status == "posted":
        raise LedgerValidationError(
            "Cannot delete a posted journal entry, cancel it instead.")


"""Block deletion if period has posted journals."""


@receiver(pre_delete, sender=AccountingPeriod)
def prevent_delete_period_with_posted_journals(sender, instance, **kwargs):
    if JournalEntry.objects.filter(
        store_id=instance.store_id,
        status="posted",
        date__range=(instance.period_start, instance.period_end),
    ).exists():
        raise LedgerValidationError(
            "Cannot delete a period with posted journal entries.")
