import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .. import conf
from ..exceptions import (InvalidStatusTransition, LedgerNotFoundError,
                          LedgerValidationError, UnbalancedJournalError)
from ..models import Account, EntrySequence, JournalEntry, JournalEntryLine
from ..models.journal import AMOUNT_FIELDS, TOTAL_FIELDS
from .audit_helper import log_action
from .balances import line_account_id, line_value, update_account_balances
from .numeric import round_money, sum_amounts
from .periods import validate_period_open

logger = logging.getLogger(__name__)


# ---------- Entry numbers ----------
def _initial_sequence_value(store, period_key):
    """Continue after numbers already issued in the month (imports, legacy rows)."""
    prefix = f"{conf.entry_number_prefix()}-{period_key}-"
    numbers = JournalEntry.objects.for_store(store).filter(
        number__startswith=prefix
    ).values_list("number", flat=True)
    highest = 0
    for number in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


def next_entry_number(store, entry_date):
    """
    Allocate "AS-YYYYMM-NNNN" from the (store, month) sequence row.
    Uses select_for_update to avoid concurrent duplicates.
    """
    period_key = f"{entry_date:%Y%m}"
    with transaction.atomic():
        try:
            seq = EntrySequence.objects.select_for_update().get(
                store=store, period_key=period_key
            )
        except EntrySequence.DoesNotExist:
            try:
                with transaction.atomic():
                    seq = EntrySequence.objects.create(
                        store=store,
                        period_key=period_key,
                        next_value=_initial_sequence_value(store, period_key),
                    )
            except IntegrityError:
                seq = EntrySequence.objects.select_for_update().get(
                    store=store, period_key=period_key
                )

        value = seq.next_value
        seq.next_value = value + 1
        seq.save(update_fields=["next_value"])
    return f"{conf.entry_number_prefix()}-{period_key}-{value:04d}"


# ---------- Validation ----------
def _infer_currency(totals):
    has_bs = totals["total_debit_bs"] or totals["total_credit_bs"]
    has_usd = totals["total_debit_usd"] or totals["total_credit_usd"]
    if has_bs and has_usd:
        return "MIXED"
    return "USD" if has_usd else "BS"


def entry_totals(lines):
    """Stored totals for `lines`, via compensated summation."""
    kahan_max = conf.kahan_max_values()
    return {
        total: sum_amounts((line_value(line, field) for line in lines), kahan_max)
        for total, field in zip(TOTAL_FIELDS, AMOUNT_FIELDS)
    }


def prepare_lines(store, lines, allow_inactive=False):
    """
    Validate raw lines (dicts or JournalEntryLine rows) and return
    (normalized_lines, totals). Rejects fewer than two lines, negative
    amounts, unknown/inactive/non-postable accounts and entries that
    don't balance per currency.

    `allow_inactive` lets system entries (period close) zero out balances
    still held by deactivated accounts.
    """
    lines = list(lines)
    if len(lines) < 2:
        raise LedgerValidationError("A journal entry needs at least two lines")

    account_ids = [line_account_id(line) for line in lines]
    accounts = Account.objects.for_store(store).in_bulk(
        [account_id for account_id in account_ids if account_id is not None]
    )

    normalized = []
    for line_number, (line, account_id) in enumerate(zip(lines, account_ids), start=1):
        account = accounts.get(account_id)
        if account is None:
            raise LedgerNotFoundError(f"Account {account_id} not found (line {line_number})")
        if not account.is_active and not allow_inactive:
            raise LedgerValidationError(f"Account {account.code} is inactive")
        if not account.allows_entries:
            raise LedgerValidationError(f"Account {account.code} does not allow entries")

        amounts = {field: round_money(line_value(line, field)) for field in AMOUNT_FIELDS}
        if any(amount < 0 for amount in amounts.values()):
            raise LedgerValidationError(f"Line {line_number} has a negative amount")

        normalized.append({
            "line_number": line_number,
            "account": account,
            "account_id": account.pk,
            "description": line_value(line, "description") or "",
            **amounts,
        })

    totals = entry_totals(normalized)
    tolerance = conf.balance_tolerance()
    for currency in ("bs", "usd"):
        debit = totals[f"total_debit_{currency}"]
        credit = totals[f"total_credit_{currency}"]
        if abs(debit - credit) > tolerance:
            raise UnbalancedJournalError(
                f"Journal not balanced in {currency.upper()}: debits={debit}, credits={credit}"
            )
    return normalized, totals


def _insert_entry(store, entry_date, totals, **fields):
    """Create the header, retrying when the allocated number is already taken."""
    if not fields.get("currency"):
        fields["currency"] = _infer_currency(totals)
    retries = conf.sequence_retries()
    for attempt in range(1, retries + 1):
        number = next_entry_number(store, entry_date)
        try:
            with transaction.atomic():
                return JournalEntry.objects.create(
                    store=store, number=number, date=entry_date, **totals, **fields
                )
        except IntegrityError:
            if not JournalEntry.objects.for_store(store).filter(number=number).exists():
                raise
            logger.warning(
                "entry number collision, retrying",
                extra={"store_id": store.pk, "number": number, "attempt": attempt},
            )
    raise LedgerValidationError(
        f"Could not allocate an entry number after {retries} attempts"
    )


def _insert_lines(entry, normalized):
    JournalEntryLine.objects.bulk_create([
        JournalEntryLine(
            entry=entry,
            line_number=line["line_number"],
            account=line["account"],
            description=line["description"][:500],
            **{field: line[field] for field in AMOUNT_FIELDS},
        )
        for line in normalized
    ])


# ---------- Lookups ----------
def get_entry(store, entry_id):
    try:
        return JournalEntry.objects.for_store(store).get(pk=entry_id)
    except JournalEntry.DoesNotExist:
        raise LedgerNotFoundError(f"Journal entry {entry_id} not found")


def find_entry_by_source(store, source_type, source_id):
    """Live (non-cancelled) entry generated for a business event, if any."""
    return (
        JournalEntry.objects.for_store(store)
        .filter(source_type=source_type, source_id=str(source_id))
        .exclude(status="cancelled")
        .order_by("-created_at")
        .first()
    )


def _locked_entry(store, entry_id):
    try:
        return JournalEntry.objects.select_for_update().get(store=store, pk=entry_id)
    except JournalEntry.DoesNotExist:
        raise LedgerNotFoundError(f"Journal entry {entry_id} not found")


# ---------- Operations ----------
@transaction.atomic
def create_entry(
    store,
    entry_date,
    lines,
    *,
    entry_type="manual",
    description="",
    reference=None,
    source_type=None,
    source_id=None,
    exchange_rate=None,
    currency=None,
    metadata=None,
    user=None,
):
    """Create a balanced draft entry with its lines and number."""
    validate_period_open(store, entry_date)
    normalized, totals = prepare_lines(store, lines)

    entry = _insert_entry(
        store,
        entry_date,
        totals,
        entry_type=entry_type,
        description=description,
        reference=reference,
        source_type=source_type,
        source_id=str(source_id) if source_id is not None else None,
        exchange_rate=exchange_rate,
        currency=currency,
        metadata=metadata,
        status="draft",
        created_by=user,
    )
    _insert_lines(entry, normalized)

    log_action(action="create", instance=entry, user=user,
               changes={"number": entry.number, "lines": len(normalized)})
    return entry


def create_auto_entry(
    store,
    *,
    source_type,
    source_id,
    entry_date,
    lines,
    entry_type="manual",
    description="",
    reference=None,
    exchange_rate=None,
    currency=None,
    metadata=None,
    user=None,
    allow_inactive=False,
):
    """
    Posted, auto-generated entry for a business event.
    Idempotent on (store, source_type, source_id): an existing live entry
    is returned instead of creating a duplicate.
    """
    existing = find_entry_by_source(store, source_type, source_id)
    if existing is not None:
        return existing

    try:
        with transaction.atomic():
            validate_period_open(store, entry_date)
            normalized, totals = prepare_lines(store, lines, allow_inactive)
            entry = _insert_entry(
                store,
                entry_date,
                totals,
                entry_type=entry_type,
                description=description,
                reference=reference,
                source_type=source_type,
                source_id=str(source_id),
                exchange_rate=exchange_rate,
                currency=currency,
                metadata=metadata,
                status="posted",
                is_auto_generated=True,
                posted_at=timezone.now(),
                posted_by=user,
                created_by=user,
            )
            _insert_lines(entry, normalized)
            update_account_balances(store, entry_date, normalized)
    except IntegrityError:
        # lost the race against another generator for the same event
        existing = find_entry_by_source(store, source_type, source_id)
        if existing is None:
            raise
        return existing

    logger.info(
        "auto entry posted",
        extra={"store_id": store.pk, "number": entry.number, "source_type": source_type},
    )
    return entry


@transaction.atomic
def post_entry(store, entry_id, user=None):
    entry = _locked_entry(store, entry_id)
    if entry.status != "draft":
        raise InvalidStatusTransition(f"Cannot post a {entry.status} entry")
    validate_period_open(store, entry.date)

    # lines may have been edited while in draft
    lines = list(entry.lines.all())
    _, totals = prepare_lines(store, lines)

    entry.status = "posted"
    entry.posted_at = timezone.now()
    entry.posted_by = user
    for field, value in totals.items():
        setattr(entry, field, value)
    entry.save(update_fields=["status", "posted_at", "posted_by", *TOTAL_FIELDS])

    update_account_balances(store, entry.date, lines)
    log_action(action="post", instance=entry, user=user)
    logger.info("entry posted", extra={"store_id": store.pk, "number": entry.number})
    return entry


@transaction.atomic
def cancel_entry(store, entry_id, user=None, reason=""):
    """
    Cancel a draft or posted entry. A posted entry's effect on the
    monthly buckets is reversed so they keep matching posted lines.
    """
    entry = _locked_entry(store, entry_id)
    if entry.status == "cancelled":
        raise InvalidStatusTransition("Entry is already cancelled")
    was_posted = entry.status == "posted"

    entry.status = "cancelled"
    entry.cancelled_at = timezone.now()
    entry.cancelled_by = user
    entry.cancellation_reason = reason or ""
    entry.save(update_fields=["status", "cancelled_at", "cancelled_by", "cancellation_reason"])

    if was_posted:
        update_account_balances(store, entry.date, list(entry.lines.all()), sign=-1)

    log_action(action="cancel", instance=entry, user=user,
               changes={"reason": reason, "was_posted": was_posted})
    logger.info("entry cancelled", extra={"store_id": store.pk, "number": entry.number})
    return entry
