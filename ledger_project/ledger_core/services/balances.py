import calendar
import logging
from collections import defaultdict

from django.db import models, transaction
from django.db.models.functions import TruncMonth
from django.utils import timezone

from ..models import Account, AccountBalance, JournalEntryLine
from ..models.account import DEBIT_NORMAL_TYPES
from ..models.balance import BALANCE_SIDES
from .numeric import ZERO, round_money

logger = logging.getLogger(__name__)

# bucket side → journal line column
LINE_FIELD = {
    "debit_bs": "debit_amount_bs",
    "credit_bs": "credit_amount_bs",
    "debit_usd": "debit_amount_usd",
    "credit_usd": "credit_amount_usd",
}


def month_bounds(day):
    """First and last day of the calendar month containing `day`."""
    start = day.replace(day=1)
    end = start.replace(day=calendar.monthrange(start.year, start.month)[1])
    return start, end


def _signed(account_type, debit, credit):
    if account_type in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def _sum_columns():
    return {side: models.Sum(column) for side, column in LINE_FIELD.items()}


# ---------- Balances as of a date ----------
def calculate_balances(store, account_ids, as_of):
    """
    {account_id: {"balance_bs", "balance_usd"}} from posted lines dated
    on or before `as_of`. One grouped aggregate plus one account-type
    lookup, whatever the number of accounts. Unknown ids map to zero.
    """
    account_ids = list(dict.fromkeys(account_ids))
    balances = {
        account_id: {"balance_bs": ZERO, "balance_usd": ZERO}
        for account_id in account_ids
    }
    if not account_ids:
        return balances

    account_types = dict(
        Account.objects.for_store(store)
        .filter(pk__in=account_ids)
        .values_list("pk", "account_type")
    )

    rows = (
        JournalEntryLine.objects.for_store(store)
        .posted()
        .filter(account_id__in=account_ids, entry__date__lte=as_of)
        .values("account_id")
        .annotate(**_sum_columns())
        .order_by()
    )
    for row in rows:
        account_type = account_types.get(row["account_id"])
        if account_type is None:
            continue
        balances[row["account_id"]] = {
            "balance_bs": _signed(
                account_type, row["debit_bs"] or ZERO, row["credit_bs"] or ZERO
            ),
            "balance_usd": _signed(
                account_type, row["debit_usd"] or ZERO, row["credit_usd"] or ZERO
            ),
        }
    return balances


# ---------- Monthly buckets ----------
def line_value(line, name):
    if isinstance(line, dict):
        return line.get(name)
    return getattr(line, name, None)


def line_account_id(line):
    account_id = line_value(line, "account_id")
    if account_id is None:
        account = line_value(line, "account")
        account_id = getattr(account, "pk", account)
    return account_id


def _collect_deltas(lines, sign):
    deltas = defaultdict(lambda: dict.fromkeys(BALANCE_SIDES, ZERO))
    for line in lines:
        account_id = line_account_id(line)
        if account_id is None:
            continue
        bucket = deltas[account_id]
        for side, column in LINE_FIELD.items():
            # None/NaN coerce to 0 inside round_money
            bucket[side] += round_money(line_value(line, column)) * sign
    return {
        account_id: delta
        for account_id, delta in deltas.items()
        if any(delta.values())
    }


def _carry_forward(store, account_ids, period_start):
    """Closing of the latest earlier bucket per account, used as opening."""
    openings = {}
    earlier = (
        AccountBalance.objects.for_store(store)
        .filter(account_id__in=account_ids, period_start__lt=period_start)
        .order_by("account_id", "-period_start")
    )
    for bucket in earlier:
        if bucket.account_id in openings:
            continue
        openings[bucket.account_id] = {
            side: getattr(bucket, f"closing_{side}") for side in BALANCE_SIDES
        }
    return openings


def _locked_buckets(store, account_ids, period_start):
    return {
        bucket.account_id: bucket
        for bucket in AccountBalance.objects.select_for_update().filter(
            store=store, account_id__in=account_ids, period_start=period_start
        )
    }


@transaction.atomic
def update_account_balances(store, entry_date, lines, sign=1):
    """
    Add the lines' amounts to the bucket of the month containing
    `entry_date`, creating missing buckets with the carried-forward
    opening. Later buckets of the same accounts shift by the same delta.
    `sign=-1` reverses a previous update.
    Returns the number of touched accounts.
    """
    deltas = _collect_deltas(lines, sign)
    if not deltas:
        return 0

    period_start, period_end = month_bounds(entry_date)
    now = timezone.now()
    account_ids = sorted(deltas)

    buckets = _locked_buckets(store, account_ids, period_start)
    missing = [account_id for account_id in account_ids if account_id not in buckets]
    if missing:
        openings = _carry_forward(store, missing, period_start)
        new_rows = []
        for account_id in missing:
            row = AccountBalance(
                store=store,
                account_id=account_id,
                period_start=period_start,
                period_end=period_end,
                last_calculated_at=now,
            )
            for side, value in openings.get(account_id, {}).items():
                setattr(row, f"opening_{side}", value)
            row.recompute_closing()
            new_rows.append(row)
        # rows a concurrent writer created first are skipped and reused below
        AccountBalance.objects.bulk_create(new_rows, ignore_conflicts=True)
        buckets.update(_locked_buckets(store, missing, period_start))

    changed_fields = (
        [f"period_{side}" for side in BALANCE_SIDES]
        + [f"closing_{side}" for side in BALANCE_SIDES]
        + ["last_calculated_at"]
    )
    for account_id, delta in deltas.items():
        bucket = buckets[account_id]
        for side, amount in delta.items():
            field = f"period_{side}"
            setattr(bucket, field, getattr(bucket, field) + amount)
        bucket.recompute_closing()
        bucket.last_calculated_at = now
    AccountBalance.objects.bulk_update(list(buckets.values()), changed_fields)

    # later months already opened from the old closing
    later = list(
        AccountBalance.objects.select_for_update().filter(
            store=store, account_id__in=account_ids, period_start__gt=period_start
        )
    )
    for bucket in later:
        for side, amount in deltas[bucket.account_id].items():
            setattr(bucket, f"opening_{side}", getattr(bucket, f"opening_{side}") + amount)
        bucket.recompute_closing()
        bucket.last_calculated_at = now
    if later:
        AccountBalance.objects.bulk_update(
            later,
            [f"opening_{side}" for side in BALANCE_SIDES]
            + [f"closing_{side}" for side in BALANCE_SIDES]
            + ["last_calculated_at"],
        )

    logger.debug(
        "account balances updated",
        extra={"store_id": store.pk, "accounts": len(account_ids), "period": f"{period_start:%Y-%m}"},
    )
    return len(account_ids)


@transaction.atomic
def rebuild_account_balances(store):
    """Drop every bucket of `store` and recompute them from posted lines."""
    AccountBalance.objects.for_store(store).delete()

    rows = (
        JournalEntryLine.objects.for_store(store)
        .posted()
        .annotate(month=TruncMonth("entry__date"))
        .values("account_id", "month")
        .annotate(**_sum_columns())
        .order_by("account_id", "month")
    )

    now = timezone.now()
    running = {}
    buckets = []
    for row in rows:
        month_start, month_end = month_bounds(row["month"])
        opening = running.get(row["account_id"], dict.fromkeys(BALANCE_SIDES, ZERO))
        bucket = AccountBalance(
            store=store,
            account_id=row["account_id"],
            period_start=month_start,
            period_end=month_end,
            last_calculated_at=now,
        )
        for side in BALANCE_SIDES:
            setattr(bucket, f"opening_{side}", opening[side])
            setattr(bucket, f"period_{side}", row[side] or ZERO)
        bucket.recompute_closing()
        running[row["account_id"]] = {
            side: getattr(bucket, f"closing_{side}") for side in BALANCE_SIDES
        }
        buckets.append(bucket)

    AccountBalance.objects.bulk_create(buckets)
    logger.info(
        "account balances rebuilt",
        extra={"store_id": store.pk, "buckets": len(buckets)},
    )
    return len(buckets)
