"""
Batch integrity work over posted entries: the automatic correction pass,
the store-wide audit report and bucket-vs-ledger reconciliation.

Findings are collected, never raised, so one broken entry or account
doesn't stop the rest of the batch.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models, transaction
from django.utils import timezone

from .. import conf
from ..exceptions import LedgerValidationError
from ..models import Account, AccountBalance, AccountingPeriod, JournalEntry, JournalEntryLine
from ..models.account import DEBIT_NORMAL_TYPES
from ..models.journal import AMOUNT_FIELDS, TOTAL_FIELDS
from .audit_helper import log_action
from .balances import calculate_balances, month_bounds, rebuild_account_balances, update_account_balances
from .chart import ensure_adjustment_account
from .numeric import ZERO, classify_difference, round_money, sum_amounts, tolerance_thresholds

logger = logging.getLogger(__name__)

__all__ = [
    "CorrectionReport",
    "IntegrityReport",
    "ReconciliationReport",
    "rebuild_account_balances",
    "recalculate_entry_totals",
    "reconcile_accounts",
    "validate_accounting_integrity",
]

# descriptions that mark a line as an existing balancing line
ADJUSTMENT_MARKERS = (
    "adjust", "difference", "rounding",
    "ajuste", "diferencia", "redondeo",
)


@dataclass
class CorrectionReport:
    corrected: int = 0
    errors: list = field(default_factory=list)  # [{"entry_id", "entry_number", "error"}]


@dataclass
class IntegrityReport:
    is_valid: bool = True
    errors: list = field(default_factory=list)    # [{"type", "severity", "message", "details"}]
    warnings: list = field(default_factory=list)  # [{"type", "message", "details"}]

    def add_error(self, type, message, details=None, severity="error"):
        self.errors.append(
            {"type": type, "severity": severity, "message": message, "details": details}
        )
        if severity == "error":
            self.is_valid = False

    def add_warning(self, type, message, details=None):
        self.warnings.append({"type": type, "message": message, "details": details})


@dataclass
class ReconciliationReport:
    reconciled: int = 0
    discrepancies: list = field(default_factory=list)
    summary: dict = field(default_factory=dict)


# ---------- Correction pass ----------
def _line_sums(lines):
    kahan_max = conf.kahan_max_values()
    return {
        column: sum_amounts((getattr(line, column) for line in lines), kahan_max)
        for column in AMOUNT_FIELDS
    }


def _pick_balancing_line(lines, usable_accounts):
    """An existing adjustment line first, then the highest-numbered usable line."""
    usable = [line for line in lines if line.account_id in usable_accounts]
    for line in sorted(usable, key=lambda line: line.line_number, reverse=True):
        description = (line.description or "").lower()
        if any(marker in description for marker in ADJUSTMENT_MARKERS):
            return line
    if usable:
        return max(usable, key=lambda line: line.line_number)
    return None


def _offset(line, currency, diff):
    """
    Move `line` by the signed `diff` (debit − credit) of `currency` so the
    entry balances. Debits are reduced before credits are added, which
    keeps amounts non-negative. Returns the applied {column: delta}.
    """
    debit = f"debit_amount_{currency}"
    credit = f"credit_amount_{currency}"
    amount = abs(diff)
    if diff > 0:
        # too much debit
        if getattr(line, debit) >= amount:
            setattr(line, debit, getattr(line, debit) - amount)
            return {debit: -amount}
        setattr(line, credit, getattr(line, credit) + amount)
        return {credit: amount}
    if getattr(line, credit) >= amount:
        setattr(line, credit, getattr(line, credit) - amount)
        return {credit: -amount}
    setattr(line, debit, getattr(line, debit) + amount)
    return {debit: amount}


def _signed(value):
    return f"+{value}" if value > 0 else f"{value}"


def _correct_entry(store, entry, provisioner):
    """
    Balance one posted entry. Returns True when anything was rewritten.
    Raises LedgerValidationError for differences that need manual review.
    """
    lines = list(entry.lines.select_related("account").order_by("line_number"))
    sums = _line_sums(lines)
    diff = {
        "bs": sums["debit_amount_bs"] - sums["credit_amount_bs"],
        "usd": sums["debit_amount_usd"] - sums["credit_amount_usd"],
    }
    tolerance = conf.balance_tolerance()
    stored = {total: getattr(entry, total) for total in TOTAL_FIELDS}
    recomputed = dict(zip(TOTAL_FIELDS, sums.values()))

    if abs(diff["bs"]) <= tolerance and abs(diff["usd"]) <= tolerance:
        # lines are fine, only the stored totals may have drifted
        if stored == recomputed:
            return False
        JournalEntry.objects.filter(pk=entry.pk).update(**recomputed)
        logger.info("entry totals rewritten", extra={"store_id": store.pk, "number": entry.number})
        return True

    thresholds = tolerance_thresholds(max(sums.values()), cap=conf.materiality_cap())
    amounts = [getattr(line, column) for line in lines for column in AMOUNT_FIELDS]
    classes = {
        currency: classify_difference(value, amounts) for currency, value in diff.items()
    }
    if any(abs(value) > Decimal(str(thresholds.critical)) for value in diff.values()):
        raise LedgerValidationError(
            f"Critical difference requires manual review: "
            f"BS diff={diff['bs']} ({classes['bs'].suggestion}), "
            f"USD diff={diff['usd']} ({classes['usd'].suggestion})"
        )

    material = any(abs(value) > Decimal(str(thresholds.material)) for value in diff.values())
    label = f"{classes['bs'].error_type}/{classes['usd'].error_type}"
    label = f"Material - {label}" if material else label
    note = f"[Auto-adjustment {label}: BS {_signed(diff['bs'])}, USD {_signed(diff['usd'])}]"

    usable_accounts = set(
        Account.objects.active(store)
        .filter(allows_entries=True, pk__in=[line.account_id for line in lines])
        .values_list("pk", flat=True)
    )
    line = _pick_balancing_line(lines, usable_accounts)

    if line is not None:
        delta = dict.fromkeys(AMOUNT_FIELDS, ZERO)
        for currency, value in diff.items():
            if abs(value) > tolerance:
                delta.update(_offset(line, currency, value))
        line.description = f"{line.description} {note}".strip()[:500]
        line.save(update_fields=[*AMOUNT_FIELDS, "description"])
        balance_delta = {"account_id": line.account_id, **delta}
    else:
        account = provisioner(store)
        line = JournalEntryLine(
            entry=entry,
            line_number=max((existing.line_number for existing in lines), default=0) + 1,
            account=account,
            description=f"Automatic balance adjustment {note}"[:500],
        )
        for currency, value in diff.items():
            if abs(value) > tolerance:
                # residual goes on the opposite side of the excess
                side = "credit" if value > 0 else "debit"
                setattr(line, f"{side}_amount_{currency}", abs(value))
        line.save()
        balance_delta = {"account_id": account.pk, **{c: getattr(line, c) for c in AMOUNT_FIELDS}}

    update_account_balances(store, entry.date, [balance_delta])

    totals = dict(zip(TOTAL_FIELDS, _line_sums(list(entry.lines.all())).values()))
    JournalEntry.objects.filter(pk=entry.pk).update(**totals)

    log_action(
        action="auto_correct",
        instance=entry,
        changes={
            "line_number": line.line_number,
            "diff_bs": str(diff["bs"]),
            "diff_usd": str(diff["usd"]),
            "error_type": label,
        },
    )
    logger.info(
        "entry balanced by auto-correction",
        extra={"store_id": store.pk, "number": entry.number, "line_number": line.line_number, "error_type": label},
    )
    return True


def recalculate_entry_totals(store, entry_ids=None, provisioner=None):
    """
    Re-sum every posted entry (or just `entry_ids`) and balance the ones
    whose lines don't add up, within the critical threshold. A new line on
    the adjustment account (from `provisioner(store)`) is only created when
    no existing line can absorb the difference.
    """
    provisioner = provisioner or ensure_adjustment_account
    report = CorrectionReport()

    entries = JournalEntry.objects.for_store(store).filter(status="posted").order_by("date", "number")
    if entry_ids:
        entries = entries.filter(pk__in=list(entry_ids))

    for entry in entries:
        try:
            with transaction.atomic():
                if _correct_entry(store, entry, provisioner):
                    report.corrected += 1
        except ValidationError as exc:
            message = "; ".join(exc.messages)
            report.errors.append(
                {"entry_id": entry.pk, "entry_number": entry.number, "error": message}
            )
            logger.warning(
                "entry could not be corrected",
                extra={"store_id": store.pk, "number": entry.number, "error": message},
            )
        except Exception as exc:
            # provisioner or database failures stay with their entry
            message = str(exc) or exc.__class__.__name__
            report.errors.append(
                {"entry_id": entry.pk, "entry_number": entry.number, "error": message}
            )
            logger.exception(
                "entry correction failed",
                extra={"store_id": store.pk, "number": entry.number},
            )

    logger.info(
        "entry totals recalculated",
        extra={"store_id": store.pk, "corrected": report.corrected, "errors": len(report.errors)},
    )
    return report


# ---------- Audit ----------
def _signed_closing(account_type, bucket, currency):
    debit = getattr(bucket, f"closing_debit_{currency}")
    credit = getattr(bucket, f"closing_credit_{currency}")
    if account_type in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def _latest_buckets(store, account_ids=None, as_of=None):
    """{account_id: latest bucket}, optionally only buckets starting on or before `as_of`."""
    buckets = AccountBalance.objects.for_store(store).select_related("account")
    if account_ids is not None:
        buckets = buckets.filter(account_id__in=account_ids)
    if as_of is not None:
        buckets = buckets.filter(period_start__lte=as_of)
    latest = {}
    for bucket in buckets.order_by("account_id", "-period_start"):
        latest.setdefault(bucket.account_id, bucket)
    return latest


def _check_unbalanced(store, entries, report):
    tolerance = conf.balance_tolerance()
    unbalanced = [
        {
            "entry_id": entry.pk,
            "entry_number": entry.number,
            "difference_bs": str(entry.total_debit_bs - entry.total_credit_bs),
            "difference_usd": str(entry.total_debit_usd - entry.total_credit_usd),
        }
        for entry in entries
        if not entry.is_balanced(tolerance)
    ]
    if unbalanced:
        report.add_error(
            "unbalanced_entries", f"Found {len(unbalanced)} unbalanced entries", unbalanced
        )


def _check_closed_periods(store, entries, report):
    for period in AccountingPeriod.objects.for_store(store).filter(status="closed"):
        count = entries.filter(
            date__range=(period.period_start, period.period_end)
        ).exclude(
            # the period's own closing entries belong there
            source_type__in=("period_close", "year_end_transfer"), source_id=str(period.pk)
        ).count()
        if count:
            report.add_warning(
                "entries_in_closed_period",
                f"There are posted entries in closed period {period.period_code}",
                {"period_code": period.period_code, "entries_count": count},
            )


def _check_balance_mismatches(store, report):
    tolerance = conf.balance_tolerance()
    by_period_end = defaultdict(list)
    for bucket in _latest_buckets(store).values():
        if bucket.account.is_active:
            by_period_end[bucket.period_end].append(bucket)

    mismatches = []
    for period_end, buckets in sorted(by_period_end.items()):
        try:
            calculated = calculate_balances(store, [b.account_id for b in buckets], period_end)
        except Exception as exc:
            codes = sorted(bucket.account.code for bucket in buckets)
            logger.exception(
                "balance check failed", extra={"store_id": store.pk, "period_end": str(period_end)}
            )
            report.add_warning(
                "balance_check_failed",
                f"Could not check {len(codes)} accounts at {period_end}",
                {"accounts": codes, "error": str(exc)},
            )
            continue

        for bucket in buckets:
            account = bucket.account
            found = {}
            for currency in ("bs", "usd"):
                expected = _signed_closing(account.account_type, bucket, currency)
                actual = calculated[account.pk][f"balance_{currency}"]
                if abs(expected - actual) > tolerance:
                    found.update({
                        f"expected_balance_{currency}": str(expected),
                        f"calculated_balance_{currency}": str(actual),
                        f"difference_{currency}": str(expected - actual),
                    })
            if found:
                mismatches.append(
                    {"account_code": account.code, "account_name": account.name, **found}
                )
    if mismatches:
        report.add_error(
            "balance_mismatch", f"Found {len(mismatches)} accounts with inconsistent balances", mismatches
        )



def _check_lines(store, entries, report):
    tolerance = conf.balance_tolerance()
    without_lines = [
        {"entry_id": entry.pk, "entry_number": entry.number}
        for entry in JournalEntry.objects.for_store(store)
        .exclude(status="cancelled")
        .annotate(line_count=models.Count("lines"))
        .filter(line_count=0)
    ]
    if without_lines:
        report.add_error(
            "entries_without_lines", f"Found {len(without_lines)} entries without lines", without_lines
        )

    inconsistent = []
    for entry in entries.prefetch_related("lines"):
        lines = list(entry.lines.all())
        if not lines:
            continue
        sums = _line_sums(lines)
        for total, column in zip(TOTAL_FIELDS, AMOUNT_FIELDS):
            if abs(getattr(entry, total) - sums[column]) > tolerance:
                inconsistent.append({
                    "entry_id": entry.pk,
                    "entry_number": entry.number,
                    "field": total,
                    "entry_total": str(getattr(entry, total)),
                    "lines_total": str(sums[column]),
                })
                break
    if inconsistent:
        report.add_error(
            "inconsistent_entry_totals",
            f"Found {len(inconsistent)} entries with inconsistent totals",
            inconsistent,
        )


def validate_accounting_integrity(store, start=None, end=None):
    """
    Store-wide audit of posted entries (optionally dated within
    [start, end]) and of the monthly buckets. Every check runs even when
    an earlier one fails.
    """
    report = IntegrityReport()
    entries = JournalEntry.objects.for_store(store).filter(status="posted")
    if start is not None:
        entries = entries.filter(date__gte=start)
    if end is not None:
        entries = entries.filter(date__lte=end)

    checks = (
        ("unbalanced_entries", lambda: _check_unbalanced(store, entries, report)),
        ("entries_in_closed_period", lambda: _check_closed_periods(store, entries, report)),
        ("balance_mismatch", lambda: _check_balance_mismatches(store, report)),
        ("entry_lines", lambda: _check_lines(store, entries, report)),
    )
    for name, check in checks:
        try:
            check()
        except Exception as exc:
            logger.exception("integrity check %s failed", name)
            report.add_error("validation_error", f"Check {name} could not run", {"error": str(exc)})

    logger.info(
        "integrity audit finished",
        extra={"store_id": store.pk, "is_valid": report.is_valid, "errors": len(report.errors)},
    )
    return report


# ---------- Reconciliation ----------
def reconcile_accounts(store, account_ids=None, as_of=None):
    """
    Compare each account's latest bucket up to `as_of` with the balance
    recomputed from posted lines up to the end of that month.
    """
    as_of = as_of or timezone.localdate()
    _, month_end = month_bounds(as_of)

    if account_ids is not None:
        accounts = list(Account.objects.for_store(store).filter(pk__in=list(account_ids)))
    else:
        accounts = list(Account.objects.active(store))

    ids = [account.pk for account in accounts]
    calculated = calculate_balances(store, ids, month_end)
    buckets = _latest_buckets(store, ids, as_of)
    tolerance = conf.balance_tolerance()

    report = ReconciliationReport()
    for account in sorted(accounts, key=lambda a: a.code):
        bucket = buckets.get(account.pk)
        expected = {
            currency: _signed_closing(account.account_type, bucket, currency) if bucket else ZERO
            for currency in ("bs", "usd")
        }
        actual = calculated[account.pk]
        difference_bs = expected["bs"] - actual["balance_bs"]
        difference_usd = expected["usd"] - actual["balance_usd"]
        if abs(difference_bs) > tolerance or abs(difference_usd) > tolerance:
            report.discrepancies.append({
                "account_id": account.pk,
                "account_code": account.code,
                "account_name": account.name,
                "expected_balance_bs": expected["bs"],
                "actual_balance_bs": actual["balance_bs"],
                "difference_bs": round_money(difference_bs),
                "expected_balance_usd": expected["usd"],
                "actual_balance_usd": actual["balance_usd"],
                "difference_usd": round_money(difference_usd),
            })
        else:
            report.reconciled += 1

    report.summary = {
        "total_accounts": len(accounts),
        "reconciled_accounts": report.reconciled,
        "accounts_with_discrepancies": len(report.discrepancies),
    }
    return report
