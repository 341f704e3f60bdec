import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.db import transaction
from django.utils import timezone

from ..exceptions import InvalidStatusTransition, LedgerNotFoundError, PeriodNotOpenError
from ..models import Account, AccountingPeriod, JournalEntry
from .audit_helper import log_action
from .balances import calculate_balances, month_bounds
from .numeric import ZERO, round_money

logger = logging.getLogger(__name__)

CLOSE_TOLERANCE = Decimal("0.01")
CLOSE_SOURCE = "period_close"
YEAR_END_SOURCE = "year_end_transfer"


def _code_or_name(code, name):
    def predicate(account):
        return account.code == code or account.name.strip().lower() == name.lower()
    return predicate


# Where the period result lands, in priority order
is_current_year_result = _code_or_name("3.03.01", "Resultado del Ejercicio")
EQUITY_TARGET_CHAIN = [
    is_current_year_result,
    _code_or_name("3.02.01", "Utilidades Acumuladas"),
    _code_or_name("3.02", "Ganancias Retenidas"),
    _code_or_name("3.01.01", "Capital Social"),
    lambda account: True,  # any active equity account, lowest code first
]
RETAINED_EARNINGS_CHAIN = [
    _code_or_name("3.02.01", "Utilidades Acumuladas"),
    _code_or_name("3.02", "Ganancias Retenidas"),
]


@dataclass
class CloseResult:
    period: AccountingPeriod
    closing_entry: Optional[JournalEntry] = None
    year_end_entry: Optional[JournalEntry] = None
    net_income_bs: Decimal = ZERO
    net_income_usd: Decimal = ZERO


# ---------- Lookups ----------
def get_or_create_period(store, day):
    """Monthly period containing `day`, created open when missing."""
    start, end = month_bounds(day)
    period, _ = AccountingPeriod.objects.get_or_create(
        store=store,
        period_code=f"{start:%Y-%m}",
        defaults={"period_start": start, "period_end": end},
    )
    return period


def get_period(store, period_code):
    try:
        return AccountingPeriod.objects.for_store(store).get(period_code=period_code)
    except AccountingPeriod.DoesNotExist:
        raise LedgerNotFoundError(f"Period {period_code} not found")


def validate_period_open(store, day):
    period = get_or_create_period(store, day)
    if not period.is_open:
        raise PeriodNotOpenError(
            f"Period {period.period_code} is {period.status}; no postings allowed"
        )
    return period


def _resolve(store, chain):
    candidates = list(
        Account.objects.active(store)
        .filter(account_type="equity", allows_entries=True)
        .order_by("code")
    )
    for predicate in chain:
        for account in candidates:
            if predicate(account):
                return account
    return None


def resolve_equity_account(store):
    account = _resolve(store, EQUITY_TARGET_CHAIN)
    if account is None:
        raise LedgerNotFoundError("No equity account available to close the period")
    return account


# ---------- Close ----------
def _net_income(store, accounts, balances, start, end, provider):
    if provider is not None:
        totals = provider(store, start, end)["totals"]
        return round_money(totals.get("net_income_bs")), round_money(totals.get("net_income_usd"))

    net_bs = ZERO
    net_usd = ZERO
    for account in accounts:
        balance = balances[account.pk]
        sign = 1 if account.account_type == "revenue" else -1
        net_bs += sign * balance["balance_bs"]
        net_usd += sign * balance["balance_usd"]
    return net_bs, net_usd


def _closing_lines(accounts, balances, equity, period_code):
    """
    One zeroing line per revenue/expense account with a balance and
    one net equity line that takes the offset of all of them.
    """
    lines = []
    # equity movement, positive = credit
    equity_net = {"bs": ZERO, "usd": ZERO}

    for account in accounts:
        balance = balances[account.pk]
        if not balance["balance_bs"] and not balance["balance_usd"]:
            continue
        line = {
            "account": account,
            "debit_amount_bs": ZERO,
            "credit_amount_bs": ZERO,
            "debit_amount_usd": ZERO,
            "credit_amount_usd": ZERO,
            "description": f"Period close {period_code}: {account.name}",
        }
        for currency in ("bs", "usd"):
            amount = balance[f"balance_{currency}"]
            if not amount:
                continue
            if account.account_type == "revenue":
                # credit-normal: a positive balance is zeroed with a debit
                side = "debit" if amount > 0 else "credit"
                equity_net[currency] += amount
            else:
                side = "credit" if amount > 0 else "debit"
                equity_net[currency] -= amount
            line[f"{side}_amount_{currency}"] = abs(amount)
        lines.append(line)

    if not lines:
        return lines

    equity_line = {
        "account": equity,
        "debit_amount_bs": ZERO,
        "credit_amount_bs": ZERO,
        "debit_amount_usd": ZERO,
        "credit_amount_usd": ZERO,
        "description": f"Period close {period_code}: result",
    }
    for currency, amount in equity_net.items():
        side = "credit" if amount > 0 else "debit"
        equity_line[f"{side}_amount_{currency}"] = abs(amount)
    lines.append(equity_line)
    return lines


def _year_end_lines(result_account, retained, balance):
    """Move the current-year result to retained earnings, sign-aware."""
    result_line = {"account": result_account, "description": "Year-end transfer: result"}
    retained_line = {"account": retained, "description": "Year-end transfer: retained earnings"}
    for currency in ("bs", "usd"):
        amount = balance[f"balance_{currency}"]
        # gain (credit balance) → debit result, credit retained; loss reverses
        result_side, retained_side = ("debit", "credit") if amount > 0 else ("credit", "debit")
        for line in (result_line, retained_line):
            line.setdefault(f"debit_amount_{currency}", ZERO)
            line.setdefault(f"credit_amount_{currency}", ZERO)
        result_line[f"{result_side}_amount_{currency}"] = abs(amount)
        retained_line[f"{retained_side}_amount_{currency}"] = abs(amount)
    return [result_line, retained_line]


def _transfer_year_result(store, period, equity, user):
    from .posting import create_auto_entry

    retained = _resolve(store, RETAINED_EARNINGS_CHAIN)
    if retained is None:
        logger.warning(
            "no retained earnings account, year-end transfer skipped",
            extra={"store_id": store.pk, "period": period.period_code},
        )
        return None

    balance = calculate_balances(store, [equity.pk], period.period_end)[equity.pk]
    if abs(balance["balance_bs"]) < CLOSE_TOLERANCE and abs(balance["balance_usd"]) < CLOSE_TOLERANCE:
        return None

    return create_auto_entry(
        store,
        source_type=YEAR_END_SOURCE,
        source_id=str(period.pk),
        entry_date=period.period_end,
        lines=_year_end_lines(equity, retained, balance),
        entry_type="year_end",
        description=f"Year-end transfer {period.period_end.year}",
        user=user,
        allow_inactive=True,
        metadata={"period_code": period.period_code},
    )


@transaction.atomic
def close_period(
    store,
    period_start,
    period_end,
    user=None,
    note=None,
    income_statement_provider=None,
):
    """
    Close the monthly period starting at `period_start`.

    Revenue and expense balances as of `period_end` are zeroed into one
    equity account by a single posted closing entry. On 31 December the
    current-year result is then moved to retained earnings.
    `income_statement_provider(store, start, end)` may supply
    {"totals": {"net_income_bs", "net_income_usd"}} instead of the ledger.
    """
    # lazy import to avoid circular import at module load time
    from .posting import create_auto_entry

    period = get_or_create_period(store, period_start)
    period = AccountingPeriod.objects.select_for_update().get(pk=period.pk)
    if period.status in ("closed", "locked"):
        raise InvalidStatusTransition(
            f"Period {period.period_code} is already {period.status}"
        )

    # inactive accounts still carry balances that must be zeroed
    accounts = list(
        Account.objects.for_store(store)
        .filter(account_type__in=("revenue", "expense"), allows_entries=True)
        .order_by("code")
    )
    balances = calculate_balances(store, [a.pk for a in accounts], period_end)
    net_bs, net_usd = _net_income(
        store, accounts, balances, period_start, period_end, income_statement_provider
    )
    result = CloseResult(period=period, net_income_bs=net_bs, net_income_usd=net_usd)

    if abs(net_bs) >= CLOSE_TOLERANCE or abs(net_usd) >= CLOSE_TOLERANCE:
        equity = resolve_equity_account(store)
        lines = _closing_lines(accounts, balances, equity, period.period_code)
        if lines:
            result.closing_entry = create_auto_entry(
                store,
                source_type=CLOSE_SOURCE,
                source_id=str(period.pk),
                entry_date=period_end,
                lines=lines,
                entry_type="closing",
                description=f"Period close {period.period_code}",
                user=user,
                allow_inactive=True,
                metadata={
                    "period_code": period.period_code,
                    "net_income_bs": str(net_bs),
                    "net_income_usd": str(net_usd),
                },
            )
            if period_end.month == 12 and period_end.day == 31 and is_current_year_result(equity):
                result.year_end_entry = _transfer_year_result(store, period, equity, user)
        else:
            logger.warning(
                "net income reported but no balances to close",
                extra={"store_id": store.pk, "period": period.period_code},
            )

    period.status = "closed"
    period.closed_at = timezone.now()
    period.closed_by = user
    period.closing_entry = result.closing_entry
    period.closing_note = note or ""
    period.save()

    log_action(
        action="close",
        instance=period,
        user=user,
        changes={
            "net_income_bs": str(net_bs),
            "net_income_usd": str(net_usd),
            "closing_entry": result.closing_entry.number if result.closing_entry else None,
        },
    )
    logger.info(
        "period closed",
        extra={"store_id": store.pk, "period": period.period_code},
    )
    return result


# ---------- Reopen / lock ----------
@transaction.atomic
def reopen_period(store, period_code, user=None, reason=""):
    from .posting import cancel_entry, find_entry_by_source

    period = get_period(store, period_code)
    period = AccountingPeriod.objects.select_for_update().get(pk=period.pk)
    if period.status == "locked":
        raise InvalidStatusTransition(f"Period {period_code} is locked and cannot be reopened")
    if period.status == "open":
        raise InvalidStatusTransition(f"Period {period_code} is already open")

    cancel_reason = f"Period reopened: {reason}"
    year_end = find_entry_by_source(store, YEAR_END_SOURCE, str(period.pk))
    if year_end is not None and year_end.status == "posted":
        cancel_entry(store, year_end.pk, user=user, reason=cancel_reason)
    if period.closing_entry_id:
        closing = period.closing_entry
        if closing.status == "posted":
            cancel_entry(store, closing.pk, user=user, reason=cancel_reason)

    now = timezone.now()
    period.status = "open"
    period.closed_at = None
    period.closed_by = None
    period.closing_entry = None
    period.closing_note = (
        f"{period.closing_note}\n[Reopened {now.isoformat()}] Reason: {reason}".strip()
    )
    period.save()

    log_action(action="reopen", instance=period, user=user, changes={"reason": reason})
    logger.info("period reopened", extra={"store_id": store.pk, "period": period_code})
    return period


@transaction.atomic
def lock_period(store, period_code, user=None):
    period = get_period(store, period_code)
    period = AccountingPeriod.objects.select_for_update().get(pk=period.pk)
    if period.status != "closed":
        raise InvalidStatusTransition(
            f"Only closed periods can be locked ({period_code} is {period.status})"
        )
    period.status = "locked"
    period.save()
    log_action(action="lock", instance=period, user=user)
    return period
