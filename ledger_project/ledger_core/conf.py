"""
Ledger knobs. Every value can be overridden from Django settings
(``LEDGER_*``); the defaults below apply otherwise.
"""
from decimal import Decimal

from django.conf import settings

DEFAULTS = {
    "LEDGER_BALANCE_TOLERANCE": "0.01",
    "LEDGER_KAHAN_MAX_VALUES": 50,
    "LEDGER_MATERIALITY_CAP": "100",
    "LEDGER_ADJUSTMENT_ACCOUNT_CODE": "9999",
    "LEDGER_ADJUSTMENT_ACCOUNT_NAME": "Ajustes y Diferencias",
    "LEDGER_ENTRY_NUMBER_PREFIX": "AS",
    "LEDGER_SEQUENCE_RETRIES": 3,
}


def get(name):
    return getattr(settings, name, DEFAULTS[name])


def balance_tolerance() -> Decimal:
    return Decimal(str(get("LEDGER_BALANCE_TOLERANCE")))


def kahan_max_values() -> int:
    return int(get("LEDGER_KAHAN_MAX_VALUES"))


def materiality_cap() -> float:
    return float(get("LEDGER_MATERIALITY_CAP"))


def adjustment_account_code() -> str:
    return str(get("LEDGER_ADJUSTMENT_ACCOUNT_CODE"))


def adjustment_account_name() -> str:
    return str(get("LEDGER_ADJUSTMENT_ACCOUNT_NAME"))


def entry_number_prefix() -> str:
    return str(get("LEDGER_ENTRY_NUMBER_PREFIX"))


def sequence_retries() -> int:
    return int(get("LEDGER_SEQUENCE_RETRIES"))
