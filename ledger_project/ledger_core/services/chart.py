import logging

from django.db import IntegrityError, transaction

from .. import conf
from ..exceptions import LedgerNotFoundError, LedgerValidationError
from ..models import Account, AccountMapping
from ..models.account import nature_for_type
from .audit_helper import log_action
from .chart_templates import DEFAULT_MAPPINGS, POSTING_LEVEL, RETAIL_CHART

logger = logging.getLogger(__name__)

# Fields callers may change through update_account
UPDATABLE_FIELDS = {
    "code", "name", "account_type", "is_active", "allows_entries", "description",
}


# ---------- Lookups ----------
def get_account(store, account_id):
    try:
        return Account.objects.for_store(store).get(pk=account_id)
    except Account.DoesNotExist:
        raise LedgerNotFoundError(f"Account {account_id} not found")


def get_account_by_code(store, code):
    return Account.objects.for_store(store).filter(code=code).first()


def get_accounts(store, active_only=False):
    if active_only:
        return Account.objects.active(store).order_by("code")
    return Account.objects.for_store(store).order_by("code")


def nature(account):
    """debit_normal for assets/expenses, credit_normal otherwise."""
    return nature_for_type(account.account_type)


def get_account_tree(store, active_only=True):
    """
    Roots of the chart as nested dicts:
    [{"account": Account, "children": [...]}, ...]
    Orphans (parent filtered out) are promoted to roots.
    """
    accounts = list(get_accounts(store, active_only=active_only))
    nodes = {acc.pk: {"account": acc, "children": []} for acc in accounts}
    roots = []
    for acc in accounts:
        node = nodes[acc.pk]
        parent = nodes.get(acc.parent_id)
        if parent is not None:
            parent["children"].append(node)
        else:
            roots.append(node)
    return roots


# ---------- Mutations ----------
@transaction.atomic
def create_account(
    store,
    *,
    code,
    name,
    account_type,
    parent=None,
    level=None,
    is_active=True,
    allows_entries=True,
    description="",
    user=None,
):
    """
    Create an account in `store`.
    Duplicate codes and parents that don't take sub-accounts are rejected.
    """
    if Account.objects.for_store(store).filter(code=code).exists():
        raise LedgerValidationError(f"Account {code} already exists")

    parent_account = None
    if parent is not None:
        parent_id = parent.pk if isinstance(parent, Account) else parent
        try:
            parent_account = Account.objects.for_store(store).get(pk=parent_id)
        except Account.DoesNotExist:
            raise LedgerNotFoundError(f"Parent account {parent_id} not found")
        if not parent_account.allows_entries:
            raise LedgerValidationError(
                f"Parent account {parent_account.code} does not allow sub-accounts"
            )

    if level is None:
        level = parent_account.level + 1 if parent_account else 1

    account = Account.objects.create(
        store=store,
        code=code,
        name=name,
        account_type=account_type,
        parent=parent_account,
        level=level,
        is_active=is_active,
        allows_entries=allows_entries,
        description=description,
    )
    log_action(action="create", instance=account, user=user,
               changes={"code": code, "name": name, "account_type": account_type})
    logger.info("account created", extra={"store_id": store.pk, "code": code})
    return account


@transaction.atomic
def update_account(store, account_id, user=None, **changes):
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise LedgerValidationError(
            f"Cannot update account fields: {', '.join(sorted(unknown))}"
        )

    account = get_account(store, account_id)

    # code changes re-check uniqueness within the store
    new_code = changes.get("code")
    if new_code and new_code != account.code:
        if Account.objects.for_store(store).filter(code=new_code).exists():
            raise LedgerValidationError(f"Account {new_code} already exists")

    before = {field: getattr(account, field) for field in changes}
    for field, value in changes.items():
        setattr(account, field, value)
    account.save()

    log_action(action="update", instance=account, user=user,
               changes={"before": before, "after": changes})
    return account


@transaction.atomic
def delete_account(store, account_id, user=None):
    account = get_account(store, account_id)

    if account.children.exists():
        raise LedgerValidationError(
            f"Account {account.code} has sub-accounts and cannot be deleted"
        )
    if account.journal_lines.exists():
        raise LedgerValidationError(
            f"Account {account.code} has journal lines and cannot be deleted"
        )

    log_action(action="delete", instance=account, user=user,
               changes={"code": account.code, "name": account.name})
    account.delete()


# ---------- Default chart & mappings ----------
@transaction.atomic
def initialize_default_chart(store, user=None):
    """
    Create the retail chart and the default account mappings.
    Existing codes and mapped transaction types are left untouched,
    so running it twice is harmless.
    """
    by_code = {
        acc.code: acc for acc in Account.objects.for_store(store)
    }

    accounts_created = 0
    for code, name, account_type, level, parent_code in RETAIL_CHART:
        if code in by_code:
            continue
        by_code[code] = Account.objects.create(
            store=store,
            code=code,
            name=name,
            account_type=account_type,
            parent=by_code.get(parent_code) if parent_code else None,
            level=level,
            allows_entries=level >= POSTING_LEVEL,
        )
        accounts_created += 1

    active = AccountMapping.objects.for_store(store).filter(is_active=True)
    existing = set(active.values_list("transaction_type", "account__code"))
    has_default = set(
        active.filter(is_default=True).values_list("transaction_type", flat=True)
    )
    mappings_created = 0
    for transaction_type, account_code, conditions in DEFAULT_MAPPINGS:
        if (transaction_type, account_code) in existing:
            continue
        if conditions is None and transaction_type in has_default:
            continue
        account = by_code.get(account_code)
        if account is None:
            logger.warning(
                "no account %s for mapping %s", account_code, transaction_type
            )
            continue
        AccountMapping.objects.create(
            store=store,
            transaction_type=transaction_type,
            account=account,
            is_default=conditions is None,
            conditions=conditions,
            created_by=user,
        )
        existing.add((transaction_type, account_code))
        mappings_created += 1

    logger.info(
        "default chart initialized",
        extra={
            "store_id": store.pk,
            "accounts_created": accounts_created,
            "mappings_created": mappings_created,
        },
    )
    return {"accounts_created": accounts_created, "mappings_created": mappings_created}


def get_account_mappings(store, transaction_types, conditions=None):
    """
    Resolve several transaction types in one query.
    A conditional mapping matching `conditions` beats the default one.
    """
    mappings = (
        AccountMapping.objects.for_store(store)
        .filter(is_active=True, transaction_type__in=list(transaction_types))
        .select_related("account")
    )
    resolved = {}
    for mapping in mappings:
        current = resolved.get(mapping.transaction_type)
        if conditions and mapping.matches(conditions):
            resolved[mapping.transaction_type] = mapping
        elif mapping.is_default and (current is None or not current.matches(conditions)):
            resolved[mapping.transaction_type] = mapping
    return resolved


def get_account_mapping(store, transaction_type, conditions=None):
    return get_account_mappings(store, [transaction_type], conditions).get(transaction_type)


def ensure_adjustment_account(store):
    """
    Default provisioner for the correction pass: the well-known
    "Ajustes y Diferencias" expense account, created when absent.
    """
    code = conf.adjustment_account_code()
    account = get_account_by_code(store, code)
    if account is not None:
        return account
    try:
        with transaction.atomic():
            account = Account.objects.create(
                store=store,
                code=code,
                name=conf.adjustment_account_name(),
                account_type="expense",
                level=1,
                allows_entries=True,
                description="Automatic balancing of unbalanced entries",
            )
    except IntegrityError:
        # created concurrently
        return Account.objects.for_store(store).get(code=code)
    logger.info("adjustment account provisioned", extra={"store_id": store.pk})
    return account
