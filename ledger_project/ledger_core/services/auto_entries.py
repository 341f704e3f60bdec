"""
Journal entries generated from upstream business events.

Each generator takes a plain dict payload describing the event, resolves
the accounts through AccountMapping and hands the lines to
create_auto_entry, which makes the whole thing idempotent per event.
A generator returns None when the event produces no accounting effect
(nothing to record, or the store has no mapping for it).
"""
import logging
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from .audit_helper import log_action
from .chart import get_account_mapping, get_account_mappings
from .numeric import ZERO, round_money
from .posting import create_auto_entry, find_entry_by_source

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")
# split payments short by at most this much are nudged onto the last payment
SPLIT_TOLERANCE = Decimal("0.05")


# ---------- Helpers ----------
def _as_date(value):
    if value is None:
        return timezone.localdate()
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localtime(value).date()
        return value.date()
    return value


def _line(account, description="", debit_bs=ZERO, credit_bs=ZERO, debit_usd=ZERO, credit_usd=ZERO):
    return {
        "account": account,
        "debit_amount_bs": round_money(debit_bs),
        "credit_amount_bs": round_money(credit_bs),
        "debit_amount_usd": round_money(debit_usd),
        "credit_amount_usd": round_money(credit_usd),
        "description": description,
    }


def _swap_sides(line):
    """Debits become credits and vice versa (credit notes, reversals)."""
    line["debit_amount_bs"], line["credit_amount_bs"] = line["credit_amount_bs"], line["debit_amount_bs"]
    line["debit_amount_usd"], line["credit_amount_usd"] = line["credit_amount_usd"], line["debit_amount_usd"]
    return line


def split_tax(total, tax_rate):
    """Gross `total` → (net, tax) for a percentage `tax_rate`."""
    total = round_money(total)
    rate = round_money(tax_rate)
    if rate <= 0:
        return total, ZERO
    net = round_money(total / (1 + rate / HUNDRED))
    return net, total - net


def _missing(transaction_type, source):
    logger.warning(
        "no account mapping, entry skipped",
        extra={"transaction_type": transaction_type, "source": source},
    )
    return None


def _payment_lines(store, payment, total_bs, total_usd, mappings, label):
    """
    Debit side of a sale: receivable for credit sales, one asset line per
    split payment, or the cash account of the payment method.
    Returns None when no account can take the debit.
    """
    method = (payment or {}).get("method")
    cash = mappings.get("cash_asset")

    if method == "FIAO":
        receivable = mappings.get("accounts_receivable")
        if receivable is None:
            return _missing("accounts_receivable", label)
        return [_line(receivable.account, f"Credit sale - {label}", debit_bs=total_bs, debit_usd=total_usd)]

    splits = (payment or {}).get("split_payments") or []
    if method == "SPLIT" and splits:
        lines = []
        sum_bs = sum_usd = ZERO
        for split in splits:
            split_method = str(split.get("method") or "").strip()
            amount_bs = round_money(split.get("amount_bs"))
            amount_usd = round_money(split.get("amount_usd"))
            if not split_method or (amount_bs <= 0 and amount_usd <= 0):
                continue
            mapping = get_account_mapping(store, "cash_asset", {"method": split_method}) or cash
            if mapping is None:
                logger.warning("no cash account for split method %s", split_method)
                continue
            lines.append(_line(
                mapping.account, f"Collection {split_method} (split) - {label}",
                debit_bs=amount_bs, debit_usd=amount_usd,
            ))
            sum_bs += amount_bs
            sum_usd += amount_usd

        diff_bs = total_bs - sum_bs
        diff_usd = total_usd - sum_usd
        if lines and abs(diff_bs) <= SPLIT_TOLERANCE and abs(diff_usd) <= SPLIT_TOLERANCE:
            lines[-1]["debit_amount_bs"] += diff_bs
            lines[-1]["debit_amount_usd"] += diff_usd
            return lines
        # unusable split data: book the whole amount on the default cash account
        logger.warning(
            "split payments don't add up, using the default cash account",
            extra={"source": label, "total_bs": str(total_bs), "sum_bs": str(sum_bs)},
        )

    if cash is None:
        return _missing("cash_asset", label)
    return [_line(cash.account, f"Sale collection - {label}", debit_bs=total_bs, debit_usd=total_usd)]


def _revenue_lines(mappings, total_bs, total_usd, tax_rate, label):
    net_bs, tax_bs = split_tax(total_bs, tax_rate)
    net_usd, tax_usd = split_tax(total_usd, tax_rate)
    revenue = _line(
        mappings["sale_revenue"].account, f"Sale (net) - {label}",
        credit_bs=net_bs, credit_usd=net_usd,
    )
    lines = [revenue]
    if tax_bs > 0 or tax_usd > 0:
        tax = mappings.get("sale_tax")
        if tax is not None:
            lines.append(_line(tax.account, f"Sales tax - {label}", credit_bs=tax_bs, credit_usd=tax_usd))
        else:
            # no tax account: the tax stays in revenue
            revenue["credit_amount_bs"] += tax_bs
            revenue["credit_amount_usd"] += tax_usd
    return lines


def _cost_lines(mappings, cost_bs, cost_usd, label):
    inventory = mappings.get("inventory_asset")
    # cost without an inventory account would leave the entry unbalanced
    if inventory is None or (cost_bs <= 0 and cost_usd <= 0):
        return []
    return [
        _line(mappings["sale_cost"].account, f"Cost of sale - {label}", debit_bs=cost_bs, debit_usd=cost_usd),
        _line(inventory.account, f"Inventory out - {label}", credit_bs=cost_bs, credit_usd=cost_usd),
    ]


# ---------- Sales ----------
SALE_MAPPING_TYPES = [
    "sale_revenue", "sale_cost", "cash_asset", "accounts_receivable",
    "inventory_asset", "income", "adjustment", "sale_tax",
]


def generate_entry_from_sale(store, sale, user=None):
    """
    sale = {"id", "sold_at", "invoice_number"?, "total_bs", "total_usd",
            "cost_bs"?, "cost_usd"?, "tax_rate"?, "has_fiscal_invoice"?,
            "payment": {"method", "split_payments"?: [{"method", "amount_bs", "amount_usd"}],
                        "rounding_adjustment_bs"?}}
    """
    # the fiscal invoice books the sale instead
    if sale.get("has_fiscal_invoice"):
        return None

    label = sale.get("invoice_number") or str(sale["id"])
    payment = sale.get("payment") or {}
    conditions = {"method": payment["method"]} if payment.get("method") else None
    mappings = get_account_mappings(store, SALE_MAPPING_TYPES, conditions)
    if "sale_revenue" not in mappings or "sale_cost" not in mappings:
        return _missing("sale_revenue/sale_cost", label)

    total_bs = round_money(sale.get("total_bs"))
    total_usd = round_money(sale.get("total_usd"))

    lines = _payment_lines(store, payment, total_bs, total_usd, mappings, label)
    if lines is None:
        return None
    lines += _revenue_lines(mappings, total_bs, total_usd, sale.get("tax_rate"), label)
    lines += _cost_lines(mappings, round_money(sale.get("cost_bs")), round_money(sale.get("cost_usd")), label)

    # cash change rounding: positive favours the store, negative the customer
    rounding = round_money(payment.get("rounding_adjustment_bs"))
    cash = mappings.get("cash_asset")
    if rounding > 0 and cash is not None and "income" in mappings:
        lines.append(_line(cash.account, f"Change rounding in favour of store - {label}", debit_bs=rounding))
        lines.append(_line(mappings["income"].account, f"Change rounding income - {label}", credit_bs=rounding))
    elif rounding < 0 and cash is not None and "adjustment" in mappings:
        lines.append(_line(mappings["adjustment"].account, f"Change rounding expense - {label}", debit_bs=-rounding))
        lines.append(_line(cash.account, f"Change rounding in favour of customer - {label}", credit_bs=-rounding))

    return create_auto_entry(
        store,
        source_type="sale",
        source_id=sale["id"],
        entry_date=_as_date(sale.get("sold_at")),
        lines=lines,
        entry_type="sale",
        description=f"Sale {label}",
        reference=sale.get("invoice_number"),
        exchange_rate=sale.get("exchange_rate"),
        metadata={"sale_id": str(sale["id"]), "payment_method": payment.get("method")},
        user=user,
    )


# ---------- Purchases ----------
def generate_entry_from_purchase_order(store, order, user=None):
    """
    order = {"id", "order_number", "status", "received_at"?,
             "total_amount_bs", "total_amount_usd"}
    Only completed orders are booked: inventory (or purchase expense)
    against accounts payable.
    """
    if order.get("status") != "completed":
        return None

    mappings = get_account_mappings(store, ["purchase_expense", "accounts_payable", "inventory_asset"])
    if "purchase_expense" not in mappings or "accounts_payable" not in mappings:
        return _missing("purchase_expense/accounts_payable", order["order_number"])

    total_bs = round_money(order.get("total_amount_bs"))
    total_usd = round_money(order.get("total_amount_usd"))
    number = order["order_number"]
    debit_mapping = mappings.get("inventory_asset") or mappings["purchase_expense"]
    debit_label = "Inventory" if "inventory_asset" in mappings else "Expense"

    lines = [
        _line(mappings["accounts_payable"].account, f"Purchase order {number} - Accounts payable",
              credit_bs=total_bs, credit_usd=total_usd),
        _line(debit_mapping.account, f"Purchase order {number} - {debit_label}",
              debit_bs=total_bs, debit_usd=total_usd),
    ]
    return create_auto_entry(
        store,
        source_type="purchase_order",
        source_id=order["id"],
        entry_date=_as_date(order.get("received_at")),
        lines=lines,
        entry_type="purchase",
        description=f"Purchase order {number}",
        reference=number,
        metadata={"purchase_order_id": str(order["id"])},
        user=user,
    )


# ---------- Fiscal invoices ----------
@transaction.atomic
def _promote_sale_entry(store, sale_entry, invoice, type_label, is_credit_note, user):
    """Re-label an existing sale entry as the fiscal invoice's entry."""
    number = invoice["invoice_number"]
    sale_entry.source_type = "fiscal_invoice"
    sale_entry.source_id = str(invoice["id"])
    sale_entry.entry_type = "fiscal_invoice"
    sale_entry.description = f"{type_label} {number}"
    sale_entry.reference = number
    sale_entry.metadata = {
        **(sale_entry.metadata or {}),
        "fiscal_invoice_id": str(invoice["id"]),
        "is_credit_note": is_credit_note,
        "promoted_from_type": "sale",
        "promoted_from_id": str(invoice["sale_id"]),
    }
    sale_entry.save(update_fields=["source_type", "source_id", "entry_type", "description", "reference", "metadata"])

    for line in sale_entry.lines.all():
        if "Sale" in line.description:
            line.description = f"{type_label} {number} - Sale"
            line.save(update_fields=["description"])

    log_action(action="update", instance=sale_entry, user=user,
               changes={"promoted_to": "fiscal_invoice", "invoice_number": number})
    logger.info("sale entry promoted to fiscal invoice", extra={"number": sale_entry.number})
    return sale_entry


def generate_entry_from_fiscal_invoice(store, invoice, user=None):
    """
    invoice = {"id", "invoice_number", "invoice_type": "invoice"|"credit_note",
               "status", "issued_at"?, "sale_id"?, "total_bs", "total_usd",
               "tax_rate"?, "cost_bs"?, "cost_usd"?, "payment"?: {...}}
    An issued invoice for an already-booked sale takes over that entry;
    otherwise the sale is booked here. Credit notes mirror the sides.
    """
    if invoice.get("status") != "issued":
        return None

    existing = find_entry_by_source(store, "fiscal_invoice", invoice["id"])
    if existing is not None:
        return existing

    is_credit_note = invoice.get("invoice_type") == "credit_note"
    type_label = "Credit note" if is_credit_note else "Fiscal invoice"
    number = invoice["invoice_number"]

    if invoice.get("sale_id"):
        sale_entry = find_entry_by_source(store, "sale", invoice["sale_id"])
        if sale_entry is not None:
            return _promote_sale_entry(store, sale_entry, invoice, type_label, is_credit_note, user)

    label = f"{type_label} {number}"
    payment = invoice.get("payment") or {}
    conditions = {"method": payment["method"]} if payment.get("method") else None
    mappings = get_account_mappings(store, SALE_MAPPING_TYPES, conditions)
    if "sale_revenue" not in mappings or "sale_cost" not in mappings:
        return _missing("sale_revenue/sale_cost", label)

    total_bs = round_money(invoice.get("total_bs"))
    total_usd = round_money(invoice.get("total_usd"))
    lines = _payment_lines(store, payment, total_bs, total_usd, mappings, label)
    if lines is None:
        return None
    lines += _revenue_lines(mappings, total_bs, total_usd, invoice.get("tax_rate"), label)
    lines += _cost_lines(mappings, round_money(invoice.get("cost_bs")), round_money(invoice.get("cost_usd")), label)
    if is_credit_note:
        lines = [_swap_sides(line) for line in lines]

    return create_auto_entry(
        store,
        source_type="fiscal_invoice",
        source_id=invoice["id"],
        entry_date=_as_date(invoice.get("issued_at")),
        lines=lines,
        entry_type="fiscal_invoice",
        description=label,
        reference=number,
        metadata={"fiscal_invoice_id": str(invoice["id"]), "is_credit_note": is_credit_note},
        user=user,
    )


# ---------- Inventory ----------
def generate_entry_from_transfer(store, transfer, user=None):
    """
    transfer = {"id", "transfer_number", "received_at"?, "total_cost_bs", "total_cost_usd"}
    Warehouse transfers move value inside the inventory account: debit and
    credit on the same account keep the trail without changing the total.
    """
    inventory = get_account_mapping(store, "inventory_asset")
    if inventory is None:
        return _missing("inventory_asset", transfer["transfer_number"])

    cost_bs = round_money(transfer.get("total_cost_bs"))
    cost_usd = round_money(transfer.get("total_cost_usd"))
    if cost_bs <= 0 and cost_usd <= 0:
        return None

    number = transfer["transfer_number"]
    lines = [
        _line(inventory.account, f"Transfer {number} - Received at destination",
              debit_bs=cost_bs, debit_usd=cost_usd),
        _line(inventory.account, f"Transfer {number} - Shipped from origin",
              credit_bs=cost_bs, credit_usd=cost_usd),
    ]
    return create_auto_entry(
        store,
        source_type="transfer",
        source_id=transfer["id"],
        entry_date=_as_date(transfer.get("received_at")),
        lines=lines,
        entry_type="transfer",
        description=f"Warehouse transfer {number}",
        reference=number,
        metadata={"transfer_id": str(transfer["id"])},
        user=user,
    )


def generate_entry_from_inventory_adjustment(store, movement, user=None):
    """
    movement = {"id", "qty_delta", "unit_cost_bs", "unit_cost_usd",
                "happened_at"?, "reason"?, "product_name"?}
    Positive deltas raise inventory against the adjustment account,
    negative ones expense the shrinkage.
    """
    mappings = get_account_mappings(store, ["inventory_asset", "adjustment", "expense"])
    inventory = mappings.get("inventory_asset")
    offset = mappings.get("adjustment") or mappings.get("expense")
    if inventory is None or offset is None:
        return _missing("inventory_asset/adjustment", str(movement["id"]))

    qty_delta = Decimal(str(movement.get("qty_delta") or 0))
    value_bs = round_money(abs(round_money(movement.get("unit_cost_bs")) * qty_delta))
    value_usd = round_money(abs(round_money(movement.get("unit_cost_usd")) * qty_delta))
    if not value_bs and not value_usd:
        logger.debug("inventory adjustment without value, skipped", extra={"movement_id": str(movement["id"])})
        return None

    reason = movement.get("reason") or "Adjustment"
    if qty_delta > 0:
        lines = [
            _line(inventory.account, f"Positive inventory adjustment - {reason}", debit_bs=value_bs, debit_usd=value_usd),
            _line(offset.account, "Expense reversal for positive adjustment", credit_bs=value_bs, credit_usd=value_usd),
        ]
    else:
        lines = [
            _line(offset.account, f"Negative inventory adjustment - {reason}", debit_bs=value_bs, debit_usd=value_usd),
            _line(inventory.account, "Inventory reduction", credit_bs=value_bs, credit_usd=value_usd),
        ]

    product = movement.get("product_name")
    return create_auto_entry(
        store,
        source_type="inventory_adjustment",
        source_id=movement["id"],
        entry_date=_as_date(movement.get("happened_at")),
        lines=lines,
        entry_type="adjustment",
        description=f"Inventory adjustment - {product}" if product else "Inventory adjustment",
        metadata={"movement_id": str(movement["id"]), "qty_delta": str(qty_delta)},
        user=user,
    )


# ---------- Receivables & cash ----------
def generate_entry_from_debt_payment(store, payment, user=None):
    """
    payment = {"id", "method", "paid_at"?, "amount_bs", "amount_usd",
               "book_rate"?}
    The receivable is relieved at its book rate; the Bs difference against
    what was actually collected is a realized FX gain or loss.
    """
    mappings = get_account_mappings(
        store,
        ["accounts_receivable", "cash_asset", "income", "expense", "fx_gain_realized", "fx_loss_realized"],
        {"method": payment.get("method")} if payment.get("method") else None,
    )
    receivable = mappings.get("accounts_receivable")
    asset = mappings.get("cash_asset")
    if receivable is None or asset is None:
        return _missing("accounts_receivable/cash_asset", str(payment["id"]))

    amount_bs = round_money(payment.get("amount_bs"))
    amount_usd = round_money(payment.get("amount_usd"))
    book_rate = Decimal(str(payment.get("book_rate") or 0))
    if book_rate <= 0:
        # fall back to the effective rate of this collection
        book_rate = amount_bs / amount_usd if amount_usd > 0 else Decimal("0")
    book_rate = book_rate.quantize(Decimal("0.000001"))
    book_bs = round_money(amount_usd * book_rate)
    fx_diff = amount_bs - book_bs

    lines = [
        _line(asset.account, f"Debt payment - {payment.get('method')}", debit_bs=amount_bs, debit_usd=amount_usd),
        _line(receivable.account, "Debt collection", credit_bs=book_bs, credit_usd=amount_usd),
    ]
    if fx_diff > 0:
        fx_mapping = mappings.get("fx_gain_realized") or mappings.get("income")
    else:
        fx_mapping = mappings.get("fx_loss_realized") or mappings.get("expense")

    if abs(fx_diff) > Decimal("0.01") and fx_mapping is not None:
        if fx_diff > 0:
            lines.append(_line(fx_mapping.account, "Realized FX gain - debt collection", credit_bs=fx_diff))
        else:
            lines.append(_line(fx_mapping.account, "Realized FX loss - debt collection", debit_bs=-fx_diff))
    elif fx_diff:
        # sub-cent (or unmapped) difference stays on the receivable
        lines[1]["credit_amount_bs"] += fx_diff

    return create_auto_entry(
        store,
        source_type="debt_payment",
        source_id=payment["id"],
        entry_date=_as_date(payment.get("paid_at")),
        lines=lines,
        entry_type="manual",
        description=f"Debt payment - Method: {payment.get('method')}",
        exchange_rate=book_rate,
        metadata={"payment_id": str(payment["id"]), "fx_diff_bs": str(fx_diff)},
        user=user,
    )


def generate_entry_from_cash_close(store, session, user=None):
    """
    session = {"id", "closed_at", "difference_bs", "difference_usd"}
    Only the counted-vs-expected difference is booked, each currency on
    its own side: surplus to other income, shortage to expense.
    """
    differences = {
        "bs": round_money(session.get("difference_bs")),
        "usd": round_money(session.get("difference_usd")),
    }
    if not any(differences.values()):
        return None

    surplus = {c: amount for c, amount in differences.items() if amount > 0}
    shortage = {c: -amount for c, amount in differences.items() if amount < 0}

    needed = ["cash_asset"] + (["income"] if surplus else []) + (["expense"] if shortage else [])
    mappings = get_account_mappings(store, needed)
    for transaction_type in needed:
        if mappings.get(transaction_type) is None:
            return _missing(transaction_type, str(session["id"]))
    cash = mappings["cash_asset"].account

    lines = []
    if surplus:
        amounts = {f"debit_{c}": amount for c, amount in surplus.items()}
        lines.append(_line(cash, "Cash close surplus", **amounts))
        amounts = {f"credit_{c}": amount for c, amount in surplus.items()}
        lines.append(_line(mappings["income"].account, "Cash close surplus", **amounts))
    if shortage:
        amounts = {f"debit_{c}": amount for c, amount in shortage.items()}
        lines.append(_line(mappings["expense"].account, "Cash close shortage", **amounts))
        amounts = {f"credit_{c}": amount for c, amount in shortage.items()}
        lines.append(_line(cash, "Cash close shortage", **amounts))

    if surplus and shortage:
        label = "Surplus/Shortage"
    else:
        label = "Surplus" if surplus else "Shortage"

    return create_auto_entry(
        store,
        source_type="cash_close",
        source_id=session["id"],
        entry_date=_as_date(session.get("closed_at")),
        lines=lines,
        entry_type="adjustment",
        description=f"Cash close - {label}",
        metadata={"session_id": str(session["id"])},
        user=user,
    )
