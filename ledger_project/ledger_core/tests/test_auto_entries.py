import datetime
from decimal import Decimal

from django.test import SimpleTestCase, TestCase

from ledger_core.models import JournalEntry, Store
from ledger_core.services.auto_entries import (
    generate_entry_from_cash_close, generate_entry_from_debt_payment,
    generate_entry_from_fiscal_invoice,
    generate_entry_from_inventory_adjustment,
    generate_entry_from_purchase_order, generate_entry_from_sale,
    generate_entry_from_transfer, split_tax)
from ledger_core.services.posting import cancel_entry

from .helpers import JAN_15, LedgerFixtureMixin


def amounts_by_code(entry):
    """{account code: (debit_bs, credit_bs, debit_usd, credit_usd)} summed per account."""
    result = {}
    for row in entry.lines.select_related("account"):
        current = result.get(row.account.code, (Decimal("0"),) * 4)
        result[row.account.code] = tuple(
            a + b for a, b in zip(current, (
                row.debit_amount_bs, row.credit_amount_bs,
                row.debit_amount_usd, row.credit_amount_usd,
            ))
        )
    return result


class SplitTaxTests(SimpleTestCase):

    def test_gross_amount_is_split(self):
        self.assertEqual(split_tax(116, 16), (Decimal("100.00"), Decimal("16.00")))

    def test_no_rate_means_no_tax(self):
        self.assertEqual(split_tax("50.5", None), (Decimal("50.50"), Decimal("0.00")))


class SaleEntryTests(LedgerFixtureMixin, TestCase):

    def sale(self, **overrides):
        sale = {
            "id": 501,
            "sold_at": JAN_15,
            "invoice_number": "V-0501",
            "total_bs": "116.00",
            "total_usd": "0",
            "cost_bs": "60.00",
            "tax_rate": 16,
            "payment": {"method": "CASH_BS"},
        }
        sale.update(overrides)
        return sale

    def test_cash_sale_with_tax_and_cost(self):
        entry = generate_entry_from_sale(self.store, self.sale())

        self.assertEqual(entry.status, "posted")
        self.assertTrue(entry.is_auto_generated)
        self.assertEqual(entry.entry_type, "sale")
        self.assertEqual((entry.source_type, entry.source_id), ("sale", "501"))
        self.assertEqual(entry.total_debit_bs, Decimal("176.00"))
        self.assertEqual(entry.total_credit_bs, Decimal("176.00"))

        lines = amounts_by_code(entry)
        self.assertEqual(lines["1.01.01.01"][0], Decimal("116.00"))  # Caja Bs
        self.assertEqual(lines["4.01.01"][1], Decimal("100.00"))     # revenue, net
        self.assertEqual(lines["2.01.02"][1], Decimal("16.00"))      # output VAT
        self.assertEqual(lines["5.01.01"][0], Decimal("60.00"))      # cost of sales
        self.assertEqual(lines["1.02.02"][1], Decimal("60.00"))      # inventory

    def test_generator_is_idempotent(self):
        first = generate_entry_from_sale(self.store, self.sale())
        second = generate_entry_from_sale(self.store, self.sale(total_bs="999"))

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(
            JournalEntry.objects.for_store(self.store).filter(source_type="sale").count(), 1
        )

    def test_credit_sale_debits_receivable(self):
        entry = generate_entry_from_sale(self.store, self.sale(payment={"method": "FIAO"}))
        self.assertEqual(amounts_by_code(entry)["1.01.03"][0], Decimal("116.00"))

    def test_split_payment_books_each_method(self):
        payment = {
            "method": "SPLIT",
            "split_payments": [
                {"method": "ZELLE", "amount_bs": "0", "amount_usd": "2"},
                {"method": "CASH_BS", "amount_bs": "116.00", "amount_usd": "0"},
            ],
        }
        entry = generate_entry_from_sale(
            self.store, self.sale(total_usd="2", payment=payment, cost_bs=0)
        )

        lines = amounts_by_code(entry)
        self.assertEqual(lines["1.01.02.04"][2], Decimal("2.00"))
        self.assertEqual(lines["1.01.01.01"][0], Decimal("116.00"))
        self.assertEqual(entry.currency, "MIXED")

    def test_split_payment_that_does_not_add_up_uses_default_cash(self):
        payment = {
            "method": "SPLIT",
            "split_payments": [{"method": "ZELLE", "amount_bs": "50", "amount_usd": "0"}],
        }
        entry = generate_entry_from_sale(self.store, self.sale(payment=payment))
        self.assertEqual(amounts_by_code(entry)["1.01.01"][0], Decimal("116.00"))

    def test_change_rounding_in_favour_of_store(self):
        entry = generate_entry_from_sale(
            self.store,
            self.sale(payment={"method": "CASH_BS", "rounding_adjustment_bs": "0.50"}),
        )
        lines = amounts_by_code(entry)
        self.assertEqual(lines["4.02.01"][1], Decimal("0.50"))
        self.assertEqual(lines["1.01.01.01"][0], Decimal("116.50"))

    def test_sale_with_fiscal_invoice_is_skipped(self):
        self.assertIsNone(generate_entry_from_sale(self.store, self.sale(has_fiscal_invoice=True)))

    def test_store_without_mappings_is_skipped(self):
        bare = Store.objects.create(name="Bare", slug="bare")
        self.assertIsNone(generate_entry_from_sale(bare, self.sale()))
        self.assertFalse(JournalEntry.objects.for_store(bare).exists())


class FiscalInvoiceEntryTests(LedgerFixtureMixin, TestCase):

    def invoice(self, **overrides):
        invoice = {
            "id": 77,
            "invoice_number": "F-000077",
            "invoice_type": "invoice",
            "status": "issued",
            "issued_at": JAN_15,
            "total_bs": "116.00",
            "total_usd": "0",
            "tax_rate": 16,
            "payment": {"method": "CASH_BS"},
        }
        invoice.update(overrides)
        return invoice

    def test_invoice_takes_over_the_sale_entry(self):
        sale_entry = generate_entry_from_sale(self.store, {
            "id": 9, "sold_at": JAN_15, "total_bs": "116.00", "tax_rate": 16,
            "payment": {"method": "CASH_BS"},
        })

        entry = generate_entry_from_fiscal_invoice(self.store, self.invoice(sale_id=9))

        self.assertEqual(entry.pk, sale_entry.pk)
        entry.refresh_from_db()
        self.assertEqual((entry.source_type, entry.source_id), ("fiscal_invoice", "77"))
        self.assertEqual(entry.entry_type, "fiscal_invoice")
        self.assertEqual(entry.metadata["promoted_from_id"], "9")
        self.assertEqual(JournalEntry.objects.for_store(self.store).count(), 1)
        # and again: nothing new
        self.assertEqual(generate_entry_from_fiscal_invoice(self.store, self.invoice(sale_id=9)).pk, entry.pk)

    def test_invoice_without_sale_entry_books_the_sale(self):
        entry = generate_entry_from_fiscal_invoice(self.store, self.invoice())
        lines = amounts_by_code(entry)
        self.assertEqual(lines["4.01.01"][1], Decimal("100.00"))
        self.assertEqual(lines["2.01.02"][1], Decimal("16.00"))

    def test_credit_note_mirrors_the_sides(self):
        entry = generate_entry_from_fiscal_invoice(
            self.store, self.invoice(id=78, invoice_type="credit_note")
        )
        lines = amounts_by_code(entry)
        self.assertEqual(lines["4.01.01"][0], Decimal("100.00"))
        self.assertEqual(lines["2.01.02"][0], Decimal("16.00"))
        self.assertEqual(lines["1.01.01.01"][1], Decimal("116.00"))
        self.assertTrue(entry.metadata["is_credit_note"])

    def test_draft_invoice_is_skipped(self):
        self.assertIsNone(generate_entry_from_fiscal_invoice(self.store, self.invoice(status="draft")))


class InventoryAndPurchaseEntryTests(LedgerFixtureMixin, TestCase):

    def test_completed_purchase_order(self):
        order = {
            "id": 3, "order_number": "OC-3", "status": "completed",
            "received_at": JAN_15, "total_amount_bs": "3600", "total_amount_usd": "100",
        }
        entry = generate_entry_from_purchase_order(self.store, order)

        self.assertEqual(entry.entry_type, "purchase")
        lines = amounts_by_code(entry)
        self.assertEqual(lines["1.02.02"][0], Decimal("3600.00"))
        self.assertEqual(lines["1.02.02"][2], Decimal("100.00"))
        self.assertEqual(lines["2.01.01"][1], Decimal("3600.00"))

    def test_pending_purchase_order_is_skipped(self):
        order = {"id": 4, "order_number": "OC-4", "status": "pending"}
        self.assertIsNone(generate_entry_from_purchase_order(self.store, order))

    def test_transfer_stays_inside_inventory(self):
        entry = generate_entry_from_transfer(self.store, {
            "id": 5, "transfer_number": "TR-5", "received_at": JAN_15,
            "total_cost_bs": "720", "total_cost_usd": "20",
        })
        self.assertEqual(entry.entry_type, "transfer")
        self.assertEqual(
            amounts_by_code(entry)["1.02.02"],
            (Decimal("720.00"), Decimal("720.00"), Decimal("20.00"), Decimal("20.00")),
        )

    def test_zero_cost_transfer_is_skipped(self):
        self.assertIsNone(generate_entry_from_transfer(self.store, {
            "id": 6, "transfer_number": "TR-6", "total_cost_bs": 0, "total_cost_usd": 0,
        }))

    def test_negative_inventory_adjustment(self):
        entry = generate_entry_from_inventory_adjustment(self.store, {
            "id": 7, "qty_delta": -3, "unit_cost_bs": "12.50", "unit_cost_usd": "0.35",
            "happened_at": JAN_15, "reason": "Merma", "product_name": "Harina",
        })
        lines = amounts_by_code(entry)
        self.assertEqual(lines["5.02.08"][0], Decimal("37.50"))
        self.assertEqual(lines["1.02.02"][1], Decimal("37.50"))
        self.assertEqual(lines["1.02.02"][3], Decimal("1.05"))
        self.assertEqual(entry.description, "Inventory adjustment - Harina")

    def test_positive_inventory_adjustment(self):
        entry = generate_entry_from_inventory_adjustment(self.store, {
            "id": 8, "qty_delta": 2, "unit_cost_bs": "10", "unit_cost_usd": "0",
            "happened_at": JAN_15,
        })
        lines = amounts_by_code(entry)
        self.assertEqual(lines["1.02.02"][0], Decimal("20.00"))
        self.assertEqual(lines["5.02.08"][1], Decimal("20.00"))


class CollectionEntryTests(LedgerFixtureMixin, TestCase):

    def test_debt_payment_with_fx_gain(self):
        entry = generate_entry_from_debt_payment(self.store, {
            "id": 11, "method": "TRANSFER", "paid_at": JAN_15,
            "amount_bs": "4000", "amount_usd": "100", "book_rate": "36",
        })

        lines = amounts_by_code(entry)
        self.assertEqual(lines["1.01.02.01"][0], Decimal("4000.00"))
        self.assertEqual(lines["1.01.03"][1], Decimal("3600.00"))
        self.assertEqual(lines["1.01.03"][3], Decimal("100.00"))
        self.assertEqual(lines["4.02.02.01"][1], Decimal("400.00"))
        self.assertEqual(entry.metadata["fx_diff_bs"], "400.00")

    def test_debt_payment_with_fx_loss(self):
        entry = generate_entry_from_debt_payment(self.store, {
            "id": 12, "method": "CASH_BS", "paid_at": JAN_15,
            "amount_bs": "3500", "amount_usd": "100", "book_rate": "36",
        })
        self.assertEqual(amounts_by_code(entry)["5.04.01.01"][0], Decimal("100.00"))

    def test_debt_payment_without_book_rate_has_no_fx_line(self):
        entry = generate_entry_from_debt_payment(self.store, {
            "id": 13, "method": "CASH_BS", "paid_at": JAN_15,
            "amount_bs": "3650", "amount_usd": "100",
        })
        self.assertEqual(set(amounts_by_code(entry)), {"1.01.01.01", "1.01.03"})

    def test_cash_close_shortage(self):
        entry = generate_entry_from_cash_close(self.store, {
            "id": 21, "closed_at": JAN_15, "difference_bs": "-15.20", "difference_usd": "0",
        })
        lines = amounts_by_code(entry)
        self.assertEqual(lines["5.02.01"][0], Decimal("15.20"))
        self.assertEqual(lines["1.01.01"][1], Decimal("15.20"))
        self.assertEqual(entry.description, "Cash close - Shortage")

    def test_cash_close_surplus(self):
        entry = generate_entry_from_cash_close(self.store, {
            "id": 22, "closed_at": JAN_15, "difference_bs": "0", "difference_usd": "3",
        })
        lines = amounts_by_code(entry)
        self.assertEqual(lines["1.01.01"][2], Decimal("3.00"))
        self.assertEqual(lines["4.02.01"][3], Decimal("3.00"))

    def test_cash_close_with_opposite_differences_per_currency(self):
        entry = generate_entry_from_cash_close(self.store, {
            "id": 25, "closed_at": JAN_15, "difference_bs": "10", "difference_usd": "-2",
        })
        lines = amounts_by_code(entry)
        self.assertEqual(lines["1.01.01"], (Decimal("10.00"), Decimal("0"), Decimal("0"), Decimal("2.00")))
        self.assertEqual(lines["4.02.01"][1], Decimal("10.00"))
        self.assertEqual(lines["5.02.01"][2], Decimal("2.00"))
        self.assertEqual(entry.description, "Cash close - Surplus/Shortage")

    def test_balanced_cash_close_is_skipped(self):
        self.assertIsNone(generate_entry_from_cash_close(self.store, {
            "id": 23, "closed_at": JAN_15, "difference_bs": 0, "difference_usd": 0,
        }))

    def test_regenerate_after_cancel(self):
        session = {"id": 24, "closed_at": JAN_15, "difference_bs": "5", "difference_usd": 0}
        first = generate_entry_from_cash_close(self.store, session)
        cancel_entry(self.store, first.pk, reason="recount")

        second = generate_entry_from_cash_close(self.store, session)

        self.assertNotEqual(first.pk, second.pk)
        self.assertEqual(second.status, "posted")
