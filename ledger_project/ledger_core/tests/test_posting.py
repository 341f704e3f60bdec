import datetime
from decimal import Decimal

from django.test import TestCase, override_settings

from ledger_core.exceptions import (InvalidStatusTransition,
                                    LedgerNotFoundError,
                                    LedgerValidationError, PeriodNotOpenError,
                                    UnbalancedJournalError)
from ledger_core.models import (AccountBalance, AuditLog, EntrySequence,
                                JournalEntry, JournalEntryLine, Store)
from ledger_core.services.periods import close_period
from ledger_core.services.posting import (cancel_entry, create_auto_entry,
                                          create_entry, get_entry,
                                          next_entry_number, post_entry)

from .helpers import JAN_15, LedgerFixtureMixin, line


""" Success tests """
class CreateAndPostTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.cash = self.acc("1.01.01.01")
        self.zelle = self.acc("1.01.02.04")
        self.sales = self.acc("4.01.01")

    def balanced_lines(self, amount=100):
        return [
            line(self.cash, debit_bs=amount, description="Caja"),
            line(self.sales, credit_bs=amount, description="Venta"),
        ]

    def test_create_entry_is_draft_with_totals_and_lines(self):
        entry = create_entry(self.store, JAN_15, self.balanced_lines(), description="Venta mostrador")

        self.assertEqual(entry.status, "draft")
        self.assertFalse(entry.is_auto_generated)
        self.assertEqual(entry.number, "AS-202501-0001")
        self.assertEqual(entry.total_debit_bs, Decimal("100.00"))
        self.assertEqual(entry.total_credit_bs, Decimal("100.00"))
        self.assertEqual(entry.currency, "BS")
        self.assertEqual(
            list(entry.lines.values_list("line_number", "account__code")),
            [(1, "1.01.01.01"), (2, "4.01.01")],
        )
        # drafts don't touch balances
        self.assertFalse(AccountBalance.objects.for_store(self.store).exists())

    def test_numbers_increase_per_store_and_month(self):
        first = create_entry(self.store, JAN_15, self.balanced_lines())
        second = create_entry(self.store, JAN_15, self.balanced_lines())
        february = create_entry(self.store, datetime.date(2025, 2, 1), self.balanced_lines())

        self.assertEqual(first.number, "AS-202501-0001")
        self.assertEqual(second.number, "AS-202501-0002")
        self.assertEqual(february.number, "AS-202502-0001")
        self.assertEqual(
            EntrySequence.objects.get(store=self.store, period_key="202501").next_value, 3
        )

    def test_sequence_continues_after_existing_numbers(self):
        JournalEntry.objects.create(
            store=self.store, number="AS-202503-0007", date=datetime.date(2025, 3, 2)
        )
        self.assertEqual(
            next_entry_number(self.store, datetime.date(2025, 3, 9)), "AS-202503-0008"
        )

    @override_settings(LEDGER_ENTRY_NUMBER_PREFIX="JV")
    def test_number_prefix_is_configurable(self):
        self.assertEqual(next_entry_number(self.store, JAN_15), "JV-202501-0001")

    def test_mixed_currency_is_inferred(self):
        entry = create_entry(self.store, JAN_15, [
            line(self.cash, debit_bs=3600),
            line(self.zelle, debit_usd=100),
            line(self.sales, credit_bs=3600, credit_usd=100),
        ])
        self.assertEqual(entry.currency, "MIXED")

    def test_difference_within_tolerance_is_accepted(self):
        entry = create_entry(self.store, JAN_15, [
            line(self.cash, debit_bs="100.01"),
            line(self.sales, credit_bs="100.00"),
        ])
        self.assertEqual(entry.total_debit_bs, Decimal("100.01"))

    def test_large_amounts_are_totalled_exactly(self):
        amount = Decimal("1234567890123456.78")
        entry = create_entry(self.store, JAN_15, [
            line(self.cash, debit_bs=amount),
            line(self.cash, debit_bs=amount),
            line(self.sales, credit_bs=amount * 2),
        ])

        entry.refresh_from_db()
        self.assertEqual(entry.total_debit_bs, Decimal("2469135780246913.56"))
        self.assertEqual(entry.total_credit_bs, entry.total_debit_bs)

    def test_post_entry_updates_balances(self):
        entry = create_entry(self.store, JAN_15, self.balanced_lines(250))

        post_entry(self.store, entry.pk)

        entry.refresh_from_db()
        self.assertEqual(entry.status, "posted")
        self.assertIsNotNone(entry.posted_at)
        bucket = AccountBalance.objects.get(store=self.store, account=self.cash)
        self.assertEqual(bucket.closing_debit_bs, Decimal("250.00"))
        self.assertTrue(
            AuditLog.objects.filter(action="post", object_type="JournalEntry", object_id=str(entry.pk)).exists()
        )

    def test_post_picks_up_draft_edits(self):
        entry = create_entry(self.store, JAN_15, self.balanced_lines(100))
        entry.lines.update(debit_amount_bs=Decimal("80.00"))
        entry.lines.filter(line_number=2).update(debit_amount_bs=0, credit_amount_bs=Decimal("80.00"))

        post_entry(self.store, entry.pk)

        entry.refresh_from_db()
        self.assertEqual(entry.total_debit_bs, Decimal("80.00"))
        self.assertEqual(entry.total_credit_bs, Decimal("80.00"))

    def test_cancel_draft(self):
        entry = create_entry(self.store, JAN_15, self.balanced_lines())

        cancel_entry(self.store, entry.pk, reason="duplicado")

        entry.refresh_from_db()
        self.assertEqual(entry.status, "cancelled")
        self.assertEqual(entry.cancellation_reason, "duplicado")
        self.assertIsNotNone(entry.cancelled_at)
        self.assertFalse(AccountBalance.objects.for_store(self.store).exists())

    def test_cancel_posted_reverses_balances(self):
        entry = create_entry(self.store, JAN_15, self.balanced_lines(100))
        post_entry(self.store, entry.pk)

        cancel_entry(self.store, entry.pk, reason="error")

        bucket = AccountBalance.objects.get(store=self.store, account=self.cash)
        self.assertEqual(bucket.closing_debit_bs, Decimal("0.00"))


""" Failure tests """
class PostingFailureTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.cash = self.acc("1.01.01.01")
        self.sales = self.acc("4.01.01")

    def test_unbalanced_entry_is_rejected(self):
        with self.assertRaises(UnbalancedJournalError) as cm:
            create_entry(self.store, JAN_15, [
                line(self.cash, debit_bs=100),
                line(self.sales, credit_bs=90),
            ])
        self.assertIn("Journal not balanced", str(cm.exception))
        # nothing half-written
        self.assertFalse(JournalEntry.objects.for_store(self.store).exists())
        self.assertFalse(JournalEntryLine.objects.for_store(self.store).exists())

    def test_unbalanced_in_usd_only_is_rejected(self):
        with self.assertRaises(UnbalancedJournalError):
            create_entry(self.store, JAN_15, [
                line(self.cash, debit_bs=100, debit_usd=3),
                line(self.sales, credit_bs=100, credit_usd=2),
            ])

    def test_single_line_is_rejected(self):
        with self.assertRaises(LedgerValidationError):
            create_entry(self.store, JAN_15, [line(self.cash, debit_bs=0)])

    def test_negative_amount_is_rejected(self):
        with self.assertRaises(LedgerValidationError):
            create_entry(self.store, JAN_15, [
                line(self.cash, debit_bs=-100),
                line(self.sales, debit_bs=100),
            ])

    def test_inactive_account_is_rejected(self):
        self.sales.is_active = False
        self.sales.save()
        with self.assertRaises(LedgerValidationError) as cm:
            create_entry(self.store, JAN_15, [
                line(self.cash, debit_bs=100),
                line(self.sales, credit_bs=100),
            ])
        self.assertIn("inactive", str(cm.exception))

    def test_header_account_is_rejected(self):
        with self.assertRaises(LedgerValidationError) as cm:
            create_entry(self.store, JAN_15, [
                line(self.acc("1.01"), debit_bs=100),
                line(self.sales, credit_bs=100),
            ])
        self.assertIn("does not allow entries", str(cm.exception))

    def test_account_of_another_store_is_not_found(self):
        other = Store.objects.create(name="Other", slug="other")
        with self.assertRaises(LedgerNotFoundError):
            create_entry(other, JAN_15, [
                line(self.cash, debit_bs=100),
                line(self.sales, credit_bs=100),
            ])

    def test_closed_period_rejects_new_entries(self):
        close_period(self.store, datetime.date(2025, 1, 1), datetime.date(2025, 1, 31))
        with self.assertRaises(PeriodNotOpenError):
            create_entry(self.store, JAN_15, [
                line(self.cash, debit_bs=100),
                line(self.sales, credit_bs=100),
            ])

    def test_closed_period_rejects_posting_a_draft(self):
        entry = create_entry(self.store, JAN_15, [
            line(self.cash, debit_bs=100),
            line(self.sales, credit_bs=100),
        ])
        close_period(self.store, datetime.date(2025, 1, 1), datetime.date(2025, 1, 31))
        with self.assertRaises(PeriodNotOpenError):
            post_entry(self.store, entry.pk)
        entry.refresh_from_db()
        self.assertEqual(entry.status, "draft")

    def test_post_twice_is_rejected(self):
        entry = self.post(JAN_15, [
            line(self.cash, debit_bs=100),
            line(self.sales, credit_bs=100),
        ])
        with self.assertRaises(InvalidStatusTransition):
            post_entry(self.store, entry.pk)

    def test_cancel_twice_is_rejected(self):
        entry = create_entry(self.store, JAN_15, [
            line(self.cash, debit_bs=100),
            line(self.sales, credit_bs=100),
        ])
        cancel_entry(self.store, entry.pk)
        with self.assertRaises(InvalidStatusTransition):
            cancel_entry(self.store, entry.pk)
        with self.assertRaises(InvalidStatusTransition):
            post_entry(self.store, entry.pk)

    def test_status_cannot_move_backwards_on_save(self):
        entry = self.post(JAN_15, [
            line(self.cash, debit_bs=100),
            line(self.sales, credit_bs=100),
        ])
        entry.status = "draft"
        with self.assertRaises(InvalidStatusTransition):
            entry.save()

    def test_entry_lookup_is_scoped_to_store(self):
        entry = create_entry(self.store, JAN_15, [
            line(self.cash, debit_bs=100),
            line(self.sales, credit_bs=100),
        ])
        other = Store.objects.create(name="Other", slug="other")
        with self.assertRaises(LedgerNotFoundError):
            get_entry(other, entry.pk)
        with self.assertRaises(LedgerNotFoundError):
            post_entry(other, entry.pk)

    def test_posted_entry_cannot_be_deleted(self):
        entry = self.post(JAN_15, [
            line(self.cash, debit_bs=100),
            line(self.sales, credit_bs=100),
        ])
        with self.assertRaises(LedgerValidationError):
            entry.delete()


class AutoEntryTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.cash = self.acc("1.01.01.01")
        self.sales = self.acc("4.01.01")

    def create(self, amount=100):
        return create_auto_entry(
            self.store,
            source_type="sale",
            source_id=42,
            entry_date=JAN_15,
            lines=[line(self.cash, debit_bs=amount), line(self.sales, credit_bs=amount)],
            entry_type="sale",
        )

    def test_auto_entry_is_posted_directly(self):
        entry = self.create()

        self.assertEqual(entry.status, "posted")
        self.assertTrue(entry.is_auto_generated)
        self.assertEqual(entry.source_id, "42")
        bucket = AccountBalance.objects.get(store=self.store, account=self.cash)
        self.assertEqual(bucket.closing_debit_bs, Decimal("100.00"))

    def test_same_source_returns_the_existing_entry(self):
        first = self.create(100)
        second = self.create(999)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(JournalEntry.objects.for_store(self.store).count(), 1)
        bucket = AccountBalance.objects.get(store=self.store, account=self.cash)
        self.assertEqual(bucket.closing_debit_bs, Decimal("100.00"))

    def test_cancelled_source_can_be_booked_again(self):
        first = self.create()
        cancel_entry(self.store, first.pk, reason="re-book")

        second = self.create(120)

        self.assertNotEqual(first.pk, second.pk)
        bucket = AccountBalance.objects.get(store=self.store, account=self.cash)
        self.assertEqual(bucket.closing_debit_bs, Decimal("120.00"))
