import datetime
from decimal import Decimal

from django.test import TestCase

from ledger_core.exceptions import (InvalidStatusTransition,
                                    LedgerNotFoundError, LedgerValidationError)
from ledger_core.models import Account, AccountingPeriod, JournalEntry
from ledger_core.services.balances import calculate_balances
from ledger_core.services.periods import (CLOSE_SOURCE, YEAR_END_SOURCE,
                                          close_period, get_or_create_period,
                                          lock_period, reopen_period,
                                          resolve_equity_account)
from ledger_core.services.posting import create_entry

from .helpers import JAN_15, LedgerFixtureMixin, line

JAN_1 = datetime.date(2025, 1, 1)
JAN_31 = datetime.date(2025, 1, 31)


class PeriodCloseTests(LedgerFixtureMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.cash = self.acc("1.01.01.01")
        self.sales = self.acc("4.01.01")
        self.rent = self.acc("5.02.02")
        self.result = self.acc("3.03.01")

    def book_january(self):
        self.post_sale(JAN_15, 10000)
        self.post(JAN_15, [
            line(self.rent, debit_bs=6000),
            line(self.cash, credit_bs=6000),
        ])

    def test_close_moves_net_income_to_equity(self):
        self.book_january()

        result = close_period(self.store, JAN_1, JAN_31, note="Cierre enero")

        closing = result.closing_entry
        self.assertEqual(closing.status, "posted")
        self.assertEqual(closing.entry_type, "closing")
        self.assertEqual(closing.source_type, CLOSE_SOURCE)
        self.assertEqual(closing.total_debit_bs, Decimal("10000.00"))
        self.assertEqual(closing.total_credit_bs, Decimal("10000.00"))
        self.assertEqual(result.net_income_bs, Decimal("4000.00"))

        balances = calculate_balances(self.store, [self.sales.pk, self.rent.pk, self.result.pk], JAN_31)
        self.assertEqual(balances[self.sales.pk]["balance_bs"], Decimal("0.00"))
        self.assertEqual(balances[self.rent.pk]["balance_bs"], Decimal("0.00"))
        self.assertEqual(balances[self.result.pk]["balance_bs"], Decimal("4000.00"))

        equity_line = closing.lines.get(account=self.result)
        self.assertEqual(equity_line.credit_amount_bs, Decimal("4000.00"))
        self.assertEqual(equity_line.debit_amount_bs, Decimal("0.00"))

        period = AccountingPeriod.objects.get(store=self.store, period_code="2025-01")
        self.assertEqual(period.status, "closed")
        self.assertEqual(period.closing_entry, closing)
        self.assertEqual(period.closing_note, "Cierre enero")
        self.assertIsNotNone(period.closed_at)

    def test_loss_debits_equity(self):
        self.post_sale(JAN_15, 1000)
        self.post(JAN_15, [
            line(self.rent, debit_bs=1500),
            line(self.cash, credit_bs=1500),
        ])

        result = close_period(self.store, JAN_1, JAN_31)

        self.assertEqual(result.net_income_bs, Decimal("-500.00"))
        equity_line = result.closing_entry.lines.get(account=self.result)
        self.assertEqual(equity_line.debit_amount_bs, Decimal("500.00"))
        self.assertEqual(
            calculate_balances(self.store, [self.result.pk], JAN_31)[self.result.pk]["balance_bs"],
            Decimal("-500.00"),
        )

    def test_usd_results_are_closed_too(self):
        self.post_sale(JAN_15, 3600, 100)

        result = close_period(self.store, JAN_1, JAN_31)

        self.assertEqual(result.net_income_usd, Decimal("100.00"))
        equity_line = result.closing_entry.lines.get(account=self.result)
        self.assertEqual(equity_line.credit_amount_usd, Decimal("100.00"))

    def test_quiet_period_closes_without_entry(self):
        result = close_period(self.store, JAN_1, JAN_31)

        self.assertIsNone(result.closing_entry)
        self.assertEqual(result.period.status, "closed")

    def test_income_statement_provider_supplies_net_income(self):
        self.book_january()
        calls = []

        def provider(store, start, end):
            calls.append((store.pk, start, end))
            return {"totals": {"net_income_bs": "4000", "net_income_usd": 0}}

        result = close_period(self.store, JAN_1, JAN_31, income_statement_provider=provider)

        self.assertEqual(calls, [(self.store.pk, JAN_1, JAN_31)])
        self.assertEqual(result.net_income_bs, Decimal("4000.00"))
        self.assertEqual(result.closing_entry.total_debit_bs, Decimal("10000.00"))

    def test_deactivated_revenue_account_is_still_zeroed(self):
        self.post_sale(JAN_15, 1000)
        Account.objects.filter(pk=self.sales.pk).update(is_active=False)

        result = close_period(self.store, JAN_1, JAN_31)

        self.assertEqual(result.period.status, "closed")
        self.assertEqual(result.closing_entry.lines.get(account=self.sales).debit_amount_bs, Decimal("1000.00"))
        balances = calculate_balances(self.store, [self.sales.pk, self.result.pk], JAN_31)
        self.assertEqual(balances[self.sales.pk]["balance_bs"], Decimal("0.00"))
        self.assertEqual(balances[self.result.pk]["balance_bs"], Decimal("1000.00"))

    def test_manual_entries_still_reject_deactivated_accounts(self):
        Account.objects.filter(pk=self.sales.pk).update(is_active=False)
        with self.assertRaises(LedgerValidationError):
            create_entry(self.store, JAN_15, [
                line(self.cash, debit_bs=10),
                line(self.sales, credit_bs=10),
            ])

    def test_closing_twice_is_rejected(self):
        close_period(self.store, JAN_1, JAN_31)
        with self.assertRaises(InvalidStatusTransition):
            close_period(self.store, JAN_1, JAN_31)

    def test_missing_equity_account_is_an_error(self):
        self.book_january()
        Account.objects.for_store(self.store).filter(account_type="equity").update(is_active=False)

        with self.assertRaises(LedgerNotFoundError):
            close_period(self.store, JAN_1, JAN_31)
        self.assertEqual(get_or_create_period(self.store, JAN_1).status, "open")

    def test_equity_fallback_chain(self):
        self.assertEqual(resolve_equity_account(self.store).code, "3.03.01")
        self.result.is_active = False
        self.result.save()
        self.assertEqual(resolve_equity_account(self.store).code, "3.02.01")

    def test_december_close_transfers_result_to_retained_earnings(self):
        dec_15 = datetime.date(2025, 12, 15)
        self.post_sale(dec_15, 2500)
        retained = self.acc("3.02.01")

        result = close_period(self.store, datetime.date(2025, 12, 1), datetime.date(2025, 12, 31))

        self.assertIsNotNone(result.year_end_entry)
        self.assertEqual(result.year_end_entry.source_type, YEAR_END_SOURCE)
        balances = calculate_balances(
            self.store, [self.result.pk, retained.pk], datetime.date(2025, 12, 31)
        )
        self.assertEqual(balances[self.result.pk]["balance_bs"], Decimal("0.00"))
        self.assertEqual(balances[retained.pk]["balance_bs"], Decimal("2500.00"))


class ReopenAndLockTests(LedgerFixtureMixin, TestCase):

    def test_reopen_without_closing_entry(self):
        close_period(self.store, JAN_1, JAN_31)

        period = reopen_period(self.store, "2025-01", reason="late invoice")

        self.assertEqual(period.status, "open")
        self.assertIsNone(period.closed_at)
        self.assertIn("late invoice", period.closing_note)
        # postings are allowed again
        create_entry(self.store, JAN_15, [
            line(self.acc("1.01.01.01"), debit_bs=10),
            line(self.acc("4.01.01"), credit_bs=10),
        ])

    def test_reopen_cancels_the_closing_entry(self):
        sales = self.acc("4.01.01")
        self.post_sale(JAN_15, 800)
        closing = close_period(self.store, JAN_1, JAN_31).closing_entry

        period = reopen_period(self.store, "2025-01", reason="adjust")

        closing.refresh_from_db()
        self.assertEqual(closing.status, "cancelled")
        self.assertIsNone(period.closing_entry)
        self.assertEqual(
            calculate_balances(self.store, [sales.pk], JAN_31)[sales.pk]["balance_bs"],
            Decimal("800.00"),
        )

        # closing again books a fresh entry
        again = close_period(self.store, JAN_1, JAN_31).closing_entry
        self.assertNotEqual(again.pk, closing.pk)
        self.assertEqual(
            JournalEntry.objects.for_store(self.store).filter(source_type=CLOSE_SOURCE).count(), 2
        )

    def test_reopen_locked_period_fails(self):
        close_period(self.store, JAN_1, JAN_31)
        lock_period(self.store, "2025-01")

        with self.assertRaises(InvalidStatusTransition):
            reopen_period(self.store, "2025-01")
        self.assertEqual(get_or_create_period(self.store, JAN_1).status, "locked")

    def test_reopen_open_period_fails(self):
        get_or_create_period(self.store, JAN_15)
        with self.assertRaises(InvalidStatusTransition):
            reopen_period(self.store, "2025-01")

    def test_only_closed_periods_can_be_locked(self):
        get_or_create_period(self.store, JAN_15)
        with self.assertRaises(InvalidStatusTransition):
            lock_period(self.store, "2025-01")

    def test_unknown_period_is_not_found(self):
        with self.assertRaises(LedgerNotFoundError):
            reopen_period(self.store, "1999-01")

    def test_period_with_posted_entries_cannot_be_deleted(self):
        self.post_sale(JAN_15, 10)
        period = get_or_create_period(self.store, JAN_15)
        with self.assertRaises(LedgerValidationError):
            period.delete()
