"""
Tests for the ledger store implementations.

Covers:
- Creation-ordered FIFO queue
- Payment row selection per counterparty and currency
- Soft-deleted rows included
- Store failures wrapped in LedgerStoreError
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from ledger_kernel.domain.currency import Currency
from ledger_kernel.domain.dtos import (
    AedPaymentRow,
    ReceiptType,
    TomanPaymentRow,
    TradeType,
)
from ledger_kernel.exceptions import LedgerStoreError, UnsupportedCurrencyError
from ledger_kernel.selectors import InMemoryLedgerStore, LedgerSelector

T0 = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


class TestTradeQueries:

    def test_queue_ordered_by_creation_not_trade_date(self, ledger_store, make_party, make_trade):
        c = make_party("C")
        late = make_trade(c, created_at=T0 + timedelta(hours=2))
        early = make_trade(c, created_at=T0)
        middle = make_trade(c, created_at=T0 + timedelta(hours=1))

        queue = ledger_store.get_trades_for_counterparty(c.id)

        assert [t.id for t in queue] == [early.id, middle.id, late.id]

    def test_queue_only_counterparty_trades(self, ledger_store, make_party, make_trade):
        c = make_party("C")
        d = make_party("D")
        mine = make_trade(c)
        make_trade(d)
        make_trade(None)

        assert [t.id for t in ledger_store.get_trades_for_counterparty(c.id)] == [mine.id]

    def test_trade_view(self, ledger_store, make_party, make_trade):
        c = make_party("C")
        trade = make_trade(c, trade_type="SELL", amount="250", rate="4")

        view = ledger_store.get_trade(trade.id)

        assert view.trade_type == TradeType.SELL
        assert view.base_currency == Currency.AED
        assert view.total_value == Decimal("1000")
        assert view.counterparty_id == c.id
        assert view.created_at.tzinfo is not None

    def test_missing_trade(self, ledger_store):
        assert ledger_store.get_trade(404) is None

    def test_get_trades_by_ids(self, ledger_store, make_party, make_trade):
        c = make_party("C")
        t1, t2, t3 = make_trade(c), make_trade(c), make_trade(c)

        assert [t.id for t in ledger_store.get_trades([t3.id, t1.id])] == [t1.id, t3.id]
        assert ledger_store.get_trades([]) == []
        assert len(ledger_store.get_trades()) == 3


class TestPaymentRows:

    def test_toman_rows_for_payer_and_receiver_owner(
        self, ledger_store, make_party, make_account, make_toman_receipt
    ):
        c = make_party("C")
        house = make_party("House")
        c_account = make_account(c)
        house_account = make_account(house)
        paid_in = make_toman_receipt("100", payer=c, receiver_account=house_account)
        paid_out = make_toman_receipt("40", payer=house, receiver_account=c_account)
        make_toman_receipt("7", payer=house, receiver_account=house_account)

        rows = ledger_store.get_payment_rows_for_counterparty(c.id, Currency.TOMAN)

        assert [r.receipt_id for r in rows] == [paid_in.id, paid_out.id]
        assert all(isinstance(r, TomanPaymentRow) for r in rows)
        assert rows[0].payer_id == c.id
        assert rows[0].receiver_owner_id == house.id
        assert rows[1].receiver_owner_id == c.id

    def test_aed_rows_include_deleted(self, ledger_store, make_party, make_aed_receipt):
        c = make_party("C")
        live = make_aed_receipt(c, "100")
        deleted = make_aed_receipt(c, "50", receipt_type="pay", is_deleted=True)

        rows = ledger_store.get_payment_rows_for_counterparty(c.id, "aed")

        assert [r.receipt_id for r in rows] == [live.id, deleted.id]
        assert all(isinstance(r, AedPaymentRow) for r in rows)
        assert rows[1].is_deleted
        assert rows[1].receipt_type == ReceiptType.PAY

    def test_rows_ordered_by_receipt_date_then_created_at(
        self, ledger_store, make_party, make_aed_receipt
    ):
        c = make_party("C")
        later_day = make_aed_receipt(c, "1", receipt_date=date(2024, 1, 5), created_at=T0)
        second = make_aed_receipt(c, "1", created_at=T0 + timedelta(seconds=2))
        first = make_aed_receipt(c, "1", created_at=T0 + timedelta(seconds=1))

        rows = ledger_store.get_payment_rows_for_counterparty(c.id, Currency.AED)

        assert [r.receipt_id for r in rows] == [first.id, second.id, later_day.id]

    def test_aed_and_toman_pools_separate(
        self, ledger_store, make_party, make_account, make_aed_receipt, make_toman_receipt
    ):
        c = make_party("C")
        make_aed_receipt(c, "100")
        make_toman_receipt("100", payer=c, receiver_account=make_account(make_party("House")))

        assert len(ledger_store.get_payment_rows_for_counterparty(c.id, Currency.AED)) == 1
        assert len(ledger_store.get_payment_rows_for_counterparty(c.id, Currency.TOMAN)) == 1

    def test_unsupported_currency(self, ledger_store):
        with pytest.raises(UnsupportedCurrencyError) as exc_info:
            ledger_store.get_payment_rows_for_counterparty(1, "USD")

        assert exc_info.value.currency == "USD"


class TestStoreFailures:

    def test_sqlalchemy_error_wrapped(self, session, monkeypatch, captured_logs):
        store = LedgerSelector(session)

        def _boom(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(session, "execute", _boom)

        with pytest.raises(LedgerStoreError) as exc_info:
            store.get_trades_for_counterparty(1)

        assert exc_info.value.operation == "get_trades_for_counterparty"
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert any(r["message"] == "ledger_store_read_failed" for r in captured_logs())


class TestInMemoryLedgerStore:

    def setup_method(self):
        self.rows = [
            AedPaymentRow(
                receipt_id=2,
                amount=Decimal("10"),
                receipt_date=date(2024, 1, 1),
                created_at=T0 + timedelta(seconds=5),
                is_deleted=False,
                receipt_type=ReceiptType.RECEIVE,
                trading_party_id=7,
            ),
            TomanPaymentRow(
                receipt_id=1,
                amount=Decimal("10"),
                receipt_date=date(2024, 1, 1),
                created_at=T0,
                is_deleted=False,
                payer_id=8,
                receiver_owner_id=7,
            ),
        ]
        self.store = InMemoryLedgerStore(payment_rows=self.rows)

    def test_rows_split_by_currency(self):
        assert [r.receipt_id for r in self.store.get_payment_rows_for_counterparty(7, "AED")] == [2]
        assert [r.receipt_id for r in self.store.get_payment_rows_for_counterparty(7, "TOMAN")] == [1]
        assert self.store.get_payment_rows_for_counterparty(8, "AED") == []

    def test_replace_payment_row(self):
        deleted = AedPaymentRow(
            receipt_id=2,
            amount=Decimal("10"),
            receipt_date=date(2024, 1, 1),
            created_at=T0 + timedelta(seconds=5),
            is_deleted=True,
            receipt_type=ReceiptType.RECEIVE,
            trading_party_id=7,
        )

        self.store.replace_payment_row(deleted)

        assert self.store.get_payment_rows_for_counterparty(7, "AED") == [deleted]
        assert len(self.store.get_payment_rows_for_counterparty(7, "TOMAN")) == 1
