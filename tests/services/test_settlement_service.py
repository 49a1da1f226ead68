"""
Tests for SettlementService.

Covers:
- FIFO application of a receipt across trades and legs
- fifo_sequence numbering and trade status transitions
- Counterparty resolution for AED and TOMAN receipts
- Skipped receipts (deleted, already processed, no counterparty)
- Reversal and full reprocessing
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from ledger_kernel.domain.currency import Currency
from ledger_kernel.domain.dtos import SettlementLeg, TradeStatus
from ledger_kernel.exceptions import ReceiptNotFoundError
from ledger_kernel.models import TradeSettlement

SETTLEMENT_DAY = date(2024, 3, 1)


@pytest.fixture
def c(make_party):
    return make_party("C")


@pytest.fixture
def house_account(make_party, make_account):
    return make_account(make_party("House"))


def _settlements(session, trade=None):
    stmt = select(TradeSettlement).order_by(TradeSettlement.id)
    if trade is not None:
        stmt = stmt.where(TradeSettlement.trade_id == trade.id)
    return session.execute(stmt).scalars().all()


class TestProcessAedReceipt:

    def test_applies_oldest_trade_first(
        self, session, settlement_service, make_trade, make_aed_receipt, c
    ):
        t1 = make_trade(c, amount="1000")
        t2 = make_trade(c, amount="500")
        receipt = make_aed_receipt(c, "1200")

        outcome = settlement_service.process_receipt(receipt.id)

        assert outcome.was_applied
        assert outcome.counterparty_ids == (c.id,)
        assert [(line.trade_id, line.settled_amount) for line in outcome.lines] == [
            (t1.id, Decimal("1000")),
            (t2.id, Decimal("200")),
        ]
        assert outcome.total_settled == Decimal("1200")
        assert all(line.leg == SettlementLeg.BASE for line in outcome.lines)
        assert all(line.currency == Currency.AED for line in outcome.lines)

        assert t1.base_settled_amount == Decimal("1000")
        assert t1.is_base_fully_settled
        assert not t1.is_quote_fully_settled
        assert t1.status == TradeStatus.PARTIAL.value
        assert t1.last_settlement_date == SETTLEMENT_DAY
        assert t2.base_settled_amount == Decimal("200")
        assert len(_settlements(session)) == 2

    def test_fifo_sequence_increments_per_trade_and_leg(
        self, session, settlement_service, make_trade, make_aed_receipt, c
    ):
        trade = make_trade(c, amount="1000")
        for amount in ("100", "200", "300"):
            settlement_service.process_receipt(make_aed_receipt(c, amount).id)

        rows = _settlements(session, trade)

        assert [row.fifo_sequence for row in rows] == [1, 2, 3]
        assert trade.base_settled_amount == Decimal("600")

    def test_both_legs_settled_completes_trade(
        self, settlement_service, make_trade, make_aed_receipt, make_toman_receipt,
        c, house_account,
    ):
        trade = make_trade(c, amount="1000", rate="15")
        settlement_service.process_receipt(make_aed_receipt(c, "1000").id)
        settlement_service.process_receipt(
            make_toman_receipt("15000", payer=c, receiver_account=house_account).id
        )

        assert trade.is_base_fully_settled
        assert trade.is_quote_fully_settled
        assert trade.status == TradeStatus.COMPLETED.value

    def test_completed_trades_are_skipped(
        self, settlement_service, make_trade, make_aed_receipt, make_toman_receipt,
        c, house_account,
    ):
        t1 = make_trade(c, amount="1000", rate="1")
        t2 = make_trade(c, amount="500", rate="1")
        settlement_service.process_receipt(make_aed_receipt(c, "1000").id)
        settlement_service.process_receipt(
            make_toman_receipt("1000", payer=c, receiver_account=house_account).id
        )
        assert t1.status == TradeStatus.COMPLETED.value

        outcome = settlement_service.process_receipt(make_aed_receipt(c, "100").id)

        assert [line.trade_id for line in outcome.lines] == [t2.id]

    def test_unapplied_remainder_is_logged(
        self, settlement_service, make_trade, make_aed_receipt, c, captured_logs
    ):
        make_trade(c, amount="100")

        outcome = settlement_service.process_receipt(make_aed_receipt(c, "150").id)

        assert outcome.total_settled == Decimal("100")
        unapplied = [r for r in captured_logs() if r["message"] == "settlement_amount_unapplied"]
        assert Decimal(unapplied[0]["unapplied"]) == Decimal("50")


class TestProcessTomanReceipt:

    def test_receiver_owner_then_payer_each_get_full_amount(
        self, settlement_service, make_party, make_account, make_trade, make_toman_receipt, c
    ):
        d = make_party("D")
        c_account = make_account(c)
        c_trade = make_trade(c, amount="1000", rate="10")
        d_trade = make_trade(d, amount="1000", rate="10")

        outcome = settlement_service.process_receipt(
            make_toman_receipt("4000", payer=d, receiver_account=c_account).id
        )

        assert outcome.counterparty_ids == (c.id, d.id)
        assert c_trade.quote_settled_amount == Decimal("4000")
        assert d_trade.quote_settled_amount == Decimal("4000")
        assert {line.leg for line in outcome.lines} == {SettlementLeg.QUOTE}

    def test_payer_owning_receiver_account_counted_once(
        self, settlement_service, make_account, make_trade, make_toman_receipt, c
    ):
        own_account = make_account(c)
        trade = make_trade(c, amount="1000", rate="10")

        outcome = settlement_service.process_receipt(
            make_toman_receipt("3000", payer=c, receiver_account=own_account).id
        )

        assert outcome.counterparty_ids == (c.id,)
        assert trade.quote_settled_amount == Decimal("3000")

    def test_trading_party_mode(
        self, session, settlement_service, make_party, make_trade, make_toman_receipt, c
    ):
        d = make_party("D")
        trade = make_trade(c, amount="1000", rate="10")
        receipt = make_toman_receipt("2500", payer=d)
        receipt.trading_party_id = c.id
        receipt.receipt_type = "receive"
        session.flush()

        outcome = settlement_service.process_receipt(receipt.id)

        assert outcome.counterparty_ids == (c.id,)
        assert trade.quote_settled_amount == Decimal("2500")


class TestSkippedReceipts:

    def test_missing_receipt(self, settlement_service):
        with pytest.raises(ReceiptNotFoundError) as exc_info:
            settlement_service.process_receipt(999)

        assert exc_info.value.receipt_id == 999

    def test_deleted_receipt(self, session, settlement_service, make_trade, make_aed_receipt, c):
        make_trade(c)
        receipt = make_aed_receipt(c, "100", is_deleted=True)

        outcome = settlement_service.process_receipt(receipt.id)

        assert outcome.skipped_reason == "deleted"
        assert _settlements(session) == []

    def test_already_processed(self, session, settlement_service, make_trade, make_aed_receipt, c):
        make_trade(c)
        receipt = make_aed_receipt(c, "100")
        settlement_service.process_receipt(receipt.id)

        outcome = settlement_service.process_receipt(receipt.id)

        assert outcome.skipped_reason == "already_processed"
        assert len(_settlements(session)) == 1

    def test_no_counterparty(self, settlement_service, make_aed_receipt):
        receipt = make_aed_receipt(None, "100")

        outcome = settlement_service.process_receipt(receipt.id)

        assert not outcome.was_applied
        assert outcome.skipped_reason == "no_counterparty"


class TestReverseReceiptSettlement:

    def test_reverse_restores_trade(
        self, session, settlement_service, make_trade, make_aed_receipt, c
    ):
        trade = make_trade(c, amount="1000")
        receipt = make_aed_receipt(c, "1000")
        settlement_service.process_receipt(receipt.id)

        reversed_lines = settlement_service.reverse_receipt_settlement(receipt.id)

        assert [line.settled_amount for line in reversed_lines] == [Decimal("1000")]
        assert trade.base_settled_amount == Decimal("0")
        assert not trade.is_base_fully_settled
        assert trade.status == TradeStatus.PENDING.value
        assert trade.last_settlement_date is None
        assert _settlements(session) == []

    def test_reverse_keeps_other_receipts(
        self, session, settlement_service, make_trade, make_aed_receipt, c
    ):
        trade = make_trade(c, amount="1000")
        first = make_aed_receipt(c, "300")
        second = make_aed_receipt(c, "200")
        settlement_service.process_receipt(first.id)
        settlement_service.process_receipt(second.id)

        settlement_service.reverse_receipt_settlement(second.id)

        assert trade.base_settled_amount == Decimal("300")
        assert trade.status == TradeStatus.PARTIAL.value
        assert trade.last_settlement_date == SETTLEMENT_DAY
        assert [row.receipt_id for row in _settlements(session)] == [first.id]

    def test_reverse_unprocessed_receipt_is_noop(self, settlement_service, make_aed_receipt, c):
        receipt = make_aed_receipt(c, "100")

        assert settlement_service.reverse_receipt_settlement(receipt.id) == ()

    def test_reverse_missing_receipt(self, settlement_service):
        with pytest.raises(ReceiptNotFoundError):
            settlement_service.reverse_receipt_settlement(999)


class TestReprocessAllReceipts:

    def test_rebuilds_in_creation_order(
        self, session, settlement_service, make_trade, make_aed_receipt, c
    ):
        t1 = make_trade(c, amount="1000")
        t2 = make_trade(c, amount="500")
        make_aed_receipt(c, "700")
        make_aed_receipt(c, "500")
        make_aed_receipt(c, "50", is_deleted=True)

        summary = settlement_service.reprocess_all_receipts()

        assert summary.receipts_seen == 3
        assert summary.receipts_applied == 2
        assert summary.receipts_skipped == 1
        assert summary.settlements_recorded == 3
        assert Decimal(t1.base_settled_amount) == Decimal("1000")
        assert Decimal(t2.base_settled_amount) == Decimal("200")

    def test_rebuild_is_repeatable(self, session, settlement_service, make_trade, make_aed_receipt, c):
        trade = make_trade(c, amount="1000")
        settlement_service.process_receipt(make_aed_receipt(c, "400").id)

        settlement_service.reprocess_all_receipts()
        settlement_service.reprocess_all_receipts()

        assert Decimal(trade.base_settled_amount) == Decimal("400")
        assert [row.fifo_sequence for row in _settlements(session)] == [1]
