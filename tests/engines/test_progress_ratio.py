"""Tests for progress ratio clamping and the TradeProgress value object."""

from decimal import Decimal

import pytest

from ledger_engines.progress import TradeProgress, progress_ratio
from ledger_kernel.domain.currency import Currency


class TestProgressRatio:

    @pytest.mark.parametrize(
        "applied,obligation,expected",
        [
            ("0", "1000", "0"),
            ("250", "1000", "0.25"),
            ("1000", "1000", "1"),
            ("1500", "1000", "1"),
            ("-10", "1000", "0"),
            ("10", "0", "0"),
        ],
    )
    def test_clamped_to_unit_interval(self, applied, obligation, expected):
        ratio = progress_ratio(Decimal(applied), Decimal(obligation))

        assert ratio == Decimal(expected)
        assert Decimal("0") <= ratio <= Decimal("1")

    def test_places_round_down(self):
        """A leg that is not fully paid never displays as complete."""
        ratio = progress_ratio(Decimal("999999"), Decimal("1000000"), places=4)

        assert ratio == Decimal("0.9999")

    def test_exact_decimal(self):
        ratio = progress_ratio(Decimal("1"), Decimal("3"))

        assert isinstance(ratio, Decimal)
        assert ratio == Decimal(1) / Decimal(3)


class TestTradeProgress:

    def test_base_and_quote_follow_trade_legs(self):
        progress = TradeProgress(
            trade_id=1,
            progress_aed=Decimal("0.5"),
            progress_toman=Decimal("1"),
            base_currency=Currency.TOMAN,
            quote_currency=Currency.AED,
        )

        assert progress.progress_base == Decimal("1")
        assert progress.progress_quote == Decimal("0.5")
        assert progress.for_currency(Currency.AED) == Decimal("0.5")
        assert not progress.is_fully_settled

    def test_fully_settled(self):
        progress = TradeProgress(
            trade_id=1,
            progress_aed=Decimal("1"),
            progress_toman=Decimal("1"),
            base_currency=Currency.AED,
            quote_currency=Currency.TOMAN,
        )

        assert progress.is_fully_settled

    def test_equality_ignores_leg_labels(self):
        a = TradeProgress(trade_id=1, progress_aed=Decimal("0.5"))
        b = TradeProgress(
            trade_id=1,
            progress_aed=Decimal("0.5"),
            base_currency=Currency.AED,
            quote_currency=Currency.TOMAN,
        )

        assert a == b

    def test_to_dict(self):
        progress = TradeProgress(
            trade_id=3,
            progress_aed=Decimal("0.25"),
            base_currency=Currency.AED,
            quote_currency=Currency.TOMAN,
        )

        assert progress.to_dict() == {
            "trade_id": "3",
            "progress_aed": "0.25",
            "progress_toman": "0",
            "progress_base": "0.25",
            "progress_quote": "0",
        }
