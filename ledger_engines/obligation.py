"""
Module: ledger_engines.obligation
Responsibility:
    Determine the currency obligation a single trade creates in a single
    currency: how much, and who owes whom.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel/domain.

Invariants enforced:
    - BUY:  base leg  -> they_owe_us ``amount``;
            quote leg -> we_owe_them ``total_value``.
    - SELL: base leg  -> we_owe_them ``amount``;
            quote leg -> they_owe_us ``total_value``.
    - Any other currency, trade type or degenerate trade -> amount 0.
    - Never raises for malformed trade data: base == quote, non-positive
      amount or rate all resolve to a zero obligation on both legs, so one
      bad row cannot abort a batch projection.

Usage:
    from ledger_engines.obligation import resolve_obligation

    obligation = resolve_obligation(trade=trade, currency=Currency.AED)
    if obligation.is_zero:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from ledger_kernel.domain.currency import Currency
from ledger_kernel.domain.dtos import SettlementLeg, TradeType, TradeView
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.obligation")

_ZERO = Decimal("0")


class ObligationDirection(str, Enum):
    """Who owes whom on one trade leg."""

    THEY_OWE_US = "they_owe_us"
    WE_OWE_THEM = "we_owe_them"

    @property
    def pool_sign(self) -> int:
        """Multiplier that turns a net payment sum into an effective pool.

        Positive events (counterparty paid us) reduce what they owe us and do
        nothing for what we owe them.
        """
        return 1 if self is ObligationDirection.THEY_OWE_US else -1


@dataclass(frozen=True)
class Obligation:
    """
    What one trade requires in one currency.

    Guarantees:
        - ``amount >= 0``.
        - When ``amount == 0`` the direction carries no meaning.
    """

    amount: Decimal
    direction: ObligationDirection
    leg: SettlementLeg | None = None

    @property
    def is_zero(self) -> bool:
        return self.amount <= _ZERO

    @classmethod
    def none(cls) -> Obligation:
        """The no-op obligation for a currency the trade has no leg in."""
        return cls(amount=_ZERO, direction=ObligationDirection.THEY_OWE_US)


_DIRECTIONS: dict[tuple[TradeType, SettlementLeg], ObligationDirection] = {
    (TradeType.BUY, SettlementLeg.BASE): ObligationDirection.THEY_OWE_US,
    (TradeType.BUY, SettlementLeg.QUOTE): ObligationDirection.WE_OWE_THEM,
    (TradeType.SELL, SettlementLeg.BASE): ObligationDirection.WE_OWE_THEM,
    (TradeType.SELL, SettlementLeg.QUOTE): ObligationDirection.THEY_OWE_US,
}


def is_degenerate(trade: TradeView) -> bool:
    """True when the trade's terms cannot produce a meaningful obligation."""
    return (
        trade.base_currency == trade.quote_currency
        or trade.amount is None
        or trade.amount <= _ZERO
        or trade.rate is None
        or trade.rate <= _ZERO
    )


def resolve_obligation(trade: TradeView, currency: Currency) -> Obligation:
    """
    Resolve the obligation ``trade`` creates in ``currency``.

    Preconditions:
        - ``currency`` is a ledger currency.
    Postconditions:
        - Returns a zero obligation when the trade has no leg in
          ``currency``, is a BUY_SELL, or is degenerate.
    Raises:
        Nothing.
    """
    if is_degenerate(trade):
        logger.debug("obligation_degenerate_trade", extra={
            "trade_id": trade.id,
            "base_currency": trade.base_currency,
            "quote_currency": trade.quote_currency,
            "amount": str(trade.amount),
            "rate": str(trade.rate),
        })
        return Obligation.none()

    leg = trade.leg_for(currency)
    if leg is None:
        return Obligation.none()

    direction = _DIRECTIONS.get((trade.trade_type, leg))
    if direction is None:
        return Obligation.none()

    amount = trade.amount if leg is SettlementLeg.BASE else trade.total_value
    if amount is None or amount <= _ZERO:
        return Obligation.none()

    return Obligation(amount=amount, direction=direction, leg=leg)
