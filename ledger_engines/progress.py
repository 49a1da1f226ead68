"""
Module: ledger_engines.progress
Responsibility:
    Turn an applied settlement amount into a clamped progress ratio, and
    hold the per-trade pair of ratios the projector returns.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - 0 <= ratio <= 1 for every input, including applied > obligation and
      negative applied amounts.
    - A zero obligation always yields ratio 0.
    - Ratios are Decimal; optional quantization uses ROUND_DOWN so a leg is
      never displayed as 100% before it is actually fully settled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal

from ledger_kernel.domain.currency import Currency

_ZERO = Decimal("0")
_ONE = Decimal("1")


def progress_ratio(
    applied: Decimal,
    obligation_amount: Decimal,
    places: int | None = None,
) -> Decimal:
    """
    Clamp ``applied / obligation_amount`` into [0, 1].

    Args:
        applied: Amount of the pool applied to the leg.
        obligation_amount: The leg's obligation.
        places: If given, round the ratio down to this many decimal places.
    """
    if obligation_amount <= _ZERO:
        return _ZERO

    ratio = applied / obligation_amount
    ratio = min(max(ratio, _ZERO), _ONE)

    if places is not None:
        ratio = ratio.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    return ratio


@dataclass(frozen=True)
class TradeProgress:
    """
    Settlement progress of one trade in both ledger currencies.

    ``progress_base`` / ``progress_quote`` re-key the pair by the trade's own
    legs.  A trade with no leg in a currency reports 0 for it.
    """

    trade_id: int
    progress_aed: Decimal = _ZERO
    progress_toman: Decimal = _ZERO
    base_currency: Currency | None = field(default=None, compare=False)
    quote_currency: Currency | None = field(default=None, compare=False)

    def for_currency(self, currency: Currency) -> Decimal:
        if currency == Currency.AED:
            return self.progress_aed
        return self.progress_toman

    @property
    def progress_base(self) -> Decimal:
        if self.base_currency is None:
            return _ZERO
        return self.for_currency(self.base_currency)

    @property
    def progress_quote(self) -> Decimal:
        if self.quote_currency is None:
            return _ZERO
        return self.for_currency(self.quote_currency)

    @property
    def is_fully_settled(self) -> bool:
        return self.progress_base == _ONE and self.progress_quote == _ONE

    def to_dict(self) -> dict[str, str]:
        return {
            "trade_id": str(self.trade_id),
            "progress_aed": str(self.progress_aed),
            "progress_toman": str(self.progress_toman),
            "progress_base": str(self.progress_base),
            "progress_quote": str(self.progress_quote),
        }
