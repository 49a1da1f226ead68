"""Currency -- the two currencies a trade leg or receipt can carry."""

from __future__ import annotations

from enum import Enum

from ledger_kernel.exceptions import UnsupportedCurrencyError


class Currency(str, Enum):
    """Currencies a trade leg or receipt can be denominated in."""

    AED = "AED"
    TOMAN = "TOMAN"


# Fixed iteration order for progress projection.
LEDGER_CURRENCIES: tuple[Currency, ...] = (Currency.AED, Currency.TOMAN)


def parse_currency(value: str | Currency) -> Currency:
    """
    Normalize a currency code to ``Currency``.

    Raises:
        UnsupportedCurrencyError: If the code is not AED or TOMAN.
    """
    if isinstance(value, Currency):
        return value
    normalized = value.upper().strip() if value else ""
    try:
        return Currency(normalized)
    except ValueError:
        raise UnsupportedCurrencyError(str(value)) from None
