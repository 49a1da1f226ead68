"""
DTOs -- Read-only views of ledger rows handed to the settlement engines.

Responsibility:
    Defines the frozen shapes the selectors produce and the engines consume:
    the trade view and the per-currency payment row variants.  Engines never
    see ORM objects.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.

Invariants enforced:
    - Monetary fields are Decimal, never float.
    - Payment rows are a tagged variant: ``TomanPaymentRow`` carries the bank
      transfer fields (payer, receiving-account owner), ``AedPaymentRow``
      carries the cash fields (receipt_type, trading party).  The
      ``currency`` class attribute is the discriminant.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import ClassVar

from ledger_kernel.domain.currency import Currency


class TradeType(str, Enum):
    """Direction of a trade from the firm's point of view."""

    BUY = "BUY"
    SELL = "SELL"
    BUY_SELL = "BUY_SELL"


class TradeStatus(str, Enum):
    """Trade settlement lifecycle.

    PENDING -> PARTIAL -> COMPLETED, or CANCELLED (owned by the
    surrounding system).
    """

    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class ReceiptType(str, Enum):
    """Cash receipt direction: the firm pays or receives."""

    PAY = "pay"
    RECEIVE = "receive"


class SettlementLeg(str, Enum):
    """Which side of a trade a settlement applies to."""

    BASE = "BASE"
    QUOTE = "QUOTE"


class DeletionReason(str, Enum):
    """Accepted categories for soft-deleting a payment receipt."""

    DUPLICATE = "duplicate"
    FUNDS_RETURNED = "funds_returned"
    RECEIPT_NOT_LANDED = "receipt_not_landed"
    DATA_ERROR = "data_error"
    OTHER = "other"


@dataclass(frozen=True)
class TradeView:
    """Immutable view of a trade row."""

    id: int
    trade_number: str
    trade_type: TradeType
    status: TradeStatus
    base_currency: Currency
    quote_currency: Currency
    amount: Decimal
    rate: Decimal
    total_value: Decimal
    counterparty_id: int | None
    trade_date: date | None = None
    created_at: datetime | None = None
    base_settled_amount: Decimal = Decimal("0")
    quote_settled_amount: Decimal = Decimal("0")

    def leg_for(self, currency: Currency) -> SettlementLeg | None:
        """Return the leg denominated in ``currency``, if any."""
        if self.base_currency == self.quote_currency:
            return None
        if currency == self.base_currency:
            return SettlementLeg.BASE
        if currency == self.quote_currency:
            return SettlementLeg.QUOTE
        return None


@dataclass(frozen=True)
class TomanPaymentRow:
    """A TOMAN bank transfer between the firm and a counterparty."""

    currency: ClassVar[Currency] = Currency.TOMAN

    receipt_id: int
    amount: Decimal
    receipt_date: date
    created_at: datetime
    is_deleted: bool
    payer_id: int | None
    receiver_owner_id: int | None


@dataclass(frozen=True)
class AedPaymentRow:
    """An AED cash movement between the firm and a trading party."""

    currency: ClassVar[Currency] = Currency.AED

    receipt_id: int
    amount: Decimal
    receipt_date: date
    created_at: datetime
    is_deleted: bool
    receipt_type: ReceiptType | None
    trading_party_id: int | None


PaymentRow = TomanPaymentRow | AedPaymentRow
