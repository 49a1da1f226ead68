"""
Module: ledger_engines.netting
Responsibility:
    Convert raw payment rows for one counterparty+currency into signed
    payment events.  Positive = money flowed from the counterparty to the
    firm; negative = money flowed from the firm to the counterparty.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Rows are fetched by the caller through a LedgerStore.

Invariants enforced:
    - TOMAN: payer == counterparty -> +amount; otherwise receiving account
      owned by counterparty -> -amount.  The payer check wins when both hold.
    - AED: receipt_type 'receive' -> +amount; 'pay' -> -amount.
    - Soft-deleted rows have their sign inverted rather than being dropped,
      so a deleted receipt undoes progress already attributed from it.
    - Events whose signed amount is zero are dropped.
    - Output order: receipt_date asc, created_at asc, receipt_id asc.

Failure modes:
    - Rows of the wrong variant for the requested currency are ignored and
      logged; they cannot contribute to the pool.
    - An AED row with no receipt_type contributes nothing (logged).

Open question preserved as-is:
    The deletion flip assumes the row's direction fields still describe the
    original movement.  If they were edited after deletion the reversal can
    double-count instead of cancelling; the literal rule is kept.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.currency import Currency
from ledger_kernel.domain.dtos import (
    AedPaymentRow,
    PaymentRow,
    ReceiptType,
    TomanPaymentRow,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.netting")

_ZERO = Decimal("0")


@dataclass(frozen=True)
class PaymentEvent:
    """A signed movement of one currency between the firm and a counterparty."""

    receipt_id: int
    amount: Decimal
    event_date: date
    created_at: datetime
    is_deleted: bool

    @property
    def is_inflow(self) -> bool:
        """True when the counterparty paid the firm."""
        return self.amount > _ZERO


def _toman_sign(row: TomanPaymentRow, counterparty_id: int) -> int:
    if row.payer_id == counterparty_id:
        return 1
    if row.receiver_owner_id == counterparty_id:
        return -1
    return 0


def _aed_sign(row: AedPaymentRow) -> int:
    if row.receipt_type == ReceiptType.RECEIVE:
        return 1
    if row.receipt_type == ReceiptType.PAY:
        return -1
    logger.warning("netting_aed_row_without_type", extra={
        "receipt_id": row.receipt_id,
    })
    return 0


def signed_amount(row: PaymentRow, counterparty_id: int) -> Decimal:
    """Signed contribution of one row to the counterparty's pool."""
    if isinstance(row, TomanPaymentRow):
        sign = _toman_sign(row, counterparty_id)
    else:
        sign = _aed_sign(row)

    amount = row.amount * sign
    if row.is_deleted:
        amount = -amount
    return amount


@traced_engine("payment_netter", "1.0", fingerprint_fields=("counterparty_id", "currency"))
def net_payment_events(
    rows: Iterable[PaymentRow],
    counterparty_id: int,
    currency: Currency,
) -> tuple[PaymentEvent, ...]:
    """
    Derive the ordered signed event sequence for one counterparty+currency.

    Args:
        rows: Raw rows as returned by LedgerStore.get_payment_rows_for_counterparty.
        counterparty_id: The counterparty whose pool is being built.
        currency: The pool currency; selects which row variant is valid.

    Returns:
        Tuple of PaymentEvent, sorted by (event_date, created_at, receipt_id),
        with zero-amount events removed.
    """
    events: list[PaymentEvent] = []
    for row in rows:
        if row.currency != currency:
            logger.warning("netting_row_currency_mismatch", extra={
                "receipt_id": row.receipt_id,
                "row_currency": row.currency.value,
                "pool_currency": currency.value,
            })
            continue

        amount = signed_amount(row, counterparty_id)
        if amount == _ZERO:
            continue

        events.append(
            PaymentEvent(
                receipt_id=row.receipt_id,
                amount=amount,
                event_date=row.receipt_date,
                created_at=row.created_at,
                is_deleted=row.is_deleted,
            )
        )

    events.sort(key=lambda e: (e.event_date, e.created_at, e.receipt_id))
    return tuple(events)


def net_settlement(events: Iterable[PaymentEvent]) -> Decimal:
    """Exact Decimal sum of signed event amounts."""
    return sum((e.amount for e in events), _ZERO)
