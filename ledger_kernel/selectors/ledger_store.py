"""
Ledger store -- the read capability the settlement engine is handed.

Provides the two queries the FIFO settlement computation needs:

- trades for a counterparty, oldest first (the FIFO queue)
- payment rows for a counterparty+currency, including soft-deleted rows,
  ordered by receipt date then creation time

Key design decisions:
- ``LedgerStore`` is an abstract capability; services receive one by
  injection and never reach for a module-level database handle.
- ``LedgerSelector`` is the SQL implementation over the caller's Session
  (one Session == one snapshot for a whole projection).
- Rows are returned as ``TomanPaymentRow`` or ``AedPaymentRow`` according
  to the requested currency; no duck-typed row dictionaries escape.

Open question preserved as-is:
- The FIFO queue is ordered by trade *creation* time, not trade_date.  A
  backdated trade entered late queues behind trades created before it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import or_, select

from ledger_kernel.domain.currency import Currency, parse_currency
from ledger_kernel.domain.dtos import (
    AedPaymentRow,
    PaymentRow,
    ReceiptType,
    TomanPaymentRow,
    TradeStatus,
    TradeType,
    TradeView,
)
from ledger_kernel.models.party import BankAccount
from ledger_kernel.models.receipt import PaymentReceipt
from ledger_kernel.models.trade import Trade
from ledger_kernel.selectors.base import BaseSelector


class LedgerStore(ABC):
    """
    Read-only ledger capability consumed by the settlement engine.

    Contract:
        - ``get_trades_for_counterparty`` returns trades ordered by creation
          time ascending, ties broken by id ascending.
        - ``get_payment_rows_for_counterparty`` returns rows ordered by
          receipt_date, then created_at, then id, and INCLUDES soft-deleted
          rows.
        - Implementations never mutate state.
        - Read failures raise ``LedgerStoreError``.
    """

    @abstractmethod
    def get_trade(self, trade_id: int) -> TradeView | None:
        """Get one trade by id, or None."""

    @abstractmethod
    def get_trades(self, trade_ids: Iterable[int] | None = None) -> list[TradeView]:
        """Get trades by id (all trades when ``trade_ids`` is None), id order."""

    @abstractmethod
    def get_trades_for_counterparty(self, counterparty_id: int) -> list[TradeView]:
        """Get the counterparty's FIFO queue."""

    @abstractmethod
    def get_payment_rows_for_counterparty(
        self,
        counterparty_id: int,
        currency: Currency | str,
    ) -> list[PaymentRow]:
        """Get the raw payment rows that form the counterparty's pool."""


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo on read; stored timestamps are UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def trade_to_view(trade: Trade) -> TradeView:
    """Convert ORM Trade to TradeView DTO."""
    return TradeView(
        id=trade.id,
        trade_number=trade.trade_number,
        trade_type=TradeType(trade.trade_type),
        status=TradeStatus(trade.status),
        base_currency=Currency(trade.base_currency),
        quote_currency=Currency(trade.quote_currency),
        amount=Decimal(trade.amount),
        rate=Decimal(trade.rate),
        total_value=Decimal(trade.total_value),
        counterparty_id=trade.counterparty_id,
        trade_date=trade.trade_date,
        created_at=_aware(trade.created_at),
        base_settled_amount=Decimal(trade.base_settled_amount or 0),
        quote_settled_amount=Decimal(trade.quote_settled_amount or 0),
    )


class LedgerSelector(BaseSelector[Trade], LedgerStore):
    """
    SQL-backed ledger store.

    Uses the caller's Session; every query in one projection therefore
    reads the same transaction snapshot.
    """

    # =========================================================================
    # Trade Queries
    # =========================================================================

    def get_trade(self, trade_id: int) -> TradeView | None:
        trade = self._execute(
            "get_trade",
            select(Trade).where(Trade.id == trade_id),
        ).scalar_one_or_none()
        return trade_to_view(trade) if trade is not None else None

    def get_trades(self, trade_ids: Iterable[int] | None = None) -> list[TradeView]:
        stmt = select(Trade).order_by(Trade.id)
        if trade_ids is not None:
            ids = list(trade_ids)
            if not ids:
                return []
            stmt = stmt.where(Trade.id.in_(ids))
        rows = self._execute("get_trades", stmt).scalars().all()
        return [trade_to_view(t) for t in rows]

    def get_trades_for_counterparty(self, counterparty_id: int) -> list[TradeView]:
        stmt = (
            select(Trade)
            .where(Trade.counterparty_id == counterparty_id)
            .order_by(Trade.created_at.asc(), Trade.id.asc())
        )
        rows = self._execute("get_trades_for_counterparty", stmt).scalars().all()
        return [trade_to_view(t) for t in rows]

    # =========================================================================
    # Payment Queries
    # =========================================================================

    def get_payment_rows_for_counterparty(
        self,
        counterparty_id: int,
        currency: Currency | str,
    ) -> list[PaymentRow]:
        currency = parse_currency(currency)
        if currency == Currency.TOMAN:
            return self._toman_rows(counterparty_id)
        return self._aed_rows(counterparty_id)

    def _toman_rows(self, counterparty_id: int) -> list[PaymentRow]:
        stmt = (
            select(PaymentReceipt, BankAccount.counterpart_id)
            .outerjoin(BankAccount, PaymentReceipt.receiver_account_id == BankAccount.id)
            .where(
                PaymentReceipt.currency == Currency.TOMAN.value,
                or_(
                    PaymentReceipt.payer_id == counterparty_id,
                    BankAccount.counterpart_id == counterparty_id,
                ),
            )
            .order_by(
                PaymentReceipt.receipt_date.asc(),
                PaymentReceipt.created_at.asc(),
                PaymentReceipt.id.asc(),
            )
        )
        result = self._execute("get_toman_payment_rows", stmt)
        return [
            TomanPaymentRow(
                receipt_id=receipt.id,
                amount=Decimal(receipt.amount),
                receipt_date=receipt.receipt_date,
                created_at=_aware(receipt.created_at),
                is_deleted=bool(receipt.is_deleted),
                payer_id=receipt.payer_id,
                receiver_owner_id=owner_id,
            )
            for receipt, owner_id in result.all()
        ]

    def _aed_rows(self, counterparty_id: int) -> list[PaymentRow]:
        stmt = (
            select(PaymentReceipt)
            .where(
                PaymentReceipt.currency == Currency.AED.value,
                PaymentReceipt.trading_party_id == counterparty_id,
            )
            .order_by(
                PaymentReceipt.receipt_date.asc(),
                PaymentReceipt.created_at.asc(),
                PaymentReceipt.id.asc(),
            )
        )
        rows = self._execute("get_aed_payment_rows", stmt).scalars().all()
        return [
            AedPaymentRow(
                receipt_id=receipt.id,
                amount=Decimal(receipt.amount),
                receipt_date=receipt.receipt_date,
                created_at=_aware(receipt.created_at),
                is_deleted=bool(receipt.is_deleted),
                receipt_type=ReceiptType(receipt.receipt_type) if receipt.receipt_type else None,
                trading_party_id=receipt.trading_party_id,
            )
            for receipt in rows
        ]


class InMemoryLedgerStore(LedgerStore):
    """
    Ledger store over plain sequences of DTOs.

    Used for what-if projections (e.g. previewing the effect of a receipt
    before it is recorded) and by the engine test-suite.  Ordering
    guarantees match ``LedgerSelector``.
    """

    def __init__(
        self,
        trades: Sequence[TradeView] = (),
        payment_rows: Sequence[PaymentRow] = (),
    ):
        self._trades = list(trades)
        self._rows = list(payment_rows)

    def add_trade(self, trade: TradeView) -> None:
        self._trades.append(trade)

    def add_payment_row(self, row: PaymentRow) -> None:
        self._rows.append(row)

    def replace_payment_row(self, row: PaymentRow) -> None:
        """Swap the row with the same receipt id and currency (e.g. after soft-delete)."""
        self._rows = [
            row if (r.receipt_id == row.receipt_id and r.currency == row.currency) else r
            for r in self._rows
        ]

    def get_trade(self, trade_id: int) -> TradeView | None:
        return next((t for t in self._trades if t.id == trade_id), None)

    def get_trades(self, trade_ids: Iterable[int] | None = None) -> list[TradeView]:
        wanted = None if trade_ids is None else set(trade_ids)
        return sorted(
            (t for t in self._trades if wanted is None or t.id in wanted),
            key=lambda t: t.id,
        )

    def get_trades_for_counterparty(self, counterparty_id: int) -> list[TradeView]:
        return sorted(
            (t for t in self._trades if t.counterparty_id == counterparty_id),
            key=lambda t: (t.created_at is None, t.created_at, t.id),
        )

    def get_payment_rows_for_counterparty(
        self,
        counterparty_id: int,
        currency: Currency | str,
    ) -> list[PaymentRow]:
        currency = parse_currency(currency)
        if currency == Currency.TOMAN:
            pool = [
                r for r in self._rows
                if isinstance(r, TomanPaymentRow)
                and counterparty_id in (r.payer_id, r.receiver_owner_id)
            ]
        else:
            pool = [
                r for r in self._rows
                if isinstance(r, AedPaymentRow) and r.trading_party_id == counterparty_id
            ]
        return sorted(pool, key=lambda r: (r.receipt_date, r.created_at, r.receipt_id))
