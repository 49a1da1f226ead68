"""
Module: ledger_kernel.models.trade
Responsibility: ORM persistence for trades and the per-receipt settlement
    records applied against them.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain enums only.

Invariants enforced:
    - base_currency != quote_currency (ck_trade_distinct_currencies).
    - amount > 0, rate > 0 (ck_trade_positive_amount, ck_trade_positive_rate).
    - total_value = amount * rate, computed once at creation by the caller.
    - Core terms are immutable after creation; only status and settlement
      fields change, and only through SettlementService.
    - TradeSettlement is unique per (trade_id, receipt_id, settlement_type).

Failure modes:
    - IntegrityError on check or unique constraint violations.

Audit relevance:
    Persisted settled amounts are what the payment-processing path believes;
    SettlementProgressService.verify_persisted_settlement() recomputes them
    from scratch and reports drift.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase
from ledger_kernel.domain.dtos import TradeStatus


class Trade(TrackedBase):
    """
    Currency exchange agreement between the firm and a counterparty.

    Guarantees:
        - amount is denominated in base_currency, total_value in quote_currency.
        - counterparty_id may be NULL; such trades have no resolvable
          obligation and always show zero progress.
    """

    __tablename__ = "trades"

    __table_args__ = (
        UniqueConstraint("trade_number", name="uq_trade_number"),
        CheckConstraint(
            "base_currency <> quote_currency",
            name="ck_trade_distinct_currencies",
        ),
        CheckConstraint("amount > 0", name="ck_trade_positive_amount"),
        CheckConstraint("rate > 0", name="ck_trade_positive_rate"),
        Index("idx_trades_status", "status"),
        Index("idx_trades_trade_date", "trade_date"),
        Index("idx_trades_counterparty_created", "counterparty_id", "created_at"),
    )

    trade_number: Mapped[str] = mapped_column(String(64), nullable=False)

    trade_type: Mapped[str] = mapped_column(String(10), nullable=False)

    status: Mapped[str] = mapped_column(
        String(12),
        nullable=False,
        default=TradeStatus.PENDING.value,
    )

    base_currency: Mapped[str] = mapped_column(String(5), nullable=False)

    quote_currency: Mapped[str] = mapped_column(String(5), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)

    total_value: Mapped[Decimal] = mapped_column(nullable=False)

    counterparty_id: Mapped[int | None] = mapped_column(
        ForeignKey("trading_parties.id"),
        nullable=True,
    )

    trade_date: Mapped[date] = mapped_column(Date, nullable=False)

    settlement_date_base: Mapped[date] = mapped_column(Date, nullable=False)

    settlement_date_quote: Mapped[date] = mapped_column(Date, nullable=False)

    # Settlement tracking (owned by SettlementService)
    base_settled_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    quote_settled_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0")
    )

    is_base_fully_settled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    is_quote_fully_settled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    last_settlement_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    profit_toman: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    profit_aed: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    settlements: Mapped[list["TradeSettlement"]] = relationship(
        back_populates="trade",
        order_by="TradeSettlement.id",
    )

    def __repr__(self) -> str:
        return (
            f"<Trade {self.trade_number}: {self.trade_type} {self.amount} "
            f"{self.base_currency}@{self.rate} ({self.status})>"
        )


class TradeSettlement(TrackedBase):
    """
    Record of one receipt settling part of one trade leg.

    Contract:
        fifo_sequence counts settlements per (trade, settlement_type),
        starting at 1, in the order they were applied.
    """

    __tablename__ = "trade_settlements"

    __table_args__ = (
        UniqueConstraint(
            "trade_id",
            "receipt_id",
            "settlement_type",
            name="uq_trade_settlement_receipt_leg",
        ),
        Index("idx_trade_settlements_receipt", "receipt_id"),
    )

    trade_id: Mapped[int] = mapped_column(ForeignKey("trades.id"), nullable=False)

    receipt_id: Mapped[int] = mapped_column(
        ForeignKey("payment_receipts.id"),
        nullable=False,
    )

    currency: Mapped[str] = mapped_column(String(5), nullable=False)

    settled_amount: Mapped[Decimal] = mapped_column(nullable=False)

    settlement_type: Mapped[str] = mapped_column(String(5), nullable=False)

    settlement_date: Mapped[date] = mapped_column(Date, nullable=False)

    fifo_sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    trade: Mapped[Trade] = relationship(back_populates="settlements")

    def __repr__(self) -> str:
        return (
            f"<TradeSettlement trade={self.trade_id} receipt={self.receipt_id} "
            f"{self.settlement_type} {self.settled_amount} {self.currency}>"
        )
