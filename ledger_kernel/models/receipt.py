"""
Module: ledger_kernel.models.receipt
Responsibility: ORM persistence for payment receipts -- TOMAN bank transfers
    and AED cash movements -- including soft-deletion and restoration audit
    fields.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Receipts are never physically deleted.  Deletion sets is_deleted and
      the deletion audit fields; the settlement engine reads deleted rows
      and inverts their sign.
    - currency is AED or TOMAN (ck_receipt_currency).
    - receipt_type, when set, is 'pay' or 'receive' (ck_receipt_type).

Failure modes:
    - IntegrityError on check constraint violations.

Audit relevance:
    deleted_at/deleted_by/deletion_reason and restored_at/restored_by/
    restoration_reason record who changed a receipt's effect on settlement.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class PaymentReceipt(TrackedBase):
    """
    A payment between the firm and a counterparty.

    TOMAN receipts use payer_id / receiver_account_id; AED receipts use
    receipt_type / trading_party_id.
    """

    __tablename__ = "payment_receipts"

    __table_args__ = (
        CheckConstraint(
            "currency IN ('AED', 'TOMAN')",
            name="ck_receipt_currency",
        ),
        CheckConstraint(
            "receipt_type IS NULL OR receipt_type IN ('pay', 'receive')",
            name="ck_receipt_type",
        ),
        Index("idx_payment_receipts_tracking", "tracking_last_5"),
        Index("idx_payment_receipts_payer", "payer_id"),
        Index("idx_payment_receipts_trading_party", "trading_party_id"),
        Index("idx_payment_receipts_order", "receipt_date", "created_at"),
    )

    tracking_last_5: Mapped[str] = mapped_column(String(5), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    currency: Mapped[str] = mapped_column(String(5), nullable=False)

    receipt_date: Mapped[date] = mapped_column(Date, nullable=False)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # TOMAN bank transfers
    payer_id: Mapped[int | None] = mapped_column(
        ForeignKey("trading_parties.id"),
        nullable=True,
    )

    receiver_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("bank_accounts.id"),
        nullable=True,
    )

    # AED cash
    receipt_type: Mapped[str | None] = mapped_column(String(10), nullable=True)

    trading_party_id: Mapped[int | None] = mapped_column(
        ForeignKey("trading_parties.id"),
        nullable=True,
    )

    individual_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Soft deletion
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    deletion_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    deletion_reason_category: Mapped[str | None] = mapped_column(
        String(32), nullable=True
    )

    deleted_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Restoration
    is_restored: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    restored_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    restoration_reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    restored_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    def __repr__(self) -> str:
        state = " deleted" if self.is_deleted else ""
        return f"<PaymentReceipt {self.id}: {self.amount} {self.currency}{state}>"
