"""
Module: ledger_kernel.models.party
Responsibility: ORM persistence for trading parties (the counterparties the
    firm trades with) and the bank accounts they own.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain enums only.  MUST NOT import from services/, selectors/, or outer
    layers.

Invariants enforced:
    - Every bank account belongs to exactly one trading party
      (counterpart_id NOT NULL).  The owner is how a TOMAN transfer *to* a
      counterparty is recognised.
    - account_number is unique.

Failure modes:
    - IntegrityError on duplicate account_number (uq_bank_account_number).

Audit relevance:
    TradingParty is the counterparty identity for every trade and receipt.
    Settlement progress is always computed per (counterparty, currency).
"""

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase


class TradingParty(TrackedBase):
    """
    External party on the other side of a trade.

    Non-goals:
        - Balances are not stored here; settlement state is derived from
          trades and receipts.
    """

    __tablename__ = "trading_parties"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    national_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    notes: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    bank_accounts: Mapped[list["BankAccount"]] = relationship(
        back_populates="counterpart",
    )

    def __repr__(self) -> str:
        return f"<TradingParty {self.id}: {self.name}>"


class BankAccount(TrackedBase):
    """
    Bank account owned by a trading party.

    Contract:
        A TOMAN receipt whose receiver_account_id points at this account
        is money the firm paid to ``counterpart``.
    """

    __tablename__ = "bank_accounts"

    __table_args__ = (
        UniqueConstraint("account_number", name="uq_bank_account_number"),
        Index("idx_bank_accounts_counterpart", "counterpart_id"),
    )

    account_number: Mapped[str] = mapped_column(String(64), nullable=False)

    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)

    currency: Mapped[str] = mapped_column(String(5), nullable=False)

    counterpart_id: Mapped[int] = mapped_column(
        ForeignKey("trading_parties.id"),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    counterpart: Mapped[TradingParty] = relationship(back_populates="bank_accounts")

    def __repr__(self) -> str:
        return f"<BankAccount {self.account_number} ({self.bank_name})>"
