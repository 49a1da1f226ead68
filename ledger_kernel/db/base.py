"""
Module: ledger_kernel.db.base
Responsibility: Declarative base shared by the party, trade, settlement and
    receipt tables, plus the created/updated timestamp mixin.
Architecture position: Kernel > DB.  Imported by every model module; imports
    nothing else from the ledger.

Invariants enforced:
    - Integer ids grow with insertion order.  They are the last tie-break
      after ``created_at`` when the FIFO queue and payment rows are ordered.
    - Python ``Decimal`` columns map to Numeric(18, 2).  Amounts are never
      stored as floats.
    - ``created_at`` is assigned client-side with microsecond resolution so
      trades entered in the same second still queue deterministically.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import ClassVar

from sqlalchemy import BigInteger, Date, DateTime, Integer, Numeric
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite only autoincrements columns declared exactly as INTEGER PRIMARY KEY.
PrimaryKeyInteger = BigInteger().with_variant(Integer(), "sqlite")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Every ledger table: autoincrement ``id`` and the column type map."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(18, 2, asdecimal=True),
        datetime: DateTime(timezone=True),
        date: Date,
        int: BigInteger,
    }

    id: Mapped[int] = mapped_column(
        PrimaryKeyInteger,
        primary_key=True,
        autoincrement=True,
    )


class TrackedBase(Base):
    """
    Adds ``created_at`` (fixed at insert) and ``updated_at`` (bumped on
    every update).  ``created_at`` may be supplied explicitly when importing
    historical rows; the FIFO queue honours whatever value is stored.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
