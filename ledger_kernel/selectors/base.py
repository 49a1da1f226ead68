"""
Module: ledger_kernel.selectors.base
Responsibility: Shared plumbing for SQL-backed read selectors: holds the
    caller's Session and turns driver failures into ``LedgerStoreError``.
Architecture position: Kernel > Selectors.  May import from db/, domain/
    and models/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only: selectors never add, delete, flush or commit.
    - The caller owns the Session, so every query a selector runs for one
      progress projection reads the same transaction snapshot.

Failure modes:
    - LedgerStoreError (chained to the SQLAlchemyError) from ``_execute``.
"""

from abc import ABC
from typing import Any, Generic, TypeVar

from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base
from ledger_kernel.exceptions import LedgerStoreError
from ledger_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)

logger = get_logger("selectors")


class BaseSelector(ABC, Generic[ModelType]):
    """Read-only query base; subclasses return DTOs, never ORM rows."""

    def __init__(self, session: Session):
        self.session = session

    def _execute(self, operation: str, stmt: Any) -> Result:
        """Run ``stmt``; a driver error becomes ``LedgerStoreError(operation)``."""
        try:
            return self.session.execute(stmt)
        except SQLAlchemyError as exc:
            logger.error(
                "ledger_store_read_failed",
                extra={"operation": operation, "selector": type(self).__name__},
                exc_info=True,
            )
            raise LedgerStoreError(operation, str(exc)) from exc
