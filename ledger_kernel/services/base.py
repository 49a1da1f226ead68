"""
BaseService -- common shape of the kernel's writer services.

Responsibility:
    Holds the caller's Session and the injected Clock, and provides the
    receipt lookup both SettlementService and ReceiptService start from.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Writers flush and never commit or roll back.  The caller owns the
    transaction, so a soft-delete and the settlement reversal it triggers
    land together.

Failure modes:
    - ReceiptNotFoundError from ``_require_receipt``.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.exceptions import ReceiptNotFoundError
from ledger_kernel.models.receipt import PaymentReceipt

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Writer service over the caller's transaction.

    Settlement dates and audit timestamps come from ``self.clock``, never
    from the wall clock directly.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()

    def _require_receipt(self, receipt_id: int) -> PaymentReceipt:
        receipt = self.session.get(PaymentReceipt, receipt_id)
        if receipt is None:
            raise ReceiptNotFoundError(receipt_id)
        return receipt
