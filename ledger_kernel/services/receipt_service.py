"""
Service layer for payment receipt lifecycle operations.

Soft-deletes and restores receipts with full audit fields, keeping the
persisted settlement records in step: deletion reverses the receipt's
settlements, restoration processes it again.

Receipts are never physically removed.  Progress projection reads deleted
rows and inverts their sign, so a deleted receipt stops counting toward a
trade without rewriting history.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.currency import Currency, parse_currency
from ledger_kernel.domain.dtos import DeletionReason
from ledger_kernel.exceptions import (
    InvalidDeletionReasonError,
    ReceiptAlreadyDeletedError,
    ReceiptNotDeletedError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.receipt import PaymentReceipt
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.settlement_service import SettlementService

logger = get_logger("services.receipt")

UNKNOWN_ACTOR = "Unknown"


@dataclass(frozen=True)
class ReceiptInfo:
    """Immutable DTO for a payment receipt's lifecycle state."""

    id: int
    amount: Decimal
    currency: Currency
    receipt_date: date
    is_deleted: bool
    deleted_at: datetime | None
    deletion_reason: str | None
    deletion_reason_category: DeletionReason | None
    deleted_by: str | None
    is_restored: bool
    restored_at: datetime | None
    restoration_reason: str | None
    restored_by: str | None


class ReceiptService(BaseService[PaymentReceipt]):
    """
    Service for soft-deleting and restoring payment receipts.

    Both operations flush within the caller's transaction, so the receipt
    change and the settlement change commit or roll back together.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settlement_service: SettlementService | None = None,
    ):
        super().__init__(session, clock)
        self.settlement_service = settlement_service or SettlementService(
            session, clock=self.clock
        )

    def _to_dto(self, receipt: PaymentReceipt) -> ReceiptInfo:
        """Convert ORM PaymentReceipt to ReceiptInfo DTO."""
        category = receipt.deletion_reason_category
        return ReceiptInfo(
            id=receipt.id,
            amount=Decimal(receipt.amount),
            currency=parse_currency(receipt.currency),
            receipt_date=receipt.receipt_date,
            is_deleted=bool(receipt.is_deleted),
            deleted_at=receipt.deleted_at,
            deletion_reason=receipt.deletion_reason,
            deletion_reason_category=DeletionReason(category) if category else None,
            deleted_by=receipt.deleted_by,
            is_restored=bool(receipt.is_restored),
            restored_at=receipt.restored_at,
            restoration_reason=receipt.restoration_reason,
            restored_by=receipt.restored_by,
        )

    def get_by_id(self, receipt_id: int) -> ReceiptInfo:
        """
        Get receipt by ID.

        Raises:
            ReceiptNotFoundError: If receipt doesn't exist.
        """
        return self._to_dto(self._require_receipt(receipt_id))

    def soft_delete_receipt(
        self,
        receipt_id: int,
        reason: str,
        reason_category: DeletionReason | str,
        deleted_by: str | None = None,
    ) -> ReceiptInfo:
        """
        Mark a receipt deleted and reverse its settlements.

        Args:
            receipt_id: Receipt to delete.
            reason: Free-text explanation.
            reason_category: duplicate, funds_returned, receipt_not_landed,
                data_error or other.
            deleted_by: Actor name; "Unknown" when omitted.

        Raises:
            InvalidDeletionReasonError: If reason_category is not accepted.
            ReceiptNotFoundError: If receipt doesn't exist.
            ReceiptAlreadyDeletedError: If receipt is already deleted.
        """
        try:
            category = DeletionReason(reason_category)
        except ValueError:
            raise InvalidDeletionReasonError(
                str(reason_category),
                tuple(r.value for r in DeletionReason),
            ) from None

        receipt = self._require_receipt(receipt_id)
        if receipt.is_deleted:
            raise ReceiptAlreadyDeletedError(receipt_id)

        receipt.is_deleted = True
        receipt.deleted_at = self.clock.now()
        receipt.deletion_reason = reason
        receipt.deletion_reason_category = category.value
        receipt.deleted_by = deleted_by or UNKNOWN_ACTOR
        self.session.flush()

        reversed_lines = self.settlement_service.reverse_receipt_settlement(receipt.id)

        logger.info("receipt_soft_deleted", extra={
            "receipt_id": receipt.id,
            "reason_category": category.value,
            "deleted_by": receipt.deleted_by,
            "settlements_reversed": len(reversed_lines),
        })
        return self._to_dto(receipt)

    def restore_receipt(
        self,
        receipt_id: int,
        reason: str,
        restored_by: str | None = None,
    ) -> ReceiptInfo:
        """
        Restore a soft-deleted receipt and process its settlement again.

        Raises:
            ReceiptNotFoundError: If receipt doesn't exist.
            ReceiptNotDeletedError: If receipt is not deleted.
        """
        receipt = self._require_receipt(receipt_id)
        if not receipt.is_deleted:
            raise ReceiptNotDeletedError(receipt_id)

        receipt.is_deleted = False
        receipt.is_restored = True
        receipt.restored_at = self.clock.now()
        receipt.restoration_reason = reason
        receipt.restored_by = restored_by or UNKNOWN_ACTOR
        self.session.flush()

        outcome = self.settlement_service.process_receipt(receipt.id)

        logger.info("receipt_restored", extra={
            "receipt_id": receipt.id,
            "restored_by": receipt.restored_by,
            "settlements_recorded": len(outcome.lines),
        })
        return self._to_dto(receipt)
