"""Kernel writer services: flush-only, caller owns the transaction."""

from ledger_kernel.services.base import BaseService
from ledger_kernel.services.receipt_service import ReceiptInfo, ReceiptService
from ledger_kernel.services.settlement_service import (
    ReprocessSummary,
    SettlementLineInfo,
    SettlementOutcome,
    SettlementService,
)

__all__ = [
    "BaseService",
    "ReceiptInfo",
    "ReceiptService",
    "ReprocessSummary",
    "SettlementLineInfo",
    "SettlementOutcome",
    "SettlementService",
]
