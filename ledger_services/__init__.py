"""
ledger_services -- Package init and public API.

Responsibility:
    Orchestration services that compose the pure settlement engines
    (ledger_engines/) with a ledger store.

Architecture position:
    Services -- orchestration over engines + kernel.

        ledger_services/ -> ledger_engines/  (allowed)
        ledger_services/ -> ledger_kernel/   (allowed)
        ledger_engines/  -> ledger_services/ (FORBIDDEN)
        ledger_kernel/   -> ledger_services/ (FORBIDDEN)
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("services")

from ledger_services.settlement_progress_service import (
    CounterpartyAllocation,
    LegProgress,
    SettlementDrift,
    SettlementProgressService,
    TradeSettlementProgress,
)

__all__ = [
    "CounterpartyAllocation",
    "LegProgress",
    "SettlementDrift",
    "SettlementProgressService",
    "TradeSettlementProgress",
]
