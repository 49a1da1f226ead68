"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the pure settlement engines.  This is
    the canonical import surface for ledger_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel/domain (and sibling engine modules).
    MUST NOT import ledger_services.

Invariants enforced:
    - Purity: engines never read the clock or the database.  Trades and
      payment rows are passed in by the caller.
    - Decimal-only arithmetic: all monetary amounts and ratios use Decimal.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Netting and allocation calls are traced via ``@traced_engine`` (see
    ``ledger_engines.tracer``), emitting LEDGER_ENGINE_TRACE records with an
    input fingerprint and duration.

Usage:
    from ledger_engines import resolve_obligation, net_payment_events
    from ledger_engines import settlement_applied_to, progress_ratio
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines")

from ledger_engines.fifo import (
    FifoAllocation,
    FifoAllocationLine,
    allocate_queue,
    effective_pool,
    settlement_applied_to,
)
from ledger_engines.netting import (
    PaymentEvent,
    net_payment_events,
    net_settlement,
    signed_amount,
)
from ledger_engines.obligation import (
    Obligation,
    ObligationDirection,
    is_degenerate,
    resolve_obligation,
)
from ledger_engines.progress import TradeProgress, progress_ratio

__all__ = [
    # Obligation
    "Obligation",
    "ObligationDirection",
    "resolve_obligation",
    "is_degenerate",
    # Netting
    "PaymentEvent",
    "net_payment_events",
    "net_settlement",
    "signed_amount",
    # FIFO
    "FifoAllocation",
    "FifoAllocationLine",
    "allocate_queue",
    "effective_pool",
    "settlement_applied_to",
    # Progress
    "TradeProgress",
    "progress_ratio",
]
