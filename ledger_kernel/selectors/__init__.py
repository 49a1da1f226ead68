"""Selectors for the ledger kernel (read side)."""

from ledger_kernel.selectors.ledger_store import (
    InMemoryLedgerStore,
    LedgerSelector,
    LedgerStore,
    trade_to_view,
)

__all__ = [
    "LedgerStore",
    "LedgerSelector",
    "InMemoryLedgerStore",
    "trade_to_view",
]
