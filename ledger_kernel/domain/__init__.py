"""Pure domain types for the ledger kernel (no I/O)."""
