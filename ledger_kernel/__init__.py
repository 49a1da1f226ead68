"""
Ledger Kernel - AED/TOMAN settlement ledger

A double-currency trading ledger with:
- Trades between the firm and its counterparties
- Payment receipts against counterparty bank accounts
- Stateless, FIFO-based settlement progress
- Decimal-only amounts with explicit precision
"""

__version__ = "0.1.0"
