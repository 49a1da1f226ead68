"""ORM models for the ledger kernel."""

from ledger_kernel.models.party import BankAccount, TradingParty
from ledger_kernel.models.receipt import PaymentReceipt
from ledger_kernel.models.trade import Trade, TradeSettlement

__all__ = [
    "TradingParty",
    "BankAccount",
    "Trade",
    "TradeSettlement",
    "PaymentReceipt",
]
