"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the settlement engine (API handlers, batch reprocessing, tests)
must react to failures by TYPE, never by parsing messages:

    try:
        progress = service.recompute_progress(trade_id)
    except TradeNotFoundError as e:
        return api_response(status=404, code=e.code, trade_id=e.trade_id)
    except LedgerStoreError as e:
        log.error("store_failure", exc_info=True)
        return api_response(status=500, code=e.code)

Every exception carries:
  1. A ``code`` class attribute (machine-readable, API-safe)
  2. Structured attributes describing the failing entity

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- TradeError
    |   +-- TradeNotFoundError
    |
    +-- ReceiptError
    |   +-- ReceiptNotFoundError
    |   +-- ReceiptAlreadyDeletedError
    |   +-- ReceiptNotDeletedError
    |   +-- InvalidDeletionReasonError
    |
    +-- CurrencyError
    |   +-- UnsupportedCurrencyError
    |
    +-- LedgerStoreError
    |
    +-- ConfigError
        +-- ConfigValidationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category  | Code                      | When Raised
----------|---------------------------|-----------------------------------------
Trade     | TRADE_NOT_FOUND           | Trade ID doesn't exist
----------|---------------------------|-----------------------------------------
Receipt   | RECEIPT_NOT_FOUND         | Receipt ID doesn't exist
          | RECEIPT_ALREADY_DELETED   | Soft-deleting a deleted receipt
          | RECEIPT_NOT_DELETED       | Restoring a live receipt
          | INVALID_DELETION_REASON   | Unknown deletion reason category
----------|---------------------------|-----------------------------------------
Currency  | UNSUPPORTED_CURRENCY      | Currency outside {AED, TOMAN}
----------|---------------------------|-----------------------------------------
Store     | LEDGER_STORE_ERROR        | Underlying read/write failed
----------|---------------------------|-----------------------------------------
Config    | CONFIG_VALIDATION_ERROR   | Configuration file failed validation

===============================================================================
WHAT IS *NOT* AN ERROR
===============================================================================

The progress computation never raises for data-shaped conditions:
  - Trade without counterparty       -> zero obligation, zero progress
  - No payment history               -> zero pool, zero progress
  - Negative effective pool          -> clamped to zero
  - Malformed trade (base == quote)  -> zero obligation on both legs

Only store failures propagate out of a progress computation, wrapped in
LedgerStoreError so that a financial ledger fails loudly instead of
returning wrong numbers.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Trade-related exceptions


class TradeError(LedgerKernelError):
    """Base exception for trade-related errors."""

    code: str = "TRADE_ERROR"


class TradeNotFoundError(TradeError):
    """Trade with given ID was not found."""

    code: str = "TRADE_NOT_FOUND"

    def __init__(self, trade_id: int | str):
        self.trade_id = trade_id
        super().__init__(f"Trade not found: {trade_id}")


# Receipt-related exceptions


class ReceiptError(LedgerKernelError):
    """Base exception for payment receipt errors."""

    code: str = "RECEIPT_ERROR"


class ReceiptNotFoundError(ReceiptError):
    """Payment receipt with given ID was not found."""

    code: str = "RECEIPT_NOT_FOUND"

    def __init__(self, receipt_id: int | str):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} not found")


class ReceiptAlreadyDeletedError(ReceiptError):
    """Receipt is already soft-deleted."""

    code: str = "RECEIPT_ALREADY_DELETED"

    def __init__(self, receipt_id: int | str):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} is already deleted")


class ReceiptNotDeletedError(ReceiptError):
    """Receipt cannot be restored because it is not deleted."""

    code: str = "RECEIPT_NOT_DELETED"

    def __init__(self, receipt_id: int | str):
        self.receipt_id = receipt_id
        super().__init__(f"Receipt {receipt_id} is not deleted")


class InvalidDeletionReasonError(ReceiptError):
    """Deletion reason category is not one of the accepted categories."""

    code: str = "INVALID_DELETION_REASON"

    def __init__(self, reason_category: str, allowed: tuple[str, ...]):
        self.reason_category = reason_category
        self.allowed = allowed
        super().__init__(
            f"Invalid deletion reason category {reason_category!r}; "
            f"expected one of {', '.join(allowed)}"
        )


# Currency-related exceptions


class CurrencyError(LedgerKernelError):
    """Base exception for currency errors."""

    code: str = "CURRENCY_ERROR"


class UnsupportedCurrencyError(CurrencyError):
    """Currency is not one of the ledger's two currencies."""

    code: str = "UNSUPPORTED_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Unsupported currency: {currency}")


# Store exceptions


class LedgerStoreError(LedgerKernelError):
    """
    A read or write against the ledger store failed.

    Raised by selectors and services when the underlying database call
    fails.  The original exception is chained via ``__cause__``.
    """

    code: str = "LEDGER_STORE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Ledger store {operation} failed: {detail}")


# Configuration exceptions


class ConfigError(LedgerKernelError):
    """Base exception for configuration errors."""

    code: str = "CONFIG_ERROR"


class ConfigValidationError(ConfigError):
    """Configuration failed structural or value validation."""

    code: str = "CONFIG_VALIDATION_ERROR"

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = errors
        self.source = source
        where = f" in {source}" if source else ""
        super().__init__(
            f"Configuration validation failed{where}: {'; '.join(errors)}"
        )
