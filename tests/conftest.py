"""
Pytest fixtures for the settlement ledger test suite.

Provides:
- An in-memory SQLite database per test (tables created fresh)
- Factories for trading parties, bank accounts, trades and receipts
- Structured log capture

Environment Variables:
- DATABASE_URL: optional database URL.  Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from io import StringIO
from itertools import count

import pytest

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models import (
    BankAccount,
    PaymentReceipt,
    Trade,
    TradingParty,
)
from ledger_kernel.selectors import LedgerSelector
from ledger_kernel.services import ReceiptService, SettlementService
from ledger_services import SettlementProgressService

DEFAULT_DATABASE_URL = "sqlite:///:memory:"

BASE_TIME = datetime(2024, 1, 1, 9, 0, 0, tzinfo=timezone.utc)

TRADE_DATE = date(2024, 1, 1)


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, settlement_service):
            settlement_service.process_receipt(receipt.id)
            logs = captured_logs()
            assert any(r["message"] == "settlement_receipt_processed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh database with all ledger tables for one test."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine):
    """Session for one test; services flush, the test never needs to commit."""
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def ledger_store(session):
    return LedgerSelector(session)


@pytest.fixture
def progress_service(ledger_store):
    return SettlementProgressService(ledger_store)


@pytest.fixture
def settlement_service(session, clock):
    return SettlementService(session, clock=clock)


@pytest.fixture
def receipt_service(session, clock, settlement_service):
    return ReceiptService(session, clock=clock, settlement_service=settlement_service)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def next_timestamp():
    """Strictly increasing created_at values, one second apart."""
    seconds = count()

    def _next() -> datetime:
        return BASE_TIME + timedelta(seconds=next(seconds))

    return _next


@pytest.fixture
def make_party(session):
    def _make(name: str = "Counterparty") -> TradingParty:
        party = TradingParty(name=name)
        session.add(party)
        session.flush()
        return party

    return _make


@pytest.fixture
def make_account(session):
    numbers = count(1)

    def _make(owner: TradingParty, currency: str = "TOMAN") -> BankAccount:
        account = BankAccount(
            account_number=f"IR{next(numbers):022d}",
            bank_name="Mellat",
            currency=currency,
            counterpart_id=owner.id,
        )
        session.add(account)
        session.flush()
        return account

    return _make


@pytest.fixture
def make_trade(session, next_timestamp):
    numbers = count(1)

    def _make(
        counterparty: TradingParty | None,
        trade_type: str = "BUY",
        amount: str | Decimal = "1000",
        rate: str | Decimal = "1",
        base_currency: str = "AED",
        quote_currency: str = "TOMAN",
        total_value: str | Decimal | None = None,
        created_at: datetime | None = None,
    ) -> Trade:
        amount = Decimal(amount)
        rate = Decimal(rate)
        trade = Trade(
            trade_number=f"T-{next(numbers):05d}",
            trade_type=trade_type,
            base_currency=base_currency,
            quote_currency=quote_currency,
            amount=amount,
            rate=rate,
            total_value=Decimal(total_value) if total_value is not None else amount * rate,
            counterparty_id=counterparty.id if counterparty is not None else None,
            trade_date=TRADE_DATE,
            settlement_date_base=TRADE_DATE,
            settlement_date_quote=TRADE_DATE,
            created_at=created_at or next_timestamp(),
        )
        session.add(trade)
        session.flush()
        return trade

    return _make


@pytest.fixture
def make_aed_receipt(session, next_timestamp):
    def _make(
        party: TradingParty | None,
        amount: str | Decimal,
        receipt_type: str | None = "receive",
        receipt_date: date = TRADE_DATE,
        created_at: datetime | None = None,
        is_deleted: bool = False,
    ) -> PaymentReceipt:
        receipt = PaymentReceipt(
            tracking_last_5="00001",
            amount=Decimal(amount),
            currency="AED",
            receipt_date=receipt_date,
            receipt_type=receipt_type,
            trading_party_id=party.id if party is not None else None,
            is_deleted=is_deleted,
            created_at=created_at or next_timestamp(),
        )
        session.add(receipt)
        session.flush()
        return receipt

    return _make


@pytest.fixture
def make_toman_receipt(session, next_timestamp):
    def _make(
        amount: str | Decimal,
        payer: TradingParty | None = None,
        receiver_account: BankAccount | None = None,
        receipt_date: date = TRADE_DATE,
        created_at: datetime | None = None,
        is_deleted: bool = False,
    ) -> PaymentReceipt:
        receipt = PaymentReceipt(
            tracking_last_5="00002",
            amount=Decimal(amount),
            currency="TOMAN",
            receipt_date=receipt_date,
            payer_id=payer.id if payer is not None else None,
            receiver_account_id=receiver_account.id if receiver_account is not None else None,
            is_deleted=is_deleted,
            created_at=created_at or next_timestamp(),
        )
        session.add(receipt)
        session.flush()
        return receipt

    return _make
