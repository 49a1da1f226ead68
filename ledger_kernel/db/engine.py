"""
Module: ledger_kernel.db.engine
Responsibility: Owns the one SQLAlchemy engine the settlement ledger talks
    to, hands out sessions bound to it, and wraps receipt processing in a
    commit-or-rollback scope.
Architecture position: Kernel > DB.  May import from db/base.py and models
    (for table creation only).  Configuration arrives as a parsed
    ``SettlementConfig``; this module never reads YAML itself.

Invariants enforced:
    - PostgreSQL sessions run at REPEATABLE READ so a progress projection
      sees one snapshot of a counterparty's trades and receipts.
    - In-memory SQLite shares a single connection (StaticPool); every
      session in the process sees the same tables.
    - At most one engine is live.  Re-initializing disposes the previous one.

Failure modes:
    - RuntimeError from any accessor called before an ``init_engine_*``.

Audit relevance:
    Settlement rows and trade status changes written inside
    ``session_scope()`` land together or not at all.
"""

from __future__ import annotations

import atexit
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from ledger_kernel.logging_config import configure_logging, get_logger

if TYPE_CHECKING:
    from ledger_config.schema import SettlementConfig

logger = get_logger("db.engine")

_engine: Engine | None = None
_sessions: sessionmaker[Session] | None = None

_NOT_READY = "Ledger database not initialized. Call init_engine_from_url() first."


def _engine_kwargs(url: str, pool_size: int, max_overflow: int) -> dict[str, Any]:
    parsed = make_url(url)
    if parsed.get_backend_name() == "sqlite":
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if parsed.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": True,
        "isolation_level": "REPEATABLE READ",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 10,
    max_overflow: int = 5,
) -> Engine:
    """
    Bind the ledger to ``database_url``.

    Pool sizing applies to server databases only; SQLite ignores it.
    """
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()

    _engine = create_engine(
        database_url,
        echo=echo,
        **_engine_kwargs(database_url, pool_size, max_overflow),
    )
    _sessions = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "ledger_engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "max_overflow": max_overflow,
        },
    )
    return _engine


def init_engine_from_config(config: SettlementConfig) -> Engine:
    """Configure logging and the engine from a loaded ``SettlementConfig``."""
    configure_logging(level=config.logging.level)
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
    )


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_READY)
    return _engine


def get_session() -> Session:
    """Open a new session on the ledger engine."""
    if _sessions is None:
        raise RuntimeError(_NOT_READY)
    return _sessions()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Commit on clean exit, roll back and re-raise otherwise.

    Usage:
        with session_scope() as session:
            SettlementService(session).process_receipt(receipt_id)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("ledger_transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every ledger table that does not exist yet."""
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401  (registers tables on Base.metadata)

    Base.metadata.create_all(get_engine())
    logger.info("ledger_tables_created", extra={"tables": sorted(Base.metadata.tables)})


def drop_tables() -> None:
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. Test teardown."""
    global _engine, _sessions

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _sessions = None


atexit.register(reset_engine)
