"""
SettlementConfig schema.

Frozen dataclasses the loader parses YAML into.  This is the only shape of
configuration the rest of the system sees.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ledger_kernel.domain.currency import LEDGER_CURRENCIES, Currency


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for ledger_kernel.db.engine."""

    url: str
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5


@dataclass(frozen=True)
class SettlementSettings:
    """Settlement engine knobs."""

    currencies: tuple[Currency, ...] = LEDGER_CURRENCIES
    ratio_places: int | None = None
    skip_deleted_on_process: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """Root log level for the ledger_kernel logger hierarchy."""

    level: str = "INFO"


@dataclass(frozen=True)
class SettlementConfig:
    """The complete, validated runtime configuration."""

    version: int
    database: DatabaseConfig
    settlement: SettlementSettings = field(default_factory=SettlementSettings)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    checksum: str = ""
    source: str | None = None
