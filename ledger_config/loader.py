"""
Configuration Loader (``ledger_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the typed
``ledger_config.schema`` dataclasses.  The single public entry point for
runtime config is ``ledger_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* All validation problems in one file are collected and reported together
  in a single ``ConfigValidationError``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the parsed
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid values or missing required keys -> ``ConfigValidationError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any

import yaml

from ledger_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    SettlementConfig,
    SettlementSettings,
)
from ledger_kernel.domain.currency import LEDGER_CURRENCIES, Currency
from ledger_kernel.exceptions import ConfigValidationError

SUPPORTED_VERSIONS = frozenset({1})

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed configuration document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_database(data: dict[str, Any], errors: list[str]) -> DatabaseConfig | None:
    """Parse the ``database`` section."""
    url = data.get("url")
    if not isinstance(url, str) or not url.strip():
        errors.append("database.url must be a non-empty string")
        return None

    pool_size = data.get("pool_size", 10)
    if not _is_int(pool_size) or pool_size < 1:
        errors.append("database.pool_size must be a positive integer")

    max_overflow = data.get("max_overflow", 5)
    if not _is_int(max_overflow) or max_overflow < 0:
        errors.append("database.max_overflow must be a non-negative integer")

    return DatabaseConfig(
        url=url.strip(),
        echo=bool(data.get("echo", False)),
        pool_size=pool_size,
        max_overflow=max_overflow,
    )


def parse_settlement(data: dict[str, Any], errors: list[str]) -> SettlementSettings:
    """Parse the ``settlement`` section."""
    currencies: list[Currency] = []
    unsupported = False
    for code in data.get("currencies", [c.value for c in LEDGER_CURRENCIES]):
        try:
            currencies.append(Currency(str(code).upper()))
        except ValueError:
            unsupported = True
            errors.append(f"settlement.currencies: unsupported currency {code!r}")
    # Progress is always projected for both currencies; the list may only restate them.
    if not unsupported and sorted(currencies) != sorted(LEDGER_CURRENCIES):
        errors.append(
            "settlement.currencies must list AED and TOMAN exactly once each, "
            f"got {[c.value for c in currencies]}"
        )

    ratio_places = data.get("ratio_places")
    if ratio_places is not None and (not _is_int(ratio_places) or not 0 <= ratio_places <= 28):
        errors.append("settlement.ratio_places must be null or an integer in [0, 28]")

    return SettlementSettings(
        currencies=LEDGER_CURRENCIES,
        ratio_places=ratio_places,
        skip_deleted_on_process=bool(data.get("skip_deleted_on_process", True)),
    )


def parse_logging(data: dict[str, Any], errors: list[str]) -> LoggingConfig:
    """Parse the ``logging`` section."""
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        errors.append(f"logging.level must be one of {sorted(_LOG_LEVELS)}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any], source: str | None = None) -> SettlementConfig:
    """
    Parse and validate a configuration document.

    Raises:
        ConfigValidationError: listing every problem found.
    """
    errors: list[str] = []

    version = data.get("version")
    if version not in SUPPORTED_VERSIONS:
        errors.append(
            f"version must be one of {sorted(SUPPORTED_VERSIONS)}, got {version!r}"
        )

    for section in ("database", "settlement", "logging"):
        if section in data and not isinstance(data[section], dict):
            errors.append(f"{section} must be a mapping")

    if "database" not in data:
        errors.append("database section is required")

    def section(name: str) -> dict[str, Any]:
        value = data.get(name)
        return value if isinstance(value, dict) else {}

    database = parse_database(section("database"), errors) if "database" in data else None
    settlement = parse_settlement(section("settlement"), errors)
    log_config = parse_logging(section("logging"), errors)

    if errors:
        raise ConfigValidationError(errors, source=source)

    return SettlementConfig(
        version=version,
        database=database,
        settlement=settlement,
        logging=log_config,
        checksum=compute_checksum(data),
        source=source,
    )


def log_level(config: SettlementConfig) -> int:
    """Numeric logging level for ``configure_logging``."""
    return logging.getLevelName(config.logging.level)
