"""
ledger_config -- single public entrypoint for settlement ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a ``SettlementConfig`` -- frozen,
    validated, checksummed.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Validation: the document must pass ``parse_config`` before a
      ``SettlementConfig`` is produced.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigValidationError`` -- schema or value validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``LEDGER_CONFIG_TRACE`` log entry with the source path, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ledger_config.loader import load_yaml_file, log_level, parse_config
from ledger_config.schema import (
    DatabaseConfig,
    LoggingConfig,
    SettlementConfig,
    SettlementSettings,
)

_logger = logging.getLogger("ledger_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(config_path: Path | str | None = None) -> SettlementConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML file to load.  The bundled ``defaults.yaml`` is
            used when omitted.

    Returns:
        Validated SettlementConfig.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)
    config = parse_config(data, source=str(path))

    _logger.info(
        "LEDGER_CONFIG_TRACE",
        extra={
            "trace_type": "LEDGER_CONFIG_TRACE",
            "config_source": str(path),
            "config_version": config.version,
            "checksum": config.checksum,
            "currencies": [c.value for c in config.settlement.currencies],
        },
    )
    return config


__all__ = [
    "get_active_config",
    "log_level",
    "DEFAULT_CONFIG_PATH",
    "SettlementConfig",
    "DatabaseConfig",
    "SettlementSettings",
    "LoggingConfig",
]
