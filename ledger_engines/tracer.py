"""
ledger_engines.tracer -- LEDGER_ENGINE_TRACE records for netting and FIFO runs.

``@traced_engine`` wraps a pure engine function and, after it returns,
logs at DEBUG which engine ran, its version, how long it took and a
16-hex-char SHA-256 fingerprint of the keyword arguments named in
``fingerprint_fields``.  Re-running a projection over unchanged ledger
state reproduces every fingerprint, so two traces can be diffed to find
the counterparty whose inputs moved.

Arguments are only read.  A named field missing from kwargs hashes as
"null"; positional arguments never contribute.

Usage:
    @traced_engine("payment_netter", "1.0", fingerprint_fields=("currency",))
    def net_payment_events(rows, counterparty_id, currency):
        ...
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import logging
from collections.abc import Callable, Mapping
from decimal import Decimal
from enum import Enum
from functools import wraps
from time import perf_counter
from typing import Any, TypeVar

F = TypeVar("F", bound=Callable[..., Any])

_logger = logging.getLogger("ledger_kernel.engines.tracer")


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        value = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if value is None or isinstance(value, (bool, int, str)):
        return value
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """SHA-256 prefix of the named kwargs, canonical JSON with sorted keys."""
    selected = {name: _jsonable(kwargs.get(name)) for name in fingerprint_fields}
    blob = json.dumps(selected, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(blob.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable[[F], F]:
    """Trace each call of the decorated engine function."""

    def wrap(func: F) -> F:
        @wraps(func)
        def traced(*args: Any, **kwargs: Any) -> Any:
            started = perf_counter()
            result = func(*args, **kwargs)
            elapsed_ms = round((perf_counter() - started) * 1000, 2)

            _logger.debug(
                "LEDGER_ENGINE_TRACE",
                extra={
                    "trace_type": "LEDGER_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": (
                        compute_input_fingerprint(fingerprint_fields, kwargs)
                        if fingerprint_fields
                        else ""
                    ),
                    "duration_ms": elapsed_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return traced  # type: ignore[return-value]

    return wrap
