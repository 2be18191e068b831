"""
app/logging_utils.py

Structured log lines for import, finalize and export job lifecycle events.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **fields}
    logger.log(level, json.dumps(payload, default=_json_default, sort_keys=True))


@contextmanager
def timed_event(logger: logging.Logger, event: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """
    Log ``event`` with ``duration_ms`` once the block finishes without error.

    The yielded dict can be updated inside the block to attach result fields.
    Nothing is logged when the block raises.
    """

    extra: dict[str, Any] = dict(fields)
    started = time.perf_counter()
    yield extra
    extra["duration_ms"] = int((time.perf_counter() - started) * 1000)
    log_event(logger, logging.INFO, event, **extra)
