"""Tagged logging helper shared by the analyzer, generator and CLI.

Messages are emitted as ``[LEVEL][Tag] message | key=value ...`` so batch
runs over a whole song stay greppable per subsystem. Pipeline stages
(analysis, placement) are wrapped in ``log_stage`` to report their duration.
"""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator

DEFAULT_TAG = "Level"

_logger = logging.getLogger("beatcourse")
if not _logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("[%(levelname)s][%(tag)s] %(message)s"))
    _logger.addHandler(_handler)
    _logger.setLevel(logging.INFO)


class _TagAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: dict[str, Any]):
        kwargs.setdefault("extra", {})["tag"] = kwargs.pop("tag", DEFAULT_TAG)
        return msg, kwargs


_adapter = _TagAdapter(_logger, {})


def _level_value(level: str | None) -> int:
    name = (level or "INFO").upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    return value if isinstance(value, int) else logging.INFO


def _format_fields(fields: dict[str, Any]) -> str:
    return " ".join(f"{k}={v}" for k, v in fields.items())


def log_event(level: str, tag: str, message: str, **fields: Any) -> None:
    """Log a message with level+tag, appending key=value fields when provided."""
    if fields:
        message = f"{message} | {_format_fields(fields)}"
    _adapter.log(_level_value(level), message, tag=tag)


@contextmanager
def log_stage(tag: str, stage: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """Log *stage* start at DEBUG and completion at INFO with its elapsed time.

    The yielded dict may be filled with result fields (counts etc.) that are
    appended to the completion line. A stage that raises is logged at ERROR
    and the exception propagates.
    """
    results: dict[str, Any] = {}
    log_event("DEBUG", tag, f"{stage} started", **fields)
    started = time.perf_counter()
    try:
        yield results
    except Exception as e:
        log_event("ERROR", tag, f"{stage} failed", error=e,
                  seconds=f"{time.perf_counter() - started:.3f}")
        raise
    log_event("INFO", tag, f"{stage} done", **fields, **results,
              seconds=f"{time.perf_counter() - started:.3f}")


def set_log_level(level: str | None) -> None:
    """Set global log level (DEBUG/INFO/WARN/WARNING/ERROR); unknown names mean INFO."""
    _logger.setLevel(_level_value(level))


def get_log_level() -> str:
    """Return current global log level name."""
    return logging.getLevelName(_logger.level)
