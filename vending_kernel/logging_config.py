"""
Structured logging for the vending sales core.

Every record is written as one JSON object per line::

    {"ts": "2025-02-10T07:30:00.125+00:00", "level": "INFO",
     "logger": "vending_kernel.ingestion.import_service",
     "message": "import_completed", "batch_id": "3f9a1c2e",
     "producer": "ingestion", "imported": 120, "duplicates": 4}

Messages are event names; details travel in ``extra``. Fields bound through
LogContext (the running import batch, the machine being reconciled, ...)
are added to every record emitted inside the binding. Background archive
threads bind the batch id again themselves because context does not follow
work handed to an executor.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

CONTEXT_FIELDS: tuple[str, ...] = ("correlation_id", "batch_id", "producer", "machine_code")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("vending_log_context", default=_EMPTY)


def _merged(current: Mapping[str, str], fields: Mapping[str, str | None]) -> Mapping[str, str]:
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
    merged = dict(current)
    merged.update((key, value) for key, value in fields.items() if value is not None)
    return MappingProxyType(merged)


class LogContext:
    """
    Log fields scoped to the current thread or asyncio task.

    Only names in CONTEXT_FIELDS are accepted; None values leave a field
    as it was.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        _context.set(_merged(_context.get(), fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore."""
        token = _context.set(_merged(_context.get(), fields))
        try:
            yield
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON formatting
# ---------------------------------------------------------------------------

_RECORD_ATTRIBUTES: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Record -> single JSON line: base fields, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in entry
        )

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            entry["exc_type"] = type(exc).__name__
            entry["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if isinstance(code, str):
                entry["exc_code"] = code
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_json_default, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "vending_kernel"

_setup_lock = threading.Lock()
_installed_handler: logging.Handler | None = None


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``vending_kernel`` namespace, e.g. ``ingestion.archive``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install one JSON handler on the ``vending_kernel`` logger.

    Only the first call takes effect until reset_logging(). The engine
    initializer calls this with defaults, so an entry point that wants a
    different level must call it before initializing the database.
    """
    global _installed_handler
    with _setup_lock:
        if _installed_handler is not None:
            return
        _installed_handler = handler or logging.StreamHandler(stream or sys.stderr)
        _installed_handler.setFormatter(StructuredFormatter())

        root = logging.getLogger(_LOGGER_PREFIX)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_installed_handler)


def reset_logging() -> None:
    """Remove every handler and fall back to WARNING. For tests."""
    global _installed_handler
    with _setup_lock:
        root = logging.getLogger(_LOGGER_PREFIX)
        root.handlers.clear()
        root.setLevel(logging.WARNING)
        _installed_handler = None
