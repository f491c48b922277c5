"""
Structured JSON logging for the compliance kernel.

Every record under the ``compliance_kernel`` logger is rendered as one
JSON object per line.  Request-scoped fields (request id, acting user,
role, resource id) are bound with ``LogContext.bind`` by the HTTP
middleware and the access gate, and are stamped onto every record
emitted inside the block.
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
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import IO, Any

ROOT_LOGGER = "compliance_kernel"

CONTEXT_FIELDS = ("request_id", "actor_id", "role", "resource_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("compliance_log_context", default=_EMPTY)


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    @staticmethod
    def current() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """
        Layer ``fields`` over the current context for the duration of the block.

        None values leave the outer value in place.  Names outside
        ``CONTEXT_FIELDS`` are a programming error.
        """
        unknown = set(fields) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context fields: {sorted(unknown)}")

        merged = dict(_context.get())
        merged.update({k: v for k, v in fields.items() if v is not None})
        token = _context.set(MappingProxyType(merged))
        try:
            yield
        finally:
            _context.reset(token)


_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, bound context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_context.get(),
        }
        entry.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED and key not in entry
        )

        if record.exc_info and record.exc_info[1] is not None:
            error = record.exc_info[1]
            entry["error"] = {
                "type": type(error).__name__,
                "message": str(error),
                # Kernel errors carry a machine code plus their structured attributes
                **({"code": error.code} if hasattr(error, "code") else {}),
                **{k: v for k, v in vars(error).items() if not k.startswith("_")},
            }
            entry["traceback"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """``get_logger("services.audit_ledger")`` -> ``compliance_kernel.services.audit_ledger``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(*, level: int | str = logging.INFO, stream: IO[str] | None = None) -> None:
    """
    Attach one JSON handler to the ``compliance_kernel`` logger.

    Only the first call has an effect, so the engine, the API factory and
    the CLI can all call it.  ``level`` accepts a number or a level name.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(handler)


def reset_logging() -> None:
    """Detach handlers and allow configure_logging to run again (tests)."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.WARNING)
