"""
Structured JSON logging for the roadmap kernel.

Every record under the ``roadmap_kernel`` logger becomes one JSON line:
the envelope (``ts``, ``level``, ``logger``, ``message``), then whatever
approval context is bound (``correlation_id``, ``operation``,
``project_id``, ``workflow_id``, ``actor_id``), then the call's ``extra``
fields.  A logged RoadmapKernelError contributes its ``code`` and its
structured attributes as ``exc_*`` fields, so an OutOfSequenceError shows
up with ``exc_actor_role`` and ``exc_expected_role`` alongside the
traceback.
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from roadmap_kernel.exceptions import RoadmapKernelError

_LOGGER_PREFIX = "roadmap_kernel"

CONTEXT_FIELDS = ("correlation_id", "operation", "project_id", "workflow_id", "actor_id")

_bound: ContextVar[dict[str, str] | None] = ContextVar("roadmap_log_context", default=None)


class LogContext:
    """Approval fields stamped onto every record logged while they are bound."""

    @classmethod
    def current(cls) -> dict[str, str]:
        return dict(_bound.get() or {})

    @classmethod
    def clear(cls) -> None:
        _bound.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[dict[str, str]]:
        """
        Layer ``fields`` over the current context for the ``with`` body.

        None values are skipped, so an outer binding shows through.
        Nested binds restore the outer context on exit.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise ValueError(f"Unknown log context fields: {unknown}")

        merged = cls.current()
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _bound.set(merged)
        try:
            yield dict(merged)
        finally:
            _bound.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(str(v) for v in value)
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return repr(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    if isinstance(exc, RoadmapKernelError):
        fields["exc_code"] = exc.code
        for name, value in vars(exc).items():
            if not name.startswith("_"):
                fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.current())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Logger ``roadmap_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_lock = threading.Lock()
_installed: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install the JSON handler on ``roadmap_kernel`` once.

    Later calls are no-ops until reset_logging() removes the handler.
    Handlers added by others (test capture, for one) are left alone.
    """
    global _installed
    root = logging.getLogger(_LOGGER_PREFIX)
    with _lock:
        if _installed is not None and _installed in root.handlers:
            return
        _installed = handler if handler is not None else logging.StreamHandler(sys.stderr)
        _installed.setFormatter(StructuredFormatter())
        root.setLevel(level)
        root.propagate = False
        root.addHandler(_installed)


def reset_logging() -> None:
    """Remove the handler configure_logging() installed. Tests only."""
    global _installed
    root = logging.getLogger(_LOGGER_PREFIX)
    with _lock:
        if _installed is not None:
            root.removeHandler(_installed)
            _installed = None
        root.setLevel(logging.WARNING)
