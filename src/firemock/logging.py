"""
Logging setup for firemock with per-test scope tagging.

Query builders report degraded behaviour (unsupported operators, malformed
cursors) as warnings, and failed deferred work as errors. Those records carry
the ``method`` and ``path`` of the operation through ``extra=``; flush
summaries carry ``events`` and ``failed`` counts, and ``get`` traces ``docs``.

``bind_scope`` tags every record emitted in the current context with a scope
name, so a test suite can tell which test produced which line.

Usage::

    from firemock.logging import bind_scope, configure_logging
    configure_logging(json_format=False)
    bind_scope("test_pagination")
"""

from __future__ import annotations

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone

_scope_var: ContextVar[str] = ContextVar("firemock_scope", default="")

# Fields firemock modules attach through ``extra=``.
RECORD_FIELDS = ("method", "path", "docs", "events", "failed")

_TEXT_FORMAT = "%(asctime)s %(levelname)-5s [%(scope)s] %(name)s %(target)s: %(message)s"


def bind_scope(name: str | None = None) -> str:
    """Set the scope name for the current context.

    A random short id is used when *name* is ``None``. Returns the scope.
    """
    scope = name or uuid.uuid4().hex[:8]
    _scope_var.set(scope)
    return scope


def get_scope() -> str:
    """Return the bound scope, or ``""``."""
    return _scope_var.get()


def _target(record: logging.LogRecord) -> str:
    parts = [getattr(record, "method", None), getattr(record, "path", None)]
    return " ".join(str(part) for part in parts if part) or "-"


class _ContextFilter(logging.Filter):
    """Stamp the scope and the ``method path`` target onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.scope = _scope_var.get()  # type: ignore[attr-defined]
        record.target = _target(record)  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Carries ``timestamp``, ``level``, ``logger``, ``message`` and, when
    present, ``scope`` plus any of :data:`RECORD_FIELDS`.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        scope = getattr(record, "scope", "") or _scope_var.get()
        if scope:
            entry["scope"] = scope
        for name in RECORD_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def configure_logging(level: int = logging.WARNING, json_format: bool = False) -> None:
    """Attach a stderr handler to the ``firemock`` logger hierarchy.

    Args:
        level: Threshold for the ``firemock`` logger (default WARNING, so
            builder warnings show and flush tracing stays quiet).
        json_format: Emit JSON lines instead of plain text.
    """
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(_TEXT_FORMAT))
    handler.addFilter(_ContextFilter())

    root = logging.getLogger("firemock")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
