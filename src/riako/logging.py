"""
Structured logging for riako with request-id correlation.

Provides a JSON log formatter, request-id propagation via ``contextvars``
and a helper that configures the ``riako`` logger hierarchy. Pool and
store operations run on the caller's thread, so the thread name is part
of every JSON entry to make interleaved checkouts readable.

Usage::

    from riako.logging import bind_request_id, configure_logging, request_context
    configure_logging()            # JSON to stderr, INFO level
    bind_request_id("req-abc123")  # subsequent logs on this thread carry it

    with request_context("req-def456"):
        db.get("users", key)       # logs carry req-def456, then the old id returns
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import IO

_request_id_var: ContextVar[str] = ContextVar("riako_request_id", default="")

_STDLIB_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys())


def bind_request_id(request_id: str | None = None) -> str:
    """Set the request-id for the current context (thread / async task).

    A random 12-character id is generated when *request_id* is ``None``.
    Returns the active request-id.
    """
    rid = request_id or uuid.uuid4().hex[:12]
    _request_id_var.set(rid)
    return rid


def get_request_id() -> str:
    """Return the current request-id, or ``""`` if none is bound."""
    return _request_id_var.get()


@contextmanager
def request_context(request_id: str | None = None) -> Iterator[str]:
    """Bind a request-id for the duration of a block, then restore the previous one.

    Pool workers and server threads are reused across requests, so scoping
    the id keeps it from leaking into the next operation on the same thread.
    """
    rid = request_id or uuid.uuid4().hex[:12]
    token = _request_id_var.set(rid)
    try:
        yield rid
    finally:
        _request_id_var.reset(token)


class _RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_var.get()  # type: ignore[attr-defined]
        return True


class JSONFormatter(logging.Formatter):
    """Emit each log record as a single-line JSON object.

    Core fields: ``timestamp``, ``level``, ``logger``, ``thread``,
    ``message`` and, when bound, ``request_id``. Keys passed through
    ``extra={...}`` are merged at the top level.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        rid = getattr(record, "request_id", "") or _request_id_var.get()
        if rid:
            entry["request_id"] = rid

        for key, val in record.__dict__.items():
            if key not in _STDLIB_ATTRS and key != "request_id":
                entry[key] = val

        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_logging(
    level: int = logging.INFO,
    json_format: bool = True,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Configure the ``riako`` logger hierarchy and return the installed handler.

    Args:
        level: Logging level (default ``logging.INFO``).
        json_format: Emit JSON lines when ``True``; otherwise a text format
            that still includes the thread and request-id.
        stream: Destination stream (default ``sys.stderr``).
    """
    handler = logging.StreamHandler(stream)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s %(levelname)-5s [%(threadName)s %(request_id)s] "
                "%(name)s - %(message)s",
                defaults={"request_id": ""},
            )
        )
    handler.addFilter(_RequestIdFilter())

    root = logging.getLogger("riako")
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False
    return handler
