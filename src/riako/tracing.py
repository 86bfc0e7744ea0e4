"""Optional OpenTelemetry spans for store and search operations.

Spans are only emitted when ``opentelemetry-api`` is installed
(``pip install riako[otel]``); otherwise every helper is a no-op.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Any

_otel_tracer: Any = None
try:
    from opentelemetry import trace

    _otel_tracer = trace.get_tracer("riako")
except ImportError:
    pass


def span(name: str, **attributes: Any) -> Any:
    """Return an OTel span context manager, or nullcontext if OTel is absent.

    Attribute names are prefixed with ``riako.``; ``None`` values are dropped.
    """
    if _otel_tracer is not None:
        return _otel_tracer.start_as_current_span(
            name,
            attributes={f"riako.{k}": v for k, v in attributes.items() if v is not None},
        )
    return nullcontext()


def set_attributes(**attributes: Any) -> None:
    """Attach attributes to the current span, if any."""
    if _otel_tracer is None:
        return
    current = trace.get_current_span()
    for key, value in attributes.items():
        current.set_attribute(f"riako.{key}", value)
