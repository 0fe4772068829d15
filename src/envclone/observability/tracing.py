"""
Optional OpenTelemetry support.

The ``telemetry`` extra installs ``opentelemetry-api``. Nothing else in
envclone imports it directly; cloners go through :func:`create_tracer`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer as OTelTracer

try:
    from opentelemetry import trace as _trace_api

    OTEL_AVAILABLE = True
except ImportError:
    _trace_api = None  # type: ignore[assignment]
    OTEL_AVAILABLE = False


def should_trace(enable_tracing: bool) -> bool:
    """True when spans should be emitted for a component."""
    return bool(enable_tracing) and OTEL_AVAILABLE


def get_tracer(name: str) -> OTelTracer | None:
    """Return the OpenTelemetry tracer for ``name``, or None without the extra."""
    if _trace_api is None:
        return None
    return _trace_api.get_tracer(name)


__all__ = [
    "OTEL_AVAILABLE",
    "get_tracer",
    "should_trace",
]
