"""
Tracing for clone runs.

Cloners take a :class:`Tracer`; ``create_tracer`` picks OpenTelemetry when
the ``telemetry`` extra is installed and tracing is enabled. Span attribute
names live in :mod:`envclone.observability.attributes`.
"""

from envclone.observability.attributes import (
    ATTR_BATCH_SIZE,
    ATTR_DB_OPERATION,
    ATTR_DB_SYSTEM,
    ATTR_DRY_RUN,
    ATTR_OPERATION_ID,
    ATTR_PAGE_OFFSET,
    ATTR_SOURCE_ENV,
    ATTR_SYSTEM,
    ATTR_TABLE,
    ATTR_TABLE_COUNT,
    ATTR_TARGET_ENV,
)
from envclone.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    RecordedSpan,
    Tracer,
    create_tracer,
)
from envclone.observability.tracing import OTEL_AVAILABLE, get_tracer, should_trace

__all__ = [
    # tracers
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "RecordedSpan",
    "create_tracer",
    "OTEL_AVAILABLE",
    "get_tracer",
    "should_trace",
    # span attributes
    "ATTR_OPERATION_ID",
    "ATTR_SOURCE_ENV",
    "ATTR_TARGET_ENV",
    "ATTR_DRY_RUN",
    "ATTR_SYSTEM",
    "ATTR_TABLE",
    "ATTR_TABLE_COUNT",
    "ATTR_BATCH_SIZE",
    "ATTR_PAGE_OFFSET",
    "ATTR_DB_SYSTEM",
    "ATTR_DB_OPERATION",
]
