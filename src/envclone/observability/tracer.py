"""
Tracers injected into cloners.

Every cloner accepts ``tracer=`` and ``enable_tracing=`` and resolves them
the same way::

    self._tracer = tracer or create_tracer(__name__, enable_tracing)

A clone run then nests its spans: one span per operation carrying the
operation id and the two environment names, one span per table, and one
span per data store call made through the SQL access layer.
"""

from __future__ import annotations

import contextlib
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager
from typing import Any, NamedTuple, Protocol, runtime_checkable

from envclone.observability.tracing import get_tracer, should_trace


@runtime_checkable
class Tracer(Protocol):
    """Anything that can open a span around a block of clone work."""

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Any]: ...

    @property
    def enabled(self) -> bool: ...


class NullTracer:
    """Tracer used when tracing is off or OpenTelemetry is missing."""

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[None]:
        return contextlib.nullcontext()

    @property
    def enabled(self) -> bool:
        return False


def _otel_attributes(attributes: Mapping[str, Any] | None) -> dict[str, Any]:
    # OpenTelemetry rejects None attribute values.
    if not attributes:
        return {}
    return {key: value for key, value in attributes.items() if value is not None}


class OpenTelemetryTracer:
    """
    Spans backed by the globally configured OpenTelemetry provider.

    Raises:
        ImportError: If the ``telemetry`` extra is not installed
    """

    def __init__(self, tracer_name: str) -> None:
        otel_tracer = get_tracer(tracer_name)
        if otel_tracer is None:
            raise ImportError("opentelemetry is not installed; install envclone-py[telemetry]")
        self._otel_tracer = otel_tracer
        self.name = tracer_name

    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> AbstractContextManager[Any]:
        return self._otel_tracer.start_as_current_span(name, attributes=_otel_attributes(attributes))

    @property
    def enabled(self) -> bool:
        return True


class RecordedSpan(NamedTuple):
    name: str
    attributes: dict[str, Any] | None


class MockTracer:
    """
    Records opened spans so tests can assert on clone instrumentation.

    Example:
        >>> tracer = MockTracer()
        >>> cloner = DataCloner(factory, tracer=tracer)
        >>> await cloner.clone_data(prod, test, CloneOptions(tables=["lofts"]))
        >>> tracer.span_names
        ['envclone.data_cloner.clone_data', 'envclone.data_cloner.clone_table']
    """

    def __init__(self) -> None:
        self.spans: list[RecordedSpan] = []

    @contextlib.contextmanager
    def span(
        self,
        name: str,
        attributes: dict[str, Any] | None = None,
    ) -> Iterator[None]:
        self.spans.append(RecordedSpan(name, attributes))
        yield None

    @property
    def enabled(self) -> bool:
        return True

    @property
    def span_names(self) -> list[str]:
        return [span.name for span in self.spans]

    def clear(self) -> None:
        self.spans.clear()


def create_tracer(name: str, enable_tracing: bool = True) -> Tracer:
    """OpenTelemetryTracer when tracing is on and available, else NullTracer."""
    if should_trace(enable_tracing):
        return OpenTelemetryTracer(name)
    return NullTracer()


__all__ = [
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "RecordedSpan",
    "create_tracer",
]
