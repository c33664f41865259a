"""Span helpers for analyzer instrumentation."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from opentelemetry.trace import Status, StatusCode

from schemagraph_core.telemetry.setup import get_tracer

if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry import trace


@contextmanager
def trace_analyzer_run(
    analyzer_type: str,
    scope_size: int | None = None,
) -> Iterator[trace.Span]:
    """Context manager for tracing one analyzer run.

    The span is yielded so the analyzer can record dataset attributes once
    the run has produced a result.

    Usage:
        with trace_analyzer_run("foreign_key", scope_size=3) as span:
            dataset = ...
            span.set_attribute("dataset.entity_count", len(dataset.entities))

    Args:
        analyzer_type: Analyzer type identifier (e.g., "foreign_key")
        scope_size: Number of tables in an explicit scope, None for global

    Yields:
        The active span for adding additional attributes
    """
    tracer = get_tracer()
    attributes: dict[str, str | int] = {"analyzer.type": analyzer_type}
    if scope_size is not None:
        attributes["analyzer.scope_size"] = scope_size

    with tracer.start_as_current_span("analyzer.run", attributes=attributes) as span:
        try:
            yield span
        except Exception as e:
            span.set_status(Status(StatusCode.ERROR, str(e)))
            span.record_exception(e)
            raise
