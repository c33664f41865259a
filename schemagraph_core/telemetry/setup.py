"""Tracer bootstrap for analyzer spans.

The tracer provider is configured on the first ``get_tracer()`` call when
``OTEL_ENABLED`` is true. The SDK and exporter are imported only then, so
the ``telemetry`` extra is needed only by deployments that export spans.
Applications that already configure OpenTelemetry leave ``OTEL_ENABLED``
unset and the analyzer spans join their provider.
"""

from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opentelemetry.trace import Tracer

    from schemagraph_core.settings import Settings

DISTRIBUTION = "schemagraph"
INSTRUMENTATION_NAME = "schemagraph_core"

_configured = False
_owns_provider = False

logger = logging.getLogger(__name__)


def package_version() -> str:
    """Installed version of the distribution, "unknown" when running from source."""
    try:
        return version(DISTRIBUTION)
    except PackageNotFoundError:
        return "unknown"


def resource_attributes(settings: Settings) -> dict[str, str]:
    """Resource attributes describing this library in exported spans."""
    return {
        "service.name": settings.otel_service_name,
        "service.version": package_version(),
        "telemetry.instrumentation.name": INSTRUMENTATION_NAME,
    }


def init_telemetry() -> bool:
    """Configure an OTLP-exporting tracer provider if enabled.

    Safe to call multiple times; only the first call does any work.

    Returns:
        True if this module installed a tracer provider
    """
    global _configured, _owns_provider

    if _configured:
        return _owns_provider
    _configured = True

    from schemagraph_core.settings import get_settings

    settings = get_settings()
    if not settings.otel_enabled:
        logger.debug("OpenTelemetry export disabled, using the global tracer provider")
        return False

    from opentelemetry import trace
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor
    from opentelemetry.sdk.trace.sampling import (
        ALWAYS_OFF,
        ALWAYS_ON,
        ParentBasedTraceIdRatio,
        TraceIdRatioBased,
    )

    samplers = {
        "always_on": ALWAYS_ON,
        "always_off": ALWAYS_OFF,
        "traceidratio": TraceIdRatioBased(settings.otel_traces_sampler_arg),
        "parentbased_traceidratio": ParentBasedTraceIdRatio(settings.otel_traces_sampler_arg),
    }
    provider = TracerProvider(
        resource=Resource.create(resource_attributes(settings)),
        sampler=samplers.get(settings.otel_traces_sampler, ALWAYS_ON),
    )
    provider.add_span_processor(
        BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_otlp_endpoint))
    )
    trace.set_tracer_provider(provider)
    _owns_provider = True

    logger.info(
        "Exporting analyzer spans to %s as %s %s",
        settings.otel_exporter_otlp_endpoint,
        settings.otel_service_name,
        package_version(),
    )
    return True


def shutdown_telemetry() -> None:
    """Flush pending spans if this module installed the tracer provider.

    Safe to call even if telemetry was never initialized.
    """
    global _configured, _owns_provider

    if _owns_provider:
        from opentelemetry import trace

        provider = trace.get_tracer_provider()
        if hasattr(provider, "shutdown"):
            provider.shutdown()
        logger.info("OpenTelemetry shutdown complete")

    _configured = False
    _owns_provider = False


def get_tracer(name: str = INSTRUMENTATION_NAME) -> Tracer:
    """Get a tracer, configuring export on first use.

    Returns the API's no-op tracer when no provider is configured.
    """
    from opentelemetry import trace

    init_telemetry()
    return trace.get_tracer(name, package_version())
