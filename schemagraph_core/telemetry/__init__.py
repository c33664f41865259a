"""OpenTelemetry initialization and utilities.

Every analyzer run opens an ``analyzer.run`` span. With OTEL_ENABLED=false
(the default) no SDK imports occur and the spans go to whatever provider the
host application configured, or to the API's no-op tracer.

Usage:
    from schemagraph_core.telemetry import shutdown_telemetry

    dataset = ConstraintAnalyzer(provider).run()
    shutdown_telemetry()  # flush exported spans before exit
"""

from schemagraph_core.telemetry.setup import (
    get_tracer,
    init_telemetry,
    package_version,
    shutdown_telemetry,
)
from schemagraph_core.telemetry.spans import trace_analyzer_run

__all__ = [
    "init_telemetry",
    "shutdown_telemetry",
    "get_tracer",
    "package_version",
    "trace_analyzer_run",
]
