"""Tests for the telemetry module, settings and engine configuration."""

import os
from unittest.mock import MagicMock, patch

import pytest
from schemagraph_core.analyzers import ConstraintAnalyzer
from schemagraph_core.providers import InMemorySchemaProvider
from schemagraph_core.settings import Settings


class TestTelemetryDisabled:
    """Tests for telemetry when disabled (default)."""

    def test_get_tracer_returns_noop_when_disabled(self) -> None:
        """get_tracer should return a no-op tracer when telemetry is disabled."""
        from schemagraph_core.telemetry.setup import get_tracer

        tracer = get_tracer("test")
        assert tracer is not None

    def test_init_telemetry_returns_false_when_disabled(self) -> None:
        from schemagraph_core.telemetry import setup

        setup.shutdown_telemetry()
        with patch("schemagraph_core.settings.get_settings", return_value=Settings(otel_enabled=False)):
            assert setup.init_telemetry() is False

    def test_init_telemetry_runs_once(self) -> None:
        """Later calls reuse the first result without reading settings again."""
        from schemagraph_core.telemetry import setup

        setup.shutdown_telemetry()
        get_settings = MagicMock(return_value=Settings(otel_enabled=False))
        with patch("schemagraph_core.settings.get_settings", get_settings):
            setup.init_telemetry()
            setup.init_telemetry()

        get_settings.assert_called_once()
        setup.shutdown_telemetry()

    def test_get_tracer_initializes_telemetry(self) -> None:
        from schemagraph_core.telemetry import setup

        with patch.object(setup, "init_telemetry", return_value=False) as init:
            setup.get_tracer()

        init.assert_called_once_with()

    def test_shutdown_without_init_is_noop(self) -> None:
        from schemagraph_core.telemetry import shutdown_telemetry

        shutdown_telemetry()


class TestResource:
    """Tests for the resource describing exported spans."""

    def test_package_version_from_metadata(self) -> None:
        from schemagraph_core.telemetry import setup

        with patch.object(setup, "version", return_value="1.2.3") as version:
            assert setup.package_version() == "1.2.3"

        version.assert_called_once_with("schemagraph")

    def test_package_version_when_not_installed(self) -> None:
        from importlib.metadata import PackageNotFoundError

        from schemagraph_core.telemetry import setup

        with patch.object(setup, "version", side_effect=PackageNotFoundError("schemagraph")):
            assert setup.package_version() == "unknown"

    def test_resource_attributes(self) -> None:
        from schemagraph_core.telemetry import setup

        with patch.object(setup, "package_version", return_value="1.2.3"):
            attributes = setup.resource_attributes(Settings(otel_service_name="catalog"))

        assert attributes == {
            "service.name": "catalog",
            "service.version": "1.2.3",
            "telemetry.instrumentation.name": "schemagraph_core",
        }


class TestSpanHelpers:
    """Tests for the analyzer span context manager."""

    def test_trace_analyzer_run_creates_span(self) -> None:
        """trace_analyzer_run should yield a span that accepts attributes."""
        from schemagraph_core.telemetry.spans import trace_analyzer_run

        with trace_analyzer_run("foreign_key", scope_size=2) as span:
            assert span is not None
            span.set_attribute("dataset.entity_count", 2)

    def test_trace_analyzer_run_records_exception(self) -> None:
        """trace_analyzer_run should record and re-raise exceptions."""
        from schemagraph_core.telemetry.spans import trace_analyzer_run

        with pytest.raises(ValueError):
            with trace_analyzer_run("foreign_key"):
                raise ValueError("Test error")

    def test_span_attributes(self) -> None:
        """Analyzer type and scope size are set as span attributes."""
        from schemagraph_core.telemetry.spans import trace_analyzer_run

        tracer = MagicMock()
        with patch("schemagraph_core.telemetry.spans.get_tracer", return_value=tracer):
            with trace_analyzer_run("inferred_relationship", scope_size=3):
                pass

        tracer.start_as_current_span.assert_called_once_with(
            "analyzer.run",
            attributes={"analyzer.type": "inferred_relationship", "analyzer.scope_size": 3},
        )

    def test_analyzer_run_records_dataset_attributes(self, settings: Settings) -> None:
        """BaseAnalyzer.run() reports dataset counts on its span."""
        tracer = MagicMock()
        span = tracer.start_as_current_span.return_value.__enter__.return_value
        with patch("schemagraph_core.telemetry.spans.get_tracer", return_value=tracer):
            ConstraintAnalyzer(InMemorySchemaProvider(), settings=settings).run()

        span.set_attribute.assert_any_call("dataset.entity_count", 0)
        span.set_attribute.assert_any_call("dataset.status", "empty")
        _, kwargs = tracer.start_as_current_span.call_args
        assert kwargs["attributes"] == {"analyzer.type": "foreign_key"}


class TestSettingsIntegration:
    """Tests for settings defaults and environment overrides."""

    def test_otel_settings_have_defaults(self) -> None:
        """OTEL settings should have sensible defaults."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.otel_enabled is False
        assert settings.otel_service_name == "schemagraph"
        assert settings.otel_exporter_otlp_endpoint == "http://localhost:4317"
        assert settings.otel_traces_sampler == "parentbased_traceidratio"
        assert settings.otel_traces_sampler_arg == 1.0

    def test_inference_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.naming_convention_confidence == 0.8
        assert settings.junction_table_confidence == 0.9
        assert settings.audit_pattern_confidence == 0.6
        assert settings.junction_extra_columns == 3
        assert settings.self_reference_confidence == 0.9
        assert "created_by_id" in settings.audit_columns
        assert settings.user_table_candidates[0] == "users"
        assert settings.database_url is None

    def test_settings_from_env(self) -> None:
        """Settings should be configurable via environment variables."""
        with patch.dict(
            os.environ,
            {
                "OTEL_ENABLED": "true",
                "OTEL_SERVICE_NAME": "my-service",
                "OTEL_TRACES_SAMPLER_ARG": "0.5",
                "JUNCTION_TABLE_CONFIDENCE": "0.75",
                "USER_TABLE_CANDIDATES": '["members"]',
            },
        ):
            settings = Settings(_env_file=None)

        assert settings.otel_enabled is True
        assert settings.otel_service_name == "my-service"
        assert settings.otel_traces_sampler_arg == 0.5
        assert settings.junction_table_confidence == 0.75
        assert settings.user_table_candidates == ["members"]

    def test_confidence_out_of_range_is_rejected(self) -> None:
        from pydantic import ValidationError

        with pytest.raises(ValidationError):
            Settings(naming_convention_confidence=1.5)


class TestDatabase:
    """Tests for engine configuration."""

    def test_get_engine_requires_database_url(self) -> None:
        from schemagraph_core import database

        with patch.object(database, "get_settings", return_value=Settings(database_url=None)):
            database.close_engine()
            with pytest.raises(RuntimeError):
                database.get_engine()

    def test_get_engine_is_cached(self) -> None:
        from schemagraph_core import database

        with patch.object(database, "get_settings", return_value=Settings(database_url="sqlite://")):
            database.close_engine()
            try:
                assert database.get_engine() is database.get_engine()
            finally:
                database.close_engine()
