"""Application settings using pydantic-settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False

    # Database
    database_url: str | None = None

    # Inference heuristics
    naming_convention_confidence: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Confidence for relationships inferred from <name>_id columns",
    )
    junction_table_confidence: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Confidence for many-to-many relationships inferred from junction tables",
    )
    audit_pattern_confidence: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Confidence for relationships inferred from audit columns",
    )
    self_reference_confidence: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Confidence for hierarchy columns (parent_id, ...) inferred as self references",
    )
    junction_extra_columns: int = Field(
        default=3,
        ge=0,
        description="Non-id columns a table may carry and still count as a junction table",
    )
    audit_columns: list[str] = Field(
        default=["created_by_id", "updated_by_id", "deleted_by_id", "author_id", "modifier_id"],
        description="Column names that reference the acting user",
    )
    user_table_candidates: list[str] = Field(
        default=["users", "user", "accounts", "account", "people", "person"],
        description="Tables tried, in order, as the target of audit columns",
    )

    # OpenTelemetry
    otel_enabled: bool = Field(
        default=False,
        description="Enable OpenTelemetry tracing",
    )
    otel_service_name: str = Field(
        default="schemagraph",
        description="Service name reported to the trace backend",
    )
    otel_exporter_otlp_endpoint: str = Field(
        default="http://localhost:4317",
        description="OTLP gRPC endpoint for span export",
    )
    otel_traces_sampler: str = Field(
        default="parentbased_traceidratio",
        description="Sampler: always_on, always_off, traceidratio, parentbased_traceidratio",
    )
    otel_traces_sampler_arg: float = Field(
        default=1.0,
        ge=0.0,
        le=1.0,
        description="Sampling ratio for ratio-based samplers",
    )


# Singleton instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
