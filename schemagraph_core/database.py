"""Database engine configuration with SQLAlchemy 2.x."""

from sqlalchemy import Engine, create_engine

from schemagraph_core.settings import get_settings

# Global engine
_engine: Engine | None = None


def get_engine() -> Engine:
    """Get or create the database engine used for schema inspection."""
    global _engine
    if _engine is None:
        settings = get_settings()
        if not settings.database_url:
            raise RuntimeError("DATABASE_URL environment variable is not set")
        _engine = create_engine(
            settings.database_url,
            echo=settings.debug,
            pool_pre_ping=True,
        )
    return _engine


def close_engine() -> None:
    """Dispose of the database engine."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
