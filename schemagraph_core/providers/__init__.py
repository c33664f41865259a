"""Schema and association providers.

Analyzers read databases and ORM mappings only through these interfaces:
- SchemaProvider / AssociationProvider: The provider contracts
- ColumnInfo, ForeignKeyInfo, AssociationInfo: Plain descriptors they return
- InMemorySchemaProvider: Provider over explicit table definitions
- InspectorSchemaProvider: Live database via SQLAlchemy's Inspector
- DeclarativeAssociationProvider: SQLAlchemy declarative relationships
- MigrationSchemaProvider: Schema rebuilt from Alembic migrations
"""

from schemagraph_core.providers.base import (
    AssociationInfo,
    AssociationKind,
    AssociationProvider,
    ColumnInfo,
    ForeignKeyInfo,
    SchemaProvider,
)
from schemagraph_core.providers.memory import InMemorySchemaProvider, TableDef
from schemagraph_core.providers.migrations import (
    MigrationSchemaProvider,
    extract_from_migration,
)
from schemagraph_core.providers.sqlalchemy import (
    DeclarativeAssociationProvider,
    InspectorSchemaProvider,
)

__all__ = [
    "AssociationInfo",
    "AssociationKind",
    "AssociationProvider",
    "ColumnInfo",
    "DeclarativeAssociationProvider",
    "ForeignKeyInfo",
    "InMemorySchemaProvider",
    "InspectorSchemaProvider",
    "MigrationSchemaProvider",
    "SchemaProvider",
    "TableDef",
    "extract_from_migration",
]
