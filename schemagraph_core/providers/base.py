"""Provider contracts and descriptor types.

Analyzers never reflect on a database or ORM directly. They consume the
plain descriptors defined here through two narrow interfaces:

- SchemaProvider: tables, columns and declared foreign keys
- AssociationProvider: ORM model types and their declared associations
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


class AssociationKind(str, Enum):
    """Kinds of declared ORM associations."""

    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"
    HAS_MANY_THROUGH = "has_many_through"
    HAS_AND_BELONGS_TO_MANY = "has_and_belongs_to_many"
    ATTACHMENT = "attachment"


@dataclass
class ColumnInfo:
    """A column of a table as reported by a provider."""

    name: str
    type: str = ""
    nullable: bool = True
    default: Any = None
    is_primary_key: bool = False
    is_unique: bool = False
    is_foreign_key: bool = False


@dataclass
class ForeignKeyInfo:
    """One declared foreign-key column pair of a table."""

    column: str
    to_table: str
    to_column: str | None = None
    constraint_name: str | None = None
    on_delete: str | None = None
    on_update: str | None = None


@dataclass
class AssociationInfo:
    """A declared association of an ORM model type."""

    kind: AssociationKind | str
    target_type: Any
    name: str
    through_type: Any = None
    join_table: str | None = None
    foreign_key: str | None = None
    polymorphic: bool = False


class SchemaProvider(ABC):
    """Read-only access to database schema metadata."""

    @abstractmethod
    def list_tables(self) -> list[str]:
        """List all table names."""
        ...

    @abstractmethod
    def table_exists(self, name: str) -> bool:
        """Check whether a table exists."""
        ...

    @abstractmethod
    def list_columns(self, table: str) -> list[ColumnInfo]:
        """List the columns of a table in declaration order."""
        ...

    @abstractmethod
    def list_foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        """List the foreign keys declared on a table."""
        ...


class AssociationProvider(ABC):
    """Read-only access to ORM model types and their associations.

    Model types are opaque handles; the analyzer only passes them back to
    the provider.
    """

    @abstractmethod
    def list_model_types(self) -> list[Any]:
        """List every known model type."""
        ...

    @abstractmethod
    def name_of(self, model: Any) -> str:
        """Get the display name of a model type."""
        ...

    @abstractmethod
    def table_of(self, model: Any) -> str:
        """Get the backing table of a model type."""
        ...

    @abstractmethod
    def is_abstract(self, model: Any) -> bool:
        """Check whether a model type has no table of its own."""
        ...

    @abstractmethod
    def table_exists(self, table: str) -> bool:
        """Check whether a table exists."""
        ...

    @abstractmethod
    def columns_of(self, model: Any) -> list[ColumnInfo]:
        """List the columns of a model type's table."""
        ...

    @abstractmethod
    def associations_of(self, model: Any) -> list[AssociationInfo]:
        """List the associations declared on a model type."""
        ...
