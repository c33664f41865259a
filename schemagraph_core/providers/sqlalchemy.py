"""SQLAlchemy-backed providers.

- InspectorSchemaProvider: live database metadata through ``inspect(engine)``
- DeclarativeAssociationProvider: ``relationship()`` declarations of the
  classes mapped by a declarative registry
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, Table
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import CompileError
from sqlalchemy.orm import configure_mappers
from sqlalchemy.orm.interfaces import MANYTOMANY, MANYTOONE, ONETOMANY

from schemagraph_core.providers.base import (
    AssociationInfo,
    AssociationKind,
    AssociationProvider,
    ColumnInfo,
    ForeignKeyInfo,
    SchemaProvider,
)

logger = logging.getLogger(__name__)


def _type_name(sql_type: Any) -> str:
    """Render a SQLAlchemy type, falling back to its class name."""
    try:
        return str(sql_type)
    except CompileError:
        return type(sql_type).__name__


# =============================================================================
# Inspector
# =============================================================================


class InspectorSchemaProvider(SchemaProvider):
    """Schema provider reading a live database through SQLAlchemy's Inspector.

    One Inspector is created per provider, so repeated lookups within a
    request hit its reflection cache.
    """

    def __init__(self, engine: Engine, schema: str | None = None) -> None:
        self.engine = engine
        self.schema = schema
        self._inspector = sa_inspect(engine)

    @classmethod
    def from_settings(cls, schema: str | None = None) -> InspectorSchemaProvider:
        """Create a provider for the database configured in settings."""
        from schemagraph_core.database import get_engine

        return cls(get_engine(), schema=schema)

    def list_tables(self) -> list[str]:
        return list(self._inspector.get_table_names(schema=self.schema))

    def table_exists(self, name: str) -> bool:
        return bool(self._inspector.has_table(name, schema=self.schema))

    def list_columns(self, table: str) -> list[ColumnInfo]:
        """List columns with primary-key, unique and foreign-key flags."""
        columns = self._inspector.get_columns(table, schema=self.schema)

        pk_constraint = self._inspector.get_pk_constraint(table, schema=self.schema) or {}
        primary_keys = set(pk_constraint.get("constrained_columns") or [])

        unique_columns: set[str] = set()
        for constraint in self._inspector.get_unique_constraints(table, schema=self.schema):
            if len(constraint["column_names"]) == 1:
                unique_columns.add(constraint["column_names"][0])
        for index in self._inspector.get_indexes(table, schema=self.schema):
            names = index.get("column_names") or []
            if index.get("unique") and len(names) == 1 and names[0] is not None:
                unique_columns.add(names[0])

        fk_columns = {
            column
            for fk in self._inspector.get_foreign_keys(table, schema=self.schema)
            for column in fk["constrained_columns"]
        }

        return [
            ColumnInfo(
                name=col["name"],
                type=_type_name(col["type"]),
                nullable=bool(col.get("nullable", True)),
                default=col.get("default"),
                is_primary_key=col["name"] in primary_keys,
                is_unique=col["name"] in unique_columns,
                is_foreign_key=col["name"] in fk_columns,
            )
            for col in columns
        ]

    def list_foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        """List foreign keys, one entry per constrained/referred column pair."""
        foreign_keys = self._inspector.get_foreign_keys(table, schema=self.schema)
        return [
            ForeignKeyInfo(
                column=local_col,
                to_table=fk["referred_table"],
                to_column=ref_col,
                constraint_name=fk.get("name"),
                on_delete=(fk.get("options") or {}).get("ondelete"),
                on_update=(fk.get("options") or {}).get("onupdate"),
            )
            for fk in foreign_keys
            for local_col, ref_col in zip(fk["constrained_columns"], fk["referred_columns"])
        ]


# =============================================================================
# Declarative mappings
# =============================================================================


class DeclarativeAssociationProvider(AssociationProvider):
    """Association provider reading the classes mapped by a registry.

    Accepts a ``registry`` or a declarative base class. When an engine is
    given, table existence is checked against the database; otherwise
    against the registry's MetaData.
    """

    def __init__(self, registry_or_base: Any, engine: Engine | None = None) -> None:
        self.registry = getattr(registry_or_base, "registry", registry_or_base)
        self.engine = engine

    def list_model_types(self) -> list[Any]:
        return sorted((m.class_ for m in self.registry.mappers), key=lambda cls: cls.__name__)

    def name_of(self, model: Any) -> str:
        return model.__name__

    def table_of(self, model: Any) -> str:
        table = sa_inspect(model).local_table
        if not isinstance(table, Table):
            raise ValueError(f"{model.__name__} is not mapped to a single table")
        return table.name

    def is_abstract(self, model: Any) -> bool:
        return bool(getattr(model, "__abstract__", False))

    def table_exists(self, table: str) -> bool:
        if self.engine is not None:
            return bool(sa_inspect(self.engine).has_table(table))
        return table in self.registry.metadata.tables

    def columns_of(self, model: Any) -> list[ColumnInfo]:
        table = sa_inspect(model).local_table
        columns = []
        for column in table.columns:
            default = None
            if column.default is not None and getattr(column.default, "is_scalar", False):
                default = column.default.arg
            columns.append(
                ColumnInfo(
                    name=column.name,
                    type=_type_name(column.type),
                    nullable=bool(column.nullable),
                    default=default,
                    is_primary_key=bool(column.primary_key),
                    is_unique=bool(column.unique),
                    is_foreign_key=bool(column.foreign_keys),
                )
            )
        return columns

    def associations_of(self, model: Any) -> list[AssociationInfo]:
        """Map each ``relationship()`` of a class to an association.

        MANYTOONE maps to belongs_to, ONETOMANY to has_many (has_one when
        ``uselist=False``) and MANYTOMANY to has_many_through when the
        secondary table is mapped by a class, else has_and_belongs_to_many.
        """
        configure_mappers()
        mapped_tables = {
            m.local_table.name: m.class_
            for m in self.registry.mappers
            if isinstance(m.local_table, Table)
        }

        associations = []
        for rel in sa_inspect(model).relationships:
            target = rel.mapper.class_
            pairs = rel.local_remote_pairs or []

            if rel.direction is MANYTOONE:
                associations.append(
                    AssociationInfo(
                        kind=AssociationKind.BELONGS_TO,
                        target_type=target,
                        name=rel.key,
                        foreign_key=pairs[0][0].name if pairs else None,
                    )
                )
            elif rel.direction is ONETOMANY:
                associations.append(
                    AssociationInfo(
                        kind=AssociationKind.HAS_MANY if rel.uselist else AssociationKind.HAS_ONE,
                        target_type=target,
                        name=rel.key,
                        foreign_key=pairs[0][1].name if pairs else None,
                    )
                )
            elif rel.direction is MANYTOMANY:
                secondary = rel.secondary
                secondary_name = secondary.name if isinstance(secondary, Table) else None
                through = mapped_tables.get(secondary_name) if secondary_name else None
                if through is not None:
                    associations.append(
                        AssociationInfo(
                            kind=AssociationKind.HAS_MANY_THROUGH,
                            target_type=target,
                            name=rel.key,
                            through_type=through,
                            join_table=secondary_name,
                        )
                    )
                else:
                    associations.append(
                        AssociationInfo(
                            kind=AssociationKind.HAS_AND_BELONGS_TO_MANY,
                            target_type=target,
                            name=rel.key,
                            join_table=secondary_name,
                        )
                    )
            else:
                logger.debug("Skipping relationship %s.%s with direction %s", model.__name__, rel.key, rel.direction)
        return associations
