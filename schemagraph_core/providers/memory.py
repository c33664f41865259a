"""In-memory schema provider."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from schemagraph_core.providers.base import ColumnInfo, ForeignKeyInfo, SchemaProvider


@dataclass
class TableDef:
    """A table held by the in-memory provider."""

    name: str
    columns: list[ColumnInfo] = field(default_factory=list)
    foreign_keys: list[ForeignKeyInfo] = field(default_factory=list)


class InMemorySchemaProvider(SchemaProvider):
    """Schema provider backed by plain table definitions.

    Tables are reported in insertion order. Unknown tables yield empty
    column and foreign-key lists.
    """

    def __init__(self, tables: Iterable[TableDef] = ()) -> None:
        self._tables: dict[str, TableDef] = {}
        for table in tables:
            self.add_table(table)

    def add_table(self, table: TableDef) -> TableDef:
        """Add or replace a table definition."""
        self._tables[table.name] = table
        return table

    def get_table(self, name: str) -> TableDef | None:
        return self._tables.get(name)

    def list_tables(self) -> list[str]:
        return list(self._tables)

    def table_exists(self, name: str) -> bool:
        return name in self._tables

    def list_columns(self, table: str) -> list[ColumnInfo]:
        definition = self._tables.get(table)
        return list(definition.columns) if definition else []

    def list_foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        definition = self._tables.get(table)
        return list(definition.foreign_keys) if definition else []
