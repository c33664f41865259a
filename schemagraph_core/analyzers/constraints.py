"""Relationships from declared foreign-key constraints."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from schemagraph_core.analyzers.base import (
    AnalysisContext,
    BaseAnalyzer,
    Scope,
    SelfReferencePolicy,
    build_attributes,
    usable_columns,
    usable_foreign_keys,
)
from schemagraph_core.graph import Cardinality, Dataset, Entity, Relationship
from schemagraph_core.providers.base import ColumnInfo, ForeignKeyInfo, SchemaProvider
from schemagraph_core.settings import Settings

logger = logging.getLogger(__name__)

FOREIGN_KEY = "foreign_key"


@dataclass
class ForeignKeyRecord:
    """One foreign-key column pair between two in-scope tables."""

    from_table: str
    to_table: str
    from_column: str
    to_column: str | None = None
    constraint_name: str | None = None
    on_delete: str | None = None
    on_update: str | None = None
    type: str = FOREIGN_KEY


@dataclass
class ConstraintAnalysis:
    """Raw output of the constraint analyzer."""

    records: list[ForeignKeyRecord] = field(default_factory=list)
    columns_by_table: dict[str, list[ColumnInfo]] = field(default_factory=dict)
    fk_columns_by_table: dict[str, list[str]] = field(default_factory=dict)
    tables_analyzed: int = 0


class ConstraintAnalyzer(BaseAnalyzer):
    """Discovers relationships from the foreign keys declared in the schema.

    A foreign key is kept only when the referenced table is in scope.
    Self-referential foreign keys are dropped unless the analyzer is built
    with ``SelfReferencePolicy.FLAG``.
    """

    default_self_reference_policy = SelfReferencePolicy.DROP

    def __init__(
        self,
        provider: SchemaProvider,
        scope: Scope | Iterable[str] | None = None,
        *,
        self_reference_policy: SelfReferencePolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(scope, self_reference_policy=self_reference_policy, settings=settings)
        self.provider = provider

    @property
    def analyzer_type(self) -> str:
        return "foreign_key"

    def list_global_tables(self) -> list[str]:
        return list(self.provider.list_tables())

    def analyze(self, context: AnalysisContext) -> ConstraintAnalysis:
        """Collect foreign keys whose referenced table is in scope."""
        result = ConstraintAnalysis(tables_analyzed=len(context.tables))

        for table in context.tables:
            if not self._table_exists(table):
                logger.debug("Skipping missing table %s", table)
                continue

            foreign_keys = self._foreign_keys(table)
            result.fk_columns_by_table[table] = [fk.column for fk in foreign_keys]
            for fk in foreign_keys:
                if not context.in_scope(fk.to_table):
                    continue
                result.records.append(self._build_record(table, fk))

        for table in _endpoint_tables(result.records):
            result.columns_by_table[table] = self._columns(table)

        logger.debug("Found %d foreign keys in %d tables", len(result.records), len(context.tables))
        return result

    def transform_to_dataset(self, raw_data: ConstraintAnalysis) -> Dataset:
        dataset = Dataset(metadata=self.base_metadata())
        dataset.metadata.update(
            {
                "total_relationships": len(raw_data.records),
                "tables_analyzed": raw_data.tables_analyzed,
            }
        )

        for table in _endpoint_tables(raw_data.records):
            columns = raw_data.columns_by_table.get(table, [])
            dataset.add_entity(
                Entity(
                    id=table,
                    name=table,
                    type="table",
                    attributes=build_attributes(columns, raw_data.fk_columns_by_table.get(table, [])),
                    metadata={"table_name": table, "source": "database_schema"},
                )
            )

        for record in raw_data.records:
            self_referential = record.from_table == record.to_table
            if self_referential and not self.keeps_self_references():
                logger.debug(
                    "Dropping self-referential foreign key %s.%s", record.from_table, record.from_column
                )
                continue

            to_column = record.to_column or _single_primary_key(
                raw_data.columns_by_table.get(record.to_table, [])
            )
            dataset.add_relationship(
                Relationship(
                    source_id=record.from_table,
                    target_id=record.to_table,
                    type=record.type,
                    label=record.constraint_name or record.from_column,
                    cardinality=self._cardinality(record, raw_data.columns_by_table),
                    metadata={
                        "constraint_name": record.constraint_name,
                        "from_column": record.from_column,
                        "to_column": to_column,
                        "on_delete": record.on_delete,
                        "on_update": record.on_update,
                        "original_type": record.type,
                        "self_referential": self_referential,
                    },
                )
            )

        return dataset

    # =========================================================================
    # Provider access
    # =========================================================================

    def _table_exists(self, table: str) -> bool:
        try:
            return bool(self.provider.table_exists(table))
        except Exception as e:
            logger.warning("Could not check table %s: %s", table, e)
            return False

    def _foreign_keys(self, table: str) -> list[ForeignKeyInfo]:
        try:
            return usable_foreign_keys(self.provider.list_foreign_keys(table), table)
        except Exception as e:
            logger.warning("Could not get foreign keys for %s: %s", table, e)
            return []

    def _columns(self, table: str) -> list[ColumnInfo]:
        try:
            return usable_columns(self.provider.list_columns(table), table)
        except Exception as e:
            logger.warning("Could not get columns for %s: %s", table, e)
            return []

    def _build_record(self, table: str, fk: ForeignKeyInfo) -> ForeignKeyRecord:
        return ForeignKeyRecord(
            from_table=table,
            to_table=fk.to_table,
            from_column=fk.column,
            to_column=fk.to_column,
            constraint_name=fk.constraint_name,
            on_delete=fk.on_delete,
            on_update=fk.on_update,
        )

    def _cardinality(
        self, record: ForeignKeyRecord, columns_by_table: dict[str, list[ColumnInfo]]
    ) -> str:
        # A unique referencing column allows at most one row per target
        for column in columns_by_table.get(record.from_table, []):
            if column.name == record.from_column and (column.is_primary_key or column.is_unique):
                return Cardinality.ONE_TO_ONE.value
        return Cardinality.MANY_TO_ONE.value


def _endpoint_tables(records: list[ForeignKeyRecord]) -> list[str]:
    tables: dict[str, None] = {}
    for record in records:
        tables.setdefault(record.from_table)
        tables.setdefault(record.to_table)
    return list(tables)


def _single_primary_key(columns: list[ColumnInfo]) -> str | None:
    keys = [c.name for c in columns if c.is_primary_key]
    return keys[0] if len(keys) == 1 else None
