"""Relationships inferred from naming conventions and table structure.

Independent heuristic passes run over the tables in scope:

1. Naming convention: ``<name>_id`` columns point at the ``<names>`` table
2. Junction tables: bridge tables imply many-to-many relationships between
   the tables their id columns point at
3. Audit columns: ``created_by_id`` and friends point at a user-like table
4. Self references (only with ``SelfReferencePolicy.FLAG``): hierarchy
   columns such as ``parent_id`` point back at their own table

Their outputs are concatenated without deduplication; one table pair may
receive several edges with different confidences.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from itertools import combinations

from schemagraph_core.analyzers.base import (
    AnalysisContext,
    BaseAnalyzer,
    Scope,
    SelfReferencePolicy,
    usable_columns,
)
from schemagraph_core.analyzers.naming import (
    is_reference_column,
    is_self_reference_column,
    resolve_table,
)
from schemagraph_core.graph import Dataset, Entity, Relationship
from schemagraph_core.providers.base import ColumnInfo, SchemaProvider
from schemagraph_core.settings import Settings

logger = logging.getLogger(__name__)

INFERRED_BELONGS_TO = "inferred_belongs_to"
INFERRED_MANY_TO_MANY = "inferred_many_to_many"
INFERRED_AUDIT = "inferred_audit"

NAMING_CONVENTION = "naming_convention"
JUNCTION_TABLE = "junction_table"
AUDIT_PATTERN = "audit_pattern"
SELF_REFERENTIAL = "self_referential"


@dataclass
class InferredRecord:
    """One inferred relationship between two tables."""

    from_table: str
    to_table: str
    type: str
    inference_type: str
    confidence: float
    label: str
    from_column: str
    to_column: str = "id"
    junction_table: str | None = None


@dataclass
class InferenceAnalysis:
    """Raw output of the inference analyzer."""

    records: list[InferredRecord] = field(default_factory=list)
    tables_analyzed: int = 0


class _SchemaLookup:
    """Per-run view of the provider; each table is read at most once."""

    def __init__(self, provider: SchemaProvider, context: AnalysisContext) -> None:
        self.provider = provider
        self.context = context
        self._exists: dict[str, bool] = {}
        self._columns: dict[str, list[ColumnInfo]] = {}

    def exists(self, table: str) -> bool:
        if table not in self._exists:
            try:
                self._exists[table] = bool(self.provider.table_exists(table))
            except Exception as e:
                logger.warning("Could not check table %s: %s", table, e)
                self._exists[table] = False
        return self._exists[table]

    def usable(self, table: str) -> bool:
        """Check that a table is in scope and exists."""
        return self.context.in_scope(table) and self.exists(table)

    def columns(self, table: str) -> list[ColumnInfo]:
        if table not in self._columns:
            try:
                self._columns[table] = usable_columns(self.provider.list_columns(table), table)
            except Exception as e:
                logger.warning("Could not get columns for %s: %s", table, e)
                self._columns[table] = []
        return self._columns[table]

    def resolve(self, column_name: str) -> str | None:
        return resolve_table(column_name, self.usable)


class InferenceAnalyzer(BaseAnalyzer):
    """Infers relationships the schema does not declare.

    Every relationship carries ``confidence`` and ``inference_type`` in its
    metadata. Self-referential inferences are dropped unless the analyzer is
    built with ``SelfReferencePolicy.FLAG``.
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
        return "inferred_relationship"

    def list_global_tables(self) -> list[str]:
        return list(self.provider.list_tables())

    def analyze(self, context: AnalysisContext) -> InferenceAnalysis:
        lookup = _SchemaLookup(self.provider, context)
        tables = [t for t in context.tables if lookup.exists(t)]

        records: list[InferredRecord] = []
        records.extend(self.naming_convention_pass(tables, lookup))
        records.extend(self.junction_table_pass(tables, lookup))
        records.extend(self.audit_pattern_pass(tables, lookup))
        if self.keeps_self_references():
            records.extend(self.self_reference_pass(tables, lookup))

        logger.info("Found %d inferred relationships", len(records))
        return InferenceAnalysis(records=records, tables_analyzed=len(context.tables))

    def naming_convention_pass(
        self, tables: list[str], lookup: _SchemaLookup
    ) -> list[InferredRecord]:
        """Map ``<name>_id`` columns to the ``<names>`` (or ``<name>``) table.

        With the FLAG policy, columns claimed by the self-reference pass are
        left to it.
        """
        records = []
        for table in tables:
            columns = lookup.columns(table)
            for column in columns:
                if not is_reference_column(column.name):
                    continue
                if self.keeps_self_references() and self._is_self_reference(table, column.name, columns):
                    continue
                target = lookup.resolve(column.name)
                if target is None:
                    continue
                records.append(
                    InferredRecord(
                        from_table=table,
                        to_table=target,
                        type=INFERRED_BELONGS_TO,
                        inference_type=NAMING_CONVENTION,
                        confidence=self.settings.naming_convention_confidence,
                        label=f"inferred ({column.name})",
                        from_column=column.name,
                    )
                )
        return records

    def is_junction_table(self, table: str, columns: list[ColumnInfo]) -> bool:
        """Check if a table looks like a many-to-many bridge."""
        if "_" in table:
            return True
        id_columns = [c for c in columns if is_reference_column(c.name)]
        return (
            len(id_columns) >= 2
            and len(columns) <= len(id_columns) + self.settings.junction_extra_columns
        )

    def junction_table_pass(
        self, tables: list[str], lookup: _SchemaLookup
    ) -> list[InferredRecord]:
        """Relate every pair of tables referenced by a junction table."""
        records = []
        for table in tables:
            columns = lookup.columns(table)
            if not self.is_junction_table(table, columns):
                continue

            id_columns = [c.name for c in columns if is_reference_column(c.name)]
            for first, second in combinations(id_columns, 2):
                first_table = lookup.resolve(first)
                second_table = lookup.resolve(second)
                if first_table is None or second_table is None:
                    continue
                records.append(
                    InferredRecord(
                        from_table=first_table,
                        to_table=second_table,
                        type=INFERRED_MANY_TO_MANY,
                        inference_type=JUNCTION_TABLE,
                        confidence=self.settings.junction_table_confidence,
                        label=f"many-to-many via {table}",
                        from_column="id",
                        junction_table=table,
                    )
                )
        return records

    def audit_pattern_pass(
        self, tables: list[str], lookup: _SchemaLookup
    ) -> list[InferredRecord]:
        """Relate audit columns to the first user-like table in scope."""
        audit_columns = set(self.settings.audit_columns)
        user_table = next(
            (t for t in self.settings.user_table_candidates if lookup.usable(t)), None
        )
        if user_table is None:
            return []

        records = []
        for table in tables:
            for column in lookup.columns(table):
                if column.name not in audit_columns:
                    continue
                records.append(
                    InferredRecord(
                        from_table=table,
                        to_table=user_table,
                        type=INFERRED_AUDIT,
                        inference_type=AUDIT_PATTERN,
                        confidence=self.settings.audit_pattern_confidence,
                        label=f"audit ({column.name})",
                        from_column=column.name,
                    )
                )
        return records

    def self_reference_pass(
        self, tables: list[str], lookup: _SchemaLookup
    ) -> list[InferredRecord]:
        """Relate hierarchy-style columns back to their own table."""
        records = []
        for table in tables:
            columns = lookup.columns(table)
            for column in columns:
                if not is_reference_column(column.name):
                    continue
                if not self._is_self_reference(table, column.name, columns):
                    continue
                records.append(
                    InferredRecord(
                        from_table=table,
                        to_table=table,
                        type=INFERRED_BELONGS_TO,
                        inference_type=SELF_REFERENTIAL,
                        confidence=self.settings.self_reference_confidence,
                        label=f"inferred ({column.name})",
                        from_column=column.name,
                    )
                )
        return records

    def _is_self_reference(self, table: str, column_name: str, columns: list[ColumnInfo]) -> bool:
        primary_keys = {c.name for c in columns if c.is_primary_key}
        return column_name not in primary_keys and is_self_reference_column(column_name, table)

    def transform_to_dataset(self, raw_data: InferenceAnalysis) -> Dataset:
        dataset = Dataset(metadata=self.base_metadata())
        dataset.metadata.update(
            {
                "total_relationships": len(raw_data.records),
                "tables_analyzed": raw_data.tables_analyzed,
                "inference_types": sorted({r.inference_type for r in raw_data.records}),
            }
        )

        tables: dict[str, None] = {}
        for record in raw_data.records:
            tables.setdefault(record.from_table)
            tables.setdefault(record.to_table)

        for table in tables:
            dataset.add_entity(
                Entity(
                    id=table,
                    name=table,
                    type="table",
                    metadata={"table_name": table, "source": "inferred_analysis"},
                )
            )

        for record in raw_data.records:
            self_referential = record.from_table == record.to_table
            if self_referential and not self.keeps_self_references():
                logger.debug("Dropping self-referential inference %s (%s)", record.from_table, record.label)
                continue

            metadata = {
                "inference_type": record.inference_type,
                "confidence": record.confidence,
                "from_column": record.from_column,
                "to_column": record.to_column,
                "original_type": record.type,
                "self_referential": self_referential,
            }
            if record.junction_table:
                metadata["junction_table"] = record.junction_table

            dataset.add_relationship(
                Relationship(
                    source_id=record.from_table,
                    target_id=record.to_table,
                    type=record.type,
                    label=record.label,
                    metadata=metadata,
                )
            )

        return dataset
