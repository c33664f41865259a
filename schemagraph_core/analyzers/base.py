"""Analyzer contract shared by all relationship analyzers.

Every analyzer runs the same pipeline:

    build_context() -> analyze(context) -> transform_to_dataset(raw) -> validate

``run()`` is the only entry point callers use. It never raises: failures are
logged and converted into an empty dataset whose metadata says why.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from opentelemetry.trace import Status, StatusCode

from schemagraph_core.graph import Attribute, Dataset, is_plain_value
from schemagraph_core.providers.base import ColumnInfo, ForeignKeyInfo
from schemagraph_core.settings import Settings, get_settings
from schemagraph_core.telemetry import trace_analyzer_run

logger = logging.getLogger(__name__)

EMPTY_REASON = "no data found"
FAILED_REASON = "no data found or analysis failed"


class SelfReferencePolicy(str, Enum):
    """What to do with relationships whose source and target are the same table."""

    DROP = "drop"
    FLAG = "flag"


class DatasetStatus(str, Enum):
    """Outcome of an analyzer run, stored in ``metadata["status"]``."""

    OK = "ok"
    EMPTY = "empty"
    INVALID = "invalid"
    FAILED = "failed"


@dataclass(frozen=True)
class Scope:
    """Set of tables an analysis is restricted to.

    ``tables=None`` is the global scope: every table is eligible. An explicit
    empty set puts nothing in scope.
    """

    tables: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.tables is not None and not isinstance(self.tables, frozenset):
            object.__setattr__(self, "tables", frozenset(self.tables))

    @classmethod
    def all(cls) -> Scope:
        """Get the global scope."""
        return cls()

    @classmethod
    def of(cls, tables: Iterable[str]) -> Scope:
        """Get a scope restricted to the given tables."""
        return cls(frozenset(tables))

    @property
    def is_global(self) -> bool:
        return self.tables is None

    @property
    def size(self) -> int | None:
        return None if self.tables is None else len(self.tables)

    def includes(self, table: str) -> bool:
        """Check if a table is in scope."""
        return self.tables is None or table in self.tables

    def describe(self) -> str | list[str]:
        """Scope as stored in dataset metadata."""
        return "global" if self.tables is None else sorted(self.tables)


@dataclass
class AnalysisContext:
    """Resolved input of one analyzer run."""

    scope: Scope
    tables: list[str] = field(default_factory=list)
    """Tables to analyze, in a deterministic order."""

    def in_scope(self, table: str) -> bool:
        return self.scope.includes(table)


def _is_name(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def usable_columns(columns: Iterable[ColumnInfo], owner: str) -> list[ColumnInfo]:
    """Drop provider columns without a usable name.

    Args:
        columns: Columns as returned by a provider
        owner: Table or model name, for the log message
    """
    kept = []
    for column in columns:
        if not _is_name(getattr(column, "name", None)):
            logger.warning("Skipping column without a name on %s: %r", owner, column)
            continue
        kept.append(column)
    return kept


def usable_foreign_keys(foreign_keys: Iterable[ForeignKeyInfo], table: str) -> list[ForeignKeyInfo]:
    """Drop provider foreign keys without a local column or target table."""
    kept = []
    for fk in foreign_keys:
        if not (_is_name(getattr(fk, "column", None)) and _is_name(getattr(fk, "to_table", None))):
            logger.warning("Skipping malformed foreign key on %s: %r", table, fk)
            continue
        kept.append(fk)
    return kept


def build_attributes(
    columns: Iterable[ColumnInfo],
    foreign_key_columns: Iterable[str] = (),
) -> list[Attribute]:
    """Convert provider columns to entity attributes.

    Columns are flagged as foreign keys when the provider says so, when they
    are the local column of a declared foreign key, or when they are named
    ``*_id``.
    """
    fk_columns = set(foreign_key_columns)
    attributes = []
    for column in columns:
        default = column.default
        if not is_plain_value(default):
            default = str(default)
        attributes.append(
            Attribute(
                name=column.name,
                type=column.type or "",
                nullable=column.nullable,
                default=default,
                metadata={
                    "primary_key": bool(column.is_primary_key),
                    "foreign_key": bool(
                        column.is_foreign_key
                        or column.name in fk_columns
                        or column.name.endswith("_id")
                    ),
                },
            )
        )
    return attributes


class BaseAnalyzer(ABC):
    """Base class for relationship analyzers.

    Subclasses implement ``analyzer_type``, ``analyze`` and
    ``transform_to_dataset``; schema-backed analyzers also override
    ``list_global_tables`` to enumerate tables for the global scope.
    """

    default_self_reference_policy: SelfReferencePolicy = SelfReferencePolicy.DROP

    def __init__(
        self,
        scope: Scope | Iterable[str] | None = None,
        *,
        self_reference_policy: SelfReferencePolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            scope: Scope, iterable of table names, or None for global
            self_reference_policy: Override the analyzer's default policy
            settings: Settings to use (defaults to the cached settings)
        """
        if scope is None:
            scope = Scope.all()
        elif not isinstance(scope, Scope):
            scope = Scope.of(scope)
        self.scope: Scope = scope
        self.self_reference_policy = SelfReferencePolicy(
            self_reference_policy or self.default_self_reference_policy
        )
        self.settings = settings or get_settings()

    @property
    @abstractmethod
    def analyzer_type(self) -> str:
        """Analyzer type identifier stored in dataset metadata."""
        ...

    @abstractmethod
    def analyze(self, context: AnalysisContext) -> Any:
        """Collect raw records from the provider.

        Must return an empty collection rather than raise when there is no
        data.
        """
        ...

    @abstractmethod
    def transform_to_dataset(self, raw_data: Any) -> Dataset:
        """Build a dataset from raw records without calling the provider."""
        ...

    def list_global_tables(self) -> list[str]:
        """List the tables analyzed under the global scope."""
        return []

    def build_context(self) -> AnalysisContext:
        """Resolve the scope into the tables to analyze."""
        if self.scope.is_global:
            tables = list(self.list_global_tables())
        else:
            tables = list(self.scope.tables)

        invalid = [t for t in tables if not _is_name(t)]
        if invalid:
            logger.warning("Skipping %d tables without a name", len(invalid))
            tables = [t for t in tables if _is_name(t)]
        if not self.scope.is_global:
            tables.sort()
        return AnalysisContext(scope=self.scope, tables=tables)

    def keeps_self_references(self) -> bool:
        return self.self_reference_policy is SelfReferencePolicy.FLAG

    def base_metadata(self) -> dict[str, Any]:
        """Provenance metadata common to every dataset."""
        return {
            "analyzer": type(self).__name__,
            "analyzer_type": self.analyzer_type,
            "scope": self.scope.describe(),
        }

    def empty_dataset(self, reason: str = EMPTY_REASON, **extra: Any) -> Dataset:
        """Create an empty dataset tagged with a reason."""
        metadata = self.base_metadata()
        metadata["reason"] = reason
        metadata.update(extra)
        return Dataset(metadata=metadata)

    def run(self) -> Dataset:
        """Analyze and transform, returning a dataset in every case.

        Returns:
            The analyzer's dataset. ``metadata["status"]`` is "ok", "empty",
            "invalid" or "failed".
        """
        with trace_analyzer_run(self.analyzer_type, self.scope.size) as span:
            try:
                dataset = self._execute()
            except Exception as e:
                logger.exception("%s failed", type(self).__name__)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.record_exception(e)
                dataset = self.empty_dataset(
                    FAILED_REASON,
                    status=DatasetStatus.FAILED.value,
                    error=f"{type(e).__name__}: {e}",
                    generated_at=_utc_now(),
                )

            span.set_attribute("dataset.entity_count", len(dataset.entities))
            span.set_attribute("dataset.relationship_count", len(dataset.relationships))
            span.set_attribute("dataset.status", dataset.metadata["status"])

        return dataset

    def _execute(self) -> Dataset:
        context = self.build_context()
        logger.debug("%s: analyzing %d tables", type(self).__name__, len(context.tables))

        raw_data = self.analyze(context)
        dataset = self.transform_to_dataset(raw_data)
        if not isinstance(dataset, Dataset):
            raise TypeError("transform_to_dataset must return a Dataset instance")

        if dataset.is_empty():
            status = DatasetStatus.EMPTY
            dataset.metadata.setdefault("reason", EMPTY_REASON)
        elif not dataset.is_valid():
            status = DatasetStatus.INVALID
            logger.warning(
                "%s: generated invalid dataset: %s",
                type(self).__name__,
                ", ".join(dataset.validation_errors()),
            )
        else:
            status = DatasetStatus.OK

        dataset.metadata["status"] = status.value
        dataset.metadata["generated_at"] = _utc_now()
        logger.info(
            "%s: %d entities, %d relationships (%s)",
            type(self).__name__,
            len(dataset.entities),
            len(dataset.relationships),
            status.value,
        )
        return dataset


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()
