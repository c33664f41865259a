"""Extraction of association records from discovered models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from schemagraph_core.analyzers.associations.discovery import DiscoveredModel
from schemagraph_core.analyzers.base import Scope
from schemagraph_core.providers.base import (
    AssociationInfo,
    AssociationKind,
    AssociationProvider,
)

logger = logging.getLogger(__name__)

NODE_ONLY = "node_only"

# attachment is recorded as has_one
_RELATIONSHIP_TYPE_BY_KIND = {
    AssociationKind.BELONGS_TO: "belongs_to",
    AssociationKind.HAS_ONE: "has_one",
    AssociationKind.HAS_MANY: "has_many",
    AssociationKind.HAS_MANY_THROUGH: "has_many_through",
    AssociationKind.HAS_AND_BELONGS_TO_MANY: "has_and_belongs_to_many",
    AssociationKind.ATTACHMENT: "has_one",
}


@dataclass
class AssociationRecord:
    """One association between two tables, or a node-only placeholder."""

    source_table: str
    source_model: str
    type: str
    target_table: str | None = None
    target_model: str | None = None
    association_name: str | None = None
    through_table: str | None = None
    join_table: str | None = None
    foreign_key: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.type == NODE_ONLY


class AssociationExtractor:
    """Turns declared associations into flat records.

    Associations whose target table is out of scope are dropped. A model
    with no in-scope associations yields a ``node_only`` placeholder so it
    still appears as a node.
    """

    def __init__(self, provider: AssociationProvider, scope: Scope) -> None:
        self.provider = provider
        self.scope = scope
        self.target_types: dict[str, Any] = {}
        """First model type seen for each target table."""

    def extract_all(self, models: list[DiscoveredModel]) -> list[AssociationRecord]:
        """Extract records for every discovered model."""
        records: list[AssociationRecord] = []

        for discovered in models:
            try:
                associations = list(self.provider.associations_of(discovered.model))
            except Exception as e:
                logger.warning("Could not get associations for %s: %s", discovered.name, e)
                continue

            found = []
            for association in associations:
                record = self.build_record(discovered, association)
                if record is not None:
                    found.append(record)

            if found:
                records.extend(found)
            else:
                records.append(self.placeholder(discovered))

        logger.info(
            "Extracted %d associations from %d models",
            sum(1 for r in records if not r.is_placeholder),
            len(models),
        )
        return records

    def placeholder(self, discovered: DiscoveredModel) -> AssociationRecord:
        return AssociationRecord(
            source_table=discovered.table,
            source_model=discovered.name,
            type=NODE_ONLY,
        )

    def build_record(
        self, discovered: DiscoveredModel, association: AssociationInfo
    ) -> AssociationRecord | None:
        """Build a record for one association, or None if it is skipped."""
        if association.polymorphic:
            logger.debug("Skipping polymorphic association %s.%s", discovered.name, association.name)
            return None

        try:
            kind = AssociationKind(association.kind)
        except ValueError:
            logger.warning(
                "Unknown association type: %s for %s.%s",
                association.kind,
                discovered.name,
                association.name,
            )
            return None

        try:
            target_table = self.provider.table_of(association.target_type)
            target_model = self.provider.name_of(association.target_type)
        except Exception as e:
            logger.warning("Could not get table name for %s.%s: %s", discovered.name, association.name, e)
            return None

        if not target_table or not self.scope.includes(target_table):
            return None

        self.target_types.setdefault(target_table, association.target_type)

        label = association.name
        through_table = None
        if kind is AssociationKind.HAS_MANY_THROUGH:
            through_table = self._through_table(association)
            if through_table:
                label = f"{association.name} (through {through_table})"

        return AssociationRecord(
            source_table=discovered.table,
            source_model=discovered.name,
            type=_RELATIONSHIP_TYPE_BY_KIND[kind],
            target_table=target_table,
            target_model=target_model,
            association_name=label,
            through_table=through_table,
            join_table=association.join_table,
            foreign_key=association.foreign_key,
        )

    def _through_table(self, association: AssociationInfo) -> str | None:
        if association.through_type is None:
            return association.join_table
        try:
            return self.provider.table_of(association.through_type)
        except Exception as e:
            logger.debug("Could not resolve through table of %s: %s", association.name, e)
            return association.join_table
