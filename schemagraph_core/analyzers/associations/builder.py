"""Dataset building from association records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from schemagraph_core.analyzers.associations.discovery import DiscoveredModel, group_by_table
from schemagraph_core.analyzers.associations.extraction import AssociationRecord
from schemagraph_core.analyzers.base import build_attributes
from schemagraph_core.graph import CARDINALITY_BY_TYPE, Dataset, Entity, Relationship
from schemagraph_core.providers.base import ColumnInfo

logger = logging.getLogger(__name__)


@dataclass
class AssociationAnalysis:
    """Raw output of the association analyzer."""

    models: list[DiscoveredModel] = field(default_factory=list)
    records: list[AssociationRecord] = field(default_factory=list)
    columns_by_table: dict[str, list[ColumnInfo]] = field(default_factory=dict)
    target_names: dict[str, str] = field(default_factory=dict)
    """Type name for target tables that no discovered model maps to."""


class DatasetBuilder:
    """Builds a dataset with one ``model`` entity per table."""

    def __init__(self, keep_self_references: bool = True) -> None:
        self.keep_self_references = keep_self_references

    def build(self, analysis: AssociationAnalysis, metadata: dict[str, Any]) -> Dataset:
        dataset = Dataset(metadata=metadata)
        dataset.metadata.update(
            {
                "total_relationships": sum(1 for r in analysis.records if not r.is_placeholder),
                "total_models": len(analysis.models),
                "model_names": [m.name for m in analysis.models],
            }
        )

        self.create_entities(dataset, analysis)
        self.create_relationships(dataset, analysis.records)
        return dataset

    def create_entities(self, dataset: Dataset, analysis: AssociationAnalysis) -> None:
        names_by_table = {
            table: [m.name for m in models] for table, models in group_by_table(analysis.models).items()
        }
        for table, name in analysis.target_names.items():
            names_by_table.setdefault(table, [name])

        for table, names in names_by_table.items():
            dataset.add_entity(
                Entity(
                    id=table,
                    name=names[0],
                    type="model",
                    attributes=build_attributes(analysis.columns_by_table.get(table, [])),
                    metadata={
                        "table_name": table,
                        "model_class": names[0],
                        "model_classes": names,
                        "source": "orm_model",
                    },
                )
            )

    def create_relationships(self, dataset: Dataset, records: list[AssociationRecord]) -> None:
        for record in records:
            if record.is_placeholder or not record.target_table:
                continue

            self_referential = record.source_table == record.target_table
            if self_referential and not self.keep_self_references:
                logger.debug(
                    "Dropping self-referential association %s.%s",
                    record.source_model,
                    record.association_name,
                )
                continue

            metadata: dict[str, Any] = {
                "association_name": record.association_name,
                "source_model": record.source_model,
                "target_model": record.target_model,
                "original_type": record.type,
                "self_referential": self_referential,
            }
            for key in ("through_table", "join_table", "foreign_key"):
                value = getattr(record, key)
                if value:
                    metadata[key] = value

            dataset.add_relationship(
                Relationship(
                    source_id=record.source_table,
                    target_id=record.target_table,
                    type=record.type,
                    label=record.association_name,
                    cardinality=CARDINALITY_BY_TYPE.get(record.type),
                    metadata=metadata,
                )
            )
