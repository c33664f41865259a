"""Relationships from declared ORM associations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from schemagraph_core.analyzers.associations.builder import AssociationAnalysis, DatasetBuilder
from schemagraph_core.analyzers.associations.discovery import ModelDiscovery
from schemagraph_core.analyzers.associations.extraction import AssociationExtractor
from schemagraph_core.analyzers.base import (
    AnalysisContext,
    BaseAnalyzer,
    Scope,
    SelfReferencePolicy,
    usable_columns,
)
from schemagraph_core.graph import Dataset
from schemagraph_core.providers.base import AssociationProvider, ColumnInfo
from schemagraph_core.settings import Settings

logger = logging.getLogger(__name__)


class AssociationAnalyzer(BaseAnalyzer):
    """Discovers relationships from the associations declared on ORM models.

    Runs three stages: discovery of table-backed model types, extraction of
    their in-scope associations, and dataset building. Self-referential
    associations (trees, hierarchies) are kept and flagged by default.
    """

    default_self_reference_policy = SelfReferencePolicy.FLAG

    def __init__(
        self,
        provider: AssociationProvider,
        scope: Scope | Iterable[str] | None = None,
        *,
        self_reference_policy: SelfReferencePolicy | None = None,
        settings: Settings | None = None,
    ) -> None:
        super().__init__(scope, self_reference_policy=self_reference_policy, settings=settings)
        self.provider = provider

    @property
    def analyzer_type(self) -> str:
        return "model_association"

    def analyze(self, context: AnalysisContext) -> AssociationAnalysis:
        models = ModelDiscovery(self.provider, context.scope).discover()
        extractor = AssociationExtractor(self.provider, context.scope)
        records = extractor.extract_all(models)

        analysis = AssociationAnalysis(models=models, records=records)

        for discovered in models:
            if discovered.table not in analysis.columns_by_table:
                analysis.columns_by_table[discovered.table] = self._columns(discovered.model, discovered.name)

        for record in records:
            table = record.target_table
            if not table or table in analysis.columns_by_table:
                continue
            analysis.target_names[table] = record.target_model or table
            analysis.columns_by_table[table] = self._columns(
                extractor.target_types.get(table), analysis.target_names[table]
            )

        return analysis

    def transform_to_dataset(self, raw_data: AssociationAnalysis) -> Dataset:
        builder = DatasetBuilder(keep_self_references=self.keeps_self_references())
        return builder.build(raw_data, self.base_metadata())

    def _columns(self, model: Any, name: str) -> list[ColumnInfo]:
        if model is None:
            return []
        try:
            return usable_columns(self.provider.columns_of(model), name)
        except Exception as e:
            logger.warning("Could not extract attributes for %s: %s", name, e)
            return []
