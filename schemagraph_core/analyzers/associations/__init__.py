"""Association analysis: discovery, extraction and dataset building."""

from schemagraph_core.analyzers.associations.analyzer import AssociationAnalyzer
from schemagraph_core.analyzers.associations.builder import AssociationAnalysis, DatasetBuilder
from schemagraph_core.analyzers.associations.discovery import (
    DiscoveredModel,
    ModelDiscovery,
    group_by_table,
)
from schemagraph_core.analyzers.associations.extraction import (
    NODE_ONLY,
    AssociationExtractor,
    AssociationRecord,
)

__all__ = [
    "NODE_ONLY",
    "AssociationAnalysis",
    "AssociationAnalyzer",
    "AssociationExtractor",
    "AssociationRecord",
    "DatasetBuilder",
    "DiscoveredModel",
    "ModelDiscovery",
    "group_by_table",
]
