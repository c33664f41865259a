"""Relationship analyzers.

Each analyzer reads one kind of evidence and produces a Dataset:
- ConstraintAnalyzer: Declared foreign-key constraints
- AssociationAnalyzer: Declared ORM associations
- InferenceAnalyzer: Naming and structure heuristics

Usage:
    from schemagraph_core.analyzers import ConstraintAnalyzer, Scope

    dataset = ConstraintAnalyzer(provider, Scope.of(["users", "orders"])).run()
"""

from schemagraph_core.analyzers.associations import AssociationAnalyzer
from schemagraph_core.analyzers.base import (
    AnalysisContext,
    BaseAnalyzer,
    DatasetStatus,
    Scope,
    SelfReferencePolicy,
)
from schemagraph_core.analyzers.constraints import ConstraintAnalyzer
from schemagraph_core.analyzers.inference import InferenceAnalyzer

__all__ = [
    "AnalysisContext",
    "AssociationAnalyzer",
    "BaseAnalyzer",
    "ConstraintAnalyzer",
    "DatasetStatus",
    "InferenceAnalyzer",
    "Scope",
    "SelfReferencePolicy",
]
