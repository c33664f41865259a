"""Graph data model for relationship analysis.

This module provides the typed graph every analyzer produces, so results
from different evidence sources share one validated, serializable shape.

Main components:
- Dataset: Container of entities and relationships with validation and stats
- Entity: Node representing a table or model
- Relationship: Directed, typed edge between entities
- Attribute: Named property (column) of an entity
- Cardinality: Allowed relationship cardinalities
"""

from schemagraph_core.graph.exceptions import (
    GraphModelError,
    InvalidAttributeError,
    InvalidEntityError,
    InvalidRelationshipError,
)
from schemagraph_core.graph.model import (
    CARDINALITY_BY_TYPE,
    VALID_CARDINALITIES,
    Attribute,
    Cardinality,
    Dataset,
    Entity,
    Relationship,
    is_plain_value,
    metadata_errors,
)

__all__ = [
    "CARDINALITY_BY_TYPE",
    "VALID_CARDINALITIES",
    "Attribute",
    "Cardinality",
    "Dataset",
    "Entity",
    "GraphModelError",
    "InvalidAttributeError",
    "InvalidEntityError",
    "InvalidRelationshipError",
    "Relationship",
    "is_plain_value",
    "metadata_errors",
]
