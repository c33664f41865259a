"""Graph data model for table relationship datasets.

This module provides the value objects that every analyzer produces:
- Attribute: A named property of an entity (usually a column)
- Entity: A node representing a table or model
- Relationship: A directed, typed edge between two entities
- Dataset: The graph container with validation and statistics

Entities and relationships are validated when they are added to a dataset.
Endpoint existence is only checked by ``Dataset.validation_errors()``, so a
dataset may hold a dangling relationship until both ends have been added.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from schemagraph_core.graph.exceptions import (
    InvalidAttributeError,
    InvalidEntityError,
    InvalidRelationshipError,
)

logger = logging.getLogger(__name__)

DEFAULT_ENTITY_TYPE = "default"


class Cardinality(str, Enum):
    """Cardinality of a relationship."""

    ONE_TO_ONE = "one_to_one"
    ONE_TO_MANY = "one_to_many"
    MANY_TO_ONE = "many_to_one"
    MANY_TO_MANY = "many_to_many"


VALID_CARDINALITIES = frozenset(c.value for c in Cardinality)

# Relationship type -> cardinality used when none is set explicitly
CARDINALITY_BY_TYPE: dict[str, str] = {
    "has_many": Cardinality.ONE_TO_MANY.value,
    "belongs_to": Cardinality.MANY_TO_ONE.value,
    "has_one": Cardinality.ONE_TO_ONE.value,
    "has_and_belongs_to_many": Cardinality.MANY_TO_MANY.value,
    "has_many_through": Cardinality.MANY_TO_MANY.value,
}


# =============================================================================
# Metadata helpers
# =============================================================================


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def is_plain_value(value: Any) -> bool:
    """Check that a value survives a JSON round trip unchanged."""
    if value is None or isinstance(value, (str, bool, int, float)):
        return True
    if isinstance(value, list):
        return all(is_plain_value(item) for item in value)
    if isinstance(value, dict):
        return all(isinstance(k, str) and is_plain_value(v) for k, v in value.items())
    return False


def metadata_errors(metadata: Any) -> list[str]:
    """Validate an open metadata map.

    Metadata must be a string-keyed dict whose values are JSON-compatible:
    None, str, int, float, bool, lists of those, or nested dicts of those.

    Args:
        metadata: The value to validate

    Returns:
        List of validation error messages (empty when valid)
    """
    if not isinstance(metadata, dict):
        return ["Metadata must be a dict"]

    errors: list[str] = []
    for key, value in metadata.items():
        if not isinstance(key, str):
            errors.append(f"Metadata key {key!r} must be a string")
        elif not is_plain_value(value):
            errors.append(f"Metadata value for {key!r} is not JSON-compatible")
    return errors


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=repr)


# =============================================================================
# Value objects
# =============================================================================


@dataclass(frozen=True)
class Attribute:
    """A named property of an entity, such as a table column.

    Attributes are immutable and compared by all fields.
    """

    name: str
    """Attribute name (required, non-blank)."""

    type: str = ""
    """Declared data type; may be empty."""

    nullable: bool = True
    """Whether the attribute accepts null values."""

    default: Any = None
    """Default value, opaque to the model."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Open metadata; recognized keys are ``primary_key`` and ``foreign_key``."""

    def __post_init__(self) -> None:
        if self.type is None:
            object.__setattr__(self, "type", "")
        if self.nullable is None:
            object.__setattr__(self, "nullable", True)

    def __hash__(self) -> int:
        return hash(
            (self.name, self.type, self.nullable, _canonical(self.default), _canonical(self.metadata))
        )

    @property
    def is_primary_key(self) -> bool:
        """Check if the attribute is marked as a primary key."""
        return isinstance(self.metadata, dict) and self.metadata.get("primary_key") is True

    @property
    def is_foreign_key(self) -> bool:
        """Check if the attribute is a foreign key (flagged or ``*_id`` named)."""
        flagged = isinstance(self.metadata, dict) and self.metadata.get("foreign_key") is True
        return flagged or (isinstance(self.name, str) and self.name.endswith("_id"))

    def validation_errors(self) -> list[str]:
        """Get validation errors for this attribute."""
        errors: list[str] = []
        if _is_blank(self.name):
            errors.append("Name cannot be blank")
        errors.extend(metadata_errors(self.metadata))
        return errors

    def is_valid(self) -> bool:
        """Check if the attribute has all required fields."""
        return not self.validation_errors()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "default": copy.deepcopy(self.default),
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attribute:
        """Create from dictionary."""
        return cls(
            name=data.get("name"),
            type=data.get("type", ""),
            nullable=data.get("nullable", True),
            default=copy.deepcopy(data.get("default")),
            metadata=copy.deepcopy(data.get("metadata") or {}),
        )


@dataclass
class Entity:
    """A graph node representing a table or model.

    Entities are identified by ``id``, which must be unique within a dataset.
    """

    id: str
    """Unique identifier, conventionally the table name."""

    name: str
    """Display name."""

    type: str = DEFAULT_ENTITY_TYPE
    """Entity type, conventionally "table" or "model"."""

    attributes: list[Attribute] = field(default_factory=list)
    """Ordered attributes (columns)."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Open metadata; conventional keys are ``table_name`` and ``source``."""

    def validation_errors(self) -> list[str]:
        """Get validation errors for this entity and its attributes."""
        errors: list[str] = []
        if _is_blank(self.id):
            errors.append("ID cannot be blank")
        if _is_blank(self.name):
            errors.append("Name cannot be blank")
        if _is_blank(self.type):
            errors.append("Type cannot be blank")
        errors.extend(metadata_errors(self.metadata))

        for index, attribute in enumerate(self.attributes):
            if not isinstance(attribute, Attribute):
                errors.append(f"Attribute {index} must be an Attribute")
                continue
            attribute_errors = attribute.validation_errors()
            if attribute_errors:
                errors.append(f"Attribute {index} is invalid: {', '.join(attribute_errors)}")
        return errors

    def is_valid(self) -> bool:
        """Check if the entity has all required fields."""
        return not self.validation_errors()

    def add_attribute(self, attribute: Attribute) -> Attribute:
        """Append an attribute to the entity.

        Args:
            attribute: The attribute to add

        Returns:
            The added attribute

        Raises:
            TypeError: If ``attribute`` is not an Attribute
            InvalidAttributeError: If the attribute is invalid
        """
        if not isinstance(attribute, Attribute):
            raise TypeError("attribute must be an Attribute instance")

        errors = attribute.validation_errors()
        if errors:
            raise InvalidAttributeError(f"Attribute is invalid: {', '.join(errors)}", errors)

        self.attributes.append(attribute)
        return attribute

    def get_attribute(self, name: str) -> Attribute | None:
        """Get the first attribute with the given name."""
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        return None

    def primary_key_attributes(self) -> list[Attribute]:
        """Get attributes marked as primary keys."""
        return [a for a in self.attributes if a.is_primary_key]

    def foreign_key_attributes(self) -> list[Attribute]:
        """Get attributes that are foreign keys."""
        return [a for a in self.attributes if a.is_foreign_key]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "attributes": [attribute.to_dict() for attribute in self.attributes],
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Entity:
        """Create from dictionary, including nested attributes."""
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            type=data.get("type") or DEFAULT_ENTITY_TYPE,
            attributes=[Attribute.from_dict(a) for a in data.get("attributes") or []],
            metadata=copy.deepcopy(data.get("metadata") or {}),
        )


@dataclass
class Relationship:
    """A directed, typed edge between two entities.

    A relationship whose source and target are the same entity is only valid
    when its metadata marks it as ``self_referential``.
    """

    source_id: str
    """ID of the source entity."""

    target_id: str
    """ID of the target entity."""

    type: str
    """Relationship type (foreign_key, belongs_to, has_many, ...)."""

    label: str | None = None
    """Optional display label."""

    cardinality: str | None = None
    """One of the Cardinality values, or None when unknown."""

    metadata: dict[str, Any] = field(default_factory=dict)
    """Open metadata (confidence, inference_type, self_referential, ...)."""

    def __post_init__(self) -> None:
        if isinstance(self.cardinality, Cardinality):
            self.cardinality = self.cardinality.value

    @property
    def is_self_referential(self) -> bool:
        """Check if metadata explicitly marks this edge as self-referential."""
        return isinstance(self.metadata, dict) and self.metadata.get("self_referential") is True

    def validation_errors(self) -> list[str]:
        """Get validation errors for this relationship."""
        errors: list[str] = []
        if _is_blank(self.source_id):
            errors.append("Source ID cannot be blank")
        if _is_blank(self.target_id):
            errors.append("Target ID cannot be blank")
        if _is_blank(self.type):
            errors.append("Type cannot be blank")
        if self.cardinality is not None and self.cardinality not in VALID_CARDINALITIES:
            errors.append(f"Invalid cardinality: {self.cardinality}")
        errors.extend(metadata_errors(self.metadata))
        if self.source_id == self.target_id and not self.is_self_referential:
            errors.append("Source and target cannot be the same unless marked self_referential")
        return errors

    def is_valid(self) -> bool:
        """Check if the relationship has all required fields."""
        return not self.validation_errors()

    def infer_cardinality(self) -> str | None:
        """Get the explicit cardinality, or infer it from the relationship type."""
        if self.cardinality:
            return self.cardinality
        return CARDINALITY_BY_TYPE.get(self.type)

    def touches(self, entity_id: str) -> bool:
        """Check if either endpoint is the given entity."""
        return self.source_id == entity_id or self.target_id == entity_id

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "source_id": self.source_id,
            "target_id": self.target_id,
            "type": self.type,
            "label": self.label,
            "cardinality": self.cardinality,
            "metadata": copy.deepcopy(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Relationship:
        """Create from dictionary."""
        return cls(
            source_id=data.get("source_id"),
            target_id=data.get("target_id"),
            type=data.get("type"),
            label=data.get("label"),
            cardinality=data.get("cardinality"),
            metadata=copy.deepcopy(data.get("metadata") or {}),
        )


# =============================================================================
# Dataset
# =============================================================================


class Dataset:
    """Container of entities and relationships produced by one analyzer run.

    Entities are keyed by id; adding an entity whose id is already present
    replaces the previous one. Relationships are kept in insertion order and
    duplicates are allowed.
    """

    def __init__(self, metadata: dict[str, Any] | None = None) -> None:
        """Initialize an empty dataset.

        Args:
            metadata: Optional dataset-level metadata (provenance, counts)
        """
        self.entities: dict[str, Entity] = {}
        self.relationships: list[Relationship] = []
        self.metadata: dict[str, Any] = {} if metadata is None else metadata

    def add_entity(self, entity: Entity) -> Entity:
        """Add an entity, replacing any entity with the same id.

        Args:
            entity: The entity to add

        Returns:
            The added entity

        Raises:
            TypeError: If ``entity`` is not an Entity
            InvalidEntityError: If the entity is invalid
        """
        if not isinstance(entity, Entity):
            raise TypeError("entity must be an Entity instance")

        errors = entity.validation_errors()
        if errors:
            raise InvalidEntityError(f"Entity is invalid: {', '.join(errors)}", errors)

        if entity.id in self.entities:
            logger.debug("Replacing entity %s", entity.id)
        self.entities[entity.id] = entity
        return entity

    def add_relationship(self, relationship: Relationship) -> Relationship:
        """Add a relationship.

        Endpoints are not required to exist yet; ``validation_errors()``
        reports relationships whose endpoints are still missing.

        Args:
            relationship: The relationship to add

        Returns:
            The added relationship

        Raises:
            TypeError: If ``relationship`` is not a Relationship
            InvalidRelationshipError: If the relationship is invalid
        """
        if not isinstance(relationship, Relationship):
            raise TypeError("relationship must be a Relationship instance")

        errors = relationship.validation_errors()
        if errors:
            raise InvalidRelationshipError(f"Relationship is invalid: {', '.join(errors)}", errors)

        self.relationships.append(relationship)
        return relationship

    def get_entity(self, entity_id: str) -> Entity | None:
        """Get an entity by id."""
        return self.entities.get(entity_id)

    def has_entity(self, entity_id: str) -> bool:
        """Check if an entity exists."""
        return entity_id in self.entities

    def remove_entity(self, entity_id: str) -> Entity | None:
        """Remove an entity and every relationship touching it.

        Args:
            entity_id: ID of the entity to remove

        Returns:
            The removed entity, or None if it was not present
        """
        entity = self.entities.pop(entity_id, None)
        self.relationships = [r for r in self.relationships if not r.touches(entity_id)]
        return entity

    def remove_relationship(self, relationship: Relationship) -> bool:
        """Remove the first relationship equal to the given one.

        Returns:
            True if a relationship was removed
        """
        try:
            self.relationships.remove(relationship)
        except ValueError:
            return False
        return True

    def relationships_for(self, entity_id: str, direction: str = "all") -> list[Relationship]:
        """Get relationships of an entity.

        Args:
            entity_id: The entity id
            direction: "outgoing", "incoming", or "all"

        Returns:
            Matching relationships in insertion order

        Raises:
            ValueError: If direction is not recognized
        """
        if direction == "outgoing":
            return [r for r in self.relationships if r.source_id == entity_id]
        if direction == "incoming":
            return [r for r in self.relationships if r.target_id == entity_id]
        if direction == "all":
            return [r for r in self.relationships if r.touches(entity_id)]
        raise ValueError("direction must be 'outgoing', 'incoming', or 'all'")

    def validation_errors(self) -> list[str]:
        """Validate entities, relationships and relationship endpoints."""
        errors: list[str] = []

        for entity_id, entity in self.entities.items():
            entity_errors = entity.validation_errors()
            if entity_errors:
                errors.append(f"Entity {entity_id} is invalid: {', '.join(entity_errors)}")
            if entity.id != entity_id:
                errors.append(f"Entity key {entity_id} does not match entity id {entity.id}")

        for index, relationship in enumerate(self.relationships):
            relationship_errors = relationship.validation_errors()
            if relationship_errors:
                errors.append(
                    f"Relationship {index} is invalid: {', '.join(relationship_errors)}"
                )
            if not self.has_entity(relationship.source_id):
                errors.append(
                    f"Relationship {index} references non-existent source entity: "
                    f"{relationship.source_id}"
                )
            if not self.has_entity(relationship.target_id):
                errors.append(
                    f"Relationship {index} references non-existent target entity: "
                    f"{relationship.target_id}"
                )

        errors.extend(f"Dataset {message[0].lower()}{message[1:]}" for message in metadata_errors(self.metadata))
        return errors

    def is_valid(self) -> bool:
        """Check if the dataset and all its members are valid."""
        return not self.validation_errors()

    def _connected_ids(self) -> set[str]:
        ids: set[str] = set()
        for relationship in self.relationships:
            ids.add(relationship.source_id)
            ids.add(relationship.target_id)
        return ids

    def isolated_entities(self) -> list[Entity]:
        """Get entities that have no relationships."""
        connected = self._connected_ids()
        return [e for e in self.entities.values() if e.id not in connected]

    def connected_entities(self) -> list[Entity]:
        """Get entities that have at least one relationship."""
        connected = self._connected_ids()
        return [e for e in self.entities.values() if e.id in connected]

    def stats(self) -> dict[str, Any]:
        """Get dataset statistics."""
        return {
            "entity_count": len(self.entities),
            "relationship_count": len(self.relationships),
            "entity_types": sorted({e.type for e in self.entities.values()}),
            "relationship_types": sorted({r.type for r in self.relationships}),
            "isolated_entities": [e.id for e in self.isolated_entities()],
            "connected_entities": [e.id for e in self.connected_entities()],
        }

    def is_empty(self) -> bool:
        """Check if the dataset has no entities and no relationships."""
        return not self.entities and not self.relationships

    def clear(self) -> Dataset:
        """Remove all entities, relationships and metadata."""
        self.entities.clear()
        self.relationships.clear()
        self.metadata.clear()
        return self

    def to_dict(self) -> dict[str, Any]:
        """Serialize the dataset to a plain dictionary.

        Returns:
            Dictionary with entities, relationships, metadata and stats
        """
        return {
            "entities": {entity_id: e.to_dict() for entity_id, e in self.entities.items()},
            "relationships": [r.to_dict() for r in self.relationships],
            "metadata": copy.deepcopy(self.metadata),
            "stats": self.stats(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dataset:
        """Deserialize a dataset from a plain dictionary.

        The ``stats`` section is derived data and is ignored.

        Args:
            data: Dictionary representation

        Returns:
            Dataset instance

        Raises:
            GraphModelError: If an entity or relationship is invalid
        """
        dataset = cls(metadata=copy.deepcopy(data.get("metadata") or {}))
        for entity_data in (data.get("entities") or {}).values():
            dataset.add_entity(Entity.from_dict(entity_data))
        for relationship_data in data.get("relationships") or []:
            dataset.add_relationship(Relationship.from_dict(relationship_data))
        return dataset

    def to_json(self, **kwargs: Any) -> str:
        """Serialize the dataset to a JSON string."""
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_json(cls, payload: str) -> Dataset:
        """Deserialize a dataset from a JSON string."""
        return cls.from_dict(json.loads(payload))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Dataset):
            return NotImplemented
        return (
            self.entities == other.entities
            and self.relationships == other.relationships
            and self.metadata == other.metadata
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Dataset(entities={len(self.entities)}, relationships={len(self.relationships)})"
