"""Discovery of concrete, table-backed model types."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from schemagraph_core.analyzers.base import Scope
from schemagraph_core.providers.base import AssociationProvider

logger = logging.getLogger(__name__)


@dataclass
class DiscoveredModel:
    """A model type together with its resolved name and table."""

    model: Any
    name: str
    table: str


class ModelDiscovery:
    """Enumerates model types and filters them to the scope.

    Types that are abstract, unnamed, whose table does not exist, or whose
    introspection raises are skipped. Several types may map to one table.
    """

    def __init__(self, provider: AssociationProvider, scope: Scope) -> None:
        self.provider = provider
        self.scope = scope

    def discover(self) -> list[DiscoveredModel]:
        """Discover in-scope models, ordered by table name then type name."""
        try:
            candidates = list(self.provider.list_model_types())
        except Exception as e:
            logger.warning("Could not list model types: %s", e)
            return []

        discovered = []
        for model in candidates:
            described = self.describe(model)
            if described is None or not self.scope.includes(described.table):
                continue
            discovered.append(described)

        discovered.sort(key=lambda m: (m.table, m.name))
        logger.debug(
            "Discovered %d of %d model types: %s",
            len(discovered),
            len(candidates),
            ", ".join(f"{m.name} ({m.table})" for m in discovered),
        )
        return discovered

    def describe(self, model: Any) -> DiscoveredModel | None:
        """Resolve a model type, or return None if it is not a usable model."""
        try:
            name = self.provider.name_of(model)
            if not name:
                return None
            if self.provider.is_abstract(model):
                return None
            table = self.provider.table_of(model)
            if not table or not self.provider.table_exists(table):
                return None
        except Exception as e:
            logger.debug("Skipping model %r: %s", model, e)
            return None
        return DiscoveredModel(model=model, name=name, table=table)


def group_by_table(models: list[DiscoveredModel]) -> dict[str, list[DiscoveredModel]]:
    """Group discovered models by backing table, preserving order."""
    grouped: dict[str, list[DiscoveredModel]] = {}
    for discovered in models:
        grouped.setdefault(discovered.table, []).append(discovered)
    return grouped
