"""
forge_map/graph/repository.py - Entity cache keyed by (node type, forge id).

Answers "has this entity already been materialized in the current graph?"
independently of the visualizer's own bookkeeping. Records are write-once:
a second snapshot of an existing key is ignored, never merged.
"""

import logging
from typing import Iterator, Optional

from forge_map.models import Entity, EntityKey, NodeType

logger = logging.getLogger(__name__)


class EntityRepository:
    """Type-partitioned, identity-deduplicating store of entity snapshots."""

    def __init__(self) -> None:
        self._entities: dict[NodeType, dict[int, Entity]] = {t: {} for t in NodeType}

    def try_add(self, entity: Entity) -> bool:
        """Insert entity iff its key is absent. Returns True if newly inserted."""
        partition = self._entities[entity.node_type]
        if entity.id in partition:
            return False
        partition[entity.id] = entity
        return True

    def remove(self, node_type: NodeType, entity_id: int) -> bool:
        """Delete a record. Returns False if it was not present."""
        return self._entities[NodeType(node_type)].pop(int(entity_id), None) is not None

    def contains(self, node_type: NodeType, entity_id: int) -> bool:
        return int(entity_id) in self._entities[NodeType(node_type)]

    def get(self, node_type: NodeType, entity_id: int) -> Optional[Entity]:
        return self._entities[NodeType(node_type)].get(int(entity_id))

    def ids(self, node_type: NodeType) -> list[int]:
        """Ids of one type, in insertion order."""
        return list(self._entities[NodeType(node_type)])

    def clear(self) -> None:
        for partition in self._entities.values():
            partition.clear()

    def keys(self) -> Iterator[EntityKey]:
        for node_type, partition in self._entities.items():
            for entity_id in partition:
                yield EntityKey(node_type, entity_id)

    def __contains__(self, key: EntityKey) -> bool:
        return self.contains(key.node_type, key.entity_id)

    def __len__(self) -> int:
        return sum(len(partition) for partition in self._entities.values())
