"""
forge_map/graph/exploration.py - Paired mutation of repository and visualizer.

EntityRepository and the visualizer's node set are the two pieces of shared
state in an exploration. Every path that adds, hides or clears entities goes
through ExplorationGraph so the two never disagree.

`generation` counts clear() calls. Async work that started before a clear
compares it after each await and drops its results when it moved.

The check-then-insert in materialize() is not atomic across an await: two
expansions can both see a key as absent before either inserts it. That race
leaves a single node because the visualizer's create_node is idempotent per key.
"""

import logging
from typing import Optional

from forge_map.graph.repository import EntityRepository
from forge_map.graph.visualizer import Visualizer
from forge_map.models import EdgeType, Entity, NodeType
from forge_map.state.codec import ExplorationState

logger = logging.getLogger(__name__)


class ExplorationGraph:
    """The materialized entity graph of one exploration view."""

    def __init__(
        self,
        visualizer: Visualizer,
        repository: Optional[EntityRepository] = None,
    ) -> None:
        self.visualizer = visualizer
        self.repository = repository if repository is not None else EntityRepository()
        self.generation = 0

    def node_id(self, node_type: NodeType, entity_id: int) -> str:
        return self.visualizer.generate_id(node_type, entity_id)

    def node_ids(self) -> list[str]:
        """Node ids of every materialized entity, in repository order."""
        return [self.node_id(key.node_type, key.entity_id) for key in self.repository.keys()]

    def materialize(self, entity: Entity, weight: Optional[float] = None) -> str:
        """Add entity to the graph if unseen; return its node id either way."""
        if self.repository.try_add(entity):
            return self.visualizer.create_node(entity.node_type, entity, weight)
        return self.node_id(entity.node_type, entity.id)

    def connect(self, a: str, b: str, edge_type: EdgeType = EdgeType.LINK) -> None:
        self.visualizer.connect_nodes(a, b, edge_type)

    def hide(self, node_id: str) -> bool:
        """Remove one node from both repository and visualizer.

        Returns False (and logs) when the node's type is not recognized.
        """
        if not self.visualizer.has_node(node_id):
            return False
        node_type = self.visualizer.get_node_type(node_id)
        if node_type is None:
            logger.warning("Cannot hide node %s: unrecognized entity type", node_id)
            return False
        self.repository.remove(node_type, self.visualizer.get_node_id(node_id))
        self.visualizer.remove_node(node_id)
        return True

    def clear(self) -> None:
        self.repository.clear()
        self.visualizer.clear()
        self.generation += 1

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def snapshot(self) -> ExplorationState:
        """Currently materialized ids per shareable category, read from the visualizer."""
        return ExplorationState(
            projects=self.visualizer.get_entity_ids_by_type(NodeType.PROJECT),
            users=self.visualizer.get_entity_ids_by_type(NodeType.USER),
            groups=self.visualizer.get_entity_ids_by_type(NodeType.GROUP),
        )
