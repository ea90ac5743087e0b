"""
forge_map/graph/visualizer.py - Visualizer contract and networkx implementation.

The visualizer owns nodes, edges, selection and user-interaction events.
The explorer only relies on the contract below:

    - generate_id(type, entity_id) is a pure, deterministic function.
    - create_node is idempotent per generated id: creating an existing key
      returns the existing id and leaves the node untouched.
    - connect_nodes is idempotent per node pair.

NetworkXVisualizer keeps the graph in a networkx.Graph so the exploration
can be rendered (forge_map.viz.plotly_graph) or inspected in tests. Host
front-ends forward pointer events through click() / double_click().
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, Union

import networkx as nx

from forge_map.events import EventStream, Subscription
from forge_map.models import EdgeType, Group, NodeType, Project, Topic, User

logger = logging.getLogger(__name__)

# ── Node styling (consumed by the plotly renderer) ────────────────────────────
NODE_SHAPES = {
    NodeType.PROJECT: "circle",
    NodeType.USER: "diamond",
    NodeType.GROUP: "square",
    NodeType.TOPIC: "star",
}
NODE_COLORS = {
    NodeType.PROJECT: "steelblue",
    NodeType.USER: "coral",
    NodeType.GROUP: "gold",
    NodeType.TOPIC: "mediumpurple",
}


class Visualizer(Protocol):
    """Operations the explorer needs from a graph visualizer."""

    def generate_id(self, node_type: Union[NodeType, str], entity_id: int) -> str: ...

    def create_node(self, node_type: Union[NodeType, str], payload: Any, weight: Optional[float] = None) -> str: ...

    def create_project(self, project: Project, weight: Optional[float] = None) -> str: ...

    def create_user(self, user: User, weight: Optional[float] = None) -> str: ...

    def create_group(self, group: Group, weight: Optional[float] = None) -> str: ...

    def create_topic(self, topic: Topic, weight: Optional[float] = None) -> str: ...

    def connect_nodes(self, a: str, b: str, edge_type: EdgeType = EdgeType.LINK) -> None: ...

    def remove_node(self, node_id: str) -> None: ...

    def clear(self) -> None: ...

    def has_node(self, node_id: str) -> bool: ...

    def get_node_id(self, node_id: str) -> int: ...

    def get_node_type(self, node_id: str) -> Optional[NodeType]: ...

    def get_node_data(self, node_id: str) -> Any: ...

    def get_selected_nodes(self) -> list[str]: ...

    def get_entity_ids_by_type(self, node_type: NodeType) -> list[int]: ...

    def on_node_select(self, callback: Callable[[str], Any]) -> Subscription: ...

    def on_node_double_click(self, callback: Callable[[str], Any]) -> Subscription: ...


class NetworkXVisualizer:
    """In-process visualizer backed by a networkx.Graph.

    Node attributes: node_type, entity_id, label, payload, weight, shape, color.
    Edge attributes: edge_type, and for fork edges the lineage `source`.
    """

    def __init__(self) -> None:
        self._graph = nx.Graph()
        self._selected: list[str] = []
        self._select_events: EventStream[str] = EventStream("node-select")
        self._double_click_events: EventStream[str] = EventStream("node-double-click")

    @property
    def graph(self) -> nx.Graph:
        return self._graph

    # ── Identity ──────────────────────────────────────────────────────────────

    @staticmethod
    def generate_id(node_type: Union[NodeType, str], entity_id: int) -> str:
        """Deterministic node id for an entity key. No side effects."""
        type_name = node_type.value if isinstance(node_type, NodeType) else str(node_type)
        return f"{type_name}:{int(entity_id)}"

    # ── Node / edge CRUD ──────────────────────────────────────────────────────

    def create_node(
        self,
        node_type: Union[NodeType, str],
        payload: Any,
        weight: Optional[float] = None,
    ) -> str:
        entity_id = payload.id if hasattr(payload, "id") else payload["id"]
        node_id = self.generate_id(node_type, entity_id)
        if node_id in self._graph:
            return node_id

        try:
            known_type: Optional[NodeType] = NodeType(node_type)
        except ValueError:
            known_type = None
        label = getattr(payload, "label", None) or str(entity_id)
        self._graph.add_node(
            node_id,
            node_type=known_type,
            entity_id=int(entity_id),
            label=label,
            payload=payload,
            weight=weight,
            shape=NODE_SHAPES.get(known_type, "circle-open"),
            color=NODE_COLORS.get(known_type, "gray"),
        )
        logger.debug("Created node %s (%s)", node_id, label)
        return node_id

    def create_project(self, project: Project, weight: Optional[float] = None) -> str:
        return self.create_node(NodeType.PROJECT, project, weight)

    def create_user(self, user: User, weight: Optional[float] = None) -> str:
        return self.create_node(NodeType.USER, user, weight)

    def create_group(self, group: Group, weight: Optional[float] = None) -> str:
        return self.create_node(NodeType.GROUP, group, weight)

    def create_topic(self, topic: Topic, weight: Optional[float] = None) -> str:
        return self.create_node(NodeType.TOPIC, topic, weight)

    def connect_nodes(self, a: str, b: str, edge_type: EdgeType = EdgeType.LINK) -> None:
        """Add an edge between two existing nodes; a repeat pair is a no-op."""
        if a not in self._graph or b not in self._graph:
            logger.debug("Not connecting %s - %s: endpoint missing", a, b)
            return
        if self._graph.has_edge(a, b):
            return
        attrs: dict[str, Any] = {"edge_type": EdgeType(edge_type)}
        if edge_type == EdgeType.FORK:
            attrs["source"] = a
        self._graph.add_edge(a, b, **attrs)

    def remove_node(self, node_id: str) -> None:
        if node_id in self._graph:
            self._graph.remove_node(node_id)
        if node_id in self._selected:
            self._selected.remove(node_id)

    def clear(self) -> None:
        self._graph.clear()
        self._selected.clear()

    def has_node(self, node_id: str) -> bool:
        return node_id in self._graph

    # ── Queries ───────────────────────────────────────────────────────────────

    def get_node_id(self, node_id: str) -> int:
        return self._graph.nodes[node_id]["entity_id"]

    def get_node_type(self, node_id: str) -> Optional[NodeType]:
        return self._graph.nodes[node_id]["node_type"]

    def get_node_data(self, node_id: str) -> Any:
        return self._graph.nodes[node_id]["payload"]

    def get_entity_ids_by_type(self, node_type: NodeType) -> list[int]:
        """Forge ids of every node of one type, in creation order."""
        return [
            data["entity_id"]
            for _, data in self._graph.nodes(data=True)
            if data["node_type"] == node_type
        ]

    # ── Selection & events ────────────────────────────────────────────────────

    def get_selected_nodes(self) -> list[str]:
        return list(self._selected)

    def select_nodes(self, node_ids: list[str]) -> None:
        self._selected = [n for n in dict.fromkeys(node_ids) if n in self._graph]

    def on_node_select(self, callback: Callable[[str], Any]) -> Subscription:
        return self._select_events.subscribe(callback)

    def on_node_double_click(self, callback: Callable[[str], Any]) -> Subscription:
        return self._double_click_events.subscribe(callback)

    def click(self, node_id: str) -> None:
        """Select a single node and publish the select event."""
        if node_id not in self._graph:
            return
        self._selected = [node_id]
        self._select_events.emit(node_id)

    def double_click(self, node_id: str) -> None:
        if node_id not in self._graph:
            return
        self._double_click_events.emit(node_id)
