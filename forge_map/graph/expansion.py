"""
forge_map/graph/expansion.py - On-demand expansion of graph nodes.

Double-clicking a node fetches the entities related to it and wires them
into the graph:

    project -> its users and its groups (two concurrent requests)
    user    -> the user's projects
    group   -> the group's projects
    project -> its forks, in the fork lineage view (EdgeType.FORK)

Each response is applied as soon as it arrives. Responses that arrive after the
graph was cleared, or after their origin was hidden, are dropped. Re-expanding a node is
allowed: materialization is idempotent per EntityKey and connect_nodes is
idempotent per pair, so a repeat only costs the extra requests.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

from forge_map.events import Subscription, TaskHandle
from forge_map.graph.exploration import ExplorationGraph
from forge_map.ingestion.groups_client import GroupsClient
from forge_map.ingestion.projects_client import ProjectsClient
from forge_map.ingestion.users_client import UsersClient
from forge_map.models import EdgeType, Entity, NodeType, Project

logger = logging.getLogger(__name__)


class ExpansionState(str, Enum):
    COLLAPSED = "collapsed"
    EXPANDING = "expanding"
    EXPANDED = "expanded"


def _fork_weight(entity: Entity) -> Optional[float]:
    return float(entity.forks_count) if isinstance(entity, Project) else None


class GraphExpansionCoordinator:
    """Turns node double-clicks into relation fetches and graph growth.

    Args:
        graph:     ExplorationGraph receiving the related entities.
        projects:  Client for project relations (users, groups, forks).
        users:     Client for a user's projects.
        groups:    Client for a group's projects.
        fork_mode: When True, double-click expands project forks instead of
                   the regular project/user/group relations.
    """

    def __init__(
        self,
        graph: ExplorationGraph,
        projects: ProjectsClient,
        users: UsersClient,
        groups: GroupsClient,
        fork_mode: bool = False,
    ) -> None:
        self.graph = graph
        self._projects = projects
        self._users = users
        self._groups = groups
        self.fork_mode = fork_mode
        self._states: dict[str, ExpansionState] = {}
        self._pending: set[TaskHandle] = set()

    def state_of(self, node_id: str) -> ExpansionState:
        return self._states.get(node_id, ExpansionState.COLLAPSED)

    def cancel_pending(self) -> None:
        """Cancel every expansion scheduled by double-click."""
        for handle in list(self._pending):
            handle.unsubscribe()

    def forget(self, node_id: Optional[str] = None) -> None:
        """Drop recorded expansion state for one node, or for all nodes."""
        if node_id is None:
            self._states.clear()
        else:
            self._states.pop(node_id, None)

    async def expand(self, node_id: str) -> list[str]:
        """Fetch and link the entities related to node_id.

        Returns the node ids linked to the origin. Errors from the forge
        propagate to the caller.
        """
        visualizer = self.graph.visualizer
        if not visualizer.has_node(node_id):
            logger.debug("Ignoring expansion of unknown node %s", node_id)
            return []

        node_type = visualizer.get_node_type(node_id)
        entity_id = visualizer.get_node_id(node_id)

        if node_type == NodeType.PROJECT:
            fetches = [
                self._projects.get_users(entity_id),
                self._projects.get_groups(entity_id),
            ]
        elif node_type == NodeType.USER:
            fetches = [self._users.get_user_projects(entity_id)]
        elif node_type == NodeType.GROUP:
            fetches = [self._groups.get_group_projects(entity_id)]
        else:
            logger.debug("Node %s of type %s has no expandable relations", node_id, node_type)
            return []

        return await self._run(node_id, fetches, EdgeType.LINK)

    async def expand_forks(self, node_id: str) -> list[str]:
        """Fetch a project's forks and link them with fork-of edges."""
        visualizer = self.graph.visualizer
        if not visualizer.has_node(node_id) or visualizer.get_node_type(node_id) != NodeType.PROJECT:
            logger.debug("Ignoring fork expansion of non-project node %s", node_id)
            return []
        fetch = self._projects.get_forks(visualizer.get_node_id(node_id))
        return await self._run(node_id, [fetch], EdgeType.FORK, weight=_fork_weight)

    async def _run(
        self,
        node_id: str,
        fetches: list[Awaitable[list[Entity]]],
        edge_type: EdgeType,
        weight: Optional[Callable[[Entity], Optional[float]]] = None,
    ) -> list[str]:
        generation = self.graph.generation
        self._states[node_id] = ExpansionState.EXPANDING
        try:
            batches = await asyncio.gather(
                *(
                    self._link_related(node_id, generation, fetch, edge_type, weight)
                    for fetch in fetches
                )
            )
        except BaseException:
            if self.graph.is_current(generation):
                self._states[node_id] = ExpansionState.COLLAPSED
            raise
        if not self.graph.is_current(generation):
            return []
        self._states[node_id] = ExpansionState.EXPANDED
        linked = [nid for batch in batches for nid in batch]
        logger.debug("Expanded %s: %d related node(s)", node_id, len(linked))
        return linked

    async def _link_related(
        self,
        origin: str,
        generation: int,
        fetch: Awaitable[list[Entity]],
        edge_type: EdgeType,
        weight: Optional[Callable[[Entity], Optional[float]]],
    ) -> list[str]:
        entities: Iterable[Entity] = await fetch
        if not self.graph.is_current(generation):
            logger.debug("Dropping relations of %s: graph cleared since the request", origin)
            return []
        if not self.graph.visualizer.has_node(origin):
            logger.debug("Dropping relations of %s: node no longer in graph", origin)
            return []
        linked = []
        for entity in entities:
            related = self.graph.materialize(entity, weight(entity) if weight else None)
            self.graph.connect(origin, related, edge_type)
            linked.append(related)
        return linked

    # ── Event wiring ──────────────────────────────────────────────────────────

    def handle_double_click(self, node_id: str) -> Optional[TaskHandle]:
        """Schedule the expansion of node_id on the running loop."""
        if not node_id:
            return None
        coro = self.expand_forks(node_id) if self.fork_mode else self.expand(node_id)
        handle = TaskHandle.spawn(coro, label=f"expand {node_id}")
        self._pending.add(handle)

        def _finished(task: asyncio.Task) -> None:
            self._pending.discard(handle)
            if task.cancelled():
                return
            exc = task.exception()
            if exc is not None:
                logger.warning("Expansion of %s failed: %s", node_id, exc)

        handle.add_done_callback(_finished)
        return handle

    def attach(self) -> Subscription:
        """Expand nodes on the visualizer's double-click stream."""
        return self.graph.visualizer.on_node_double_click(self.handle_double_click)

    async def drain(self) -> None:
        """Wait for every scheduled expansion to finish."""
        while self._pending:
            await asyncio.gather(*(h.wait() for h in list(self._pending)), return_exceptions=True)
