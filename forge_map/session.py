"""
forge_map/session.py - Exploration views wiring the graph engine together.

    ProjectsExplorer    search / topic-restricted project graph with
                        expansion, restore, selection panels and toolbar.
    TopicsExplorer      topic map weighted by project count; choosing a
                        topic hands its name to the projects view.
    ForkLineageExplorer projects of one topic and their forks.

Superseding rule: a new search or topic query cancels the one in flight,
then clears the graph and its repository before fetching. A cancelled load
never applies another batch. Selection panel loads follow the same rule,
and so do expansions and restores started before the clear.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import httpx

from forge_map.actions import SelectionActionDispatcher
from forge_map.config import DEFAULT_CONFIG, ForgeMapConfig
from forge_map.events import EventStream, Subscription, TaskHandle
from forge_map.graph.exploration import ExplorationGraph
from forge_map.graph.expansion import ExpansionState, GraphExpansionCoordinator
from forge_map.graph.restore import RestoreCoordinator
from forge_map.graph.visualizer import NetworkXVisualizer, Visualizer
from forge_map.ingestion.groups_client import GroupsClient
from forge_map.ingestion.projects_client import ProjectsClient
from forge_map.ingestion.topics_client import TopicsClient
from forge_map.ingestion.transport import ForgeTransport
from forge_map.ingestion.users_client import UsersClient
from forge_map.models import NodeType, Project, Topic
from forge_map.presentation import LoggingNotifier, PresentationNotifier
from forge_map.state.codec import ExplorationState

logger = logging.getLogger(__name__)

# Side panel attributes of ProjectsExplorer and their value when empty
PANEL_DEFAULTS: dict[str, Any] = {
    "selected_project_readme": "",
    "selected_user_projects": [],
    "selected_group_members": [],
}


@dataclass
class ForgeClients:
    """The resource clients sharing one transport."""

    projects: ProjectsClient
    users: UsersClient
    groups: GroupsClient
    topics: TopicsClient

    @classmethod
    def over(cls, transport: ForgeTransport) -> "ForgeClients":
        return cls(
            projects=ProjectsClient(transport),
            users=UsersClient(transport),
            groups=GroupsClient(transport),
            topics=TopicsClient(transport),
        )


class SupersedingLoader:
    """Runs at most one paginated load at a time.

    start() cancels the previous load, calls `reset` (clear the graph), and
    streams the new batches into `apply`. `is_loading` is cleared when the
    current load ends, however it ends; a superseded load never touches it.
    """

    def __init__(self, reset: Callable[[], None]) -> None:
        self._reset = reset
        self._current: Optional[TaskHandle] = None
        self._generation = 0
        self.is_loading = False

    def start(
        self,
        batches: AsyncIterator[list[Any]],
        apply: Callable[[list[Any]], None],
        label: str,
    ) -> TaskHandle:
        self.cancel()
        self._reset()
        self._generation += 1
        self.is_loading = True
        self._current = TaskHandle.spawn(self._consume(batches, apply, label, self._generation), label)
        return self._current

    def cancel(self) -> None:
        if self._current is not None:
            self._current.unsubscribe()
            self._current = None
        self.is_loading = False

    async def _consume(
        self,
        batches: AsyncIterator[list[Any]],
        apply: Callable[[list[Any]], None],
        label: str,
        generation: int,
    ) -> int:
        applied = 0
        logger.info("Loading %s", label)
        try:
            async for batch in batches:
                apply(batch)
                applied += len(batch)
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            # KeyError: an item without "id"; ValueError: a body that is not JSON
            logger.warning("Loading %s stopped after %d item(s): %r", label, applied, exc)
        finally:
            if generation == self._generation:
                self.is_loading = False
        logger.info("Loaded %d item(s) for %s", applied, label)
        return applied


class ProjectsExplorer:
    """The project graph view.

    Args:
        clients:           Forge resource clients.
        visualizer:        Visualizer collaborator (networkx-backed by default).
        notifier:          Host presentation services (logging by default).
        config:            ForgeMapConfig.
        restriction_topic: When set, every query shows this topic's projects.
    """

    def __init__(
        self,
        clients: ForgeClients,
        visualizer: Optional[Visualizer] = None,
        notifier: Optional[PresentationNotifier] = None,
        config: ForgeMapConfig = DEFAULT_CONFIG,
        restriction_topic: Optional[str] = None,
    ) -> None:
        self.clients = clients
        self.config = config
        self.restriction_topic = restriction_topic
        self.visualizer = visualizer if visualizer is not None else NetworkXVisualizer()
        self.graph = ExplorationGraph(self.visualizer)
        self.expansion = GraphExpansionCoordinator(
            self.graph, clients.projects, clients.users, clients.groups
        )
        self.restorer = RestoreCoordinator(self.graph, clients.projects)
        self.actions = SelectionActionDispatcher(
            self.graph, self.expansion, notifier or LoggingNotifier(), config
        )
        self.loader = SupersedingLoader(self._reset)

        self.selected_element: Any = None
        self.selected_user_projects: list = []
        self.selected_group_members: list = []
        self.selected_project_readme: str = ""
        self._panel_requests: dict[str, TaskHandle] = {}
        self._subscriptions: list[Subscription] = []

    @property
    def is_loading(self) -> bool:
        return self.loader.is_loading

    def attach(self) -> None:
        """Subscribe to the visualizer's double-click and select streams."""
        self._subscriptions = [
            self.expansion.attach(),
            self.visualizer.on_node_select(self.on_node_selected),
        ]

    def detach(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []

    def _reset(self) -> None:
        self.expansion.cancel_pending()
        self.graph.clear()
        self.expansion.forget()

    def _add_projects(self, projects: list[Project]) -> None:
        for project in projects:
            self.graph.materialize(project)

    # ── Entry points ──────────────────────────────────────────────────────────

    def search(self, query: str) -> Optional[TaskHandle]:
        """Replace the graph with the projects matching query.

        An empty query, or an active topic restriction, shows the topic's
        projects instead.
        """
        if not query or self.restriction_topic:
            return self.show_topic_projects()
        return self.loader.start(
            self.clients.projects.iter_search(query), self._add_projects, f"search {query!r}"
        )

    def show_topic_projects(self) -> Optional[TaskHandle]:
        if not self.restriction_topic:
            return None
        return self.loader.start(
            self.clients.projects.iter_by_topic(self.restriction_topic),
            self._add_projects,
            f"topic {self.restriction_topic!r}",
        )

    async def restore(self, state: ExplorationState) -> int:
        """Replace the graph with a shared exploration state."""
        self.loader.cancel()
        self._reset()
        return await self.restorer.restore(state)

    async def expand_all(self) -> int:
        """Expand every node currently in the graph once; returns the new node count."""
        pending = [
            node_id for node_id in self.graph.node_ids()
            if self.expansion.state_of(node_id) == ExpansionState.COLLAPSED
        ]
        self.visualizer.select_nodes(pending)
        await self.actions.expand_selection()
        return len(self.graph.repository)

    # ── Selection panels ──────────────────────────────────────────────────────

    def _cancel_panels(self) -> None:
        for request in self._panel_requests.values():
            request.unsubscribe()
        self._panel_requests = {}
        for attribute, empty in PANEL_DEFAULTS.items():
            setattr(self, attribute, copy.copy(empty))

    def on_node_selected(self, node_id: str) -> None:
        """Show a node's details and load its side panel.

        Projects load their README, users their projects and groups their
        members. A newer selection cancels every panel load still running.
        """
        self._cancel_panels()
        if not self.visualizer.has_node(node_id):
            return
        self.selected_element = self.visualizer.get_node_data(node_id)
        node_type = self.visualizer.get_node_type(node_id)
        entity_id = self.visualizer.get_node_id(node_id)

        if node_type == NodeType.PROJECT:
            self._load_panel("selected_project_readme", self.clients.projects.get_readme(entity_id))
        elif node_type == NodeType.USER:
            self._load_panel("selected_user_projects", self.clients.users.get_user_projects(entity_id))
        elif node_type == NodeType.GROUP:
            self._load_panel("selected_group_members", self.clients.groups.get_group_members(entity_id))

    def _load_panel(self, attribute: str, fetch: Awaitable[Any]) -> None:
        self._panel_requests[attribute] = TaskHandle.spawn(
            self._fill_panel(attribute, fetch), label=f"panel {attribute}"
        )

    async def _fill_panel(self, attribute: str, fetch: Awaitable[Any]) -> Any:
        empty = PANEL_DEFAULTS[attribute]
        try:
            value = await fetch
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            logger.warning("Could not load %s: %r", attribute, exc)
            value = None
        if value is None:
            value = copy.copy(empty)
        setattr(self, attribute, value)
        return value

    async def wait_panels(self) -> None:
        for request in list(self._panel_requests.values()):
            await request.wait()


class TopicsExplorer:
    """The topic map: one node per topic, weighted by its project count."""

    def __init__(self, clients: ForgeClients, visualizer: Optional[Visualizer] = None) -> None:
        self.clients = clients
        self.visualizer = visualizer if visualizer is not None else NetworkXVisualizer()
        self.graph = ExplorationGraph(self.visualizer)
        self.loader = SupersedingLoader(self._reset)
        self.topics: list[Topic] = []
        self.selected_topic: Optional[Topic] = None
        self.topic_chosen: EventStream[str] = EventStream("topic-chosen")
        self._subscriptions: list[Subscription] = []

    @property
    def is_loading(self) -> bool:
        return self.loader.is_loading

    def attach(self) -> None:
        self._subscriptions = [
            self.visualizer.on_node_select(self.on_node_clicked),
            self.visualizer.on_node_double_click(self.on_node_double_clicked),
        ]

    def detach(self) -> None:
        for sub in self._subscriptions:
            sub.unsubscribe()
        self._subscriptions = []

    def _reset(self) -> None:
        self.graph.clear()
        self.topics = []

    def _add_topics(self, topics: list[Topic]) -> None:
        for topic in topics:
            if self.graph.repository.contains(NodeType.TOPIC, topic.id):
                continue
            self.graph.materialize(topic, weight=float(topic.total_projects_count))
            self.topics.append(topic)
        self.topics.sort(key=lambda t: t.total_projects_count, reverse=True)

    def show_all(self) -> TaskHandle:
        return self.loader.start(self.clients.topics.iter_topics(), self._add_topics, "all topics")

    def search(self, query: str) -> TaskHandle:
        if not query:
            return self.show_all()
        return self.loader.start(
            self.clients.topics.iter_search(query), self._add_topics, f"topics {query!r}"
        )

    def get_topic(self, topic_id: int) -> Optional[Topic]:
        return self.graph.repository.get(NodeType.TOPIC, topic_id)

    def on_node_clicked(self, node_id: str) -> None:
        topic = self.get_topic(self.visualizer.get_node_id(node_id))
        if topic is not None:
            self.selected_topic = topic

    def on_node_double_clicked(self, node_id: str) -> None:
        topic = self.get_topic(self.visualizer.get_node_id(node_id))
        if topic is not None:
            self.topic_chosen.emit(topic.name)

    def select_topic(self, topic: Topic) -> None:
        self.selected_topic = topic
        self.visualizer.select_nodes([self.visualizer.generate_id(NodeType.TOPIC, topic.id)])

    def explore_selected(self) -> None:
        if self.selected_topic is not None:
            self.topic_chosen.emit(self.selected_topic.name)


class ForkLineageExplorer:
    """Projects of one topic, expanded into their forks on double-click."""

    def __init__(
        self,
        clients: ForgeClients,
        visualizer: Optional[Visualizer] = None,
        config: ForgeMapConfig = DEFAULT_CONFIG,
    ) -> None:
        self.clients = clients
        self.config = config
        self.visualizer = visualizer if visualizer is not None else NetworkXVisualizer()
        self.graph = ExplorationGraph(self.visualizer)
        self.expansion = GraphExpansionCoordinator(
            self.graph, clients.projects, clients.users, clients.groups, fork_mode=True
        )
        self.loader = SupersedingLoader(self._reset)
        self._subscription: Optional[Subscription] = None

    def attach(self) -> None:
        self._subscription = self.expansion.attach()

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def _reset(self) -> None:
        self.expansion.cancel_pending()
        self.graph.clear()
        self.expansion.forget()

    def _add_projects(self, projects: list[Project]) -> None:
        for project in projects:
            self.graph.materialize(project, weight=float(project.forks_count))

    def load(self, topic: Optional[str] = None) -> TaskHandle:
        topic = topic or self.config.fork_lineage_topic
        return self.loader.start(
            self.clients.projects.iter_by_topic(topic), self._add_projects, f"fork lineage {topic!r}"
        )

    async def expand_forks(self, depth: int = 1) -> int:
        """Expand forks level by level, `depth` times; returns the project count."""
        for _ in range(max(0, depth)):
            frontier = [
                node_id for node_id in self.graph.node_ids()
                if self.expansion.state_of(node_id) == ExpansionState.COLLAPSED
            ]
            if not frontier:
                break
            for node_id in frontier:
                await self.expansion.expand_forks(node_id)
        return len(self.graph.repository.ids(NodeType.PROJECT))
