"""
forge_map/tests/test_expansion.py - Tests for GraphExpansionCoordinator.

Tests verify:
- Project expansion links users and groups; user/group expansion links projects.
- A user reached from two projects yields one node and two edges.
- Fork expansion links forks with fork-of edges and forks_count weights.
- A failed expansion propagates and leaves the node collapsed.
- Double-click scheduling expands in the background and logs failures.
- Results for a node hidden mid-flight are dropped.
"""

import asyncio

import httpx
import pytest

from conftest import group_payload, project_payload, user_payload
from forge_map.graph.exploration import ExplorationGraph
from forge_map.graph.expansion import ExpansionState, GraphExpansionCoordinator
from forge_map.graph.visualizer import NetworkXVisualizer
from forge_map.models import EdgeType, Group, NodeType, Project, Topic, User


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def graph() -> ExplorationGraph:
    return ExplorationGraph(NetworkXVisualizer())


@pytest.fixture
def coordinator(graph, clients) -> GraphExpansionCoordinator:
    return GraphExpansionCoordinator(graph, clients.projects, clients.users, clients.groups)


def seed_project(graph: ExplorationGraph, project_id: int, **extra) -> str:
    return graph.materialize(Project.from_api(project_payload(project_id, **extra)))


# ── Project / user / group expansion ──────────────────────────────────────────

@pytest.mark.asyncio
async def test_project_expansion_links_users_and_groups(forge, graph, coordinator):
    origin = seed_project(graph, 1)
    forge.add_json("/projects/1/users", [user_payload(10), user_payload(11)])
    forge.add_json("/projects/1/groups", [group_payload(20)])

    linked = await coordinator.expand(origin)

    assert sorted(linked) == ["group:20", "user:10", "user:11"]
    assert graph.repository.ids(NodeType.USER) == [10, 11]
    assert graph.visualizer.graph.number_of_edges() == 3
    assert coordinator.state_of(origin) == ExpansionState.EXPANDED


@pytest.mark.asyncio
async def test_shared_user_gives_one_node_two_edges(forge, graph, coordinator):
    p1 = seed_project(graph, 1)
    p2 = seed_project(graph, 2)
    forge.add_json("/projects/1/users", [user_payload(10)])
    forge.add_json("/projects/2/users", [user_payload(10)])
    forge.add_json("/projects/1/groups", [])
    forge.add_json("/projects/2/groups", [])

    await asyncio.gather(coordinator.expand(p1), coordinator.expand(p2))

    viz = graph.visualizer
    assert graph.repository.ids(NodeType.USER) == [10]
    assert viz.graph.has_edge(p1, "user:10")
    assert viz.graph.has_edge(p2, "user:10")
    assert viz.graph.number_of_edges() == 2


@pytest.mark.asyncio
async def test_re_expansion_is_idempotent(forge, graph, coordinator):
    origin = seed_project(graph, 1)
    forge.add_json("/projects/1/users", [user_payload(10)])
    forge.add_json("/projects/1/groups", [group_payload(20)])

    await coordinator.expand(origin)
    await coordinator.expand(origin)

    assert graph.visualizer.graph.number_of_nodes() == 3
    assert graph.visualizer.graph.number_of_edges() == 2
    assert len(forge.calls("/projects/1/users")) == 2


@pytest.mark.asyncio
async def test_user_expansion_links_user_projects(forge, graph, coordinator):
    user = graph.materialize(User.from_api(user_payload(10)))
    forge.add_json("/users/10/projects", [project_payload(1), project_payload(2)])

    linked = await coordinator.expand(user)

    assert linked == ["project:1", "project:2"]


@pytest.mark.asyncio
async def test_group_expansion_reads_one_page(forge, graph, coordinator, config):
    group = graph.materialize(Group.from_api(group_payload(20)))
    forge.add_json("/groups/20/projects", [project_payload(3)])

    linked = await coordinator.expand(group)

    assert linked == ["project:3"]
    request = forge.calls("/groups/20/projects")[0]
    assert request.url.params["page"] == "1"
    assert request.url.params["per_page"] == str(config.group_projects_per_page)


@pytest.mark.asyncio
async def test_topic_and_unknown_nodes_do_not_expand(forge, graph, coordinator):
    topic = graph.materialize(Topic.from_api({"id": 1, "name": "maths"}))

    assert await coordinator.expand(topic) == []
    assert await coordinator.expand("project:404") == []
    assert forge.requests == []


# ── Failures ──────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_failed_expansion_propagates_and_reverts_state(forge, graph, coordinator):
    origin = seed_project(graph, 1)
    forge.add_error("/projects/1/users", status=500)
    forge.add_json("/projects/1/groups", [])

    with pytest.raises(httpx.HTTPStatusError):
        await coordinator.expand(origin)

    assert coordinator.state_of(origin) == ExpansionState.COLLAPSED


@pytest.mark.asyncio
async def test_scheduled_expansion_failure_is_logged(forge, graph, coordinator, caplog):
    origin = seed_project(graph, 1)
    forge.add_error("/projects/1/users", status=500)
    forge.add_json("/projects/1/groups", [])
    coordinator.attach()

    graph.visualizer.double_click(origin)
    await coordinator.drain()

    assert "Expansion of project:1 failed" in caplog.text


@pytest.mark.asyncio
async def test_double_click_schedules_expansion(forge, graph, coordinator):
    origin = seed_project(graph, 1)
    forge.add_json("/projects/1/users", [user_payload(10)])
    forge.add_json("/projects/1/groups", [])
    subscription = coordinator.attach()

    graph.visualizer.double_click(origin)
    await coordinator.drain()
    subscription.unsubscribe()

    assert graph.repository.contains(NodeType.USER, 10)


@pytest.mark.asyncio
async def test_results_dropped_when_origin_hidden_mid_flight(forge, graph, coordinator):
    origin = seed_project(graph, 1)
    gate = asyncio.Event()
    forge.add_json("/projects/1/users", [user_payload(10)]).gate = gate
    forge.add_json("/projects/1/groups", []).gate = gate

    handle = coordinator.handle_double_click(origin)
    await asyncio.sleep(0)
    graph.hide(origin)
    gate.set()
    await handle.wait()

    assert not graph.repository.contains(NodeType.USER, 10)
    assert graph.visualizer.graph.number_of_nodes() == 0


# ── Fork lineage ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_fork_expansion_uses_fork_edges(forge, graph, clients):
    coordinator = GraphExpansionCoordinator(
        graph, clients.projects, clients.users, clients.groups, fork_mode=True
    )
    origin = seed_project(graph, 1, forks_count=2)
    forge.add_json("/projects/1/forks", [
        project_payload(2, forks_count=1),
        project_payload(3),
    ])

    handle = coordinator.handle_double_click(origin)
    linked = await handle.wait()

    viz = graph.visualizer.graph
    assert linked == ["project:2", "project:3"]
    assert viz.edges[origin, "project:2"]["edge_type"] == EdgeType.FORK
    assert viz.nodes["project:2"]["weight"] == 1.0
    assert forge.calls("/projects/1/users") == []
