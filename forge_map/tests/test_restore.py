"""
forge_map/tests/test_restore.py - Tests for selective rehydration of a shared state.

Tests verify:
- Listed projects are placed; only listed users/groups are attached.
- Relations are fetched in full and filtered client-side.
- One failing project does not stop the others.
- Duplicate project ids are fetched once.
- Responses arriving after the graph was cleared are dropped.
"""

import asyncio

import pytest

from conftest import group_payload, project_payload, user_payload
from forge_map.graph.exploration import ExplorationGraph
from forge_map.graph.restore import RestoreCoordinator
from forge_map.graph.visualizer import NetworkXVisualizer
from forge_map.models import NodeType
from forge_map.state.codec import ExplorationState


@pytest.fixture
def graph() -> ExplorationGraph:
    return ExplorationGraph(NetworkXVisualizer())


@pytest.fixture
def restorer(graph, clients) -> RestoreCoordinator:
    return RestoreCoordinator(graph, clients.projects)


@pytest.mark.asyncio
async def test_selective_restore(forge, graph, restorer):
    """{projects:[1], users:[10], groups:[]} with project 1 having users 10, 11 and group 20."""
    forge.add_json("/projects/1", project_payload(1))
    forge.add_json("/projects/1/users", [user_payload(10), user_payload(11)])
    forge.add_json("/projects/1/groups", [group_payload(20)])

    restored = await restorer.restore(ExplorationState(projects=[1], users=[10], groups=[]))

    viz = graph.visualizer.graph
    assert restored == 1
    assert sorted(viz.nodes) == ["project:1", "user:10"]
    assert list(viz.edges) == [("project:1", "user:10")]
    assert len(forge.calls("/projects/1/users")) == 1
    assert len(forge.calls("/projects/1/groups")) == 1


@pytest.mark.asyncio
async def test_restore_attaches_selected_groups(forge, graph, restorer):
    forge.add_json("/projects/1", project_payload(1))
    forge.add_json("/projects/1/users", [])
    forge.add_json("/projects/1/groups", [group_payload(20), group_payload(21)])

    await restorer.restore(ExplorationState(projects=[1], groups=[21]))

    assert graph.repository.ids(NodeType.GROUP) == [21]


@pytest.mark.asyncio
async def test_shared_user_restored_once(forge, graph, restorer):
    for pid in (1, 2):
        forge.add_json(f"/projects/{pid}", project_payload(pid))
        forge.add_json(f"/projects/{pid}/users", [user_payload(10)])
        forge.add_json(f"/projects/{pid}/groups", [])

    await restorer.restore(ExplorationState(projects=[1, 2], users=[10]))

    viz = graph.visualizer.graph
    assert graph.repository.ids(NodeType.USER) == [10]
    assert viz.number_of_edges() == 2


@pytest.mark.asyncio
async def test_failing_project_does_not_stop_others(forge, graph, restorer, caplog):
    forge.add_error("/projects/1", status=404)
    forge.add_json("/projects/2", project_payload(2))
    forge.add_json("/projects/2/users", [])
    forge.add_json("/projects/2/groups", [])

    restored = await restorer.restore(ExplorationState(projects=[1, 2]))

    assert restored == 1
    assert graph.repository.ids(NodeType.PROJECT) == [2]
    assert "Could not restore project 1" in caplog.text


@pytest.mark.asyncio
async def test_duplicate_project_ids_fetched_once(forge, restorer):
    forge.add_json("/projects/3", project_payload(3))
    forge.add_json("/projects/3/users", [])
    forge.add_json("/projects/3/groups", [])

    restored = await restorer.restore(ExplorationState(projects=[3, 3]))

    assert restored == 1
    assert len(forge.calls("/projects/3")) == 1


@pytest.mark.asyncio
async def test_empty_state_restores_nothing(forge, graph, restorer):
    assert await restorer.restore(ExplorationState()) == 0
    assert forge.requests == []


@pytest.mark.asyncio
async def test_restore_discards_unlisted_relations(forge, graph, restorer):
    forge.add_json("/projects/10", project_payload(10))
    forge.add_json("/projects/10/users", [user_payload(5), user_payload(6)])
    forge.add_json("/projects/10/groups", [group_payload(3)])

    await restorer.restore(ExplorationState(projects=[10], users=[5], groups=[]))

    viz = graph.visualizer.graph
    assert set(viz.nodes) == {"project:10", "user:5"}
    assert viz.number_of_edges() == 1
    assert not graph.repository.contains(NodeType.USER, 6)
    assert not graph.repository.contains(NodeType.GROUP, 3)


@pytest.mark.asyncio
async def test_restore_stops_when_graph_cleared(forge, graph, restorer):
    gate = asyncio.Event()
    forge.add_json("/projects/1", project_payload(1))
    forge.add_json("/projects/1/users", [user_payload(10)]).gate = gate
    forge.add_json("/projects/1/groups", []).gate = gate

    restoring = asyncio.ensure_future(restorer.restore(ExplorationState(projects=[1], users=[10])))
    for _ in range(10):
        await asyncio.sleep(0)
    graph.clear()
    gate.set()

    assert await restoring == 0
    assert graph.visualizer.graph.number_of_nodes() == 0
    assert len(graph.repository) == 0
