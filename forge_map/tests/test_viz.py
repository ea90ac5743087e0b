"""
forge_map/tests/test_viz.py - Tests for the plotly exploration renderer.

Skipped when plotly is not installed.
"""

import pytest

from conftest import project_payload, user_payload
from forge_map.graph.exploration import ExplorationGraph
from forge_map.graph.visualizer import NetworkXVisualizer
from forge_map.models import EdgeType, Project, User

go = pytest.importorskip("plotly.graph_objects")

from forge_map.viz.plotly_graph import (  # noqa: E402
    _compute_layout,
    _node_size,
    build_exploration_figure,
    save_figure_html,
)


@pytest.fixture
def graph() -> ExplorationGraph:
    g = ExplorationGraph(NetworkXVisualizer())
    p1 = g.materialize(Project.from_api(project_payload(1)), weight=12)
    p2 = g.materialize(Project.from_api(project_payload(2)))
    u = g.materialize(User.from_api(user_payload(10)))
    g.connect(p1, u)
    g.connect(p1, p2, EdgeType.FORK)
    return g


def test_figure_has_one_trace_per_edge_and_node_type(graph):
    fig = build_exploration_figure(graph.visualizer.graph, title="t")

    names = {trace.name for trace in fig.data}
    assert names == {"link edges", "fork edges", "project", "user"}
    assert isinstance(fig, go.Figure)


def test_layout_is_deterministic(graph):
    G = graph.visualizer.graph
    assert _compute_layout(G) == _compute_layout(G)


def test_empty_graph_renders(tmp_path):
    fig = build_exploration_figure(NetworkXVisualizer().graph)
    assert len(fig.data) == 0


def test_node_size_bounds():
    assert _node_size(None) == 12
    assert _node_size(0) == 8
    assert _node_size(10 ** 9) == 40


def test_save_figure_html(graph, tmp_path):
    out = tmp_path / "graph.html"
    save_figure_html(build_exploration_figure(graph.visualizer.graph), str(out))
    assert out.exists()
    assert "plotly" in out.read_text(encoding="utf-8").lower()
