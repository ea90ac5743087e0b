"""
forge_map/viz/plotly_graph.py - Interactive Plotly view of an exploration.

Renders the networkx graph held by NetworkXVisualizer.

Visual encoding:
    - Node symbol/color: by node type (project, user, group, topic)
    - Node size:         log of the node weight (forks, project count), clamped [8, 40]
    - Edge color:        gray for generic relations, green for fork lineage
    - Hover:             label, type, forge id, weight
"""

import logging
import math
from math import sqrt
from typing import Optional

import networkx as nx

from forge_map.models import EdgeType

logger = logging.getLogger(__name__)

# ── Optional Plotly dependency ─────────────────────────────────────────────────
try:
    import plotly.graph_objects as go
    HAS_PLOTLY = True
except ImportError:
    go = None
    HAS_PLOTLY = False

_EDGE_COLORS = {
    EdgeType.LINK: "rgba(150, 150, 150, 0.5)",
    EdgeType.FORK: "rgba(60, 180, 80, 0.7)",
}
_EDGE_WIDTHS = {
    EdgeType.LINK: 1,
    EdgeType.FORK: 2,
}
_DEFAULT_NODE_SIZE = 12


def _compute_layout(G: nx.Graph, seed: int = 42) -> dict[str, tuple[float, float]]:
    """Spring layout with k=2/sqrt(N+1) so spacing scales with graph size."""
    if G.number_of_nodes() == 0:
        return {}
    k_value = 2.0 / sqrt(len(G.nodes) + 1)
    pos = nx.spring_layout(G, seed=seed, k=k_value)
    return {node: (float(x), float(y)) for node, (x, y) in pos.items()}


def _node_size(weight: Optional[float]) -> float:
    if weight is None:
        return _DEFAULT_NODE_SIZE
    return max(8, min(40, 8 + math.log1p(max(weight, 0)) * 6))


def build_exploration_figure(G: nx.Graph, title: str = "Forge exploration") -> "go.Figure":
    """
    Build a Plotly figure of an exploration graph.

    Args:
        G:     networkx graph from NetworkXVisualizer.graph.
        title: Figure title.

    Returns:
        Plotly Figure object (no IO, no files written).

    Raises:
        ImportError: If plotly is not installed.
    """
    if not HAS_PLOTLY:
        raise ImportError("plotly is required: pip install plotly")

    pos = _compute_layout(G)

    # ── Edge traces grouped by edge type ──────────────────────────────────────
    edge_groups: dict[EdgeType, list[tuple[str, str]]] = {}
    for u, v, data in G.edges(data=True):
        edge_groups.setdefault(data.get("edge_type", EdgeType.LINK), []).append((u, v))

    edge_traces = []
    for etype, edges in edge_groups.items():
        x_coords: list = []
        y_coords: list = []
        for u, v in edges:
            x0, y0 = pos[u]
            x1, y1 = pos[v]
            x_coords += [x0, x1, None]
            y_coords += [y0, y1, None]
        edge_traces.append(
            go.Scatter(
                x=x_coords,
                y=y_coords,
                mode="lines",
                line={"width": _EDGE_WIDTHS.get(etype, 1), "color": _EDGE_COLORS.get(etype)},
                name=f"{etype.value} edges",
                hoverinfo="none",
            )
        )

    # ── Node traces grouped by node type ──────────────────────────────────────
    node_groups: dict[str, list[str]] = {}
    for node, data in G.nodes(data=True):
        ntype = data.get("node_type")
        node_groups.setdefault(ntype.value if ntype is not None else "unknown", []).append(node)

    node_traces = []
    for ntype, nodes in node_groups.items():
        attrs = [G.nodes[n] for n in nodes]
        node_traces.append(
            go.Scatter(
                x=[pos[n][0] for n in nodes],
                y=[pos[n][1] for n in nodes],
                mode="markers+text",
                name=ntype,
                text=[a.get("label", "") for a in attrs],
                textposition="top center",
                marker={
                    "size": [_node_size(a.get("weight")) for a in attrs],
                    "color": attrs[0].get("color", "gray"),
                    "symbol": attrs[0].get("shape", "circle"),
                    "line": {"color": "white", "width": 1},
                },
                hovertext=[
                    f"<b>{a.get('label', '')}</b><br>Type: {ntype}<br>"
                    f"Id: {a.get('entity_id')}<br>Weight: {a.get('weight', 'N/A')}"
                    for a in attrs
                ],
                hoverinfo="text",
            )
        )

    fig = go.Figure(
        data=edge_traces + node_traces,
        layout=go.Layout(
            title=title,
            showlegend=True,
            hovermode="closest",
            xaxis={"showgrid": False, "zeroline": False, "showticklabels": False},
            yaxis={"showgrid": False, "zeroline": False, "showticklabels": False},
            margin={"l": 20, "r": 20, "t": 60, "b": 20},
            paper_bgcolor="white",
            plot_bgcolor="white",
        ),
    )
    logger.info(
        "Plotly figure built: %d nodes, %d edges.", G.number_of_nodes(), G.number_of_edges()
    )
    return fig


def save_figure_html(fig: "go.Figure", output_path: str) -> None:
    """Write a Plotly figure to a self-contained HTML file."""
    if not HAS_PLOTLY:
        raise ImportError("plotly is required: pip install plotly")

    fig.write_html(output_path, include_plotlyjs="cdn")
    logger.info("Plotly figure saved to: %s", output_path)
