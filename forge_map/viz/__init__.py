"""
forge_map.viz - Rendering of the exploration graph.

Modules:
    plotly_graph - Interactive Plotly force-directed view of a visualizer's graph.
"""
