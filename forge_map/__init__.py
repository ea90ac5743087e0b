"""
forge_map - Incremental explorer for the relationship graph of a code forge.

Starts from a project search or a topic and grows a deduplicated graph of
projects, users, groups and topics by expanding nodes on demand. The
current exploration can be encoded into a shareable URL and rebuilt later,
node for node.

Subpackages:
    ingestion - Forge REST/GraphQL transport and per-resource clients.
    graph     - Entity repository, visualizer contract, expansion and restore.
    state     - Shareable selection-state codec.
    viz       - Plotly rendering of the exploration graph.
"""

__version__ = "0.1.0"
