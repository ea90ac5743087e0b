"""
forge_map.graph - Entity graph synchronization layer.

Modules:
    repository  - Type-partitioned, identity-deduplicating entity cache.
    visualizer  - Visualizer contract + networkx-backed implementation.
    exploration - Single control path mutating repository and visualizer together.
    expansion   - Double-click expansion of project/user/group nodes.
    restore     - Selective rehydration of a shared exploration state.

Node identity is the EntityKey (node type, forge id). The visualizer's node
id is a pure function of that key, so repository-level and visualizer-level
deduplication always agree.
"""
