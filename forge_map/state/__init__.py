"""
forge_map.state - Shareable exploration state.

Modules:
    codec - ExplorationState <-> compressed URL query parameters.
"""
