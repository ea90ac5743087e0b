"""
forge_map/config.py - All tunable parameters for forge_map.

Endpoints, page sizes and presentation timings live here so that pointing
the explorer at another forge instance is a single-object change.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ForgeMapConfig:
    """
    Immutable configuration for the forge explorer.

    Override by constructing a new ForgeMapConfig (or dataclasses.replace)
    with the desired values.
    """

    # ── Forge endpoints ───────────────────────────────────────────────────────
    rest_url: str = "https://forge.apps.education.fr/api/v4"
    # REST v4 root. Collection paths ("/projects", "/topics") are relative to it.

    graphql_url: str = "https://forge.apps.education.fr/api/graphql"

    request_timeout_s: float = 30.0

    user_agent: str = "forge-map/0.1 (+https://forge.apps.education.fr)"

    # ── Page sizes ────────────────────────────────────────────────────────────
    search_per_page: int = 20
    # per_page for project and group search. The forge caps per_page at 100.

    topics_per_page: int = 20

    group_projects_per_page: int = 20
    # Group expansion reads a single page of this size.

    # ── Shareable links ───────────────────────────────────────────────────────
    share_base_url: str = "http://localhost:4200"
    # Origin of the web front-end that receives shared links.

    share_route: str = "favoris"

    # ── Presentation ──────────────────────────────────────────────────────────
    notice_duration_s: float = 1.0
    # How long the "link copied" notice stays up before dismissing itself.

    documentation_url: str = "https://forge.apps.education.fr/help"

    # ── Fork lineage view ─────────────────────────────────────────────────────
    fork_lineage_topic: str = "modèle"
    # Topic whose projects seed the fork lineage view.


# Singleton default - import this everywhere instead of constructing anew.
DEFAULT_CONFIG = ForgeMapConfig()
