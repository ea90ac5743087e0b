"""
forge_map.ingestion - Forge API access.

Modules:
    transport       - Shared httpx transport: pagination contract + GraphQL.
    projects_client - Project search, topic filter, relations, forks, README.
    users_client    - A user's projects.
    groups_client   - Group projects and GraphQL membership.
    topics_client   - Topic listing and search.

Clients are composed over one ForgeTransport rather than inheriting from it.
"""
