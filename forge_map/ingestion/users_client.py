"""
forge_map/ingestion/users_client.py - User-related forge calls.
"""

import logging

from forge_map.ingestion.transport import ForgeTransport
from forge_map.models import Project

logger = logging.getLogger(__name__)


class UsersClient:
    """User endpoints of the forge REST API."""

    def __init__(self, transport: ForgeTransport) -> None:
        self._transport = transport

    async def get_user_projects(self, user_id: int) -> list[Project]:
        """Projects owned by a user (single request, not paginated)."""
        data = await self._transport.get_json(f"/users/{int(user_id)}/projects")
        projects = [Project.from_api(item) for item in data or []]
        logger.debug("User %s owns %d project(s)", user_id, len(projects))
        return projects
