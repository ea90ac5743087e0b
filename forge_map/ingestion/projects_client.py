"""
forge_map/ingestion/projects_client.py - Project-related forge calls.

Covers the two paginated entry points of an exploration (free-text search
and topic filter), the non-paginated relation endpoints used to expand a
project node (users, groups, forks) and the README shown in the details
panel.
"""

import base64
import binascii
import logging
import urllib.parse
from typing import AsyncIterator

from forge_map.ingestion.transport import ForgeTransport
from forge_map.models import Group, Project, User

logger = logging.getLogger(__name__)

README_UNAVAILABLE = "README unavailable"


class ProjectsClient:
    """Project endpoints of the forge REST API."""

    def __init__(self, transport: ForgeTransport) -> None:
        self._transport = transport

    async def get_project(self, project_id: int) -> Project:
        return Project.from_api(await self._transport.get_json(f"/projects/{int(project_id)}"))

    async def iter_search(self, search: str) -> AsyncIterator[list[Project]]:
        """Projects matching a free-text query, one batch per page."""
        params = {"search": search, "per_page": self._transport.config.search_per_page}
        async for batch in self._transport.iter_pages("/projects", params):
            yield [Project.from_api(item) for item in batch]

    async def iter_by_topic(self, topic: str) -> AsyncIterator[list[Project]]:
        """Projects tagged with a topic, one batch per page."""
        async for batch in self._transport.iter_pages("/projects", {"topic": topic}):
            yield [Project.from_api(item) for item in batch]

    async def get_forks(self, project_id: int) -> list[Project]:
        data = await self._transport.get_json(f"/projects/{int(project_id)}/forks")
        return [Project.from_api(item) for item in data or []]

    async def get_users(self, project_id: int) -> list[User]:
        data = await self._transport.get_json(f"/projects/{int(project_id)}/users")
        return [User.from_api(item) for item in data or []]

    async def get_groups(self, project_id: int) -> list[Group]:
        data = await self._transport.get_json(f"/projects/{int(project_id)}/groups")
        return [Group.from_api(item) for item in data or []]

    async def get_readme(self, project_id: int) -> str:
        """Decoded README of the repository root, or README_UNAVAILABLE.

        Picks the first tree entry whose name starts with "readme"
        (case-insensitive) and decodes the base64 file content as UTF-8.
        """
        tree = await self._transport.get_json(f"/projects/{int(project_id)}/repository/tree")
        readme = next(
            (item for item in tree or [] if str(item.get("name", "")).lower().startswith("readme")),
            None,
        )
        if readme is None:
            return README_UNAVAILABLE

        file_path = urllib.parse.quote(readme.get("path") or readme["name"], safe="")
        file_data = await self._transport.get_json(
            f"/projects/{int(project_id)}/repository/files/{file_path}",
            params={"ref": "HEAD"},
        )
        try:
            raw = base64.b64decode(file_data.get("content") or "")
        except (binascii.Error, ValueError):
            logger.warning("README of project %s is not valid base64", project_id)
            return README_UNAVAILABLE
        return raw.decode("utf-8", errors="replace")
