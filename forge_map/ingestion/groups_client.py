"""
forge_map/ingestion/groups_client.py - Group projects and membership.

Membership comes from the GraphQL API, which identifies users with global
ids of the form "gid://gitlab/User/<n>"; they are converted back to the
numeric REST ids used everywhere else.
"""

import logging
from typing import Any, Optional

from forge_map.ingestion.transport import ForgeTransport
from forge_map.models import GroupMember, Project

logger = logging.getLogger(__name__)

USER_GID_PREFIX = "gid://gitlab/User/"
GROUP_GID_PREFIX = "gid://gitlab/Group/"

GROUP_MEMBERS_QUERY = """
query groupMembers($ids: [ID!]) {
  groups(ids: $ids) {
    nodes {
      groupMembers(search: "") {
        nodes { user { id name webUrl } }
      }
    }
  }
}
"""


def parse_user_gid(gid: str) -> Optional[int]:
    """Convert "gid://gitlab/User/42" to 42; None if the id is not a user gid."""
    if not gid or not gid.startswith(USER_GID_PREFIX):
        return None
    try:
        return int(gid[len(USER_GID_PREFIX):])
    except ValueError:
        return None


def _member_nodes(payload: dict[str, Any]) -> list[dict]:
    groups = (payload.get("data") or {}).get("groups") or {}
    nodes = groups.get("nodes") or []
    if not nodes:
        return []
    members = (nodes[0] or {}).get("groupMembers") or {}
    return [m for m in members.get("nodes") or [] if m and m.get("user")]


class GroupsClient:
    """Group endpoints of the forge REST and GraphQL APIs."""

    def __init__(self, transport: ForgeTransport) -> None:
        self._transport = transport

    async def get_group_projects(
        self,
        group_id: int,
        amount: Optional[int] = None,
        page: int = 1,
    ) -> list[Project]:
        """One page of the projects belonging to a group."""
        per_page = amount or self._transport.config.group_projects_per_page
        data = await self._transport.get_json(
            f"/groups/{int(group_id)}/projects",
            params={"page": page, "per_page": per_page},
        )
        return [Project.from_api(item) for item in data or []]

    async def get_group_members(self, group_id: int) -> list[GroupMember]:
        """Members of a group with name and profile URL (GraphQL)."""
        payload = await self._transport.graphql(
            GROUP_MEMBERS_QUERY,
            {"ids": [f"{GROUP_GID_PREFIX}{int(group_id)}"]},
        )
        members: list[GroupMember] = []
        for node in _member_nodes(payload):
            user = node["user"]
            user_id = parse_user_gid(user.get("id", ""))
            if user_id is None:
                logger.debug("Skipping group member with unexpected id %r", user.get("id"))
                continue
            members.append(
                GroupMember(id=user_id, name=user.get("name") or "", web_url=user.get("webUrl") or "")
            )
        return members
