"""
forge_map/models.py - Forge entity snapshots and graph identity types.

Entities are immutable snapshots of API payloads taken at fetch time. The
explorer never merges a later fetch into an existing record: identity is
the EntityKey (node type + forge id) and the first snapshot wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, NamedTuple, Optional, Union


class NodeType(str, Enum):
    """Entity categories shown in the graph."""

    PROJECT = "project"
    USER = "user"
    GROUP = "group"
    TOPIC = "topic"


class EdgeType(str, Enum):
    """Relation kinds between two nodes."""

    LINK = "link"
    # Generic discovered relation (project <-> user, project <-> group).

    FORK = "fork"
    # Directed fork lineage: origin project -> fork.


class EntityKey(NamedTuple):
    """(node type, forge id) - two entities are the same iff their keys match."""

    node_type: NodeType
    entity_id: int


@dataclass(frozen=True)
class Project:
    """A forge project (repository)."""

    node_type: ClassVar[NodeType] = NodeType.PROJECT

    id: int
    name: str = ""
    name_with_namespace: str = ""
    path_with_namespace: str = ""
    description: str = ""
    web_url: str = ""
    forks_count: int = 0
    star_count: int = 0
    topics: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            name_with_namespace=data.get("name_with_namespace") or "",
            path_with_namespace=data.get("path_with_namespace") or "",
            description=data.get("description") or "",
            web_url=data.get("web_url") or "",
            forks_count=int(data.get("forks_count") or 0),
            star_count=int(data.get("star_count") or 0),
            topics=tuple(data.get("topics") or ()),
            raw=dict(data),
        )

    @property
    def key(self) -> EntityKey:
        return EntityKey(self.node_type, self.id)

    @property
    def label(self) -> str:
        return self.name or self.path_with_namespace or f"project {self.id}"


@dataclass(frozen=True)
class User:
    """A forge user account."""

    node_type: ClassVar[NodeType] = NodeType.USER

    id: int
    username: str = ""
    name: str = ""
    state: str = ""
    locked: bool = False
    avatar_url: Optional[str] = None
    web_url: str = ""
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=int(data["id"]),
            username=data.get("username") or "",
            name=data.get("name") or "",
            state=data.get("state") or "",
            locked=bool(data.get("locked", False)),
            avatar_url=data.get("avatar_url"),
            web_url=data.get("web_url") or "",
            raw=dict(data),
        )

    @property
    def key(self) -> EntityKey:
        return EntityKey(self.node_type, self.id)

    @property
    def label(self) -> str:
        return self.name or self.username or f"user {self.id}"


@dataclass(frozen=True)
class Group:
    """A forge group (namespace owning projects)."""

    node_type: ClassVar[NodeType] = NodeType.GROUP

    id: int
    name: str = ""
    full_path: str = ""
    description: str = ""
    visibility: str = ""
    web_url: str = ""
    parent_id: Optional[int] = None
    request_access_enabled: bool = False
    share_with_group_lock: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Group":
        parent = data.get("parent_id")
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            full_path=data.get("full_path") or "",
            description=data.get("description") or "",
            visibility=data.get("visibility") or "",
            web_url=data.get("web_url") or "",
            parent_id=int(parent) if parent is not None else None,
            request_access_enabled=bool(data.get("request_access_enabled", False)),
            share_with_group_lock=bool(data.get("share_with_group_lock", False)),
            raw=dict(data),
        )

    @property
    def key(self) -> EntityKey:
        return EntityKey(self.node_type, self.id)

    @property
    def label(self) -> str:
        return self.name or self.full_path or f"group {self.id}"


@dataclass(frozen=True)
class Topic:
    """A project topic (tag)."""

    node_type: ClassVar[NodeType] = NodeType.TOPIC

    id: int
    name: str = ""
    title: str = ""
    description: Optional[str] = None
    total_projects_count: int = 0
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "Topic":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            title=data.get("title") or "",
            description=data.get("description"),
            total_projects_count=int(data.get("total_projects_count") or 0),
            raw=dict(data),
        )

    @property
    def key(self) -> EntityKey:
        return EntityKey(self.node_type, self.id)

    @property
    def label(self) -> str:
        return self.title or self.name or f"topic {self.id}"


@dataclass(frozen=True)
class GroupMember:
    """Member summary returned by the GraphQL group members query."""

    id: int
    name: str = ""
    web_url: str = ""


Entity = Union[Project, User, Group, Topic]

_ENTITY_CLASSES: dict[NodeType, type] = {
    NodeType.PROJECT: Project,
    NodeType.USER: User,
    NodeType.GROUP: Group,
    NodeType.TOPIC: Topic,
}


def entity_from_api(node_type: NodeType, data: dict[str, Any]) -> Entity:
    """Build the entity snapshot class matching node_type from an API payload."""
    return _ENTITY_CLASSES[NodeType(node_type)].from_api(data)
