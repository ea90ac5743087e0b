"""
forge_map/tests/conftest.py - Shared pytest fixtures for the forge_map test suite.

Every test runs offline against FakeForge, a small in-memory forge served
through httpx.MockTransport. Routes are registered per REST path (relative to
the /api/v4 root) and may require query parameters to match, so two searches
on /projects can answer differently.

Fixtures:
    forge      - Empty FakeForge; tests register the routes they need.
    config     - ForgeMapConfig pointing at the fake forge.
    transport  - ForgeTransport over the fake forge.
    clients    - ForgeClients sharing that transport.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
import pytest

from forge_map.config import ForgeMapConfig
from forge_map.ingestion.transport import ForgeTransport
from forge_map.session import ForgeClients

FORGE_HOST = "https://forge.test"
REST_ROOT = "/api/v4"
GRAPHQL_PATH = "/api/graphql"


# ── Pytest configuration hooks ────────────────────────────────────────────────

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests that call the live forge API (deselected by default, "
        "pass --run-integration or -m integration to enable)",
    )


def pytest_addoption(parser):
    """Add --run-integration CLI flag to enable integration tests."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests that call the live forge API.",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is passed or -m integration is used."""
    markexpr = config.getoption("-m", default="")
    if "integration" in markexpr:
        return

    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(
        reason="Integration test -- pass --run-integration or -m integration to run"
    )
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


# ── Payload builders ──────────────────────────────────────────────────────────

def project_payload(project_id: int, name: Optional[str] = None, **extra: Any) -> dict:
    body = {
        "id": project_id,
        "name": name or f"project-{project_id}",
        "path_with_namespace": f"ns/project-{project_id}",
        "web_url": f"{FORGE_HOST}/ns/project-{project_id}",
        "forks_count": 0,
        "star_count": 0,
        "topics": [],
    }
    body.update(extra)
    return body


def user_payload(user_id: int, name: Optional[str] = None) -> dict:
    return {
        "id": user_id,
        "username": f"user{user_id}",
        "name": name or f"User {user_id}",
        "state": "active",
        "locked": False,
        "web_url": f"{FORGE_HOST}/user{user_id}",
    }


def group_payload(group_id: int, name: Optional[str] = None) -> dict:
    return {
        "id": group_id,
        "name": name or f"group-{group_id}",
        "full_path": f"group-{group_id}",
        "visibility": "public",
        "web_url": f"{FORGE_HOST}/groups/group-{group_id}",
    }


def topic_payload(topic_id: int, name: str, total_projects_count: int) -> dict:
    return {
        "id": topic_id,
        "name": name,
        "title": name.capitalize(),
        "total_projects_count": total_projects_count,
    }


# ── Fake forge ────────────────────────────────────────────────────────────────

@dataclass
class Route:
    path: str
    match: dict[str, str]
    pages: Optional[list[list[dict]]] = None
    next_headers: Optional[list[Optional[str]]] = None
    body: Any = None
    status: int = 200
    gate: Optional[asyncio.Event] = None

    def matches(self, path: str, params: httpx.QueryParams) -> bool:
        return path == self.path and all(params.get(k) == v for k, v in self.match.items())

    def respond(self, request: httpx.Request) -> httpx.Response:
        if self.status >= 400:
            return httpx.Response(self.status, json={"message": "error"}, request=request)
        if self.pages is None:
            return httpx.Response(self.status, json=self.body, request=request)

        page = int(request.url.params.get("page", "1"))
        index = page - 1
        body = self.pages[index] if index < len(self.pages) else []
        if self.next_headers is not None:
            next_value = self.next_headers[index] if index < len(self.next_headers) else ""
        else:
            next_value = str(page + 1) if page < len(self.pages) else ""
        headers = {"x-next-page": next_value} if next_value is not None else {}
        return httpx.Response(200, json=body, headers=headers, request=request)


@dataclass
class FakeForge:
    """In-memory forge answering the REST and GraphQL calls of the explorer."""

    routes: list[Route] = field(default_factory=list)
    requests: list[httpx.Request] = field(default_factory=list)
    graphql_body: Any = field(default_factory=lambda: {"data": {}})

    # ── Route registration ────────────────────────────────────────────────────

    def add_json(self, path: str, body: Any, status: int = 200, **match: str) -> Route:
        route = Route(path=path, match=match, body=body, status=status)
        self.routes.append(route)
        return route

    def add_pages(
        self,
        path: str,
        pages: list[list[dict]],
        next_headers: Optional[list[Optional[str]]] = None,
        **match: str,
    ) -> Route:
        route = Route(path=path, match=match, pages=pages, next_headers=next_headers)
        self.routes.append(route)
        return route

    def add_error(self, path: str, status: int = 500, **match: str) -> Route:
        return self.add_json(path, None, status=status, **match)

    # ── Inspection ────────────────────────────────────────────────────────────

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if _rest_path(r) == path]

    def graphql_calls(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests if r.url.path == GRAPHQL_PATH]

    # ── httpx handler ─────────────────────────────────────────────────────────

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == GRAPHQL_PATH:
            return httpx.Response(200, json=self.graphql_body, request=request)

        path = _rest_path(request)
        # Later registrations override earlier ones
        for route in reversed(self.routes):
            if route.matches(path, request.url.params):
                if route.gate is not None:
                    await route.gate.wait()
                return route.respond(request)
        return httpx.Response(404, json={"message": "404 Not Found"}, request=request)


def _rest_path(request: httpx.Request) -> str:
    path = request.url.path
    return path[len(REST_ROOT):] if path.startswith(REST_ROOT) else path


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def forge() -> FakeForge:
    return FakeForge()


@pytest.fixture
def config() -> ForgeMapConfig:
    return ForgeMapConfig(
        rest_url=f"{FORGE_HOST}{REST_ROOT}",
        graphql_url=f"{FORGE_HOST}{GRAPHQL_PATH}",
        share_base_url="https://map.test",
        notice_duration_s=0.05,
    )


@pytest.fixture
def transport(forge: FakeForge, config: ForgeMapConfig) -> ForgeTransport:
    client = httpx.AsyncClient(base_url=config.rest_url, transport=httpx.MockTransport(forge.handler))
    return ForgeTransport(config, client=client)


@pytest.fixture
def clients(transport: ForgeTransport) -> ForgeClients:
    return ForgeClients.over(transport)
