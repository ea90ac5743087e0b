"""
forge_map/ingestion/transport.py - Forge REST/GraphQL transport.

One ForgeTransport is shared by every resource client (projects, users,
groups, topics). It owns the httpx.AsyncClient and implements the forge's
pagination contract:

    GET <collection>?...&page=<n>, starting at n=1.
    The `x-next-page` response header carries the next page number.
    An absent, empty or unparseable header means "no more pages".
    An empty body is terminal regardless of the header.

GraphQL documents are constants; user-supplied text only travels in the
`variables` object, never spliced into the query text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import httpx

from forge_map.config import DEFAULT_CONFIG, ForgeMapConfig

logger = logging.getLogger(__name__)

NEXT_PAGE_HEADER = "x-next-page"


@dataclass
class Page:
    """One page of a paginated collection."""

    body: list[dict] = field(default_factory=list)
    next_page: Optional[int] = None


def _parse_next_page(value: Optional[str]) -> Optional[int]:
    """Read the next-page cursor; anything unusable means no further page."""
    if not value:
        return None
    try:
        return int(value.strip())
    except ValueError:
        logger.debug("Ignoring unparseable %s header: %r", NEXT_PAGE_HEADER, value)
        return None


class ForgeTransport:
    """Async HTTP capability injected into the resource clients.

    Args:
        config: ForgeMapConfig providing the REST root, GraphQL endpoint and timeout.
        client: Optional pre-built httpx.AsyncClient (tests pass one backed by
                httpx.MockTransport). Its base_url should be the REST root.

    Errors raised by httpx (httpx.HTTPError and subclasses) propagate to the
    caller; the transport neither retries nor swallows them.
    """

    def __init__(
        self,
        config: ForgeMapConfig = DEFAULT_CONFIG,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.rest_url,
            timeout=config.request_timeout_s,
            headers={"Accept": "application/json", "User-Agent": config.user_agent},
            follow_redirects=True,
        )

    async def __aenter__(self) -> "ForgeTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── REST ──────────────────────────────────────────────────────────────────

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """Single non-paginated GET returning the decoded JSON body."""
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def get_page(
        self,
        path: str,
        page: int,
        params: Optional[dict[str, Any]] = None,
    ) -> Page:
        """Fetch one page of a collection and read its next-page cursor."""
        query = dict(params or {})
        query["page"] = page
        response = await self._client.get(path, params=query)
        response.raise_for_status()

        body = response.json() if response.content else []
        if body is None:
            body = []
        if not isinstance(body, list):
            logger.warning(
                "Unexpected %s body for %s page %d - treating as empty",
                type(body).__name__, path, page,
            )
            body = []
        return Page(body=body, next_page=_parse_next_page(response.headers.get(NEXT_PAGE_HEADER)))

    async def iter_pages(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
    ) -> AsyncIterator[list[dict]]:
        """Yield every page body of a collection in page order.

        The final batch is yielded even when empty. Once the consumer stops
        iterating (break, aclose, or cancellation of the consuming task) no
        further page is requested.
        """
        page_number: Optional[int] = 1
        requests_made = 0
        while page_number is not None:
            page = await self.get_page(path, page_number, params)
            requests_made += 1
            yield page.body
            if not page.body:
                break
            page_number = page.next_page
        logger.debug("Pagination of %s finished after %d request(s)", path, requests_made)

    async def fetch_all(self, path: str, params: Optional[dict[str, Any]] = None) -> list[dict]:
        """Concatenate every page of a collection."""
        items: list[dict] = []
        async for batch in self.iter_pages(path, params):
            items.extend(batch)
        return items

    # ── GraphQL ───────────────────────────────────────────────────────────────

    async def graphql(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict:
        """POST a GraphQL document with variables.

        A payload carrying `error` or `errors` is normalized to {"data": {}}
        so downstream mapping never sees a partial shape.
        """
        response = await self._client.post(
            self.config.graphql_url,
            json={"query": query, "variables": variables or {}},
        )
        response.raise_for_status()
        payload = response.json() or {}
        if payload.get("error") or payload.get("errors"):
            logger.warning(
                "GraphQL error response normalized to empty data: %s",
                payload.get("error") or payload.get("errors"),
            )
            return {"data": {}}
        if payload.get("data") is None:
            payload["data"] = {}
        return payload
