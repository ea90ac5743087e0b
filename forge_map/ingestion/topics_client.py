"""
forge_map/ingestion/topics_client.py - Topic listing and search.
"""

import logging
from typing import AsyncIterator

from forge_map.ingestion.transport import ForgeTransport
from forge_map.models import Topic

logger = logging.getLogger(__name__)


class TopicsClient:
    """Topic endpoints of the forge REST API."""

    def __init__(self, transport: ForgeTransport) -> None:
        self._transport = transport

    async def iter_topics(self) -> AsyncIterator[list[Topic]]:
        """Every topic, one batch per page."""
        params = {"per_page": self._transport.config.topics_per_page}
        async for batch in self._transport.iter_pages("/topics", params):
            yield [Topic.from_api(item) for item in batch]

    async def iter_search(self, search: str) -> AsyncIterator[list[Topic]]:
        """Topics matching a text query, one batch per page."""
        async for batch in self._transport.iter_pages("/topics", {"search": search}):
            yield [Topic.from_api(item) for item in batch]
