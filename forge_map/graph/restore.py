"""
forge_map/graph/restore.py - Rebuild a shared exploration exactly.

A shared link lists the project, user and group ids that were on screen.
Rehydration does not re-expand everything: each listed project is fetched
and placed unconditionally, then its full user and group relations are
fetched and filtered client-side against the listed ids. Relations that
were not part of the shared view are never materialized or connected.

This reproduces the previously shared subgraph at the cost of fetching
some relations that end up discarded. A restore whose graph is cleared before
it finishes stops applying responses.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Iterable, Optional

from forge_map.graph.exploration import ExplorationGraph
from forge_map.ingestion.projects_client import ProjectsClient
from forge_map.models import Entity
from forge_map.state.codec import ExplorationState

logger = logging.getLogger(__name__)


class RestoreCoordinator:
    """Selective rehydration of an ExplorationState into an ExplorationGraph."""

    def __init__(self, graph: ExplorationGraph, projects: ProjectsClient) -> None:
        self.graph = graph
        self._projects = projects

    async def restore(self, state: ExplorationState) -> int:
        """Rehydrate state; returns the number of projects successfully restored.

        A failure on one project is logged and does not stop the others.
        """
        wanted_users = set(state.users)
        wanted_groups = set(state.groups)
        project_ids = list(dict.fromkeys(state.projects))

        logger.info(
            "Restoring shared state: %d project(s), %d user(s), %d group(s)",
            len(project_ids), len(wanted_users), len(wanted_groups),
        )
        generation = self.graph.generation
        results = await asyncio.gather(
            *(
                self._restore_project(pid, generation, wanted_users, wanted_groups)
                for pid in project_ids
            ),
            return_exceptions=True,
        )

        restored = 0
        for project_id, result in zip(project_ids, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("Could not restore project %s: %s", project_id, result)
            elif result is not None:
                restored += 1
        if not self.graph.is_current(generation):
            logger.info("Restore superseded: graph cleared while it was loading")
            return restored
        logger.info("Restored %d/%d project(s)", restored, len(project_ids))
        return restored

    async def _restore_project(
        self,
        project_id: int,
        generation: int,
        wanted_users: set[int],
        wanted_groups: set[int],
    ) -> Optional[str]:
        project = await self._projects.get_project(project_id)
        if not self.graph.is_current(generation):
            return None
        origin = self.graph.materialize(project)
        users = self._projects.get_users(project_id)
        groups = self._projects.get_groups(project_id)
        await asyncio.gather(
            self._attach_selected(origin, generation, users, wanted_users),
            self._attach_selected(origin, generation, groups, wanted_groups),
        )
        return origin if self.graph.is_current(generation) else None

    async def _attach_selected(
        self,
        origin: str,
        generation: int,
        fetch: Awaitable[Iterable[Entity]],
        wanted: set[int],
    ) -> None:
        related = await fetch
        if not self.graph.is_current(generation):
            return
        for entity in related:
            if entity.id not in wanted:
                continue
            self.graph.connect(origin, self.graph.materialize(entity))
