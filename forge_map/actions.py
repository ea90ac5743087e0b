"""
forge_map/actions.py - Toolbar commands over the current selection.

    EXPAND  expand every selected node (batch double-click)
    HIDE    remove every selected node from the graph
    COPY    put a shareable link to the current graph on the clipboard
    INFO    toggle the details panel
    DOC     open the documentation page
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Optional

from forge_map.config import DEFAULT_CONFIG, ForgeMapConfig
from forge_map.graph.exploration import ExplorationGraph
from forge_map.graph.expansion import GraphExpansionCoordinator
from forge_map.presentation import PresentationNotifier
from forge_map.state.codec import build_share_url

logger = logging.getLogger(__name__)

COPY_NOTICE_KEY = "clipboard-notice"
COPY_NOTICE_TEXT = "Link copied to clipboard"


class ToolbarAction(str, Enum):
    EXPAND = "expand"
    HIDE = "hide"
    COPY = "copy"
    INFO = "info"
    DOC = "doc"


class SelectionActionDispatcher:
    """Executes toolbar actions against the visualizer's selected nodes."""

    def __init__(
        self,
        graph: ExplorationGraph,
        expansion: GraphExpansionCoordinator,
        notifier: PresentationNotifier,
        config: ForgeMapConfig = DEFAULT_CONFIG,
    ) -> None:
        self.graph = graph
        self.expansion = expansion
        self.notifier = notifier
        self.config = config
        self.info_panel_visible = False

    async def dispatch(self, action: ToolbarAction) -> Optional[object]:
        action = ToolbarAction(action)
        if action == ToolbarAction.EXPAND:
            return await self.expand_selection()
        if action == ToolbarAction.HIDE:
            return self.hide_selection()
        if action == ToolbarAction.COPY:
            return self.copy_link()
        if action == ToolbarAction.INFO:
            return self.toggle_info()
        return self.open_documentation()

    def on_key(self, key: str) -> None:
        if key == "Delete":
            self.hide_selection()

    async def expand_selection(self) -> list[str]:
        """Expand all selected nodes concurrently; returns the linked node ids."""
        selected = self.graph.visualizer.get_selected_nodes()
        batches = await asyncio.gather(*(self.expansion.expand(node_id) for node_id in selected))
        return [nid for batch in batches for nid in batch]

    def hide_selection(self) -> int:
        """Remove selected nodes; returns how many were removed."""
        hidden = 0
        for node_id in self.graph.visualizer.get_selected_nodes():
            if self.graph.hide(node_id):
                self.expansion.forget(node_id)
                hidden += 1
        logger.debug("Hid %d node(s)", hidden)
        return hidden

    def copy_link(self) -> str:
        """Encode the materialized graph into a share URL and copy it."""
        state = self.graph.snapshot()
        url = build_share_url(self.config.share_base_url, state, self.config.share_route)
        try:
            self.notifier.write_clipboard(url)
        except Exception:  # noqa: BLE001
            logger.exception("Could not write share link to clipboard")
        self.notifier.show_notice(COPY_NOTICE_KEY, COPY_NOTICE_TEXT, self.config.notice_duration_s)
        return url

    def toggle_info(self) -> bool:
        self.info_panel_visible = not self.info_panel_visible
        return self.info_panel_visible

    def open_documentation(self, url: Optional[str] = None) -> None:
        target = url or self.config.documentation_url
        if target:
            self.notifier.open_url(target)
