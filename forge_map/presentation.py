"""
forge_map/presentation.py - Host presentation boundary.

Clipboard access, transient notices and opening external pages are the only
host-environment services the explorer needs. They sit behind the
PresentationNotifier protocol so the graph logic runs unchanged in a
browser bridge, a terminal or a test.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class PresentationNotifier(Protocol):
    def write_clipboard(self, text: str) -> None: ...

    def show_notice(self, key: str, message: str, duration: float) -> bool: ...

    def open_url(self, url: str) -> None: ...


class LoggingNotifier:
    """Notifier that logs instead of drawing.

    Keeps the last clipboard text and the set of notices currently shown.
    A notice is single-instance per key: while one is showing, another
    show_notice with the same key is refused. Notices dismiss themselves
    after `duration` seconds when an event loop is running; otherwise they
    stay until dismiss() is called.
    """

    def __init__(self) -> None:
        self.clipboard: Optional[str] = None
        self.opened_urls: list[str] = []
        self._active: dict[str, Optional[asyncio.TimerHandle]] = {}

    def write_clipboard(self, text: str) -> None:
        self.clipboard = text
        logger.info("Copied to clipboard: %s", text)

    def show_notice(self, key: str, message: str, duration: float) -> bool:
        """Show a transient notice; returns False if one with this key is already up."""
        if key in self._active:
            return False
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = None
        else:
            timer = loop.call_later(duration, self.dismiss, key)
        self._active[key] = timer
        logger.info("%s", message)
        return True

    def dismiss(self, key: str) -> None:
        timer = self._active.pop(key, None)
        if timer is not None:
            timer.cancel()

    def is_showing(self, key: str) -> bool:
        return key in self._active

    def open_url(self, url: str) -> None:
        self.opened_urls.append(url)
        logger.info("Open in browser: %s", url)
