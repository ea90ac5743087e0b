"""
forge_map/events.py - Explicit subscriptions and cancellable task handles.

Visualizer callbacks and superseded fetches are modelled as objects the
caller holds and releases: an EventStream hands out Subscriptions, and a
TaskHandle wraps the asyncio.Task behind a search or panel load so a newer
request can cancel it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Subscription:
    """Handle returned by EventStream.subscribe; call unsubscribe() to detach."""

    def __init__(self, stream: "EventStream[Any]", callback: Callable[[Any], Any]) -> None:
        self._stream = stream
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._stream._detach(self)
            self.active = False


class EventStream(Generic[T]):
    """Synchronous publish/subscribe channel.

    Callbacks run in subscription order. A callback raising does not stop
    delivery to the others; the error is logged.
    """

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._subscriptions: list[Subscription] = []

    def subscribe(self, callback: Callable[[T], Any]) -> Subscription:
        sub = Subscription(self, callback)
        self._subscriptions.append(sub)
        return sub

    def emit(self, value: T) -> None:
        for sub in list(self._subscriptions):
            try:
                sub._callback(value)
            except Exception:  # noqa: BLE001
                logger.exception("Subscriber of %s failed on %r", self.name or "stream", value)

    def _detach(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def __len__(self) -> int:
        return len(self._subscriptions)


class TaskHandle:
    """Cancellable handle over a scheduled coroutine.

    unsubscribe() cancels the task; because graph mutation only happens
    between awaits, a cancelled task never applies the response it was
    waiting for.
    """

    def __init__(self, task: asyncio.Task, label: str = "") -> None:
        self._task = task
        self.label = label

    @classmethod
    def spawn(cls, coro: Any, label: str = "") -> "TaskHandle":
        """Schedule coro on the running loop."""
        return cls(asyncio.get_running_loop().create_task(coro), label=label)

    def unsubscribe(self) -> None:
        if not self._task.done():
            logger.debug("Cancelling %s", self.label or "task")
            self._task.cancel()

    async def wait(self) -> Optional[Any]:
        """Wait for completion; returns the result, or None if cancelled."""
        try:
            return await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
            return None

    def add_done_callback(self, fn: Callable[[asyncio.Task], Any]) -> None:
        self._task.add_done_callback(fn)

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()
