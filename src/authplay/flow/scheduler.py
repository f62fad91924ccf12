"""Timer abstraction used to chain poll attempts.

The controller never sleeps inline. After handling each poll it asks a
:class:`Scheduler` to call it back later, so exactly one timer is pending
at any moment. Tests substitute a scheduler they fire by hand.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Run an async callback once after a delay."""

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        """Schedule *callback* to run after *delay* seconds."""
        ...


class LoopScheduler:
    """:class:`Scheduler` backed by the running asyncio event loop.

    Each fired callback runs as its own task. Task references are kept
    until completion so they are not garbage collected mid-flight, and
    unexpected exceptions are logged instead of disappearing silently.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._tasks: set[asyncio.Task[None]] = set()

    def call_later(self, delay: float, callback: TimerCallback) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()

        def _fire() -> None:
            task = loop.create_task(callback())
            self._tasks.add(task)
            task.add_done_callback(self._on_done)

        return loop.call_later(delay, _fire)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Scheduled callback failed", exc_info=exc)
