"""Cancellable delayed tasks keyed by id, used for debouncing."""

from __future__ import annotations

import asyncio
from typing import Callable


class DebounceScheduler:
    """Run callbacks after a delay; rescheduling an id supersedes the old one.

    Callbacks run on the owning event loop, so they may touch engine state
    directly.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handles: dict[str, asyncio.TimerHandle] = {}

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def schedule(self, task_id: str, fn: Callable[[], None], delay: float) -> None:
        """Run ``fn`` after ``delay`` seconds unless superseded or cancelled."""
        self.cancel(task_id)
        self._handles[task_id] = self.loop.call_later(delay, self._fire, task_id, fn)

    def _fire(self, task_id: str, fn: Callable[[], None]) -> None:
        self._handles.pop(task_id, None)
        fn()

    def cancel(self, task_id: str) -> bool:
        """Drop a pending task. Returns True if one was pending."""
        handle = self._handles.pop(task_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def pending(self, task_id: str) -> bool:
        return task_id in self._handles

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
