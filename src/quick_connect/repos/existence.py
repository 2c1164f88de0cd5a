"""Batched check of which repos already have a local clone."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Iterable

from quick_connect.common.shell import (
    CommandRunner,
    ProcessResult,
    existence_argv,
    parse_existence_output,
)
from quick_connect.repos.signals import Signal

logger = logging.getLogger(__name__)


class ExistenceChecker:
    """Answers "is FolderKey cloned?" with one ``sh`` call per batch.

    Requests arriving while a batch runs are queued and picked up by the
    next batch once the current one completes.

    Signals:
        changed(dict[str, bool])  results of one finished batch
    """

    def __init__(self, runner: CommandRunner, clone_dir: Path) -> None:
        self._runner = runner
        self.clone_dir = clone_dir
        self._known: dict[str, bool] = {}
        self._pending: dict[str, None] = {}
        self._in_batch: set[str] = set()
        self._generation = 0
        self._running = False
        self._scheduled = False
        self._task: asyncio.Task[ProcessResult] | None = None
        self._idle = asyncio.Event()
        self._idle.set()
        self.batches_run = 0
        self.changed = Signal("existence_changed")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def pending(self) -> list[str]:
        return list(self._pending)

    def exists(self, key: str) -> bool | None:
        """Cached answer for ``key``; None if never checked."""
        return self._known.get(key)

    def snapshot(self) -> dict[str, bool]:
        return dict(self._known)

    def clear(self) -> None:
        """Forget every cached answer (full refresh)."""
        self._known.clear()
        self._pending.clear()
        self._generation += 1

    def check(self, folder_keys: Iterable[str], *, force: bool = False) -> None:
        """Queue keys whose answer is unknown, or all of them when forced.

        Forcing discards the cached answer first so it gets recomputed.
        """
        for key in folder_keys:
            if not key:
                continue
            if force:
                self._known.pop(key, None)
            elif key in self._known or key in self._in_batch:
                continue
            self._pending.setdefault(key, None)
        if self._pending:
            self._idle.clear()
            self._kick()

    def _kick(self) -> None:
        # Requests made in the same loop turn share one batch
        if self._scheduled:
            return
        self._scheduled = True
        asyncio.get_running_loop().call_soon(self._run_scheduled)

    def _run_scheduled(self) -> None:
        self._scheduled = False
        self.process_queue()
        if not self._running and not self._pending:
            self._idle.set()

    def process_queue(self) -> None:
        """Start one batch for everything pending, unless a batch is running."""
        if self._running or not self._pending:
            return
        batch = list(self._pending)
        self._pending.clear()
        self._in_batch = set(batch)
        self._running = True
        self._idle.clear()
        logger.debug("existence batch of %d keys", len(batch))
        self._task = asyncio.get_running_loop().create_task(
            self._probe(batch), name="existence-check"
        )
        self._task.add_done_callback(
            lambda t, b=batch, g=self._generation: self._on_done(b, g, t)
        )

    async def _probe(self, batch: list[str]) -> ProcessResult:
        if not self.clone_dir.is_dir():
            return ProcessResult(0, "N\n" * len(batch))
        return await self._runner(existence_argv(batch), cwd=self.clone_dir)

    def _on_done(
        self, batch: list[str], generation: int, task: asyncio.Task[ProcessResult]
    ) -> None:
        self._running = False
        self._task = None
        self._in_batch.clear()
        self.batches_run += 1

        if task.cancelled():
            flags = None
        else:
            exc = task.exception()
            if exc is not None:
                logger.warning("existence check failed: %s", exc)
                flags = None
            else:
                result = task.result()
                if not result.ok:
                    logger.warning(
                        "existence check exited %d: %s",
                        result.returncode,
                        result.stderr.strip(),
                    )
                flags = parse_existence_output(result.stdout, len(batch))

        if generation != self._generation:
            logger.debug("discarding existence results from before a refresh")
        elif flags is not None:
            results = dict(zip(batch, flags))
            self._known.update(results)
            self.changed.emit(results)

        # Drain anything queued while this batch ran
        self.process_queue()
        if not self._running and not self._pending:
            self._idle.set()

    async def wait_idle(self) -> None:
        await self._idle.wait()
