"""One-at-a-time clone queue."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path

from quick_connect.common.git import (
    clone_argv,
    clone_url,
    extract_clone_error,
    folder_key,
)
from quick_connect.common.shell import CommandRunner, ProcessResult
from quick_connect.common.validate import validate_repo_name
from quick_connect.repos.errors import CloneConflict, TransportError
from quick_connect.repos.signals import Signal

logger = logging.getLogger(__name__)


class CloneStatus(enum.Enum):
    QUEUED = "queued"
    RUNNING = "running"


@dataclass
class CloneTask:
    host: str
    repo_name: str
    clone_url: str
    status: CloneStatus = CloneStatus.QUEUED

    @property
    def folder_key(self) -> str:
        return folder_key(self.repo_name)


class CloneSerializer:
    """FIFO clone queue that never runs two clones at once.

    Requests are deduplicated by FolderKey: ``team/proj.git`` and ``proj``
    land in the same folder, so the second is rejected while the first is
    queued or running.

    Signals:
        started(task)
        succeeded(task)
        failed(task, message)
    """

    def __init__(
        self, runner: CommandRunner, clone_dir: Path, *, remote_user: str = "git"
    ) -> None:
        self._runner = runner
        self.clone_dir = clone_dir
        self._remote_user = remote_user
        self._queue: deque[CloneTask] = deque()
        self._active: set[str] = set()
        self._idle = asyncio.Event()
        self._idle.set()

        self.started = Signal("clone_started")
        self.succeeded = Signal("clone_succeeded")
        self.failed = Signal("clone_failed")

    @property
    def tasks(self) -> list[CloneTask]:
        """Queued tasks, running one first."""
        return list(self._queue)

    @property
    def running(self) -> CloneTask | None:
        if self._queue and self._queue[0].status is CloneStatus.RUNNING:
            return self._queue[0]
        return None

    def is_active(self, key: str) -> bool:
        return key in self._active

    def request_clone(self, host: str, repo_name: str) -> CloneTask:
        """Queue a clone of ``repo_name`` from ``host``.

        Raises:
            ValidationError: Repo name would not make a safe local folder
            CloneConflict: Same FolderKey already queued or running
        """
        validate_repo_name(repo_name)
        key = folder_key(repo_name)
        if key in self._active:
            raise CloneConflict(key)

        task = CloneTask(
            host=host,
            repo_name=repo_name,
            clone_url=clone_url(host, repo_name, user=self._remote_user),
        )
        self._active.add(key)
        self._queue.append(task)
        self._idle.clear()
        logger.debug(
            "queued clone of %s (%d in queue)", task.clone_url, len(self._queue)
        )
        if self.running is None:
            self._start_head()
        return task

    def _start_head(self) -> None:
        if not self._queue:
            self._idle.set()
            return
        task = self._queue[0]
        task.status = CloneStatus.RUNNING
        self.started.emit(task)
        job = asyncio.get_running_loop().create_task(
            self._clone(task), name=f"clone:{task.folder_key}"
        )
        job.add_done_callback(lambda j, t=task: self._on_done(t, j))

    async def _clone(self, task: CloneTask) -> ProcessResult:
        self.clone_dir.mkdir(parents=True, exist_ok=True)
        result = await self._runner(clone_argv(task.clone_url), cwd=self.clone_dir)
        if not result.ok:
            raise TransportError(
                extract_clone_error(result.stderr, result.returncode),
                result.returncode,
            )
        return result

    def _on_done(self, task: CloneTask, job: asyncio.Task[ProcessResult]) -> None:
        head = self._queue.popleft()
        assert head is task
        self._active.discard(task.folder_key)

        if job.cancelled():
            message: str | None = "Clone cancelled"
        else:
            exc = job.exception()
            message = None if exc is None else str(exc) or type(exc).__name__

        if message is None:
            logger.debug("cloned %s", task.clone_url)
            self.succeeded.emit(task)
        else:
            logger.info("clone of %s failed: %s", task.clone_url, message)
            self.failed.emit(task, message)

        self._start_head()

    async def wait_idle(self) -> None:
        """Wait until the queue is empty."""
        await self._idle.wait()
