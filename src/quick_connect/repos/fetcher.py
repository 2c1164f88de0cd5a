"""Bounded pool of concurrent ssh probes that list each host's repos."""

from __future__ import annotations

import asyncio
import enum
import logging
import re
from collections import deque
from dataclasses import dataclass
from typing import Callable

from quick_connect.common.shell import CommandRunner, ProcessResult, ssh_list_argv
from quick_connect.common.validate import ValidationError, validate_repo_name
from quick_connect.repos.errors import ParseError
from quick_connect.repos.signals import Signal
from quick_connect.repos.state import RepositoryStateStore, RepoStatus

logger = logging.getLogger(__name__)

NO_REPOS_MESSAGE = "No repos found or access denied"

# Banner lines git servers print before (or instead of) a listing
GREETING_MARKERS = (
    "Welcome",
    "hello",
    "PTY",
    "interactive",
    "Hi ",
    "You've successfully",
)

# gitolite-style "<flags>\t<name>", e.g. " R W\tteam/app"
_FLAGGED_LINE = re.compile(r"^\s*[A-Za-z+\- ]*?\s*\t\s*(?P<name>\S+)\s*$")
_BARE_NAME = re.compile(r"^[\w\-./]+$")


def parse_probe_output(output: str) -> list[str]:
    """Extract repository names from a server's listing output.

    Greeting banners are dropped, ``<flags>\\t<name>`` lines yield ``name``
    and a bare ``[\\w\\-./]+`` token is taken as a name itself. Names that
    would not make a safe local folder are skipped. Order is preserved and
    duplicates are dropped.
    """
    repos: list[str] = []
    seen: set[str] = set()
    for raw in output.splitlines():
        line = raw.rstrip("\r")
        if not line.strip():
            continue
        if any(marker in line for marker in GREETING_MARKERS):
            continue

        flagged = _FLAGGED_LINE.match(line)
        if flagged:
            name = flagged.group("name")
        elif _BARE_NAME.match(line.strip()):
            name = line.strip()
        else:
            continue

        try:
            validate_repo_name(name)
        except ValidationError:
            logger.debug("skipping unusable repo name %r", name)
            continue
        if name not in seen:
            seen.add(name)
            repos.append(name)
    return repos


def repos_from_result(result: ProcessResult) -> list[str]:
    """Parse a finished probe; raise ParseError when nothing usable came back.

    A non-zero exit is not fatal by itself: ssh to a git server commonly
    exits 1 after printing the listing.
    """
    repos = parse_probe_output(result.stdout)
    if not repos:
        raise ParseError(NO_REPOS_MESSAGE)
    return repos


class PoolPhase(enum.Enum):
    IDLE = "idle"
    FILLING = "filling"
    DRAINING = "draining"


@dataclass
class _Slot:
    """One reusable worker. Busy while ``task`` is set."""

    index: int
    task: asyncio.Task[ProcessResult] | None = None
    host: str | None = None
    generation: int = 0

    @property
    def retired(self) -> bool:
        return self.task is None


class FetcherPool:
    """Runs at most ``size`` probes at once, never two for the same host.

    A slot becomes reusable only from its task's done-callback, after which
    the next fill is deferred with ``call_soon`` so the finished task is
    fully torn down first.

    Signals:
        host_loaded(host, repos)   probe produced repos
        host_failed(host, message) probe produced nothing usable
        drained()                  bulk fetch finished (queue empty, nothing in flight)
    """

    def __init__(
        self,
        store: RepositoryStateStore,
        runner: CommandRunner,
        *,
        size: int = 8,
        connect_timeout: int = 2,
        remote_user: str = "git",
        canonical: Callable[[], list[str]] = list,
    ) -> None:
        self.store = store
        self._runner = runner
        self._connect_timeout = connect_timeout
        self._remote_user = remote_user
        self._canonical = canonical
        self._slots = [_Slot(i) for i in range(size)]
        self._queue: deque[str] = deque()
        self._in_flight: set[str] = set()
        self._generation = 0
        self._bulk = False
        self._phase = PoolPhase.IDLE
        self._idle = asyncio.Event()
        self._idle.set()

        self.host_loaded = Signal("host_loaded")
        self.host_failed = Signal("host_failed")
        self.drained = Signal("drained")

    @property
    def size(self) -> int:
        return len(self._slots)

    @property
    def in_flight(self) -> int:
        """Probes dispatched in the current generation and not yet completed."""
        return len(self._in_flight)

    @property
    def busy_slots(self) -> int:
        """Slots with a live process, including ones from older generations."""
        return sum(1 for slot in self._slots if not slot.retired)

    @property
    def queued(self) -> list[str]:
        return list(self._queue)

    @property
    def phase(self) -> PoolPhase:
        return self._phase

    @property
    def is_bulk_running(self) -> bool:
        return self._bulk

    @property
    def generation(self) -> int:
        return self._generation

    def is_pending(self, host: str) -> bool:
        return host in self._in_flight or host in self._queue

    def request_fetch(self, host: str) -> None:
        """Interactive single-host fetch doubling as an expand/collapse toggle."""
        state = self.store.get(host)
        if state.expanded:
            self.store.collapse(host)
            return
        if state.status is RepoStatus.LOADED and state.has_repos:
            self.store.set_expanded(host)
            return
        if host in self._in_flight:
            self.store.set_expanded(host)
            return
        if host in self._queue:
            # Jump the bulk queue
            self._queue.remove(host)

        self.store.merge(
            {
                host: {
                    "status": RepoStatus.LOADING,
                    "error_message": "",
                    "expanded": True,
                }
            }
        )
        self._queue.appendleft(host)
        self.fill_pool()

    def request_fetch_all(self) -> list[str]:
        """Queue every canonical host not already loaded, loading or failed.

        Returns the hosts that were queued.
        """
        skip = {RepoStatus.LOADED, RepoStatus.LOADING, RepoStatus.ERROR}
        added = [
            host
            for host in self._canonical()
            if self.store.get(host).status not in skip and not self.is_pending(host)
        ]
        self._queue.extend(added)
        self._bulk = True
        logger.debug("bulk fetch queued %d hosts", len(added))
        self.fill_pool()
        return added

    def reset(self) -> None:
        """Forget queued and in-flight bookkeeping and start a new generation.

        Running processes are not killed; their slots stay busy until they
        exit and their results are discarded.
        """
        self._generation += 1
        self._queue.clear()
        self._in_flight.clear()
        self._bulk = False
        self._update_phase()

    def fill_pool(self) -> None:
        """Hand queued hosts to retired slots."""
        dispatch: list[tuple[_Slot, str]] = []
        claimed: set[str] = set()
        for slot in self._slots:
            if not slot.retired:
                continue
            host = self._next_host(claimed)
            if host is None:
                break
            claimed.add(host)
            dispatch.append((slot, host))

        if dispatch:
            # Mark every dispatched host loading in one swap before any
            # process starts, so no caller can queue them again in between
            self.store.merge(
                {
                    host: {"status": RepoStatus.LOADING, "error_message": ""}
                    for _, host in dispatch
                    if self.store.get(host).status is not RepoStatus.LOADING
                }
            )
            for slot, host in dispatch:
                self._start(slot, host)

        self._update_phase()

    def _next_host(self, claimed: set[str]) -> str | None:
        # A stale probe from before a reset may still hold this host
        busy = {slot.host for slot in self._slots if not slot.retired}
        deferred: list[str] = []
        found: str | None = None
        while self._queue:
            host = self._queue.popleft()
            if host in self._in_flight or host in claimed:
                continue
            if host in busy:
                deferred.append(host)
                continue
            found = host
            break
        self._queue.extendleft(reversed(deferred))
        return found

    def _start(self, slot: _Slot, host: str) -> None:
        argv = ssh_list_argv(
            host, user=self._remote_user, connect_timeout=self._connect_timeout
        )
        slot.host = host
        slot.generation = self._generation
        self._in_flight.add(host)
        logger.debug("slot %d probing %s", slot.index, host)
        task = asyncio.get_running_loop().create_task(
            self._runner(argv, merge_stderr=True), name=f"probe:{host}"
        )
        slot.task = task
        task.add_done_callback(lambda t, s=slot: self._on_done(s, t))

    def _on_done(self, slot: _Slot, task: asyncio.Task[ProcessResult]) -> None:
        host = slot.host
        generation = slot.generation
        # Retire the slot before anything else may refill it
        slot.task = None
        slot.host = None
        assert host is not None

        if generation != self._generation:
            logger.debug("discarding stale probe result for %s", host)
            asyncio.get_running_loop().call_soon(self.fill_pool)
            return

        self._in_flight.discard(host)
        if task.cancelled():
            self._record_failure(host, "Probe cancelled")
        else:
            self._handle_result(host, task)

        if self._bulk:
            asyncio.get_running_loop().call_soon(self.fill_pool)
        else:
            self.fill_pool()

    def _handle_result(self, host: str, task: asyncio.Task[ProcessResult]) -> None:
        try:
            repos = repos_from_result(task.result())
        except ParseError as e:
            self._record_failure(host, str(e))
        except Exception as e:  # noqa: BLE001 - runner crashes are per-host
            logger.warning("probe for %s crashed: %s", host, e)
            self._record_failure(host, str(e) or NO_REPOS_MESSAGE)
        else:
            logger.debug("%s: %d repos", host, len(repos))
            self.store.merge(
                {
                    host: {
                        "status": RepoStatus.LOADED,
                        "repos": repos,
                        "error_message": "",
                    }
                }
            )
            self.host_loaded.emit(host, repos)

    def _record_failure(self, host: str, message: str) -> None:
        self.store.merge(
            {host: {"status": RepoStatus.ERROR, "repos": (), "error_message": message}}
        )
        self.host_failed.emit(host, message)

    def _update_phase(self) -> None:
        if self._queue:
            self._phase = PoolPhase.FILLING
        elif self._in_flight:
            self._phase = PoolPhase.DRAINING
        else:
            self._phase = PoolPhase.IDLE

        if self._phase is PoolPhase.IDLE:
            self._idle.set()
            if self._bulk:
                self._bulk = False
                logger.debug("bulk fetch drained")
                self.drained.emit()
        else:
            self._idle.clear()

    async def wait_idle(self) -> None:
        """Wait until nothing is queued or in flight."""
        await self._idle.wait()
