"""Coordinator for repository discovery, cloning and search.

``RepoEngine`` owns every piece of shared state and is the only thing the
UI (or the CLI) talks to. All methods must be called from the event loop
thread; external work runs in child processes whose completions come back
to the same loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from quick_connect.common.git import folder_key
from quick_connect.common.shell import CommandRunner, run_command
from quick_connect.repos.clone import CloneSerializer, CloneTask
from quick_connect.repos.config import EngineConfig
from quick_connect.repos.disk_cache import DiskCache
from quick_connect.repos.errors import CloneConflict
from quick_connect.repos.existence import ExistenceChecker
from quick_connect.repos.fetcher import FetcherPool, PoolPhase
from quick_connect.repos.hosts import (
    Host,
    HostRegistry,
    StaticHostRegistry,
    canonical_hosts,
)
from quick_connect.repos.scheduler import DebounceScheduler
from quick_connect.repos.search import SearchIndex, SearchResult
from quick_connect.repos.signals import Signal
from quick_connect.repos.state import RepositoryStateStore, RepoState

logger = logging.getLogger(__name__)


class RepoEngine:
    """Discovery engine facade.

    Signals:
        state_changed(host, RepoState)
        stats_changed(total_repos, total_hosts)
        existence_changed(dict[str, bool])
        search_results(list[SearchResult])
        fetch_all_finished()
        clone_started(CloneTask)
        clone_succeeded(CloneTask)
        clone_failed(CloneTask, message)
        clone_rejected(host, repo_name, message)
    """

    def __init__(
        self,
        registry: HostRegistry | None = None,
        config: EngineConfig | None = None,
        *,
        runner: CommandRunner = run_command,
        scheduler: DebounceScheduler | None = None,
    ) -> None:
        self.registry = registry or StaticHostRegistry()
        self.config = config or EngineConfig()
        self.scheduler = scheduler or DebounceScheduler()
        self._canonical: list[str] = []

        self.store = RepositoryStateStore()
        self.pool = FetcherPool(
            self.store,
            runner,
            size=self.config.pool_size,
            connect_timeout=self.config.connect_timeout,
            remote_user=self.config.remote_user,
            canonical=self.canonical_hosts,
        )
        self.existence = ExistenceChecker(runner, self.config.clone_dir)
        self.clones = CloneSerializer(
            runner, self.config.clone_dir, remote_user=self.config.remote_user
        )
        self.cache = DiskCache(
            self.store,
            self.config.cache_file,
            self.scheduler,
            delay=self.config.save_debounce,
        )
        self.index = SearchIndex(
            self.store,
            self.canonical_hosts,
            self.scheduler,
            delay=self.config.search_debounce,
        )

        self.state_changed = self.store.state_changed
        self.stats_changed = self.store.stats_changed
        self.existence_changed = self.existence.changed
        self.search_results = self.index.results_changed
        self.fetch_all_finished = self.pool.drained
        self.clone_started = self.clones.started
        self.clone_succeeded = self.clones.succeeded
        self.clone_failed = self.clones.failed
        self.clone_rejected = Signal("clone_rejected")

        self.pool.host_loaded.connect(self._on_host_loaded)
        self.pool.host_failed.connect(self._on_host_failed)
        self.clones.succeeded.connect(self._on_clone_succeeded)

        self.reload_hosts()

    # Hosts

    def canonical_hosts(self) -> list[str]:
        return list(self._canonical)

    def reload_hosts(self) -> list[str]:
        """Recompute canonical hosts from the registry."""
        self._canonical = canonical_hosts(self.registry.list())
        return self.canonical_hosts()

    def set_hosts(self, hosts: Iterable[Host]) -> list[str]:
        """Replace the host list (static registries only) and recompute."""
        if not isinstance(self.registry, StaticHostRegistry):
            raise TypeError("set_hosts needs a StaticHostRegistry")
        self.registry.replace(hosts)
        return self.reload_hosts()

    # Queries

    def get(self, host: str) -> RepoState:
        return self.store.get(host)

    def is_cloned(self, repo_name: str) -> bool | None:
        return self.existence.exists(folder_key(repo_name))

    @property
    def total_repos(self) -> int:
        return self.store.total_repos

    @property
    def total_hosts(self) -> int:
        return self.store.total_hosts

    # Fetching

    def request_fetch(self, host: str) -> None:
        self.pool.request_fetch(host)

    def request_fetch_all(self) -> list[str]:
        return self.pool.request_fetch_all()

    def clear_and_refetch(self) -> bool:
        """Wipe repo state and local-existence answers, then bulk fetch.

        No-op (returns False) while a bulk fetch is still running.
        """
        if self.pool.is_bulk_running:
            logger.debug("refresh ignored: bulk fetch in progress")
            return False
        self.pool.reset()
        self.store.clear()
        self.existence.clear()
        self.request_fetch_all()
        return True

    refresh_all = clear_and_refetch

    def collapse_all(self) -> None:
        self.store.collapse_all()

    # Cloning

    def request_clone(self, host: str, repo_name: str) -> CloneTask | None:
        """Queue a clone; duplicates are reported through ``clone_rejected``.

        Raises:
            ValidationError: Repo name would not make a safe local folder
        """
        try:
            return self.clones.request_clone(host, repo_name)
        except CloneConflict as e:
            logger.info("clone rejected: %s", e)
            self.clone_rejected.emit(host, repo_name, str(e))
            return None

    # Search

    def search(self, query: str) -> None:
        self.index.search(query)

    def search_now(self, query: str) -> list[SearchResult]:
        self.index.query = query
        return self.index.reindex()

    # Persistence

    def load_cache(self) -> dict[str, list[str]]:
        """Restore cached repos and recheck which are cloned."""
        hosts = self.cache.load()
        keys = [folder_key(repo) for repos in hosts.values() for repo in repos]
        if keys:
            self.existence.check(keys, force=True)
        self.index.refresh()
        return hosts

    def flush(self) -> None:
        """Write any pending cache save and drop other timers."""
        self.cache.flush()
        self.scheduler.cancel_all()

    # Waiting (CLI and tests)

    async def wait_fetch_idle(self) -> None:
        await self.pool.wait_idle()

    async def wait_clones_idle(self) -> None:
        await self.clones.wait_idle()

    async def wait_existence_idle(self) -> None:
        await self.existence.wait_idle()

    async def wait_idle(self) -> None:
        """Wait until fetches, clones and existence checks have all settled."""
        while True:
            await self.wait_fetch_idle()
            await self.wait_clones_idle()
            await self.wait_existence_idle()
            # Give completion callbacks scheduled with call_soon a turn
            await asyncio.sleep(0)
            if (
                self.pool.phase is PoolPhase.IDLE
                and self.clones.running is None
                and not self.existence.is_running
                and not self.existence.pending
            ):
                return

    # Completion hooks

    def _on_host_loaded(self, host: str, repos: list[str]) -> None:
        self.existence.check(folder_key(repo) for repo in repos)
        self.cache.save()
        self.index.refresh()

    def _on_host_failed(self, host: str, message: str) -> None:
        self.cache.save()
        self.index.refresh()

    def _on_clone_succeeded(self, task: CloneTask) -> None:
        self.existence.check([task.folder_key], force=True)
