"""Persist discovered repositories between runs."""

from __future__ import annotations

import logging
from pathlib import Path

from quick_connect.common.cache import JSONFile, JSONFileError
from quick_connect.repos.errors import CacheDecodeError
from quick_connect.repos.scheduler import DebounceScheduler
from quick_connect.repos.state import RepositoryStateStore, RepoState, RepoStatus

logger = logging.getLogger(__name__)

SAVE_TASK_ID = "disk-cache-save"


def decode_cache(data: object) -> dict[str, list[str]]:
    """Validate the decoded JSON shape: ``{host: [repo, ...]}``.

    Raises:
        CacheDecodeError: Anything else
    """
    if not isinstance(data, dict):
        raise CacheDecodeError(f"Expected an object, got {type(data).__name__}")
    hosts: dict[str, list[str]] = {}
    for host, repos in data.items():
        if not isinstance(host, str) or not isinstance(repos, list):
            raise CacheDecodeError(f"Bad entry for host {host!r}")
        if not all(isinstance(r, str) for r in repos):
            raise CacheDecodeError(f"Non-string repo name under {host!r}")
        hosts[host] = list(repos)
    return hosts


class DiskCache:
    """Whole-file cache of ``canonical host -> repos``.

    Saves are debounced; expand/collapse changes never schedule one.
    Hosts with no repos are not written.
    """

    def __init__(
        self,
        store: RepositoryStateStore,
        path: Path,
        scheduler: DebounceScheduler,
        *,
        delay: float = 2.0,
    ) -> None:
        self.store = store
        self.file = JSONFile(path)
        self._scheduler = scheduler
        self.delay = delay
        self.saves = 0

    @property
    def path(self) -> Path:
        return self.file.path

    def save(self) -> None:
        """Schedule a write ``delay`` seconds after the last call."""
        self._scheduler.schedule(SAVE_TASK_ID, self.save_now, self.delay)

    @property
    def save_pending(self) -> bool:
        return self._scheduler.pending(SAVE_TASK_ID)

    def flush(self) -> None:
        """Write now if a save is pending."""
        if self._scheduler.cancel(SAVE_TASK_ID):
            self.save_now()

    def save_now(self) -> None:
        data = {
            host: list(state.repos)
            for host, state in self.store.snapshot().items()
            if state.repos
        }
        try:
            self.file.write(data)
        except OSError as e:
            logger.warning("could not write repo cache %s: %s", self.path, e)
            return
        self.saves += 1
        logger.debug("saved %d hosts to %s", len(data), self.path)

    def read(self) -> dict[str, list[str]] | None:
        """Decoded cache contents, or None when there is no cache file.

        Raises:
            CacheDecodeError: File is unreadable or has the wrong shape
        """
        try:
            data = self.file.read()
        except JSONFileError as e:
            raise CacheDecodeError(str(e)) from e
        return None if data is None else decode_cache(data)

    def load(self) -> dict[str, list[str]]:
        """Replace in-memory state with the cached hosts.

        Returns the loaded mapping; empty when there is no cache or it
        cannot be decoded.
        """
        try:
            hosts = self.read()
        except CacheDecodeError as e:
            logger.warning("ignoring unreadable repo cache: %s", e)
            return {}
        if hosts is None:
            return {}

        hosts = {host: repos for host, repos in hosts.items() if repos}
        self.store.replace_all(
            {
                host: RepoState(status=RepoStatus.LOADED, repos=tuple(repos))
                for host, repos in hosts.items()
            }
        )
        logger.debug("loaded %d hosts from %s", len(hosts), self.path)
        return hosts

    def clear(self) -> None:
        """Drop any pending save and delete the file."""
        self._scheduler.cancel(SAVE_TASK_ID)
        self.file.remove()
