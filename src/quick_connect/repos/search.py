"""Debounced substring search across every canonical host's repos."""

from __future__ import annotations

from typing import Callable, NamedTuple

from quick_connect.common.git import folder_key
from quick_connect.repos.scheduler import DebounceScheduler
from quick_connect.repos.signals import Signal
from quick_connect.repos.state import RepositoryStateStore

SEARCH_TASK_ID = "repo-search"


class SearchResult(NamedTuple):
    host: str
    repo_name: str
    folder_key: str


def find_repos(
    store: RepositoryStateStore, hosts: list[str], query: str
) -> list[SearchResult]:
    """Case-insensitive substring match over ``hosts`` in order.

    A repo name seen under an earlier host is not repeated for a later one.
    """
    needle = query.strip().lower()
    if not needle:
        return []
    results: list[SearchResult] = []
    seen: set[str] = set()
    for host in hosts:
        for repo in store.get(host).repos:
            if repo in seen or needle not in repo.lower():
                continue
            seen.add(repo)
            results.append(SearchResult(host, repo, folder_key(repo)))
    return results


class SearchIndex:
    """Recomputes the result list 150ms after the last query change.

    Each run replaces ``results`` wholesale and emits ``results_changed``.
    """

    def __init__(
        self,
        store: RepositoryStateStore,
        canonical: Callable[[], list[str]],
        scheduler: DebounceScheduler,
        *,
        delay: float = 0.15,
    ) -> None:
        self.store = store
        self._canonical = canonical
        self._scheduler = scheduler
        self.delay = delay
        self.query = ""
        self.results: list[SearchResult] = []
        self.results_changed = Signal("search_results")

    def search(self, query: str) -> None:
        """Set the query; results follow once input goes quiet."""
        self.query = query
        self._scheduler.schedule(SEARCH_TASK_ID, self.reindex, self.delay)

    def reindex(self) -> list[SearchResult]:
        """Recompute results for the current query right away."""
        self._scheduler.cancel(SEARCH_TASK_ID)
        self.results = find_repos(self.store, self._canonical(), self.query)
        self.results_changed.emit(list(self.results))
        return self.results

    def refresh(self) -> None:
        """Re-run the current query after repo data changed."""
        if self.query:
            self.search(self.query)
