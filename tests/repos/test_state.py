"""Tests for RepositoryStateStore."""

from __future__ import annotations

import pytest

from quick_connect.repos.state import (
    EMPTY_STATE,
    RepositoryStateStore,
    RepoState,
    RepoStatus,
)

LOADED = RepoStatus.LOADED
LOADING = RepoStatus.LOADING


@pytest.fixture
def store() -> RepositoryStateStore:
    return RepositoryStateStore()


def expanded_hosts(store: RepositoryStateStore) -> list[str]:
    return [host for host, state in store.snapshot().items() if state.expanded]


class TestMerge:
    """Tests for RepositoryStateStore.merge."""

    def test_unknown_host_reads_empty(self, store: RepositoryStateStore) -> None:
        assert store.get("nowhere") == EMPTY_STATE
        assert store.get("nowhere").status is RepoStatus.IDLE

    def test_partial_update_keeps_other_fields(
        self, store: RepositoryStateStore
    ) -> None:
        store.merge({"a": {"status": LOADED, "repos": ["x", "y"]}})
        store.merge({"a": {"error_message": "later"}})

        state = store.get("a")
        assert state.status is LOADED
        assert state.repos == ("x", "y")
        assert state.error_message == "later"

    def test_multi_host_patch_is_one_swap(self, store: RepositoryStateStore) -> None:
        """Subscribers see every host of a patch already applied."""
        seen: list[tuple[str, RepoStatus, RepoStatus]] = []
        store.state_changed.connect(
            lambda host, _: seen.append(
                (host, store.get("a").status, store.get("b").status)
            )
        )

        store.merge({"a": {"status": LOADING}, "b": {"status": LOADING}})

        assert seen == [("a", LOADING, LOADING), ("b", LOADING, LOADING)]

    def test_unknown_field_rejected(self, store: RepositoryStateStore) -> None:
        with pytest.raises(ValueError, match="Unknown RepoState fields"):
            store.merge({"a": {"colour": "red"}})

    def test_noop_patch_emits_nothing(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": LOADED, "repos": ["x"]}})
        events: list[str] = []
        store.state_changed.connect(lambda host, _: events.append(host))

        store.merge({"a": {"status": LOADED}})

        assert events == []


class TestCounters:
    """Tests for incremental repo/host totals."""

    def test_totals_follow_merges(self, store: RepositoryStateStore) -> None:
        stats: list[tuple[int, int]] = []
        store.stats_changed.connect(lambda repos, hosts: stats.append((repos, hosts)))

        store.merge({"a": {"status": LOADED, "repos": ["x", "y"]}})
        store.merge({"b": {"status": LOADED, "repos": ["z"]}})
        store.merge({"a": {"status": RepoStatus.ERROR, "repos": []}})

        assert stats == [(2, 1), (3, 2), (1, 1)]
        assert (store.total_repos, store.total_hosts) == (1, 1)

    def test_expand_does_not_touch_totals(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": LOADED, "repos": ["x"]}})
        stats: list[tuple[int, int]] = []
        store.stats_changed.connect(lambda repos, hosts: stats.append((repos, hosts)))

        store.set_expanded("a")

        assert stats == []

    def test_clear_resets_totals(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": LOADED, "repos": ["x", "y"]}})
        store.clear()

        assert (store.total_repos, store.total_hosts) == (0, 0)
        assert store.hosts() == []

    def test_replace_all_recounts_changes(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": LOADED, "repos": ["x"]}})
        store.replace_all(
            {
                "b": RepoState(status=LOADED, repos=("p", "q")),
                "c": RepoState(status=LOADED, repos=("r",)),
            }
        )

        assert "a" not in store
        assert (store.total_repos, store.total_hosts) == (3, 2)


class TestExpanded:
    """Tests for the single-expanded-host invariant."""

    def test_expanding_collapses_previous(self, store: RepositoryStateStore) -> None:
        store.merge(
            {
                "a": {"status": LOADED, "repos": ["x"]},
                "b": {"status": LOADED, "repos": ["y"]},
            }
        )
        assert store.set_expanded("b")

        assert store.set_expanded("a")

        assert expanded_hosts(store) == ["a"]
        assert store.expanded_host == "a"

    def test_loading_host_can_expand(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": LOADING}})
        assert store.set_expanded("a")

    def test_error_host_cannot_expand(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": RepoStatus.ERROR, "error_message": "nope"}})
        assert not store.set_expanded("a")
        assert expanded_hosts(store) == []

    def test_unknown_host_cannot_expand(self, store: RepositoryStateStore) -> None:
        assert not store.set_expanded("ghost")

    def test_merge_expanded_keeps_invariant(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": LOADED, "repos": ["x"], "expanded": True}})
        store.merge({"b": {"status": LOADING, "expanded": True}})

        assert expanded_hosts(store) == ["b"]

    def test_collapse_all(self, store: RepositoryStateStore) -> None:
        store.merge({"a": {"status": LOADED, "repos": ["x"]}})
        store.set_expanded("a")

        store.collapse_all()

        assert expanded_hosts(store) == []
