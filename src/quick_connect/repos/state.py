"""Per-host discovery state and the store that owns it."""

from __future__ import annotations

import dataclasses
import enum
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from quick_connect.repos.signals import Signal

logger = logging.getLogger(__name__)


class RepoStatus(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class RepoState:
    """Discovery state of one canonical host."""

    status: RepoStatus = RepoStatus.IDLE
    repos: tuple[str, ...] = ()
    error_message: str = ""
    expanded: bool = False

    @property
    def has_repos(self) -> bool:
        return bool(self.repos)

    @property
    def can_expand(self) -> bool:
        """Loading hosts and hosts with an error-free repo list may expand."""
        if self.status is RepoStatus.LOADING:
            return True
        return self.status is RepoStatus.LOADED and self.has_repos


EMPTY_STATE = RepoState()

_FIELDS = {f.name for f in dataclasses.fields(RepoState)}


class RepositoryStateStore:
    """Authoritative map from canonical host to RepoState.

    Every mutation builds a new snapshot dict and swaps it in, so readers
    never observe a half-applied patch. Totals are maintained with
    counters adjusted per changed host rather than rescanning.

    Signals:
        state_changed(host, RepoState)
        stats_changed(total_repos, total_hosts)
    """

    def __init__(self) -> None:
        self._states: dict[str, RepoState] = {}
        self._total_repos = 0
        self._total_hosts = 0
        self.state_changed = Signal("state_changed")
        self.stats_changed = Signal("stats_changed")

    def get(self, host: str) -> RepoState:
        return self._states.get(host, EMPTY_STATE)

    def __contains__(self, host: object) -> bool:
        return host in self._states

    def snapshot(self) -> dict[str, RepoState]:
        """Copy of the current host -> state map."""
        return dict(self._states)

    def hosts(self) -> list[str]:
        return list(self._states)

    @property
    def total_repos(self) -> int:
        return self._total_repos

    @property
    def total_hosts(self) -> int:
        return self._total_hosts

    @property
    def expanded_host(self) -> str | None:
        for host, state in self._states.items():
            if state.expanded:
                return host
        return None

    def merge(self, patch: Mapping[str, Mapping[str, Any]]) -> None:
        """Apply partial updates for several hosts in one snapshot swap.

        Args:
            patch: host -> field updates, e.g. ``{"h1": {"status": LOADING}}``.
                ``repos`` may be any iterable of names. Setting ``expanded``
                to True collapses every other host in the same swap.
        """
        if not patch:
            return
        new_states = dict(self._states)
        changed: dict[str, RepoState] = {}
        expand_target: str | None = None

        for host, fields in patch.items():
            unknown = set(fields) - _FIELDS
            if unknown:
                raise ValueError(f"Unknown RepoState fields: {sorted(unknown)}")
            updates = dict(fields)
            if "repos" in updates:
                updates["repos"] = tuple(updates["repos"])
            if updates.get("expanded"):
                expand_target = host
            old = new_states.get(host, EMPTY_STATE)
            new = dataclasses.replace(old, **updates)
            if host not in new_states or new != old:
                new_states[host] = new
                changed[host] = new

        if expand_target is not None:
            for host, state in new_states.items():
                if host != expand_target and state.expanded:
                    collapsed = dataclasses.replace(state, expanded=False)
                    new_states[host] = collapsed
                    changed[host] = collapsed

        self._commit(new_states, changed)

    def set_expanded(self, host: str) -> bool:
        """Expand ``host`` and collapse every other host.

        Only hosts that are loading or hold an error-free repo list can
        expand. Returns True if the host ended up expanded.
        """
        state = self._states.get(host)
        if state is None or not state.can_expand:
            return False
        self.merge({host: {"expanded": True}})
        return True

    def collapse(self, host: str) -> None:
        if self.get(host).expanded:
            self.merge({host: {"expanded": False}})

    def collapse_all(self) -> None:
        self.merge(
            {
                host: {"expanded": False}
                for host, state in self._states.items()
                if state.expanded
            }
        )

    def replace_all(self, states: Mapping[str, RepoState]) -> None:
        """Swap in a whole new map (cache load)."""
        new_states = dict(states)
        changed = {
            host: state
            for host, state in new_states.items()
            if self._states.get(host) != state
        }
        removed = set(self._states) - set(new_states)
        self._commit(new_states, changed, removed)

    def clear(self) -> None:
        """Drop every host's state."""
        self._commit({}, {}, set(self._states))

    def _commit(
        self,
        new_states: dict[str, RepoState],
        changed: Mapping[str, RepoState],
        removed: Iterable[str] = (),
    ) -> None:
        old_states = self._states
        repos_delta = 0
        hosts_delta = 0
        for host in [*changed, *removed]:
            before = old_states.get(host, EMPTY_STATE)
            after = new_states.get(host, EMPTY_STATE)
            repos_delta += len(after.repos) - len(before.repos)
            hosts_delta += int(after.has_repos) - int(before.has_repos)

        self._states = new_states

        for host, state in changed.items():
            self.state_changed.emit(host, state)
        for host in removed:
            self.state_changed.emit(host, EMPTY_STATE)

        if repos_delta or hosts_delta:
            self._total_repos += repos_delta
            self._total_hosts += hosts_delta
            logger.debug(
                "stats: %d repos across %d hosts", self._total_repos, self._total_hosts
            )
            self.stats_changed.emit(self._total_repos, self._total_hosts)
