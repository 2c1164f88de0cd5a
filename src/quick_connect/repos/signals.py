"""Minimal observer list for engine change notifications."""

from __future__ import annotations

from typing import Any, Callable


class Signal:
    """Named list of subscribers called synchronously on emit."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subscribers: list[Callable[..., Any]] = []

    def connect(self, fn: Callable[..., Any]) -> Callable[[], None]:
        """Subscribe ``fn``. Returns a callable that unsubscribes it."""
        self._subscribers.append(fn)

        def disconnect() -> None:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

        return disconnect

    def emit(self, *args: Any) -> None:
        # Iterate over a copy so subscribers may disconnect themselves
        for fn in list(self._subscribers):
            fn(*args)

    def __len__(self) -> int:
        return len(self._subscribers)
