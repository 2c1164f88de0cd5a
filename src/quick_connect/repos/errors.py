"""Errors raised by the repository discovery engine."""

from __future__ import annotations


class RepoEngineError(Exception):
    """Base class for engine errors."""


class TransportError(RepoEngineError):
    """A probe or clone process exited non-zero or the host was unreachable."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class ParseError(RepoEngineError):
    """Probe output held no recognizable repository lines."""


class CacheDecodeError(RepoEngineError):
    """The persisted cache could not be read or decoded."""


class CloneConflict(RepoEngineError):
    """A clone for the same local folder is already queued or running."""

    def __init__(self, folder_key: str) -> None:
        super().__init__(f"'{folder_key}' is already being cloned")
        self.folder_key = folder_key
