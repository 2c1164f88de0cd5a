"""Git naming rules and clone command helpers."""

from __future__ import annotations

from pathlib import Path

# Markers git prints in front of the line that explains a failure
_ERROR_MARKERS = ("fatal:", "error:")


def folder_key(repo_name: str) -> str:
    """Local folder name git would create for a repo.

    Last path segment with any trailing ``.git`` removed, e.g.
    ``team/proj.git`` -> ``proj``.
    """
    last = repo_name.rstrip("/").rsplit("/", 1)[-1]
    if last.endswith(".git"):
        last = last[: -len(".git")]
    return last


def clone_url(host: str, repo_name: str, *, user: str = "git") -> str:
    """SSH clone URL for a repo hosted on ``host``."""
    return f"{user}@{host}:{repo_name}"


def clone_argv(url: str) -> list[str]:
    """git clone into the working directory using git's default folder name."""
    return ["git", "clone", "--", url]


def extract_clone_error(stderr: str, returncode: int | None = None) -> str:
    """Pull a human-readable reason out of git clone's stderr.

    Returns the text after the first fatal/error marker, else the last
    non-empty line, else a generic message with the exit status.
    """
    lines = [line.strip() for line in stderr.splitlines() if line.strip()]
    for line in lines:
        lowered = line.lower()
        for marker in _ERROR_MARKERS:
            idx = lowered.find(marker)
            if idx != -1:
                reason = line[idx + len(marker) :].strip()
                if reason:
                    return reason
    if lines:
        return lines[-1]
    if returncode is not None:
        return f"git clone exited with status {returncode}"
    return "git clone failed"


def clone_path(clone_dir: Path, repo_name: str) -> Path:
    """Where a repo lands once cloned into ``clone_dir``."""
    return clone_dir / folder_key(repo_name)
