"""JSON file storage used by the on-disk repository cache."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any


class JSONFileError(Exception):
    """Raised when a JSON file exists but cannot be read or decoded."""


def default_cache_file() -> Path:
    """Cache location under the user's cache directory (honours XDG_CACHE_HOME)."""
    base = os.environ.get("XDG_CACHE_HOME")
    root = Path(base) if base else Path.home() / ".cache"
    return root / "quick-connect" / "repos.json"


class JSONFile:
    """Whole-file JSON record: read wholesale, overwritten wholesale."""

    def __init__(self, path: Path) -> None:
        """Initialize store.

        Args:
            path: Path to the JSON file
        """
        self.path = path

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> Any | None:
        """Return decoded data, or None when the file does not exist.

        Raises:
            JSONFileError: File exists but is unreadable or not JSON
        """
        try:
            text = self.path.read_text()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise JSONFileError(f"Cannot read {self.path}: {e}") from e
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise JSONFileError(f"Malformed JSON in {self.path}: {e}") from e

    def write(self, data: Any) -> None:
        """Replace the file contents with ``data``.

        Writes a sibling temp file first and renames it into place.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(self.path)

    def remove(self) -> None:
        """Delete the file if present."""
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            pass
