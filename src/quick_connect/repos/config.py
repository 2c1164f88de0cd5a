"""Engine configuration with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from quick_connect.common.cache import default_cache_file
from quick_connect.common.validate import (
    ValidationError,
    validate_pool_size,
    validate_timeout,
)

DEFAULT_POOL_SIZE = 8
DEFAULT_CONNECT_TIMEOUT = 2
DEFAULT_SEARCH_DEBOUNCE = 0.15
DEFAULT_SAVE_DEBOUNCE = 2.0


def default_clone_dir() -> Path:
    return Path.home() / "Documents" / "repos"


@dataclass
class EngineConfig:
    """Tunables for the repository engine."""

    pool_size: int = DEFAULT_POOL_SIZE
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    clone_dir: Path = field(default_factory=default_clone_dir)
    cache_file: Path = field(default_factory=default_cache_file)
    search_debounce: float = DEFAULT_SEARCH_DEBOUNCE
    save_debounce: float = DEFAULT_SAVE_DEBOUNCE
    remote_user: str = "git"

    def __post_init__(self) -> None:
        self.pool_size = validate_pool_size(self.pool_size)
        self.connect_timeout = validate_timeout(self.connect_timeout)
        if self.search_debounce < 0 or self.save_debounce < 0:
            raise ValidationError("Debounce delays cannot be negative")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> EngineConfig:
        """Build a config from ``QC_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}
        if env.get("QC_POOL_SIZE"):
            kwargs["pool_size"] = validate_pool_size(env["QC_POOL_SIZE"])
        if env.get("QC_CONNECT_TIMEOUT"):
            kwargs["connect_timeout"] = validate_timeout(env["QC_CONNECT_TIMEOUT"])
        if env.get("QC_CLONE_DIR"):
            kwargs["clone_dir"] = Path(env["QC_CLONE_DIR"]).expanduser()
        if env.get("QC_CACHE_FILE"):
            kwargs["cache_file"] = Path(env["QC_CACHE_FILE"]).expanduser()
        return cls(**kwargs)  # type: ignore[arg-type]
