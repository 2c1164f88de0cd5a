"""Tests for engine configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from quick_connect.common.validate import ValidationError
from quick_connect.repos.config import EngineConfig


class TestEngineConfig:
    """Tests for EngineConfig defaults and validation."""

    def test_defaults(self) -> None:
        config = EngineConfig()
        assert config.pool_size == 8
        assert config.connect_timeout == 2
        assert config.search_debounce == 0.15
        assert config.save_debounce == 2.0
        assert config.clone_dir == Path.home() / "Documents" / "repos"
        assert config.cache_file.name == "repos.json"

    def test_bad_pool_size(self) -> None:
        with pytest.raises(ValidationError, match="must be positive"):
            EngineConfig(pool_size=0)

    def test_negative_debounce(self) -> None:
        with pytest.raises(ValidationError, match="cannot be negative"):
            EngineConfig(save_debounce=-1)


class TestFromEnv:
    """Tests for EngineConfig.from_env."""

    def test_empty_env_gives_defaults(self) -> None:
        assert EngineConfig.from_env({}) == EngineConfig()

    def test_reads_overrides(self, tmp_path: Path) -> None:
        config = EngineConfig.from_env(
            {
                "QC_POOL_SIZE": "3",
                "QC_CONNECT_TIMEOUT": "5",
                "QC_CLONE_DIR": str(tmp_path / "src"),
                "QC_CACHE_FILE": str(tmp_path / "c.json"),
            }
        )
        assert config.pool_size == 3
        assert config.connect_timeout == 5
        assert config.clone_dir == tmp_path / "src"
        assert config.cache_file == tmp_path / "c.json"

    def test_invalid_value(self) -> None:
        with pytest.raises(ValidationError, match="Invalid pool size"):
            EngineConfig.from_env({"QC_POOL_SIZE": "many"})

    def test_reads_process_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("QC_POOL_SIZE", "4")
        assert EngineConfig.from_env().pool_size == 4
