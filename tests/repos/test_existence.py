"""Tests for the batched existence checker."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from quick_connect.common.shell import run_command
from quick_connect.repos.existence import ExistenceChecker


async def settle(checker: ExistenceChecker) -> None:
    await asyncio.wait_for(checker.wait_idle(), 2.0)


def batch_keys(call: list[str]) -> list[str]:
    # argv is ["sh", "-c", script, "sh", *keys]
    return call[4:]


class TestBatching:
    """Tests for request coalescing."""

    @pytest.mark.asyncio
    async def test_same_tick_requests_share_one_probe(
        self, fake_runner: Any, clone_dir: Path
    ) -> None:
        (clone_dir / "c").mkdir()
        checker = ExistenceChecker(fake_runner, clone_dir)

        for key in ["e", "c", "a", "d", "b"]:
            checker.check([key])
        await settle(checker)

        calls = fake_runner.calls_for("sh")
        assert len(calls) == 1
        assert sorted(batch_keys(calls[0])) == ["a", "b", "c", "d", "e"]
        assert checker.snapshot() == {
            "a": False,
            "b": False,
            "c": True,
            "d": False,
            "e": False,
        }

    @pytest.mark.asyncio
    async def test_duplicate_keys_sent_once(
        self, fake_runner: Any, clone_dir: Path
    ) -> None:
        checker = ExistenceChecker(fake_runner, clone_dir)

        checker.check(["a", "b", "a"])
        checker.check(["b", "c"])
        await settle(checker)

        assert batch_keys(fake_runner.calls_for("sh")[0]) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_known_keys_not_probed_again(
        self, fake_runner: Any, clone_dir: Path
    ) -> None:
        checker = ExistenceChecker(fake_runner, clone_dir)
        checker.check(["a"])
        await settle(checker)

        checker.check(["a"])
        await settle(checker)

        assert len(fake_runner.calls_for("sh")) == 1

    @pytest.mark.asyncio
    async def test_requests_during_batch_form_next_batch(
        self, fake_runner: Any, clone_dir: Path
    ) -> None:
        checker = ExistenceChecker(fake_runner, clone_dir)
        batches: list[dict[str, bool]] = []
        checker.changed.connect(batches.append)
        fake_runner.hold()

        checker.check(["a", "b"])
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert checker.is_running
        checker.check(["b", "c", "d"])
        checker.check(["e"])
        fake_runner.release()
        await settle(checker)

        calls = fake_runner.calls_for("sh")
        assert [batch_keys(c) for c in calls] == [["a", "b"], ["c", "d", "e"]]
        assert [sorted(b) for b in batches] == [["a", "b"], ["c", "d", "e"]]
        assert checker.batches_run == 2


class TestForcedRecheck:
    """Tests for check(force=True)."""

    @pytest.mark.asyncio
    async def test_force_recomputes(self, fake_runner: Any, clone_dir: Path) -> None:
        checker = ExistenceChecker(fake_runner, clone_dir)
        checker.check(["api"])
        await settle(checker)
        assert checker.exists("api") is False

        (clone_dir / "api").mkdir()
        checker.check(["api"])
        await settle(checker)
        assert checker.exists("api") is False

        checker.check(["api"], force=True)
        await settle(checker)
        assert checker.exists("api") is True

    @pytest.mark.asyncio
    async def test_clear_discards_running_batch(
        self, fake_runner: Any, clone_dir: Path
    ) -> None:
        checker = ExistenceChecker(fake_runner, clone_dir)
        fake_runner.hold()

        checker.check(["a"])
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        checker.clear()
        fake_runner.release()
        await settle(checker)

        assert checker.snapshot() == {}


class TestEdgeCases:
    """Tests for missing directories and failing probes."""

    @pytest.mark.asyncio
    async def test_missing_clone_dir_means_nothing_cloned(
        self, fake_runner: Any, tmp_path: Path
    ) -> None:
        checker = ExistenceChecker(fake_runner, tmp_path / "absent")

        checker.check(["a", "b"])
        await settle(checker)

        assert fake_runner.calls == []
        assert checker.snapshot() == {"a": False, "b": False}

    @pytest.mark.asyncio
    async def test_probe_crash_leaves_keys_unknown(
        self, fake_runner: Any, clone_dir: Path
    ) -> None:
        def boom(argv: list[str], cwd: Any) -> Any:
            raise OSError("no sh")

        fake_runner.handler = boom
        checker = ExistenceChecker(fake_runner, clone_dir)

        checker.check(["a"])
        await settle(checker)

        assert checker.exists("a") is None
        assert not checker.is_running

    @pytest.mark.asyncio
    async def test_empty_keys_ignored(self, fake_runner: Any, clone_dir: Path) -> None:
        checker = ExistenceChecker(fake_runner, clone_dir)
        checker.check(["", ""])
        await settle(checker)
        assert fake_runner.calls == []

    @pytest.mark.asyncio
    async def test_real_shell_probe(self, clone_dir: Path) -> None:
        (clone_dir / "api").mkdir()
        checker = ExistenceChecker(run_command, clone_dir)

        checker.check(["api", "web"])
        await settle(checker)

        assert checker.snapshot() == {"api": True, "web": False}
