"""Shared test fixtures for quick-connect."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

import pytest

from quick_connect.common.git import folder_key
from quick_connect.common.shell import ProcessResult
from quick_connect.repos.config import EngineConfig
from quick_connect.repos.engine import RepoEngine
from quick_connect.repos.hosts import Host, StaticHostRegistry

Handler = Callable[[list[str], "Path | None"], ProcessResult]


class FakeHosts:
    """Scripted git servers and local filesystem behind the fake runner.

    ``listings`` maps host -> ssh probe output; hosts without an entry fail
    like an unreachable host. ``clone_errors`` maps repo name -> git stderr
    for clones that should fail. Successful clones create the folder.
    """

    def __init__(self) -> None:
        self.listings: dict[str, str] = {}
        self.clone_errors: dict[str, str] = {}

    def __call__(self, argv: list[str], cwd: Path | None) -> ProcessResult:
        program = argv[0]
        if program == "ssh":
            host = argv[-1].split("@", 1)[1]
            if host not in self.listings:
                return ProcessResult(255, f"ssh: Could not resolve hostname {host}")
            return ProcessResult(1, self.listings[host])
        if program == "sh":
            keys = argv[4:]
            assert cwd is not None
            return ProcessResult(
                0, "".join("Y\n" if (cwd / k).is_dir() else "N\n" for k in keys)
            )
        if program == "git":
            url = argv[-1]
            repo = url.split(":", 1)[1]
            if repo in self.clone_errors:
                return ProcessResult(128, "", self.clone_errors[repo])
            assert cwd is not None
            (cwd / folder_key(repo)).mkdir(parents=True)
            return ProcessResult(0, "", f"Cloning into '{folder_key(repo)}'...\n")
        raise AssertionError(f"unexpected command {argv}")


class FakeRunner:
    """Stand-in for run_command that records calls and concurrency.

    ``hold()`` parks every call until ``release()``.
    """

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.calls: list[list[str]] = []
        self.running: list[tuple[str, ...]] = []
        self.max_running: dict[str, int] = {}
        self.overlaps: list[tuple[str, ...]] = []
        self._gate: asyncio.Event | None = None

    def hold(self) -> None:
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    def calls_for(self, program: str) -> list[list[str]]:
        return [c for c in self.calls if c[0] == program]

    def probed_hosts(self) -> list[str]:
        return [c[-1].split("@", 1)[1] for c in self.calls_for("ssh")]

    async def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        merge_stderr: bool = False,
    ) -> ProcessResult:
        key = tuple(argv)
        if key in self.running:
            self.overlaps.append(key)
        self.calls.append(list(argv))
        self.running.append(key)
        program = argv[0]
        count = sum(1 for r in self.running if r[0] == program)
        self.max_running[program] = max(self.max_running.get(program, 0), count)
        try:
            gate = self._gate
            await asyncio.sleep(0)
            if gate is not None:
                await gate.wait()
            return self.handler(list(argv), cwd)
        finally:
            self.running.remove(key)


@pytest.fixture
def cache_file(tmp_path: Path) -> Path:
    """Cache file path inside a not-yet-created directory."""
    return tmp_path / "cache" / "quick-connect" / "repos.json"


@pytest.fixture
def clone_dir(tmp_path: Path) -> Path:
    path = tmp_path / "clones"
    path.mkdir()
    return path


@pytest.fixture
def fake_hosts() -> FakeHosts:
    return FakeHosts()


@pytest.fixture
def fake_runner(fake_hosts: FakeHosts) -> FakeRunner:
    return FakeRunner(fake_hosts)


@pytest.fixture
def engine_config(clone_dir: Path, cache_file: Path) -> EngineConfig:
    return EngineConfig(
        clone_dir=clone_dir,
        cache_file=cache_file,
        search_debounce=0.01,
        save_debounce=0.01,
    )


@pytest.fixture
def make_engine(
    engine_config: EngineConfig, fake_runner: FakeRunner
) -> Callable[..., RepoEngine]:
    """Build an engine over ``(name, ip)`` pairs using the fake runner."""

    def factory(hosts: list[tuple[str, str]], **overrides: Any) -> RepoEngine:
        config = engine_config
        if overrides:
            config = EngineConfig(**{**engine_config.__dict__, **overrides})
        registry = StaticHostRegistry(Host(name, ip) for name, ip in hosts)
        return RepoEngine(registry, config, runner=fake_runner)

    return factory


@pytest.fixture
def settle() -> Callable[[RepoEngine], Awaitable[None]]:
    """Wait for all engine work to finish, failing instead of hanging."""

    async def wait(engine: RepoEngine, timeout: float = 2.0) -> None:
        await asyncio.wait_for(engine.wait_idle(), timeout)

    return wait
