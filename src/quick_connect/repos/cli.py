"""Repository discovery CLI: scan hosts, search, and clone."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import os
import sys
from pathlib import Path
from typing import Any

import click

from quick_connect.common import (
    CYAN,
    DIM,
    GREEN,
    RED,
    ValidationError,
    format_repo_rows,
    fuzzy_select_multi,
    style_dim,
    style_error,
    style_info,
    style_success,
    style_warn,
    validate_host_name,
)
from quick_connect.common.git import clone_path
from quick_connect.common.shell import run_command
from quick_connect.repos.clone import CloneTask
from quick_connect.repos.config import EngineConfig
from quick_connect.repos.engine import RepoEngine
from quick_connect.repos.hosts import Host, StaticHostRegistry, parse_host_spec
from quick_connect.repos.state import RepoStatus


def parse_hosts(specs: tuple[str, ...]) -> list[Host]:
    """Hosts from ``--host`` options, else from comma-separated ``QC_HOSTS``."""
    raw = list(specs)
    if not raw:
        raw = [s for s in os.environ.get("QC_HOSTS", "").split(",") if s.strip()]
    hosts = []
    for spec in raw:
        host = parse_host_spec(spec)
        validate_host_name(host.name)
        hosts.append(host)
    return hosts


def make_engine(ctx: click.Context) -> RepoEngine:
    """Fresh engine for one event loop run."""
    opts = ctx.obj
    return RepoEngine(
        StaticHostRegistry(opts["hosts"]), opts["config"], runner=run_command
    )


def shorten(path: Path) -> str:
    return str(path).replace(str(Path.home()), "~")


def cloned_marker(engine: RepoEngine, repo: str) -> str:
    return click.style(" [cloned]", fg=GREEN) if engine.is_cloned(repo) else ""


def repo_rows(engine: RepoEngine) -> list[tuple[str, str, bool]]:
    """(host, repo, cloned) for every repo, first host wins for duplicate names."""
    rows: list[tuple[str, str, bool]] = []
    seen: set[str] = set()
    for host in engine.canonical_hosts() or engine.store.hosts():
        for repo in engine.get(host).repos:
            if repo in seen:
                continue
            seen.add(repo)
            rows.append((host, repo, bool(engine.is_cloned(repo))))
    return rows


def hosts_as_json(engine: RepoEngine) -> dict[str, Any]:
    data: dict[str, Any] = {}
    for host in engine.canonical_hosts() or engine.store.hosts():
        state = engine.get(host)
        data[host] = {
            "status": state.status.value,
            "repos": [
                {"name": repo, "cloned": bool(engine.is_cloned(repo))}
                for repo in state.repos
            ],
            "error": state.error_message or None,
        }
    return data


def print_hosts(engine: RepoEngine) -> None:
    hosts = engine.canonical_hosts() or engine.store.hosts()
    if not hosts:
        click.echo(style_dim("No hosts configured"))
        return
    for host in hosts:
        state = engine.get(host)
        host_styled = click.style(host, fg=CYAN, bold=True)
        if state.status is RepoStatus.ERROR:
            click.echo(f"  {host_styled} {click.style(state.error_message, fg=RED)}")
            continue
        if not state.repos:
            click.echo(f"  {host_styled} {style_dim('not scanned')}")
            continue
        click.echo(f"  {host_styled} {style_dim(f'({len(state.repos)} repos)')}")
        for repo in state.repos:
            click.echo(f"    {repo}{cloned_marker(engine, repo)}")
    click.echo(
        style_dim(f"{engine.total_repos} repos across {engine.total_hosts} hosts")
    )


def attach_clone_output(engine: RepoEngine, failures: list[str]) -> None:
    """Echo clone lifecycle events as they happen."""
    clone_dir = engine.config.clone_dir

    def started(task: CloneTask) -> None:
        click.echo(style_info(f"Cloning {task.clone_url}..."))

    def succeeded(task: CloneTask) -> None:
        path = clone_path(clone_dir, task.repo_name)
        click.echo(style_success(f"Cloned to {shorten(path)}"))

    def failed(task: CloneTask, message: str) -> None:
        failures.append(task.repo_name)
        msg = f"Failed to clone {task.repo_name}: {message}"
        click.echo(style_error(msg), err=True)

    def rejected(host: str, repo_name: str, message: str) -> None:
        click.echo(style_warn(f"Skipping {repo_name}: {message}"))

    engine.clone_started.connect(started)
    engine.clone_succeeded.connect(succeeded)
    engine.clone_failed.connect(failed)
    engine.clone_rejected.connect(rejected)


async def discover(engine: RepoEngine, *, scan: bool, refresh: bool = False) -> None:
    """Load the cache, optionally probe hosts, and wait for everything to settle."""
    engine.load_cache()
    if refresh:
        engine.clear_and_refetch()
    elif scan:
        engine.request_fetch_all()
    await engine.wait_idle()
    engine.flush()


async def clone_all(engine: RepoEngine, targets: list[tuple[str, str]]) -> list[str]:
    """Queue every (host, repo) clone and wait. Returns repos that failed."""
    failures: list[str] = []
    attach_clone_output(engine, failures)
    for host, repo in targets:
        try:
            engine.request_clone(host, repo)
        except ValidationError as e:
            failures.append(repo)
            click.echo(style_error(str(e)), err=True)
    await engine.wait_idle()
    return failures


@click.group()
@click.option(
    "--host",
    "-H",
    "host_specs",
    multiple=True,
    help="Host as NAME or NAME=IP (repeatable; default: $QC_HOSTS)",
)
@click.option("--pool-size", "-j", type=int, help="Concurrent ssh probes (default 8)")
@click.option("--clone-dir", "-d", type=click.Path(), help="Where clones are created")
@click.option("--cache-file", type=click.Path(), help="Repo cache location")
@click.pass_context
def cli(
    ctx: click.Context,
    host_specs: tuple[str, ...],
    pool_size: int | None,
    clone_dir: str | None,
    cache_file: str | None,
) -> None:
    """Discover git repos on your ssh hosts and clone them.

    Every host is asked for its repo list over ssh (``ssh git@HOST``).
    Aliases that share an address are probed once.

    EXAMPLES:
        quick-connect repos -H forge -H nas=10.0.0.5 scan
        quick-connect repos search api
        quick-connect repos clone forge team/api.git
        quick-connect repos pick

    ALIASES:
        repos ls = repos list
        repos cl = repos clone
    """
    overrides: dict[str, Any] = {}
    if pool_size is not None:
        overrides["pool_size"] = pool_size
    if clone_dir:
        overrides["clone_dir"] = Path(clone_dir).expanduser()
    if cache_file:
        overrides["cache_file"] = Path(cache_file).expanduser()
    try:
        config = dataclasses.replace(EngineConfig.from_env(), **overrides)
        hosts = parse_hosts(host_specs)
    except ValidationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
    ctx.obj = {"config": config, "hosts": hosts}


@cli.command()
@click.option("--refresh", is_flag=True, help="Forget cached repos and probe again")
@click.option("--json", "-j", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def scan(ctx: click.Context, *, refresh: bool, as_json: bool) -> None:
    """Probe every host not yet cached and list their repos.

    EXAMPLES:
        quick-connect repos scan            # Probe uncached hosts
        quick-connect repos scan --refresh  # Re-probe everything
    """
    if not ctx.obj["hosts"]:
        click.echo(style_error("No hosts given (use --host or QC_HOSTS)"), err=True)
        sys.exit(1)

    engine = make_engine(ctx)
    if not as_json:
        click.echo(style_info(f"Scanning {len(engine.canonical_hosts())} hosts..."))
    asyncio.run(discover(engine, scan=True, refresh=refresh))

    if as_json:
        click.echo(json.dumps(hosts_as_json(engine), indent=2))
        return
    print_hosts(engine)


@cli.command("list")
@click.option("--json", "-j", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_cmd(ctx: click.Context, *, as_json: bool) -> None:
    """List cached repos without contacting any host."""
    engine = make_engine(ctx)
    asyncio.run(discover(engine, scan=False))

    if as_json:
        click.echo(json.dumps(hosts_as_json(engine), indent=2))
        return
    if not engine.store.hosts():
        click.echo(style_dim("No cached repositories (run 'scan' first)"))
        return
    print_hosts(engine)


@cli.command()
@click.argument("query")
@click.option("--scan", "do_scan", is_flag=True, help="Probe uncached hosts first")
@click.option("--json", "-j", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def search(ctx: click.Context, query: str, *, do_scan: bool, as_json: bool) -> None:
    """Find repos whose name contains QUERY (case-insensitive).

    EXAMPLES:
        quick-connect repos search api
        quick-connect repos search infra --scan
    """
    engine = make_engine(ctx)
    asyncio.run(discover(engine, scan=do_scan))
    results = engine.search_now(query)

    if as_json:
        click.echo(
            json.dumps(
                [
                    {"host": r.host, "repo": r.repo_name, "folder": r.folder_key}
                    for r in results
                ],
                indent=2,
            )
        )
        return
    if not results:
        click.echo(style_dim(f"No repositories matching '{query}'"))
        return
    width = max(len(r.repo_name) for r in results)
    for r in results:
        name_styled = click.style(r.repo_name.ljust(width), fg=CYAN, bold=True)
        marker = cloned_marker(engine, r.repo_name)
        click.echo(f"  {name_styled} {click.style(r.host, fg=DIM)}{marker}")


@cli.command()
@click.argument("host")
@click.argument("repos", nargs=-1, required=True)
@click.pass_context
def clone(ctx: click.Context, host: str, repos: tuple[str, ...]) -> None:
    """Clone REPOS from HOST into the clone directory, one at a time.

    EXAMPLES:
        quick-connect repos clone forge team/api.git
        quick-connect repos clone forge api web docs
    """
    try:
        validate_host_name(host)
    except ValidationError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    engine = make_engine(ctx)
    failures = asyncio.run(clone_all(engine, [(host, repo) for repo in repos]))
    if failures:
        sys.exit(1)


@cli.command()
@click.option("--no-scan", is_flag=True, help="Only offer cached repos")
@click.pass_context
def pick(ctx: click.Context, *, no_scan: bool) -> None:
    """Pick repos interactively (fuzzy search) and clone them."""
    engine = make_engine(ctx)
    if not no_scan and ctx.obj["hosts"]:
        click.echo(style_info("Fetching repository lists..."))
    asyncio.run(discover(engine, scan=not no_scan))

    rows = repo_rows(engine)
    if not rows:
        click.echo(style_error("No repositories found"), err=True)
        sys.exit(1)

    indices = fuzzy_select_multi(format_repo_rows(rows), "Select repositories to clone")
    if not indices:
        click.echo(style_dim("Cancelled."))
        return

    targets = []
    for i in indices:
        host, repo, cloned = rows[i]
        if cloned:
            click.echo(style_info(f"'{repo}' already cloned"))
            continue
        targets.append((host, repo))
    if not targets:
        return

    # The discovery loop is gone; clones run on a fresh one
    failures = asyncio.run(clone_all(make_engine(ctx), targets))
    if failures:
        sys.exit(1)


@cli.command("clear-cache")
@click.pass_context
def clear_cache(ctx: click.Context) -> None:
    """Delete the cached repo lists."""
    cache = make_engine(ctx).cache
    if not cache.file.exists():
        click.echo(style_dim("No cache to clear"))
        return
    cache.clear()
    click.echo(style_success(f"Removed {shorten(cache.path)}"))


# Command aliases
cli.add_command(list_cmd, name="ls")
cli.add_command(clone, name="cl")


if __name__ == "__main__":
    cli()
