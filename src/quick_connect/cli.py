"""Unified CLI for quick-connect."""

from __future__ import annotations

import logging

import click

from quick_connect.repos.cli import cli as repos_cli


@click.group()
@click.version_option(package_name="quick-connect")
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr")
def cli(*, verbose: bool) -> None:
    """Quick-connect: find and clone git repos across your ssh hosts.

    COMMANDS:
        repos    Repository discovery, search and cloning

    EXAMPLES:
        quick-connect repos -H forge scan    # List repos on host 'forge'
        quick-connect repos search api       # Search cached repos
        quick-connect rp pick                # Pick repos to clone

    Hosts can also come from QC_HOSTS, e.g. QC_HOSTS=forge,nas=10.0.0.5
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


# Add subcommand groups
cli.add_command(repos_cli, name="repos")
cli.add_command(repos_cli, name="rp")


if __name__ == "__main__":
    cli()
