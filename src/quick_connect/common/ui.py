"""Shared UI utilities: colors, styling, and interactive selection."""

from __future__ import annotations

import click
from InquirerPy import inquirer

# Colors using click.style
CYAN = "cyan"
GREEN = "green"
YELLOW = "yellow"
RED = "red"
DIM = "bright_black"
BOLD = "bold"


def style_error(msg: str) -> str:
    """Style an error message."""
    return click.style(f"✗ {msg}", fg=RED)


def style_success(msg: str) -> str:
    """Style a success message."""
    return click.style(f"✓ {msg}", fg=GREEN)


def style_info(msg: str) -> str:
    """Style an info message."""
    return click.style(f"→ {msg}", fg=CYAN)


def style_warn(msg: str) -> str:
    """Style a warning message."""
    return click.style(f"! {msg}", fg=YELLOW)


def style_dim(msg: str) -> str:
    """Style dim/muted text."""
    return click.style(msg, fg=DIM)


def format_repo_rows(rows: list[tuple[str, str, bool]]) -> list[str]:
    """Align ``(host, repo, cloned)`` rows into picker labels."""
    if not rows:
        return []
    width = max(len(repo) for _, repo, _ in rows)
    labels = []
    for host, repo, cloned in rows:
        marker = click.style(" [cloned]", fg=GREEN) if cloned else ""
        labels.append(f"{repo.ljust(width)}  {style_dim(host)}{marker}")
    return labels


def fuzzy_select_multi(options: list[str], message: str) -> list[int] | None:
    """Show fuzzy multi-select menu. Returns list of indices or None if cancelled.

    Uses exact substring matching, the same rule the repo search applies.
    """
    try:
        prompt = inquirer.fuzzy(  # type: ignore[attr-defined]
            message=message,
            choices=options,
            multiselect=True,
            match_exact=True,
        )
        result = prompt.execute()
        if not result:
            return None
        return [options.index(r) for r in result]
    except KeyboardInterrupt:
        return None
