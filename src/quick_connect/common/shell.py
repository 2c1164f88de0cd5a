"""Child process helpers for the repository engine.

All external work (ssh probes, git clones, existence checks) goes through
``run_command`` so the engine never blocks the event loop and tests can swap
in a fake runner with the same signature.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import NamedTuple, Protocol, Sequence

logger = logging.getLogger(__name__)

# Shell convention for "command not found"
EXIT_NOT_FOUND = 127


class ProcessResult(NamedTuple):
    """Captured outcome of a finished child process."""

    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    """Callable that runs argv and resolves to a ProcessResult."""

    async def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        merge_stderr: bool = False,
    ) -> ProcessResult: ...


async def run_command(
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    merge_stderr: bool = False,
) -> ProcessResult:
    """Run a command without blocking the loop and capture its output.

    Args:
        argv: Program and arguments (never passed through a shell)
        cwd: Working directory for the child
        merge_stderr: Fold stderr into stdout, like ``2>&1``
    """
    logger.debug("exec %s (cwd=%s)", " ".join(argv), cwd)
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=(
                asyncio.subprocess.STDOUT if merge_stderr else asyncio.subprocess.PIPE
            ),
        )
    except FileNotFoundError as e:
        # Either the program or the cwd is missing
        return ProcessResult(EXIT_NOT_FOUND, "", str(e))
    except OSError as e:
        return ProcessResult(EXIT_NOT_FOUND, "", str(e))

    out, err = await proc.communicate()
    return ProcessResult(
        proc.returncode if proc.returncode is not None else -1,
        out.decode(errors="replace") if out else "",
        err.decode(errors="replace") if err else "",
    )


def ssh_list_argv(
    host: str, *, user: str = "git", connect_timeout: int = 2
) -> list[str]:
    """Build the ssh invocation that asks a git server to list its repos.

    Batch mode keeps ssh from prompting; unknown host keys are accepted on
    first contact so fresh hosts can be probed unattended.
    """
    return [
        "ssh",
        "-T",
        "-o",
        f"ConnectTimeout={connect_timeout}",
        "-o",
        "BatchMode=yes",
        "-o",
        "StrictHostKeyChecking=accept-new",
        f"{user}@{host}",
    ]


# Prints Y or N per positional argument, one per line, in argument order
EXISTENCE_SCRIPT = (
    'for d in "$@"; do '
    'if [ -d "$d" ]; then echo Y; else echo N; fi; '
    "done"
)


def existence_argv(folder_keys: Sequence[str]) -> list[str]:
    """Build a single sh invocation that tests every folder key for a directory.

    Keys are passed as positional parameters, never interpolated into the
    script text.
    """
    return ["sh", "-c", EXISTENCE_SCRIPT, "sh", *folder_keys]


def parse_existence_output(output: str, count: int) -> list[bool]:
    """Map existence probe output back onto input positions.

    Missing lines count as "not present"; extra lines are ignored.
    """
    lines = [line.strip() for line in output.splitlines() if line.strip()]
    flags = [line == "Y" for line in lines[:count]]
    flags.extend([False] * (count - len(flags)))
    return flags
