"""Input validation for host names, repo names and engine settings."""

from __future__ import annotations

import re

from quick_connect.common.git import folder_key

# RFC 1123 hostname limit
HOSTNAME_MAX_LENGTH = 253

REPO_NAME_MAX_LENGTH = 512

# Upper bound on concurrent ssh probes
POOL_SIZE_MAX = 64


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


def validate_host_name(name: str) -> str:
    """Validate a host alias as it would be handed to ssh.

    Returns validated name or raises ValidationError.
    """
    if not name:
        raise ValidationError("Host name cannot be empty")

    if len(name) > HOSTNAME_MAX_LENGTH:
        raise ValidationError(f"Host name too long: {name!r}")

    # A leading dash would be read as an ssh option
    if name.startswith("-"):
        raise ValidationError(f"Invalid host name: {name!r}")

    if not re.match(r"^[A-Za-z0-9_.:\-\[\]]+$", name):
        raise ValidationError(f"Invalid host name: {name!r}")

    return name


def validate_repo_name(repo: str) -> str:
    """Validate a repository name reported by a remote host.

    Accepts ``group/path/name.git`` style names. Rejects anything whose
    local folder would escape the clone directory.
    Returns validated name or raises ValidationError.
    """
    if not repo:
        raise ValidationError("Repository name cannot be empty")

    if len(repo) > REPO_NAME_MAX_LENGTH:
        raise ValidationError(f"Repository name too long: {repo!r}")

    if repo.startswith(("/", "-", "~")):
        raise ValidationError(f"Invalid repository name: {repo!r}")

    if ".." in repo.split("/"):
        raise ValidationError(
            f"Invalid repository name: {repo!r} (path traversal not allowed)"
        )

    if not re.match(r"^[\w\-./]+$", repo):
        raise ValidationError(f"Invalid repository name: {repo!r}")

    if folder_key(repo) in ("", ".", ".."):
        raise ValidationError(f"Repository name has no folder name: {repo!r}")

    return repo


def validate_pool_size(size: int | str) -> int:
    """Validate the number of concurrent probe workers.

    Returns validated int or raises ValidationError.
    """
    try:
        num = int(size)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid pool size: {size!r}") from e

    if num <= 0:
        raise ValidationError(f"Pool size must be positive: {num}")

    if num > POOL_SIZE_MAX:
        raise ValidationError(f"Pool size too large: {num} (max {POOL_SIZE_MAX})")

    return num


def validate_timeout(value: int | str) -> int:
    """Validate an ssh connect timeout in whole seconds."""
    try:
        num = int(value)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"Invalid timeout: {value!r}") from e

    if num <= 0:
        raise ValidationError(f"Timeout must be positive: {num}")

    return num
