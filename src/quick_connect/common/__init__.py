"""Shared utilities for quick-connect."""

from quick_connect.common.git import clone_url, extract_clone_error, folder_key
from quick_connect.common.shell import ProcessResult, run_command
from quick_connect.common.ui import (
    BOLD,
    CYAN,
    DIM,
    GREEN,
    RED,
    YELLOW,
    format_repo_rows,
    fuzzy_select_multi,
    style_dim,
    style_error,
    style_info,
    style_success,
    style_warn,
)
from quick_connect.common.validate import (
    ValidationError,
    validate_host_name,
    validate_pool_size,
    validate_repo_name,
)

__all__ = [
    "BOLD",
    "CYAN",
    "DIM",
    "GREEN",
    "RED",
    "YELLOW",
    "ProcessResult",
    "ValidationError",
    "clone_url",
    "extract_clone_error",
    "folder_key",
    "format_repo_rows",
    "fuzzy_select_multi",
    "run_command",
    "style_dim",
    "style_error",
    "style_info",
    "style_success",
    "style_warn",
    "validate_host_name",
    "validate_pool_size",
    "validate_repo_name",
]
