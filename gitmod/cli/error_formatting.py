"""Error formatting for CLI output."""

import sys
from functools import wraps

import click

from gitmod.errors import (
    CacheError,
    DirtyWorkingTreeError,
    GitCommandFailed,
    GitmodError,
    InvalidModuleIdError,
    MissingToolError,
    ModuleNotInstalledError,
    NotAGitRepositoryError,
    SearchError,
    UnreachableRepositoryError,
)

_CATEGORIES = [
    (MissingToolError, "missing dependency"),
    (NotAGitRepositoryError, "not a git repository"),
    (InvalidModuleIdError, "invalid module"),
    (CacheError, "cache error"),
    (DirtyWorkingTreeError, "dirty working tree"),
    (UnreachableRepositoryError, "unreachable repository"),
    (ModuleNotInstalledError, "not installed"),
    (GitCommandFailed, "git error"),
    (SearchError, "search failed"),
]


def format_error(error: GitmodError) -> str:
    """Format a GitmodError as `<category>: <message>`.

    Example output:
        dirty working tree: Working tree at /src/app has uncommitted changes
        (README.md). Commit or stash them first.
    """
    for cls, category in _CATEGORIES:
        if isinstance(error, cls):
            return f"{category}: {error}"
    return f"error: {error}"


def report_errors(func):
    """Turn GitmodError into a red one-line message and its exit code."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except GitmodError as e:
            click.secho(format_error(e), fg="red", err=True)
            sys.exit(e.exit_code)

    return wrapper
