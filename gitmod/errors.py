"""
Exception classes for gitmod.

Every user-facing failure derives from GitmodError so the CLI can map it to
exit code 1 with a short message.
"""

from pathlib import Path
from typing import Iterable, Optional


class GitmodError(Exception):
    """Base exception for all gitmod errors."""

    exit_code = 1


class MissingToolError(GitmodError):
    """Raised when a required external executable is not available."""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(
            f"Required executable '{tool}' was not found on PATH. "
            f"Install {tool} and try again."
        )


class NotAGitRepositoryError(GitmodError):
    """Raised when a command needs a project but cwd is not inside one."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"{path} is not inside a git working tree")


class InvalidModuleIdError(GitmodError):
    def __init__(self, value: str, reason: str = "expected owner/name"):
        self.value = value
        super().__init__(f"Invalid module id '{value}': {reason}")


class CacheError(GitmodError):
    """Raised when the cache root cannot be created or used."""

    def __init__(self, path: Path, message: str):
        self.path = path
        super().__init__(f"Cache at {path} is unusable: {message}")


class DirtyWorkingTreeError(GitmodError):
    """Raised when the project has uncommitted changes."""

    def __init__(self, project: Path, paths: Iterable[str]):
        self.project = project
        self.paths = list(paths)
        listing = ", ".join(self.paths[:5])
        if len(self.paths) > 5:
            listing += f" (+{len(self.paths) - 5} more)"
        super().__init__(
            f"Working tree at {project} has uncommitted changes ({listing}). "
            "Commit or stash them first."
        )


class UnreachableRepositoryError(GitmodError):
    """Raised when a clone fails because the remote cannot be reached."""

    def __init__(self, module_id: str, url: str):
        self.module_id = module_id
        self.url = url
        super().__init__(
            f"Could not reach {url} for {module_id} "
            "(network down or repository does not exist)"
        )


class GitCommandFailed(GitmodError):
    """Raised when a git invocation fails in a way the caller cannot absorb."""

    def __init__(self, operation: str, stderr: str = "", module_id: Optional[str] = None):
        self.operation = operation
        self.stderr = stderr
        self.module_id = module_id
        prefix = f"{module_id}: " if module_id else ""
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"{prefix}{operation} failed{detail}")


class ModuleNotInstalledError(GitmodError):
    def __init__(self, module_id: str, path: str):
        self.module_id = module_id
        self.path = path
        super().__init__(f"{module_id} is not installed (no submodule at {path})")


class SearchError(GitmodError):
    pass
