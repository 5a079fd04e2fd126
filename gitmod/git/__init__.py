"""
Git operations for gitmod.

Architecture:
    Cache layer: one shallow clone per module in ~/.modules/{owner}/{name}/
    Project layer: read-only submodules in {project}/modules/{owner}/{name}/
    whose source is the cache clone.

Every git call goes through GitRunner, which takes an explicit working
directory and returns typed outcomes.
"""

from .cache import CacheEntry, CacheStore, is_repository
from .project import ProjectRepository, WorkingTreeGuard
from .runner import GitResult, GitRunner, Outcome, ensure_git_available
from .scan import CacheReport, ScanEntry, scan_cache
from .submodule import (
    InstalledModule,
    Registration,
    RegistrationOutcome,
    SubmoduleRegistrar,
    list_modules,
)

__all__ = [
    "CacheEntry",
    "CacheStore",
    "is_repository",
    "ProjectRepository",
    "WorkingTreeGuard",
    "GitResult",
    "GitRunner",
    "Outcome",
    "ensure_git_available",
    "CacheReport",
    "ScanEntry",
    "scan_cache",
    "InstalledModule",
    "Registration",
    "RegistrationOutcome",
    "SubmoduleRegistrar",
    "list_modules",
]
