"""
Enumerate (and optionally refresh) every repository in the cache.

A directory holding a .git marker is a leaf, i.e. one cached module.
Anything else is a grouping node (an owner namespace) and is descended into.
Names starting with a dot are ordinary modules (e.g. acme/.github).
Real paths already seen are skipped so symlink loops terminate and every leaf
is reported once.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, FrozenSet, Optional, Tuple

from dulwich import porcelain
from dulwich.errors import NotGitRepository

from gitmod.git.cache import CacheStore, is_repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanEntry:
    module_id: str
    path: Path
    branch: Optional[str]
    refreshed: Optional[bool] = None


@dataclass(frozen=True)
class CacheReport:
    root: Path
    entries: Tuple[ScanEntry, ...] = ()

    @property
    def count(self) -> int:
        return len(self.entries)

    @property
    def failed(self) -> Tuple[ScanEntry, ...]:
        return tuple(e for e in self.entries if e.refreshed is False)


def find_leaves(
    path: Path, visited: FrozenSet[str] = frozenset()
) -> Tuple[Tuple[Path, ...], FrozenSet[str]]:
    """
    Depth-first search for repositories below `path`.

    Args:
        path: Directory to examine
        visited: Real paths already examined

    Returns:
        (leaves found in sorted traversal order, visited set including this walk)
    """
    real = os.path.realpath(path)
    if real in visited:
        return (), visited
    visited = visited | {real}

    if is_repository(path):
        return (path,), visited

    try:
        children = sorted(p for p in path.iterdir() if p.is_dir())
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return (), visited

    leaves: Tuple[Path, ...] = ()
    for child in children:
        if child.name == ".git":
            continue
        found, visited = find_leaves(child, visited)
        leaves += found
    return leaves, visited


def current_branch(path: Path) -> Optional[str]:
    """Checked-out branch of a cached clone, None when detached or unreadable."""
    try:
        with porcelain.open_repo_closing(str(path)) as repo:
            return porcelain.active_branch(repo).decode("utf-8")
    except (NotGitRepository, KeyError, ValueError, IndexError) as e:
        logger.debug(f"No active branch for {path}: {e}")
        return None


def scan_cache(
    root: Path,
    refresh: bool = False,
    store: Optional[CacheStore] = None,
    progress: Optional[Callable[[int, ScanEntry], None]] = None,
) -> CacheReport:
    """
    Report every cached repository below root.

    Args:
        root: Cache root
        refresh: Pull each repository under its entry lock; failures are
            reported, not raised
        store: CacheStore used for refreshing (defaults to one rooted at root)
        progress: Called with the running count and each entry as it is reported

    Returns:
        CacheReport with one entry per repository
    """
    root = Path(root)
    if not root.is_dir():
        return CacheReport(root)

    if refresh and store is None:
        store = CacheStore(root)

    leaves, _ = find_leaves(root)
    entries = []
    for leaf in leaves:
        refreshed = None
        if refresh:
            # an install may be reading this entry
            with store.lock_entry(leaf):
                refreshed = store.refresh(leaf)
        entry = ScanEntry(
            module_id=leaf.relative_to(root).as_posix(),
            path=leaf,
            branch=current_branch(leaf),
            refreshed=refreshed,
        )
        entries.append(entry)
        if progress is not None:
            progress(len(entries), entry)
    return CacheReport(root, tuple(entries))
