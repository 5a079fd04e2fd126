"""General utils functions"""

import os
import shutil
import stat
from pathlib import Path
from typing import Iterator

_WRITE_BITS = stat.S_IWUSR | stat.S_IWGRP | stat.S_IWOTH


def _walk_entries(root: Path) -> Iterator[Path]:
    yield root
    for dirpath, dirnames, filenames in os.walk(root):
        for entry in dirnames + filenames:
            yield Path(dirpath) / entry


def make_read_only(root: Path) -> int:
    """Strip write permission from every file and directory under root.

    Symlinks are left alone (chmod would follow them out of the tree).

    Returns:
        Number of entries changed
    """
    changed = 0
    for path in _walk_entries(root):
        if path.is_symlink():
            continue
        mode = path.stat().st_mode
        if mode & _WRITE_BITS:
            os.chmod(path, mode & ~_WRITE_BITS)
            changed += 1
    return changed


def make_writable(root: Path) -> None:
    """Give the owner write permission back on everything under root."""
    if not root.exists():
        return
    for path in _walk_entries(root):
        if path.is_symlink():
            continue
        mode = path.stat().st_mode
        if not mode & stat.S_IWUSR:
            os.chmod(path, mode | stat.S_IWUSR)


def is_read_only(root: Path) -> bool:
    for path in _walk_entries(root):
        if path.is_symlink():
            continue
        if path.stat().st_mode & _WRITE_BITS:
            return False
    return True


def remove_tree(root: Path) -> None:
    """rmtree that also copes with read-only installed modules."""
    if not root.exists() and not root.is_symlink():
        return
    if root.is_symlink() or root.is_file():
        root.unlink()
        return
    make_writable(root)
    shutil.rmtree(root)
