"""Dependency identifiers (owner/name) and the paths derived from them."""

import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from gitmod.errors import InvalidModuleIdError

_SEGMENT = re.compile(r"^[A-Za-z0-9_.][A-Za-z0-9_.-]*$")


@dataclass(frozen=True)
class ModuleId:
    """
    A dependency of the form owner/name.

    The same relative path is used under the cache root and under the
    project's modules directory.
    """

    owner: str
    name: str

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def relpath(self) -> PurePosixPath:
        return PurePosixPath(self.owner, self.name)

    def cache_path(self, cache_root: Path) -> Path:
        return cache_root / self.owner / self.name

    def submodule_path(self, modules_local: str) -> str:
        """Project-relative submodule path, always with forward slashes."""
        return str(PurePosixPath(modules_local) / self.relpath)


def _check_segment(value: str, segment: str) -> None:
    if segment in (".", ".."):
        raise InvalidModuleIdError(value, f"'{segment}' is not allowed")
    if not _SEGMENT.match(segment):
        raise InvalidModuleIdError(value, f"'{segment}' is not a valid name")


def parse_module_id(value: Optional[str]) -> ModuleId:
    """
    Parse 'owner/name' into a ModuleId.

    A trailing '.git' and surrounding slashes are tolerated, so
    'acme/widgets.git' and '/acme/widgets/' both give acme/widgets.

    Raises:
        InvalidModuleIdError: If the value is empty or not two path segments
    """
    if value is None or not value.strip():
        raise InvalidModuleIdError(value or "", "module id must not be empty")

    text = value.strip().strip("/")
    if text.endswith(".git"):
        text = text[:-4]

    parts = text.split("/")
    if len(parts) != 2 or not all(parts):
        raise InvalidModuleIdError(value)

    owner, name = parts
    _check_segment(value, owner)
    _check_segment(value, name)
    return ModuleId(owner=owner, name=name)
