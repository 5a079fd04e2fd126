"""
Submodule registration inside a project.

Installed modules are submodules at <modules_local>/<owner>/<name> whose
source is the cache clone. They track a branch, ignore their own dirty
state, and are made read-only once checked out.
"""

import enum
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, List

from gitmod.errors import GitCommandFailed, ModuleNotInstalledError
from gitmod.git.project import GITMODULES, ProjectRepository
from gitmod.git.runner import Outcome
from gitmod.model.module import ModuleId
from gitmod.utils import make_read_only, make_writable, remove_tree

logger = logging.getLogger(__name__)

# Cache clones are local paths; git refuses local submodule sources unless told otherwise.
LOCAL_SOURCE_CONFIG = {"protocol.file.allow": "always"}

_FIELD_SEP = "\t"

# One line per submodule: name, path relative to the top project, branch.
# Detached heads (after `update --remote`) fall back to the configured branch.
_LIST_SCRIPT = (
    "printf '%s\\t%s\\t%s\\n' \"$name\" \"$displaypath\" "
    "\"$(git symbolic-ref --short -q HEAD"
    " || git config -f \"$toplevel/.gitmodules\" \"submodule.$name.branch\""
    " || echo detached)\""
)


class RegistrationOutcome(enum.Enum):
    ADDED = "added"
    UPDATED = "updated"


@dataclass(frozen=True)
class Registration:
    module_id: ModuleId
    branch: str
    path: str
    outcome: RegistrationOutcome
    committed: bool


@dataclass(frozen=True)
class InstalledModule:
    name: str
    branch: str
    path: str


class SubmoduleRegistrar:
    """
    Adds or updates the submodule for a cached module and commits it.

    Args:
        project: The host project
        modules_local: Project-relative directory holding installed modules
    """

    def __init__(self, project: ProjectRepository, modules_local: str = "modules"):
        self.project = project
        self.modules_local = modules_local

    def target(self, module_id: ModuleId) -> str:
        return module_id.submodule_path(self.modules_local)

    def register(
        self,
        module_id: ModuleId,
        branch: str,
        cache_path: Path,
        extra_paths: Collection[str] = (),
    ) -> Registration:
        """
        Register module_id at its target path, tracking `branch`.

        Args:
            module_id: Module being installed
            branch: Branch the submodule tracks
            cache_path: Cached clone used as the submodule source
            extra_paths: Further project paths to include in the commit

        Returns:
            Registration describing whether the submodule was added or updated
        """
        target = self.target(module_id)
        outcome = self.add(module_id, branch, cache_path, target)
        if outcome is RegistrationOutcome.UPDATED:
            self.update(module_id, branch, target)
        else:
            self.init_nested(module_id, target)

        name = self.project.registered_submodules().get(target, target)
        self.project.set_submodule_config(name, "ignore", "dirty")

        make_read_only(self.project.root / target)
        logger.debug(f"Locked {target} read-only")

        committed = self.project.commit(
            f"Install {module_id}@{branch}",
            [GITMODULES, target, *extra_paths],
        )
        return Registration(module_id, branch, target, outcome, committed)

    def add(
        self, module_id: ModuleId, branch: str, cache_path: Path, target: str
    ) -> RegistrationOutcome:
        result = self.project.git(
            "submodule",
            "add",
            "-b",
            branch,
            "--",
            str(cache_path),
            target,
            expect=(Outcome.ALREADY_EXISTS,),
            config=LOCAL_SOURCE_CONFIG,
        )
        if result.outcome is Outcome.ALREADY_EXISTS:
            if target not in self.project.registered_submodules():
                # tracked files of the project, not a submodule
                raise GitCommandFailed("submodule add", result.stderr, str(module_id))
            logger.info(f"{module_id} is already registered, updating")
            return RegistrationOutcome.UPDATED
        result.raise_for_failure("submodule add", str(module_id))
        logger.info(f"Added {module_id} at {target}")
        return RegistrationOutcome.ADDED

    def init_nested(self, module_id: ModuleId, target: str) -> None:
        """Check out submodules of the freshly added module; `submodule add` does not recurse."""
        self.project.git(
            "submodule",
            "update",
            "--init",
            "--recursive",
            "--",
            target,
            config=LOCAL_SOURCE_CONFIG,
            network=True,
        ).raise_for_failure("submodule update", str(module_id))

    def update(self, module_id: ModuleId, branch: str, target: str) -> None:
        """Switch the submodule to `branch` and bring it up to date from the cache."""
        registered = self.project.registered_submodules()
        if target not in registered:
            raise GitCommandFailed(
                f"update of unregistered path {target}", module_id=str(module_id)
            )
        name = registered[target]

        make_writable(self.project.root / target)
        self.project.set_submodule_config(name, "branch", branch)
        self.project.git("submodule", "sync", "--recursive", "--", target).raise_for_failure(
            "submodule sync", str(module_id)
        )
        self.project.git(
            "submodule",
            "update",
            "--init",
            "--recursive",
            "--remote",
            "--",
            target,
            config=LOCAL_SOURCE_CONFIG,
            network=True,
        ).raise_for_failure("submodule update", str(module_id))

    def remove(self, module_id: ModuleId, extra_paths: Collection[str] = ()) -> bool:
        """
        Deregister the submodule for module_id and delete its checkout.

        The cache entry is left untouched.

        Returns:
            True if the removal was committed

        Raises:
            ModuleNotInstalledError: If module_id is not registered here
        """
        target = self.target(module_id)
        registered = self.project.registered_submodules()
        if target not in registered:
            raise ModuleNotInstalledError(str(module_id), target)
        name = registered[target]

        make_writable(self.project.root / target)
        self.project.git("submodule", "deinit", "-f", "--", target).raise_for_failure(
            "submodule deinit", str(module_id)
        )
        self.project.git("rm", "-f", "--", target).raise_for_failure(
            "remove submodule", str(module_id)
        )
        remove_tree(self.project.git_dir / "modules" / name)
        remove_tree(self.project.root / target)
        self.project.git(
            "submodule", "update", "--init", "--recursive", config=LOCAL_SOURCE_CONFIG
        ).raise_for_failure("submodule update", str(module_id))

        self.project.git("config", "--remove-section", f"submodule.{name}")

        # `git rm` already staged the gitlink removal
        paths = [GITMODULES] if (self.project.root / GITMODULES).exists() else []
        return self.project.commit(
            f"Uninstall {module_id}", [*paths, *extra_paths], staged=[target]
        )

    def rollback(self, target: str, added: bool, created_checkout: bool = True) -> None:
        """
        Return the project to its last commit after a failed install.

        Only safe because installs start from a verified clean tree.

        Args:
            target: Submodule path
            added: The install tried to add a new submodule
            created_checkout: The target directory did not exist before the install
        """
        logger.warning(f"Rolling back changes to {target}")
        path = self.project.root / target
        if created_checkout or not added:
            make_writable(path)
        self.project.git("reset", "--hard", "HEAD")
        if added:
            # .gitmodules is back at HEAD, so the name defaults to the path
            if created_checkout:
                remove_tree(path)
                remove_tree(self.project.git_dir / "modules" / target)
            self.project.git("config", "--remove-section", f"submodule.{target}")
        else:
            self.project.git(
                "submodule", "update", "--init", "--", target, config=LOCAL_SOURCE_CONFIG
            )
            if path.exists():
                make_read_only(path)


def _strip_prefix(name: str, modules_local: str) -> str:
    prefix = f"{modules_local}/"
    return name[len(prefix) :] if modules_local and name.startswith(prefix) else name


def list_modules(project: ProjectRepository, modules_local: str = "modules") -> List[InstalledModule]:
    """
    Every checked-out submodule of the project, nested ones included.

    Order is git's own depth-first traversal; an empty list means no modules.
    """
    result = project.git(
        "submodule", "foreach", "--quiet", "--recursive", _LIST_SCRIPT
    ).raise_for_failure("list submodules")

    modules = []
    for line in result.lines():
        fields = line.split(_FIELD_SEP)
        if len(fields) != 3:
            logger.debug(f"Skipping unexpected submodule line: {line!r}")
            continue
        name, path, branch = fields
        modules.append(
            InstalledModule(
                name=_strip_prefix(name, modules_local),
                branch=branch,
                path=path,
            )
        )
    return modules
