"""
Install and uninstall modules in a project.

ModuleInstaller walks a fixed sequence of states:

    START -> GUARD_CHECKED -> CACHE_READY -> REGISTERED -> DONE

A dirty tree stops it before anything is touched. An unreachable repository
stops it after the guard with the cache as it was. Any failure once the
project is being mutated resets the project to its last commit, so a failed
install never leaves a half-registered module behind.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from gitmod.config import Settings
from gitmod.errors import ModuleNotInstalledError
from gitmod.git.cache import CacheEntry, CacheStore
from gitmod.git.project import GITIGNORE, ProjectRepository, WorkingTreeGuard
from gitmod.git.runner import GitRunner
from gitmod.git.submodule import Registration, RegistrationOutcome, SubmoduleRegistrar
from gitmod.model.module import ModuleId

logger = logging.getLogger(__name__)


class InstallState(enum.Enum):
    START = "start"
    GUARD_CHECKED = "guard_checked"
    CACHE_READY = "cache_ready"
    REGISTERED = "registered"
    DONE = "done"


@dataclass
class InstallResult:
    module_id: ModuleId
    branch: str
    cache: Optional[CacheEntry] = None
    registration: Optional[Registration] = None
    states: List[InstallState] = field(default_factory=lambda: [InstallState.START])

    @property
    def state(self) -> InstallState:
        return self.states[-1]

    @property
    def outcome(self) -> Optional[RegistrationOutcome]:
        return self.registration.outcome if self.registration else None

    @property
    def committed(self) -> bool:
        return bool(self.registration and self.registration.committed)

    def advance(self, state: InstallState) -> None:
        logger.debug(f"{self.module_id}: {self.state.value} -> {state.value}")
        self.states.append(state)


class ModuleInstaller:
    """
    Installs a module into a project from the machine-wide cache.

    Args:
        project: Host project
        store: Cache of module clones
        modules_local: Project-relative directory for installed modules
        log_file: Log file name that must be git-ignored in the project
    """

    def __init__(
        self,
        project: ProjectRepository,
        store: CacheStore,
        modules_local: str = "modules",
        log_file: str = "gitmod.log",
    ):
        self.project = project
        self.store = store
        self.modules_local = modules_local
        self.log_file = log_file

    @classmethod
    def from_settings(
        cls,
        project: ProjectRepository,
        settings: Settings,
        runner: Optional[GitRunner] = None,
    ) -> "ModuleInstaller":
        return cls(
            project,
            CacheStore.from_settings(settings, runner or project.runner),
            modules_local=settings.modules_local,
            log_file=settings.log_file,
        )

    def install(self, module_id: ModuleId, branch: str) -> InstallResult:
        """
        Install module_id tracking branch.

        Raises:
            DirtyWorkingTreeError: Project has uncommitted changes; nothing was changed
            UnreachableRepositoryError: Module could not be cloned into the cache
            GitmodError: A later step failed; the project was rolled back
        """
        result = InstallResult(module_id, branch)
        guard = WorkingTreeGuard(self.project, self.log_file)
        gitignore_changed = guard.prepare()
        result.advance(InstallState.GUARD_CHECKED)

        registrar = SubmoduleRegistrar(self.project, self.modules_local)
        target = registrar.target(module_id)
        already_registered = target in self.project.registered_submodules()
        preexisting = (self.project.root / target).exists()
        extra_paths = [GITIGNORE] if gitignore_changed else []

        with self.store.lock(module_id):
            try:
                result.cache = self.store.ensure(module_id)
            except Exception:
                guard.restore_gitignore()
                raise
            result.advance(InstallState.CACHE_READY)

            try:
                result.registration = registrar.register(
                    module_id, branch, result.cache.path, extra_paths
                )
            except Exception:
                logger.error(
                    f"Installing {module_id}@{branch} failed after the cache was ready "
                    f"({result.cache.path}); resetting {self.project.root} to HEAD"
                )
                registrar.rollback(
                    target,
                    added=not already_registered,
                    created_checkout=not preexisting,
                )
                guard.restore_gitignore()
                raise
            result.advance(InstallState.REGISTERED)

        result.advance(InstallState.DONE)
        return result


class ModuleUninstaller:
    """Removes an installed module from a project; the cache keeps its clone."""

    def __init__(
        self,
        project: ProjectRepository,
        modules_local: str = "modules",
        log_file: str = "gitmod.log",
    ):
        self.project = project
        self.modules_local = modules_local
        self.log_file = log_file

    def remove(self, module_id: ModuleId) -> bool:
        """
        Returns:
            True if the removal was committed

        Raises:
            ModuleNotInstalledError: module_id is not registered in the project
        """
        guard = WorkingTreeGuard(self.project, self.log_file)
        registrar = SubmoduleRegistrar(self.project, self.modules_local)
        target = registrar.target(module_id)
        if target not in self.project.registered_submodules():
            raise ModuleNotInstalledError(str(module_id), target)

        extra_paths = [GITIGNORE] if guard.ensure_log_ignored() else []
        return registrar.remove(module_id, extra_paths)
