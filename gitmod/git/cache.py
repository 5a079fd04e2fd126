"""
Machine-wide cache of dependency repositories.

Cache Structure Example:
    ~/.modules/
    ├── acme/
    │   ├── widgets/          # shallow clone, one local branch per remote branch
    │   │   ├── .git/
    │   │   └── ...
    │   ├── widgets.lock      # advisory lock for the entry
    │   └── gadgets/
    └── someone/
        └── toolkit/

One clone per owner/name, shared by every project on the machine. The first
install clones it (depth 1, submodules resolved recursively); later installs
pull it, and a failed pull falls back to the cached copy.

Every remote branch gets a local tracking branch right after cloning so that
installing a non-default branch later can be served from the cache without
going back to the network.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional

from filelock import FileLock

from gitmod.errors import CacheError, GitCommandFailed, UnreachableRepositoryError
from gitmod.git.runner import GitRunner, Outcome
from gitmod.model.module import ModuleId
from gitmod.utils import remove_tree

logger = logging.getLogger(__name__)

REMOTE = "origin"


@dataclass
class CacheEntry:
    """A cached clone of one module."""

    module_id: ModuleId
    path: Path
    cloned: bool = False
    refreshed: Optional[bool] = None
    branches: List[str] = field(default_factory=list)


def is_repository(path: Path) -> bool:
    """A cache leaf is any directory holding a .git marker (dir or gitfile)."""
    return (path / ".git").exists()


def remote_branch_names(refs: List[str], remote: str = REMOTE) -> List[str]:
    """
    Turn `git for-each-ref --format=%(refname:short) refs/remotes/<remote>`
    output into branch names.

    The symbolic default pointer shows up as `origin/HEAD` or as the bare
    remote name `origin`; both are dropped, as is a literal `HEAD`.

    Examples:
        ["origin", "origin/master", "origin/v1"] -> ["master", "v1"]
    """
    prefix = f"{remote}/"
    names = []
    for ref in refs:
        ref = ref.strip()
        if not ref.startswith(prefix):
            continue
        name = ref[len(prefix) :]
        if not name or name == "HEAD":
            continue
        names.append(name)
    return names


class CacheStore:
    """
    Owns the cache root and the clones underneath it.

    Args:
        root: Cache root directory (e.g. ~/.modules)
        protocol: Clone URL scheme (git, https, ssh, file)
        host: Clone host, or a directory when protocol is file
        runner: GitRunner used for every git call
    """

    def __init__(
        self,
        root: Path,
        protocol: str = "git",
        host: str = "github.com",
        runner: Optional[GitRunner] = None,
    ):
        self.root = Path(root)
        self.protocol = protocol
        self.host = host.rstrip("/")
        self.runner = runner or GitRunner()

    @classmethod
    def from_settings(cls, settings, runner: Optional[GitRunner] = None) -> "CacheStore":
        return cls(
            settings.cache_home,
            protocol=settings.protocol,
            host=settings.host,
            runner=runner or GitRunner(settings.network_timeout),
        )

    def url_for(self, module_id: ModuleId) -> str:
        return f"{self.protocol}://{self.host}/{module_id}.git"

    def path_for(self, module_id: ModuleId) -> Path:
        return module_id.cache_path(self.root)

    def ensure_root(self) -> Path:
        """Create the cache root; without it nothing can be installed."""
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(self.root, str(e)) from e
        if not self.root.is_dir():
            raise CacheError(self.root, "not a directory")
        return self.root

    @contextmanager
    def lock(self, module_id: ModuleId) -> Iterator[Path]:
        """
        Hold the advisory lock for one cache entry.

        Concurrent gitmod processes touching the same owner/name wait for each
        other; different entries do not contend.
        """
        self.ensure_root()
        with self.lock_entry(self.path_for(module_id)) as entry_path:
            yield entry_path

    @contextmanager
    def lock_entry(self, entry_path: Path) -> Iterator[Path]:
        """Hold the lock for a cache entry given by its directory."""
        try:
            entry_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(self.root, str(e)) from e
        lock_path = entry_path.parent / f"{entry_path.name}.lock"
        with FileLock(lock_path):
            yield entry_path

    def ensure(self, module_id: ModuleId) -> CacheEntry:
        """
        Clone the module into the cache, or refresh the existing clone.

        Callers that go on to read the clone (installs) should hold
        `lock(module_id)` around this and the subsequent reads.

        Raises:
            CacheError: The cache root cannot be created
            UnreachableRepositoryError: First clone could not reach the remote
            GitCommandFailed: First clone failed for another reason
        """
        self.ensure_root()
        path = self.path_for(module_id)

        if is_repository(path):
            refreshed = self.refresh(path, module_id)
            branches = self.track_remote_branches(path) if refreshed else []
            return CacheEntry(module_id, path, cloned=False, refreshed=refreshed, branches=branches)

        self.clone(module_id, path)
        branches = self.track_remote_branches(path)
        return CacheEntry(module_id, path, cloned=True, branches=branches)

    def clone(self, module_id: ModuleId, path: Path) -> Path:
        url = self.url_for(module_id)
        owner_dir = path.parent
        created_owner = not owner_dir.exists()
        owner_dir.mkdir(parents=True, exist_ok=True)
        if path.exists():
            # leftover from an interrupted clone, it is not a repository
            remove_tree(path)

        logger.info(f"Cloning {module_id} from {url}")
        result = self.runner.run(
            [
                "clone",
                "--depth",
                "1",
                "--recursive",
                "--no-single-branch",
                url,
                str(path),
            ],
            cwd=self.root,
            expect=(Outcome.UNREACHABLE,),
            network=True,
        )
        if result.ok:
            return path

        remove_tree(path)
        if created_owner and owner_dir.exists() and not any(owner_dir.iterdir()):
            owner_dir.rmdir()

        if result.outcome is Outcome.UNREACHABLE:
            raise UnreachableRepositoryError(str(module_id), url)
        raise GitCommandFailed("clone", result.stderr, str(module_id))

    def refresh(self, path: Path, module_id: Optional[ModuleId] = None) -> bool:
        """
        Pull the cached clone.

        A failed pull is not an error: the cached copy is still usable.

        Returns:
            True if the pull succeeded
        """
        label = module_id or path
        logger.info(f"Updating cached {label}")
        result = self.runner.run(["pull"], cwd=path, network=True)
        if not result.ok:
            logger.warning(f"Could not update {label}, using cached version")
            return False
        return True

    def track_remote_branches(self, path: Path) -> List[str]:
        """
        Create a local branch tracking each remote branch that has none yet.

        Returns:
            Names of the branches created
        """
        refs = self.runner.run(
            ["for-each-ref", "--format=%(refname:short)", f"refs/remotes/{REMOTE}"],
            cwd=path,
        ).raise_for_failure("list remote branches")
        local = self.runner.run(
            ["for-each-ref", "--format=%(refname:short)", "refs/heads"], cwd=path
        ).raise_for_failure("list local branches")
        existing = set(local.lines())

        created = []
        for name in remote_branch_names(refs.lines()):
            if name in existing:
                continue
            self.runner.run(
                ["branch", "--track", name, f"{REMOTE}/{name}"], cwd=path
            ).raise_for_failure(f"track branch {name}")
            created.append(name)
        if created:
            logger.debug(f"Tracking {', '.join(created)} in {path}")
        return created
