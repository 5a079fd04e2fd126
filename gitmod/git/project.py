"""The host project: a git working tree that receives installed modules."""

import logging
from pathlib import Path
from typing import Collection, Dict, List, Optional

from gitmod.errors import DirtyWorkingTreeError, NotAGitRepositoryError
from gitmod.git.runner import GitRunner, Outcome

logger = logging.getLogger(__name__)

GITIGNORE = ".gitignore"
GITMODULES = ".gitmodules"


def parse_porcelain_z(output: str) -> List[str]:
    """
    Extract paths from `git status --porcelain -z` output.

    Renames and copies carry a second, NUL-separated source path which is
    skipped.
    """
    entries = output.split("\0")
    paths = []
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        code, path = entry[:2], entry[3:]
        paths.append(path)
        if "R" in code or "C" in code:
            i += 1
    return paths


class ProjectRepository:
    """
    A project working tree addressed by its root directory.

    Args:
        root: Top-level directory of the working tree
        runner: GitRunner used for every git call
    """

    def __init__(self, root: Path, runner: Optional[GitRunner] = None):
        self.root = Path(root)
        self.runner = runner or GitRunner()

    @classmethod
    def discover(cls, start: Path, runner: Optional[GitRunner] = None) -> "ProjectRepository":
        """
        Find the project containing `start`.

        Raises:
            NotAGitRepositoryError: If start is not inside a working tree
        """
        runner = runner or GitRunner()
        start = Path(start)
        if not start.is_dir():
            raise NotAGitRepositoryError(start)
        result = runner.run(["rev-parse", "--show-toplevel"], cwd=start)
        if not result.ok or not result.stdout.strip():
            raise NotAGitRepositoryError(start)
        return cls(Path(result.stdout.strip()), runner)

    def git(self, *args: str, **kwargs):
        return self.runner.run(list(args), cwd=self.root, **kwargs)

    @property
    def git_dir(self) -> Path:
        result = self.git("rev-parse", "--absolute-git-dir").raise_for_failure(
            "locate git directory"
        )
        return Path(result.stdout.strip())

    def changed_paths(self) -> List[str]:
        """Tracked and untracked changes, as reported by git status."""
        result = self.git(
            "status", "--porcelain", "-z", "--untracked-files=all"
        ).raise_for_failure("status")
        return parse_porcelain_z(result.stdout)

    def is_clean(self) -> bool:
        return not self.changed_paths()

    def registered_submodules(self) -> Dict[str, str]:
        """
        Submodules recorded in .gitmodules.

        Returns:
            Mapping of submodule path -> submodule name
        """
        if not (self.root / GITMODULES).exists():
            return {}
        result = self.git(
            "config", "-f", GITMODULES, "--get-regexp", r"^submodule\..*\.path$"
        )
        registered = {}
        for line in result.lines():
            key, _, path = line.partition(" ")
            name = key[len("submodule.") : -len(".path")]
            registered[path.strip()] = name
        return registered

    def submodule_config(self, name: str, key: str) -> Optional[str]:
        result = self.git("config", "-f", GITMODULES, f"submodule.{name}.{key}")
        return result.stdout.strip() if result.ok else None

    def set_submodule_config(self, name: str, key: str, value: str) -> None:
        self.git(
            "config", "-f", GITMODULES, f"submodule.{name}.{key}", value
        ).raise_for_failure(f"set submodule.{name}.{key}")

    def commit(
        self, message: str, paths: Collection[str], staged: Collection[str] = ()
    ) -> bool:
        """
        Stage `paths` and commit only them plus the already `staged` ones.

        Anything else the user has staged stays staged and out of the commit.

        Returns:
            False when there was nothing to commit
        """
        if paths:
            self.git("add", "--", *paths).raise_for_failure("stage changes")
        pathspec = ["--", *paths, *staged] if paths or staged else []
        result = self.git(
            "commit", "-m", message, *pathspec, expect=(Outcome.NOTHING_TO_COMMIT,)
        )
        if result.outcome is Outcome.NOTHING_TO_COMMIT:
            logger.debug("Nothing to commit")
            return False
        result.raise_for_failure("commit")
        return True


class WorkingTreeGuard:
    """
    Preconditions for mutating a project.

    The log file must be ignored (so writing it never dirties the tree) and
    the tree must otherwise have no uncommitted changes.
    """

    def __init__(self, project: ProjectRepository, log_file: str):
        self.project = project
        self.log_file = log_file
        self._previous_gitignore: Optional[str] = None
        self._gitignore_changed = False

    def ensure_log_ignored(self) -> bool:
        """
        Append the log file to .gitignore unless it is already listed.

        Returns:
            True if .gitignore was created or changed
        """
        gitignore = self.project.root / GITIGNORE
        previous = gitignore.read_text() if gitignore.exists() else None
        content = previous or ""
        entries = {line.strip() for line in content.splitlines()}
        if self.log_file in entries or f"/{self.log_file}" in entries:
            return False

        if content and not content.endswith("\n"):
            content += "\n"
        gitignore.write_text(f"{content}{self.log_file}\n")
        self._previous_gitignore = previous
        self._gitignore_changed = True
        logger.debug(f"Added {self.log_file} to {gitignore}")
        return True

    def restore_gitignore(self) -> None:
        """Undo the change made by ensure_log_ignored, if any."""
        if not self._gitignore_changed:
            return
        gitignore = self.project.root / GITIGNORE
        if self._previous_gitignore is None:
            gitignore.unlink(missing_ok=True)
        else:
            gitignore.write_text(self._previous_gitignore)
        self._gitignore_changed = False

    def check_clean(self, allow: Collection[str] = ()) -> None:
        """
        Raises:
            DirtyWorkingTreeError: If anything other than `allow` has changed
        """
        dirty = [p for p in self.project.changed_paths() if p not in allow]
        if dirty:
            raise DirtyWorkingTreeError(self.project.root, dirty)

    def prepare(self) -> bool:
        """
        Run both checks in install order.

        The tree is checked before .gitignore is touched, so an uncommitted
        edit to .gitignore counts as dirty like any other. The log file itself
        is let through because the output sink may already have created it.

        Returns:
            True if .gitignore was changed and must be committed with the install
        """
        self.check_clean(allow=(self.log_file,))
        return self.ensure_log_ignored()
