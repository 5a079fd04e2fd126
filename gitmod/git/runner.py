"""
Typed wrapper around the git executable.

All engine code talks to git through GitRunner.run(). Each call names its
working directory explicitly and gets back a GitResult whose Outcome tells
the caller what happened, so nothing downstream has to interpret raw exit
codes. Command output goes to an injected logger (the tool output sink),
which the CLI points at the project log file or, in verbose mode, at the
terminal.
"""

import enum
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, Mapping, Optional, Sequence, Union

from git.cmd import Git
from git.exc import GitCommandNotFound

from gitmod.errors import GitCommandFailed, MissingToolError

logger = logging.getLogger(__name__)

TOOL_LOGGER = "gitmod.tool"

# git exits with 128 for fatal errors, which for clone/fetch means the remote
# could not be read
UNREACHABLE_STATUS = 128


class Outcome(enum.Enum):
    SUCCESS = "success"
    ALREADY_EXISTS = "already_exists"
    UNREACHABLE = "unreachable"
    NOTHING_TO_COMMIT = "nothing_to_commit"
    FAILURE = "failure"


@dataclass(frozen=True)
class GitResult:
    args: Sequence[str]
    status: int
    stdout: str
    stderr: str
    outcome: Outcome

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def lines(self) -> list:
        return [line for line in self.stdout.splitlines() if line.strip()]

    def raise_for_failure(self, operation: str, module_id: Optional[str] = None):
        """Raise GitCommandFailed unless the call succeeded."""
        if not self.ok:
            raise GitCommandFailed(operation, self.stderr or self.stdout, module_id)
        return self


def classify(
    status: int, stdout: str, stderr: str, expect: Collection[Outcome] = ()
) -> Outcome:
    """
    Map a finished git process onto an Outcome.

    Only the special outcomes listed in `expect` are recognised; everything
    else non-zero is FAILURE. This keeps the meaning of exit statuses local to
    the call site that knows which command ran.
    """
    if status == 0:
        return Outcome.SUCCESS

    text = f"{stdout}\n{stderr}".lower()
    if Outcome.ALREADY_EXISTS in expect and "already exists" in text:
        return Outcome.ALREADY_EXISTS
    if Outcome.NOTHING_TO_COMMIT in expect and (
        "nothing to commit" in text
        or "nothing added to commit" in text
        or "no changes added to commit" in text
    ):
        return Outcome.NOTHING_TO_COMMIT
    if Outcome.UNREACHABLE in expect and status == UNREACHABLE_STATUS:
        return Outcome.UNREACHABLE
    return Outcome.FAILURE


def ensure_git_available() -> str:
    """
    Check that the git executable can be found.

    Returns:
        Absolute path of the git executable

    Raises:
        MissingToolError: If git is not on PATH
    """
    path = shutil.which("git")
    if path is None:
        raise MissingToolError("git")
    return path


class GitRunner:
    """
    Runs git commands scoped to an explicit directory.

    Args:
        network_timeout: Seconds before network operations are killed (None waits forever)
        sink: Logger receiving the commands and their output
    """

    def __init__(
        self,
        network_timeout: Optional[float] = None,
        sink: Optional[logging.Logger] = None,
    ):
        self.network_timeout = network_timeout
        self.sink = sink or logging.getLogger(TOOL_LOGGER)

    def run(
        self,
        args: Sequence[str],
        cwd: Union[str, Path],
        expect: Collection[Outcome] = (),
        config: Optional[Mapping[str, str]] = None,
        network: bool = False,
    ) -> GitResult:
        """
        Run `git <args>` inside cwd.

        Args:
            args: Arguments after `git`
            cwd: Directory the command runs in
            expect: Special outcomes this call site knows how to handle
            config: One-off `-c key=value` settings
            network: Apply the network timeout

        Returns:
            GitResult describing the finished command
        """
        command = ["git"]
        for key, value in (config or {}).items():
            command += ["-c", f"{key}={value}"]
        command += list(args)

        timeout = self.network_timeout if network else None
        self.sink.info(f"$ {' '.join(command)}  (in {cwd})")
        try:
            status, stdout, stderr = Git(str(cwd)).execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
                kill_after_timeout=timeout,
            )
        except GitCommandNotFound as e:
            raise MissingToolError("git") from e

        for stream in (stdout, stderr):
            for line in stream.splitlines():
                self.sink.info(line)

        outcome = classify(status, stdout, stderr, expect)
        logger.debug(f"git {' '.join(args)} -> {status} ({outcome.value})")
        return GitResult(
            args=tuple(args),
            status=status,
            stdout=stdout,
            stderr=stderr,
            outcome=outcome,
        )
