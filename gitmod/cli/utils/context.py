"""Shared setup for commands: settings, git runner, tool output sink."""

from pathlib import Path
from typing import Optional, Tuple

from gitmod.config import Settings, load_settings
from gitmod.git.cache import CacheStore
from gitmod.git.project import ProjectRepository
from gitmod.git.runner import GitRunner, ensure_git_available

from .logging import configure_tool_output


def get_settings(verbose: bool = False) -> Settings:
    return load_settings(verbose=True if verbose else None)


def open_project(
    settings: Settings, start: Optional[Path] = None
) -> ProjectRepository:
    """
    Locate the project around `start` (default cwd) and route git output to
    its log file, or to the terminal in verbose mode.
    """
    ensure_git_available()
    configure_tool_output(settings.verbose)
    runner = GitRunner(settings.network_timeout)
    project = ProjectRepository.discover(start or Path.cwd(), runner)
    configure_tool_output(settings.verbose, project.root / settings.log_file)
    return project


def open_cache(settings: Settings) -> Tuple[CacheStore, GitRunner]:
    """Cache store whose git output is logged inside the cache root."""
    ensure_git_available()
    runner = GitRunner(settings.network_timeout)
    store = CacheStore.from_settings(settings, runner)
    store.ensure_root()
    configure_tool_output(settings.verbose, store.root / settings.log_file)
    return store, runner
