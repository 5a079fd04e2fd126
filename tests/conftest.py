import io

import pytest
import logging

from pathlib import Path

from gitmod.config import Settings, default_cfg
from gitmod.git.cache import CacheStore
from gitmod.git.project import ProjectRepository
from gitmod.git.runner import GitRunner

from git_remotes import RemoteFactory, init_repo


@pytest.fixture
def capture_logs():
    """Fixture to capture log output during tests."""
    log_stream = io.StringIO()
    handler = logging.StreamHandler(log_stream)
    logger = logging.getLogger("gitmod")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)

    yield log_stream

    logger.removeHandler(handler)
    log_stream.close()


@pytest.fixture(autouse=True)
def isolated_git(monkeypatch, tmp_path):
    """Keep the user's git configuration out of the tests and give commits an author."""
    global_config = tmp_path / "gitconfig"
    global_config.write_text("")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(global_config))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    for key in default_cfg:
        monkeypatch.delenv(f"GITMOD_{key.upper()}", raising=False)


# git fixtures


@pytest.fixture
def remotes(tmp_path) -> RemoteFactory:
    """Bare remotes served over file:// in place of a hosting service."""
    return RemoteFactory(tmp_path / "remotes")


@pytest.fixture
def settings(tmp_path, remotes) -> Settings:
    return Settings(
        cache_home=tmp_path / "cache",
        modules_local="modules",
        search_api_host="api.example.test",
        protocol="file",
        host=str(remotes.root),
        default_branch="master",
        log_file="gitmod.log",
        network_timeout=60,
        self_repo="gitmod/gitmod",
    )


@pytest.fixture
def runner() -> GitRunner:
    return GitRunner(network_timeout=60)


@pytest.fixture
def store(settings, runner) -> CacheStore:
    return CacheStore.from_settings(settings, runner)


@pytest.fixture
def project_dir(tmp_path) -> Path:
    return init_repo(tmp_path / "project")


@pytest.fixture
def project(project_dir, runner) -> ProjectRepository:
    return ProjectRepository(project_dir, runner)


@pytest.fixture
def widgets(remotes) -> Path:
    """acme/widgets with branches master and v1."""
    return remotes.create("acme/widgets", branches=("master", "v1"))
