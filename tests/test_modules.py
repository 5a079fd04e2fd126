"""End-to-end install and uninstall against real git repositories."""

import os
import stat

import pytest

from gitmod.errors import (
    DirtyWorkingTreeError,
    GitmodError,
    ModuleNotInstalledError,
    UnreachableRepositoryError,
)
from gitmod.git.project import ProjectRepository
from gitmod.git.submodule import InstalledModule, RegistrationOutcome, list_modules
from gitmod.model.module import parse_module_id
from gitmod.modules import InstallState, ModuleInstaller, ModuleUninstaller

from git_remotes import commit_count, git, head_commit, init_repo


def gitmodules_value(project, key):
    return git("config", "-f", ".gitmodules", key, cwd=project.root)


def is_writable(path):
    return bool(os.stat(path).st_mode & stat.S_IWUSR)


@pytest.fixture
def installer(project, settings):
    return ModuleInstaller.from_settings(project, settings)


@pytest.fixture
def uninstaller(project, settings):
    return ModuleUninstaller(project, settings.modules_local, settings.log_file)


class TestInstall:
    @pytest.mark.integration
    def test_install_registers_read_only_submodule(self, installer, project, settings, widgets):
        before = commit_count(project.root)

        result = installer.install(parse_module_id("acme/widgets"), "master")

        assert result.state is InstallState.DONE
        assert result.states == [
            InstallState.START,
            InstallState.GUARD_CHECKED,
            InstallState.CACHE_READY,
            InstallState.REGISTERED,
            InstallState.DONE,
        ]
        assert result.outcome is RegistrationOutcome.ADDED
        assert result.committed is True
        assert result.cache.path == settings.cache_home / "acme" / "widgets"

        name = "modules/acme/widgets"
        assert gitmodules_value(project, f"submodule.{name}.path") == name
        assert gitmodules_value(project, f"submodule.{name}.branch") == "master"
        assert gitmodules_value(project, f"submodule.{name}.ignore") == "dirty"

        checkout = project.root / name
        assert (checkout / "README.md").exists()
        assert not is_writable(checkout / "README.md")

        assert commit_count(project.root) == before + 1
        message = git("log", "-1", "--format=%s", cwd=project.root)
        assert message == "Install acme/widgets@master"
        assert project.is_clean()

    @pytest.mark.integration
    def test_log_file_is_ignored_and_committed(self, installer, project, widgets):
        installer.install(parse_module_id("acme/widgets"), "master")

        assert "gitmod.log" in (project.root / ".gitignore").read_text().splitlines()
        tracked = git("ls-files", ".gitignore", cwd=project.root)
        assert tracked == ".gitignore"

    @pytest.mark.integration
    def test_install_other_branch(self, installer, project, widgets):
        installer.install(parse_module_id("acme/widgets"), "v1")

        checkout = project.root / "modules" / "acme" / "widgets"
        assert (checkout / "v1.txt").exists()
        assert gitmodules_value(project, "submodule.modules/acme/widgets.branch") == "v1"

    @pytest.mark.integration
    def test_reinstall_updates_in_place(self, installer, project, widgets):
        module_id = parse_module_id("acme/widgets")
        installer.install(module_id, "master")
        after_first = commit_count(project.root)

        result = installer.install(module_id, "master")

        assert result.outcome is RegistrationOutcome.UPDATED
        assert result.committed is False
        assert commit_count(project.root) == after_first
        sections = git("config", "-f", ".gitmodules", "--get-regexp", r"\.path$", cwd=project.root)
        assert len(sections.splitlines()) == 1
        assert project.is_clean()

    @pytest.mark.integration
    def test_reinstall_picks_up_remote_changes(self, installer, project, remotes, widgets):
        module_id = parse_module_id("acme/widgets")
        installer.install(module_id, "master")
        remotes.push_commit("acme/widgets", "master", "CHANGES.md", "v2\n")

        result = installer.install(module_id, "master")

        assert result.cache.refreshed is True
        assert result.committed is True
        assert (project.root / "modules" / "acme" / "widgets" / "CHANGES.md").exists()
        assert project.is_clean()

    @pytest.mark.integration
    def test_reinstall_switches_branch(self, installer, project, widgets):
        module_id = parse_module_id("acme/widgets")
        installer.install(module_id, "master")

        result = installer.install(module_id, "v1")

        assert result.outcome is RegistrationOutcome.UPDATED
        assert result.committed is True
        assert gitmodules_value(project, "submodule.modules/acme/widgets.branch") == "v1"
        assert (project.root / "modules" / "acme" / "widgets" / "v1.txt").exists()

    @pytest.mark.integration
    def test_dirty_tree_changes_nothing(self, installer, project, settings, widgets):
        (project.root / "wip.txt").write_text("unfinished")
        head = head_commit(project.root)

        with pytest.raises(DirtyWorkingTreeError):
            installer.install(parse_module_id("acme/widgets"), "master")

        assert head_commit(project.root) == head
        assert not (project.root / ".gitignore").exists()
        assert not (project.root / "modules").exists()
        assert not settings.cache_home.exists()

    @pytest.mark.integration
    def test_uncommitted_gitignore_edit_is_refused(self, installer, project, widgets):
        gitignore = project.root / ".gitignore"
        gitignore.write_text("*.tmp\n")
        git("add", ".gitignore", cwd=project.root)
        git("commit", "-q", "-m", "ignore tmp", cwd=project.root)
        head = head_commit(project.root)
        gitignore.write_text("*.tmp\nsecret-wip\n")

        with pytest.raises(DirtyWorkingTreeError):
            installer.install(parse_module_id("acme/widgets"), "master")

        assert head_commit(project.root) == head
        assert git("show", "HEAD:.gitignore", cwd=project.root) == "*.tmp"
        assert gitignore.read_text() == "*.tmp\nsecret-wip\n"

    @pytest.mark.integration
    def test_tracked_files_at_target_survive(self, installer, project, widgets):
        notes = project.root / "modules" / "acme" / "widgets" / "notes.txt"
        notes.parent.mkdir(parents=True)
        notes.write_text("keep me\n")
        git("add", "-A", cwd=project.root)
        git("commit", "-q", "-m", "vendored notes", cwd=project.root)
        head = head_commit(project.root)

        with pytest.raises(GitmodError, match="submodule add"):
            installer.install(parse_module_id("acme/widgets"), "master")

        assert notes.read_text() == "keep me\n"
        assert head_commit(project.root) == head
        assert project.is_clean()
        assert project.registered_submodules() == {}

    @pytest.mark.integration
    def test_unreachable_repository_leaves_project_unchanged(self, installer, project, settings):
        head = head_commit(project.root)

        with pytest.raises(UnreachableRepositoryError):
            installer.install(parse_module_id("acme/missing"), "master")

        assert head_commit(project.root) == head
        assert project.is_clean()
        assert not (settings.cache_home / "acme" / "missing").exists()

    @pytest.mark.integration
    def test_unknown_branch_rolls_back(self, installer, project, settings, widgets, capture_logs):
        head = head_commit(project.root)

        with pytest.raises(GitmodError):
            installer.install(parse_module_id("acme/widgets"), "no-such-branch")

        assert head_commit(project.root) == head
        assert project.is_clean()
        assert not (project.root / "modules" / "acme" / "widgets").exists()
        assert "Rolling back" in capture_logs.getvalue()
        assert project.registered_submodules() == {}
        # the cache is kept for the next attempt
        assert (settings.cache_home / "acme" / "widgets" / ".git").exists()

    @pytest.mark.integration
    def test_cache_is_shared_between_projects(self, settings, runner, tmp_path, widgets):
        module_id = parse_module_id("acme/widgets")
        first = ProjectRepository(init_repo(tmp_path / "first"), runner)
        second = ProjectRepository(init_repo(tmp_path / "second"), runner)

        one = ModuleInstaller.from_settings(first, settings).install(module_id, "master")
        two = ModuleInstaller.from_settings(second, settings).install(module_id, "master")

        assert one.cache.cloned is True
        assert two.cache.cloned is False
        assert one.cache.path == two.cache.path
        assert (second.root / "modules" / "acme" / "widgets" / "README.md").exists()


class TestListModules:
    @pytest.mark.integration
    def test_no_modules(self, project):
        assert list_modules(project) == []

    @pytest.mark.integration
    def test_lists_name_and_branch(self, installer, project, remotes, widgets):
        remotes.create("acme/gadgets")
        installer.install(parse_module_id("acme/gadgets"), "master")
        installer.install(parse_module_id("acme/widgets"), "v1")

        modules = list_modules(project)

        assert sorted(modules, key=lambda m: m.name) == [
            InstalledModule("acme/gadgets", "master", "modules/acme/gadgets"),
            InstalledModule("acme/widgets", "v1", "modules/acme/widgets"),
        ]


    @pytest.mark.integration
    def test_nested_submodules_follow_their_parent(self, installer, project, remotes):
        # nested sources are local bare repositories
        git("config", "--global", "protocol.file.allow", "always", cwd=project.root)
        remotes.create("acme/inner")
        remotes.create("acme/outer")
        remotes.add_submodule("acme/outer", "acme/inner", "lib/inner")

        installer.install(parse_module_id("acme/outer"), "master")

        modules = list_modules(project)

        assert [(m.name, m.path) for m in modules] == [
            ("acme/outer", "modules/acme/outer"),
            ("lib/inner", "modules/acme/outer/lib/inner"),
        ]
        assert modules[0].branch == "master"
        assert (project.root / "modules" / "acme" / "outer" / "lib" / "inner" / "README.md").exists()
        assert project.is_clean()


class TestUninstall:
    @pytest.mark.integration
    def test_uninstall_removes_every_trace(self, installer, uninstaller, project, settings, widgets):
        module_id = parse_module_id("acme/widgets")
        installer.install(module_id, "master")
        before = commit_count(project.root)

        assert uninstaller.remove(module_id) is True

        target = "modules/acme/widgets"
        assert not (project.root / target).exists()
        assert not (project.git_dir / "modules" / target).exists()
        assert project.registered_submodules() == {}
        config = git("config", "--list", cwd=project.root)
        assert f"submodule.{target}" not in config
        assert commit_count(project.root) == before + 1
        assert git("log", "-1", "--format=%s", cwd=project.root) == "Uninstall acme/widgets"
        assert project.is_clean()
        assert list_modules(project) == []
        # other projects still use the cache
        assert (settings.cache_home / "acme" / "widgets" / ".git").exists()

    @pytest.mark.integration
    def test_uninstall_commits_only_the_module(self, installer, uninstaller, project, widgets):
        module_id = parse_module_id("acme/widgets")
        installer.install(module_id, "master")
        (project.root / "unrelated.txt").write_text("mine")
        git("add", "unrelated.txt", cwd=project.root)

        uninstaller.remove(module_id)

        committed = git("show", "--name-only", "--format=", "HEAD", cwd=project.root)
        assert sorted(committed.splitlines()) == [".gitmodules", "modules/acme/widgets"]
        staged = git("diff", "--cached", "--name-only", cwd=project.root)
        assert staged.splitlines() == ["unrelated.txt"]

    @pytest.mark.integration
    def test_uninstall_keeps_other_modules(self, installer, uninstaller, project, remotes, widgets):
        remotes.create("acme/gadgets")
        installer.install(parse_module_id("acme/widgets"), "master")
        installer.install(parse_module_id("acme/gadgets"), "master")

        uninstaller.remove(parse_module_id("acme/widgets"))

        assert [m.name for m in list_modules(project)] == ["acme/gadgets"]
        assert (project.root / "modules" / "acme" / "gadgets" / "README.md").exists()

    @pytest.mark.integration
    def test_reinstall_after_uninstall(self, installer, uninstaller, project, widgets):
        module_id = parse_module_id("acme/widgets")
        installer.install(module_id, "master")
        uninstaller.remove(module_id)

        result = installer.install(module_id, "master")

        assert result.outcome is RegistrationOutcome.ADDED
        assert project.is_clean()

    @pytest.mark.integration
    def test_uninstall_of_missing_module(self, uninstaller, project):
        head = head_commit(project.root)

        with pytest.raises(ModuleNotInstalledError, match="acme/widgets"):
            uninstaller.remove(parse_module_id("acme/widgets"))

        assert head_commit(project.root) == head
