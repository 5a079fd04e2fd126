"""cli commands that change or inspect the modules of the current project"""

from typing import Optional

import click

from gitmod.cli.error_formatting import report_errors
from gitmod.cli.utils.context import get_settings, open_cache, open_project
from gitmod.cli.utils.logging import logger
from gitmod.git.scan import scan_cache
from gitmod.git.submodule import RegistrationOutcome, list_modules
from gitmod.model.module import parse_module_id
from gitmod.modules import ModuleInstaller, ModuleUninstaller

from .cache import print_cache_entry, print_cache_summary


@click.command("install")
@click.argument("module", metavar="OWNER/REPO")
@click.argument("branch", required=False)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Show git output instead of writing it to the log file.",
)
@report_errors
def install(module: str, branch: Optional[str], verbose: bool):
    """Install OWNER/REPO as a read-only submodule (alias: i).

    The repository is cloned into the machine-wide cache on first use and
    pulled on later installs. BRANCH defaults to the configured default branch.

    Example:

      gitmod install acme/widgets v1
    """
    settings = get_settings(verbose)
    module_id = parse_module_id(module)
    branch = branch or settings.default_branch

    project = open_project(settings)
    installer = ModuleInstaller.from_settings(project, settings)

    logger.info(f"Installing {module_id}@{branch}")
    result = installer.install(module_id, branch)

    cache = result.cache
    if cache is not None and cache.refreshed is False:
        click.secho(f"Could not update {module_id}, used cached version", fg="yellow")

    verb = "Installed" if result.outcome is RegistrationOutcome.ADDED else "Updated"
    path = result.registration.path
    click.secho(f"{verb} {module_id}@{branch} at {path}", fg="green")
    if not result.committed:
        click.echo("Nothing new to commit")


@click.command("uninstall")
@click.argument("module", metavar="OWNER/REPO")
@report_errors
def uninstall(module: str):
    """Remove an installed module from this project (alias: u).

    The cached clone is kept for other projects.
    """
    settings = get_settings()
    module_id = parse_module_id(module)
    project = open_project(settings)

    ModuleUninstaller(
        project, modules_local=settings.modules_local, log_file=settings.log_file
    ).remove(module_id)
    click.secho(f"Uninstalled {module_id}", fg="green")


@click.command("ls")
@click.argument("what", required=False, type=click.Choice(["cache"]))
@report_errors
def ls(what: Optional[str]):
    """List modules installed in this project, or `ls cache` for the cache."""
    settings = get_settings()

    if what == "cache":
        store, _ = open_cache(settings)
        report = scan_cache(store.root, progress=print_cache_entry)
        print_cache_summary(report)
        return

    project = open_project(settings)
    modules = list_modules(project, settings.modules_local)
    if not modules:
        click.echo("No modules installed")
        return

    width = max(len(m.name) for m in modules)
    branch_width = max(len(m.branch) for m in modules)
    for m in modules:
        click.echo(
            f"{click.style(m.name.ljust(width), fg='cyan')}  "
            f"{m.branch.ljust(branch_width)}  {m.path}"
        )
    click.echo(f"{len(modules)} module{'s' if len(modules) != 1 else ''} installed")
