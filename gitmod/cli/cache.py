"""CLI commands for the module cache"""

import click

from gitmod.cli.error_formatting import report_errors
from gitmod.cli.utils.context import get_settings, open_cache
from gitmod.git.scan import CacheReport, ScanEntry, scan_cache


def print_cache_entry(count: int, entry: ScanEntry):
    branch = f" ({entry.branch})" if entry.branch else ""
    line = f"[{count}] {entry.module_id}{branch}"
    if entry.refreshed is True:
        click.echo(f"{line} {click.style('updated', fg='green')}")
    elif entry.refreshed is False:
        click.echo(f"{line} {click.style('update failed, using cached version', fg='yellow')}")
    else:
        click.echo(line)


def print_cache_summary(report: CacheReport):
    if report.count == 0:
        click.echo(f"No repositories in cache {report.root}")
        return
    noun = "repository" if report.count == 1 else "repositories"
    click.echo(f"{report.count} {noun} in cache {report.root}")


@click.group(name="cache")
def cache():
    """Inspect and refresh the machine-wide module cache."""
    pass


@cache.command("ls")
@report_errors
def cache_ls():
    """List every cached repository."""
    store, _ = open_cache(get_settings())
    report = scan_cache(store.root, progress=print_cache_entry)
    print_cache_summary(report)


@cache.command("update")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Show git output instead of writing it to the log file.",
)
@report_errors
def cache_update(verbose: bool):
    """Pull every cached repository.

    Repositories that cannot be updated keep their cached contents.
    """
    store, _ = open_cache(get_settings(verbose))
    report = scan_cache(store.root, refresh=True, store=store, progress=print_cache_entry)
    print_cache_summary(report)
    if report.failed:
        click.secho(
            f"{len(report.failed)} of {report.count} could not be updated",
            fg="yellow",
            err=True,
        )
