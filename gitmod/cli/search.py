"""cli command for searching repositories on the remote host"""

from typing import Optional

import click

from gitmod.cli.error_formatting import report_errors
from gitmod.cli.utils.context import get_settings
from gitmod.search import search_repositories


@click.command("search")
@click.argument("term")
@click.argument("language", required=False)
@report_errors
def search(term: str, language: Optional[str]):
    """Search repositories matching TERM, optionally in LANGUAGE.

    Example:

      gitmod search widgets python
    """
    settings = get_settings()
    hits = search_repositories(
        term,
        language,
        api_host=settings.search_api_host,
        timeout=settings.network_timeout,
    )
    if not hits:
        click.echo("No repositories found")
        return

    for hit in hits:
        click.echo(
            f"{click.style(hit.full_name, fg='cyan')} ({hit.stars} stars)"
        )
        if hit.description:
            click.echo(f"    {hit.description}")
        click.echo(f"    {hit.url}")
