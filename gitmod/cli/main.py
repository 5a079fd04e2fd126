"""gitmod CLI"""

import click

from gitmod import __version__
from gitmod.cli.cache import cache
from gitmod.cli.error_formatting import report_errors
from gitmod.cli.modules import install, ls, uninstall
from gitmod.cli.search import search
from gitmod.cli.utils.context import get_settings
from gitmod.git.runner import ensure_git_available
from gitmod.selfupdate import update_self

from .debug import add_debug_option
from .utils.logging import configure_tool_output

ALIASES = {"i": "install", "u": "uninstall"}


def format_recursive_help(ctx, param, value):
    """Custom help formatter that shows all subcommands and their sub-subcommands"""
    if not value or ctx.resilient_parsing:
        return

    click.echo("Usage: gitmod [OPTIONS] COMMAND [ARGS]...")
    click.echo("")
    click.echo("  Manage read-only git submodule dependencies from a shared cache.")
    click.echo("")
    click.echo("Options:")
    click.echo("  --debug / --no-debug  Enable debug mode")
    click.echo("  --update              Fetch the latest gitmod sources and exit.")
    click.echo("  --version             Show the version and exit.")
    click.echo("  -h, --help            Show this message and exit.")
    click.echo("")
    click.echo("Commands:")

    main_cli = ctx.find_root().command

    for name, command in main_cli.commands.items():
        if name in ALIASES:
            continue
        aliases = [a for a, target in ALIASES.items() if target == name]
        label = "|".join([name] + aliases)
        click.echo(f"  {label:<12} {command.get_short_help_str(50)}")

        if hasattr(command, "commands"):
            for subname, subcommand in command.commands.items():
                click.echo(
                    f"    {name} {subname:<10} {subcommand.get_short_help_str(45)}"
                )

    ctx.exit()


@report_errors
def _run_self_update():
    settings = get_settings()
    ensure_git_available()
    configure_tool_output(settings.verbose)
    entry = update_self(settings)
    click.secho(f"gitmod sources are up to date in {entry.path}", fg="green")
    click.echo(f"Reinstall with: pip install --upgrade {entry.path}")


def self_update(ctx, param, value):
    if not value or ctx.resilient_parsing:
        return
    _run_self_update()
    ctx.exit()


@click.group(context_settings=dict(help_option_names=["-h", "--help"]))
@click.version_option(__version__, prog_name="gitmod")
@click.option(
    "--help",
    "-h",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=format_recursive_help,
    help="Show this message and exit.",
)
@click.option(
    "--update",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=self_update,
    help="Fetch the latest gitmod sources and exit.",
)
@click.pass_context
def cli(ctx):
    """
    Manage read-only git submodule dependencies from a shared cache.
    """
    ctx.ensure_object(dict)


cli.add_command(add_debug_option(install))
cli.add_command(install, name="i")
cli.add_command(add_debug_option(uninstall))
cli.add_command(uninstall, name="u")
cli.add_command(add_debug_option(ls))
cli.add_command(add_debug_option(cache))
cli.add_command(add_debug_option(search))

add_debug_option(cli)

if __name__ == "__main__":
    cli(obj={})
