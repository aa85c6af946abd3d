import logging
import os

import click

from modreg.cli.commands.add import add_cmd
from modreg.cli.commands.extract import extract_cmd
from modreg.cli.commands.install import install_cmd
from modreg.cli.commands.list_cmd import list_cmd
from modreg.cli.commands.plan import plan_cmd
from modreg.cli.commands.remove import remove_cmd
from modreg.cli.commands.resolve import resolve_cmd
from modreg.cli.commands.status import status_cmd
from modreg.cli.commands.sync import sync_cmd
from modreg.cli.commands.update import update_cmd
from modreg.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="modreg")
@click.option("--debug", is_flag=True, help="Log every registry transition to stderr.")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Catalog, install and sync reusable project modules."""
    # Enable debug logging if --debug or MODREG_DEBUG is set
    if debug or os.getenv("MODREG_DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")

    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context(debug=debug)


cli.add_command(add_cmd)
cli.add_command(extract_cmd)
cli.add_command(install_cmd)
cli.add_command(list_cmd)
cli.add_command(plan_cmd)
cli.add_command(remove_cmd)
cli.add_command(resolve_cmd)
cli.add_command(status_cmd)
cli.add_command(sync_cmd)
cli.add_command(update_cmd)


def main() -> None:
    """CLI entry point used by the `modreg` console script."""
    cli()
