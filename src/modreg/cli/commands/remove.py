"""Remove command - delete a module from the project and the catalog."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import json_error_boundary
from modreg.cli.rendering import emit_operation_result, format_option
from modreg.core.context import ModRegContext


@click.command("remove")
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Remove even if the linked mirror has local changes.")
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def remove_cmd(ctx: ModRegContext, name: str, force: bool, format: str) -> None:
    """Remove NAME.

    Fails while another registered module depends on it. Autoload
    registrations are listed for manual cleanup.
    """
    with ctx.registry_store.transaction() as registry:
        result = ctx.controller(registry).remove(name, force=force)
    emit_operation_result(result, format)
