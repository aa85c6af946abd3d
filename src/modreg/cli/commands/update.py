"""Update command - bring a materialized module up to date."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import json_error_boundary
from modreg.cli.rendering import emit_operation_result, format_option
from modreg.core.context import ModRegContext


@click.command("update")
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Replace copies without asking.")
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def update_cmd(ctx: ModRegContext, name: str, yes: bool, format: str) -> None:
    """Update NAME from its source.

    Linked mirrors pull the latest mainline. Copies are replaced, which
    discards local edits, so they ask for confirmation unless --yes is given.
    """

    def confirm(prompt: str) -> bool:
        if yes:
            return True
        return click.confirm(prompt, default=False, err=True)

    with ctx.registry_store.transaction() as registry:
        result = ctx.controller(registry).update(name, confirm=confirm)
    emit_operation_result(result, format)
