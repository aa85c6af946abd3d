"""Sync command - push local edits of a linked module."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import json_error_boundary
from modreg.cli.rendering import emit_operation_result, format_option
from modreg.core.context import ModRegContext


@click.command("sync")
@click.argument("name")
@click.option("--message", "-m", default=None, help="Commit message for the local changes.")
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def sync_cmd(ctx: ModRegContext, name: str, message: str | None, format: str) -> None:
    """Commit and push local changes of NAME back to its remote."""
    with ctx.registry_store.transaction() as registry:
        result = ctx.controller(registry).sync(name, message=message)
    emit_operation_result(result, format)
