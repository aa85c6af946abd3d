"""Resolve command - clear the conflicted state after manual reconciliation."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import json_error_boundary
from modreg.cli.rendering import emit_operation_result, format_option
from modreg.core.context import ModRegContext


@click.command("resolve")
@click.argument("name")
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def resolve_cmd(ctx: ModRegContext, name: str, format: str) -> None:
    """Mark conflicted module NAME as reconciled."""
    with ctx.registry_store.transaction() as registry:
        result = ctx.controller(registry).resolve_conflict(name)
    emit_operation_result(result, format)
