"""List command - show the catalog."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import emit_json, json_error_boundary
from modreg.cli.json_schemas import ListResponse
from modreg.cli.output import user_output
from modreg.cli.rendering import format_option, module_info, render_modules_table
from modreg.core.context import ModRegContext


@click.command("list")
@click.option("--category", "-c", default=None, help="Only show modules of this category.")
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def list_cmd(ctx: ModRegContext, category: str | None, format: str) -> None:
    """List registered modules."""
    registry = ctx.registry_store.read()
    entries = registry.list_by_category(category) if category is not None else registry.list_all()

    if format == "json":
        response = ListResponse(modules=[module_info(entry) for entry in entries])
        emit_json(response.model_dump(mode="json"))
        return

    if not entries:
        user_output("No modules registered")
        return
    render_modules_table(entries)
