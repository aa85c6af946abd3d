"""Extract command - publish a project folder as a new module."""

from pathlib import Path

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import json_error_boundary
from modreg.cli.rendering import emit_operation_result, format_option
from modreg.core.context import ModRegContext


@click.command("extract")
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--category", "-c", required=True, help="Category of the new module.")
@click.option(
    "--visibility",
    type=click.Choice(["public", "private"]),
    default=None,
    help="Visibility of the new remote (default from global config).",
)
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def extract_cmd(
    ctx: ModRegContext, path: Path, category: str, visibility: str | None, format: str
) -> None:
    """Publish the folder at PATH to a new remote and link it back in place.

    The original folder is kept under .modreg/extracted.
    """
    with ctx.registry_store.transaction() as registry:
        result = ctx.controller(registry).extract_and_publish(
            path.resolve(),
            category,
            visibility=visibility,  # type: ignore[arg-type]
        )
    emit_operation_result(result, format)
