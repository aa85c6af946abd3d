"""Add command - catalog a module from its manifest document."""

from pathlib import Path

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import json_error_boundary
from modreg.cli.rendering import emit_operation_result, format_option
from modreg.core.context import ModRegContext
from modreg.core.manifest import MANIFEST_FILENAME
from modreg.core.registry import SourceReference


@click.command("add")
@click.argument("manifest", type=click.Path(exists=True, path_type=Path))
@click.option("--category", "-c", required=True, help="Category to catalog the module under.")
@click.option(
    "--source",
    "-s",
    required=True,
    help="Remote the module is fetched from, optionally pinned as REMOTE@REVISION.",
)
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def add_cmd(ctx: ModRegContext, manifest: Path, category: str, source: str, format: str) -> None:
    """Register a module in the catalog.

    MANIFEST is the module's README.md, or the folder holding it. The folder
    name is the module name.
    """
    manifest_path = manifest / MANIFEST_FILENAME if manifest.is_dir() else manifest
    with ctx.registry_store.transaction() as registry:
        result = ctx.controller(registry).register(
            category, manifest_path.resolve(), SourceReference.parse(source)
        )
    emit_operation_result(result, format)
