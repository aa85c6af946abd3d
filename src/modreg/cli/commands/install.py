"""Install command - materialize a module and its dependencies."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import json_error_boundary
from modreg.cli.rendering import emit_operation_result, format_option
from modreg.core.context import ModRegContext
from modreg.core.registry import InstallMode


@click.command("install")
@click.argument("name")
@click.option("--copy", "mode", flag_value="copy", default=True, help="Install frozen copies (default).")
@click.option("--link", "mode", flag_value="link", help="Install editable mirrors linked to their remotes.")
@click.option("--strict", is_flag=True, help="Fail when a dependency drifted a major version.")
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def install_cmd(ctx: ModRegContext, name: str, mode: str, strict: bool, format: str) -> None:
    """Install NAME into the project, dependencies first."""
    with ctx.registry_store.transaction() as registry:
        result = ctx.controller(registry, strict=strict).install(name, InstallMode(mode))
    emit_operation_result(result, format)
