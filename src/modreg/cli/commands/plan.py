"""Plan command - show the install order of a module without installing."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import emit_json, json_error_boundary
from modreg.cli.rendering import format_option, plan_exit_status, plan_response, render_plan_text
from modreg.core.context import ModRegContext
from modreg.core.results import ExitStatus


@click.command("plan")
@click.argument("name")
@click.option("--strict", is_flag=True, help="Fail when a dependency drifted a major version.")
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def plan_cmd(ctx: ModRegContext, name: str, strict: bool, format: str) -> None:
    """Resolve NAME's dependencies and print the install order."""
    registry = ctx.registry_store.read()
    plan = ctx.controller(registry, strict=strict).plan(name)

    if format == "json":
        emit_json(plan_response(plan).model_dump(mode="json"))
    else:
        render_plan_text(plan)

    status = plan_exit_status(plan)
    if status != ExitStatus.SUCCESS:
        raise SystemExit(int(status))
