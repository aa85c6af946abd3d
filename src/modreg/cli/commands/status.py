"""Status command - re-detect link states and report registry health."""

import click

from modreg.cli.error_boundary import cli_error_boundary
from modreg.cli.json_output import emit_json, json_error_boundary
from modreg.cli.json_schemas import StatusResponse
from modreg.cli.output import user_output
from modreg.cli.rendering import format_option, module_info, render_modules_table, step_info
from modreg.core.context import ModRegContext
from modreg.core.registry import RegistryEntry
from modreg.core.resolver import find_cycles


@click.command("status")
@click.argument("name", required=False)
@format_option
@click.pass_obj
@cli_error_boundary
@json_error_boundary
def status_cmd(ctx: ModRegContext, name: str | None, format: str) -> None:
    """Show the state of NAME, or of every module.

    Linked mirrors are inspected and their recorded state is corrected
    (attached, detached or modified). Conflicted modules are left as they are.
    """
    with ctx.registry_store.transaction() as registry:
        refreshed = ctx.controller(registry).refresh(name)
        entries = [registry.get(name)] if name is not None else registry.list_all()
        cycles = find_cycles(registry.snapshot())
        dependents = registry.dependents_of(name) if name is not None else None

    if format == "json":
        response = StatusResponse(
            modules=[module_info(entry) for entry in entries],
            refreshed=[step_info(step) for step in refreshed.steps],
            cycles=cycles,
            dependents=dependents,
        )
        emit_json(response.model_dump(mode="json"))
        return

    for step in refreshed.steps:
        user_output(click.style("Updated ", fg="yellow") + f"{step.module}: {step.detail}")

    if name is not None:
        _render_module_details(entries[0], dependents or [])
    elif entries:
        render_modules_table(entries)
    else:
        user_output("No modules registered")

    for cycle in cycles:
        user_output(click.style("Cycle: ", fg="red") + " -> ".join(cycle))


def _render_module_details(entry: RegistryEntry, dependents: list[str]) -> None:
    manifest = entry.manifest
    user_output(click.style(entry.name, fg="cyan", bold=True))
    user_output(f"  category:     {entry.category}")
    user_output(f"  version:      {manifest.version}")
    user_output(f"  state:        {entry.link_state.value}")
    user_output(f"  mode:         {entry.mode.value if entry.mode is not None else '-'}")
    user_output(f"  source:       {entry.source}")
    deps = ", ".join(str(dep) for dep in manifest.dependencies) or "none"
    user_output(f"  dependencies: {deps}")
    user_output(f"  required by:  {', '.join(dependents) or 'none'}")
    if manifest.autoloads:
        user_output("  autoloads:")
        for key, path in sorted(manifest.autoloads.items()):
            user_output(f"    {key} -> {path}")
