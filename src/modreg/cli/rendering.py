"""Output rendering for CLI commands.

Commands collect an OperationResult, ResolutionPlan or registry entries and
hand them to the functions here, which either print them for humans on
stderr or emit the matching pydantic schema as JSON on stdout.
"""

import click
from rich.console import Console
from rich.table import Table

from modreg.cli.json_output import emit_json
from modreg.cli.json_schemas import (
    DriftInfo,
    ModuleInfo,
    OperationResponse,
    PlanResponse,
    StepInfo,
    UnresolvedInfo,
    VersionWarningInfo,
)
from modreg.cli.output import user_output
from modreg.core.registry import LinkState, RegistryEntry
from modreg.core.resolver import ResolutionPlan
from modreg.core.results import (
    ExitStatus,
    OperationResult,
    OperationStatus,
    StepRecord,
    StepStatus,
)

format_option = click.option(
    "--format",
    "format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format: human-readable text or JSON on stdout.",
)

_STATE_STYLES = {
    LinkState.CATALOGED: "dim",
    LinkState.COPIED: "blue",
    LinkState.LINKED_ATTACHED: "green",
    LinkState.LINKED_DETACHED: "yellow",
    LinkState.MODIFIED: "magenta",
    LinkState.CONFLICTED: "bold red",
}

_STEP_MARKS = {
    StepStatus.DONE: click.style("✓", fg="green"),
    StepStatus.ALREADY_SATISFIED: click.style("=", fg="cyan"),
    StepStatus.FAILED: click.style("✗", fg="red"),
}


# ============================================================================
# Schema conversion
# ============================================================================


def step_info(step: StepRecord) -> StepInfo:
    return StepInfo(
        module=step.module, action=step.action, status=step.status.value, detail=step.detail
    )


def plan_exit_status(plan: ResolutionPlan) -> ExitStatus:
    return ExitStatus.PARTIAL_SUCCESS if plan.has_diagnostics else ExitStatus.SUCCESS


def plan_response(plan: ResolutionPlan) -> PlanResponse:
    return PlanResponse(
        target=plan.target,
        install_order=list(plan.install_order),
        unresolved=[UnresolvedInfo(name=u.name, required_by=u.required_by) for u in plan.unresolved],
        version_drift=[
            DriftInfo(
                module=d.module,
                dependency=d.dependency,
                required=str(d.required),
                registered=str(d.registered),
                change=d.change.value,
            )
            for d in plan.version_drift
        ],
        skipped=list(plan.skipped),
        exit_code=int(plan_exit_status(plan)),
    )


def operation_response(result: OperationResult) -> OperationResponse:
    return OperationResponse(
        operation=result.operation,
        module=result.module,
        status=result.status.value,
        exit_code=int(result.exit_status),
        steps=[step_info(step) for step in result.steps],
        not_run=list(result.not_run),
        warnings=[
            VersionWarningInfo(
                module=w.module,
                old_version=str(w.old_version),
                new_version=str(w.new_version),
                change=w.change.value,
            )
            for w in result.warnings
        ],
        checklist=list(result.checklist),
        plan=plan_response(result.plan) if result.plan is not None else None,
        failure=result.failure.message if result.failure is not None else None,
    )


def module_info(entry: RegistryEntry) -> ModuleInfo:
    return ModuleInfo(
        name=entry.name,
        category=entry.category,
        version=str(entry.manifest.version),
        link_state=entry.link_state.value,
        mode=entry.mode.value if entry.mode is not None else None,
        source=str(entry.source),
        dependencies=[str(dep) for dep in entry.manifest.dependencies],
        tags=sorted(entry.manifest.tags),
        autoloads=dict(entry.manifest.autoloads),
    )


# ============================================================================
# Text rendering
# ============================================================================


def render_plan_text(plan: ResolutionPlan) -> None:
    if plan.install_order:
        user_output(f"Install order for {click.style(plan.target, fg='cyan', bold=True)}:")
        for index, name in enumerate(plan.install_order, start=1):
            user_output(f"  {index}. {name}")
    else:
        user_output(f"Nothing of {click.style(plan.target, fg='cyan', bold=True)} can be installed")

    for unresolved in plan.unresolved:
        user_output(
            click.style("  unresolved: ", fg="yellow")
            + f"{unresolved.name} (required by {unresolved.required_by})"
        )
    for name in plan.skipped:
        user_output(click.style("  skipped: ", fg="yellow") + name)
    for drift in plan.version_drift:
        user_output(click.style("  version drift: ", fg="yellow") + str(drift))


def render_operation_text(result: OperationResult) -> None:
    if result.plan is not None and result.plan.has_diagnostics:
        render_plan_text(result.plan)

    for step in result.steps:
        line = f"{_STEP_MARKS[step.status]} {step.action} {step.module}"
        if step.detail:
            line += click.style(f" ({step.detail})", dim=True)
        user_output(line)

    for name in result.not_run:
        user_output(click.style("- not run: ", dim=True) + name)

    for warning in result.warnings:
        user_output(click.style("Warning: ", fg="yellow") + f"version change {warning}")

    if result.checklist:
        user_output("\nManual follow-up:")
        for item in result.checklist:
            user_output(f"  [ ] {item}")

    if result.status == OperationStatus.FAILED and result.failure is not None:
        user_output(click.style("Error: ", fg="red") + result.failure.message)
    elif result.status == OperationStatus.CONFLICTED:
        user_output(
            click.style("Conflict: ", fg="red")
            + f"'{result.module}' could not be pushed. Reconcile it by hand, "
            + f"then run 'modreg resolve {result.module}'."
        )
    elif result.status == OperationStatus.DECLINED:
        user_output(f"Update of '{result.module}' declined; nothing changed.")


def render_modules_table(entries: list[RegistryEntry]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("name", style="cyan", no_wrap=True)
    table.add_column("category", no_wrap=True)
    table.add_column("version", no_wrap=True)
    table.add_column("state", no_wrap=True)
    table.add_column("mode", no_wrap=True)
    table.add_column("dependencies")
    table.add_column("source", overflow="fold")

    for entry in entries:
        deps = ", ".join(str(dep) for dep in entry.manifest.dependencies) or "-"
        table.add_row(
            entry.name,
            entry.category,
            str(entry.manifest.version),
            f"[{_STATE_STYLES[entry.link_state]}]{entry.link_state.value}[/]",
            entry.mode.value if entry.mode is not None else "-",
            deps,
            str(entry.source),
        )

    console = Console(stderr=True, width=200, force_terminal=True)
    console.print(table)
    console.print()  # Add blank line after table


def emit_operation_result(result: OperationResult, format: str) -> None:
    """Render result in the requested format and exit with its status when non-zero."""
    if format == "json":
        emit_json(operation_response(result).model_dump(mode="json"))
    else:
        render_operation_text(result)

    if result.exit_status != ExitStatus.SUCCESS:
        raise SystemExit(int(result.exit_status))
