"""Pydantic models for JSON output schemas.

This module defines the validated JSON schemas for CLI commands that support
--format json output. These models ensure type safety and provide runtime
validation of JSON output structures.
"""

from pydantic import BaseModel, ConfigDict, Field


class StepInfo(BaseModel):
    """One step of an operation.

    Attributes:
        module: Module the step acted on
        action: What the step did (copy, link, pull, push, ...)
        status: done, already-satisfied or failed
        detail: Extra context, such as the failure cause
    """

    model_config = ConfigDict(strict=True)

    module: str
    action: str
    status: str = Field(..., pattern="^(done|already-satisfied|failed)$")
    detail: str | None


class VersionWarningInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    module: str
    old_version: str
    new_version: str
    change: str


class UnresolvedInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    name: str
    required_by: str


class DriftInfo(BaseModel):
    model_config = ConfigDict(strict=True)

    module: str
    dependency: str
    required: str
    registered: str
    change: str


class PlanResponse(BaseModel):
    """JSON response schema for the `modreg plan` command.

    Attributes:
        target: Module that was resolved
        install_order: Modules in install order, dependencies first
        unresolved: Dependencies missing from the registry
        version_drift: Dependencies registered at a drifted version
        skipped: Modules left out because they need an unresolved dependency
        exit_code: Exit code for the process
    """

    model_config = ConfigDict(strict=True)

    target: str
    install_order: list[str]
    unresolved: list[UnresolvedInfo]
    version_drift: list[DriftInfo]
    skipped: list[str]
    exit_code: int = Field(..., ge=0, le=255)


class OperationResponse(BaseModel):
    """JSON response schema for commands that run a lifecycle operation.

    Attributes:
        operation: install, update, extract, sync, remove, register or resolve
        module: Module the operation targeted
        status: success, partial, failed, conflicted or declined
        exit_code: Exit code for the process
        steps: Steps that ran, in order
        not_run: What never started after a failure or cancellation
        warnings: Version changes needing attention
        checklist: Manual follow-ups (autoload registrations on remove)
        plan: Resolution plan, for install
        failure: Message of the collaborator failure that stopped the operation
    """

    model_config = ConfigDict(strict=True)

    operation: str
    module: str
    status: str = Field(..., pattern="^(success|partial|failed|conflicted|declined)$")
    exit_code: int = Field(..., ge=0, le=255)
    steps: list[StepInfo]
    not_run: list[str]
    warnings: list[VersionWarningInfo]
    checklist: list[str]
    plan: PlanResponse | None
    failure: str | None


class ModuleInfo(BaseModel):
    """A registered module as shown by `list` and `status`."""

    model_config = ConfigDict(strict=True)

    name: str
    category: str
    version: str
    link_state: str
    mode: str | None
    source: str
    dependencies: list[str]
    tags: list[str]
    autoloads: dict[str, str]


class ListResponse(BaseModel):
    model_config = ConfigDict(strict=True)

    modules: list[ModuleInfo]


class StatusResponse(BaseModel):
    """JSON response schema for the `modreg status` command.

    Attributes:
        modules: Modules after their state was re-detected
        refreshed: State changes found while re-detecting
        cycles: Dependency cycles anywhere in the registry
        dependents: For a single module, the modules that depend on it
    """

    model_config = ConfigDict(strict=True)

    modules: list[ModuleInfo]
    refreshed: list[StepInfo]
    cycles: list[list[str]]
    dependents: list[str] | None
