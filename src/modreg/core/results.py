"""Structured results returned by lifecycle operations."""

from dataclasses import dataclass
from enum import Enum, IntEnum

from modreg.core.errors import CollaboratorFailure, ModRegError, ResolutionError
from modreg.core.resolver import ResolutionPlan
from modreg.core.versioning import Version, VersionChange


class ExitStatus(IntEnum):
    """Process exit codes for the CLI surface."""

    SUCCESS = 0
    PARTIAL_SUCCESS = 1
    FATAL_RESOLUTION_ERROR = 2
    COLLABORATOR_FAILURE = 3
    STATE_ERROR = 4


class OperationStatus(Enum):
    SUCCESS = "success"
    PARTIAL = "partial"  # Completed, with diagnostics or skipped work
    FAILED = "failed"  # A collaborator step failed partway
    CONFLICTED = "conflicted"  # Sync hit a remote conflict
    DECLINED = "declined"  # Caller declined a required confirmation


class StepStatus(Enum):
    DONE = "done"
    ALREADY_SATISFIED = "already-satisfied"
    FAILED = "failed"


@dataclass(frozen=True)
class StepRecord:
    """One independently committed step of an operation."""

    module: str
    action: str
    status: StepStatus
    detail: str | None = None


@dataclass(frozen=True)
class MajorVersionWarning:
    module: str
    old_version: Version
    new_version: Version
    change: VersionChange

    def __str__(self) -> str:
        return f"{self.module}: {self.old_version} -> {self.new_version} ({self.change.value})"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a lifecycle operation.

    not_run lists what never started because an earlier step failed or the
    operation was cancelled: module names for install, step names for
    single-module operations. Callers can resume from there.
    """

    operation: str
    module: str
    status: OperationStatus
    steps: tuple[StepRecord, ...] = ()
    not_run: tuple[str, ...] = ()
    plan: ResolutionPlan | None = None
    warnings: tuple[MajorVersionWarning, ...] = ()
    checklist: tuple[str, ...] = ()
    failure: CollaboratorFailure | None = None

    @property
    def exit_status(self) -> ExitStatus:
        if self.status == OperationStatus.FAILED:
            return ExitStatus.COLLABORATOR_FAILURE
        if self.status == OperationStatus.CONFLICTED:
            return ExitStatus.STATE_ERROR
        if self.status in (OperationStatus.PARTIAL, OperationStatus.DECLINED):
            return ExitStatus.PARTIAL_SUCCESS
        return ExitStatus.SUCCESS


def exit_status_for_error(error: ModRegError) -> ExitStatus:
    """Map an error from the taxonomy to its exit status."""
    if isinstance(error, ResolutionError):
        return ExitStatus.FATAL_RESOLUTION_ERROR
    if isinstance(error, CollaboratorFailure):
        return ExitStatus.COLLABORATOR_FAILURE
    # StateError, ManifestParseError and ConflictError
    return ExitStatus.STATE_ERROR
