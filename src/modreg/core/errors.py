"""Error taxonomy for registry operations.

Every error carries structured context (module, phase, underlying cause) so
callers can act on it without parsing messages:

- ManifestParseError: malformed manifest document, raised immediately
- ResolutionError: fatal dependency graph problems (cycles, strict conflicts)
- StateError: local precondition failures with no partial effect
- CollaboratorFailure: a version control / hosting / filesystem step failed
- ConflictError: module is conflicted and needs manual resolution
"""

from typing import Any


class ModRegError(Exception):
    """Base class for all registry errors."""

    def __init__(self, message: str, *, module: str | None = None, phase: str | None = None):
        super().__init__(message)
        self.message = message
        self.module = module
        self.phase = phase

    def to_dict(self) -> dict[str, Any]:
        """Structured form used by JSON output."""
        return {
            "error": self.message,
            "error_type": type(self).__name__,
            "module": self.module,
            "phase": self.phase,
        }


# ============================================================================
# Parse errors
# ============================================================================


class ManifestParseError(ModRegError):
    """Manifest document could not be turned into a ModuleManifest."""


class MissingFieldError(ManifestParseError):
    def __init__(self, field: str, *, module: str | None = None):
        super().__init__(f"Manifest is missing required field: {field}", module=module, phase="parse")
        self.field = field


class MalformedVersionError(ManifestParseError):
    def __init__(self, value: str, *, module: str | None = None):
        super().__init__(
            f"Malformed version string: {value!r} (expected MAJOR.MINOR.PATCH)",
            module=module,
            phase="parse",
        )
        self.value = value


class ManifestNameMismatchError(ManifestParseError):
    """Declared module name disagrees with the module's registry location."""

    def __init__(self, declared: str, expected: str):
        super().__init__(
            f"Manifest declares name '{declared}' but is located at '{expected}'",
            module=expected,
            phase="parse",
        )
        self.declared = declared
        self.expected = expected


# ============================================================================
# Resolution errors
# ============================================================================


class ResolutionError(ModRegError):
    """Fatal dependency resolution failure; no plan is produced."""


class CyclicDependencyError(ResolutionError):
    def __init__(self, path: list[str]):
        super().__init__(
            f"Cyclic dependency: {' -> '.join(path)}",
            module=path[0] if path else None,
            phase="resolve",
        )
        self.path = path

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["path"] = list(self.path)
        return data


class VersionConflictError(ResolutionError):
    """Major version drift in strict mode."""

    def __init__(self, module: str, dependency: str, required: str, registered: str):
        super().__init__(
            f"'{module}' was authored against {dependency} {required} "
            f"but {registered} is registered (major version change)",
            module=module,
            phase="resolve",
        )
        self.dependency = dependency
        self.required = required
        self.registered = registered


# ============================================================================
# State errors
# ============================================================================


class StateError(ModRegError):
    """Local precondition failure. Raised before any effect takes place."""


class DuplicateModuleError(StateError):
    def __init__(self, name: str, existing_source: str, new_source: str):
        super().__init__(
            f"Module '{name}' is already registered from {existing_source} (got {new_source})",
            module=name,
            phase="register",
        )


class UnknownModuleError(StateError):
    def __init__(self, name: str):
        super().__init__(f"Module '{name}' is not registered", module=name)


class AlreadyInstalledError(StateError):
    def __init__(self, name: str, installed_mode: str, requested_mode: str):
        super().__init__(
            f"Module '{name}' is already installed as a {installed_mode}; "
            f"remove it before installing as a {requested_mode}",
            module=name,
            phase="install",
        )
        self.installed_mode = installed_mode
        self.requested_mode = requested_mode


class HasDependentsError(StateError):
    def __init__(self, name: str, dependents: list[str]):
        super().__init__(
            f"Module '{name}' is required by: {', '.join(dependents)}",
            module=name,
            phase="remove",
        )
        self.dependents = dependents

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["dependents"] = list(self.dependents)
        return data


class DetachedHeadUnresolvedError(StateError):
    def __init__(self, name: str):
        super().__init__(
            f"Module '{name}' is detached and cannot be fast-forwarded to mainline; "
            "resolve the detached revision manually",
            module=name,
            phase="sync",
        )


class RemoteAlreadyExistsError(StateError):
    def __init__(self, full_name: str, *, module: str):
        super().__init__(f"Remote repository '{full_name}' already exists", module=module, phase="extract")
        self.full_name = full_name


class InvalidTransitionError(StateError):
    def __init__(self, name: str, operation: str, state: str):
        super().__init__(
            f"Cannot {operation} module '{name}' in state '{state}'",
            module=name,
            phase=operation,
        )
        self.state = state


class UncommittedChangesError(StateError):
    def __init__(self, name: str):
        super().__init__(
            f"Module '{name}' has local changes; sync them first or pass --force",
            module=name,
            phase="remove",
        )


# ============================================================================
# Collaborator and conflict errors
# ============================================================================


class CollaboratorFailure(ModRegError):
    """An external collaborator call failed. Never retried automatically."""

    def __init__(self, step: str, cause: BaseException | str, *, module: str | None = None):
        super().__init__(f"Failed to {step}: {cause}", module=module, phase=step)
        self.step = step
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["step"] = self.step
        data["cause"] = str(self.cause)
        return data


class ConflictError(ModRegError):
    def __init__(self, name: str, operation: str):
        super().__init__(
            f"Module '{name}' is conflicted; resolve it manually and run "
            f"'modreg resolve {name}' before {operation}",
            module=name,
            phase=operation,
        )
