"""JSON output utilities for CLI commands with machine-parseable output."""

import json
from collections.abc import Callable
from enum import Enum
from functools import wraps
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from modreg.cli.output import machine_output
from modreg.core.errors import ModRegError
from modreg.core.results import ExitStatus, exit_status_for_error

# Local failures outside the registry's own taxonomy
HANDLED_BUILTIN_ERRORS = (FileExistsError, FileNotFoundError, ValueError, PermissionError)


class ErrorResponse(BaseModel):
    """Pydantic model for error JSON responses.

    Attributes:
        error: Error message
        error_type: Error class name (e.g., "UnknownModuleError")
        exit_code: Exit code for the process
        module: Module the error is about, if any
        phase: Operation phase that failed, if known
    """

    model_config = ConfigDict(strict=True)

    error: str
    error_type: str
    exit_code: int = Field(default=1, ge=0, le=255)
    module: str | None = None
    phase: str | None = None


def _serialize_for_json(obj: Any) -> Any:
    """Recursively serialize Path and Enum values in plain dict structures."""
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {key: _serialize_for_json(value) for key, value in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize_for_json(item) for item in obj]
    return obj


def emit_json(data: dict[str, Any]) -> None:
    """Output JSON data to stdout for machine consumption.

    For Pydantic models, call model.model_dump(mode='json') before
    passing to this function.
    """
    machine_output(json.dumps(_serialize_for_json(data), indent=2))


def emit_json_error(error: BaseException, exit_code: int) -> None:
    """Output an error as JSON and exit.

    Raises:
        SystemExit: Always raises to terminate with specified exit code
    """
    if isinstance(error, ModRegError):
        response = ErrorResponse(
            error=error.message,
            error_type=type(error).__name__,
            exit_code=exit_code,
            module=error.module,
            phase=error.phase,
        )
    else:
        response = ErrorResponse(error=str(error), error_type=type(error).__name__, exit_code=exit_code)
    emit_json(response.model_dump(mode="json"))
    raise SystemExit(exit_code)


def exit_code_for(error: BaseException) -> int:
    if isinstance(error, ModRegError):
        return int(exit_status_for_error(error))
    return int(ExitStatus.STATE_ERROR)


def json_error_boundary[T: Callable[..., Any]](func: T) -> T:
    """Decorator to catch known exceptions and emit JSON errors when in JSON mode.

    Inspects function kwargs for 'format' parameter. If format == "json",
    catches registry errors and local file/config errors and outputs a
    structured ErrorResponse. Otherwise, lets exceptions bubble up to
    cli_error_boundary.

    Example:
        @click.command()
        @click.option("--format", type=click.Choice(["text", "json"]), default="text")
        @cli_error_boundary
        @json_error_boundary
        def my_command(format: str) -> None:
            ...
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except (ModRegError, *HANDLED_BUILTIN_ERRORS) as e:
            if kwargs.get("format", "text") != "json":
                raise
            emit_json_error(e, exit_code_for(e))

    return wrapper  # type: ignore[return-value]
