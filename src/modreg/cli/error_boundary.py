"""Error boundary handling for CLI commands.

This module provides a decorator to catch well-known exceptions at CLI entry
points and display clean error messages without stack traces, exiting with
the status the error maps to.
"""

import functools
import logging
from collections.abc import Callable
from typing import Any

import click

from modreg.cli.json_output import HANDLED_BUILTIN_ERRORS, exit_code_for
from modreg.core.errors import CyclicDependencyError, HasDependentsError, ModRegError

logger = logging.getLogger(__name__)


def cli_error_boundary[T: Callable[..., Any]](func: T) -> T:
    """Decorator that catches well-known exceptions and displays clean error messages.

    Catches:
        - ModRegError: every registry error, exit status from its category
        - FileExistsError, FileNotFoundError: file/directory conflicts
        - ValueError: Invalid input or configuration
        - PermissionError: Permission denied errors

    All other exceptions bubble up normally with full stack traces.

    Example:
        @click.command()
        @cli_error_boundary
        def my_command():
            ...
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ModRegError as e:
            logger.debug("%s during %s", type(e).__name__, e.phase, exc_info=True)
            click.echo(f"Error: {e.message}", err=True)
            if isinstance(e, CyclicDependencyError):
                click.echo(f"  cycle: {' -> '.join(e.path)}", err=True)
            if isinstance(e, HasDependentsError):
                for dependent in e.dependents:
                    click.echo(f"  required by: {dependent}", err=True)
            raise SystemExit(exit_code_for(e)) from None
        except HANDLED_BUILTIN_ERRORS as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(exit_code_for(e)) from None

    return wrapper  # type: ignore[return-value]
