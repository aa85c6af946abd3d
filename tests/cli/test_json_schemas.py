"""Tests for the pydantic JSON response schemas."""

import pytest
from pydantic import ValidationError

from modreg.cli.json_output import ErrorResponse
from modreg.cli.json_schemas import OperationResponse, PlanResponse, StepInfo


def test_step_info_rejects_unknown_status() -> None:
    """Test that step status is limited to the known values."""
    StepInfo(module="core", action="copy", status="already-satisfied", detail=None)

    with pytest.raises(ValidationError):
        StepInfo(module="core", action="copy", status="skipped", detail=None)


def test_operation_response_rejects_unknown_status() -> None:
    """Test that operation status is limited to the known values."""
    with pytest.raises(ValidationError):
        OperationResponse(
            operation="install",
            module="core",
            status="maybe",
            exit_code=0,
            steps=[],
            not_run=[],
            warnings=[],
            checklist=[],
            plan=None,
            failure=None,
        )


def test_strict_mode_rejects_coercion() -> None:
    """Test that strict models refuse values of the wrong type."""
    with pytest.raises(ValidationError):
        PlanResponse(
            target="core",
            install_order=["core"],
            unresolved=[],
            version_drift=[],
            skipped=[],
            exit_code="0",  # type: ignore[arg-type]
        )


def test_exit_code_range() -> None:
    """Test that exit codes must fit a process status."""
    with pytest.raises(ValidationError):
        ErrorResponse(error="boom", error_type="RuntimeError", exit_code=256)

    assert ErrorResponse(error="boom", error_type="RuntimeError").exit_code == 1
