"""Tests for LifecycleController.install."""

from pathlib import Path

import pytest

from modreg.core.errors import AlreadyInstalledError, ConflictError, CyclicDependencyError
from modreg.core.registry import InstallMode, LinkState, ModuleRegistry
from modreg.core.results import ExitStatus, OperationStatus, StepStatus
from tests.fakes.vcs import FakeVersionControl
from tests.test_utils.controllers import make_controller, module_dir
from tests.test_utils.modules import make_entry, manifest_doc, remote_for


def _chain_registry() -> ModuleRegistry:
    return ModuleRegistry(
        [
            make_entry("core"),
            make_entry("events", deps=["core"]),
            make_entry("health", deps=["events"]),
        ]
    )


def test_install_copies_dependencies_first(tmp_path: Path) -> None:
    """Test that a copy install materializes the dependency, then the target."""
    registry = ModuleRegistry([make_entry("A"), make_entry("B", deps=["A"])])
    vcs = FakeVersionControl(
        remotes={remote_for("A"): manifest_doc("A"), remote_for("B"): manifest_doc("B")}
    )
    controller = make_controller(tmp_path, registry, vcs=vcs)

    result = controller.install("B", InstallMode.COPY)

    assert result.status == OperationStatus.SUCCESS
    assert result.exit_status == ExitStatus.SUCCESS
    assert [(s.module, s.status) for s in result.steps] == [
        ("A", StepStatus.DONE),
        ("B", StepStatus.DONE),
    ]
    assert [(kind, dest) for kind, dest, _ in vcs.materialized] == [
        ("frozen", module_dir(tmp_path, "A")),
        ("frozen", module_dir(tmp_path, "B")),
    ]
    for name in ("A", "B"):
        entry = registry.get(name)
        assert entry.link_state == LinkState.COPIED
        assert entry.mode == InstallMode.COPY


def test_link_install_ends_linked_attached(tmp_path: Path) -> None:
    """Test that a link install uses linked mirrors."""
    registry = ModuleRegistry([make_entry("A")])
    vcs = FakeVersionControl()

    make_controller(tmp_path, registry, vcs=vcs).install("A", InstallMode.LINK)

    assert vcs.materialized[0][0] == "linked"
    assert registry.get("A").link_state == LinkState.LINKED_ATTACHED
    assert registry.get("A").mode == InstallMode.LINK


def test_already_materialized_dependency_is_satisfied(tmp_path: Path) -> None:
    """Test that installed dependencies are not materialized again."""
    registry = ModuleRegistry(
        [
            make_entry("A", state=LinkState.LINKED_ATTACHED, mode=InstallMode.LINK),
            make_entry("B", deps=["A"]),
        ]
    )
    vcs = FakeVersionControl()

    result = make_controller(tmp_path, registry, vcs=vcs).install("B", InstallMode.COPY)

    assert [(s.module, s.status) for s in result.steps] == [
        ("A", StepStatus.ALREADY_SATISFIED),
        ("B", StepStatus.DONE),
    ]
    assert len(vcs.materialized) == 1
    assert registry.get("A").link_state == LinkState.LINKED_ATTACHED


def test_installed_with_other_mode_is_refused(tmp_path: Path) -> None:
    """Test that switching copy to link requires removal first."""
    registry = ModuleRegistry([make_entry("A", state=LinkState.COPIED, mode=InstallMode.COPY)])
    vcs = FakeVersionControl()

    with pytest.raises(AlreadyInstalledError) as exc_info:
        make_controller(tmp_path, registry, vcs=vcs).install("A", InstallMode.LINK)

    assert exc_info.value.installed_mode == "copy"
    assert vcs.materialized == []


def test_cycle_aborts_before_any_materialization(tmp_path: Path) -> None:
    """Test that a cyclic graph materializes nothing."""
    registry = ModuleRegistry([make_entry("A", deps=["B"]), make_entry("B", deps=["A"])])
    vcs = FakeVersionControl()

    with pytest.raises(CyclicDependencyError):
        make_controller(tmp_path, registry, vcs=vcs).install("A", InstallMode.COPY)

    assert vcs.materialized == []
    assert registry.get("A").link_state == LinkState.CATALOGED


def test_failure_midway_keeps_completed_steps(tmp_path: Path) -> None:
    """Test that a collaborator failure reports completed, failed and not-run steps."""
    registry = _chain_registry()
    vcs = FakeVersionControl(failing_modules={"events"})

    result = make_controller(tmp_path, registry, vcs=vcs).install("health", InstallMode.COPY)

    assert result.status == OperationStatus.FAILED
    assert result.exit_status == ExitStatus.COLLABORATOR_FAILURE
    assert [(s.module, s.status) for s in result.steps] == [
        ("core", StepStatus.DONE),
        ("events", StepStatus.FAILED),
    ]
    assert result.not_run == ("health",)
    assert result.failure is not None
    assert result.failure.module == "events"
    assert result.failure.step == "materialize frozen copy"
    assert registry.get("core").link_state == LinkState.COPIED
    assert registry.get("events").link_state == LinkState.CATALOGED
    # Nothing already materialized is rolled back
    assert module_dir(tmp_path, "core").is_dir()


def test_cancellation_is_checked_between_steps(tmp_path: Path) -> None:
    """Test that cancelling stops before the next module and lists the rest."""
    registry = _chain_registry()
    checks = iter([False, True])

    result = make_controller(
        tmp_path, registry, is_cancelled=lambda: next(checks)
    ).install("health", InstallMode.COPY)

    assert result.status == OperationStatus.PARTIAL
    assert [s.module for s in result.steps] == ["core"]
    assert result.not_run == ("events", "health")
    assert registry.get("core").link_state == LinkState.COPIED


def test_unresolved_dependency_installs_the_rest(tmp_path: Path) -> None:
    """Test that a missing dependency yields a partial install with diagnostics."""
    registry = ModuleRegistry(
        [make_entry("events"), make_entry("health", deps=["events", "missing"])]
    )

    result = make_controller(tmp_path, registry).install("health", InstallMode.COPY)

    assert result.status == OperationStatus.PARTIAL
    assert result.exit_status == ExitStatus.PARTIAL_SUCCESS
    assert result.plan is not None
    assert result.plan.skipped == ("health",)
    assert registry.get("events").link_state == LinkState.COPIED
    assert registry.get("health").link_state == LinkState.CATALOGED


def test_conflicted_module_refuses_install(tmp_path: Path) -> None:
    """Test that conflicted modules refuse automated transitions."""
    registry = ModuleRegistry(
        [make_entry("A", state=LinkState.CONFLICTED, mode=InstallMode.LINK)]
    )
    with pytest.raises(ConflictError):
        make_controller(tmp_path, registry).install("A", InstallMode.LINK)
