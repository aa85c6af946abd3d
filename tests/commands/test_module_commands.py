"""CLI tests for the modreg commands.

These tests drive the click commands with an in-memory registry store and
fake collaborators. The lifecycle rules themselves are covered in
tests/core/operations/; this file checks wiring, output and exit codes.
"""

import json
from pathlib import Path

from click.testing import CliRunner

from modreg.cli.cli import cli
from modreg.core.context import ModRegContext
from modreg.core.registry import InstallMode, LinkState, SourceReference
from modreg.core.registry_store import InMemoryRegistryStore
from tests.fakes.hosting import FakeHosting
from tests.fakes.vcs import FakeVersionControl
from tests.test_utils.controllers import materialize_on_disk
from tests.test_utils.modules import make_entry, manifest_doc, remote_for


def _invoke(ctx: ModRegContext, args: list[str], input: str | None = None):
    runner = CliRunner()
    return runner.invoke(cli, args, obj=ctx, input=input)


# ============================================================================
# add / list
# ============================================================================


def test_add_registers_from_folder(tmp_path: Path) -> None:
    """Test that add accepts the module folder and catalogs it."""
    folder = tmp_path / "downloads" / "health"
    folder.mkdir(parents=True)
    (folder / "README.md").write_text(manifest_doc("health"), encoding="utf-8")
    store = InMemoryRegistryStore()
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(
        ctx,
        ["add", str(folder), "-c", "systems", "-s", f"{remote_for('health')}@v1.0.0", "--format", "json"],
    )

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["operation"] == "register"
    assert data["status"] == "success"
    entry = store.registry.get("health")
    assert entry.source == SourceReference(remote_for("health"), "v1.0.0")
    assert entry.link_state == LinkState.CATALOGED


def test_add_malformed_manifest_fails_with_state_error(tmp_path: Path) -> None:
    """Test that parse errors are reported without registering anything."""
    readme = tmp_path / "health" / "README.md"
    readme.parent.mkdir()
    readme.write_text(manifest_doc("health", version="one"), encoding="utf-8")
    store = InMemoryRegistryStore()
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["add", str(readme), "-c", "systems", "-s", remote_for("health")])

    assert result.exit_code == 4
    assert "Malformed version string" in result.output
    assert len(store.registry) == 0


def test_list_empty(tmp_path: Path) -> None:
    """Test the message shown for an empty catalog."""
    ctx = ModRegContext.for_test(cwd=tmp_path)

    result = _invoke(ctx, ["list"])

    assert result.exit_code == 0
    assert "No modules registered" in result.output


def test_list_json_filters_by_category(tmp_path: Path) -> None:
    """Test the JSON listing with a category filter."""
    store = InMemoryRegistryStore(
        [make_entry("health"), make_entry("hud", category="ui"), make_entry("events")]
    )
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["list", "--category", "systems", "--format", "json"])

    assert result.exit_code == 0
    names = [module["name"] for module in json.loads(result.output)["modules"]]
    assert names == ["events", "health"]


def test_list_text_renders_table(tmp_path: Path) -> None:
    """Test that the table shows each module and its state."""
    store = InMemoryRegistryStore(
        [make_entry("health", state=LinkState.COPIED, mode=InstallMode.COPY)]
    )
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["list"])

    assert result.exit_code == 0
    assert "health" in result.output
    assert "copied" in result.output


# ============================================================================
# plan / install
# ============================================================================


def test_plan_text_shows_order(tmp_path: Path) -> None:
    """Test that plan prints the install order, dependencies first."""
    store = InMemoryRegistryStore([make_entry("core"), make_entry("events", deps=["core"])])
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["plan", "events"])

    assert result.exit_code == 0
    assert result.output.index("1. core") < result.output.index("2. events")


def test_plan_with_unresolved_dependency_exits_partial(tmp_path: Path) -> None:
    """Test that diagnostics give exit status 1."""
    store = InMemoryRegistryStore([make_entry("health", deps=["missing"])])
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["plan", "health", "--format", "json"])

    assert result.exit_code == 1
    data = json.loads(result.output)
    assert data["unresolved"] == [{"name": "missing", "required_by": "health"}]
    assert data["skipped"] == ["health"]


def test_plan_strict_fails_on_major_drift(tmp_path: Path) -> None:
    """Test that --strict turns major drift into a fatal resolution error."""
    store = InMemoryRegistryStore(
        [make_entry("core", version="2.0.0"), make_entry("events", deps=["core@1.0.0"])]
    )
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["plan", "events", "--strict", "--format", "json"])

    assert result.exit_code == 2
    assert json.loads(result.output)["error_type"] == "VersionConflictError"


def test_install_copies_and_persists(tmp_path: Path) -> None:
    """Test a copy install end to end."""
    store = InMemoryRegistryStore([make_entry("core"), make_entry("events", deps=["core"])])
    vcs = FakeVersionControl()
    ctx = ModRegContext.for_test(vcs=vcs, registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["install", "events", "--format", "json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [(s["module"], s["action"]) for s in data["steps"]] == [("core", "copy"), ("events", "copy")]
    assert data["plan"]["install_order"] == ["core", "events"]
    assert store.registry.get("events").link_state == LinkState.COPIED
    assert [kind for kind, _, _ in vcs.materialized] == ["frozen", "frozen"]


def test_install_link_flag(tmp_path: Path) -> None:
    """Test that --link installs linked mirrors."""
    store = InMemoryRegistryStore([make_entry("core")])
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["install", "core", "--link"])

    assert result.exit_code == 0, result.output
    assert "link core" in result.output
    assert store.registry.get("core").link_state == LinkState.LINKED_ATTACHED


def test_install_cycle_exits_2(tmp_path: Path) -> None:
    """Test that a cycle is fatal and reported with its path."""
    store = InMemoryRegistryStore([make_entry("A", deps=["B"]), make_entry("B", deps=["A"])])
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["install", "A"])

    assert result.exit_code == 2
    assert "cycle: A -> B -> A" in result.output
    assert store.registry.get("A").link_state == LinkState.CATALOGED


def test_install_collaborator_failure_exits_3_and_keeps_progress(tmp_path: Path) -> None:
    """Test that completed steps are persisted when a later step fails."""
    store = InMemoryRegistryStore(
        [make_entry("core"), make_entry("events", deps=["core"]), make_entry("health", deps=["events"])]
    )
    vcs = FakeVersionControl(failing_modules={"events"})
    ctx = ModRegContext.for_test(vcs=vcs, registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["install", "health", "--format", "json"])

    assert result.exit_code == 3
    data = json.loads(result.output)
    assert data["status"] == "failed"
    assert data["not_run"] == ["health"]
    assert store.registry.get("core").link_state == LinkState.COPIED
    assert store.registry.get("events").link_state == LinkState.CATALOGED


def test_install_unknown_module_exits_4(tmp_path: Path) -> None:
    """Test the text error for an unregistered module."""
    ctx = ModRegContext.for_test(cwd=tmp_path)

    result = _invoke(ctx, ["install", "ghost"])

    assert result.exit_code == 4
    assert "Error: Module 'ghost' is not registered" in result.output


# ============================================================================
# update / sync / resolve
# ============================================================================


def test_update_copy_declined_at_prompt(tmp_path: Path) -> None:
    """Test that answering no leaves the copy untouched."""
    store = InMemoryRegistryStore(
        [make_entry("health", state=LinkState.COPIED, mode=InstallMode.COPY)]
    )
    folder = materialize_on_disk(tmp_path, "health", manifest_doc("health"))
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["update", "health"], input="n\n")

    assert result.exit_code == 1
    assert "declined" in result.output
    assert (folder / "README.md").exists()
    assert store.registry.get("health").link_state == LinkState.COPIED


def test_update_linked_reports_major_warning(tmp_path: Path) -> None:
    """Test that a major version change is surfaced in the JSON result."""
    store = InMemoryRegistryStore(
        [make_entry("health", version="1.2.0", state=LinkState.LINKED_ATTACHED, mode=InstallMode.LINK)]
    )
    materialize_on_disk(tmp_path, "health", manifest_doc("health", version="1.2.0"))
    vcs = FakeVersionControl(pulled_manifests={"health": manifest_doc("health", version="2.0.0")})
    ctx = ModRegContext.for_test(vcs=vcs, registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["update", "health", "--format", "json"])

    assert result.exit_code == 0, result.output
    warnings = json.loads(result.output)["warnings"]
    assert warnings == [
        {"module": "health", "old_version": "1.2.0", "new_version": "2.0.0", "change": "major"}
    ]
    assert str(store.registry.get("health").manifest.version) == "2.0.0"


def test_sync_conflict_then_resolve(tmp_path: Path) -> None:
    """Test that a rejected push exits 4, persists the conflict, and resolve clears it."""
    store = InMemoryRegistryStore(
        [make_entry("health", state=LinkState.MODIFIED, mode=InstallMode.LINK)]
    )
    vcs = FakeVersionControl(dirty_modules={"health"}, push_conflicts={"health"})
    ctx = ModRegContext.for_test(vcs=vcs, registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["sync", "health", "-m", "Tune regen"])

    assert result.exit_code == 4
    assert "modreg resolve health" in result.output
    assert store.registry.get("health").link_state == LinkState.CONFLICTED
    assert vcs.pushes[0][1] == "Tune regen"

    blocked = _invoke(ctx, ["update", "health", "--format", "json"])
    assert blocked.exit_code == 4
    assert json.loads(blocked.output)["error_type"] == "ConflictError"

    resolved = _invoke(ctx, ["resolve", "health"])
    assert resolved.exit_code == 0
    assert store.registry.get("health").link_state == LinkState.MODIFIED


def test_sync_detached_without_fast_forward_exits_4(tmp_path: Path) -> None:
    """Test the detached-revision refusal."""
    store = InMemoryRegistryStore(
        [make_entry("health", state=LinkState.LINKED_DETACHED, mode=InstallMode.LINK)]
    )
    vcs = FakeVersionControl(detached_modules={"health"})
    ctx = ModRegContext.for_test(vcs=vcs, registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["sync", "health", "--format", "json"])

    assert result.exit_code == 4
    assert json.loads(result.output)["error_type"] == "DetachedHeadUnresolvedError"
    assert vcs.pushes == []


# ============================================================================
# extract / remove / status
# ============================================================================


def test_extract_publishes_folder(tmp_path: Path) -> None:
    """Test the extract command end to end."""
    folder = tmp_path / "scenes" / "inventory"
    folder.mkdir(parents=True)
    hosting = FakeHosting()
    store = InMemoryRegistryStore()
    ctx = ModRegContext.for_test(hosting=hosting, registry_store=store, cwd=tmp_path)

    result = _invoke(
        ctx, ["extract", str(folder), "-c", "systems", "--visibility", "private", "--format", "json"]
    )

    assert result.exit_code == 0, result.output
    actions = [s["action"] for s in json.loads(result.output)["steps"]]
    assert actions == ["provision", "write manifest", "push", "register", "move aside", "link"]
    assert hosting.provisioned == [("test-org/inventory", "private")]
    assert store.registry.get("inventory").link_state == LinkState.LINKED_ATTACHED


def test_extract_existing_remote_exits_4(tmp_path: Path) -> None:
    """Test that an existing remote aborts with no registry entry."""
    folder = tmp_path / "scenes" / "inventory"
    folder.mkdir(parents=True)
    store = InMemoryRegistryStore()
    ctx = ModRegContext.for_test(
        hosting=FakeHosting(existing_remotes={"test-org/inventory"}),
        registry_store=store,
        cwd=tmp_path,
    )

    result = _invoke(ctx, ["extract", str(folder), "-c", "systems"])

    assert result.exit_code == 4
    assert "already exists" in result.output
    assert len(store.registry) == 0


def test_remove_with_dependents_exits_4(tmp_path: Path) -> None:
    """Test that the dependents are named and nothing is removed."""
    store = InMemoryRegistryStore([make_entry("events"), make_entry("health", deps=["events"])])
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["remove", "events"])

    assert result.exit_code == 4
    assert "required by: health" in result.output
    assert "events" in store.registry


def test_remove_prints_autoload_checklist(tmp_path: Path) -> None:
    """Test that autoloads to clean up are listed after removal."""
    store = InMemoryRegistryStore(
        [make_entry("events", autoloads={"EventBus": "res://modules/systems/events/bus.gd"})]
    )
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["remove", "events"])

    assert result.exit_code == 0, result.output
    assert "Manual follow-up:" in result.output
    assert "Remove autoload 'EventBus'" in result.output
    assert "events" not in store.registry


def test_status_refreshes_and_persists(tmp_path: Path) -> None:
    """Test that status corrects a stale link state and saves it."""
    store = InMemoryRegistryStore(
        [
            make_entry("health", state=LinkState.LINKED_ATTACHED, mode=InstallMode.LINK),
            make_entry("events"),
        ]
    )
    materialize_on_disk(tmp_path, "health", manifest_doc("health"))
    vcs = FakeVersionControl(dirty_modules={"health"})
    ctx = ModRegContext.for_test(vcs=vcs, registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["status", "--format", "json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert [s["detail"] for s in data["refreshed"]] == ["linked-attached -> modified"]
    assert data["cycles"] == []
    assert data["dependents"] is None
    assert store.registry.get("health").link_state == LinkState.MODIFIED


def test_status_single_module_shows_dependents(tmp_path: Path) -> None:
    """Test the detail view of one module."""
    store = InMemoryRegistryStore([make_entry("events"), make_entry("health", deps=["events"])])
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["status", "events"])

    assert result.exit_code == 0, result.output
    assert "required by:  health" in result.output
    assert "state:        cataloged" in result.output


def test_status_reports_cycles(tmp_path: Path) -> None:
    """Test that cycles anywhere in the registry are shown."""
    store = InMemoryRegistryStore([make_entry("A", deps=["B"]), make_entry("B", deps=["A"])])
    ctx = ModRegContext.for_test(registry_store=store, cwd=tmp_path)

    result = _invoke(ctx, ["status", "--format", "json"])

    assert json.loads(result.output)["cycles"] == [["A", "B", "A"]]
