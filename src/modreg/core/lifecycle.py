"""Lifecycle state machine for registered modules.

The controller is the only place that decides whether a transition is legal.
It mutates the ModuleRegistry it was given and drives the version control,
hosting and filesystem collaborators; persistence is the caller's concern
(see RegistryStore.transaction).

Multi-step operations commit step by step. When a collaborator fails partway
through install or extract, the steps that already ran keep their new state
and the result lists the failed step and everything that never ran. Nothing
is rolled back.
"""

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from modreg.core.errors import (
    AlreadyInstalledError,
    CollaboratorFailure,
    ConflictError,
    DetachedHeadUnresolvedError,
    DuplicateModuleError,
    HasDependentsError,
    InvalidTransitionError,
    RemoteAlreadyExistsError,
    StateError,
    UncommittedChangesError,
)
from modreg.core.filesystem.abc import FileSystem
from modreg.core.global_config import GlobalConfig
from modreg.core.hosting.abc import Hosting, Visibility
from modreg.core.layout import ProjectLayout
from modreg.core.manifest import (
    MANIFEST_FILENAME,
    ModuleManifest,
    default_manifest,
    parse_manifest,
    render_manifest,
)
from modreg.core.registry import (
    InstallMode,
    LinkState,
    ModuleRegistry,
    RegistryEntry,
    SourceReference,
)
from modreg.core.resolver import ResolutionPlan, resolve
from modreg.core.results import (
    MajorVersionWarning,
    OperationResult,
    OperationStatus,
    StepRecord,
    StepStatus,
)
from modreg.core.vcs.abc import PushOutcome, VersionControl
from modreg.core.versioning import classify

logger = logging.getLogger(__name__)

T = TypeVar("T")

ConfirmFn = Callable[[str], bool]

# States whose folder is an editable mirror of the remote
_MIRROR_STATES = (
    LinkState.LINKED_ATTACHED,
    LinkState.LINKED_DETACHED,
    LinkState.MODIFIED,
    LinkState.CONFLICTED,
)


def _never_cancelled() -> bool:
    return False


class LifecycleController:
    """Drives modules through cataloged, copied, linked, modified and conflicted."""

    def __init__(
        self,
        registry: ModuleRegistry,
        vcs: VersionControl,
        hosting: Hosting,
        filesystem: FileSystem,
        layout: ProjectLayout,
        config: GlobalConfig,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> None:
        self._registry = registry
        self._vcs = vcs
        self._hosting = hosting
        self._fs = filesystem
        self._layout = layout
        self._config = config
        self._is_cancelled = is_cancelled or _never_cancelled

    @property
    def registry(self) -> ModuleRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def plan(self, name: str) -> ResolutionPlan:
        """Resolve name against the current registry without changing anything."""
        return resolve(self._registry.snapshot(), name, strict=self._config.strict_versions)

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def register(self, category: str, manifest_path: Path, source: SourceReference) -> OperationResult:
        """Catalog a module from its manifest document.

        The module name is the name of the folder holding the document; a
        manifest declaring a different name is rejected.
        """
        expected_name = manifest_path.parent.name
        text = self._call("read manifest", expected_name, self._fs.read_text, manifest_path)
        manifest = parse_manifest(text, expected_name=expected_name, expected_category=category)
        entry = self._registry.register(category, manifest, source)
        return OperationResult(
            operation="register",
            module=entry.name,
            status=OperationStatus.SUCCESS,
            steps=(StepRecord(entry.name, "register", StepStatus.DONE, detail=str(source)),),
        )

    # ------------------------------------------------------------------
    # Install
    # ------------------------------------------------------------------

    def install(self, name: str, mode: InstallMode) -> OperationResult:
        """Materialize name and every dependency it needs, dependencies first.

        Raises:
            UnknownModuleError: name is not registered
            ConflictError: name is conflicted
            AlreadyInstalledError: name is materialized with the other mode
            CyclicDependencyError: resolution found a cycle (nothing materialized)
        """
        entry = self._registry.get(name)
        self._refuse_conflicted(entry, "install")
        if entry.is_materialized and entry.mode is not None and entry.mode != mode:
            raise AlreadyInstalledError(name, entry.mode.value, mode.value)

        plan = self.plan(name)
        order = list(plan.install_order)
        steps: list[StepRecord] = []
        action = "copy" if mode == InstallMode.COPY else "link"

        for index, module in enumerate(order):
            if self._is_cancelled():
                logger.debug("Install of %s cancelled before %s", name, module)
                return OperationResult(
                    operation="install",
                    module=name,
                    status=OperationStatus.PARTIAL,
                    steps=tuple(steps),
                    not_run=tuple(order[index:]),
                    plan=plan,
                )

            current = self._registry.get(module)
            if current.is_materialized:
                steps.append(
                    StepRecord(
                        module, action, StepStatus.ALREADY_SATISFIED, detail=current.link_state.value
                    )
                )
                continue

            try:
                self._materialize(current, mode)
            except CollaboratorFailure as failure:
                logger.debug("Install of %s stopped at %s: %s", name, module, failure.cause)
                steps.append(StepRecord(module, action, StepStatus.FAILED, detail=str(failure.cause)))
                return OperationResult(
                    operation="install",
                    module=name,
                    status=OperationStatus.FAILED,
                    steps=tuple(steps),
                    not_run=tuple(order[index + 1 :]),
                    plan=plan,
                    failure=failure,
                )

            state = LinkState.COPIED if mode == InstallMode.COPY else LinkState.LINKED_ATTACHED
            self._registry.update_link_state(module, state, mode=mode)
            steps.append(StepRecord(module, action, StepStatus.DONE))

        status = OperationStatus.PARTIAL if plan.has_diagnostics else OperationStatus.SUCCESS
        return OperationResult(
            operation="install", module=name, status=status, steps=tuple(steps), plan=plan
        )

    def _materialize(self, entry: RegistryEntry, mode: InstallMode) -> None:
        dest = self._layout.module_dir(entry.category, entry.name)
        if mode == InstallMode.COPY:
            self._call("materialize frozen copy", entry.name, self._vcs.materialize_frozen, entry.source, dest)
        else:
            self._call("materialize linked mirror", entry.name, self._vcs.materialize_linked, entry.source, dest)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, name: str, *, confirm: ConfirmFn) -> OperationResult:
        """Bring a materialized module up to date with its source.

        Linked mirrors pull the latest mainline. Copies are deleted and copied
        again, which discards local edits, so confirm() must agree first.

        Raises:
            UnknownModuleError: name is not registered
            ConflictError: name is conflicted
            InvalidTransitionError: name is not copied or linked
        """
        entry = self._registry.get(name)
        self._refuse_conflicted(entry, "update")
        if entry.link_state.is_linked:
            return self._update_linked(entry)
        if entry.link_state == LinkState.COPIED:
            return self._update_copied(entry, confirm)
        raise InvalidTransitionError(name, "update", entry.link_state.value)

    def _update_linked(self, entry: RegistryEntry) -> OperationResult:
        dest = self._layout.module_dir(entry.category, entry.name)
        self._call("pull latest", entry.name, self._vcs.pull_latest, dest)
        manifest = self._read_module_manifest(entry)
        warnings = _version_warnings(entry.manifest, manifest)

        on_mainline = self._call(
            "inspect working revision", entry.name, self._vcs.current_revision_is_mainline, dest
        )
        state = LinkState.LINKED_ATTACHED if on_mainline else LinkState.LINKED_DETACHED
        self._registry.replace_manifest(entry.name, manifest)
        self._registry.update_link_state(entry.name, state)

        return OperationResult(
            operation="update",
            module=entry.name,
            status=OperationStatus.SUCCESS,
            steps=(
                StepRecord(
                    entry.name,
                    "pull",
                    StepStatus.DONE,
                    detail=f"{entry.manifest.version} -> {manifest.version}",
                ),
            ),
            warnings=warnings,
        )

    def _update_copied(self, entry: RegistryEntry, confirm: ConfirmFn) -> OperationResult:
        dest = self._layout.module_dir(entry.category, entry.name)
        prompt = f"Replace the copy of '{entry.name}' at {dest}? Local edits will be lost."
        if not confirm(prompt):
            logger.debug("Update of %s declined", entry.name)
            return OperationResult(
                operation="update", module=entry.name, status=OperationStatus.DECLINED
            )

        self._call("delete module folder", entry.name, self._fs.delete, dest)
        steps = [StepRecord(entry.name, "delete", StepStatus.DONE)]
        try:
            self._call(
                "materialize frozen copy", entry.name, self._vcs.materialize_frozen, entry.source, dest
            )
        except CollaboratorFailure as failure:
            # The old copy is gone, so the module is back to cataloged
            self._registry.update_link_state(entry.name, LinkState.CATALOGED)
            steps.append(StepRecord(entry.name, "copy", StepStatus.FAILED, detail=str(failure.cause)))
            return OperationResult(
                operation="update",
                module=entry.name,
                status=OperationStatus.FAILED,
                steps=tuple(steps),
                failure=failure,
            )

        manifest = self._read_module_manifest(entry)
        warnings = _version_warnings(entry.manifest, manifest)
        self._registry.replace_manifest(entry.name, manifest)
        steps.append(
            StepRecord(
                entry.name,
                "copy",
                StepStatus.DONE,
                detail=f"{entry.manifest.version} -> {manifest.version}",
            )
        )
        return OperationResult(
            operation="update",
            module=entry.name,
            status=OperationStatus.SUCCESS,
            steps=tuple(steps),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Extract and publish
    # ------------------------------------------------------------------

    def extract_and_publish(
        self, source_path: Path, category: str, *, visibility: Visibility | None = None
    ) -> OperationResult:
        """Publish a plain project folder as a new module and link it back in place.

        The module name is the folder name. A missing manifest document is
        generated with version 1.0.0. The original folder is moved to
        .modreg/extracted/<name>, never deleted.

        Raises:
            DuplicateModuleError: A module with the folder's name is registered
            RemoteAlreadyExistsError: The remote already exists (no entry created)
            CollaboratorFailure: Hosting is not authenticated, or a step before
                the remote was provisioned failed. Later failures are returned as
                a FAILED result whose provision step names the new remote.
        """
        name = source_path.name
        existing = self._registry.lookup(name)
        if existing is not None:
            raise DuplicateModuleError(name, str(existing.source), str(source_path))
        if not self._fs.exists(source_path):
            raise StateError(f"Source folder not found: {source_path}", module=name, phase="extract")

        manifest_path = source_path / MANIFEST_FILENAME
        generated = not self._fs.exists(manifest_path)
        if generated:
            manifest = default_manifest(name, category)
        else:
            text = self._call("read manifest", name, self._fs.read_text, manifest_path)
            manifest = parse_manifest(text, expected_name=name, expected_category=category)

        if not self._call("check hosting authentication", name, self._hosting.authenticated):
            raise CollaboratorFailure(
                "check hosting authentication", "hosting CLI is not authenticated", module=name
            )
        if self._config.organization is None:
            raise StateError(
                "No organization configured for new remotes; set 'organization' in the global config",
                module=name,
                phase="extract",
            )

        full_name = f"{self._config.organization}/{name}"
        if self._call("check remote", name, self._hosting.remote_exists, full_name):
            raise RemoteAlreadyExistsError(full_name, module=name)

        source = self._call(
            "provision remote",
            name,
            self._hosting.provision,
            full_name,
            visibility or self._config.default_visibility,
        )
        steps = [StepRecord(name, "provision", StepStatus.DONE, detail=str(source))]
        logger.debug("Provisioned %s at %s", full_name, source)

        # The remote now exists, so failures are reported with the source to resume from
        pending = (["write manifest"] if generated else []) + ["push", "register", "link"]
        try:
            if generated:
                self._call(
                    "write default manifest",
                    name,
                    self._fs.write_text,
                    manifest_path,
                    render_manifest(manifest),
                )
                steps.append(StepRecord(name, pending.pop(0), StepStatus.DONE))
            self._call("push initial commit", name, self._vcs.push_initial, source_path, source)
            steps.append(StepRecord(name, pending.pop(0), StepStatus.DONE))
        except CollaboratorFailure as failure:
            logger.warning("%s: remote %s provisioned but %s failed", name, full_name, failure.step)
            steps.append(
                StepRecord(name, pending.pop(0), StepStatus.FAILED, detail=str(failure.cause))
            )
            return OperationResult(
                operation="extract",
                module=name,
                status=OperationStatus.FAILED,
                steps=tuple(steps),
                not_run=tuple(pending),
                failure=failure,
            )

        self._registry.register(category, manifest, source)
        steps.append(StepRecord(name, "register", StepStatus.DONE))

        # From here on the entry exists, so failures are reported, not raised
        extracted = self._layout.extracted_dir / name
        dest = self._layout.module_dir(category, name)
        try:
            self._call("move source folder aside", name, self._fs.move, source_path, extracted)
            steps.append(StepRecord(name, "move aside", StepStatus.DONE, detail=str(extracted)))
            self._call("materialize linked mirror", name, self._vcs.materialize_linked, source, dest)
        except CollaboratorFailure as failure:
            moved = failure.step != "move source folder aside"
            steps.append(
                StepRecord(
                    name,
                    "link" if moved else "move aside",
                    StepStatus.FAILED,
                    detail=str(failure.cause),
                )
            )
            return OperationResult(
                operation="extract",
                module=name,
                status=OperationStatus.FAILED,
                steps=tuple(steps),
                not_run=() if moved else ("link",),
                failure=failure,
            )
        steps.append(StepRecord(name, "link", StepStatus.DONE))

        self._registry.update_link_state(name, LinkState.LINKED_ATTACHED, mode=InstallMode.LINK)
        return OperationResult(
            operation="extract", module=name, status=OperationStatus.SUCCESS, steps=tuple(steps)
        )

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def sync(self, name: str, *, message: str | None = None) -> OperationResult:
        """Commit and push local edits of a linked mirror.

        A detached mirror is first returned to mainline, but only when that
        is a fast-forward; otherwise DetachedHeadUnresolvedError is raised and
        nothing changes. A push the remote rejects leaves the module conflicted.

        Raises:
            UnknownModuleError: name is not registered
            ConflictError: name is conflicted
            InvalidTransitionError: name is a copy or not materialized
            DetachedHeadUnresolvedError: detached revision is not a fast-forward
        """
        entry = self._registry.get(name)
        self._refuse_conflicted(entry, "sync")
        if entry.link_state not in _MIRROR_STATES:
            raise InvalidTransitionError(name, "sync", entry.link_state.value)

        dest = self._layout.module_dir(entry.category, name)
        steps: list[StepRecord] = []
        state = entry.link_state

        if state == LinkState.LINKED_ATTACHED:
            if not self._call("inspect working tree", name, self._vcs.working_tree_dirty, dest):
                return OperationResult(
                    operation="sync",
                    module=name,
                    status=OperationStatus.SUCCESS,
                    steps=(StepRecord(name, "push", StepStatus.ALREADY_SATISFIED, detail="no local changes"),),
                )
            self._registry.update_link_state(name, LinkState.MODIFIED)
            state = LinkState.MODIFIED

        detached = state == LinkState.LINKED_DETACHED or not self._call(
            "inspect working revision", name, self._vcs.current_revision_is_mainline, dest
        )
        if detached:
            if not self._call("return to mainline", name, self._vcs.force_mainline, dest):
                raise DetachedHeadUnresolvedError(name)
            steps.append(StepRecord(name, "return to mainline", StepStatus.DONE))

        outcome = self._call(
            "commit and push", name, self._vcs.commit_and_push, dest, message or f"Sync {name}"
        )
        if outcome == PushOutcome.CONFLICT:
            self._registry.update_link_state(name, LinkState.CONFLICTED)
            steps.append(StepRecord(name, "push", StepStatus.FAILED, detail="remote rejected the push"))
            return OperationResult(
                operation="sync", module=name, status=OperationStatus.CONFLICTED, steps=tuple(steps)
            )

        self._registry.update_link_state(name, LinkState.LINKED_ATTACHED)
        steps.append(StepRecord(name, "push", StepStatus.DONE))
        return OperationResult(
            operation="sync", module=name, status=OperationStatus.SUCCESS, steps=tuple(steps)
        )

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove(self, name: str, *, force: bool = False) -> OperationResult:
        """Delete a module's folder and its registry entry.

        Autoload registrations live in consumer configuration this tool does
        not own, so they are returned as a checklist instead of being removed.

        Raises:
            UnknownModuleError: name is not registered
            HasDependentsError: another registered module depends on name
            UncommittedChangesError: linked mirror has local changes and not force
        """
        entry = self._registry.get(name)
        dependents = self._registry.dependents_of(name)
        if dependents:
            raise HasDependentsError(name, dependents)

        dest = self._layout.module_dir(entry.category, name)
        steps: list[StepRecord] = []
        if entry.link_state in _MIRROR_STATES and not force and self._fs.exists(dest):
            if self._call("inspect working tree", name, self._vcs.working_tree_dirty, dest):
                raise UncommittedChangesError(name)

        if entry.is_materialized:
            self._call("delete module folder", name, self._fs.delete, dest)
            steps.append(StepRecord(name, "delete", StepStatus.DONE, detail=str(dest)))

        self._registry.remove(name)
        steps.append(StepRecord(name, "unregister", StepStatus.DONE))

        checklist = tuple(
            f"Remove autoload '{key}' ({path})" for key, path in sorted(entry.manifest.autoloads.items())
        )
        return OperationResult(
            operation="remove",
            module=name,
            status=OperationStatus.SUCCESS,
            steps=tuple(steps),
            checklist=checklist,
        )

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def refresh(self, name: str | None = None) -> OperationResult:
        """Re-detect attached, detached and modified for linked mirrors.

        Conflicted modules are left alone; only resolve_conflict clears them.
        """
        entries = [self._registry.get(name)] if name is not None else self._registry.list_all()
        steps: list[StepRecord] = []
        for entry in entries:
            if entry.link_state not in _MIRROR_STATES or entry.link_state == LinkState.CONFLICTED:
                continue
            dest = self._layout.module_dir(entry.category, entry.name)
            if not self._fs.exists(dest):
                logger.debug("Skipping refresh of %s: %s is missing", entry.name, dest)
                continue

            detected = self._detect_mirror_state(entry.name, dest)
            if detected != entry.link_state:
                self._registry.update_link_state(entry.name, detected)
                steps.append(
                    StepRecord(
                        entry.name,
                        "refresh",
                        StepStatus.DONE,
                        detail=f"{entry.link_state.value} -> {detected.value}",
                    )
                )
        return OperationResult(
            operation="refresh",
            module=name or "*",
            status=OperationStatus.SUCCESS,
            steps=tuple(steps),
        )

    def resolve_conflict(self, name: str) -> OperationResult:
        """Clear the conflicted state after the user reconciled the mirror by hand."""
        entry = self._registry.get(name)
        if entry.link_state != LinkState.CONFLICTED:
            raise InvalidTransitionError(name, "resolve", entry.link_state.value)

        dest = self._layout.module_dir(entry.category, name)
        dirty = self._call("inspect working tree", name, self._vcs.working_tree_dirty, dest)
        state = LinkState.MODIFIED if dirty else LinkState.LINKED_ATTACHED
        self._registry.update_link_state(name, state)
        return OperationResult(
            operation="resolve",
            module=name,
            status=OperationStatus.SUCCESS,
            steps=(StepRecord(name, "resolve", StepStatus.DONE, detail=state.value),),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _detect_mirror_state(self, name: str, dest: Path) -> LinkState:
        if self._call("inspect working tree", name, self._vcs.working_tree_dirty, dest):
            return LinkState.MODIFIED
        if self._call("inspect working revision", name, self._vcs.current_revision_is_mainline, dest):
            return LinkState.LINKED_ATTACHED
        return LinkState.LINKED_DETACHED

    def _read_module_manifest(self, entry: RegistryEntry) -> ModuleManifest:
        path = self._layout.module_manifest(entry.category, entry.name)
        text = self._call("read manifest", entry.name, self._fs.read_text, path)
        return parse_manifest(text, expected_name=entry.name, expected_category=entry.category)

    def _refuse_conflicted(self, entry: RegistryEntry, operation: str) -> None:
        if entry.link_state == LinkState.CONFLICTED:
            raise ConflictError(entry.name, operation)

    def _call(self, step: str, module: str, fn: Callable[..., T], *args: object) -> T:
        """Run a collaborator call, turning its failures into CollaboratorFailure."""
        logger.debug("%s: %s", module, step)
        try:
            return fn(*args)
        except (RuntimeError, OSError) as e:
            raise CollaboratorFailure(step, e, module=module) from e


def _version_warnings(old: ModuleManifest, new: ModuleManifest) -> tuple[MajorVersionWarning, ...]:
    change = classify(old.version, new.version)
    if not change.needs_warning:
        return ()
    return (
        MajorVersionWarning(
            module=new.name, old_version=old.version, new_version=new.version, change=change
        ),
    )
