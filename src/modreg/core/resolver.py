"""Dependency graph analysis over a registry snapshot.

The resolver never mutates registry state and never blocks: it takes a
read-only snapshot (ModuleRegistry.snapshot()) and returns a ResolutionPlan.

Resolution of a target module:
1. Edges A -> B for every dependency B listed in A's manifest
2. Three-color depth-first traversal from the target; a back edge to a gray
   node is a cycle, which aborts resolution (CyclicDependencyError)
3. Postorder of the same traversal, visiting dependencies by ascending name,
   gives an install order with dependencies strictly before dependents
4. Dependencies that carry a required version are classified against the
   registered version; major drift and downgrades become warnings
5. Missing dependencies are reported as unresolved, and every module that
   transitively depends on one is skipped. Independent subtrees still resolve.
"""

import logging
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum

from modreg.core.errors import CyclicDependencyError, UnknownModuleError, VersionConflictError
from modreg.core.registry import RegistryEntry
from modreg.core.versioning import Version, VersionChange, classify

logger = logging.getLogger(__name__)


class _Color(Enum):
    WHITE = 0
    GRAY = 1
    BLACK = 2


@dataclass(frozen=True)
class DependencyEdge:
    from_module: str
    to_module: str
    required_version: Version | None


@dataclass(frozen=True)
class UnresolvedDependency:
    name: str
    required_by: str


@dataclass(frozen=True)
class VersionDriftWarning:
    module: str
    dependency: str
    required: Version
    registered: Version
    change: VersionChange

    def __str__(self) -> str:
        return (
            f"{self.module} was authored against {self.dependency} {self.required}, "
            f"registered version is {self.registered} ({self.change.value})"
        )


@dataclass(frozen=True)
class ResolutionPlan:
    """Ordered, diagnostics-annotated result of resolving a target module."""

    target: str
    install_order: tuple[str, ...]
    unresolved: tuple[UnresolvedDependency, ...] = ()
    version_drift: tuple[VersionDriftWarning, ...] = ()
    skipped: tuple[str, ...] = ()

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.unresolved or self.version_drift or self.skipped)

    @property
    def is_complete(self) -> bool:
        """True when the target itself made it into the install order."""
        return self.target in self.install_order


def dependency_edges(snapshot: Mapping[str, RegistryEntry]) -> list[DependencyEdge]:
    """All edges derived from the current manifests, sorted for stable output."""
    edges = [
        DependencyEdge(entry.name, dep.name, dep.required_version)
        for entry in snapshot.values()
        for dep in entry.manifest.dependencies
    ]
    return sorted(edges, key=lambda e: (e.from_module, e.to_module))


def resolve(
    snapshot: Mapping[str, RegistryEntry], target: str, *, strict: bool = False
) -> ResolutionPlan:
    """Produce the install plan for target.

    Args:
        snapshot: Read-only registry view
        target: Module to resolve
        strict: Treat major version drift as fatal instead of a warning

    Raises:
        UnknownModuleError: target is not registered
        CyclicDependencyError: target's dependency graph contains a cycle
        VersionConflictError: strict mode and a dependency drifted a major version
    """
    if target not in snapshot:
        raise UnknownModuleError(target)

    colors: dict[str, _Color] = {}
    postorder: list[str] = []
    unresolved: list[UnresolvedDependency] = []
    blocked: set[str] = set()
    # Gray path from the target, one (module, remaining deps) frame per level
    frames: list[tuple[str, Iterator[str]]] = []

    def enter(name: str) -> None:
        colors[name] = _Color.GRAY
        frames.append((name, iter(_sorted_deps(snapshot, name))))

    enter(target)
    while frames:
        name, deps = frames[-1]
        dep = next(deps, None)
        if dep is None:
            frames.pop()
            if any(d in blocked for d in _sorted_deps(snapshot, name)):
                blocked.add(name)
            colors[name] = _Color.BLACK
            postorder.append(name)
            continue
        if dep not in snapshot:
            unresolved.append(UnresolvedDependency(name=dep, required_by=name))
            blocked.add(name)
            continue
        color = colors.get(dep, _Color.WHITE)
        if color == _Color.GRAY:
            stack = [module for module, _ in frames]
            raise CyclicDependencyError(stack[stack.index(dep) :] + [dep])
        if color == _Color.WHITE:
            enter(dep)

    install_order = tuple(name for name in postorder if name not in blocked)
    skipped = tuple(name for name in postorder if name in blocked)
    drift = _check_versions(snapshot, postorder, strict=strict)

    plan = ResolutionPlan(
        target=target,
        install_order=install_order,
        unresolved=tuple(unresolved),
        version_drift=tuple(drift),
        skipped=skipped,
    )
    logger.debug(
        "Resolved %s: order=%s skipped=%s unresolved=%d drift=%d",
        target,
        list(install_order),
        list(skipped),
        len(unresolved),
        len(drift),
    )
    return plan


def find_cycles(snapshot: Mapping[str, RegistryEntry]) -> list[list[str]]:
    """Every cycle reachable anywhere in the registry, one path per back edge."""
    colors: dict[str, _Color] = {}
    cycles: list[list[str]] = []

    for root in sorted(snapshot):
        if colors.get(root, _Color.WHITE) != _Color.WHITE:
            continue
        colors[root] = _Color.GRAY
        frames: list[tuple[str, Iterator[str]]] = [(root, iter(_sorted_deps(snapshot, root)))]
        while frames:
            name, deps = frames[-1]
            dep = next(deps, None)
            if dep is None:
                frames.pop()
                colors[name] = _Color.BLACK
                continue
            if dep not in snapshot:
                continue
            color = colors.get(dep, _Color.WHITE)
            if color == _Color.GRAY:
                stack = [module for module, _ in frames]
                cycles.append(stack[stack.index(dep) :] + [dep])
            elif color == _Color.WHITE:
                colors[dep] = _Color.GRAY
                frames.append((dep, iter(_sorted_deps(snapshot, dep))))
    return cycles


def _sorted_deps(snapshot: Mapping[str, RegistryEntry], name: str) -> list[str]:
    return sorted(set(snapshot[name].manifest.dependency_names))


def _check_versions(
    snapshot: Mapping[str, RegistryEntry], modules: list[str], *, strict: bool
) -> list[VersionDriftWarning]:
    warnings: list[VersionDriftWarning] = []
    for name in modules:
        for dep in snapshot[name].manifest.dependencies:
            if dep.required_version is None or dep.name not in snapshot:
                continue
            registered = snapshot[dep.name].manifest.version
            change = classify(dep.required_version, registered)
            if not change.needs_warning:
                continue
            if strict and change == VersionChange.MAJOR:
                raise VersionConflictError(
                    name, dep.name, str(dep.required_version), str(registered)
                )
            warnings.append(
                VersionDriftWarning(
                    module=name,
                    dependency=dep.name,
                    required=dep.required_version,
                    registered=registered,
                    change=change,
                )
            )
    return warnings
