"""In-memory module registry.

The registry is a dumb store: it owns every RegistryEntry, enforces identity
(one entry per module name) and the dependents check on removal, and nothing
else. Transition legality belongs to the LifecycleController.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType

from modreg.core.errors import DuplicateModuleError, HasDependentsError, UnknownModuleError
from modreg.core.manifest import ModuleManifest

logger = logging.getLogger(__name__)


class LinkState(Enum):
    """Materialization state of a module in the consuming project."""

    CATALOGED = "cataloged"  # Known, not materialized
    COPIED = "copied"  # Frozen snapshot
    LINKED_ATTACHED = "linked-attached"  # Editable mirror on mainline
    LINKED_DETACHED = "linked-detached"  # Editable mirror off mainline
    MODIFIED = "modified"  # Local edits pending
    CONFLICTED = "conflicted"  # Sync could not be reconciled

    @property
    def is_linked(self) -> bool:
        return self in (LinkState.LINKED_ATTACHED, LinkState.LINKED_DETACHED)


class InstallMode(Enum):
    COPY = "copy"
    LINK = "link"


@dataclass(frozen=True)
class SourceReference:
    """Where a module can be fetched from: remote address plus optional revision."""

    remote: str
    revision: str | None = None

    def __str__(self) -> str:
        if self.revision is None:
            return self.remote
        return f"{self.remote}@{self.revision}"

    @staticmethod
    def parse(text: str) -> "SourceReference":
        """Parse 'remote' or 'remote@revision'.

        An '@' inside the host part of scp-style remotes (git@host:org/repo)
        is not a revision separator.
        """
        head, sep, tail = text.rpartition("@")
        if not sep or not head or ":" in tail or "/" in tail:
            return SourceReference(remote=text)
        return SourceReference(remote=head, revision=tail)


@dataclass(frozen=True)
class RegistryEntry:
    """One cataloged or installed module."""

    manifest: ModuleManifest
    category: str
    link_state: LinkState
    source: SourceReference
    mode: InstallMode | None = None

    @property
    def name(self) -> str:
        return self.manifest.name

    @property
    def is_materialized(self) -> bool:
        return self.link_state != LinkState.CATALOGED


class ModuleRegistry:
    """Authoritative mapping from module name to RegistryEntry."""

    def __init__(self, entries: list[RegistryEntry] | None = None) -> None:
        self._entries: dict[str, RegistryEntry] = {}
        for entry in entries or []:
            self._entries[entry.name] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def register(
        self, category: str, manifest: ModuleManifest, source: SourceReference
    ) -> RegistryEntry:
        """Add a module to the catalog in the cataloged state.

        Re-registering the same name with the same source is idempotent: the
        existing entry keeps its link state and picks up the given manifest.

        Raises:
            DuplicateModuleError: Name already registered from another source
        """
        existing = self._entries.get(manifest.name)
        if existing is not None:
            if existing.source != source:
                raise DuplicateModuleError(manifest.name, str(existing.source), str(source))
            logger.debug("Module %s already registered from %s", manifest.name, source)
            refreshed = replace(existing, manifest=manifest)
            self._entries[manifest.name] = refreshed
            return refreshed

        entry = RegistryEntry(
            manifest=manifest,
            category=category,
            link_state=LinkState.CATALOGED,
            source=source,
        )
        self._entries[manifest.name] = entry
        logger.debug("Registered %s/%s from %s", category, manifest.name, source)
        return entry

    def lookup(self, name: str) -> RegistryEntry | None:
        return self._entries.get(name)

    def get(self, name: str) -> RegistryEntry:
        """Like lookup() but raises UnknownModuleError when absent."""
        entry = self._entries.get(name)
        if entry is None:
            raise UnknownModuleError(name)
        return entry

    def list_by_category(self, category: str) -> list[RegistryEntry]:
        entries = [e for e in self._entries.values() if e.category == category]
        return sorted(entries, key=lambda e: e.name)

    def list_all(self) -> list[RegistryEntry]:
        return sorted(self._entries.values(), key=lambda e: (e.category, e.name))

    def categories(self) -> list[str]:
        return sorted({e.category for e in self._entries.values()})

    def update_link_state(
        self, name: str, state: LinkState, *, mode: InstallMode | None = None
    ) -> RegistryEntry:
        """Record a new link state (and install mode, when given).

        Raises:
            UnknownModuleError: Module is not registered
        """
        entry = self.get(name)
        updated = replace(entry, link_state=state, mode=mode if mode is not None else entry.mode)
        self._entries[name] = updated
        logger.debug("%s: %s -> %s", name, entry.link_state.value, state.value)
        return updated

    def replace_manifest(self, name: str, manifest: ModuleManifest) -> RegistryEntry:
        entry = self.get(name)
        updated = replace(entry, manifest=manifest)
        self._entries[name] = updated
        return updated

    def dependents_of(self, name: str) -> list[str]:
        """Names of registered modules whose manifest lists name as a dependency."""
        return sorted(
            other.name
            for other in self._entries.values()
            if other.name != name and name in other.manifest.dependency_names
        )

    def remove(self, name: str) -> RegistryEntry:
        """Delete an entry.

        Raises:
            UnknownModuleError: Module is not registered
            HasDependentsError: Another registered module depends on it
        """
        entry = self.get(name)
        dependents = self.dependents_of(name)
        if dependents:
            raise HasDependentsError(name, dependents)
        del self._entries[name]
        logger.debug("Removed %s from registry", name)
        return entry

    def snapshot(self) -> Mapping[str, RegistryEntry]:
        """Read-only view of the current entries for resolution."""
        return MappingProxyType(dict(self._entries))
