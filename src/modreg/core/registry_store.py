"""Durable registry state.

The persisted form is a mapping file (.modreg/registry.toml) recording each
module's category, source and last-known link state, plus one manifest
document per module under .modreg/manifests/<category>/<name>.md. Both are
read fully when an operation starts and written fully when it ends, under an
exclusive lock so that concurrent invocations serialize instead of
corrupting state.
"""

import logging
import os
import threading
import tomllib
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import tomli_w

from modreg.core.layout import ProjectLayout
from modreg.core.manifest import parse_manifest, render_manifest
from modreg.core.registry import (
    InstallMode,
    LinkState,
    ModuleRegistry,
    RegistryEntry,
    SourceReference,
)

try:
    import fcntl

    _HAS_FCNTL = True
except ImportError:
    _HAS_FCNTL = False

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = "1"


class RegistryStore(ABC):
    """Abstract interface for loading and saving the registry."""

    @abstractmethod
    def transaction(self) -> Any:
        """Context manager yielding the registry under exclusive access.

        The registry is saved when the block exits normally. If the block
        raises, nothing is written.
        """
        ...

    @abstractmethod
    def read(self) -> ModuleRegistry:
        """Load a registry for read-only use."""
        ...


class FilesystemRegistryStore(RegistryStore):
    """Production store backed by files under the project's .modreg directory."""

    def __init__(self, layout: ProjectLayout) -> None:
        self._layout = layout
        if not _HAS_FCNTL:
            logger.warning(
                "fcntl is unavailable; registry state at %s is not locked",
                layout.state_dir,
            )

    @contextmanager
    def transaction(self) -> Iterator[ModuleRegistry]:
        self._layout.state_dir.mkdir(parents=True, exist_ok=True)
        with self._locked():
            registry = self._load()
            yield registry
            self._save(registry)

    def read(self) -> ModuleRegistry:
        if not self._layout.state_dir.exists():
            return ModuleRegistry()
        with self._locked():
            return self._load()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with open(self._layout.lock_file, "a", encoding="utf-8") as lock:
            if _HAS_FCNTL:
                fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                if _HAS_FCNTL:
                    fcntl.flock(lock.fileno(), fcntl.LOCK_UN)

    def _load(self) -> ModuleRegistry:
        registry_file = self._layout.registry_file
        if not registry_file.exists():
            return ModuleRegistry()

        with open(registry_file, "rb") as f:
            data = tomllib.load(f)

        entries: list[RegistryEntry] = []
        for name, module_data in data.get("modules", {}).items():
            category = module_data["category"]
            manifest_path = self._layout.catalog_manifest(category, name)
            if not manifest_path.exists():
                raise FileNotFoundError(
                    f"Manifest for registered module '{name}' not found at {manifest_path}"
                )
            # The manifest's location is authoritative for its name
            manifest = parse_manifest(
                manifest_path.read_text(encoding="utf-8"),
                expected_name=name,
                expected_category=category,
            )
            mode = module_data.get("mode")
            entries.append(
                RegistryEntry(
                    manifest=manifest,
                    category=category,
                    link_state=LinkState(module_data["link_state"]),
                    source=SourceReference(
                        remote=module_data["remote"], revision=module_data.get("revision")
                    ),
                    mode=InstallMode(mode) if mode is not None else None,
                )
            )

        logger.debug("Loaded %d module(s) from %s", len(entries), registry_file)
        return ModuleRegistry(entries)

    def _save(self, registry: ModuleRegistry) -> None:
        modules: dict[str, dict[str, str]] = {}
        keep: set[Path] = set()
        for entry in registry.list_all():
            module_data = {
                "category": entry.category,
                "remote": entry.source.remote,
                "link_state": entry.link_state.value,
            }
            if entry.source.revision is not None:
                module_data["revision"] = entry.source.revision
            if entry.mode is not None:
                module_data["mode"] = entry.mode.value
            modules[entry.name] = module_data

            manifest_path = self._layout.catalog_manifest(entry.category, entry.name)
            manifest_path.parent.mkdir(parents=True, exist_ok=True)
            _write_atomic(manifest_path, render_manifest(entry.manifest).encode("utf-8"))
            keep.add(manifest_path)

        manifests_dir = self._layout.manifests_dir
        if manifests_dir.exists():
            for stale in manifests_dir.glob("*/*.md"):
                if stale not in keep:
                    stale.unlink()

        data = {"version": STATE_FORMAT_VERSION, "modules": modules}
        _write_atomic(self._layout.registry_file, tomli_w.dumps(data).encode("utf-8"))
        logger.debug("Saved %d module(s) to %s", len(modules), self._layout.registry_file)


class InMemoryRegistryStore(RegistryStore):
    """Test implementation holding the registry in memory.

    Transactions work on a copy that replaces the stored registry only when
    the block exits normally, matching the filesystem store's semantics.
    """

    def __init__(self, entries: list[RegistryEntry] | None = None) -> None:
        self._registry = ModuleRegistry(entries)
        self._lock = threading.Lock()

    @property
    def registry(self) -> ModuleRegistry:
        """Read-only access to the committed registry for test assertions."""
        return self._registry

    @contextmanager
    def transaction(self) -> Iterator[ModuleRegistry]:
        with self._lock:
            working = ModuleRegistry(list(self._registry.snapshot().values()))
            yield working
            self._registry = working

    def read(self) -> ModuleRegistry:
        with self._lock:
            return ModuleRegistry(list(self._registry.snapshot().values()))


def _write_atomic(path: Path, content: bytes) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_bytes(content)
    os.replace(tmp_path, path)
