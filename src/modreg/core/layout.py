"""Where things live inside a consuming project."""

from dataclasses import dataclass
from pathlib import Path

from modreg.core.manifest import MANIFEST_FILENAME

STATE_DIR_NAME = ".modreg"


@dataclass(frozen=True)
class ProjectLayout:
    """Paths of a consuming project.

    Materialized modules live at <root>/<modules_dir>/<category>/<name>; the
    registry's durable state lives under <root>/.modreg.
    """

    root: Path
    modules_dir: str = "modules"

    @property
    def state_dir(self) -> Path:
        return self.root / STATE_DIR_NAME

    @property
    def registry_file(self) -> Path:
        return self.state_dir / "registry.toml"

    @property
    def lock_file(self) -> Path:
        return self.state_dir / "registry.lock"

    @property
    def manifests_dir(self) -> Path:
        return self.state_dir / "manifests"

    @property
    def extracted_dir(self) -> Path:
        """Originals of folders moved aside by extract."""
        return self.state_dir / "extracted"

    def module_dir(self, category: str, name: str) -> Path:
        return self.root / self.modules_dir / category / name

    def module_manifest(self, category: str, name: str) -> Path:
        return self.module_dir(category, name) / MANIFEST_FILENAME

    def catalog_manifest(self, category: str, name: str) -> Path:
        return self.manifests_dir / category / f"{name}.md"


def discover_project_root(start: Path) -> Path:
    """Walk up from start to the nearest directory holding .modreg; default to start."""
    for candidate in [start, *start.parents]:
        if (candidate / STATE_DIR_NAME).is_dir():
            return candidate
    return start
