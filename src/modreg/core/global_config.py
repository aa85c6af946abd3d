"""Global configuration data structures and loading.

Provides immutable global config data loaded from ~/.modreg/config.toml.
A missing file means defaults; a malformed one is an error.
"""

import os
import tomllib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import cast

import tomli_w

from modreg.core.hosting.abc import Visibility


@dataclass(frozen=True)
class GlobalConfig:
    """Immutable global configuration data.

    Loaded once at CLI entry point and stored in ModRegContext.
    All fields are read-only after construction.
    """

    organization: str | None = None  # Owner of remotes created by extract
    default_visibility: Visibility = "public"
    strict_versions: bool = False  # Major version drift fails resolution
    modules_dir: str = "modules"


def _parse_config(data: dict[str, object], config_path: Path) -> GlobalConfig:
    visibility = data.get("default_visibility", "public")
    if visibility not in ("public", "private"):
        raise ValueError(f"Invalid 'default_visibility' in {config_path}: {visibility!r}")

    organization = data.get("organization")
    if organization is not None and not isinstance(organization, str):
        raise ValueError(f"Invalid 'organization' in {config_path}: expected a string")

    return GlobalConfig(
        organization=organization,
        default_visibility=cast(Visibility, visibility),
        strict_versions=bool(data.get("strict_versions", False)),
        modules_dir=str(data.get("modules_dir", "modules")),
    )


class GlobalConfigOps(ABC):
    """Abstract interface for global config operations.

    Provides dependency injection for global config access, enabling
    in-memory implementations for tests without touching filesystem.
    """

    @abstractmethod
    def exists(self) -> bool:
        """Check if global config exists."""
        ...

    @abstractmethod
    def load(self) -> GlobalConfig:
        """Load global config, falling back to defaults when none exists.

        Raises:
            ValueError: If config is malformed
        """
        ...

    @abstractmethod
    def save(self, config: GlobalConfig) -> None:
        """Save global config."""
        ...

    @abstractmethod
    def path(self) -> Path:
        """Get the path to the global config file (for error messages and debugging)."""
        ...


class FilesystemGlobalConfigOps(GlobalConfigOps):
    """Production implementation that reads/writes ~/.modreg/config.toml."""

    def exists(self) -> bool:
        return self.path().exists()

    def load(self) -> GlobalConfig:
        config_path = self.path()
        if not config_path.exists():
            return GlobalConfig()

        try:
            data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Malformed config at {config_path}: {e}") from e
        return _parse_config(data, config_path)

    def save(self, config: GlobalConfig) -> None:
        """Save global config to ~/.modreg/config.toml.

        Raises:
            PermissionError: If directory or file cannot be written
        """
        config_path = self.path()
        parent = config_path.parent

        if parent.exists() and not os.access(parent, os.W_OK):
            raise PermissionError(
                f"Cannot write to directory: {parent}\n"
                f"The directory exists but is not writable."
            )
        parent.mkdir(parents=True, exist_ok=True)

        data: dict[str, object] = {}
        if config.organization is not None:
            data["organization"] = config.organization
        data["default_visibility"] = config.default_visibility
        data["strict_versions"] = config.strict_versions
        data["modules_dir"] = config.modules_dir
        with config_path.open("wb") as f:
            tomli_w.dump(data, f)

    def path(self) -> Path:
        override = os.environ.get("MODREG_CONFIG")
        if override:
            return Path(override).expanduser()
        return Path.home() / ".modreg" / "config.toml"


class InMemoryGlobalConfigOps(GlobalConfigOps):
    """Test implementation that stores config in memory without touching filesystem."""

    def __init__(self, config: GlobalConfig | None = None) -> None:
        """Initialize in-memory config ops.

        Args:
            config: Initial config state (None = config doesn't exist)
        """
        self._config = config

    def exists(self) -> bool:
        return self._config is not None

    def load(self) -> GlobalConfig:
        if self._config is None:
            return GlobalConfig()
        return self._config

    def save(self, config: GlobalConfig) -> None:
        self._config = config

    def path(self) -> Path:
        return Path("/fake/modreg/config.toml")
