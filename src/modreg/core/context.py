"""Application context with dependency injection."""

from collections.abc import Callable
from dataclasses import dataclass, replace
from pathlib import Path

import click

from modreg.cli.output import user_output
from modreg.core.filesystem.abc import FileSystem
from modreg.core.filesystem.real import RealFileSystem
from modreg.core.global_config import FilesystemGlobalConfigOps, GlobalConfig, GlobalConfigOps
from modreg.core.hosting.abc import Hosting
from modreg.core.hosting.real import RealHosting
from modreg.core.layout import ProjectLayout, discover_project_root
from modreg.core.lifecycle import LifecycleController
from modreg.core.registry import ModuleRegistry
from modreg.core.registry_store import FilesystemRegistryStore, RegistryStore
from modreg.core.vcs.abc import VersionControl
from modreg.core.vcs.real import RealVersionControl


@dataclass(frozen=True)
class ModRegContext:
    """Immutable context holding all dependencies for modreg operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.
    """

    vcs: VersionControl
    hosting: Hosting
    filesystem: FileSystem
    registry_store: RegistryStore
    config_ops: GlobalConfigOps
    global_config: GlobalConfig
    layout: ProjectLayout
    cwd: Path  # Current working directory at CLI invocation
    debug: bool

    def controller(
        self,
        registry: ModuleRegistry,
        *,
        strict: bool = False,
        is_cancelled: Callable[[], bool] | None = None,
    ) -> LifecycleController:
        """Build a LifecycleController over registry with this context's collaborators.

        Args:
            registry: Registry loaded inside the caller's store transaction
            strict: Force strict version checking regardless of global config
            is_cancelled: Polled between steps of multi-module plans
        """
        config = self.global_config
        if strict and not config.strict_versions:
            config = replace(config, strict_versions=True)
        return LifecycleController(
            registry=registry,
            vcs=self.vcs,
            hosting=self.hosting,
            filesystem=self.filesystem,
            layout=self.layout,
            config=config,
            is_cancelled=is_cancelled,
        )

    @staticmethod
    def for_test(
        vcs: VersionControl | None = None,
        hosting: Hosting | None = None,
        filesystem: FileSystem | None = None,
        registry_store: RegistryStore | None = None,
        config_ops: GlobalConfigOps | None = None,
        global_config: GlobalConfig | None = None,
        cwd: Path | None = None,
        debug: bool = False,
    ) -> "ModRegContext":
        """Create test context with optional pre-configured integration classes.

        Unspecified collaborators default to empty fakes, the in-memory
        registry store and the real filesystem rooted at cwd.

        Example:
            >>> vcs = FakeVersionControl(remotes={...})
            >>> ctx = ModRegContext.for_test(vcs=vcs, cwd=tmp_path)
        """
        from tests.fakes.hosting import FakeHosting
        from tests.fakes.vcs import FakeVersionControl

        from modreg.core.global_config import InMemoryGlobalConfigOps
        from modreg.core.registry_store import InMemoryRegistryStore

        if vcs is None:
            vcs = FakeVersionControl()

        if hosting is None:
            hosting = FakeHosting()

        if filesystem is None:
            filesystem = RealFileSystem()

        if registry_store is None:
            registry_store = InMemoryRegistryStore()

        if global_config is None:
            global_config = GlobalConfig(organization="test-org")

        if config_ops is None:
            config_ops = InMemoryGlobalConfigOps(config=global_config)

        if cwd is None:
            cwd = Path("/test/default/cwd")

        return ModRegContext(
            vcs=vcs,
            hosting=hosting,
            filesystem=filesystem,
            registry_store=registry_store,
            config_ops=config_ops,
            global_config=global_config,
            layout=ProjectLayout(root=cwd, modules_dir=global_config.modules_dir),
            cwd=cwd,
            debug=debug,
        )


def safe_cwd() -> tuple[Path | None, str | None]:
    """Get current working directory, detecting if it no longer exists.

    Returns:
        (path, None) on success, (None, error_message) if the directory is gone
    """
    try:
        return (Path.cwd(), None)
    except (FileNotFoundError, OSError):
        return (None, "Current working directory no longer exists")


def create_context(*, debug: bool) -> ModRegContext:
    """Create production context with real implementations.

    Called at CLI entry point to create the context for the entire
    command execution.
    """
    # 1. Capture cwd (no deps)
    cwd_result, error_msg = safe_cwd()
    if cwd_result is None:
        assert error_msg is not None
        user_output(click.style("Error: ", fg="red") + error_msg)
        user_output("\nPlease change to a valid directory and try again.")
        raise SystemExit(1)

    cwd = cwd_result

    # 2. Load global config; a missing file means defaults
    config_ops = FilesystemGlobalConfigOps()
    try:
        global_config = config_ops.load()
    except ValueError as e:
        user_output(click.style("Error: ", fg="red") + str(e))
        raise SystemExit(1) from e

    # 3. Find the project the command operates on
    root = discover_project_root(cwd)
    layout = ProjectLayout(root=root, modules_dir=global_config.modules_dir)

    # 4. Create context with all values
    return ModRegContext(
        vcs=RealVersionControl(root),
        hosting=RealHosting(),
        filesystem=RealFileSystem(),
        registry_store=FilesystemRegistryStore(layout),
        config_ops=config_ops,
        global_config=global_config,
        layout=layout,
        cwd=cwd,
        debug=debug,
    )
