"""Production VersionControl implementation using git subprocess calls.

Linked modules are git submodules of the consuming project; frozen copies are
shallow clones with their .git directory stripped.
"""

import logging
import shutil
import subprocess
from pathlib import Path

from modreg.core.registry import SourceReference
from modreg.core.subprocess import run_subprocess_with_context
from modreg.core.vcs.abc import PushOutcome, VersionControl

logger = logging.getLogger(__name__)

_CONFLICT_MARKERS = ("[rejected]", "non-fast-forward", "fetch first")


class RealVersionControl(VersionControl):
    """Production implementation using subprocess.

    All operations execute actual git commands via subprocess.
    """

    def __init__(self, project_root: Path) -> None:
        self._project_root = project_root

    def materialize_frozen(self, source: SourceReference, dest: Path) -> None:
        cmd = ["git", "clone", "--depth", "1"]
        if source.revision is not None:
            cmd.extend(["--branch", source.revision])
        cmd.extend([source.remote, str(dest)])
        run_subprocess_with_context(cmd, operation_context=f"clone {source}")
        shutil.rmtree(dest / ".git")

    def materialize_linked(self, source: SourceReference, dest: Path) -> None:
        relative = dest.relative_to(self._project_root)
        run_subprocess_with_context(
            ["git", "submodule", "add", source.remote, str(relative)],
            operation_context=f"add submodule {source.remote}",
            cwd=self._project_root,
        )
        if source.revision is not None:
            run_subprocess_with_context(
                ["git", "checkout", source.revision],
                operation_context=f"check out {source.revision}",
                cwd=dest,
            )

    def pull_latest(self, path: Path) -> None:
        mainline = self._mainline(path)
        run_subprocess_with_context(
            ["git", "fetch", "origin"], operation_context="fetch origin", cwd=path
        )
        run_subprocess_with_context(
            ["git", "merge", "--ff-only", f"origin/{mainline}"],
            operation_context=f"fast-forward to origin/{mainline}",
            cwd=path,
        )

    def current_revision_is_mainline(self, path: Path) -> bool:
        result = subprocess.run(
            ["git", "symbolic-ref", "--short", "-q", "HEAD"],
            cwd=path,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode != 0:
            return False
        return result.stdout.strip() == self._mainline(path)

    def force_mainline(self, path: Path) -> bool:
        mainline = self._mainline(path)
        run_subprocess_with_context(
            ["git", "fetch", "origin"], operation_context="fetch origin", cwd=path
        )
        # A detached revision that is not an ancestor of mainline holds commits
        # that a checkout would orphan.
        ancestor = subprocess.run(
            ["git", "merge-base", "--is-ancestor", "HEAD", f"origin/{mainline}"],
            cwd=path,
            capture_output=True,
            text=True,
            check=False,
        )
        if ancestor.returncode != 0:
            logger.debug("%s: HEAD is not an ancestor of origin/%s", path, mainline)
            return False

        run_subprocess_with_context(
            ["git", "checkout", mainline], operation_context=f"check out {mainline}", cwd=path
        )
        run_subprocess_with_context(
            ["git", "merge", "--ff-only", f"origin/{mainline}"],
            operation_context=f"fast-forward to origin/{mainline}",
            cwd=path,
        )
        return True

    def commit_and_push(self, path: Path, message: str) -> PushOutcome:
        run_subprocess_with_context(["git", "add", "-A"], operation_context="stage changes", cwd=path)
        staged = subprocess.run(
            ["git", "diff", "--cached", "--quiet"],
            cwd=path,
            capture_output=True,
            text=True,
            check=False,
        )
        if staged.returncode != 0:
            run_subprocess_with_context(
                ["git", "commit", "-m", message], operation_context="commit changes", cwd=path
            )

        push = subprocess.run(
            ["git", "push", "origin", "HEAD"],
            cwd=path,
            capture_output=True,
            text=True,
            check=False,
        )
        if push.returncode == 0:
            return PushOutcome.SUCCESS
        if any(marker in push.stderr for marker in _CONFLICT_MARKERS):
            return PushOutcome.CONFLICT
        raise RuntimeError(f"Failed to push {path}\nstderr: {push.stderr.strip()}")

    def working_tree_dirty(self, path: Path) -> bool:
        result = run_subprocess_with_context(
            ["git", "status", "--porcelain"], operation_context="check working tree", cwd=path
        )
        return bool(result.stdout.strip())

    def push_initial(self, path: Path, source: SourceReference) -> None:
        branch = source.revision or "main"
        steps = [
            (["git", "init", f"--initial-branch={branch}"], "initialize repository"),
            (["git", "add", "-A"], "stage module files"),
            (["git", "commit", "-m", "Initial commit"], "create initial commit"),
            (["git", "remote", "add", "origin", source.remote], "add origin remote"),
            (["git", "push", "-u", "origin", branch], f"push to {source.remote}"),
        ]
        for cmd, context in steps:
            run_subprocess_with_context(cmd, operation_context=context, cwd=path)
        shutil.rmtree(path / ".git")

    def _mainline(self, path: Path) -> str:
        """Detect the mainline branch from origin/HEAD, falling back to main/master."""
        result = subprocess.run(
            ["git", "symbolic-ref", "refs/remotes/origin/HEAD"],
            cwd=path,
            capture_output=True,
            text=True,
            check=False,
        )
        if result.returncode == 0:
            remote_head = result.stdout.strip()
            if remote_head.startswith("refs/remotes/origin/"):
                return remote_head.replace("refs/remotes/origin/", "")

        for candidate in ["main", "master"]:
            result = subprocess.run(
                ["git", "rev-parse", "--verify", f"origin/{candidate}"],
                cwd=path,
                capture_output=True,
                text=True,
                check=False,
            )
            if result.returncode == 0:
                return candidate
        return "main"
