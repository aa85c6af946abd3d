"""Production Hosting implementation using the GitHub CLI."""

import json
import subprocess

from modreg.core.hosting.abc import Hosting, Visibility
from modreg.core.registry import SourceReference
from modreg.core.subprocess import run_subprocess_with_context


class RealHosting(Hosting):
    """Production implementation using gh CLI commands."""

    def authenticated(self) -> bool:
        result = subprocess.run(
            ["gh", "auth", "status"],
            capture_output=True,
            text=True,
            check=False,
        )
        return result.returncode == 0

    def remote_exists(self, full_name: str) -> bool:
        result = subprocess.run(
            ["gh", "repo", "view", full_name, "--json", "name"],
            capture_output=True,
            text=True,
            check=False,
        )
        return result.returncode == 0

    def provision(self, full_name: str, visibility: Visibility) -> SourceReference:
        run_subprocess_with_context(
            ["gh", "repo", "create", full_name, f"--{visibility}"],
            operation_context=f"create repository {full_name}",
        )
        result = run_subprocess_with_context(
            ["gh", "repo", "view", full_name, "--json", "url,defaultBranchRef"],
            operation_context=f"view repository {full_name}",
        )
        data = json.loads(result.stdout)
        branch_ref = data.get("defaultBranchRef") or {}
        return SourceReference(remote=f"{data['url']}.git", revision=branch_ref.get("name") or None)
