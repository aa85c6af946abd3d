"""Version control subpackage.

Abstractions over the version control operations the lifecycle needs, with a
git-backed production implementation. Tests use the fake in tests/fakes.
"""

from modreg.core.vcs.abc import PushOutcome, VersionControl
from modreg.core.vcs.real import RealVersionControl

__all__ = ["PushOutcome", "RealVersionControl", "VersionControl"]
