"""Abstract interface for version control operations on module folders."""

from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path

from modreg.core.registry import SourceReference


class PushOutcome(Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"


class VersionControl(ABC):
    """Abstract interface for version control operations.

    All implementations (real and fake) must implement this interface.
    Failures are reported by raising RuntimeError (or OSError); the lifecycle
    layer turns those into CollaboratorFailure.
    """

    @abstractmethod
    def materialize_frozen(self, source: SourceReference, dest: Path) -> None:
        """Place a frozen snapshot of source at dest (no link back to the remote)."""
        ...

    @abstractmethod
    def materialize_linked(self, source: SourceReference, dest: Path) -> None:
        """Place an editable mirror of source at dest that stays linked to the remote."""
        ...

    @abstractmethod
    def pull_latest(self, path: Path) -> None:
        """Bring a linked mirror up to date with its remote mainline."""
        ...

    @abstractmethod
    def current_revision_is_mainline(self, path: Path) -> bool:
        """True when the mirror's working revision is the tracked mainline."""
        ...

    @abstractmethod
    def force_mainline(self, path: Path) -> bool:
        """Move a detached mirror back onto mainline.

        Only fast-forwards: if the detached revision carries commits that are
        not on mainline, nothing is changed and False is returned.

        Returns:
            True if the mirror is now on mainline
        """
        ...

    @abstractmethod
    def commit_and_push(self, path: Path, message: str) -> PushOutcome:
        """Commit all local changes in the mirror and push them.

        Returns:
            PushOutcome.CONFLICT when the remote rejects the push because it
            diverged, PushOutcome.SUCCESS otherwise
        """
        ...

    @abstractmethod
    def working_tree_dirty(self, path: Path) -> bool:
        """True when the mirror has uncommitted local changes."""
        ...

    @abstractmethod
    def push_initial(self, path: Path, source: SourceReference) -> None:
        """Publish a plain folder as the first commit of a freshly provisioned remote."""
        ...
