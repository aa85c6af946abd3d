"""Abstract base class for remote hosting operations."""

from abc import ABC, abstractmethod
from typing import Literal

from modreg.core.registry import SourceReference

Visibility = Literal["public", "private"]


class Hosting(ABC):
    """Abstract interface for remote repository hosting.

    All implementations (real and fake) must implement this interface.
    The organization owning new remotes is passed explicitly in full_name
    ("org/module"), never read from ambient state.
    """

    @abstractmethod
    def authenticated(self) -> bool:
        """Check whether the hosting CLI is authenticated."""
        ...

    @abstractmethod
    def remote_exists(self, full_name: str) -> bool:
        """Check whether a remote repository named 'owner/name' exists."""
        ...

    @abstractmethod
    def provision(self, full_name: str, visibility: Visibility) -> SourceReference:
        """Create a brand-new empty remote repository.

        Args:
            full_name: 'owner/name' of the repository to create
            visibility: Repository visibility

        Returns:
            Reference that can be used to push to and materialize the new remote

        Raises:
            RuntimeError: If the repository could not be created
        """
        ...
