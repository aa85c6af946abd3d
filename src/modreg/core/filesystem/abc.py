"""Abstract interface for the filesystem operations the lifecycle performs."""

from abc import ABC, abstractmethod
from pathlib import Path


class FileSystem(ABC):
    """Scoped copy, move, delete and existence checks on module folders."""

    @abstractmethod
    def exists(self, path: Path) -> bool: ...

    @abstractmethod
    def copy(self, source: Path, dest: Path) -> None:
        """Copy a file or directory tree; dest must not exist."""
        ...

    @abstractmethod
    def move(self, source: Path, dest: Path) -> None:
        """Move a file or directory, creating dest's parent if needed."""
        ...

    @abstractmethod
    def delete(self, path: Path) -> None:
        """Delete a file or directory tree. Missing paths are ignored."""
        ...

    @abstractmethod
    def read_text(self, path: Path) -> str: ...

    @abstractmethod
    def write_text(self, path: Path, content: str) -> None:
        """Write a text file, creating parent directories."""
        ...
