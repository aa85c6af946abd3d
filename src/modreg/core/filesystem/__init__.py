"""Filesystem subpackage."""

from modreg.core.filesystem.abc import FileSystem
from modreg.core.filesystem.real import RealFileSystem

__all__ = ["FileSystem", "RealFileSystem"]
