"""Production FileSystem implementation using shutil and pathlib."""

import shutil
from pathlib import Path

from modreg.core.filesystem.abc import FileSystem


class RealFileSystem(FileSystem):
    def exists(self, path: Path) -> bool:
        return path.exists()

    def copy(self, source: Path, dest: Path) -> None:
        if dest.exists():
            raise FileExistsError(f"Destination already exists: {dest}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        if source.is_dir():
            shutil.copytree(source, dest)
        else:
            shutil.copy2(source, dest)

    def move(self, source: Path, dest: Path) -> None:
        if dest.exists():
            raise FileExistsError(f"Destination already exists: {dest}")
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(dest))

    def delete(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()

    def read_text(self, path: Path) -> str:
        return path.read_text(encoding="utf-8")

    def write_text(self, path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
