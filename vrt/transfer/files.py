"""Directory walking and validation for batch transfers."""

from __future__ import annotations

import mimetypes
import os
from pathlib import Path

from vrt.exceptions import InvalidDirectoryError
from vrt.models.transfer import FileInfo

SKIPPED_DIRS = {"__MACOSX", "node_modules", "__pycache__"}
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def content_type_for(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or DEFAULT_CONTENT_TYPE


def walk_directory(dir_path: str | Path, base_path: str = "") -> list[FileInfo]:
    """Recursively collect files under ``dir_path``.

    Hidden entries and well-known system directories are skipped. Relative
    paths keep the directory structure and are prefixed with ``base_path``,
    e.g. ``screenshots/home.png``.
    """
    root = Path(dir_path)
    files: list[FileInfo] = []
    _walk(root, root, base_path, files)
    return files


def _walk(current: Path, root: Path, base_path: str, files: list[FileInfo]) -> None:
    for entry in sorted(os.scandir(current), key=lambda e: e.name):
        if entry.name.startswith(".") or entry.name in SKIPPED_DIRS:
            continue
        if entry.is_dir():
            _walk(Path(entry.path), root, base_path, files)
        elif entry.is_file():
            path_from_root = Path(entry.path).relative_to(root).as_posix()
            relative = f"{base_path.rstrip('/')}/{path_from_root}" if base_path else path_from_root
            files.append(FileInfo(
                absolute_path=entry.path,
                relative_path=relative,
                size=entry.stat().st_size,
                content_type=content_type_for(entry.name),
            ))


def validate_directory(dir_path: str | Path, working_directory: str | Path = ".") -> Path:
    """Resolve ``dir_path`` and make sure it is a directory holding entries."""
    resolved = (Path(working_directory) / dir_path).resolve()
    if not resolved.exists():
        raise InvalidDirectoryError(f"Directory does not exist: {resolved}", str(resolved))
    if not resolved.is_dir():
        raise InvalidDirectoryError(f"Path is not a directory: {resolved}", str(resolved))
    if not any(resolved.iterdir()):
        raise InvalidDirectoryError(f"Directory is empty: {resolved}", str(resolved))
    return resolved
