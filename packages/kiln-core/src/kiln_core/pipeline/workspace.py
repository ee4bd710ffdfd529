"""Build workspace file operations."""

from __future__ import annotations

import hashlib
import os
import shutil
import time
from collections.abc import Callable, Iterable
from pathlib import Path

_CHUNK_SIZE = 1024 * 1024


def sha256_file(path: Path) -> str:
    """Hex SHA-256 of a file's content."""
    hasher = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def reset_directory(path: Path) -> Path:
    """Remove path if present and recreate it empty."""
    if path.exists():
        shutil.rmtree(path)
    path.mkdir(parents=True)
    return path


def _top_level_ignore(root: Path, exclude: Iterable[str]) -> Callable[[str, list[str]], set[str]]:
    excluded = set(exclude)

    def ignore(directory: str, names: list[str]) -> set[str]:
        if Path(directory) != root:
            return set()
        return {name for name in names if name in excluded}

    return ignore


def copy_tree(source: Path, destination: Path, exclude: Iterable[str] = ()) -> None:
    """Copy a build context into a workspace.

    Args:
        source: Build context directory (read only).
        destination: Workspace directory; existing files are overwritten.
        exclude: Top-level entry names of source to skip.
    """
    shutil.copytree(
        source,
        destination,
        symlinks=True,
        ignore=_top_level_ignore(source, exclude),
        dirs_exist_ok=True,
    )


def tree_digest(root: Path, exclude: Iterable[str] = ()) -> str:
    """Digest of every regular file below root, by relative path and content.

    Top-level entries named in exclude are skipped.
    """
    excluded = set(exclude)
    hasher = hashlib.sha256()
    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        if current == root:
            dirnames[:] = [name for name in dirnames if name not in excluded]
            filenames = [name for name in filenames if name not in excluded]
        files.extend(current / name for name in filenames)

    for path in sorted(files, key=lambda p: p.relative_to(root).as_posix()):
        relative = path.relative_to(root).as_posix()
        hasher.update(relative.encode("utf-8"))
        hasher.update(b"\0")
        if path.is_symlink():
            hasher.update(b"link:" + os.readlink(path).encode("utf-8"))
        else:
            hasher.update(sha256_file(path).encode("ascii"))
        hasher.update(b"\0")
    return hasher.hexdigest()


def newest_mtime_ns(paths: Iterable[Path]) -> int:
    """Latest modification time among paths (0 if there are none)."""
    newest = 0
    for path in paths:
        newest = max(newest, path.lstat().st_mtime_ns)
    return newest


def touch_newer_than(path: Path, reference_ns: int) -> int:
    """Set path's mtime strictly after reference_ns (and no earlier than now).

    The margin of one second keeps the order visible on filesystems with
    coarse timestamps.

    Returns:
        The new modification time in nanoseconds.
    """
    target = max(time.time_ns(), reference_ns + 1_000_000_000)
    os.utime(path, ns=(target, target))
    return path.stat().st_mtime_ns
