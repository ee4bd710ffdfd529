"""Shared path validators for build specification models."""

from __future__ import annotations

from pathlib import PurePosixPath


def validate_relative_path(value: str) -> str:
    """Validate that a path stays inside the build workspace.

    Args:
        value: POSIX-style path from kiln.yaml.

    Returns:
        The normalized path.

    Raises:
        ValueError: If the path is empty, absolute, or escapes the workspace.
    """
    if not value or not value.strip():
        raise ValueError("path must not be empty")
    path = PurePosixPath(value)
    if path.is_absolute():
        raise ValueError(f"path must be relative to the project: {value}")
    if ".." in path.parts:
        raise ValueError(f"path must not leave the project directory: {value}")
    normalized = str(path)
    if normalized == ".":
        raise ValueError("path must name a file or directory, not the project root")
    return normalized


def validate_absolute_path(value: str) -> str:
    """Validate an absolute path inside the runtime image.

    Args:
        value: POSIX-style absolute path.

    Returns:
        The normalized path.

    Raises:
        ValueError: If the path is relative or contains '..'.
    """
    path = PurePosixPath(value)
    if not path.is_absolute():
        raise ValueError(f"image path must be absolute: {value}")
    if ".." in path.parts:
        raise ValueError(f"image path must not contain '..': {value}")
    return str(path)


def is_within(path: str, parent: str) -> bool:
    """True if image path ``path`` is ``parent`` or lies below it."""
    return PurePosixPath(path).is_relative_to(PurePosixPath(parent))
