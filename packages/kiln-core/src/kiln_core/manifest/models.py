"""Dependency manifest models.

A DependencyManifest is the ordered, content-addressed set of manifest
files (declared dependencies, then the resolved lock). Its digest is the
dependency cache key: byte-identical manifests always give the same digest
and any byte change gives a different one.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from kiln_core.errors import ManifestResolutionError
from kiln_core.schemas import BuildSpec


class ManifestFile(BaseModel):
    """One manifest file as read from the build context.

    Attributes:
        path: Path relative to the project directory.
        sha256: Hex digest of the file content.
        size_bytes: File size.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1, description="Project-relative path")
    sha256: str = Field(..., min_length=64, max_length=64, description="Content digest")
    size_bytes: int = Field(..., ge=0, description="File size")


class DependencyManifest(BaseModel):
    """Ordered manifest files and their combined digest.

    Attributes:
        files: Manifest files in cache-key order.
        digest: SHA-256 over every file's path and content, in order.

    Example:
        >>> manifest = DependencyManifest.load(Path("."), spec)
        >>> manifest.short_digest
        '3f2a9c1d0b7e'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    files: list[ManifestFile] = Field(..., min_length=1, description="Manifest files")
    digest: str = Field(..., min_length=64, max_length=64, description="Cache key")

    @property
    def short_digest(self) -> str:
        """Abbreviated digest for log output."""
        return self.digest[:12]

    @classmethod
    def load(cls, project_dir: Path, spec: BuildSpec) -> DependencyManifest:
        """Read the manifest files named by the build specification.

        Args:
            project_dir: Build context directory.
            spec: Build specification naming the manifest files.

        Returns:
            DependencyManifest with the computed digest.

        Raises:
            ManifestResolutionError: If a manifest file is missing or unreadable.
        """
        return cls.from_contents(read_manifest_contents(project_dir, spec))

    @classmethod
    def from_contents(cls, contents: list[tuple[str, bytes]]) -> DependencyManifest:
        """Build a manifest from (path, content) pairs in cache-key order."""
        files = [
            ManifestFile(
                path=relative,
                sha256=hashlib.sha256(data).hexdigest(),
                size_bytes=len(data),
            )
            for relative, data in contents
        ]
        return cls(files=files, digest=compute_manifest_digest(contents))


def compute_manifest_digest(contents: list[tuple[str, bytes]]) -> str:
    """Compute the cache key for an ordered list of manifest files.

    Each file contributes its path, its length and its bytes, separated by
    NUL, so that moving bytes between files changes the digest.

    Args:
        contents: (relative path, file bytes) pairs in declared order.

    Returns:
        Hex-encoded SHA-256 digest.
    """
    hasher = hashlib.sha256()
    for relative, data in contents:
        hasher.update(relative.encode("utf-8"))
        hasher.update(b"\0")
        hasher.update(str(len(data)).encode("ascii"))
        hasher.update(b"\0")
        hasher.update(data)
    return hasher.hexdigest()


def read_manifest_contents(project_dir: Path, spec: BuildSpec) -> list[tuple[str, bytes]]:
    """Read every manifest file in cache-key order.

    All missing or unreadable files are reported together.

    Raises:
        ManifestResolutionError: If any manifest file cannot be read.
    """
    contents: list[tuple[str, bytes]] = []
    problems: list[str] = []
    for relative in spec.dependencies.files:
        path = project_dir / relative
        if not path.is_file():
            problems.append(f"{relative}: file not found")
            continue
        try:
            contents.append((relative, path.read_bytes()))
        except OSError as e:
            problems.append(f"{relative}: cannot read ({e.strerror})")

    if problems:
        raise ManifestResolutionError(problems, internal_details=f"project_dir={project_dir}")
    return contents
