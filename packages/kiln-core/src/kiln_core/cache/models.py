"""Dependency cache entry model."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from kiln_core.manifest import ManifestFile

# Package version recorded in cache entries and build reports
KILN_CORE_VERSION = "0.1.0"

ENTRY_FILE_NAME = "entry.json"
OUTPUT_DIR_NAME = "output"


class CacheEntry(BaseModel):
    """Metadata for one cached dependency build output.

    The entry is keyed by the manifest digest. It is written once, when the
    dependency build succeeds, and never modified afterwards.

    Attributes:
        digest: Manifest digest (cache key).
        manifest_files: Manifest files the output was built from.
        stub_artifact_sha256: Digest of the artifact the placeholder build
            produced, if any. A final artifact with this digest is stale.
        created_at: When the entry was committed (UTC).
        size_bytes: Total size of the cached output.
        kiln_version: kiln-core version that built the entry.

    Example:
        >>> entry = CacheEntry.from_file(Path("~/.cache/kiln/deps/3f2a.../entry.json"))
        >>> entry.short_digest
        '3f2a9c1d0b7e'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    digest: str = Field(..., min_length=64, max_length=64, description="Manifest digest")
    manifest_files: list[ManifestFile] = Field(
        default_factory=list,
        description="Manifest files in cache-key order",
    )
    stub_artifact_sha256: str | None = Field(
        default=None,
        description="Digest of the placeholder build artifact",
    )
    created_at: datetime = Field(..., description="Commit timestamp (UTC)")
    size_bytes: int = Field(default=0, ge=0, description="Cached output size")
    kiln_version: str = Field(default=KILN_CORE_VERSION, description="kiln-core version")

    @property
    def short_digest(self) -> str:
        """Abbreviated digest for display."""
        return self.digest[:12]

    @classmethod
    def from_file(cls, path: Path) -> CacheEntry:
        """Load an entry from its JSON file.

        Raises:
            OSError: If the file cannot be read.
            pydantic.ValidationError: If the content is not a valid entry.
        """
        return cls.model_validate_json(path.read_text())
