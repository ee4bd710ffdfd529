"""Content-addressed store for dependency build output.

Layout under the cache root::

    deps/<digest>/entry.json     CacheEntry metadata
    deps/<digest>/output/        snapshot of the dependency output directory
    staging/<digest>-<token>/    in-flight commits (never read)

An entry becomes visible only through an atomic rename of a fully written
staging directory, so a failed or interrupted dependency build can never
leave a partial entry behind. Cached output is read-only for consumers:
restore copies it out and never hands out the cached paths themselves.
"""

from __future__ import annotations

import os
import re
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import ValidationError

from kiln_core.cache.models import (
    ENTRY_FILE_NAME,
    KILN_CORE_VERSION,
    OUTPUT_DIR_NAME,
    CacheEntry,
)
from kiln_core.errors import CacheError
from kiln_core.manifest import DependencyManifest

logger = structlog.get_logger(__name__)

CACHE_DIR_ENV = "KILN_CACHE_DIR"

_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")
_PREFIX_RE = re.compile(r"^[0-9a-f]{6,64}$")


def default_cache_dir() -> Path:
    """Cache root from KILN_CACHE_DIR, else ~/.cache/kiln."""
    configured = os.environ.get(CACHE_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "kiln"


def tree_size(path: Path) -> int:
    """Total size of regular files below path (symlinks not followed)."""
    total = 0
    for dirpath, _dirnames, filenames in os.walk(path):
        for filename in filenames:
            file_path = Path(dirpath) / filename
            if not file_path.is_symlink():
                total += file_path.stat().st_size
    return total


class DependencyCache:
    """Dependency build output keyed by manifest digest.

    Args:
        root: Cache root directory. Created on first commit.

    Example:
        >>> cache = DependencyCache(default_cache_dir())
        >>> entry = cache.lookup(manifest.digest)
        >>> if entry is not None:
        ...     cache.restore(entry, workspace / "target")
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or default_cache_dir()).expanduser()
        self.deps_dir = self.root / "deps"
        self.staging_dir = self.root / "staging"
        self._log = logger.bind(cache_root=str(self.root))

    def entry_dir(self, digest: str) -> Path:
        """Directory of the entry for digest (which may not exist)."""
        return self.deps_dir / digest

    def output_path(self, entry: CacheEntry) -> Path:
        """Cached output directory of an entry."""
        return self.entry_dir(entry.digest) / OUTPUT_DIR_NAME

    def lookup(self, digest: str) -> CacheEntry | None:
        """Return the committed entry for digest, or None on a miss.

        An entry whose metadata is unreadable, invalid, or keyed by a
        different digest counts as a miss.
        """
        if not _DIGEST_RE.match(digest):
            return None

        entry_dir = self.entry_dir(digest)
        entry_file = entry_dir / ENTRY_FILE_NAME
        if not entry_file.is_file() or not (entry_dir / OUTPUT_DIR_NAME).is_dir():
            self._log.debug("cache_miss", digest=digest[:12])
            return None

        try:
            entry = CacheEntry.from_file(entry_file)
        except (OSError, ValidationError) as e:
            self._log.warning("cache_entry_invalid", digest=digest[:12], error=str(e))
            return None

        if entry.digest != digest:
            self._log.warning("cache_entry_mismatch", digest=digest[:12])
            return None

        self._log.debug("cache_hit", digest=digest[:12])
        return entry

    def commit(
        self,
        manifest: DependencyManifest,
        output_dir: Path,
        *,
        stub_artifact_sha256: str | None = None,
    ) -> CacheEntry:
        """Publish a dependency build output under the manifest digest.

        The output is copied into a private staging directory and then
        renamed into place. If another process committed the same digest
        first, its entry wins and is returned.

        Args:
            manifest: Manifest the output was built from.
            output_dir: Dependency output directory in the build workspace.
            stub_artifact_sha256: Digest of the placeholder build artifact.

        Returns:
            The committed CacheEntry.

        Raises:
            CacheError: If the output cannot be copied into the cache.
        """
        if not output_dir.is_dir():
            raise CacheError(
                f"Dependency output directory not found: {output_dir.name}",
                internal_details=f"output_dir={output_dir}",
            )

        staging = self.staging_dir / f"{manifest.digest}-{uuid.uuid4().hex[:8]}"
        try:
            self.deps_dir.mkdir(parents=True, exist_ok=True)
            staging.mkdir(parents=True)
            shutil.copytree(output_dir, staging / OUTPUT_DIR_NAME, symlinks=True)

            entry = CacheEntry(
                digest=manifest.digest,
                manifest_files=list(manifest.files),
                stub_artifact_sha256=stub_artifact_sha256,
                created_at=datetime.now(timezone.utc),
                size_bytes=tree_size(staging / OUTPUT_DIR_NAME),
                kiln_version=KILN_CORE_VERSION,
            )
            (staging / ENTRY_FILE_NAME).write_text(entry.model_dump_json(indent=2))

            destination = self.entry_dir(manifest.digest)
            if destination.exists() and self.lookup(manifest.digest) is None:
                shutil.rmtree(destination)
            try:
                staging.rename(destination)
            except OSError:
                existing = self.lookup(manifest.digest)
                if existing is None:
                    raise
                self._log.info("cache_commit_raced", digest=manifest.short_digest)
                shutil.rmtree(staging, ignore_errors=True)
                return existing
        except OSError as e:
            shutil.rmtree(staging, ignore_errors=True)
            raise CacheError(
                "Failed to write dependency cache entry",
                internal_details=f"digest={manifest.digest} staging={staging} error={e}",
            ) from e

        self._log.info(
            "cache_committed",
            digest=manifest.short_digest,
            size_bytes=entry.size_bytes,
        )
        return entry

    def restore(self, entry: CacheEntry, destination: Path) -> list[Path]:
        """Copy cached output into a build workspace.

        Args:
            entry: Entry returned by lookup or commit.
            destination: Dependency output directory in the workspace.

        Returns:
            Paths of the restored files.

        Raises:
            CacheError: If the cached output is missing or cannot be copied.
        """
        source = self.output_path(entry)
        if not source.is_dir():
            raise CacheError(
                f"Cache entry {entry.short_digest} has no output",
                internal_details=f"missing={source}",
            )
        try:
            shutil.copytree(source, destination, symlinks=True, dirs_exist_ok=True)
        except (OSError, shutil.Error) as e:
            raise CacheError(
                f"Failed to restore cache entry {entry.short_digest}",
                internal_details=f"source={source} destination={destination} error={e}",
            ) from e

        restored = [path for path in destination.rglob("*") if not path.is_dir()]
        self._log.debug(
            "cache_restored",
            digest=entry.short_digest,
            file_count=len(restored),
        )
        return restored

    def entries(self) -> list[CacheEntry]:
        """Committed entries, newest first."""
        if not self.deps_dir.is_dir():
            return []
        found = [
            entry
            for child in self.deps_dir.iterdir()
            if child.is_dir() and (entry := self.lookup(child.name)) is not None
        ]
        return sorted(found, key=lambda entry: entry.created_at, reverse=True)

    def find(self, prefix: str) -> CacheEntry:
        """Return the single entry whose digest starts with prefix.

        Raises:
            CacheError: If the prefix is malformed, unknown, or ambiguous.
        """
        if not _PREFIX_RE.match(prefix):
            raise CacheError(f"Invalid cache key: {prefix!r} (need at least 6 hex characters)")
        matches = [entry for entry in self.entries() if entry.digest.startswith(prefix)]
        if not matches:
            raise CacheError(f"No cache entry matches {prefix}")
        if len(matches) > 1:
            raise CacheError(f"Cache key {prefix} is ambiguous ({len(matches)} entries)")
        return matches[0]

    def evict(self, prefix: str) -> CacheEntry:
        """Remove one entry by digest or unique digest prefix.

        Raises:
            CacheError: If no single entry matches or removal fails.
        """
        entry = self.find(prefix)
        self._remove(self.entry_dir(entry.digest))
        self._log.info("cache_evicted", digest=entry.short_digest)
        return entry

    def prune(self, keep: int = 0) -> list[CacheEntry]:
        """Remove all but the newest ``keep`` entries and sweep staging debris.

        Returns:
            Entries that were removed.
        """
        if keep < 0:
            raise CacheError("keep must be zero or positive")

        removed = self.entries()[keep:]
        for entry in removed:
            self._remove(self.entry_dir(entry.digest))

        if self.staging_dir.is_dir():
            self._remove(self.staging_dir)

        if self.deps_dir.is_dir():
            # Directories without a valid entry are leftovers, not entries
            for child in self.deps_dir.iterdir():
                if self.lookup(child.name) is None:
                    self._remove(child)

        self._log.info("cache_pruned", removed=len(removed), kept=keep)
        return removed

    def ensure_writable(self) -> None:
        """Check that entries can be committed under the cache root.

        Raises:
            CacheError: If the cache root cannot be created or written.
        """
        probe = self.root / f".probe-{uuid.uuid4().hex[:8]}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            probe.write_bytes(b"")
            probe.unlink()
        except OSError as e:
            raise CacheError(
                f"Cache directory is not writable: {self.root}",
                internal_details=str(e),
            ) from e

    def _remove(self, path: Path) -> None:
        try:
            if path.is_dir() and not path.is_symlink():
                shutil.rmtree(path)
            else:
                path.unlink()
        except OSError as e:
            raise CacheError(
                f"Failed to remove {path.name} from the cache",
                internal_details=f"path={path} error={e}",
            ) from e
