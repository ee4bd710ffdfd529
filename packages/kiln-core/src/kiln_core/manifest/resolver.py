"""Dependency manifest resolution.

Resolution happens before any compilation starts. Every declared dependency
must be pinned by the lock file at a version its requirement accepts;
every problem found is reported in a single ManifestResolutionError so the
operator can fix the manifest in one pass.

Resolvers:
- CargoManifestResolver: Cargo.toml requirements against Cargo.lock packages
- GenericManifestResolver: opaque manifests, presence only
"""

from __future__ import annotations

import tomllib
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from kiln_core.errors import ManifestResolutionError
from kiln_core.manifest.models import DependencyManifest, read_manifest_contents
from kiln_core.manifest.semver import Version, VersionError, VersionReq
from kiln_core.schemas import BuildSpec, DependencyConfig, ToolchainKind

logger = structlog.get_logger(__name__)

# Dependency tables that take part in a release build
_DEPENDENCY_TABLES = ("dependencies", "build-dependencies")


class ResolvedDependency(BaseModel):
    """A declared dependency matched to its locked package.

    Attributes:
        name: Package name as published (after ``package =`` renames).
        requirement: Declared version requirement, if any.
        locked_version: Version pinned by the lock file.
        source: Where the dependency comes from (registry, path, git, workspace).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Package name")
    requirement: str | None = Field(default=None, description="Declared requirement")
    locked_version: str = Field(..., description="Locked version")
    source: str = Field(default="registry", description="Dependency source kind")


class ManifestResolver(ABC):
    """Checks that a dependency manifest can be satisfied by its lock."""

    @abstractmethod
    def resolve(self, contents: list[tuple[str, bytes]]) -> list[ResolvedDependency]:
        """Resolve manifest contents given in cache-key order.

        Raises:
            ManifestResolutionError: Listing every unresolved dependency.
        """


class GenericManifestResolver(ManifestResolver):
    """Resolver for toolchains whose manifests kiln does not interpret."""

    def resolve(self, contents: list[tuple[str, bytes]]) -> list[ResolvedDependency]:
        return []


class CargoManifestResolver(ManifestResolver):
    """Resolve Cargo.toml against Cargo.lock.

    Checks ``[dependencies]``, ``[build-dependencies]`` and their
    ``[target.<cfg>.*]`` variants. Registry dependencies need a locked
    version satisfying the requirement; path and git dependencies only
    need to be present in the lock.

    Example:
        >>> resolver = CargoManifestResolver(spec.dependencies)
        >>> [dep.name for dep in resolver.resolve(contents)]
        ['axum', 'serde', 'tokio']
    """

    def __init__(self, config: DependencyConfig) -> None:
        self.config = config
        self._log = logger.bind(manifest=config.manifest, lockfile=config.lockfile)

    def resolve(self, contents: list[tuple[str, bytes]]) -> list[ResolvedDependency]:
        files = dict(contents)
        problems: list[str] = []

        manifest = self._parse(self.config.manifest, files, problems)
        lock = self._parse(self.config.lockfile, files, problems)
        if manifest is None or lock is None:
            raise ManifestResolutionError(problems)

        locked = _locked_packages(lock, self.config.lockfile, problems)

        package = manifest.get("package")
        if isinstance(package, dict) and isinstance(package.get("name"), str):
            if package["name"] not in locked:
                problems.append(
                    f"{package['name']}: package is not described by {self.config.lockfile} "
                    "(lock file is stale)"
                )

        resolved: list[ResolvedDependency] = []
        for alias, declaration in _declared_dependencies(manifest):
            dependency = self._resolve_one(alias, declaration, locked, problems)
            if dependency is not None:
                resolved.append(dependency)

        if problems:
            self._log.warning("manifest_unresolved", problem_count=len(problems))
            raise ManifestResolutionError(problems)

        self._log.debug("manifest_resolved", dependency_count=len(resolved))
        return sorted(resolved, key=lambda dep: dep.name)

    def _parse(
        self,
        relative: str,
        files: dict[str, bytes],
        problems: list[str],
    ) -> dict[str, Any] | None:
        data = files.get(relative)
        if data is None:
            problems.append(f"{relative}: file not found")
            return None
        try:
            return tomllib.loads(data.decode("utf-8"))
        except UnicodeDecodeError:
            problems.append(f"{relative}: not valid UTF-8")
        except tomllib.TOMLDecodeError as e:
            problems.append(f"{relative}: invalid TOML ({e})")
        return None

    def _resolve_one(
        self,
        alias: str,
        declaration: Any,
        locked: dict[str, list[Version]],
        problems: list[str],
    ) -> ResolvedDependency | None:
        if isinstance(declaration, str):
            declaration = {"version": declaration}
        if not isinstance(declaration, dict):
            problems.append(f"{alias}: unsupported dependency declaration")
            return None

        name = declaration.get("package", alias)
        source = _source_kind(declaration)
        candidates = locked.get(name)
        if not candidates:
            problems.append(f"{name}: not present in {self.config.lockfile}")
            return None

        requirement_text = declaration.get("version")
        if requirement_text is None:
            # Path, git and workspace dependencies are pinned by presence alone
            return ResolvedDependency(
                name=name,
                locked_version=str(max(candidates)),
                source=source,
            )

        try:
            requirement = VersionReq.parse(str(requirement_text))
        except VersionError as e:
            problems.append(f"{name}: {e}")
            return None

        matching = [version for version in candidates if requirement.matches(version)]
        if not matching:
            locked_list = ", ".join(str(version) for version in sorted(candidates))
            problems.append(
                f"{name}: requirement {requirement} not satisfied by locked {locked_list}"
            )
            return None

        return ResolvedDependency(
            name=name,
            requirement=str(requirement),
            locked_version=str(max(matching)),
            source=source,
        )


def _source_kind(declaration: dict[str, Any]) -> str:
    if "path" in declaration:
        return "path"
    if "git" in declaration:
        return "git"
    if declaration.get("workspace") is True:
        return "workspace"
    return "registry"


def _declared_dependencies(manifest: dict[str, Any]) -> list[tuple[str, Any]]:
    """Collect (alias, declaration) pairs from every release dependency table."""
    tables: list[dict[str, Any]] = []
    for table_name in _DEPENDENCY_TABLES:
        table = manifest.get(table_name)
        if isinstance(table, dict):
            tables.append(table)

    targets = manifest.get("target")
    if isinstance(targets, dict):
        for target in targets.values():
            if not isinstance(target, dict):
                continue
            for table_name in _DEPENDENCY_TABLES:
                table = target.get(table_name)
                if isinstance(table, dict):
                    tables.append(table)

    declared: list[tuple[str, Any]] = []
    for table in tables:
        declared.extend(table.items())
    return declared


def _locked_packages(
    lock: dict[str, Any],
    lockfile: str,
    problems: list[str],
) -> dict[str, list[Version]]:
    locked: dict[str, list[Version]] = {}
    for entry in lock.get("package", []):
        if not isinstance(entry, dict) or "name" not in entry or "version" not in entry:
            problems.append(f"{lockfile}: malformed [[package]] entry")
            continue
        try:
            version = Version.parse(str(entry["version"]))
        except VersionError as e:
            problems.append(f"{entry['name']}: {lockfile} {e}")
            continue
        locked.setdefault(str(entry["name"]), []).append(version)
    return locked


def get_resolver(spec: BuildSpec) -> ManifestResolver:
    """Select the resolver for the build specification's toolchain."""
    if spec.toolchain.kind == ToolchainKind.CARGO:
        return CargoManifestResolver(spec.dependencies)
    return GenericManifestResolver()


def resolve_dependencies(project_dir: Path, spec: BuildSpec) -> list[ResolvedDependency]:
    """Read and resolve the project's manifest files.

    Raises:
        ManifestResolutionError: If files are missing or dependencies unresolved.
    """
    return get_resolver(spec).resolve(read_manifest_contents(project_dir, spec))


def load_manifest(
    project_dir: Path,
    spec: BuildSpec,
    *,
    resolve: bool = True,
) -> DependencyManifest:
    """Read, optionally resolve, and digest the dependency manifest.

    Args:
        project_dir: Build context directory.
        spec: Build specification naming the manifest files.
        resolve: Check dependencies against the lock file first.

    Returns:
        DependencyManifest keyed by its content digest.

    Raises:
        ManifestResolutionError: If the manifest cannot be read or resolved.
    """
    contents = read_manifest_contents(project_dir, spec)
    if resolve:
        get_resolver(spec).resolve(contents)
    manifest = DependencyManifest.from_contents(contents)
    logger.debug(
        "manifest_loaded",
        digest=manifest.short_digest,
        files=[entry.path for entry in manifest.files],
    )
    return manifest
