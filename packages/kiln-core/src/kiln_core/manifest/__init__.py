"""Dependency manifest digesting and resolution."""

from __future__ import annotations

from kiln_core.manifest.models import (
    DependencyManifest,
    ManifestFile,
    compute_manifest_digest,
    read_manifest_contents,
)
from kiln_core.manifest.resolver import (
    CargoManifestResolver,
    GenericManifestResolver,
    ManifestResolver,
    ResolvedDependency,
    get_resolver,
    load_manifest,
    resolve_dependencies,
)
from kiln_core.manifest.semver import Version, VersionError, VersionReq

__all__ = [
    "CargoManifestResolver",
    "DependencyManifest",
    "GenericManifestResolver",
    "ManifestFile",
    "ManifestResolver",
    "ResolvedDependency",
    "Version",
    "VersionError",
    "VersionReq",
    "compute_manifest_digest",
    "get_resolver",
    "load_manifest",
    "read_manifest_contents",
    "resolve_dependencies",
]
