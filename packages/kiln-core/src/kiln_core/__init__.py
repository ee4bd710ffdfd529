"""kiln-core: dependency-caching build pipeline and minimal runtime images.

This package provides:
- BuildSpec: Pydantic schema for kiln.yaml
- DependencyManifest: content-addressed manifest and cache key
- DependencyCache: compiled dependency output keyed by manifest digest
- BuildPipeline: dependency build, application build, runtime assembly
- LaunchConfig: start-time configuration of an assembled image
- JSON Schema export utilities
"""

from __future__ import annotations

__version__ = "0.1.0"

# Dependency cache
from kiln_core.cache import CacheEntry, DependencyCache, default_cache_dir

# Error types
from kiln_core.errors import (
    ApplicationBuildError,
    BuildError,
    CacheError,
    ConfigurationError,
    DependencyBuildError,
    ImageSurfaceError,
    KilnError,
    ManifestResolutionError,
    PipelineOrderError,
    RuntimePrerequisiteError,
    StaleArtifactError,
)

# JSON Schema export functions
from kiln_core.export import export_build_report_schema, export_build_spec_schema

# Image assembly
from kiln_core.image import render_containerfile, verify_minimal_surface

# Launch
from kiln_core.launch import LaunchConfig, launch

# Manifest
from kiln_core.manifest import DependencyManifest, load_manifest, resolve_dependencies

# Stage records
from kiln_core.models import (
    BuildReport,
    CompiledArtifact,
    DependencyBuildOutput,
    RuntimeImage,
)

# Pipeline
from kiln_core.pipeline import (
    ApplicationBuildStage,
    BuildPipeline,
    DependencyBuildStage,
    RuntimeAssemblyStage,
)

# Schema models
from kiln_core.schemas import (
    ApplicationConfig,
    BuildSpec,
    DependencyConfig,
    RuntimeConfig,
    ToolchainConfig,
    ToolchainKind,
)

__all__ = [
    "__version__",
    # Pipeline
    "BuildPipeline",
    "DependencyBuildStage",
    "ApplicationBuildStage",
    "RuntimeAssemblyStage",
    "BuildReport",
    "DependencyBuildOutput",
    "CompiledArtifact",
    "RuntimeImage",
    # Manifest and cache
    "DependencyManifest",
    "load_manifest",
    "resolve_dependencies",
    "CacheEntry",
    "DependencyCache",
    "default_cache_dir",
    # Image and launch
    "render_containerfile",
    "verify_minimal_surface",
    "LaunchConfig",
    "launch",
    # Errors
    "KilnError",
    "ConfigurationError",
    "ManifestResolutionError",
    "BuildError",
    "DependencyBuildError",
    "ApplicationBuildError",
    "StaleArtifactError",
    "PipelineOrderError",
    "RuntimePrerequisiteError",
    "ImageSurfaceError",
    "CacheError",
    # JSON Schema exports
    "export_build_spec_schema",
    "export_build_report_schema",
    # Schema models
    "BuildSpec",
    "ToolchainConfig",
    "ToolchainKind",
    "DependencyConfig",
    "ApplicationConfig",
    "RuntimeConfig",
]
