"""Schema definitions for kiln.

Root model:
- BuildSpec: Root schema for kiln.yaml

Sections:
- ToolchainConfig: Builder invocation
- DependencyConfig: Dependency manifest and placeholder
- ApplicationConfig: Entry point and artifact location
- RuntimeConfig: Runtime image environment
"""

from __future__ import annotations

from kiln_core.schemas.application import ApplicationConfig
from kiln_core.schemas.build_spec import BUILD_SPEC_FILE_NAME, BuildSpec
from kiln_core.schemas.dependencies import DependencyConfig
from kiln_core.schemas.runtime import CA_BUNDLE_IMAGE_PATH, RuntimeConfig
from kiln_core.schemas.toolchain import ToolchainConfig, ToolchainKind

__all__ = [
    "BUILD_SPEC_FILE_NAME",
    "CA_BUNDLE_IMAGE_PATH",
    "ApplicationConfig",
    "BuildSpec",
    "DependencyConfig",
    "RuntimeConfig",
    "ToolchainConfig",
    "ToolchainKind",
]
