"""Toolchain configuration models for kiln.

This module defines how the builder is invoked inside the build workspace.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_BUILD_COMMAND = ("cargo", "build", "--release")
DEFAULT_BUILDER_IMAGE = "rust:latest"


class ToolchainKind(str, Enum):
    """Toolchain families.

    Values:
        CARGO: Cargo.toml / Cargo.lock manifests with semver requirements.
        GENERIC: Opaque manifest files; only presence is checked.
    """

    CARGO = "cargo"
    GENERIC = "generic"


class ToolchainConfig(BaseModel):
    """Builder invocation settings.

    Attributes:
        kind: Toolchain family, selects the manifest resolver.
        build_command: Command line run in the workspace for both build stages.
        env: Extra environment variables for the builder process.
        builder_image: Builder base image, used when rendering a Containerfile.

    Example:
        >>> config = ToolchainConfig(build_command=["cargo", "build", "--release"])
        >>> config.program
        'cargo'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ToolchainKind = Field(
        default=ToolchainKind.CARGO,
        description="Toolchain family",
    )
    build_command: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BUILD_COMMAND),
        min_length=1,
        description="Builder command line",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra builder environment variables",
    )
    builder_image: str = Field(
        default=DEFAULT_BUILDER_IMAGE,
        min_length=1,
        description="Builder base image (Containerfile rendering only)",
    )

    @field_validator("build_command")
    @classmethod
    def reject_blank_arguments(cls, v: list[str]) -> list[str]:
        """Reject an empty program name."""
        if not v[0].strip():
            raise ValueError("build_command program must not be blank")
        return v

    @property
    def program(self) -> str:
        """Executable name of the builder."""
        return self.build_command[0]
