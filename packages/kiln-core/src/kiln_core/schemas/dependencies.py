"""Dependency manifest configuration for kiln."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kiln_core.schemas.paths import validate_relative_path

DEFAULT_PLACEHOLDER = "fn main() {}\n"


class DependencyConfig(BaseModel):
    """Where the dependency manifest lives and how the dependency build runs.

    Attributes:
        manifest: Declared dependencies file.
        lockfile: Resolved lock file. Together with ``manifest`` this is the
            cache key input, in that order.
        placeholder: Stub entry point content used while compiling dependencies.
        output_dir: Directory holding the builder's dependency output.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    manifest: str = Field(default="Cargo.toml", description="Declared dependencies file")
    lockfile: str = Field(default="Cargo.lock", description="Resolved lock file")
    placeholder: str = Field(
        default=DEFAULT_PLACEHOLDER,
        description="Placeholder entry point content",
    )
    output_dir: str = Field(default="target", description="Dependency build output directory")

    @field_validator("manifest", "lockfile", "output_dir")
    @classmethod
    def check_relative(cls, v: str) -> str:
        """Keep manifest paths inside the project."""
        return validate_relative_path(v)

    @property
    def files(self) -> tuple[str, str]:
        """Manifest files in cache-key order."""
        return (self.manifest, self.lockfile)
