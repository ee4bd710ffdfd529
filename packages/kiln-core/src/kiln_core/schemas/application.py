"""Application build configuration for kiln."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kiln_core.schemas.paths import validate_relative_path

DEFAULT_EXCLUDE = ("target", ".git", ".kiln")


class ApplicationConfig(BaseModel):
    """Application source and artifact locations.

    Attributes:
        entry_point: File the placeholder stands in for, touched before the
            final compilation.
        artifact: Compiled artifact path relative to the workspace. Defaults
            to ``<output_dir>/release/<name>``.
        exclude: Top-level build-context entries never copied into the workspace.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    entry_point: str = Field(default="src/main.rs", description="Application entry point")
    artifact: str | None = Field(default=None, description="Compiled artifact path")
    exclude: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE),
        description="Build-context entries to skip",
    )

    @field_validator("entry_point")
    @classmethod
    def check_entry_point(cls, v: str) -> str:
        return validate_relative_path(v)

    @field_validator("artifact")
    @classmethod
    def check_artifact(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return validate_relative_path(v)
