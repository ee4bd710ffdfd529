"""Preflight configuration model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PreflightConfig(BaseModel):
    """Which preflight checks to run.

    Attributes:
        toolchain: Check that the builder is installed
        manifest: Check that the dependency manifest resolves
        cache: Check that the cache root is writable
        certificates: Check that a trusted CA bundle is available
        timeout_seconds: Timeout for commands run by checks
        fail_fast: Stop on first failure

    Example:
        >>> config = PreflightConfig(cache=False, fail_fast=True)
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    toolchain: bool = Field(default=True, description="Enable toolchain check")
    manifest: bool = Field(default=True, description="Enable manifest check")
    cache: bool = Field(default=True, description="Enable cache check")
    certificates: bool = Field(default=True, description="Enable CA bundle check")
    timeout_seconds: int = Field(default=30, ge=1, le=300, description="Timeout in seconds")
    fail_fast: bool = Field(default=False, description="Stop on first failure")
