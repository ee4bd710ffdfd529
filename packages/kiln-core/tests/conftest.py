"""Shared pytest fixtures for kiln-core tests.

This module provides common fixtures used across unit and integration
tests.
"""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
import structlog

from kiln_core import BuildSpec, DependencyCache
from kiln_core.models import CompiledArtifact
from kiln_core.pipeline.workspace import sha256_file
from testing.fixtures.projects import make_cargo_project, write_ca_bundle


@pytest.fixture(autouse=True)
def configure_structlog_for_tests() -> None:
    """Configure structlog to output to stdout for test capture.

    This fixture ensures structlog outputs to stdout so that capsys
    can capture the output in tests. Without this, structlog may use
    different processors depending on test execution order.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=False,  # Important for test isolation
    )


@pytest.fixture
def sample_kiln_yaml() -> dict[str, Any]:
    """Return a minimal valid kiln.yaml configuration.

    Returns:
        Dictionary representing a valid kiln.yaml structure.
    """
    return {
        "name": "htmlwordpress-api",
        "version": "1.0.0",
    }


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Sample Cargo project wired to the fake builder."""
    return make_cargo_project(tmp_path / "project")


@pytest.fixture
def spec(project_dir: Path) -> BuildSpec:
    return BuildSpec.from_yaml(project_dir / "kiln.yaml")


@pytest.fixture
def build_log(project_dir: Path) -> Path:
    """Event log written by the fake builder."""
    return project_dir / "build.log"


@pytest.fixture
def cache(tmp_path: Path) -> DependencyCache:
    """Empty dependency cache under tmp_path."""
    return DependencyCache(tmp_path / "cache")


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture
def ca_bundle(tmp_path: Path) -> Path:
    """PEM CA bundle holding two certificates."""
    return write_ca_bundle(tmp_path / "certs" / "ca-certificates.crt")


@pytest.fixture
def compiled_artifact(tmp_path: Path, spec: BuildSpec) -> CompiledArtifact:
    """Executable artifact as collected by the application stage."""
    path = tmp_path / "artifact" / spec.name
    path.parent.mkdir(parents=True)
    path.write_text('#!/bin/sh\necho "listening on ${PORT:-unset}"\n')
    path.chmod(0o755)
    return CompiledArtifact(
        name=spec.name,
        path=str(path),
        sha256=sha256_file(path),
        size_bytes=path.stat().st_size,
        source_digest="0" * 64,
        manifest_digest="1" * 64,
        built_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
