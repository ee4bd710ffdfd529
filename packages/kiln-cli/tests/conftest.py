"""Shared test fixtures for kiln-cli tests.

Provides CliRunner fixtures and sample projects wired to the fake
builder from ``testing.fixtures.toolchain``.
"""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner
from structlog.testing import capture_logs

from kiln_core import BuildPipeline, BuildReport, BuildSpec, DependencyCache
from testing.fixtures.projects import make_cargo_project


@pytest.fixture(autouse=True)
def quiet_logging() -> Generator[None, None, None]:
    """Keep pipeline log records out of command output.

    Also restores the root logger, which ``kiln --log-level`` reconfigures.
    """
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    with capture_logs():
        yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def cli_runner() -> CliRunner:
    """Create a Click test runner.

    Returns:
        CliRunner instance for testing CLI commands.
    """
    return CliRunner()


@pytest.fixture
def isolated_runner(cli_runner: CliRunner) -> Generator[CliRunner, None, None]:
    """Create a Click test runner with an isolated filesystem.

    Yields:
        CliRunner instance with isolated filesystem.
    """
    with cli_runner.isolated_filesystem():
        yield cli_runner


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Sample Cargo project wired to the fake builder."""
    return make_cargo_project(tmp_path / "project")


@pytest.fixture
def kiln_yaml(project_dir: Path) -> Path:
    return project_dir / "kiln.yaml"


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Dependency cache root for --cache-dir."""
    return tmp_path / "cache"


@pytest.fixture
def built_report(project_dir: Path, kiln_yaml: Path, cache_dir: Path) -> BuildReport:
    """Build the sample project; the image lands in ``project/.kiln/image``."""
    spec = BuildSpec.from_yaml(kiln_yaml)
    return BuildPipeline(spec, project_dir, cache=DependencyCache(cache_dir)).run()


@pytest.fixture
def image_dir(built_report: BuildReport) -> Path:
    return Path(built_report.image.image_dir)
