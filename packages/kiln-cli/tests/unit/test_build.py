"""Tests for kiln build command."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from kiln_cli.commands.build import BUILD_REPORT_FILE_NAME, build
from kiln_core import BuildReport
from testing.fixtures.projects import make_cargo_project
from testing.fixtures.toolchain import read_build_log


def build_args(kiln_yaml: Path, cache_dir: Path, *extra: str) -> list[str]:
    return ["--file", str(kiln_yaml), "--cache-dir", str(cache_dir), *extra]


def events(project_dir: Path) -> list[str]:
    return [event for event, _ in read_build_log(project_dir / "build.log")]


class TestBuildCommand:
    """Tests for build command."""

    @pytest.mark.requirement("dependency-cache")
    def test_first_build_compiles(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, project_dir: Path
    ) -> None:
        result = cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))

        assert result.exit_code == 0, result.output
        assert "Dependencies compiled" in result.output
        assert "Built image sha256:" in result.output
        assert events(project_dir) == ["compile-deps", "link", "deps-fresh", "link"]

    @pytest.mark.requirement("dependency-cache")
    def test_second_build_restores(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, project_dir: Path
    ) -> None:
        cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))
        (project_dir / "build.log").unlink()

        result = cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))

        assert result.exit_code == 0, result.output
        assert "Dependencies restored from cache" in result.output
        assert events(project_dir) == ["deps-fresh", "link"]

    def test_no_cache_recompiles(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, project_dir: Path
    ) -> None:
        cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))

        result = cli_runner.invoke(build, build_args(kiln_yaml, cache_dir, "--no-cache"))

        assert result.exit_code == 0, result.output
        assert "Dependencies compiled" in result.output

    def test_report_written(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, project_dir: Path
    ) -> None:
        cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))

        report_path = project_dir / ".kiln" / BUILD_REPORT_FILE_NAME
        report = BuildReport.model_validate(json.loads(report_path.read_text()))
        assert report.name == "htmlwordpress-api"
        assert report.cache_hit is False
        assert report.image.command == ["/usr/local/bin/htmlwordpress-api"]

    def test_output_directory(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, tmp_path: Path
    ) -> None:
        out = tmp_path / "out"

        result = cli_runner.invoke(build, build_args(kiln_yaml, cache_dir, "--output", str(out)))

        assert result.exit_code == 0, result.output
        assert (out / BUILD_REPORT_FILE_NAME).is_file()
        assert (out / "image" / "image.json").is_file()

    def test_paths_with_brackets_printed_whole(
        self, cli_runner: CliRunner, tmp_path: Path, cache_dir: Path
    ) -> None:
        project = make_cargo_project(tmp_path / "svc[x]")

        result = cli_runner.invoke(build, build_args(project / "kiln.yaml", cache_dir))

        assert result.exit_code == 0, result.output
        image_dir = (project / ".kiln" / "image").resolve()
        assert f" in {image_dir}\n" in result.output
        assert f"Report written to {project.resolve() / '.kiln'}" in result.output

    def test_cache_dir_from_environment(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path
    ) -> None:
        result = cli_runner.invoke(
            build, ["--file", str(kiln_yaml)], env={"KILN_CACHE_DIR": str(cache_dir)}
        )

        assert result.exit_code == 0, result.output
        assert any(cache_dir.iterdir())


class TestBuildFailures:
    """Stage failures stop the build with exit code 1."""

    def test_compile_error(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, project_dir: Path
    ) -> None:
        (project_dir / "src" / "main.rs").write_text("compile_error!(\"broken\");\n")

        result = cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))

        assert result.exit_code == 1
        assert "compile_error! invoked" in result.output
        assert "Application build failed with exit code 101" in result.output
        assert not (project_dir / ".kiln" / BUILD_REPORT_FILE_NAME).exists()

    def test_unresolved_manifest(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, project_dir: Path
    ) -> None:
        manifest = project_dir / "Cargo.toml"
        manifest.write_text(manifest.read_text() + 'regex = "1"\n')

        result = cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))

        assert result.exit_code == 1
        assert "regex: not present in Cargo.lock" in result.output
        assert events(project_dir) == []

    def test_missing_ca_bundle(
        self, cli_runner: CliRunner, kiln_yaml: Path, cache_dir: Path, project_dir: Path
    ) -> None:
        (project_dir / "certs" / "ca.pem").unlink()

        result = cli_runner.invoke(build, build_args(kiln_yaml, cache_dir))

        assert result.exit_code == 1
        assert not (project_dir / ".kiln" / "image").exists()

    def test_missing_spec(self, cli_runner: CliRunner, tmp_path: Path, cache_dir: Path) -> None:
        result = cli_runner.invoke(build, build_args(tmp_path / "kiln.yaml", cache_dir))

        assert result.exit_code == 2
        assert "File not found" in result.output
