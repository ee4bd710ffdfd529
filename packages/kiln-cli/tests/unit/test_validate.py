"""Tests for kiln validate command."""

from __future__ import annotations

from pathlib import Path

from click.testing import CliRunner

from kiln_cli.commands.validate import validate
from kiln_core import BuildSpec
from kiln_core.manifest import load_manifest


class TestValidateCommand:
    """Tests for validate command."""

    def test_valid_project(self, cli_runner: CliRunner, kiln_yaml: Path) -> None:
        result = cli_runner.invoke(validate, ["--file", str(kiln_yaml)])

        assert result.exit_code == 0
        assert "Configuration valid" in result.output
        assert "Resolved 3 dependencies against Cargo.lock" in result.output

    def test_prints_cache_key(self, cli_runner: CliRunner, kiln_yaml: Path) -> None:
        spec = BuildSpec.from_yaml(kiln_yaml)
        digest = load_manifest(kiln_yaml.parent, spec).digest

        result = cli_runner.invoke(validate, ["--file", str(kiln_yaml)])

        assert f"Cache key: {digest}" in result.output

    def test_unresolved_dependency(
        self, cli_runner: CliRunner, kiln_yaml: Path, project_dir: Path
    ) -> None:
        manifest = project_dir / "Cargo.toml"
        manifest.write_text(manifest.read_text() + 'regex = "1"\n')

        result = cli_runner.invoke(validate, ["--file", str(kiln_yaml)])

        assert result.exit_code == 1
        assert "Configuration valid" in result.output
        assert "regex: not present in Cargo.lock" in result.output

    def test_missing_lockfile(
        self, cli_runner: CliRunner, kiln_yaml: Path, project_dir: Path
    ) -> None:
        (project_dir / "Cargo.lock").unlink()

        result = cli_runner.invoke(validate, ["--file", str(kiln_yaml)])

        assert result.exit_code == 1
        assert "Cargo.lock: file not found" in result.output

    def test_no_resolve(self, cli_runner: CliRunner, kiln_yaml: Path, project_dir: Path) -> None:
        (project_dir / "Cargo.lock").unlink()

        result = cli_runner.invoke(validate, ["--file", str(kiln_yaml), "--no-resolve"])

        assert result.exit_code == 0
        assert "Cache key" not in result.output

    def test_default_file(self, isolated_runner: CliRunner) -> None:
        result = isolated_runner.invoke(validate)

        assert result.exit_code == 2
        assert "File not found" in result.output


class TestValidateErrors:
    """Configuration errors map to exit code 1."""

    def test_invalid_yaml(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        spec = tmp_path / "kiln.yaml"
        spec.write_text("name: api\nruntime: [unclosed\n")

        result = cli_runner.invoke(validate, ["--file", str(spec)])

        assert result.exit_code == 1
        assert "YAML syntax error" in result.output

    def test_schema_violation(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        spec = tmp_path / "kiln.yaml"
        spec.write_text("name: api\nruntime:\n  port: 70000\n")

        result = cli_runner.invoke(validate, ["--file", str(spec)])

        assert result.exit_code == 1
        assert "Validation failed" in result.output
        assert "runtime.port" in result.output

    def test_invalid_name(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        spec = tmp_path / "kiln.yaml"
        spec.write_text("name: 9lives\n")

        result = cli_runner.invoke(validate, ["--file", str(spec)])

        assert result.exit_code == 1
        assert "name" in result.output
