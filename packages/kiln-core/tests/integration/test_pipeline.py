"""Integration tests for the complete build pipeline.

Runs all three stages against the sample Cargo project with the fake
cargo-like builder from ``testing.fixtures.toolchain``. That builder
relinks only when ``src/main.rs`` is newer than the artifact, so these
tests observe the same freshness behavior a real toolchain shows.

Covers:
- dependency-cache: unchanged manifests reuse cached dependency output
- placeholder-swap: the real source, never the placeholder, is compiled
- minimal-runtime: the image holds only the artifact and the CA bundle
- runtime-configuration: process defaults and start-time overrides
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from kiln_core import BuildSpec, DependencyCache
from kiln_core.errors import ApplicationBuildError, StaleArtifactError
from kiln_core.image import read_image_config, verify_minimal_surface
from kiln_core.launch import LaunchConfig
from kiln_core.models import RuntimeImage
from kiln_core.pipeline import BuildPipeline, application_stage
from testing.fixtures.toolchain import COMPILE_FAILURE, read_build_log


def events(build_log: Path) -> list[str]:
    return [event for event, _ in read_build_log(build_log)]


@pytest.fixture
def pipeline(spec: BuildSpec, project_dir: Path, cache: DependencyCache) -> BuildPipeline:
    return BuildPipeline(spec, project_dir, cache=cache)


class TestBuildPipeline:
    """End-to-end builds of the sample project."""

    @pytest.mark.requirement("dependency-cache")
    @pytest.mark.requirement("placeholder-swap")
    def test_first_build(self, pipeline: BuildPipeline, build_log: Path) -> None:
        """A cold build compiles dependencies once and then the real source."""
        report = pipeline.run()

        assert report.cache_hit is False
        assert events(build_log) == ["compile-deps", "link", "deps-fresh", "link"]
        assert report.artifact.sha256 == report.image.artifact_sha256
        assert report.duration_seconds >= 0

    @pytest.mark.requirement("dependency-cache")
    def test_rebuild_reuses_dependencies(
        self, pipeline: BuildPipeline, project_dir: Path, build_log: Path
    ) -> None:
        """A source-only change skips the dependency compilation entirely."""
        first = pipeline.run()
        build_log.unlink()
        (project_dir / "src" / "main.rs").write_text('fn main() { println!("v2"); }\n')

        second = pipeline.run()

        assert second.cache_hit is True
        assert second.manifest_digest == first.manifest_digest
        assert "compile-deps" not in events(build_log)
        assert events(build_log) == ["deps-fresh", "link"]
        assert second.artifact.sha256 != first.artifact.sha256

    @pytest.mark.requirement("dependency-cache")
    def test_lock_change_invalidates_cache(
        self,
        pipeline: BuildPipeline,
        project_dir: Path,
        build_log: Path,
        cache: DependencyCache,
    ) -> None:
        first = pipeline.run()
        lock = project_dir / "Cargo.lock"
        lock.write_text(lock.read_text().replace('version = "1.38.0"', 'version = "1.39.1"'))
        build_log.unlink()

        second = pipeline.run()

        assert second.cache_hit is False
        assert second.manifest_digest != first.manifest_digest
        assert events(build_log)[0] == "compile-deps"
        assert len(cache.entries()) == 2

    def test_no_cache(self, pipeline: BuildPipeline, build_log: Path) -> None:
        pipeline.run()
        build_log.unlink()

        report = pipeline.run(no_cache=True)

        assert report.cache_hit is False
        assert events(build_log)[0] == "compile-deps"

    def test_work_dir_inside_project(self, pipeline: BuildPipeline, project_dir: Path) -> None:
        report = pipeline.run()

        assert pipeline.work_dir == (project_dir / ".kiln").resolve()
        assert Path(report.image.image_dir) == pipeline.work_dir / "image"
        assert not (pipeline.work_dir / "app" / ".kiln").exists()


class TestPlaceholderSwap:
    """The artifact always comes from the real source."""

    @pytest.mark.requirement("placeholder-swap")
    def test_without_touch_the_placeholder_build_is_caught(
        self,
        pipeline: BuildPipeline,
        build_log: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Restored output looks up to date; the digest check stops the build."""
        monkeypatch.setattr(
            application_stage,
            "touch_newer_than",
            lambda path, reference_ns: path.stat().st_mtime_ns,
        )

        with pytest.raises(StaleArtifactError):
            pipeline.run()

        assert events(build_log)[-1] == "fresh"
        assert not (pipeline.work_dir / "image").exists()

    def test_compile_error_stops_pipeline(
        self, pipeline: BuildPipeline, project_dir: Path, cache: DependencyCache
    ) -> None:
        (project_dir / "src" / "main.rs").write_text('fn main() { compile_error!("x"); }\n')

        with pytest.raises(ApplicationBuildError) as exc_info:
            pipeline.run()

        assert exc_info.value.exit_code == COMPILE_FAILURE
        assert not (pipeline.work_dir / "image").exists()
        # The dependency stage already succeeded and stays cached
        assert len(cache.entries()) == 1


class TestRuntimeImage:
    """Properties of the assembled image."""

    @pytest.mark.requirement("minimal-runtime")
    def test_minimal_surface(self, pipeline: BuildPipeline) -> None:
        image = pipeline.run().image

        verify_minimal_surface(image.rootfs, image)
        assert not any(image.rootfs.rglob("*.rs"))
        assert not any(image.rootfs.rglob("Cargo.*"))
        assert not any(image.rootfs.rglob("deps.stamp"))

    def test_record_round_trip(self, pipeline: BuildPipeline) -> None:
        image = pipeline.run().image
        assert RuntimeImage.from_dir(Path(image.image_dir)) == image

    @pytest.mark.requirement("runtime-configuration")
    def test_oci_process_config(self, pipeline: BuildPipeline) -> None:
        image = pipeline.run().image

        config = read_image_config(image.oci_dir)["config"]
        assert config["Cmd"] == ["/usr/local/bin/htmlwordpress-api"]
        assert config["Env"] == ["RUST_LOG=info", "PORT=3000"]

    @pytest.mark.requirement("runtime-configuration")
    def test_artifact_runs_with_overrides(self, pipeline: BuildPipeline) -> None:
        """The installed artifact starts with the resolved environment."""
        image = pipeline.run().image

        defaults = LaunchConfig.from_image(image)
        overridden = LaunchConfig.from_image(image, {"PORT": "8080"})
        assert (defaults.port, defaults.log_level) == (3000, "info")
        assert overridden.port == 8080

        completed = subprocess.run(
            [overridden.executable],
            env=overridden.env,
            cwd=overridden.workdir,
            capture_output=True,
            text=True,
            check=True,
        )
        assert completed.stdout.strip() == "listening on 8080"
