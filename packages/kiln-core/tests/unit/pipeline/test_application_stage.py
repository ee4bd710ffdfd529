"""Tests for the application build stage and its step order."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from kiln_core import BuildSpec, DependencyCache
from kiln_core.errors import ApplicationBuildError, PipelineOrderError, StaleArtifactError
from kiln_core.models import DependencyBuildOutput
from kiln_core.pipeline import (
    STEPS,
    ApplicationBuildStage,
    DependencyBuildStage,
    application_stage,
)
from kiln_core.pipeline.workspace import sha256_file, tree_digest
from testing.fixtures.toolchain import COMPILE_FAILURE, read_build_log


@pytest.fixture
def dependencies(
    spec: BuildSpec, project_dir: Path, cache: DependencyCache, work_dir: Path, build_log: Path
) -> DependencyBuildOutput:
    """Dependency output built and committed; the build log starts empty."""
    output = DependencyBuildStage(spec, project_dir, cache, work_dir).run()
    build_log.unlink()
    return output


@pytest.fixture
def stage(
    spec: BuildSpec, project_dir: Path, cache: DependencyCache, work_dir: Path
) -> ApplicationBuildStage:
    return ApplicationBuildStage(spec, project_dir, cache, work_dir)


class TestRun:
    """Tests for the full step sequence."""

    @pytest.mark.requirement("placeholder-swap")
    def test_compiles_real_source(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        project_dir: Path,
        build_log: Path,
    ) -> None:
        artifact = stage.run(dependencies)

        assert [event for event, _ in read_build_log(build_log)] == ["deps-fresh", "link"]
        source_sha = sha256_file(project_dir / "src" / "main.rs")
        assert f"built from {source_sha}" in Path(artifact.path).read_text()
        assert artifact.sha256 != dependencies.entry.stub_artifact_sha256

    def test_artifact_collected(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        work_dir: Path,
        spec: BuildSpec,
    ) -> None:
        artifact = stage.run(dependencies)

        collected = Path(artifact.path)
        assert collected == (work_dir / "artifact" / spec.name).resolve()
        assert stat.S_IMODE(collected.stat().st_mode) == 0o755
        assert artifact.sha256 == sha256_file(collected)
        assert artifact.size_bytes == collected.stat().st_size
        assert artifact.manifest_digest == dependencies.manifest.digest

    def test_all_steps_completed(
        self, stage: ApplicationBuildStage, dependencies: DependencyBuildOutput
    ) -> None:
        stage.run(dependencies)
        assert stage.completed_steps == STEPS

    def test_build_context_excluded_entries(
        self, stage: ApplicationBuildStage, dependencies: DependencyBuildOutput, work_dir: Path
    ) -> None:
        stage.run(dependencies)

        workspace = work_dir / "app"
        assert not (workspace / "build.log").exists()
        assert not (workspace / "certs").exists()
        assert (workspace / "kiln.yaml").is_file()

    def test_project_untouched(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        project_dir: Path,
    ) -> None:
        before = tree_digest(project_dir, exclude=["build.log"])
        stage.run(dependencies)
        assert tree_digest(project_dir, exclude=["build.log"]) == before
        assert not (project_dir / "target").exists()

    def test_source_digest_ignores_dependency_output(
        self,
        spec: BuildSpec,
        project_dir: Path,
        cache: DependencyCache,
        work_dir: Path,
        dependencies: DependencyBuildOutput,
    ) -> None:
        first = ApplicationBuildStage(spec, project_dir, cache, work_dir).run(dependencies)
        second = ApplicationBuildStage(spec, project_dir, cache, work_dir).run(dependencies)
        assert first.source_digest == second.source_digest

    def test_rebuild_after_source_change(
        self,
        spec: BuildSpec,
        project_dir: Path,
        cache: DependencyCache,
        work_dir: Path,
        dependencies: DependencyBuildOutput,
    ) -> None:
        first = ApplicationBuildStage(spec, project_dir, cache, work_dir).run(dependencies)
        (project_dir / "src" / "main.rs").write_text('fn main() { println!("v2"); }\n')

        second = ApplicationBuildStage(spec, project_dir, cache, work_dir).run(dependencies)

        assert second.sha256 != first.sha256
        assert second.source_digest != first.source_digest


class TestStepOrder:
    """Steps run only in their fixed order."""

    @pytest.mark.requirement("placeholder-swap")
    def test_copy_before_placeholder_removal_rejected(
        self, stage: ApplicationBuildStage, dependencies: DependencyBuildOutput
    ) -> None:
        stage.restore_dependencies(dependencies)
        with pytest.raises(PipelineOrderError, match="expected 'remove_placeholder'"):
            stage.copy_source()

    def test_first_step_must_be_restore(self, stage: ApplicationBuildStage) -> None:
        with pytest.raises(PipelineOrderError, match="'compile' cannot run now"):
            stage.compile()
        assert stage.completed_steps == ()

    @pytest.mark.requirement("placeholder-swap")
    def test_compile_requires_touch(
        self, stage: ApplicationBuildStage, dependencies: DependencyBuildOutput
    ) -> None:
        stage.restore_dependencies(dependencies)
        stage.remove_placeholder()
        stage.copy_source()
        with pytest.raises(PipelineOrderError, match="expected 'touch_entry_point'"):
            stage.compile()

    def test_steps_cannot_repeat(
        self, stage: ApplicationBuildStage, dependencies: DependencyBuildOutput
    ) -> None:
        stage.run(dependencies)
        with pytest.raises(PipelineOrderError, match="expected 'nothing'"):
            stage.collect_artifact()

    def test_copy_without_restored_dependencies(self, stage: ApplicationBuildStage) -> None:
        stage._completed = ["restore_dependencies", "remove_placeholder"]
        with pytest.raises(PipelineOrderError, match="No dependency output"):
            stage.copy_source()

    def test_collect_without_source_digest(
        self, stage: ApplicationBuildStage, dependencies: DependencyBuildOutput
    ) -> None:
        stage.restore_dependencies(dependencies)
        stage._completed = [
            "restore_dependencies",
            "remove_placeholder",
            "copy_source",
            "touch_entry_point",
            "compile",
        ]
        with pytest.raises(PipelineOrderError, match="before the source was copied"):
            stage.collect_artifact()

    def test_placeholder_removed_before_copy(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        spec: BuildSpec,
        work_dir: Path,
    ) -> None:
        entry_point = work_dir / "app" / spec.application.entry_point

        stage.restore_dependencies(dependencies)
        assert entry_point.read_text() == spec.dependencies.placeholder
        stage.remove_placeholder()
        assert not entry_point.exists()

    def test_touch_makes_entry_point_newest(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        spec: BuildSpec,
        work_dir: Path,
    ) -> None:
        workspace = work_dir / "app"
        stage.restore_dependencies(dependencies)
        stage.remove_placeholder()
        stage.copy_source()
        stage.touch_entry_point()

        entry_mtime = (workspace / spec.application.entry_point).stat().st_mtime_ns
        restored = [p for p in (workspace / "target").rglob("*") if p.is_file()]
        assert restored
        assert all(entry_mtime > p.stat().st_mtime_ns for p in restored)


class TestFailures:
    """Tests for application build failures."""

    def test_stale_artifact_detected(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        build_log: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        # Without the touch the copied entry point is older than the restored artifact
        monkeypatch.setattr(
            application_stage,
            "touch_newer_than",
            lambda path, reference_ns: path.stat().st_mtime_ns,
        )

        with pytest.raises(StaleArtifactError, match="placeholder build"):
            stage.run(dependencies)

        assert [event for event, _ in read_build_log(build_log)] == ["deps-fresh", "fresh"]

    def test_compile_error(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        project_dir: Path,
    ) -> None:
        (project_dir / "src" / "main.rs").write_text('fn main() { compile_error!("no"); }\n')

        with pytest.raises(ApplicationBuildError) as exc_info:
            stage.run(dependencies)

        assert exc_info.value.exit_code == COMPILE_FAILURE
        assert exc_info.value.stage == "application"
        assert "compile_error! invoked" in exc_info.value.diagnostics

    def test_missing_entry_point(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        project_dir: Path,
    ) -> None:
        (project_dir / "src" / "main.rs").unlink()

        with pytest.raises(ApplicationBuildError, match="Entry point not found"):
            stage.run(dependencies)

    def test_manifest_changed_during_build(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        project_dir: Path,
    ) -> None:
        with (project_dir / "Cargo.lock").open("a") as f:
            f.write("\n")

        with pytest.raises(ApplicationBuildError, match="manifest changed"):
            stage.run(dependencies)

    def test_no_artifact_produced(
        self,
        stage: ApplicationBuildStage,
        dependencies: DependencyBuildOutput,
        spec: BuildSpec,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def build_then_remove(*args: object, **kwargs: object) -> str:
            (stage.workspace / spec.artifact_path).unlink()
            return ""

        monkeypatch.setattr(stage.runner, "run", build_then_remove)

        with pytest.raises(ApplicationBuildError, match="produced no artifact"):
            stage.run(dependencies)
