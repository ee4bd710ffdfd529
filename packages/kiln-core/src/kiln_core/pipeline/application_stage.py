"""Application build stage.

Compiles the real application source on top of the cached dependency
output. The steps run in a fixed order:

    restore_dependencies -> remove_placeholder -> copy_source
        -> touch_entry_point -> compile -> collect_artifact

Removing the placeholder before the real source is copied in means the
placeholder can never shadow the real entry point. Touching the entry
point after copy-in makes it newer than every restored file, so the
builder cannot consider the placeholder artifact up to date. A step that
runs out of order raises PipelineOrderError.
"""

from __future__ import annotations

import os
import shutil
from datetime import datetime, timezone
from pathlib import Path

import structlog

from kiln_core.cache import DependencyCache
from kiln_core.errors import ApplicationBuildError, PipelineOrderError, StaleArtifactError
from kiln_core.manifest import compute_manifest_digest
from kiln_core.models import CompiledArtifact, DependencyBuildOutput
from kiln_core.observability import stage_span
from kiln_core.pipeline.runner import CommandRunner
from kiln_core.pipeline.workspace import (
    copy_tree,
    newest_mtime_ns,
    reset_directory,
    sha256_file,
    touch_newer_than,
    tree_digest,
)
from kiln_core.schemas import BuildSpec

logger = structlog.get_logger(__name__)

STAGE_NAME = "application"

STEPS = (
    "restore_dependencies",
    "remove_placeholder",
    "copy_source",
    "touch_entry_point",
    "compile",
    "collect_artifact",
)

# Executable mode for the collected artifact
ARTIFACT_MODE = 0o755


class ApplicationBuildStage:
    """Compile the application against restored dependency output.

    Each step is a public method so the order guard can be exercised on
    its own; ``run`` executes the whole sequence.

    Args:
        spec: Build specification.
        project_dir: Build context directory (never modified).
        cache: Dependency cache the dependency output is restored from.
        work_dir: Scratch directory; the stage uses ``<work_dir>/app`` and
            collects the artifact into ``<work_dir>/artifact``.
        runner: Builder runner.
    """

    def __init__(
        self,
        spec: BuildSpec,
        project_dir: Path,
        cache: DependencyCache,
        work_dir: Path,
        runner: CommandRunner | None = None,
    ) -> None:
        self.spec = spec
        self.project_dir = project_dir.resolve()
        self.cache = cache
        self.work_dir = work_dir.resolve()
        self.workspace = self.work_dir / "app"
        self.artifact_dir = self.work_dir / "artifact"
        self.runner = runner or CommandRunner()
        self._log = logger.bind(stage=STAGE_NAME, name=spec.name)
        self._completed: list[str] = []
        self._dependencies: DependencyBuildOutput | None = None
        self._restored_mtime_ns = 0
        self._source_digest: str | None = None

    @property
    def completed_steps(self) -> tuple[str, ...]:
        return tuple(self._completed)

    def run(self, dependencies: DependencyBuildOutput) -> CompiledArtifact:
        """Run every step in order.

        Raises:
            ApplicationBuildError: If compilation fails or no artifact is produced.
            StaleArtifactError: If the artifact is the placeholder build.
            CacheError: If the dependency output cannot be restored.
        """
        self._completed = []
        with stage_span(STAGE_NAME, manifest_digest=dependencies.manifest.short_digest) as s:
            self.restore_dependencies(dependencies)
            self.remove_placeholder()
            self.copy_source()
            self.touch_entry_point()
            self.compile()
            artifact = self.collect_artifact()
            s.set_attribute("kiln.artifact_sha256", artifact.sha256)
        return artifact

    def _begin(self, step: str) -> None:
        position = len(self._completed)
        expected = STEPS[position] if position < len(STEPS) else None
        if step != expected:
            raise PipelineOrderError(
                f"Build step '{step}' cannot run now (expected '{expected or 'nothing'}')",
                internal_details=f"completed={self._completed}",
            )

    def _finish(self, step: str) -> None:
        self._completed.append(step)
        self._log.debug("step_completed", step=step)

    def _restored_dependencies(self) -> DependencyBuildOutput:
        if self._dependencies is None:
            raise PipelineOrderError(
                "No dependency output has been restored for this build",
                internal_details=f"completed={self._completed}",
            )
        return self._dependencies

    def restore_dependencies(self, dependencies: DependencyBuildOutput) -> None:
        """Rebuild the dependency workspace: manifest, placeholder and cached output."""
        self._begin("restore_dependencies")
        self._dependencies = dependencies

        reset_directory(self.workspace)
        for manifest_file in dependencies.manifest.files:
            source = self.project_dir / manifest_file.path
            target = self.workspace / manifest_file.path
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, target)

        placeholder = self.workspace / self.spec.application.entry_point
        placeholder.parent.mkdir(parents=True, exist_ok=True)
        placeholder.write_text(self.spec.dependencies.placeholder)

        restored = self.cache.restore(
            dependencies.entry,
            self.workspace / self.spec.dependencies.output_dir,
        )
        self._restored_mtime_ns = newest_mtime_ns(restored)
        self._finish("restore_dependencies")

    def remove_placeholder(self) -> None:
        self._begin("remove_placeholder")
        placeholder = self.workspace / self.spec.application.entry_point
        if placeholder.exists():
            placeholder.unlink()
        self._finish("remove_placeholder")

    def copy_source(self) -> None:
        """Copy the build context in and check the manifest did not change."""
        self._begin("copy_source")
        dependencies = self._restored_dependencies()

        copy_tree(self.project_dir, self.workspace, exclude=self._excluded_entries())

        contents = [
            (manifest_file.path, (self.workspace / manifest_file.path).read_bytes())
            for manifest_file in dependencies.manifest.files
        ]
        if compute_manifest_digest(contents) != dependencies.manifest.digest:
            raise ApplicationBuildError(
                "Dependency manifest changed during the build; run the build again",
                internal_details=f"expected={dependencies.manifest.digest}",
            )

        entry_point = self.workspace / self.spec.application.entry_point
        if not entry_point.is_file():
            raise ApplicationBuildError(
                f"Entry point not found in source tree: {self.spec.application.entry_point}",
            )

        self._source_digest = tree_digest(
            self.workspace,
            exclude=[self.spec.dependencies.output_dir],
        )
        self._finish("copy_source")

    def touch_entry_point(self) -> None:
        """Mark the entry point newer than anything restored from the cache."""
        self._begin("touch_entry_point")
        entry_point = self.workspace / self.spec.application.entry_point
        mtime_ns = touch_newer_than(entry_point, self._restored_mtime_ns)
        self._log.debug(
            "entry_point_touched",
            entry_point=self.spec.application.entry_point,
            mtime_ns=mtime_ns,
        )
        self._finish("touch_entry_point")

    def compile(self) -> None:
        self._begin("compile")
        self.runner.run(
            self.spec.toolchain.build_command,
            cwd=self.workspace,
            env=self.spec.toolchain.env,
            error_cls=ApplicationBuildError,
            description="Application build",
        )
        self._finish("compile")

    def collect_artifact(self) -> CompiledArtifact:
        """Check the artifact is real and copy it out of the workspace.

        Raises:
            ApplicationBuildError: If no regular file exists at the artifact path.
            StaleArtifactError: If the artifact equals the placeholder build.
        """
        self._begin("collect_artifact")
        dependencies = self._restored_dependencies()
        if self._source_digest is None:
            raise PipelineOrderError(
                "Build step 'collect_artifact' ran before the source was copied",
                internal_details=f"completed={self._completed}",
            )

        built = self.workspace / self.spec.artifact_path
        if built.is_symlink() or not built.is_file():
            raise ApplicationBuildError(
                f"Build completed but produced no artifact at {self.spec.artifact_path}",
            )

        digest = sha256_file(built)
        if digest == dependencies.entry.stub_artifact_sha256:
            raise StaleArtifactError(
                "Compiled artifact is the placeholder build; the application source "
                "was not compiled",
                internal_details=f"artifact={built} sha256={digest}",
            )

        reset_directory(self.artifact_dir)
        collected = self.artifact_dir / self.spec.name
        shutil.copyfile(built, collected)
        os.chmod(collected, ARTIFACT_MODE)

        artifact = CompiledArtifact(
            name=self.spec.name,
            path=str(collected),
            sha256=digest,
            size_bytes=collected.stat().st_size,
            source_digest=self._source_digest,
            manifest_digest=dependencies.manifest.digest,
            built_at=datetime.now(timezone.utc),
        )
        self._finish("collect_artifact")
        self._log.info("artifact_collected", sha256=digest[:12], size_bytes=artifact.size_bytes)
        return artifact

    def _excluded_entries(self) -> list[str]:
        excluded = set(self.spec.application.exclude)
        # Restored dependency output is never overwritten by the build context
        excluded.add(self.spec.dependencies.output_dir.split("/")[0])
        if self.work_dir.is_relative_to(self.project_dir) and self.work_dir != self.project_dir:
            excluded.add(self.work_dir.relative_to(self.project_dir).parts[0])
        return sorted(excluded)
