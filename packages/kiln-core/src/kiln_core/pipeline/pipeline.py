"""Three-stage build pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import structlog

from kiln_core.cache import DependencyCache
from kiln_core.models import BuildReport
from kiln_core.pipeline.application_stage import ApplicationBuildStage
from kiln_core.pipeline.dependency_stage import DependencyBuildStage
from kiln_core.pipeline.runner import CommandRunner
from kiln_core.pipeline.runtime_stage import RuntimeAssemblyStage
from kiln_core.schemas import BuildSpec

logger = structlog.get_logger(__name__)

# Default scratch directory, relative to the project
DEFAULT_WORK_DIR = ".kiln"


class BuildPipeline:
    """Run the dependency, application and runtime stages in order.

    Every stage failure is fatal: the pipeline stops at the first error and
    no later stage runs. Nothing is retried.

    Args:
        spec: Build specification.
        project_dir: Build context directory.
        cache: Dependency cache (default: the user cache directory).
        work_dir: Scratch directory (default: ``<project_dir>/.kiln``).
        runner: Builder runner shared by both build stages.

    Example:
        >>> spec = BuildSpec.from_yaml("kiln.yaml")
        >>> report = BuildPipeline(spec, Path(".")).run()
        >>> report.image.image_dir
        '/srv/app/.kiln/image'
    """

    def __init__(
        self,
        spec: BuildSpec,
        project_dir: Path,
        *,
        cache: DependencyCache | None = None,
        work_dir: Path | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.spec = spec
        self.project_dir = project_dir.resolve()
        self.cache = cache or DependencyCache()
        self.work_dir = (work_dir or self.project_dir / DEFAULT_WORK_DIR).resolve()
        self.runner = runner or CommandRunner()

    def run(self, *, no_cache: bool = False) -> BuildReport:
        """Build the runtime image.

        Args:
            no_cache: Rebuild the dependency set even if it is cached.

        Returns:
            BuildReport describing the run.

        Raises:
            ManifestResolutionError: Manifest cannot be resolved.
            DependencyBuildError: Dependency compilation failed.
            ApplicationBuildError: Application compilation failed.
            StaleArtifactError: The artifact is the placeholder build.
            RuntimePrerequisiteError: The CA bundle cannot be installed.
            ImageSurfaceError: The image holds unexpected entries.
        """
        started_at = datetime.now(timezone.utc)
        log = logger.bind(name=self.spec.name, work_dir=str(self.work_dir))
        log.info("build_started", no_cache=no_cache)
        self.work_dir.mkdir(parents=True, exist_ok=True)

        dependencies = DependencyBuildStage(
            self.spec, self.project_dir, self.cache, self.work_dir, self.runner
        ).run(no_cache=no_cache)
        artifact = ApplicationBuildStage(
            self.spec, self.project_dir, self.cache, self.work_dir, self.runner
        ).run(dependencies)
        image = RuntimeAssemblyStage(self.spec, self.work_dir).run(artifact)

        report = BuildReport(
            name=self.spec.name,
            manifest_digest=dependencies.manifest.digest,
            cache_hit=dependencies.cache_hit,
            artifact=artifact,
            image=image,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
        )
        log.info(
            "build_completed",
            cache_hit=report.cache_hit,
            duration_seconds=round(report.duration_seconds, 3),
        )
        return report
