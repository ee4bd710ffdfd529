"""Dependency build stage.

Compiles the dependency set from the manifest alone. The application entry
point is replaced by a placeholder so the builder can link something, and
the resulting dependency output is committed to the cache under the
manifest digest. While the manifest is unchanged, later builds reuse the
cached output without compiling anything.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from kiln_core.cache import DependencyCache
from kiln_core.errors import DependencyBuildError
from kiln_core.manifest import DependencyManifest, get_resolver, read_manifest_contents
from kiln_core.models import DependencyBuildOutput
from kiln_core.observability import stage_span
from kiln_core.pipeline.runner import CommandRunner
from kiln_core.pipeline.workspace import reset_directory, sha256_file
from kiln_core.schemas import BuildSpec

logger = structlog.get_logger(__name__)

STAGE_NAME = "dependencies"


class DependencyBuildStage:
    """Resolve the manifest and produce (or reuse) the dependency build output.

    Args:
        spec: Build specification.
        project_dir: Build context directory (never modified).
        cache: Dependency cache.
        work_dir: Scratch directory; the stage uses ``<work_dir>/deps``.
        runner: Builder runner.

    Example:
        >>> stage = DependencyBuildStage(spec, Path("."), DependencyCache(), Path(".kiln"))
        >>> output = stage.run()
        >>> output.cache_hit
        False
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
        self.project_dir = project_dir
        self.cache = cache
        self.workspace = work_dir / "deps"
        self.runner = runner or CommandRunner()
        self._log = logger.bind(stage=STAGE_NAME, name=spec.name)

    def run(self, *, no_cache: bool = False) -> DependencyBuildOutput:
        """Run the stage.

        Args:
            no_cache: Rebuild even if a cache entry exists, replacing it.

        Returns:
            DependencyBuildOutput referencing the cache entry.

        Raises:
            ManifestResolutionError: If the manifest cannot be resolved.
            DependencyBuildError: If compiling the dependency set fails.
            CacheError: If the output cannot be committed.
        """
        contents = read_manifest_contents(self.project_dir, self.spec)
        get_resolver(self.spec).resolve(contents)
        manifest = DependencyManifest.from_contents(contents)

        with stage_span(STAGE_NAME, manifest_digest=manifest.short_digest) as s:
            entry = None if no_cache else self.cache.lookup(manifest.digest)
            s.set_attribute("kiln.cache_hit", entry is not None)
            if entry is not None:
                self._log.info("dependency_cache_hit", digest=manifest.short_digest)
                return DependencyBuildOutput(manifest=manifest, entry=entry, cache_hit=True)

            self._log.info("dependency_cache_miss", digest=manifest.short_digest)
            stub_sha256 = self._compile(contents)

            output_dir = self.workspace / self.spec.dependencies.output_dir
            if not output_dir.is_dir():
                raise DependencyBuildError(
                    "Dependency build produced no output directory "
                    f"'{self.spec.dependencies.output_dir}'",
                    internal_details=f"workspace={self.workspace}",
                )

            if no_cache and self.cache.lookup(manifest.digest) is not None:
                self.cache.evict(manifest.digest)
            entry = self.cache.commit(manifest, output_dir, stub_artifact_sha256=stub_sha256)

        return DependencyBuildOutput(manifest=manifest, entry=entry, cache_hit=False)

    def _compile(self, contents: list[tuple[str, bytes]]) -> str | None:
        """Build the dependency set against the placeholder entry point.

        Returns:
            Digest of the placeholder artifact, if the builder produced one.
        """
        reset_directory(self.workspace)
        for relative, data in contents:
            target = self.workspace / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        placeholder = self.workspace / self.spec.application.entry_point
        placeholder.parent.mkdir(parents=True, exist_ok=True)
        placeholder.write_text(self.spec.dependencies.placeholder)

        self.runner.run(
            self.spec.toolchain.build_command,
            cwd=self.workspace,
            env=self.spec.toolchain.env,
            error_cls=DependencyBuildError,
            description="Dependency build",
        )

        stub_artifact = self.workspace / self.spec.artifact_path
        stub_sha256 = sha256_file(stub_artifact) if stub_artifact.is_file() else None
        placeholder.unlink()
        self._log.debug("placeholder_build_completed", stub_artifact=stub_sha256 is not None)
        return stub_sha256
