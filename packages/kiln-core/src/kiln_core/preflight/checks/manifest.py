"""Dependency manifest preflight check."""

from __future__ import annotations

from pathlib import Path

from kiln_core.errors import ManifestResolutionError
from kiln_core.manifest import DependencyManifest, resolve_dependencies
from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus
from kiln_core.schemas import BuildSpec


class ManifestCheck(BaseCheck):
    """Verify that the manifest files exist and resolve against the lock."""

    def __init__(self, spec: BuildSpec, project_dir: Path) -> None:
        super().__init__(name="manifest")
        self.spec = spec
        self.project_dir = project_dir

    def _execute(self) -> CheckResult:
        try:
            resolved = resolve_dependencies(self.project_dir, self.spec)
        except ManifestResolutionError as e:
            return self._make_result(
                CheckStatus.FAILED,
                f"Dependency manifest cannot be resolved ({len(e.problems)} problems)",
                hint=(
                    "Run the toolchain's lock update (e.g. 'cargo update') "
                    "and commit the lock file"
                ),
                details={"problems": e.problems},
            )

        manifest = DependencyManifest.load(self.project_dir, self.spec)
        return self._make_result(
            CheckStatus.PASSED,
            f"{len(resolved)} dependencies resolved (cache key {manifest.short_digest})",
            details={"digest": manifest.digest, "files": list(self.spec.dependencies.files)},
        )
