"""Preflight check runner.

Runs the checks that predict whether ``kiln build`` can succeed, without
compiling anything.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from pathlib import Path

import structlog

from kiln_core.cache import DependencyCache
from kiln_core.preflight.checks import (
    BaseCheck,
    CacheCheck,
    CertificateCheck,
    ManifestCheck,
    ToolchainCheck,
)
from kiln_core.preflight.config import PreflightConfig
from kiln_core.preflight.models import CheckResult, CheckStatus, PreflightResult
from kiln_core.schemas import BuildSpec, ToolchainKind

logger = structlog.get_logger(__name__)


class PreflightRunner:
    """Orchestrates preflight check execution.

    Attributes:
        config: Preflight configuration
        spec: Build specification the checks apply to
        project_dir: Build context directory
        cache: Dependency cache

    Example:
        >>> runner = PreflightRunner(PreflightConfig(), spec, Path("."))
        >>> result = runner.run()
        >>> print(result.overall_status)
    """

    def __init__(
        self,
        config: PreflightConfig,
        spec: BuildSpec,
        project_dir: Path,
        cache: DependencyCache | None = None,
    ) -> None:
        self.config = config
        self.spec = spec
        self.project_dir = project_dir
        self.cache = cache or DependencyCache()
        self.fail_fast = config.fail_fast
        self._log = logger.bind(component="preflight_runner")

    def run(self) -> PreflightResult:
        """Run all enabled checks.

        Returns:
            PreflightResult with all check outcomes
        """
        start_time = time.monotonic()
        started_at = datetime.now(UTC)
        results: list[CheckResult] = []

        checks = self._build_checks()
        self._log.info("preflight_started", count=len(checks), fail_fast=self.fail_fast)

        for check in checks:
            result = check.run()
            results.append(result)

            if self.fail_fast and result.failed:
                self._log.warning(
                    "fail_fast_triggered",
                    check=check.name,
                    status=result.status.value,
                )
                break

        total_duration_ms = int((time.monotonic() - start_time) * 1000)
        overall_status = self._determine_overall_status(results)

        self._log.info(
            "preflight_completed",
            overall_status=overall_status.value,
            total_duration_ms=total_duration_ms,
            passed=sum(1 for r in results if r.passed),
            failed=sum(1 for r in results if r.failed),
        )

        return PreflightResult(
            checks=results,
            overall_status=overall_status,
            started_at=started_at,
            finished_at=datetime.now(UTC),
            total_duration_ms=total_duration_ms,
        )

    def _build_checks(self) -> list[BaseCheck]:
        checks: list[BaseCheck] = []
        if self.config.toolchain:
            checks.append(
                ToolchainCheck(
                    program=self.spec.toolchain.program,
                    probe_version=self.spec.toolchain.kind == ToolchainKind.CARGO,
                    timeout_seconds=self.config.timeout_seconds,
                )
            )
        if self.config.manifest:
            checks.append(ManifestCheck(self.spec, self.project_dir))
        if self.config.cache:
            checks.append(CacheCheck(self.cache))
        if self.config.certificates:
            checks.append(CertificateCheck(self.spec.runtime))
        return checks

    def _determine_overall_status(self, results: list[CheckResult]) -> CheckStatus:
        if not results:
            return CheckStatus.SKIPPED

        if any(r.status == CheckStatus.ERROR for r in results):
            return CheckStatus.ERROR

        if any(r.status == CheckStatus.FAILED for r in results):
            return CheckStatus.FAILED

        if any(r.status == CheckStatus.WARNING for r in results):
            return CheckStatus.WARNING

        return CheckStatus.PASSED


def run_preflight(
    spec: BuildSpec,
    project_dir: Path,
    config: PreflightConfig | None = None,
) -> PreflightResult:
    """Run preflight checks for a build specification.

    Example:
        >>> result = run_preflight(BuildSpec.from_yaml("kiln.yaml"), Path("."))
        >>> if result.passed:
        ...     print("Ready to build")
    """
    return PreflightRunner(config or PreflightConfig(), spec, project_dir).run()
