"""Preflight result models.

Models for the outcome of the checks that run before a build.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CheckStatus(str, Enum):
    """Status of a preflight check.

    Attributes:
        PASSED: Check passed
        FAILED: The build would fail for the reason reported
        SKIPPED: Check was disabled
        WARNING: Build can proceed, but something deserves attention
        ERROR: The check itself crashed
    """

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"
    ERROR = "error"


class CheckResult(BaseModel):
    """Result of a single preflight check.

    Attributes:
        name: Check name (e.g., "toolchain", "manifest")
        status: Check status
        message: Human-readable result message
        hint: What to do about a failure, if known
        details: Additional details (paths, versions, problems)
        duration_ms: Check duration in milliseconds
        timestamp: When the check was performed

    Example:
        >>> result = CheckResult(
        ...     name="toolchain",
        ...     status=CheckStatus.PASSED,
        ...     message="cargo found at /usr/local/cargo/bin/cargo",
        ... )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1, description="Check name")
    status: CheckStatus = Field(..., description="Check status")
    message: str = Field(default="", description="Result message")
    hint: str = Field(default="", description="Remediation hint")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional details")
    duration_ms: int = Field(default=0, ge=0, description="Duration in milliseconds")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Check timestamp"
    )

    @property
    def passed(self) -> bool:
        return self.status in (CheckStatus.PASSED, CheckStatus.SKIPPED, CheckStatus.WARNING)

    @property
    def failed(self) -> bool:
        return self.status in (CheckStatus.FAILED, CheckStatus.ERROR)


class PreflightResult(BaseModel):
    """Aggregated result of all preflight checks.

    Attributes:
        checks: Individual check results, in run order
        overall_status: Worst status among the checks
        started_at: When preflight started
        finished_at: When preflight finished
        total_duration_ms: Total duration in milliseconds
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    checks: list[CheckResult] = Field(default_factory=list, description="Check results")
    overall_status: CheckStatus = Field(default=CheckStatus.PASSED, description="Overall status")
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Start time"
    )
    finished_at: datetime | None = Field(default=None, description="End time")
    total_duration_ms: int = Field(default=0, ge=0, description="Total duration")

    @property
    def passed(self) -> bool:
        """True if the build can proceed."""
        return self.overall_status in (
            CheckStatus.PASSED,
            CheckStatus.WARNING,
            CheckStatus.SKIPPED,
        )

    @property
    def failed(self) -> bool:
        return self.overall_status in (CheckStatus.FAILED, CheckStatus.ERROR)

    @property
    def passed_count(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for c in self.checks if c.failed)
