"""Base class for preflight checks."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import structlog

from kiln_core.errors import KilnError
from kiln_core.preflight.models import CheckResult, CheckStatus

logger = structlog.get_logger(__name__)


class BaseCheck(ABC):
    """Base class for preflight checks.

    Runs the check with timing and logging. A KilnError raised by the check
    is an expected failure (FAILED, with the error's user message); any
    other exception means the check itself broke (ERROR).

    Attributes:
        name: Check name for identification
        timeout_seconds: Maximum time for external commands the check runs

    Example:
        >>> class MyCheck(BaseCheck):
        ...     def _execute(self) -> CheckResult:
        ...         return self._make_result(CheckStatus.PASSED, "ok")
    """

    def __init__(self, name: str, timeout_seconds: int = 30) -> None:
        self.name = name
        self.timeout_seconds = timeout_seconds
        self._log = logger.bind(check=name)

    def run(self) -> CheckResult:
        """Run the check with timing and error handling.

        Returns:
            CheckResult with status, message, and duration.
        """
        start_time = time.monotonic()
        timestamp = datetime.now(UTC)
        self._log.debug("check_started")

        try:
            result = self._execute()
        except KilnError as e:
            result = self._make_result(
                CheckStatus.FAILED,
                e.user_message,
                details={"error_type": type(e).__name__},
            )
        except TimeoutError as e:
            result = self._make_result(
                CheckStatus.ERROR,
                f"Check timed out after {self.timeout_seconds}s",
                details={"error": str(e)},
            )
        except Exception as e:
            self._log.error("check_error", error=str(e))
            result = self._make_result(
                CheckStatus.ERROR,
                f"Check failed with error: {type(e).__name__}",
                details={"error": str(e), "error_type": type(e).__name__},
            )

        duration_ms = int((time.monotonic() - start_time) * 1000)
        final_result = result.model_copy(
            update={"duration_ms": duration_ms, "timestamp": timestamp}
        )
        self._log.info(
            "check_completed",
            status=final_result.status.value,
            duration_ms=duration_ms,
        )
        return final_result

    @abstractmethod
    def _execute(self) -> CheckResult:
        """Perform the check.

        Raises:
            KilnError: Reported as FAILED.
            Exception: Anything else is reported as ERROR.
        """

    def _make_result(
        self,
        status: CheckStatus,
        message: str = "",
        *,
        hint: str = "",
        details: dict[str, Any] | None = None,
    ) -> CheckResult:
        return CheckResult(
            name=self.name,
            status=status,
            message=message,
            hint=hint,
            details=details or {},
        )
