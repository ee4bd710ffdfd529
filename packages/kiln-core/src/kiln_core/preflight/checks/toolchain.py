"""Builder toolchain preflight check."""

from __future__ import annotations

import shutil
import subprocess
from typing import Any

from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.models import CheckResult, CheckStatus


class ToolchainCheck(BaseCheck):
    """Verify that the builder program is installed.

    Attributes:
        program: Builder executable (first word of toolchain.build_command)
        probe_version: Also run ``<program> --version`` and record the result

    Example:
        >>> check = ToolchainCheck(program="cargo")
        >>> check.run().details["version"]
        'cargo 1.82.0 (8f40fc59f 2024-08-21)'
    """

    def __init__(
        self,
        program: str,
        probe_version: bool = True,
        timeout_seconds: int = 30,
    ) -> None:
        super().__init__(name="toolchain", timeout_seconds=timeout_seconds)
        self.program = program
        self.probe_version = probe_version

    def _execute(self) -> CheckResult:
        path = shutil.which(self.program)
        if path is None:
            return self._make_result(
                CheckStatus.FAILED,
                f"Builder '{self.program}' not found on PATH",
                hint="Install the toolchain or set toolchain.build_command in kiln.yaml",
                details={"program": self.program},
            )

        details: dict[str, Any] = {"program": self.program, "path": path}
        if not self.probe_version:
            return self._make_result(
                CheckStatus.PASSED,
                f"{self.program} found at {path}",
                details=details,
            )

        try:
            completed = subprocess.run(
                [path, "--version"],
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise TimeoutError(f"{self.program} --version did not finish") from e

        output = (completed.stdout or completed.stderr).strip()
        details["version"] = output.splitlines()[0] if output else ""
        if completed.returncode != 0:
            return self._make_result(
                CheckStatus.WARNING,
                f"{self.program} found at {path} but '--version' exited with "
                f"{completed.returncode}",
                details=details,
            )
        return self._make_result(
            CheckStatus.PASSED,
            f"{details['version'] or self.program} at {path}",
            details=details,
        )
