"""Builder process invocation."""

from __future__ import annotations

import os
import subprocess
from collections import deque
from collections.abc import Mapping, Sequence
from pathlib import Path

import structlog

from kiln_core.errors import BuildError

logger = structlog.get_logger(__name__)

# Lines of builder output attached to build errors
DIAGNOSTIC_TAIL_LINES = 40


class CommandRunner:
    """Run the builder and capture its diagnostics.

    Builder output (stdout and stderr, merged) is streamed line by line to
    the debug log. Only the tail is kept for error reporting.

    Args:
        tail_lines: Number of trailing output lines kept as diagnostics.
    """

    def __init__(self, tail_lines: int = DIAGNOSTIC_TAIL_LINES) -> None:
        self.tail_lines = tail_lines

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
        error_cls: type[BuildError] = BuildError,
        description: str = "Build",
    ) -> str:
        """Run argv in cwd and fail on a non-zero exit.

        Args:
            argv: Builder command line.
            cwd: Working directory (the build workspace).
            env: Extra environment variables on top of the current environment.
            error_cls: BuildError subclass raised on failure.
            description: Human name of the step, used in error messages.

        Returns:
            The diagnostic tail of a successful run.

        Raises:
            BuildError: ``error_cls`` if the builder cannot start or exits non-zero.
        """
        log = logger.bind(stage=error_cls.stage, program=argv[0])
        process_env = {**os.environ, **(env or {})}
        tail: deque[str] = deque(maxlen=self.tail_lines)

        log.info("builder_started", argv=list(argv), cwd=str(cwd))
        try:
            process = subprocess.Popen(
                list(argv),
                cwd=cwd,
                env=process_env,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise error_cls(
                f"{description} failed: builder '{argv[0]}' not found",
                internal_details=str(e),
            ) from e
        except PermissionError as e:
            raise error_cls(
                f"{description} failed: builder '{argv[0]}' is not executable",
                internal_details=str(e),
            ) from e

        assert process.stdout is not None  # Type narrowing for mypy
        with process.stdout:
            for line in process.stdout:
                line = line.rstrip("\n")
                tail.append(line)
                log.debug("builder_output", line=line)
        exit_code = process.wait()

        diagnostics = "\n".join(tail)
        if exit_code != 0:
            raise error_cls(
                f"{description} failed with exit code {exit_code}",
                exit_code=exit_code,
                diagnostics=diagnostics,
                internal_details=f"argv={list(argv)} cwd={cwd}",
            )

        log.info("builder_completed", exit_code=exit_code)
        return diagnostics
