"""Custom exception hierarchy for kiln-core.

This module defines the exception classes raised by the build pipeline:
- KilnError: Base exception for all kiln-related errors
- ConfigurationError: kiln.yaml parsing or validation failed
- ManifestResolutionError: dependency manifest cannot be resolved
- BuildError: a builder invocation failed (dependency or application)
- StaleArtifactError: the compiled artifact is the placeholder build
- RuntimePrerequisiteError: runtime image prerequisites are unavailable
- ImageSurfaceError: the runtime image contains files it must not

Every error is fatal to the pipeline. User-facing messages are safe to
display; technical details are logged internally via structlog.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

logger = structlog.get_logger(__name__)


class KilnError(Exception):
    """Base exception for kiln.

    All kiln exceptions inherit from this class. User-facing messages
    are safe to display; technical details are logged internally.

    Args:
        user_message: Safe message to display to the user.
        internal_details: Optional technical details for logging. This is
            logged internally but never exposed to the user.

    Example:
        >>> raise KilnError(
        ...     "Build failed",
        ...     internal_details="cargo exited with status 101 in /tmp/kiln-work",
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize KilnError with user message and optional internal details.

        Args:
            user_message: Safe message to display to the user.
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message)
        self.user_message = user_message

        if internal_details:
            logger.error(
                "kiln_error",
                error_type=self.__class__.__name__,
                user_message=user_message,
                internal_details=internal_details,
            )


class ConfigurationError(KilnError):
    """Raised when kiln.yaml parsing or validation fails.

    Attributes:
        file_path: Path to the configuration file (if known).
        field_path: Dot-separated path to the invalid field (e.g., "runtime.port").
        line_number: Line number in the file where error occurred (if available).

    Example:
        >>> raise ConfigurationError(
        ...     "Invalid port",
        ...     file_path="kiln.yaml",
        ...     field_path="runtime.port",
        ...     line_number=12,
        ... )
    """

    def __init__(
        self,
        user_message: str,
        *,
        file_path: str | None = None,
        field_path: str | None = None,
        line_number: int | None = None,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ConfigurationError with context.

        Args:
            user_message: Safe message to display to the user.
            file_path: Path to the configuration file (optional).
            field_path: Dot-separated path to the field (optional).
            line_number: Line number in the file (optional).
            internal_details: Technical details for internal logging only.
        """
        context_parts: list[str] = []
        if file_path:
            context_parts.append(f"in {file_path}")
        if line_number:
            context_parts.append(f"line {line_number}")
        if field_path:
            context_parts.append(f"field '{field_path}'")

        if context_parts:
            full_message = f"{user_message} ({', '.join(context_parts)})"
        else:
            full_message = user_message

        super().__init__(full_message, internal_details=internal_details)

        self.file_path = file_path
        self.field_path = field_path
        self.line_number = line_number


class ManifestResolutionError(KilnError):
    """Raised when the dependency manifest cannot be resolved.

    Covers missing or unparseable manifest files, dependencies absent from
    the lock file, and locked versions that do not satisfy the declared
    requirement. Raised before any compilation starts.

    Attributes:
        problems: One line per unresolved or conflicting dependency.

    Example:
        >>> raise ManifestResolutionError(
        ...     ["serde: requirement ^1.0 not satisfied by locked 0.9.3"],
        ... )
        # User sees: "Dependency manifest cannot be resolved:
        #             - serde: requirement ^1.0 not satisfied by locked 0.9.3"
    """

    def __init__(
        self,
        problems: Sequence[str],
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ManifestResolutionError.

        Args:
            problems: Human-readable problem descriptions.
            internal_details: Technical details for internal logging only.
        """
        lines = ["Dependency manifest cannot be resolved:"]
        lines.extend(f"  - {problem}" for problem in problems)
        super().__init__("\n".join(lines), internal_details=internal_details)
        self.problems = list(problems)


class BuildError(KilnError):
    """Raised when a builder invocation fails.

    Attributes:
        stage: Pipeline stage that invoked the builder.
        exit_code: Builder exit status (None when the builder could not start).
        diagnostics: Tail of the builder output, for the operator.
    """

    stage = "build"

    def __init__(
        self,
        user_message: str,
        *,
        exit_code: int | None = None,
        diagnostics: str = "",
        internal_details: str | None = None,
    ) -> None:
        """Initialize BuildError.

        Args:
            user_message: Safe message to display to the user.
            exit_code: Builder exit status, if it ran.
            diagnostics: Builder diagnostic output (already truncated).
            internal_details: Technical details for internal logging only.
        """
        super().__init__(user_message, internal_details=internal_details)
        self.exit_code = exit_code
        self.diagnostics = diagnostics


class DependencyBuildError(BuildError):
    """Raised when compiling the dependency set fails.

    No cache entry is written for the failed manifest.
    """

    stage = "dependencies"


class ApplicationBuildError(BuildError):
    """Raised when compiling the application source fails.

    No artifact is produced.
    """

    stage = "application"


class StaleArtifactError(KilnError):
    """Raised when the compiled artifact is the placeholder build.

    A build that completes must reflect the real application source. If the
    artifact digest equals the digest recorded for the placeholder build,
    the builder skipped relinking and the artifact is rejected.
    """


class PipelineOrderError(KilnError):
    """Raised when an application stage step runs out of order."""


class RuntimePrerequisiteError(KilnError):
    """Raised when a runtime image prerequisite cannot be installed.

    Example:
        >>> raise RuntimePrerequisiteError(
        ...     "Trusted CA bundle not found",
        ...     internal_details="searched /etc/ssl/certs/ca-certificates.crt",
        ... )
    """


class ImageSurfaceError(KilnError):
    """Raised when the runtime image contains anything beyond its contract.

    Attributes:
        offending_paths: Image paths that violate the minimal surface.
    """

    def __init__(
        self,
        offending_paths: Sequence[str],
        *,
        internal_details: str | None = None,
    ) -> None:
        """Initialize ImageSurfaceError.

        Args:
            offending_paths: Paths (relative to the image root) that are not allowed.
            internal_details: Technical details for internal logging only.
        """
        shown = ", ".join(sorted(offending_paths)[:10])
        more = len(offending_paths) - 10
        suffix = f" (and {more} more)" if more > 0 else ""
        super().__init__(
            f"Runtime image contains unexpected entries: {shown}{suffix}",
            internal_details=internal_details,
        )
        self.offending_paths = list(offending_paths)


class CacheError(KilnError):
    """Raised when the dependency cache store cannot be read or written."""
