"""CLI error handling for kiln-cli.

This module wraps kiln-core exceptions into user-friendly messages with
appropriate exit codes.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click
from pydantic import ValidationError as PydanticValidationError

from kiln_cli.output import diagnostics, error

if TYPE_CHECKING:
    from pydantic_core import ErrorDetails

    from kiln_core import BuildSpec, KilnError


# Exit codes following sysexits.h convention
EXIT_SUCCESS = 0
EXIT_USER_ERROR = 1  # User or build error (validation, resolution, compilation)
EXIT_SYSTEM_ERROR = 2  # System error (file not found, permission denied)


class CLIError(click.ClickException):
    """CLI-specific exception with exit code support.

    Attributes:
        message: User-facing error message.
        exit_code: Exit code for the CLI (default: 1).
    """

    def __init__(self, message: str, exit_code: int = EXIT_USER_ERROR) -> None:
        super().__init__(message)
        self.exit_code = exit_code

    def show(self, file: object = None) -> None:
        """Display the error message using Rich formatting."""
        error(self.format_message())


def format_pydantic_error(err: PydanticValidationError) -> str:
    """Format Pydantic validation error into user-friendly message.

    Example:
        >>> format_pydantic_error(err)
        "Validation failed:\\n  - runtime.port: Input should be less than or equal to 65535"
    """
    errors: list[ErrorDetails] = err.errors()
    lines = ["Validation failed:"]

    for e in errors:
        loc = ".".join(str(x) for x in e["loc"])
        msg = e["msg"]
        lines.append(f"  - {loc}: {msg}" if loc else f"  - {msg}")

    return "\n".join(lines)


def handle_yaml_error(err: Exception, file_path: str) -> NoReturn:
    """Raise CLIError for a YAML syntax error, with line information."""
    error_msg = str(err)
    mark = getattr(err, "problem_mark", None)
    if mark is not None:
        line = mark.line + 1
        col = mark.column + 1
        problem = getattr(err, "problem", None) or "syntax error"
        error_msg = f"YAML syntax error at line {line}, column {col}: {problem}"

    raise CLIError(f"Invalid YAML in {file_path}: {error_msg}")


def handle_validation_error(err: PydanticValidationError, file_path: str) -> NoReturn:
    formatted = format_pydantic_error(err)
    raise CLIError(f"Invalid configuration in {file_path}:\n{formatted}")


def handle_file_not_found(file_path: str) -> NoReturn:
    raise CLIError(
        f"File not found: {file_path}\n\n"
        "Run 'kiln init' to create a build specification, or use --file to specify a path.",
        exit_code=EXIT_SYSTEM_ERROR,
    )


def handle_permission_error(path: str, operation: str = "access") -> NoReturn:
    raise CLIError(
        f"Permission denied: Cannot {operation} {path}",
        exit_code=EXIT_SYSTEM_ERROR,
    )


def handle_kiln_error(err: KilnError) -> NoReturn:
    """Raise CLIError for a kiln-core error.

    Builder diagnostics (the tail of the builder output) are printed
    before the error message.
    """
    from kiln_core import BuildError

    if isinstance(err, BuildError) and err.diagnostics:
        diagnostics(err.diagnostics)
    raise CLIError(err.user_message, exit_code=EXIT_USER_ERROR)


def load_build_spec(file_path: str) -> BuildSpec:
    """Load kiln.yaml, mapping every failure to a CLIError.

    Raises:
        CLIError: Exit code 2 for a missing or unreadable file, 1 for YAML,
            schema or credential errors.
    """
    import yaml

    from kiln_core import BuildSpec
    from kiln_core.security import CredentialDetectedError

    path = Path(file_path)
    if not path.exists():
        handle_file_not_found(file_path)

    try:
        return BuildSpec.from_yaml(path)
    except FileNotFoundError:
        handle_file_not_found(file_path)
    except PermissionError:
        handle_permission_error(file_path, "read")
    except yaml.YAMLError as e:
        handle_yaml_error(e, file_path)
    except PydanticValidationError as e:
        handle_validation_error(e, file_path)
    except CredentialDetectedError as e:
        raise CLIError(f"Invalid configuration in {file_path}: {e}") from None


def exit_with_error(message: str, exit_code: int = EXIT_USER_ERROR) -> NoReturn:
    """Exit the CLI with an error message."""
    error(message)
    sys.exit(exit_code)
