"""kiln run command - Launch the artifact of an assembled image."""

from __future__ import annotations

from pathlib import Path

import click

from kiln_cli.errors import (
    CLIError,
    handle_file_not_found,
    handle_kiln_error,
    handle_validation_error,
)
from kiln_cli.output import info, print_json


def _parse_env(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated ``-e KEY=VALUE`` options; later values win."""
    overrides: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise CLIError(f"Invalid --env value {item!r}: expected KEY=VALUE")
        overrides[key] = value
    return overrides


@click.command()
@click.argument(
    "image_dir",
    type=click.Path(file_okay=False),
    default=".kiln/image",
)
@click.option(
    "-e",
    "--env",
    "env_values",
    multiple=True,
    metavar="KEY=VALUE",
    help="Set a variable at start time (repeatable)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Print the resolved launch configuration without starting the process",
)
def run(image_dir: str, env_values: tuple[str, ...], dry_run: bool) -> None:
    """Start the image's executable.

    The process environment is the image defaults with `-e` values
    applied on top, as a hosting platform would at container start. The
    port and log level are read once, when the process starts.

    Examples:

        kiln run

        kiln run -e PORT=8080 -e RUST_LOG=debug

        kiln run --dry-run
    """
    from pydantic import ValidationError as PydanticValidationError

    from kiln_core import KilnError, LaunchConfig, RuntimeImage, launch
    from kiln_core.models import IMAGE_RECORD_FILE_NAME

    directory = Path(image_dir)
    try:
        image = RuntimeImage.from_dir(directory)
    except FileNotFoundError:
        handle_file_not_found(str(directory / IMAGE_RECORD_FILE_NAME))
    except PydanticValidationError as e:
        handle_validation_error(e, str(directory / IMAGE_RECORD_FILE_NAME))

    overrides = _parse_env(env_values)
    try:
        config = LaunchConfig.from_image(image, overrides)
    except KilnError as e:
        handle_kiln_error(e)

    if dry_run:
        print_json(config.model_dump())
        return

    info(f"Starting {image.name} on port {config.port} (log level {config.log_level})")
    try:
        launch(config)
    except KilnError as e:
        handle_kiln_error(e)
    except OSError as e:
        raise CLIError(f"Failed to start {config.executable}: {e}") from None
