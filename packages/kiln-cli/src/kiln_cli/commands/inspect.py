"""kiln inspect command - Show an assembled image and re-verify its surface."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from kiln_cli import output
from kiln_cli.errors import (
    CLIError,
    handle_file_not_found,
    handle_kiln_error,
    handle_validation_error,
)
from kiln_cli.output import print_json, success

if TYPE_CHECKING:
    from kiln_core import RuntimeImage


def _image_summary(image: RuntimeImage, config: dict[str, Any]) -> dict[str, Any]:
    process = config.get("config", {})
    return {
        "name": image.name,
        "image_dir": image.image_dir,
        "manifest_digest": image.manifest_digest,
        "base_image": image.base_image,
        "oci_layout": f"kiln layer only, stack on {image.base_image} to run",
        "executable": image.executable,
        "artifact_sha256": image.artifact_sha256,
        "ca_bundle": image.ca_bundle,
        "ca_bundle_sha256": image.ca_bundle_sha256,
        "workdir": image.workdir,
        "command": image.command,
        "env": image.env,
        "exposed_ports": image.exposed_ports,
        "architecture": config.get("architecture"),
        "os": config.get("os"),
        "oci_cmd": process.get("Cmd"),
        "created_at": image.created_at.isoformat(),
    }


def _print_table(summary: dict[str, Any]) -> None:
    from rich.table import Table

    table = Table(show_header=False, box=None, pad_edge=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in summary.items():
        if isinstance(value, dict):
            value = "\n".join(f"{k}={v}" for k, v in value.items()) or "-"
        elif isinstance(value, list):
            value = " ".join(str(v) for v in value) or "-"
        table.add_row(key, "-" if value is None else str(value))
    output.console.print(table)


@click.command()
@click.argument(
    "image_dir",
    type=click.Path(file_okay=False),
    default=".kiln/image",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
def inspect(image_dir: str, output_format: str) -> None:
    """Show an assembled runtime image.

    Prints the image metadata and walks its filesystem again to confirm it
    holds nothing but the executable, the CA bundle and the working
    directory.

    Examples:

        kiln inspect

        kiln inspect build/image --format json
    """
    from pydantic import ValidationError as PydanticValidationError

    from kiln_core import KilnError, RuntimeImage
    from kiln_core.image import read_image_config, verify_minimal_surface
    from kiln_core.models import IMAGE_RECORD_FILE_NAME

    directory = Path(image_dir)
    record = str(directory / IMAGE_RECORD_FILE_NAME)
    try:
        image = RuntimeImage.from_dir(directory)
    except FileNotFoundError:
        handle_file_not_found(record)
    except PydanticValidationError as e:
        handle_validation_error(e, record)

    try:
        config = read_image_config(image.oci_dir)
    except (OSError, ValueError, KeyError) as e:
        raise CLIError(f"Unreadable OCI layout in {image.oci_dir}: {e}") from None

    summary = _image_summary(image, config)
    if output_format == "json":
        print_json(summary)
    else:
        _print_table(summary)

    try:
        verify_minimal_surface(image.rootfs, image)
    except KilnError as e:
        handle_kiln_error(e)

    if output_format == "table":
        success("Image surface verified")
