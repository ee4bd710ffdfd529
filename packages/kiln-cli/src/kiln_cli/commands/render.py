"""kiln render command - Emit the equivalent two-stage Containerfile."""

from __future__ import annotations

from pathlib import Path

import click

from kiln_cli.errors import handle_permission_error, load_build_spec
from kiln_cli.output import success


@click.command()
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default="./kiln.yaml",
    help="Path to kiln.yaml [default: ./kiln.yaml]",
)
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the recipe to a file instead of stdout",
)
def render(file_path: str, output_path: str | None) -> None:
    """Render a two-stage Containerfile for the build.

    The recipe compiles the dependency set against a placeholder entry
    point in the builder stage, then the real source, and copies only the
    executable and the CA bundle into the runtime stage. Use it where the
    build has to run under a container engine instead of kiln.

    Examples:

        kiln render

        kiln render -o Containerfile
    """
    spec = load_build_spec(file_path)

    from kiln_core import render_containerfile

    content = render_containerfile(spec)
    if output_path is None:
        click.echo(content, nl=False)
        return

    output = Path(output_path)
    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(content)
    except PermissionError:
        handle_permission_error(output_path, "write")
    success(f"Containerfile written to {output}")
