"""kiln validate command - Validate kiln.yaml and resolve the manifest."""

from __future__ import annotations

from pathlib import Path

import click

from kiln_cli.errors import handle_kiln_error, load_build_spec
from kiln_cli.output import info, success


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
    "--resolve/--no-resolve",
    default=True,
    help="Check the dependency manifest against its lock file [default: resolve]",
)
def validate(file_path: str, resolve: bool) -> None:
    """Validate kiln.yaml and the dependency manifest.

    Validates the build specification against its schema, then checks
    that every declared dependency is satisfied by the lock file. Nothing
    is compiled.

    Examples:

        kiln validate

        kiln validate --file services/api/kiln.yaml
    """
    spec = load_build_spec(file_path)
    success("Configuration valid")
    if not resolve:
        return

    from kiln_core import KilnError
    from kiln_core.manifest import load_manifest, resolve_dependencies

    project_dir = Path(file_path).resolve().parent
    try:
        resolved = resolve_dependencies(project_dir, spec)
        manifest = load_manifest(project_dir, spec, resolve=False)
    except KilnError as e:
        handle_kiln_error(e)

    if resolved:
        success(f"Resolved {len(resolved)} dependencies against {spec.dependencies.lockfile}")
    else:
        success(f"Manifest files present: {', '.join(spec.dependencies.files)}")
    info(f"Cache key: {manifest.digest}")
