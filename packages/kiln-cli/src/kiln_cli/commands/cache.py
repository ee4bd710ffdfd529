"""kiln cache commands - Inspect and maintain the dependency cache."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from kiln_cli.errors import handle_kiln_error, load_build_spec
from kiln_cli.output import info, print_json, success

if TYPE_CHECKING:
    from kiln_core import DependencyCache


def _format_size(size_bytes: int) -> str:
    size = float(size_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024 or unit == "GiB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{size_bytes} B"


@click.group()
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    default=None,
    envvar="KILN_CACHE_DIR",
    help="Dependency cache root [default: ~/.cache/kiln]",
)
@click.pass_context
def cache(ctx: click.Context, cache_dir: str | None) -> None:
    """Manage the dependency cache.

    Entries are keyed by the digest of the dependency manifest files.

    **Commands:**

    - `kiln cache key` - Print the cache key of a project
    - `kiln cache list` - List cached dependency sets
    - `kiln cache prune` - Remove old entries
    - `kiln cache evict` - Remove one entry
    """
    from kiln_core import DependencyCache

    ctx.obj = DependencyCache(Path(cache_dir)) if cache_dir else DependencyCache()


@cache.command("key")
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default="./kiln.yaml",
    help="Path to kiln.yaml [default: ./kiln.yaml]",
)
@click.pass_obj
def cache_key(store: DependencyCache, file_path: str) -> None:
    """Print the cache key of a project's dependency manifest.

    Examples:

        kiln cache key
    """
    from kiln_core import KilnError
    from kiln_core.manifest import load_manifest

    spec = load_build_spec(file_path)
    try:
        manifest = load_manifest(Path(file_path).resolve().parent, spec, resolve=False)
    except KilnError as e:
        handle_kiln_error(e)

    click.echo(manifest.digest)
    state = "cached" if store.lookup(manifest.digest) is not None else "not cached"
    click.echo(f"{', '.join(spec.dependencies.files)}: {state}", err=True)


@cache.command("list")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
@click.pass_obj
def cache_list(store: DependencyCache, output_format: str) -> None:
    """List cached dependency sets, newest first.

    Examples:

        kiln cache list --format json
    """
    entries = store.entries()

    if output_format == "json":
        print_json([entry.model_dump(mode="json") for entry in entries])
        return

    if not entries:
        info(f"No cached dependency sets in {store.root}")
        return

    from rich.table import Table

    from kiln_cli import output

    table = Table(show_header=True, header_style="bold")
    table.add_column("Key")
    table.add_column("Files")
    table.add_column("Size", justify="right")
    table.add_column("Created")
    for entry in entries:
        table.add_row(
            entry.short_digest,
            ", ".join(file.path for file in entry.manifest_files),
            _format_size(entry.size_bytes),
            entry.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )
    output.console.print(table)


@cache.command("prune")
@click.option(
    "--keep",
    type=click.IntRange(min=0),
    default=0,
    help="Number of newest entries to keep [default: 0]",
)
@click.pass_obj
def cache_prune(store: DependencyCache, keep: int) -> None:
    """Remove all but the newest entries.

    Examples:

        kiln cache prune

        kiln cache prune --keep 3
    """
    from kiln_core import KilnError

    try:
        removed = store.prune(keep=keep)
    except KilnError as e:
        handle_kiln_error(e)

    freed = sum(entry.size_bytes for entry in removed)
    success(f"Removed {len(removed)} entries ({_format_size(freed)})")


@cache.command("evict")
@click.argument("key")
@click.pass_obj
def cache_evict(store: DependencyCache, key: str) -> None:
    """Remove one entry by cache key or unique key prefix.

    Examples:

        kiln cache evict 3f2a9c
    """
    from kiln_core import KilnError

    try:
        entry = store.evict(key)
    except KilnError as e:
        handle_kiln_error(e)

    success(f"Evicted {entry.short_digest}")
