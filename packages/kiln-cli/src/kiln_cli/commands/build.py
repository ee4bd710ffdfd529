"""kiln build command - Run the dependency, application and runtime stages."""

from __future__ import annotations

from pathlib import Path

import click

from kiln_cli.errors import handle_kiln_error, handle_permission_error, load_build_spec
from kiln_cli.output import info, success

BUILD_REPORT_FILE_NAME = "build_report.json"


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
    type=click.Path(file_okay=False),
    default=None,
    help="Work directory [default: .kiln/ next to kiln.yaml]",
)
@click.option(
    "--no-cache",
    is_flag=True,
    default=False,
    help="Recompile the dependency set even if it is cached",
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    default=None,
    envvar="KILN_CACHE_DIR",
    help="Dependency cache root [default: ~/.cache/kiln]",
)
def build(
    file_path: str,
    output_path: str | None,
    no_cache: bool,
    cache_dir: str | None,
) -> None:
    """Build the runtime image.

    Compiles the dependency set (or restores it from the cache), compiles
    the application against it, and assembles an image that holds only
    the executable and a trusted CA bundle. Any stage failure stops the
    build.

    Examples:

        kiln build

        kiln build --no-cache

        kiln build --file services/api/kiln.yaml --output build/
    """
    spec = load_build_spec(file_path)
    project_dir = Path(file_path).resolve().parent

    from kiln_core import BuildPipeline, DependencyCache, KilnError

    cache = DependencyCache(Path(cache_dir)) if cache_dir else DependencyCache()
    work_dir = Path(output_path) if output_path else None
    pipeline = BuildPipeline(spec, project_dir, cache=cache, work_dir=work_dir)

    try:
        report = pipeline.run(no_cache=no_cache)
    except KilnError as e:
        handle_kiln_error(e)
    except PermissionError as e:
        handle_permission_error(str(e.filename or pipeline.work_dir), "write")

    report_path = pipeline.work_dir / BUILD_REPORT_FILE_NAME
    report_path.write_text(report.model_dump_json(indent=2))

    source = "restored from cache" if report.cache_hit else "compiled"
    info(f"Dependencies {source} ({report.manifest_digest[:12]})")
    info(f"Artifact {report.artifact.name} sha256:{report.artifact.sha256[:12]}")
    success(f"Built image {report.image.manifest_digest} in {report.image.image_dir}")
    info(f"Report written to {report_path}")
