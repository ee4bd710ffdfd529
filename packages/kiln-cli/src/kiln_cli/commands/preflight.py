"""kiln preflight command - Check build prerequisites without compiling."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import click

from kiln_cli import output
from kiln_cli.errors import load_build_spec
from kiln_cli.output import error, info, success


@dataclass
class PreflightOptions:
    """Grouped preflight CLI options."""

    file_path: str
    toolchain: bool
    manifest: bool
    cache: bool
    certificates: bool
    cache_dir: str | None
    timeout: int
    fail_fast: bool
    output_format: str
    verbose: bool


def _enabled_checks(opts: PreflightOptions) -> list[str]:
    flags = {
        "toolchain": opts.toolchain,
        "manifest": opts.manifest,
        "cache": opts.cache,
        "certificates": opts.certificates,
    }
    return [name for name, enabled in flags.items() if enabled]


def _run_preflight_checks(opts: PreflightOptions) -> None:
    """Execute preflight checks and display results.

    Raises:
        SystemExit: With code 0 on success, 1 on failure
    """
    from kiln_core import DependencyCache
    from kiln_core.preflight import PreflightConfig, PreflightRunner, print_result

    spec = load_build_spec(opts.file_path)
    project_dir = Path(opts.file_path).resolve().parent

    config = PreflightConfig(
        toolchain=opts.toolchain,
        manifest=opts.manifest,
        cache=opts.cache,
        certificates=opts.certificates,
        timeout_seconds=opts.timeout,
        fail_fast=opts.fail_fast,
    )
    if opts.verbose:
        info(f"Running checks: {', '.join(_enabled_checks(opts)) or 'none'}")

    cache = DependencyCache(Path(opts.cache_dir)) if opts.cache_dir else DependencyCache()
    result = PreflightRunner(config, spec, project_dir, cache=cache).run()
    print_result(result, output_format=opts.output_format, console=output.console)

    if result.passed:
        if opts.output_format == "table":
            success("Preflight checks passed")
        raise SystemExit(0)
    if opts.output_format == "table":
        error("Preflight checks failed")
    raise SystemExit(1)


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
    "--toolchain/--no-toolchain",
    default=True,
    help="Enable/disable the builder check",
)
@click.option(
    "--manifest/--no-manifest",
    default=True,
    help="Enable/disable the manifest resolution check",
)
@click.option(
    "--cache/--no-cache",
    default=True,
    help="Enable/disable the cache writability check",
)
@click.option(
    "--certificates/--no-certificates",
    default=True,
    help="Enable/disable the CA bundle check",
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False),
    default=None,
    envvar="KILN_CACHE_DIR",
    help="Dependency cache root [default: ~/.cache/kiln]",
)
@click.option(
    "--timeout",
    default=30,
    type=click.IntRange(1, 300),
    help="Check timeout in seconds [default: 30]",
)
@click.option(
    "--fail-fast",
    is_flag=True,
    default=False,
    help="Stop on first failure",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Verbose output",
)
def preflight(
    file_path: str,
    toolchain: bool,
    manifest: bool,
    cache: bool,
    certificates: bool,
    cache_dir: str | None,
    timeout: int,
    fail_fast: bool,
    output_format: str,
    verbose: bool,
) -> None:
    """Check that a build can succeed.

    Verifies the builder is installed, the dependency manifest resolves,
    the cache is writable and a trusted CA bundle is available. Nothing
    is compiled.

    Examples:

        kiln preflight

        kiln preflight --no-toolchain --format json

        kiln preflight --fail-fast
    """
    opts = PreflightOptions(
        file_path=file_path,
        toolchain=toolchain,
        manifest=manifest,
        cache=cache,
        certificates=certificates,
        cache_dir=cache_dir,
        timeout=timeout,
        fail_fast=fail_fast,
        output_format=output_format,
        verbose=verbose,
    )

    try:
        _run_preflight_checks(opts)
    except (SystemExit, click.ClickException):
        raise
    except Exception as e:
        error(f"Preflight check error: {e}")
        if verbose:
            import traceback

            traceback.print_exc()
        raise SystemExit(1) from None
