"""kiln schema command - Export JSON Schema."""

from __future__ import annotations

from pathlib import Path

import click

from kiln_cli.output import error, success


@click.group()
def schema() -> None:
    """Manage JSON Schema for IDE support.

    **Commands:**

    - `kiln schema export` - Export the kiln.yaml JSON Schema
    """


@schema.command("export")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(),
    default="./schemas/kiln.schema.json",
    help="Output path [default: ./schemas/kiln.schema.json]",
)
@click.option(
    "--report",
    is_flag=True,
    default=False,
    help="Export the build report schema instead of kiln.yaml",
)
def export_schema(output_path: str, report: bool) -> None:
    """Export the kiln.yaml JSON Schema.

    Examples:

        kiln schema export

        kiln schema export --report --output schemas/build-report.schema.json
    """
    output = Path(output_path)

    try:
        # Import here to avoid heavy imports at CLI startup
        from kiln_core import export_build_report_schema, export_build_spec_schema

        if report:
            export_build_report_schema(output)
        else:
            export_build_spec_schema(output)

        success(f"Schema exported to {output}")

    except PermissionError:
        error(f"Cannot write to: {output_path}")
        raise SystemExit(2) from None

    except Exception as e:
        error(f"Schema export failed: {e}")
        raise SystemExit(1) from None
