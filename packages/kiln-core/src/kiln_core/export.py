"""JSON Schema export functions for kiln.

This module exports JSON Schema Draft 2020-12 schemas from the Pydantic
models, for IDE autocomplete on kiln.yaml and for validating build reports
in other tools.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from kiln_core.models import BuildReport
from kiln_core.schemas import BuildSpec

JSON_SCHEMA_DRAFT = "https://json-schema.org/draft/2020-12/schema"


def export_build_spec_schema(
    output_path: Path | str | None = None,
) -> dict[str, Any]:
    """Export BuildSpec JSON Schema for IDE autocomplete.

    Args:
        output_path: Optional path to write schema file. If provided,
            creates parent directories as needed.

    Returns:
        Dictionary containing the JSON Schema.

    Example:
        >>> schema = export_build_spec_schema()
        >>> schema["$schema"]
        'https://json-schema.org/draft/2020-12/schema'
    """
    schema = BuildSpec.model_json_schema()
    schema["$schema"] = JSON_SCHEMA_DRAFT
    schema["$id"] = "https://kiln.dev/schemas/kiln.schema.json"

    if "additionalProperties" not in schema:
        schema["additionalProperties"] = False

    if output_path is not None:
        _write_schema_file(schema, output_path)

    return schema


def export_build_report_schema(
    output_path: Path | str | None = None,
) -> dict[str, Any]:
    """Export BuildReport JSON Schema (``.kiln/build_report.json``).

    Args:
        output_path: Optional path to write schema file.

    Returns:
        Dictionary containing the JSON Schema.
    """
    schema = BuildReport.model_json_schema()
    schema["$schema"] = JSON_SCHEMA_DRAFT
    schema["$id"] = "https://kiln.dev/schemas/build-report.schema.json"

    if "additionalProperties" not in schema:
        schema["additionalProperties"] = False

    if output_path is not None:
        _write_schema_file(schema, output_path)

    return schema


def _write_schema_file(schema: dict[str, Any], path: Path | str) -> None:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(schema, indent=2))
