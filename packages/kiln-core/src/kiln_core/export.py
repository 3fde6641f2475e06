"""JSON Schema export functions for kiln.

Exports JSON Schema Draft 2020-12 documents from the pydantic models, for
IDE autocomplete on kiln.yaml and for validating artifact.json manifests
outside kiln.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from kiln_core.build.models import ArtifactManifest
from kiln_core.schemas import PipelineSpec

JSON_SCHEMA_DIALECT = "https://json-schema.org/draft/2020-12/schema"
PIPELINE_SCHEMA_ID = "https://kiln.dev/schemas/kiln.schema.json"
MANIFEST_SCHEMA_ID = "https://kiln.dev/schemas/artifact-manifest.schema.json"


def _model_schema(model: type[BaseModel], schema_id: str) -> dict[str, Any]:
    schema = model.model_json_schema()
    schema["$schema"] = JSON_SCHEMA_DIALECT
    schema["$id"] = schema_id
    if "additionalProperties" not in schema:
        schema["additionalProperties"] = False
    return schema


def export_pipeline_schema(output_path: Path | str | None = None) -> dict[str, Any]:
    """Export the kiln.yaml JSON Schema.

    Args:
        output_path: Optional path to write the schema to. Parent
            directories are created as needed.

    Returns:
        Dictionary containing the JSON Schema.

    Example:
        >>> schema = export_pipeline_schema()
        >>> schema["title"]
        'PipelineSpec'
    """
    schema = _model_schema(PipelineSpec, PIPELINE_SCHEMA_ID)
    if output_path is not None:
        _write_schema_file(schema, output_path)
    return schema


def export_manifest_schema(output_path: Path | str | None = None) -> dict[str, Any]:
    """Export the artifact.json manifest JSON Schema.

    Args:
        output_path: Optional path to write the schema to.

    Returns:
        Dictionary containing the JSON Schema.
    """
    schema = _model_schema(ArtifactManifest, MANIFEST_SCHEMA_ID)
    if output_path is not None:
        _write_schema_file(schema, output_path)
    return schema


def _write_schema_file(schema: dict[str, Any], path: Path | str) -> None:
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(schema, indent=2) + "\n")
