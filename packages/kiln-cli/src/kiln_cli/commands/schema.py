"""kiln schema command - Export JSON Schema."""

from __future__ import annotations

import click

from kiln_cli.output import error, success


@click.group()
def schema() -> None:
    """Manage JSON Schema for IDE support.

    **Commands:**

    - `kiln schema export` - Export the kiln.yaml JSON Schema
    - `kiln schema export-manifest` - Export the artifact.json JSON Schema
    """
    pass


@schema.command("export")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(),
    default="./schemas/kiln.schema.json",
    help="Output path [default: ./schemas/kiln.schema.json]",
)
def export_schema(output_path: str) -> None:
    """Export the kiln.yaml JSON Schema.

    Examples:

        kiln schema export

        kiln schema export --output custom/path/schema.json
    """
    from kiln_core.export import export_pipeline_schema

    try:
        export_pipeline_schema(output_path)
    except PermissionError:
        error(f"Cannot write to: {output_path}")
        raise SystemExit(2) from None
    success(f"Schema exported to {output_path}")


@schema.command("export-manifest")
@click.option(
    "-o",
    "--output",
    "output_path",
    type=click.Path(),
    default="./schemas/artifact-manifest.schema.json",
    help="Output path [default: ./schemas/artifact-manifest.schema.json]",
)
def export_manifest(output_path: str) -> None:
    """Export the artifact.json manifest JSON Schema.

    Examples:

        kiln schema export-manifest
    """
    from kiln_core.export import export_manifest_schema

    try:
        export_manifest_schema(output_path)
    except PermissionError:
        error(f"Cannot write to: {output_path}")
        raise SystemExit(2) from None
    success(f"Manifest schema exported to {output_path}")
