"""kiln validate command - Validate kiln.yaml configuration."""

from __future__ import annotations

import click

from kiln_cli.loader import load_pipeline
from kiln_cli.output import info, success


@click.command()
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to kiln.yaml [default: search ./kiln.yaml, ./.kiln/kiln.yaml]",
)
def validate(file_path: str | None) -> None:
    """Validate kiln.yaml configuration.

    Checks the file against the PipelineSpec schema and rejects files that
    embed a credential. Does not contact the toolchain or any database.

    Examples:

        kiln validate

        kiln validate --file services/users/kiln.yaml
    """
    pipeline = load_pipeline(file_path)
    spec = pipeline.spec

    success("Configuration valid")
    info(f"  Pipeline:   {spec.name} {spec.version}")
    info(f"  Artifact:   {spec.build.artifact.build_path} -> {spec.runtime_artifact_path}")
    info(f"  Toolchain:  {spec.build.toolchain.name} {spec.build.toolchain.version}")
    info(f"  Validation: {spec.validation.mode.value}")
    info(f"  Base image: {spec.runtime.base_image}")
