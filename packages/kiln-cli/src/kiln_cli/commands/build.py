"""kiln build command - Run the build and runtime stages."""

from __future__ import annotations

import click

from kiln_cli import output
from kiln_cli.errors import report_pipeline_error
from kiln_cli.loader import load_pipeline, resolve_backend
from kiln_cli.output import info, success


@click.command()
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to kiln.yaml",
)
@click.option(
    "-o",
    "--output",
    "output_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Output directory for the handoff and image [default: $KILN_OUTPUT_DIR or .kiln]",
)
@click.option(
    "--backend",
    type=click.Choice(["container", "local"]),
    default=None,
    help="Override the build backend declared in kiln.yaml",
)
@click.option(
    "--tag",
    default=None,
    help="Also docker build the runtime image with this tag",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format [default: table]",
)
def build(
    file_path: str | None,
    output_dir: str | None,
    backend: str | None,
    tag: str | None,
    output_format: str,
) -> None:
    """Run the build and runtime stages.

    Compiles the source with the build-time value read from the invoker
    environment, promotes the single artifact, assembles the runtime image
    from the pinned base image and confirms the value never reached it.

    Exit codes: 0 on success, the compiler's own code when compilation
    fails, 1 for configuration errors, 2 for environment errors and 3 when
    the handoff is broken or the value leaked.

    Examples:

        DATABASE_URL=postgres://... kiln build

        kiln build --backend local --output dist

        kiln build --tag user-service:1.0.0 --format json
    """
    from kiln_core.errors import KilnError
    from kiln_core.pipeline import PipelineRunner, print_pipeline_result
    from kiln_core.resolver import get_output_dir

    pipeline = load_pipeline(file_path)
    runner = PipelineRunner(
        pipeline,
        get_output_dir(output_dir),
        backend=resolve_backend(backend),
        tag=tag,
    )

    if output_format == "table":
        info(f"Building {pipeline.spec.name} {pipeline.spec.version}...")

    try:
        result = runner.run()
    except (KilnError, OSError) as e:
        report_pipeline_error(e, output_format)

    print_pipeline_result(result, output_format=output_format, console=output.console)
    if output_format == "table":
        success(f"Runtime image assembled at {result.image_dir}")
