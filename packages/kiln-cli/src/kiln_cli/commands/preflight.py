"""kiln preflight command - Check the build environment before building."""

from __future__ import annotations

import click

from kiln_cli import output
from kiln_cli.loader import load_pipeline, resolve_backend
from kiln_cli.output import error, info, success


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
    help="Output directory [default: $KILN_OUTPUT_DIR or .kiln]",
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
    help="Also check docker is usable for building this image tag",
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
def preflight(
    file_path: str | None,
    output_dir: str | None,
    backend: str | None,
    tag: str | None,
    fail_fast: bool,
    output_format: str,
) -> None:
    """Check the build environment before building.

    Runs the same checks `kiln build` runs before compiling: the build-time
    value is present and well formed, the pinned toolchain is available,
    the validation resource (live database or schema fixture) is usable
    and the base image is pinned.

    Examples:

        kiln preflight

        kiln preflight --backend local --format json

        kiln preflight --fail-fast
    """
    from kiln_core.pipeline import PipelineRunner
    from kiln_core.preflight import print_result
    from kiln_core.resolver import get_output_dir

    pipeline = load_pipeline(file_path)
    runner = PipelineRunner(
        pipeline,
        get_output_dir(output_dir),
        backend=resolve_backend(backend),
        tag=tag,
    )

    if output_format == "table":
        info(f"Running preflight checks for {pipeline.spec.name}...")

    result, _ = runner.preflight(fail_fast=fail_fast)
    print_result(result, output_format=output_format, console=output.console)

    if result.passed:
        if output_format == "table":
            success("Preflight checks passed")
        raise SystemExit(0)
    if output_format == "table":
        error("Preflight checks failed")
    raise SystemExit(result.exit_code)
