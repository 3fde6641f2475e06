"""kiln render command - Write a two-stage Dockerfile equivalent of a pipeline."""

from __future__ import annotations

from pathlib import Path

import click

from kiln_cli.loader import load_pipeline
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
    help="Directory for Dockerfile and .dockerignore [default: build context root]",
)
@click.option(
    "--stdout",
    "to_stdout",
    is_flag=True,
    default=False,
    help="Print the Dockerfile instead of writing files",
)
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Overwrite existing files",
)
def render(file_path: str | None, output_dir: str | None, to_stdout: bool, force: bool) -> None:
    """Write a two-stage Dockerfile equivalent of the pipeline.

    The Dockerfile compiles in a builder stage and copies only the artifact
    into the runtime stage. The build-time value is passed as a BuildKit
    secret mount, never as a build argument, so it stays out of every layer.

    Examples:

        kiln render

        kiln render --stdout

        kiln render --output docker/ --force
    """
    from kiln_core.runtime import render_dockerfile, render_dockerignore

    pipeline = load_pipeline(file_path)
    dockerfile = render_dockerfile(pipeline.spec)

    if to_stdout:
        click.echo(dockerfile, nl=False)
        return

    target_dir = Path(output_dir) if output_dir else pipeline.context_root
    files = {
        "Dockerfile": dockerfile,
        ".dockerignore": render_dockerignore(pipeline.spec),
    }

    existing = [name for name in files if (target_dir / name).exists()]
    if existing and not force:
        error(f"{', '.join(existing)} already exist in {target_dir}.")
        error("Use --force to overwrite.")
        raise SystemExit(1)

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        for name, content in files.items():
            (target_dir / name).write_text(content)
            success(f"Wrote {target_dir / name}")
    except PermissionError:
        error(f"Cannot write to: {target_dir}")
        raise SystemExit(2) from None

    if pipeline.spec.validation.mode.value == "live":
        name = pipeline.spec.build.config_value
        info(
            f"\nBuild with: docker build --secret id={name.name.lower()},"
            f"env={name.source_env_var} {target_dir}"
        )
