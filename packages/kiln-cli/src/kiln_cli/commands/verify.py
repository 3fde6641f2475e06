"""kiln verify command - Check an assembled runtime image."""

from __future__ import annotations

import os
from pathlib import Path

import click

from kiln_cli.loader import load_pipeline
from kiln_cli.output import error, info, success, warning


def _value_env_var(file_path: str | None, explicit: str | None) -> str:
    if explicit:
        return explicit
    from kiln_core.resolver import PipelineNotFoundError, PipelineResolver
    from kiln_core.schemas.build_config import DEFAULT_VALUE_NAME

    if file_path is not None:
        return load_pipeline(file_path).spec.build.config_value.source_env_var
    try:
        return PipelineResolver().load().spec.build.config_value.source_env_var
    except PipelineNotFoundError:
        return DEFAULT_VALUE_NAME


@click.command()
@click.argument("image_dir", required=False, type=click.Path(file_okay=False))
@click.option(
    "-f",
    "--file",
    "file_path",
    type=click.Path(exists=False),
    default=None,
    help="kiln.yaml naming the build-time value variable",
)
@click.option(
    "--value-env",
    default=None,
    help="Variable holding the build-time value to scan for",
)
def verify(image_dir: str | None, file_path: str | None, value_env: str | None) -> None:
    """Check an assembled runtime image.

    Confirms the image holds exactly the promoted artifact at its fixed
    path with the recorded digest. When the build-time value is present in
    the environment, every file of the image is scanned for it.

    Exit codes: 0 when the image is intact, 1 when it can't be read, 3 when
    the image is broken or contains the value.

    Examples:

        kiln verify

        kiln verify dist/image --value-env DATABASE_URL
    """
    from pydantic import ValidationError as PydanticValidationError

    from kiln_core.errors import HandoffError
    from kiln_core.pipeline import EXIT_INVARIANT_VIOLATION, IMAGE_DIR_NAME, scan_image
    from kiln_core.resolver import get_output_dir
    from kiln_core.runtime import RuntimeImage, verify_image
    from kiln_core.security import ValueFingerprint

    directory = Path(image_dir) if image_dir else get_output_dir() / IMAGE_DIR_NAME
    try:
        image = RuntimeImage.load(directory)
    except FileNotFoundError:
        error(f"No runtime image at {directory}")
        error("Run 'kiln build' first, or pass the image directory.")
        raise SystemExit(2) from None
    except PydanticValidationError:
        error(f"Invalid image.json in {directory}")
        raise SystemExit(1) from None

    try:
        verify_image(image)
    except HandoffError as e:
        error(e.user_message)
        raise SystemExit(EXIT_INVARIANT_VIOLATION) from None
    config = image.config
    success(f"Image contains only {config.artifact_path} ({config.artifact_sha256[:12]})")
    info(f"Entrypoint: {config.workdir}$ {' '.join(config.entrypoint)}")

    env_var = _value_env_var(file_path, value_env)
    value = os.environ.get(env_var)
    if not value:
        warning(f"{env_var} is not set, leak scan skipped")
        return

    from kiln_core.observability import register_redaction, unregister_redaction

    fingerprint = ValueFingerprint.of(value)
    register_redaction(fingerprint)
    try:
        hits = scan_image(image, fingerprint)
    finally:
        unregister_redaction(fingerprint)
    if hits:
        error(f"Build-time value from {env_var} found in: {', '.join(hits)}")
        raise SystemExit(EXIT_INVARIANT_VIOLATION)
    success(f"Leak scan clean ({env_var})")
