"""kiln run command - Run the artifact of an assembled runtime image."""

from __future__ import annotations

import subprocess
from pathlib import Path

import click

from kiln_cli.output import error


@click.command()
@click.argument("image_dir", required=False, type=click.Path(file_okay=False))
def run(image_dir: str | None) -> None:
    """Run the artifact of an assembled runtime image on this host.

    Starts the artifact from the image workdir with no arguments, the same
    invocation the image's CMD uses, and exits with the artifact's exit
    code. The build-time value is not passed to the process.

    Examples:

        kiln run

        kiln run dist/image
    """
    from pydantic import ValidationError as PydanticValidationError

    from kiln_core.build.toolchain import BASE_ENV_ALLOWLIST, scrub_environment
    from kiln_core.errors import HandoffError
    from kiln_core.pipeline import EXIT_INVARIANT_VIOLATION, IMAGE_DIR_NAME
    from kiln_core.resolver import get_output_dir
    from kiln_core.runtime import RuntimeImage, verify_image

    directory = Path(image_dir) if image_dir else get_output_dir() / IMAGE_DIR_NAME
    try:
        image = RuntimeImage.load(directory)
        verify_image(image)
    except FileNotFoundError:
        error(f"No runtime image at {directory}")
        error("Run 'kiln build' first, or pass the image directory.")
        raise SystemExit(2) from None
    except PydanticValidationError:
        error(f"Invalid image.json in {directory}")
        raise SystemExit(1) from None
    except HandoffError as e:
        error(e.user_message)
        raise SystemExit(EXIT_INVARIANT_VIOLATION) from None

    workdir = image.artifact_path.parent
    try:
        completed = subprocess.run(
            image.config.entrypoint,
            cwd=workdir,
            env=scrub_environment(BASE_ENV_ALLOWLIST),
            check=False,
        )
    except OSError as e:
        error(f"Cannot execute {image.config.artifact}: {e.strerror}")
        raise SystemExit(2) from None
    except KeyboardInterrupt:
        raise SystemExit(130) from None

    code = completed.returncode
    raise SystemExit(128 - code if code < 0 else code)
