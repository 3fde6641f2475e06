"""Optional ``docker build`` of an assembled runtime image."""

from __future__ import annotations

import shutil

import structlog

from kiln_core.build.toolchain import DOCKER_ENV_ALLOWLIST, ensure_image, run_command, scrub_environment
from kiln_core.errors import EnvironmentUnavailableError
from kiln_core.runtime.models import RuntimeImage

logger = structlog.get_logger(__name__)


class DockerImageBuilder:
    """Builds a tagged container image from an assembled image directory.

    The build context is the image directory itself, so the daemon only
    ever receives the rootfs, image.json and the Containerfile.
    """

    def __init__(self, docker: str = "docker", timeout_seconds: int = 1800) -> None:
        self.docker = docker
        self.timeout_seconds = timeout_seconds

    def ensure_available(self, base_image: str) -> None:
        """Check docker is installed and the base image can be used.

        Raises:
            EnvironmentUnavailableError: If docker or the base image is unavailable.
        """
        if shutil.which(self.docker) is None:
            raise EnvironmentUnavailableError(
                "docker CLI not found on PATH (required to build a tagged image)",
                component="docker",
            )
        ensure_image(
            self.docker,
            base_image,
            env=scrub_environment(DOCKER_ENV_ALLOWLIST),
            component="base_image",
        )

    def build(self, image: RuntimeImage, tag: str) -> str:
        """Run ``docker build`` for the image directory.

        Returns:
            The tag that was built.

        Raises:
            EnvironmentUnavailableError: If docker is missing or the build fails.
        """
        self.ensure_available(image.config.base_image)
        argv = [
            self.docker,
            "build",
            "--tag",
            tag,
            "--file",
            str(image.containerfile_path),
            str(image.directory),
        ]
        outcome = run_command(
            argv,
            cwd=None,
            env=scrub_environment(DOCKER_ENV_ALLOWLIST),
            timeout_seconds=self.timeout_seconds,
        )
        if not outcome.succeeded:
            raise EnvironmentUnavailableError(
                f"docker build failed with exit code {outcome.exit_code}",
                component="docker",
                reference=tag,
                internal_details=outcome.diagnostics,
            )
        logger.info("docker_image_built", tag=tag, image=str(image.directory))
        return tag
