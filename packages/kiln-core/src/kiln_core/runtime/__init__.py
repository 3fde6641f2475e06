"""Runtime stage: a minimal image holding only the promoted artifact.

This package contains:
- RuntimeImageAssembler: Builds and verifies the image directory
- RuntimeImage / ImageConfig: The assembled image and its image.json
- Containerfile rendering (runtime and two-stage Dockerfile)
- DockerImageBuilder: Optional docker build of the assembled image
"""

from __future__ import annotations

from kiln_core.runtime.assembler import RuntimeImageAssembler, verify_image
from kiln_core.runtime.containerfile import (
    render_containerfile,
    render_dockerfile,
    render_dockerignore,
)
from kiln_core.runtime.docker import DockerImageBuilder
from kiln_core.runtime.models import (
    CONTAINERFILE_NAME,
    IMAGE_CONFIG_FILE_NAME,
    ROOTFS_DIR_NAME,
    ImageConfig,
    RuntimeImage,
)

__all__ = [
    "CONTAINERFILE_NAME",
    "IMAGE_CONFIG_FILE_NAME",
    "ROOTFS_DIR_NAME",
    "DockerImageBuilder",
    "ImageConfig",
    "RuntimeImage",
    "RuntimeImageAssembler",
    "render_containerfile",
    "render_dockerfile",
    "render_dockerignore",
    "verify_image",
]
