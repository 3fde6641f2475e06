"""Runtime image assembler.

Starts from the pinned minimal base image and copies only the promoted
artifact out of the handoff. The assembler's API accepts an ArtifactHandoff
and nothing else from the build stage, so it has no way to receive the
build-time value or any other build state.
"""

from __future__ import annotations

import shutil
from pathlib import Path

import structlog

from kiln_core.build.context import file_sha256
from kiln_core.build.models import ArtifactHandoff
from kiln_core.errors import HandoffError
from kiln_core.runtime.containerfile import render_containerfile
from kiln_core.runtime.models import (
    CONTAINERFILE_NAME,
    IMAGE_CONFIG_FILE_NAME,
    ROOTFS_DIR_NAME,
    ImageConfig,
    RuntimeImage,
)
from kiln_core.schemas import RuntimeConfig

logger = structlog.get_logger(__name__)

ARTIFACT_MODE = 0o755


class RuntimeImageAssembler:
    """Assembles the runtime image directory from one artifact handoff.

    Attributes:
        config: Runtime section of the pipeline file.
        image_dir: Where the image directory is created.

    Example:
        >>> assembler = RuntimeImageAssembler(spec.runtime, Path(".kiln/image"))
        >>> image = assembler.assemble(handoff)
        >>> assembler.verify(image)
        >>> image.config.entrypoint
        ['./user-service']
    """

    def __init__(self, config: RuntimeConfig, image_dir: Path) -> None:
        self.config = config
        self.image_dir = image_dir

    def assemble(self, handoff: ArtifactHandoff) -> RuntimeImage:
        """Assemble the image from a handoff.

        The image is built in a staging directory and moved into place only
        when complete. On failure no image directory is left behind.

        Raises:
            HandoffError: If the artifact is missing or doesn't match its manifest.
        """
        manifest = handoff.manifest
        self._check_handoff(handoff)

        workdir = self.config.workdir.rstrip("/") or "/"
        artifact_path = f"{workdir.rstrip('/')}/{manifest.name}"
        image_config = ImageConfig(
            name=manifest.pipeline,
            version=manifest.pipeline_version,
            base_image=self.config.base_image,
            workdir=workdir,
            entrypoint=[f"./{manifest.name}"],
            user=self.config.user,
            artifact=manifest.name,
            artifact_path=artifact_path,
            artifact_sha256=manifest.sha256,
            labels={
                "org.opencontainers.image.title": manifest.pipeline,
                "org.opencontainers.image.version": manifest.pipeline_version,
                "org.opencontainers.image.base.name": self.config.base_image,
                **self.config.labels,
            },
        )

        staging = self.image_dir.with_name(f".{self.image_dir.name}.partial")
        if staging.exists():
            shutil.rmtree(staging)
        try:
            target = staging / ROOTFS_DIR_NAME / artifact_path.lstrip("/")
            target.parent.mkdir(parents=True)
            shutil.copyfile(handoff.artifact_path, target)
            target.chmod(ARTIFACT_MODE)

            (staging / IMAGE_CONFIG_FILE_NAME).write_text(
                image_config.model_dump_json(indent=2) + "\n"
            )
            (staging / CONTAINERFILE_NAME).write_text(
                render_containerfile(
                    name=image_config.name,
                    version=image_config.version,
                    base_image=image_config.base_image,
                    workdir=image_config.workdir,
                    artifact=image_config.artifact,
                    user=image_config.user,
                    labels=image_config.labels,
                )
            )

            if self.image_dir.exists():
                shutil.rmtree(self.image_dir)
            staging.rename(self.image_dir)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        image = RuntimeImage(directory=self.image_dir, config=image_config)
        logger.info(
            "runtime_image_assembled",
            image=str(self.image_dir),
            base_image=image_config.base_image,
            artifact_path=artifact_path,
        )
        return image

    def _check_handoff(self, handoff: ArtifactHandoff) -> None:
        manifest = handoff.manifest
        artifact = handoff.artifact_path
        if artifact.is_symlink() or not artifact.is_file():
            raise HandoffError(
                f"Artifact '{manifest.name}' missing from handoff",
                artifact_name=manifest.name,
                expected_path=str(artifact),
            )

        expected_names = {manifest.name, handoff.manifest_path.name}
        extra = sorted(p.name for p in handoff.directory.iterdir() if p.name not in expected_names)
        if extra:
            raise HandoffError(
                f"Handoff contains more than one artifact: {', '.join(extra)}",
                artifact_name=manifest.name,
                expected_path=str(artifact),
            )

        if file_sha256(artifact) != manifest.sha256:
            raise HandoffError(
                f"Artifact '{manifest.name}' does not match its manifest digest",
                artifact_name=manifest.name,
                expected_path=str(artifact),
            )

    def verify(self, image: RuntimeImage) -> None:
        """Confirm the image holds exactly the promoted artifact."""
        verify_image(image)


def verify_image(image: RuntimeImage) -> None:
    """Confirm an image holds exactly the promoted artifact.

    Raises:
        HandoffError: If rootfs holds anything but the artifact at its
            fixed path, or the artifact doesn't match the recorded digest.
    """
    config = image.config
    expected = image.artifact_path
    files = sorted(p for p in image.rootfs.rglob("*") if not p.is_dir())

    if files != [expected]:
        found = ", ".join(p.relative_to(image.rootfs).as_posix() for p in files) or "nothing"
        raise HandoffError(
            f"Runtime image must contain exactly one file at {config.artifact_path}, "
            f"found: {found}",
            artifact_name=config.artifact,
            expected_path=config.artifact_path,
        )
    if expected.is_symlink() or file_sha256(expected) != config.artifact_sha256:
        raise HandoffError(
            f"Artifact in runtime image does not match digest {config.artifact_sha256[:12]}",
            artifact_name=config.artifact,
            expected_path=config.artifact_path,
        )
    if config.entrypoint != [f"./{config.artifact}"]:
        raise HandoffError(
            f"Runtime entrypoint {config.entrypoint} does not invoke the artifact",
            artifact_name=config.artifact,
            expected_path=config.artifact_path,
        )

    logger.debug("runtime_image_verified", image=str(image.directory))
