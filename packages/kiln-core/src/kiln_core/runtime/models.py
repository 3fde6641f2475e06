"""Runtime image models.

An assembled runtime image is a directory::

    <image>/
      image.json        ImageConfig
      Containerfile     FROM/WORKDIR/COPY/CMD for docker build
      rootfs/<workdir>/<artifact>
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

IMAGE_CONFIG_FILE_NAME = "image.json"
CONTAINERFILE_NAME = "Containerfile"
ROOTFS_DIR_NAME = "rootfs"
IMAGE_SCHEMA_VERSION = "1"


class ImageConfig(BaseModel):
    """Configuration of an assembled runtime image.

    Attributes:
        name: Image name (the pipeline name).
        version: Pipeline version.
        base_image: Pinned minimal base image.
        workdir: Working directory of the runtime process.
        entrypoint: Process invocation, always ``["./<artifact>"]``.
        user: Optional runtime user.
        artifact: Artifact file name.
        artifact_path: Absolute path of the artifact inside the image.
        artifact_sha256: Digest copied from the artifact manifest.
        labels: Image labels.
        created_at: Assembly time.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_version: str = Field(default=IMAGE_SCHEMA_VERSION)
    name: str
    version: str
    base_image: str
    workdir: str
    entrypoint: list[str]
    user: str | None = None
    artifact: str
    artifact_path: str
    artifact_sha256: str = Field(..., pattern=r"^[0-9a-f]{64}$")
    labels: dict[str, str] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class RuntimeImage:
    """An assembled runtime image directory."""

    directory: Path
    config: ImageConfig

    @property
    def rootfs(self) -> Path:
        return self.directory / ROOTFS_DIR_NAME

    @property
    def config_path(self) -> Path:
        return self.directory / IMAGE_CONFIG_FILE_NAME

    @property
    def containerfile_path(self) -> Path:
        return self.directory / CONTAINERFILE_NAME

    @property
    def artifact_path(self) -> Path:
        """Host path of the artifact inside rootfs."""
        return self.rootfs / self.config.artifact_path.lstrip("/")

    @classmethod
    def load(cls, directory: Path) -> RuntimeImage:
        """Load an assembled image directory.

        Raises:
            FileNotFoundError: If image.json doesn't exist.
            pydantic.ValidationError: If image.json is malformed.
        """
        config = ImageConfig.model_validate_json((directory / IMAGE_CONFIG_FILE_NAME).read_text())
        return cls(directory=directory, config=config)
