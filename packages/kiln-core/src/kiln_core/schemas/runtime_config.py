"""Runtime image configuration model for kiln."""

from __future__ import annotations

from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kiln_core.schemas.references import is_pinned_reference

DEFAULT_BASE_IMAGE = "ubuntu:22.04"
DEFAULT_RUNTIME_WORKDIR = "/usr/local/bin"


class RuntimeConfig(BaseModel):
    """The ``runtime`` section of kiln.yaml.

    The entrypoint is not configurable: it is always the artifact, invoked
    from the workdir with no arguments.

    Attributes:
        base_image: Pinned minimal base image.
        workdir: Directory holding the artifact inside the image.
        user: Optional non-root user for the runtime process.
        labels: Extra image labels.

    Example:
        >>> runtime = RuntimeConfig(base_image="ubuntu:22.04", workdir="/usr/local/bin")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_image: str = Field(
        default=DEFAULT_BASE_IMAGE,
        min_length=1,
        description="Pinned minimal base image",
    )
    workdir: str = Field(
        default=DEFAULT_RUNTIME_WORKDIR,
        description="Artifact directory inside the image",
    )
    user: str | None = Field(default=None, description="Runtime user")
    labels: dict[str, str] = Field(default_factory=dict, description="Extra image labels")

    @field_validator("base_image")
    @classmethod
    def _base_image_pinned(cls, value: str) -> str:
        if not is_pinned_reference(value):
            raise ValueError(f"base image '{value}' is not pinned; use an explicit tag or digest")
        return value

    @field_validator("workdir")
    @classmethod
    def _workdir_absolute(cls, value: str) -> str:
        posix = PurePosixPath(value)
        if not posix.is_absolute() or ".." in posix.parts:
            raise ValueError("workdir must be an absolute path")
        return value
