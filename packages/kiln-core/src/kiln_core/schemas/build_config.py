"""Build stage configuration models for kiln.

This module defines the ``build`` section of kiln.yaml:
- ToolchainConfig: Pinned compiler toolchain and compile command
- ContextConfig: Source tree that becomes the build context
- BuildValueConfig: Where the build-time value comes from and how it is exported
- ArtifactConfig: Name and fixed build path of the single artifact
- BuildConfig: Container for the above
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kiln_core.schemas.references import ENV_VAR_PATTERN, NAME_PATTERN, is_pinned_reference

DEFAULT_TOOLCHAIN_IMAGE = "rust:1.88"
DEFAULT_CONTAINER_WORKDIR = "/app"
DEFAULT_VALUE_NAME = "DATABASE_URL"
DEFAULT_IGNORE_FILE = ".kilnignore"


class BuildBackend(str, Enum):
    """Where the compile command runs.

    Values:
        CONTAINER: Throwaway container of the pinned toolchain image (docker CLI).
        LOCAL: Host subprocess with a scrubbed environment.
    """

    CONTAINER = "container"
    LOCAL = "local"


class ToolchainConfig(BaseModel):
    """Pinned compiler toolchain.

    Attributes:
        name: Toolchain name (informational, recorded in the manifest).
        version: Pinned toolchain version. The local backend requires it to
            appear in the version probe output.
        image: Pinned toolchain image for the container backend.
        backend: Execution backend.
        command: Compile command, run from the build context root.
        version_command: Command printing the toolchain version.
        passthrough_env: Host variables forwarded to the compile process.
        container_workdir: Mount point of the build context in the container.
        network: Docker network for the toolchain container (e.g. "host" to
            reach a database on the invoking machine).
        run_as_invoker: Run the toolchain container with the invoking user's
            uid:gid on Linux hosts, so files it writes into the build
            workspace can be removed afterwards. Toolchains that write to
            root-owned paths in the image need a writable home (see
            passthrough_env) or this switched off.
        timeout_seconds: Maximum compile time.

    Example:
        >>> toolchain = ToolchainConfig(
        ...     name="rust",
        ...     version="1.88",
        ...     image="rust:1.88",
        ...     command=["cargo", "build", "--release"],
        ... )
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(default="rust", min_length=1, description="Toolchain name")
    version: str = Field(default="1.88", min_length=1, description="Pinned toolchain version")
    image: str = Field(
        default=DEFAULT_TOOLCHAIN_IMAGE,
        min_length=1,
        description="Pinned toolchain image (container backend)",
    )
    backend: BuildBackend = Field(
        default=BuildBackend.CONTAINER,
        description="Execution backend",
    )
    command: list[str] = Field(
        default_factory=lambda: ["cargo", "build", "--release"],
        min_length=1,
        description="Compile command",
    )
    version_command: list[str] = Field(
        default_factory=lambda: ["cargo", "--version"],
        min_length=1,
        description="Command printing the toolchain version",
    )
    passthrough_env: list[str] = Field(
        default_factory=list,
        description="Host environment variables forwarded to the compiler",
    )
    container_workdir: str = Field(
        default=DEFAULT_CONTAINER_WORKDIR,
        description="Build context mount point inside the toolchain container",
    )
    network: str | None = Field(
        default=None,
        description="Docker network for the toolchain container",
    )
    run_as_invoker: bool = Field(
        default=True,
        description="Run the toolchain container as the invoking user on Linux",
    )
    timeout_seconds: int = Field(
        default=3600,
        ge=1,
        le=86400,
        description="Maximum compile time in seconds",
    )

    @field_validator("image")
    @classmethod
    def _image_must_be_pinned(cls, value: str) -> str:
        if not is_pinned_reference(value):
            raise ValueError(
                f"toolchain image '{value}' is not pinned; use an explicit tag or digest"
            )
        return value

    @field_validator("passthrough_env")
    @classmethod
    def _passthrough_names(cls, value: list[str]) -> list[str]:
        for name in value:
            if not re.match(ENV_VAR_PATTERN, name):
                raise ValueError(f"invalid environment variable name: {name!r}")
        return value

    @field_validator("container_workdir")
    @classmethod
    def _workdir_absolute(cls, value: str) -> str:
        if not PurePosixPath(value).is_absolute():
            raise ValueError("container_workdir must be an absolute path")
        return value


class ContextConfig(BaseModel):
    """Source tree materialized as the build context.

    Attributes:
        path: Source directory, relative to the pipeline file.
        exclude: Glob patterns excluded from the snapshot.
        ignore_file: File in the source root with more exclusion patterns.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(default=".", min_length=1, description="Source directory")
    exclude: list[str] = Field(
        default_factory=lambda: ["target", ".git", ".kiln"],
        description="Glob patterns excluded from the build context",
    )
    ignore_file: str = Field(
        default=DEFAULT_IGNORE_FILE,
        description="Ignore file with additional exclusion patterns",
    )


class BuildValueConfig(BaseModel):
    """Build-time configuration value (a connection descriptor).

    The value itself is never part of the pipeline file. Only its name and
    the invoker environment variable it is read from are configured here.
    There is deliberately no default value field.

    Attributes:
        name: Variable name exported into the compile process.
        source: Invoker environment variable holding the value. Defaults to ``name``.
        schemes: Accepted URL schemes. Empty list accepts any scheme.
        require_host: Require a host component in the descriptor.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(
        default=DEFAULT_VALUE_NAME,
        pattern=ENV_VAR_PATTERN,
        description="Variable name exported into the compile process",
    )
    source: str | None = Field(
        default=None,
        pattern=ENV_VAR_PATTERN,
        description="Invoker environment variable holding the value",
    )
    schemes: list[str] = Field(
        default_factory=lambda: ["postgres", "postgresql"],
        description="Accepted descriptor URL schemes",
    )
    require_host: bool = Field(default=True, description="Require a host in the descriptor")

    @property
    def source_env_var(self) -> str:
        """Invoker environment variable the value is read from."""
        return self.source or self.name


class ArtifactConfig(BaseModel):
    """The single artifact produced by the build.

    Attributes:
        name: Artifact file name, also the runtime entrypoint name.
        path: Build path relative to the context root.
            Defaults to ``target/release/<name>``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., pattern=NAME_PATTERN, description="Artifact name")
    path: str | None = Field(default=None, description="Artifact build path")

    @field_validator("path")
    @classmethod
    def _path_inside_context(cls, value: str | None) -> str | None:
        if value is None:
            return value
        posix = PurePosixPath(value)
        if posix.is_absolute() or ".." in posix.parts or not posix.parts:
            raise ValueError("artifact path must be relative to the build context")
        return value

    @property
    def build_path(self) -> str:
        """Artifact path relative to the build context root."""
        return self.path or f"target/release/{self.name}"


class BuildConfig(BaseModel):
    """The ``build`` section of kiln.yaml."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    config_value: BuildValueConfig = Field(default_factory=BuildValueConfig)
    artifact: ArtifactConfig
