"""Artifact handoff models.

The handoff is the only thing the build stage passes to the runtime stage:
a directory holding the promoted artifact and an ``artifact.json``
manifest describing it. The manifest never contains the build-time value.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from kiln_core.schemas import BuildBackend, ValidationMode
from kiln_core.schemas.references import NAME_PATTERN

MANIFEST_FILE_NAME = "artifact.json"
MANIFEST_SCHEMA_VERSION = "1"


class ToolchainRecord(BaseModel):
    """Toolchain that produced the artifact."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    version: str
    backend: BuildBackend
    reference: str = Field(..., description="Pinned image or local toolchain description")


class ArtifactManifest(BaseModel):
    """Named contract describing the promoted artifact.

    Attributes:
        schema_version: Manifest format version.
        pipeline: Pipeline name.
        pipeline_version: Pipeline version.
        name: Artifact file name.
        build_path: Path the artifact was produced at, relative to the context.
        sha256: Hex digest of the artifact.
        size_bytes: Artifact size.
        toolchain: Toolchain that produced it.
        source_digest: Digest of the build context snapshot.
        validation_mode: How schema checks were served during compilation.
        value_name: Name of the build-time variable (never its value).
        started_at: When the build stage started.
        finished_at: When the artifact was promoted.
        compile_duration_ms: Compile step duration.

    Example:
        >>> manifest = ArtifactManifest.from_json_file(Path(".kiln/handoff/artifact.json"))
        >>> manifest.name
        'user-service'
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_version: str = Field(default=MANIFEST_SCHEMA_VERSION)
    pipeline: str = Field(..., min_length=1)
    pipeline_version: str = Field(..., min_length=1)
    name: str = Field(..., pattern=NAME_PATTERN)
    build_path: str = Field(..., min_length=1)
    sha256: str = Field(..., pattern=r"^[0-9a-f]{64}$")
    size_bytes: int = Field(..., ge=0)
    toolchain: ToolchainRecord
    source_digest: str = Field(..., pattern=r"^[0-9a-f]{64}$")
    validation_mode: ValidationMode
    value_name: str
    started_at: datetime
    finished_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    compile_duration_ms: int = Field(default=0, ge=0)

    def to_json_file(self, path: Path) -> None:
        """Write the manifest as indented JSON."""
        path.write_text(self.model_dump_json(indent=2) + "\n")

    @classmethod
    def from_json_file(cls, path: Path) -> ArtifactManifest:
        """Load and validate a manifest.

        Raises:
            FileNotFoundError: If the manifest doesn't exist.
            pydantic.ValidationError: If the manifest is malformed.
        """
        return cls.model_validate_json(path.read_text())


@dataclass(frozen=True)
class ArtifactHandoff:
    """A handoff directory: exactly one artifact plus its manifest.

    This is the only input the runtime assembler accepts.

    Attributes:
        directory: Handoff directory.
        manifest: Manifest of the promoted artifact.
    """

    directory: Path
    manifest: ArtifactManifest

    @property
    def artifact_path(self) -> Path:
        return self.directory / self.manifest.name

    @property
    def manifest_path(self) -> Path:
        return self.directory / MANIFEST_FILE_NAME

    @classmethod
    def load(cls, directory: Path) -> ArtifactHandoff:
        """Load a handoff directory written by the build stage."""
        manifest = ArtifactManifest.from_json_file(directory / MANIFEST_FILE_NAME)
        return cls(directory=directory, manifest=manifest)
