"""Pipeline run result model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from kiln_core.build.models import ArtifactManifest
from kiln_core.preflight.models import PreflightResult
from kiln_core.runtime.models import ImageConfig


class PipelineResult(BaseModel):
    """Outcome of a successful pipeline run.

    Failed runs raise instead of returning a result.

    Attributes:
        pipeline: Pipeline name.
        version: Pipeline version.
        handoff_dir: Directory holding the promoted artifact and its manifest.
        image_dir: Assembled runtime image directory.
        artifact: Artifact manifest.
        image: Runtime image configuration.
        preflight: Preflight results.
        leak_scan: "clean", or "skipped" when no build-time value was present.
        docker_tag: Tag of the built container image, if one was built.
        duration_ms: Total run duration.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pipeline: str
    version: str
    handoff_dir: str
    image_dir: str
    artifact: ArtifactManifest
    image: ImageConfig
    preflight: PreflightResult
    leak_scan: str = Field(default="clean", pattern=r"^(clean|skipped)$")
    docker_tag: str | None = None
    duration_ms: int = Field(default=0, ge=0)
