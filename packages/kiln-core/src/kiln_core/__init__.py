"""kiln-core: staged build orchestration.

The build stage compiles a service against a live schema reference using a
build-time connection descriptor; the runtime stage promotes only the
compiled artifact into a minimal image.

Example:
    >>> from kiln_core import PipelineResolver, PipelineRunner
    >>> pipeline = PipelineResolver().load()
    >>> result = PipelineRunner(pipeline, Path(".kiln")).run()
"""

from __future__ import annotations

__version__ = "0.1.0"

from kiln_core.build import (
    ArtifactHandoff,
    ArtifactManifest,
    BuildContext,
    BuildStageExecutor,
    BuildTimeValue,
)
from kiln_core.errors import (
    BuildValueError,
    CompilationError,
    ConfigurationError,
    EnvironmentUnavailableError,
    HandoffError,
    KilnError,
    PreflightError,
    SchemaValidationError,
    SecretLeakError,
    ValidationError,
    ValidationResourceError,
)
from kiln_core.export import export_manifest_schema, export_pipeline_schema
from kiln_core.pipeline import PipelineResult, PipelineRunner, exit_code_for
from kiln_core.resolver import LoadedPipeline, PipelineNotFoundError, PipelineResolver
from kiln_core.runtime import RuntimeImage, RuntimeImageAssembler
from kiln_core.schemas import PipelineSpec

__all__ = [
    "__version__",
    "ArtifactHandoff",
    "ArtifactManifest",
    "BuildContext",
    "BuildStageExecutor",
    "BuildTimeValue",
    "BuildValueError",
    "CompilationError",
    "ConfigurationError",
    "EnvironmentUnavailableError",
    "HandoffError",
    "KilnError",
    "LoadedPipeline",
    "PipelineNotFoundError",
    "PipelineResolver",
    "PipelineResult",
    "PipelineRunner",
    "PipelineSpec",
    "PreflightError",
    "RuntimeImage",
    "RuntimeImageAssembler",
    "SchemaValidationError",
    "SecretLeakError",
    "ValidationError",
    "ValidationResourceError",
    "exit_code_for",
    "export_manifest_schema",
    "export_pipeline_schema",
]
