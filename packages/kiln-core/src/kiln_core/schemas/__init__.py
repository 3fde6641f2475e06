"""Pydantic schemas for kiln.yaml.

This package contains the models for the pipeline file:
- PipelineSpec: Root configuration
- BuildConfig and its sections: toolchain, context, build-time value, artifact
- RuntimeConfig: Minimal runtime image
- ValidationConfig and SchemaFixture: Live or fixture-backed schema checks
"""

from __future__ import annotations

from kiln_core.schemas.build_config import (
    ArtifactConfig,
    BuildBackend,
    BuildConfig,
    BuildValueConfig,
    ContextConfig,
    ToolchainConfig,
)
from kiln_core.schemas.pipeline_spec import PIPELINE_FILE_NAME, PipelineSpec
from kiln_core.schemas.references import image_tag, is_pinned_reference
from kiln_core.schemas.runtime_config import RuntimeConfig
from kiln_core.schemas.validation_config import (
    ColumnFixture,
    SchemaFixture,
    TableFixture,
    ValidationConfig,
    ValidationMode,
)

__all__ = [
    "PIPELINE_FILE_NAME",
    "ArtifactConfig",
    "BuildBackend",
    "BuildConfig",
    "BuildValueConfig",
    "ColumnFixture",
    "ContextConfig",
    "PipelineSpec",
    "RuntimeConfig",
    "SchemaFixture",
    "TableFixture",
    "ToolchainConfig",
    "ValidationConfig",
    "ValidationMode",
    "image_tag",
    "is_pinned_reference",
]
