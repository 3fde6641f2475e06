"""Build stage: hermetic context, build-time value, pinned toolchain, handoff.

This package contains:
- BuildContext: Snapshot of the source tree with a content digest
- BuildTimeValue: The connection descriptor, scoped to the compile step
- Toolchain: Container or local backend running the compile command
- BuildStageExecutor: Compiles and promotes exactly one artifact
- ArtifactManifest / ArtifactHandoff: The explicit handoff contract
"""

from __future__ import annotations

from kiln_core.build.context import BuildContext, file_sha256
from kiln_core.build.executor import BuildStageExecutor, classify_failure
from kiln_core.build.models import (
    MANIFEST_FILE_NAME,
    ArtifactHandoff,
    ArtifactManifest,
    ToolchainRecord,
)
from kiln_core.build.toolchain import (
    CompileOutcome,
    ContainerToolchain,
    LocalToolchain,
    Toolchain,
    create_toolchain,
)
from kiln_core.build.value import BuildTimeValue, RevokedValueError, validate_descriptor

__all__ = [
    "MANIFEST_FILE_NAME",
    "ArtifactHandoff",
    "ArtifactManifest",
    "BuildContext",
    "BuildStageExecutor",
    "BuildTimeValue",
    "CompileOutcome",
    "ContainerToolchain",
    "LocalToolchain",
    "RevokedValueError",
    "Toolchain",
    "ToolchainRecord",
    "classify_failure",
    "create_toolchain",
    "file_sha256",
    "validate_descriptor",
]
