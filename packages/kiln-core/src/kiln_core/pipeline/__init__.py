"""Pipeline runner: sequences the build and runtime stages.

This package contains:
- PipelineRunner: preflight, build stage, runtime assembly, leak scan
- PipelineResult: Outcome of a successful run
- Exit code policy for the CLI (re-exported from kiln_core.exit_codes)
- Rich/JSON output of run results
"""

from __future__ import annotations

from kiln_core.exit_codes import (
    EXIT_ENVIRONMENT_ERROR,
    EXIT_INVARIANT_VIOLATION,
    EXIT_SUCCESS,
    EXIT_USER_ERROR,
    exit_code_for,
)
from kiln_core.pipeline.models import PipelineResult
from kiln_core.pipeline.output import format_error_json, print_pipeline_result
from kiln_core.pipeline.runner import (
    HANDOFF_DIR_NAME,
    IMAGE_DIR_NAME,
    PipelineRunner,
    scan_image,
)

__all__ = [
    "EXIT_ENVIRONMENT_ERROR",
    "EXIT_INVARIANT_VIOLATION",
    "EXIT_SUCCESS",
    "EXIT_USER_ERROR",
    "HANDOFF_DIR_NAME",
    "IMAGE_DIR_NAME",
    "PipelineResult",
    "PipelineRunner",
    "exit_code_for",
    "format_error_json",
    "print_pipeline_result",
    "scan_image",
]
