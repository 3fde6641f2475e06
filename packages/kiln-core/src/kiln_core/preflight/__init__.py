"""Preflight validation module.

Checks run before compiling: toolchain, build-time value, schema
validation resource and runtime base image.
"""

from __future__ import annotations

from kiln_core.preflight.checks import (
    BaseCheck,
    BaseImageCheck,
    BuildValueCheck,
    ToolchainCheck,
    ValidationResourceCheck,
)
from kiln_core.preflight.models import CheckResult, CheckStatus, PreflightResult
from kiln_core.preflight.output import (
    format_result_json,
    format_result_table,
    print_result,
    result_to_dict,
)
from kiln_core.preflight.runner import PreflightRunner, build_checks

__all__ = [
    "BaseCheck",
    "BaseImageCheck",
    "BuildValueCheck",
    "CheckResult",
    "CheckStatus",
    "PreflightResult",
    "PreflightRunner",
    "ToolchainCheck",
    "ValidationResourceCheck",
    "build_checks",
    "format_result_json",
    "format_result_table",
    "print_result",
    "result_to_dict",
]
