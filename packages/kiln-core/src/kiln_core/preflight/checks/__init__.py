"""Preflight checks."""

from __future__ import annotations

from kiln_core.preflight.checks.base import BaseCheck
from kiln_core.preflight.checks.base_image import BaseImageCheck
from kiln_core.preflight.checks.build_value import BuildValueCheck
from kiln_core.preflight.checks.toolchain import ToolchainCheck
from kiln_core.preflight.checks.validation import ValidationResourceCheck

__all__ = [
    "BaseCheck",
    "BaseImageCheck",
    "BuildValueCheck",
    "ToolchainCheck",
    "ValidationResourceCheck",
]
