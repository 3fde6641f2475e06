"""Security utilities for kiln.

This module provides:
- Credential detection in pipeline files using detect-secrets
- Leak scanning of runtime images for the build-time value
"""

from __future__ import annotations

from kiln_core.security.credential_detector import (
    CredentialDetectedError,
    DetectedSecret,
    detect_credentials_in_file,
    detect_credentials_in_string,
    validate_no_credentials,
)
from kiln_core.security.leak_scanner import ValueFingerprint, scan_tree

__all__ = [
    "CredentialDetectedError",
    "DetectedSecret",
    "ValueFingerprint",
    "detect_credentials_in_file",
    "detect_credentials_in_string",
    "scan_tree",
    "validate_no_credentials",
]
