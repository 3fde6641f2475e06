"""Credential detection using detect-secrets library.

Pipeline files must only name the build-time value (e.g. ``DATABASE_URL``),
never contain it. A connection descriptor with embedded credentials pasted
into kiln.yaml would end up in version control and, through the build
context, in the builder environment. This module rejects such files.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import NamedTuple

from detect_secrets import SecretsCollection
from detect_secrets.settings import default_settings


class DetectedSecret(NamedTuple):
    """Information about a detected secret."""

    secret_type: str
    line_number: int


class CredentialDetectedError(Exception):
    """Raised when credentials are detected where only references belong.

    Attributes:
        location: The file or field that contains the credential.
        secret_type: The type of secret detected (e.g., 'Basic Auth Credentials').
        line_number: Line of the detection, when known.
    """

    def __init__(self, location: str, secret_type: str, line_number: int | None = None) -> None:
        self.location = location
        self.secret_type = secret_type
        self.line_number = line_number
        where = f"{location} line {line_number}" if line_number else location
        super().__init__(
            f"{where} contains a potential credential ({secret_type}). "
            "kiln.yaml must only name the build-time value; supply the value "
            "through the invoker environment."
        )


def detect_credentials_in_file(path: Path) -> list[DetectedSecret]:
    """Scan a file for potential credentials with detect-secrets default plugins.

    Args:
        path: File to scan.

    Returns:
        Detected secrets, empty if none.
    """
    secrets = SecretsCollection()
    with default_settings():
        secrets.scan_file(str(path))

    found: list[DetectedSecret] = []
    for _file_path, secret_list in secrets.data.items():
        for secret in secret_list:
            found.append(DetectedSecret(secret_type=secret.type, line_number=secret.line_number))
    return sorted(found, key=lambda s: s.line_number)


def detect_credentials_in_string(value: str) -> list[DetectedSecret]:
    """Detect potential credentials in a string value.

    detect-secrets scans files, so the value is written to a temporary file
    that is removed afterwards.

    Args:
        value: The string value to scan.

    Returns:
        Detected secrets, empty if none.

    Example:
        >>> detect_credentials_in_string("url: postgres://admin:hunter2@db:5432/app")[0].secret_type
        'Basic Auth Credentials'
    """
    if not value or len(value) < 8:
        return []

    with tempfile.NamedTemporaryFile(mode="w", suffix=".txt", delete=False) as temp_file:
        temp_file.write(value)
        temp_path = Path(temp_file.name)

    try:
        return detect_credentials_in_file(temp_path)
    finally:
        temp_path.unlink(missing_ok=True)


def validate_no_credentials(path: Path) -> None:
    """Validate that a file does not contain credentials.

    Args:
        path: File to check.

    Raises:
        CredentialDetectedError: If credentials are detected in the file.
    """
    detected = detect_credentials_in_file(path)
    if detected:
        first = detected[0]
        raise CredentialDetectedError(
            location=f"file '{path.name}'",
            secret_type=first.secret_type,
            line_number=first.line_number,
        )
