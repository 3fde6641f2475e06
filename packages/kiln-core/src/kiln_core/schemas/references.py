"""Shared field patterns and reference helpers for pipeline schemas."""

from __future__ import annotations

import re

# Environment variable names exported into the compile process
ENV_VAR_PATTERN = r"^[A-Z_][A-Z0-9_]*$"

# Artifact and pipeline names (safe as file names)
NAME_PATTERN = r"^[a-zA-Z][a-zA-Z0-9._-]{0,99}$"

_DIGEST_RE = re.compile(r"@sha256:[0-9a-f]{64}$")


def image_tag(reference: str) -> str | None:
    """Return the tag of an image reference, or None if untagged.

    Handles registry hosts with ports (``localhost:5000/app``), where the
    colon belongs to the host rather than the tag.

    Example:
        >>> image_tag("rust:1.88")
        '1.88'
        >>> image_tag("localhost:5000/ubuntu") is None
        True
    """
    name = reference.split("@", 1)[0]
    last_segment = name.rsplit("/", 1)[-1]
    if ":" not in last_segment:
        return None
    return last_segment.rsplit(":", 1)[1] or None


def is_pinned_reference(reference: str) -> bool:
    """Check whether an image reference is pinned.

    A reference is pinned when it carries a sha256 digest or an explicit
    tag other than ``latest``.

    Example:
        >>> is_pinned_reference("ubuntu:22.04")
        True
        >>> is_pinned_reference("ubuntu")
        False
        >>> is_pinned_reference("ubuntu:latest")
        False
    """
    if _DIGEST_RE.search(reference):
        return True
    tag = image_tag(reference)
    return tag is not None and tag != "latest"
