"""Scan assembled images for occurrences of the build-time value.

The build-time value is revoked as soon as compilation ends, but the
runtime image is only assembled afterwards. To check the image without
keeping the value alive, the build stage captures a ValueFingerprint:
keyed BLAKE2 digests of every block of half the value's length, plus a
keyed digest of the whole value used to confirm candidate matches.

Any occurrence of the value covers at least one block-aligned window of
the scanned data, so hashing one window per block is enough to find it.
Neither the digests nor the key allow the value to be read back.
"""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import structlog

logger = structlog.get_logger(__name__)

# Files are read in chunks of this size, overlapping by length - 1 bytes
CHUNK_SIZE = 1 << 20

_DIGEST_SIZE = 16


def _keyed_digest(data: bytes | memoryview, key: bytes) -> bytes:
    return hashlib.blake2b(data, key=key, digest_size=_DIGEST_SIZE).digest()


@dataclass(frozen=True, eq=False)
class ValueFingerprint:
    """Searchable, non-reversible fingerprint of a byte string.

    Attributes:
        length: Length of the fingerprinted value in bytes.
    """

    length: int
    _block: int = field(repr=False)
    _blocks: Mapping[bytes, tuple[int, ...]] = field(repr=False)
    _key: bytes = field(repr=False)
    _confirm: bytes = field(repr=False)

    @classmethod
    def of(cls, value: str) -> ValueFingerprint:
        """Fingerprint a value.

        Args:
            value: Non-empty value to fingerprint.

        Raises:
            ValueError: If value is empty.
        """
        data = value.encode("utf-8")
        if not data:
            raise ValueError("cannot fingerprint an empty value")

        key = secrets.token_bytes(32)
        block = max(1, len(data) // 2)
        offsets: dict[bytes, list[int]] = {}
        for offset in range(len(data) - block + 1):
            digest = _keyed_digest(data[offset : offset + block], key)
            offsets.setdefault(digest, []).append(offset)

        return cls(
            length=len(data),
            _block=block,
            _blocks=MappingProxyType({d: tuple(o) for d, o in offsets.items()}),
            _key=key,
            _confirm=_keyed_digest(data, key),
        )

    def _confirms(self, window: memoryview) -> bool:
        return secrets.compare_digest(_keyed_digest(window, self._key), self._confirm)

    def _match_starts(self, data: bytes) -> Iterator[int]:
        view = memoryview(data)
        total = len(view)
        size = self.length
        block = self._block
        if total < size:
            return
        # block <= size - block, so every occurrence spans an aligned window
        for position in range(0, total - block + 1, block):
            offsets = self._blocks.get(_keyed_digest(view[position : position + block], self._key))
            if offsets is None:
                continue
            for offset in offsets:
                start = position - offset
                if 0 <= start <= total - size and self._confirms(view[start : start + size]):
                    yield start

    def occurs_in(self, data: bytes) -> bool:
        """Check whether the fingerprinted value occurs in data."""
        return next(self._match_starts(data), None) is not None

    def occurs_in_file(self, path: Path) -> bool:
        """Check a file for the value, reading it in overlapping chunks."""
        overlap = self.length - 1
        tail = b""
        with path.open("rb") as stream:
            while True:
                chunk = stream.read(CHUNK_SIZE)
                if not chunk:
                    return False
                buffer = tail + chunk
                if self.occurs_in(buffer):
                    return True
                tail = buffer[max(0, len(buffer) - overlap) :] if overlap else b""

    def mask(self, text: str, replacement: str) -> str:
        """Replace every occurrence of the value in text.

        Overlapping occurrences collapse into a single replacement.
        """
        data = text.encode("utf-8", "surrogatepass")
        starts = sorted(set(self._match_starts(data)))
        if not starts:
            return text

        pieces: list[bytes] = []
        cursor = 0
        for start in starts:
            if start >= cursor:
                pieces.append(data[cursor:start])
                pieces.append(replacement.encode("utf-8"))
            cursor = max(cursor, start + self.length)
        pieces.append(data[cursor:])
        return b"".join(pieces).decode("utf-8", "surrogatepass")


def _iter_files(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if path.is_file() and not path.is_symlink():
            yield path


def scan_tree(root: Path, fingerprint: ValueFingerprint) -> list[str]:
    """Find files under root that contain the fingerprinted value.

    File names are checked as well as contents.

    Args:
        root: Directory to scan.
        fingerprint: Fingerprint of the value to look for.

    Returns:
        Sorted root-relative POSIX paths of offending files.
    """
    hits: list[str] = []
    for path in _iter_files(root):
        relative = path.relative_to(root).as_posix()
        if fingerprint.occurs_in(relative.encode("utf-8")) or fingerprint.occurs_in_file(path):
            hits.append(relative)

    logger.debug("leak_scan_completed", root=str(root), hits=len(hits))
    return hits
