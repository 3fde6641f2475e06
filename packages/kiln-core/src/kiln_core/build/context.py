"""Build context snapshot.

The source tree is copied into the build workspace once, with exclusion
patterns applied, so the compiler never sees the live checkout and every
run starts from a known digest.
"""

from __future__ import annotations

import fnmatch
import hashlib
import shutil
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

import structlog

from kiln_core.errors import ConfigurationError, EnvironmentUnavailableError
from kiln_core.schemas import ContextConfig

logger = structlog.get_logger(__name__)

_CHUNK_SIZE = 1024 * 1024


def remove_tree(path: Path, *, component: str = "workspace") -> None:
    """Remove a directory tree, failing loudly if anything is left behind.

    A missing path is not an error.

    Raises:
        EnvironmentUnavailableError: If part of the tree can't be removed
            (e.g. files owned by another user).
    """
    failures: list[str] = []

    def _record(function: Callable[..., object], failed: str, exc: BaseException) -> None:
        failures.append(f"{failed}: {exc}")
        logger.warning("remove_failed", path=failed, error=str(exc))

    if not path.exists() and not path.is_symlink():
        return
    shutil.rmtree(path, onexc=_record)
    if failures:
        raise EnvironmentUnavailableError(
            f"Cannot remove {path}; {len(failures)} entries were left behind",
            component=component,
            internal_details="\n".join(failures),
        )


def load_ignore_patterns(source: Path, ignore_file: str) -> list[str]:
    """Read exclusion patterns from an ignore file in the source root.

    Blank lines and lines starting with ``#`` are skipped. A missing file
    yields no patterns.
    """
    path = source / ignore_file
    if not ignore_file or not path.is_file():
        return []
    patterns: list[str] = []
    for line in path.read_text().splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            patterns.append(stripped.rstrip("/"))
    return patterns


def is_excluded(relative: str, patterns: Iterable[str]) -> bool:
    """Check a source-relative POSIX path against exclusion patterns.

    A pattern matches the whole relative path, or the base name, or any
    leading directory of the path.

    Example:
        >>> is_excluded("target/release/app", ["target"])
        True
        >>> is_excluded("src/main.rs", ["*.log"])
        False
    """
    parts = relative.split("/")
    prefixes = ["/".join(parts[: i + 1]) for i in range(len(parts))]
    for pattern in patterns:
        pattern = pattern.lstrip("/")
        if fnmatch.fnmatchcase(parts[-1], pattern):
            return True
        if any(fnmatch.fnmatchcase(prefix, pattern) for prefix in prefixes):
            return True
    return False


def _ignore_callback(source: Path, patterns: list[str]) -> Callable[[str, list[str]], set[str]]:
    def ignore(directory: str, names: list[str]) -> set[str]:
        base = Path(directory).relative_to(source)
        ignored: set[str] = set()
        for name in names:
            relative = (base / name).as_posix()
            if is_excluded(relative, patterns):
                ignored.add(name)
        return ignored

    return ignore


def _digest_tree(root: Path) -> tuple[str, int]:
    digest = hashlib.sha256()
    count = 0
    for path in sorted(p for p in root.rglob("*") if p.is_file() or p.is_symlink()):
        relative = path.relative_to(root).as_posix()
        digest.update(relative.encode("utf-8"))
        digest.update(b"\0")
        if path.is_symlink():
            digest.update(b"link:" + str(path.readlink()).encode("utf-8"))
        else:
            digest.update(file_sha256(path).encode("ascii"))
        digest.update(b"\n")
        count += 1
    return digest.hexdigest(), count


def file_sha256(path: Path) -> str:
    """Hex sha256 of a file's contents."""
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass(frozen=True)
class BuildContext:
    """Immutable snapshot of the source tree inside a build workspace.

    Attributes:
        root: Snapshot directory the compiler runs in.
        digest: sha256 over relative paths and file contents.
        file_count: Number of files in the snapshot.
        excluded: Patterns that were applied.
    """

    root: Path
    digest: str
    file_count: int
    excluded: tuple[str, ...]

    @classmethod
    def snapshot(
        cls,
        source: Path,
        destination: Path,
        config: ContextConfig,
        *,
        extra_excludes: Iterable[str] = (),
    ) -> BuildContext:
        """Copy the source tree into destination.

        Args:
            source: Source directory.
            destination: Snapshot directory (must not exist yet).
            config: Context configuration (exclusions, ignore file).
            extra_excludes: Additional patterns, e.g. the output directory.

        Returns:
            BuildContext describing the snapshot.

        Raises:
            ConfigurationError: If the source directory doesn't exist.
        """
        if not source.is_dir():
            raise ConfigurationError(
                f"Build context directory not found: {source}",
                field_path="build.context.path",
            )

        patterns = [
            *config.exclude,
            *load_ignore_patterns(source, config.ignore_file),
            *extra_excludes,
        ]
        shutil.copytree(
            source,
            destination,
            symlinks=True,
            ignore=_ignore_callback(source, patterns),
        )
        digest, count = _digest_tree(destination)

        logger.info(
            "build_context_snapshot",
            source=str(source),
            files=count,
            digest=digest,
        )
        return cls(root=destination, digest=digest, file_count=count, excluded=tuple(patterns))
