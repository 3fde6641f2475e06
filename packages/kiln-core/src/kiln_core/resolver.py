"""Pipeline configuration resolver for kiln.

This module handles locating and loading kiln.yaml:
- PipelineResolver: Load kiln.yaml from an explicit path, KILN_PIPELINE_FILE,
  or the standard search locations
- LoadedPipeline: The validated spec plus the paths it is relative to
- Environment overrides for the output directory and build backend
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from kiln_core.schemas import PIPELINE_FILE_NAME, BuildBackend, PipelineSpec

logger = logging.getLogger(__name__)

# Environment variable naming the pipeline file
PIPELINE_FILE_ENV_VAR = "KILN_PIPELINE_FILE"

# Environment variable overriding the output directory
OUTPUT_DIR_ENV_VAR = "KILN_OUTPUT_DIR"

# Environment variable overriding the build backend
BACKEND_ENV_VAR = "KILN_BACKEND"

DEFAULT_OUTPUT_DIR = Path(".kiln")

# Standard locations to search for kiln.yaml
PIPELINE_SEARCH_PATHS = (
    Path("."),
    Path(".kiln"),
)


class PipelineNotFoundError(Exception):
    """Raised when kiln.yaml cannot be found in any search path."""

    pass


@dataclass(frozen=True)
class LoadedPipeline:
    """A validated pipeline spec anchored to the file it came from.

    Attributes:
        spec: The validated PipelineSpec.
        file_path: Absolute path of the pipeline file.
    """

    spec: PipelineSpec
    file_path: Path

    @property
    def base_dir(self) -> Path:
        """Directory relative paths in the spec are resolved against."""
        return self.file_path.parent

    @property
    def context_root(self) -> Path:
        """Absolute path of the source tree used as build context."""
        return (self.base_dir / self.spec.build.context.path).resolve()

    @property
    def fixture_path(self) -> Path | None:
        """Absolute path of the schema fixture, if configured."""
        fixture = self.spec.validation.fixture
        if fixture is None:
            return None
        return (self.context_root / fixture).resolve()


def get_output_dir(explicit: str | Path | None = None) -> Path:
    """Resolve the output directory.

    Precedence: explicit argument, KILN_OUTPUT_DIR, then ``.kiln``.
    """
    if explicit is not None:
        return Path(explicit)
    env_value = os.environ.get(OUTPUT_DIR_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_OUTPUT_DIR


def get_backend_override(explicit: str | None = None) -> BuildBackend | None:
    """Resolve a build backend override.

    Precedence: explicit argument, then KILN_BACKEND. None means "use the
    backend declared in kiln.yaml".

    Raises:
        ValueError: If the override names an unknown backend.
    """
    value = explicit or os.environ.get(BACKEND_ENV_VAR)
    if not value:
        return None
    return BuildBackend(value.lower())


class PipelineResolver:
    """Resolves the pipeline file from arguments, environment and files.

    Attributes:
        search_paths: Ordered directories searched for kiln.yaml.

    Example:
        >>> resolver = PipelineResolver()
        >>> pipeline = resolver.load()
        >>> pipeline.spec.build.artifact.name
        'user-service'

        >>> pipeline = resolver.load(path=Path("services/users/kiln.yaml"))
    """

    def __init__(self, search_paths: tuple[Path, ...] | None = None) -> None:
        """Initialize the PipelineResolver.

        Args:
            search_paths: Custom search paths. If None, uses PIPELINE_SEARCH_PATHS.
        """
        self.search_paths = search_paths or PIPELINE_SEARCH_PATHS

    def find(self, path: Path | None = None) -> Path:
        """Find the pipeline file.

        Searches in this order:
        1. Explicit path argument
        2. KILN_PIPELINE_FILE environment variable
        3. kiln.yaml in each search path

        Returns:
            Absolute path to the pipeline file.

        Raises:
            FileNotFoundError: If an explicit or environment path doesn't exist.
            PipelineNotFoundError: If discovery finds nothing.
        """
        if path is not None:
            if not path.exists():
                raise FileNotFoundError(f"File not found: {path}")
            return path.resolve()

        env_value = os.environ.get(PIPELINE_FILE_ENV_VAR)
        if env_value:
            env_path = Path(env_value)
            if not env_path.exists():
                raise FileNotFoundError(f"File not found: {env_path} (from {PIPELINE_FILE_ENV_VAR})")
            return env_path.resolve()

        for base_path in self.search_paths:
            candidate = base_path / PIPELINE_FILE_NAME
            if candidate.exists():
                logger.debug("Found %s at %s", PIPELINE_FILE_NAME, candidate)
                return candidate.resolve()

        searched = [str(p / PIPELINE_FILE_NAME) for p in self.search_paths]
        raise PipelineNotFoundError(
            f"Pipeline configuration not found. Searched: {', '.join(searched)}"
        )

    def load(self, path: Path | None = None) -> LoadedPipeline:
        """Load and validate the pipeline file.

        Args:
            path: Explicit path to kiln.yaml.

        Returns:
            LoadedPipeline with the validated spec.

        Raises:
            PipelineNotFoundError: If kiln.yaml cannot be found.
            FileNotFoundError: If an explicit path doesn't exist.
            CredentialDetectedError: If the file embeds credentials.
            pydantic.ValidationError: If kiln.yaml is invalid.
        """
        file_path = self.find(path)
        logger.info("Loading pipeline configuration from %s", file_path)
        spec = PipelineSpec.from_yaml(file_path)
        return LoadedPipeline(spec=spec, file_path=file_path)
