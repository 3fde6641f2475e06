"""Pipeline file loading for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import yaml
from pydantic import ValidationError as PydanticValidationError

from kiln_cli.errors import (
    CLIError,
    handle_file_not_found,
    handle_permission_error,
    handle_validation_error,
    handle_yaml_error,
)

if TYPE_CHECKING:
    from kiln_core.resolver import LoadedPipeline
    from kiln_core.schemas import BuildBackend


def load_pipeline(file_path: str | None) -> LoadedPipeline:
    """Load kiln.yaml, turning load failures into CLI errors.

    Args:
        file_path: Explicit --file value, or None to search the standard
            locations (KILN_PIPELINE_FILE, ./kiln.yaml, ./.kiln/kiln.yaml).

    Raises:
        CLIError: Exit code 2 if the file is missing or unreadable,
            1 if it is invalid or embeds a credential.
    """
    from kiln_core.resolver import PipelineNotFoundError, PipelineResolver
    from kiln_core.security import CredentialDetectedError

    shown = file_path or "kiln.yaml"
    try:
        return PipelineResolver().load(Path(file_path) if file_path else None)
    except PipelineNotFoundError as e:
        raise CLIError(
            f"{e}\n\nRun 'kiln init' to create a new project, or use --file to specify a path.",
            exit_code=2,
        ) from None
    except FileNotFoundError:
        handle_file_not_found(shown)
    except PermissionError:
        handle_permission_error(shown, "read")
    except yaml.YAMLError as e:
        handle_yaml_error(e, shown)
    except PydanticValidationError as e:
        handle_validation_error(e, shown)
    except CredentialDetectedError as e:
        raise CLIError(str(e)) from None


def resolve_backend(explicit: str | None) -> BuildBackend | None:
    """Resolve --backend / KILN_BACKEND into a build backend override.

    Raises:
        CLIError: If KILN_BACKEND names an unknown backend.
    """
    from kiln_core.resolver import BACKEND_ENV_VAR, get_backend_override

    try:
        return get_backend_override(explicit)
    except ValueError:
        raise CLIError(
            f"Invalid {BACKEND_ENV_VAR}: expected 'container' or 'local'",
        ) from None
