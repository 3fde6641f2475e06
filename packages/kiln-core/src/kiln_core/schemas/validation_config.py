"""Schema validation configuration models for kiln.

This module defines:
- ValidationMode: live resource or deterministic schema fixture
- ValidationConfig: The ``validation`` section of kiln.yaml
- SchemaFixture: File format of a schema fixture (stand-in for a live database)
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing_extensions import Self

from kiln_core.schemas.references import ENV_VAR_PATTERN

DEFAULT_FIXTURE_ENV_VAR = "KILN_SCHEMA_FIXTURE"

DEFAULT_SCHEMA_ERROR_PATTERNS = [
    r"error returned from database",
    r"error communicating with database",
    r"relation \"[^\"]+\" does not exist",
    r"column \"[^\"]+\" does not exist",
    r"no cached data for this query",
]


class ValidationMode(str, Enum):
    """How the compiler's schema checks are served.

    Values:
        LIVE: The compiler connects to the resource named by the build-time value.
        FIXTURE: The compiler reads a schema fixture; no live connection.
    """

    LIVE = "live"
    FIXTURE = "fixture"


class ValidationConfig(BaseModel):
    """The ``validation`` section of kiln.yaml.

    Attributes:
        mode: Live resource or schema fixture.
        fixture: Schema fixture path, relative to the build context (fixture mode).
        probe: Probe the live resource for reachability before compiling.
        probe_timeout_seconds: Reachability probe timeout.
        offline_env: Variables exported to the compiler in fixture mode.
        fixture_env_var: Variable carrying the fixture path in fixture mode.
        schema_error_patterns: Regexes classifying compiler output as a
            schema validation failure.

    Example:
        >>> ValidationConfig(mode="fixture", fixture="schema/fixture.yaml")
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: ValidationMode = Field(default=ValidationMode.LIVE, description="Validation mode")
    fixture: str | None = Field(default=None, description="Schema fixture path")
    probe: bool = Field(default=True, description="Probe the live resource before compiling")
    probe_timeout_seconds: int = Field(
        default=10,
        ge=1,
        le=300,
        description="Reachability probe timeout in seconds",
    )
    offline_env: dict[str, str] = Field(
        default_factory=lambda: {"SQLX_OFFLINE": "true"},
        description="Variables exported to the compiler in fixture mode",
    )
    fixture_env_var: str = Field(
        default=DEFAULT_FIXTURE_ENV_VAR,
        pattern=ENV_VAR_PATTERN,
        description="Variable carrying the fixture path in fixture mode",
    )
    schema_error_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCHEMA_ERROR_PATTERNS),
        description="Regexes classifying schema validation failures",
    )

    @field_validator("schema_error_patterns")
    @classmethod
    def _patterns_compile(cls, value: list[str]) -> list[str]:
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as e:
                raise ValueError(f"invalid schema error pattern {pattern!r}: {e}") from e
        return value

    @field_validator("fixture")
    @classmethod
    def _fixture_inside_context(cls, value: str | None) -> str | None:
        if value is None:
            return value
        posix = PurePosixPath(value)
        if posix.is_absolute() or ".." in posix.parts:
            raise ValueError("fixture path must be relative to the build context")
        return value

    @field_validator("offline_env")
    @classmethod
    def _offline_env_names(cls, value: dict[str, str]) -> dict[str, str]:
        for name in value:
            if not re.match(ENV_VAR_PATTERN, name):
                raise ValueError(f"invalid environment variable name: {name!r}")
        return value

    @model_validator(mode="after")
    def _fixture_required_in_fixture_mode(self) -> Self:
        if self.mode == ValidationMode.FIXTURE and not self.fixture:
            raise ValueError("validation.fixture is required when mode is 'fixture'")
        return self


class ColumnFixture(BaseModel):
    """One column of a fixture table."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: str = Field(..., min_length=1, description="SQL type name")
    nullable: bool = Field(default=True, description="Column accepts NULL")


class TableFixture(BaseModel):
    """One table of a schema fixture."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    columns: dict[str, ColumnFixture] = Field(..., min_length=1)

    @field_validator("columns", mode="before")
    @classmethod
    def _shorthand_columns(cls, value: Any) -> Any:
        # "id: integer" is shorthand for "id: {type: integer}"
        if isinstance(value, dict):
            return {k: {"type": v} if isinstance(v, str) else v for k, v in value.items()}
        return value


class SchemaFixture(BaseModel):
    """Deterministic stand-in for a live database schema.

    Example fixture file::

        dialect: postgres
        tables:
          users:
            columns:
              id: integer
              name: {type: text, nullable: false}
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    dialect: str = Field(default="postgres", min_length=1)
    tables: dict[str, TableFixture] = Field(..., min_length=1)

    @classmethod
    def from_yaml(cls, path: str | Path) -> SchemaFixture:
        """Load and validate a schema fixture file.

        Raises:
            FileNotFoundError: If the fixture file doesn't exist.
            yaml.YAMLError: If YAML syntax is invalid.
            pydantic.ValidationError: If the fixture is malformed.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")
        data = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(data)

    def has_column(self, table: str, column: str) -> bool:
        """Check whether a table has a column."""
        fixture = self.tables.get(table)
        return fixture is not None and column in fixture.columns
