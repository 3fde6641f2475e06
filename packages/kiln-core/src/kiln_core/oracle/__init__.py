"""Schema oracles: what the compiler's schema validation runs against.

- LiveSchemaOracle: the database named by the build-time value
- FixtureSchemaOracle: a deterministic schema fixture
"""

from __future__ import annotations

from pathlib import Path

from kiln_core.build.value import BuildTimeValue
from kiln_core.errors import ConfigurationError
from kiln_core.oracle.base import SchemaOracle
from kiln_core.oracle.fixture import FixtureSchemaOracle
from kiln_core.oracle.live import LiveSchemaOracle
from kiln_core.schemas import PipelineSpec, ValidationMode


def create_oracle(
    spec: PipelineSpec,
    value: BuildTimeValue | None,
    fixture_path: Path | None = None,
) -> SchemaOracle:
    """Create the schema oracle selected by ``validation.mode``.

    Args:
        spec: Pipeline spec.
        value: Build-time value (live mode).
        fixture_path: Absolute fixture path (fixture mode).

    Raises:
        ConfigurationError: If fixture mode has no fixture path.
    """
    if spec.validation.mode == ValidationMode.FIXTURE:
        if fixture_path is None:
            raise ConfigurationError(
                "Fixture mode requires a schema fixture",
                field_path="validation.fixture",
            )
        return FixtureSchemaOracle(spec.validation, fixture_path)
    return LiveSchemaOracle(spec.validation, spec.build.config_value, value)


__all__ = [
    "FixtureSchemaOracle",
    "LiveSchemaOracle",
    "SchemaOracle",
    "create_oracle",
]
