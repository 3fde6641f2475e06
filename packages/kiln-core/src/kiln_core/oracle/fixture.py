"""Fixture schema oracle: a YAML schema fixture instead of a live database.

In fixture mode the compiler gets the fixture's path and the configured
offline variables (``SQLX_OFFLINE=true`` by default). The build-time value
is neither required nor exported.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

import structlog
import yaml
from pydantic import ValidationError as PydanticValidationError

from kiln_core.errors import ValidationResourceError
from kiln_core.oracle.base import SchemaOracle
from kiln_core.schemas import SchemaFixture, ValidationConfig, ValidationMode

if TYPE_CHECKING:
    from kiln_core.build.value import BuildTimeValue

logger = structlog.get_logger(__name__)


class FixtureSchemaOracle(SchemaOracle):
    """Deterministic stand-in for the live schema.

    Attributes:
        config: Validation configuration.
        fixture_path: Absolute path of the fixture in the source tree.
    """

    mode = ValidationMode.FIXTURE
    requires_value = False

    def __init__(self, config: ValidationConfig, fixture_path: Path) -> None:
        self.config = config
        self.fixture_path = fixture_path

    def load(self) -> SchemaFixture:
        """Load and validate the fixture.

        Raises:
            ValidationResourceError: If the fixture is missing or invalid.
        """
        try:
            return SchemaFixture.from_yaml(self.fixture_path)
        except FileNotFoundError:
            raise ValidationResourceError(
                f"Schema fixture not found: {self.fixture_path}"
            ) from None
        except yaml.YAMLError as e:
            raise ValidationResourceError(
                f"Schema fixture is not valid YAML: {self.fixture_path}",
                internal_details=str(e),
            ) from None
        except PydanticValidationError as e:
            raise ValidationResourceError(
                f"Schema fixture is invalid: {self.fixture_path} ({e.error_count()} errors)",
                internal_details=str(e),
            ) from None

    def probe(self) -> str:
        fixture = self.load()
        logger.info(
            "schema_fixture_loaded",
            path=str(self.fixture_path),
            dialect=fixture.dialect,
            tables=len(fixture.tables),
        )
        return f"fixture {self.fixture_path.name}: {len(fixture.tables)} tables ({fixture.dialect})"

    def compile_environment(
        self,
        value: BuildTimeValue | None,
        compile_root: str,
    ) -> dict[str, str]:
        relative = PurePosixPath(self.config.fixture or "")
        env = dict(self.config.offline_env)
        env[self.config.fixture_env_var] = str(PurePosixPath(compile_root) / relative)
        return env
