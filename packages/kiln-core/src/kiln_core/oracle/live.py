"""Live schema oracle: the database named by the build-time value."""

from __future__ import annotations

import socket

import structlog

from kiln_core.build.value import BuildTimeValue
from kiln_core.errors import BuildValueError, ValidationResourceError
from kiln_core.oracle.base import SchemaOracle
from kiln_core.schemas import BuildValueConfig, ValidationConfig, ValidationMode

logger = structlog.get_logger(__name__)

# Default ports by descriptor scheme
DEFAULT_PORTS = {
    "postgres": 5432,
    "postgresql": 5432,
    "mysql": 3306,
    "mariadb": 3306,
}


class LiveSchemaOracle(SchemaOracle):
    """The compiler validates queries against the live database.

    The probe opens one short-lived TCP connection to the descriptor's
    host and port and closes it immediately. It never authenticates.

    Example:
        >>> oracle = LiveSchemaOracle(validation, value_config, value)
        >>> oracle.probe()
        'db.internal:5432 reachable'
    """

    mode = ValidationMode.LIVE
    requires_value = True

    def __init__(
        self,
        config: ValidationConfig,
        value_config: BuildValueConfig,
        value: BuildTimeValue | None,
    ) -> None:
        self.config = config
        self.value_config = value_config
        self.value = value

    def _require_value(self, value: BuildTimeValue | None) -> BuildTimeValue:
        if value is None:
            raise BuildValueError(
                self.value_config.name,
                self.value_config.source_env_var,
                reason="missing",
            )
        return value

    def probe(self) -> str:
        value = self._require_value(self.value)
        endpoint = value.endpoint()
        port = endpoint.port or DEFAULT_PORTS.get(endpoint.scheme)
        if not endpoint.host or port is None:
            raise ValidationResourceError(
                f"Cannot determine host and port from {self.value_config.name}"
            )

        target = f"{endpoint.host}:{port}"
        if not self.config.probe:
            logger.info("validation_probe_skipped", target=target)
            return f"{target} (probe disabled)"

        try:
            with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
                sock.settimeout(self.config.probe_timeout_seconds)
                result = sock.connect_ex((endpoint.host, port))
        except socket.gaierror as e:
            raise ValidationResourceError(
                f"DNS resolution failed for validation resource {endpoint.host}",
                internal_details=str(e),
            ) from None
        except TimeoutError:
            raise ValidationResourceError(
                f"Connection timed out to validation resource {target}"
            ) from None

        if result != 0:
            raise ValidationResourceError(f"Cannot connect to validation resource at {target}")

        logger.info("validation_resource_reachable", target=target)
        return f"{target} reachable"

    def compile_environment(
        self,
        value: BuildTimeValue | None,
        compile_root: str,
    ) -> dict[str, str]:
        return self._require_value(value).exported()
