"""Build-time configuration value.

The value (a data-store connection descriptor) is read from the invoker's
environment, held as a pydantic SecretStr, exported only into the compile
process environment, and revoked once compilation ends. After revocation
it cannot be read again and is no longer masked in logs; only a
ValueFingerprint captured beforehand can be used to look for it in the
runtime image. Compiler output is masked while it is captured, before
revocation.
"""

from __future__ import annotations

import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from urllib.parse import urlsplit

import structlog
from pydantic import SecretStr

from kiln_core.errors import BuildValueError, KilnError
from kiln_core.observability import register_redaction, unregister_redaction
from kiln_core.schemas import BuildValueConfig
from kiln_core.security import ValueFingerprint

logger = structlog.get_logger(__name__)


class RevokedValueError(KilnError):
    """Raised when a revoked build-time value is read."""

    pass


@dataclass(frozen=True)
class Endpoint:
    """Network endpoint named by a connection descriptor."""

    scheme: str
    host: str
    port: int | None
    database: str | None


def parse_endpoint(descriptor: str) -> Endpoint:
    """Parse the endpoint part of a connection descriptor.

    Credentials are ignored and never copied into the result.

    Raises:
        ValueError: If the descriptor is not a URL.
    """
    parts = urlsplit(descriptor)
    if not parts.scheme:
        raise ValueError("descriptor has no URL scheme")
    # Accessing .port raises ValueError for non-numeric ports
    port = parts.port
    database = parts.path.lstrip("/") or None
    return Endpoint(
        scheme=parts.scheme.lower(),
        host=parts.hostname or "",
        port=port,
        database=database,
    )


def validate_descriptor(descriptor: str, config: BuildValueConfig) -> Endpoint:
    """Check a connection descriptor is well formed.

    Error messages name the variable, never the descriptor.

    Args:
        descriptor: Raw value from the environment.
        config: Build-time value configuration.

    Returns:
        The parsed endpoint.

    Raises:
        BuildValueError: If the descriptor is malformed.
    """
    try:
        endpoint = parse_endpoint(descriptor)
    except ValueError as e:
        raise BuildValueError(
            config.name,
            config.source_env_var,
            reason="malformed",
            hint=str(e),
        ) from None

    if config.schemes and endpoint.scheme not in config.schemes:
        raise BuildValueError(
            config.name,
            config.source_env_var,
            reason="malformed",
            hint=f"unsupported scheme '{endpoint.scheme}', expected one of: "
            f"{', '.join(config.schemes)}",
        )
    if config.require_host and not endpoint.host:
        raise BuildValueError(
            config.name,
            config.source_env_var,
            reason="malformed",
            hint="descriptor has no host",
        )
    return endpoint


class BuildTimeValue:
    """The build-time configuration value, scoped to the compile step.

    Attributes:
        name: Variable name the value is exported under.
        source_env_var: Invoker environment variable it was read from.

    Example:
        >>> value = BuildTimeValue.from_environment(config)
        >>> fingerprint = value.fingerprint()
        >>> with value.scoped() as env:
        ...     subprocess.run(command, env={**base_env, **env})
        >>> value.revoked
        True
    """

    def __init__(self, name: str, secret: SecretStr, *, source_env_var: str) -> None:
        self.name = name
        self.source_env_var = source_env_var
        self._secret: SecretStr | None = secret
        self._masker: ValueFingerprint | None = ValueFingerprint.of(secret.get_secret_value())
        register_redaction(self._masker)

    @classmethod
    def from_environment(
        cls,
        config: BuildValueConfig,
        environ: Mapping[str, str] | None = None,
        *,
        required: bool = True,
    ) -> BuildTimeValue | None:
        """Read the value from the invoker environment.

        Args:
            config: Build-time value configuration.
            environ: Environment to read from. Defaults to os.environ.
            required: When False, a missing value returns None and a
                present value is not format-checked.

        Returns:
            BuildTimeValue, or None when not required and absent.

        Raises:
            BuildValueError: If a required value is missing or malformed.
        """
        env = os.environ if environ is None else environ
        raw = env.get(config.source_env_var, "")

        if not raw:
            if required:
                raise BuildValueError(config.name, config.source_env_var, reason="missing")
            return None

        if required:
            validate_descriptor(raw, config)

        logger.debug(
            "build_value_loaded",
            value_name=config.name,
            source_env_var=config.source_env_var,
        )
        return cls(config.name, SecretStr(raw), source_env_var=config.source_env_var)

    @property
    def revoked(self) -> bool:
        """True once the value can no longer be read."""
        return self._secret is None

    def _reveal(self) -> str:
        if self._secret is None:
            raise RevokedValueError(f"Build-time value '{self.name}' has been revoked")
        return self._secret.get_secret_value()

    def endpoint(self) -> Endpoint:
        """Endpoint the descriptor points at (no credentials)."""
        return parse_endpoint(self._reveal())

    def fingerprint(self) -> ValueFingerprint:
        """Capture a searchable fingerprint of the value."""
        return ValueFingerprint.of(self._reveal())

    def exported(self) -> dict[str, str]:
        """Environment entries for the compile process."""
        return {self.name: self._reveal()}

    def revoke(self) -> None:
        """Drop the value. Idempotent."""
        if self._masker is not None:
            unregister_redaction(self._masker)
            self._masker = None
        if self._secret is not None:
            self._secret = None
            logger.debug("build_value_revoked", value_name=self.name)

    @contextmanager
    def scoped(self) -> Iterator[dict[str, str]]:
        """Yield the exported entries, revoking the value on exit."""
        try:
            yield self.exported()
        finally:
            self.revoke()

    def __repr__(self) -> str:
        state = "revoked" if self.revoked else "**********"
        return f"BuildTimeValue(name={self.name!r}, value={state})"
