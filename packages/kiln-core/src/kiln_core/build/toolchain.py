"""Pinned compiler toolchains.

Two backends run the compile command:
- ContainerToolchain: a throwaway container of the pinned toolchain image,
  driven through the docker CLI, with the build context bind-mounted
- LocalToolchain: a host subprocess with a scrubbed environment, after the
  toolchain's version probe confirmed the pinned version

Exported variables reach the compiler through the process environment
only. The container backend passes ``-e NAME`` without a value, so docker
copies it from the client process environment and it never appears on a
command line.
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess
import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from kiln_core.errors import EnvironmentUnavailableError
from kiln_core.observability import redact
from kiln_core.schemas import BuildBackend, ToolchainConfig

logger = structlog.get_logger(__name__)

# Exit code reported when the compile command exceeds its timeout
TIMEOUT_EXIT_CODE = 124

# Host variables every compile process keeps
BASE_ENV_ALLOWLIST = ("PATH", "HOME", "LANG", "LC_ALL", "TMPDIR", "USER")

# Host variables the docker client needs to reach its daemon
DOCKER_ENV_ALLOWLIST = (
    "PATH",
    "HOME",
    "DOCKER_HOST",
    "DOCKER_CONFIG",
    "DOCKER_CONTEXT",
    "DOCKER_CERT_PATH",
    "DOCKER_TLS_VERIFY",
)


@dataclass(frozen=True)
class CompileOutcome:
    """Result of one compile command run.

    Attributes:
        exit_code: Process exit code (signals map to 128 + signal number).
        stdout: Captured standard output, redacted.
        stderr: Captured standard error, redacted.
        duration_ms: Wall-clock duration.
    """

    exit_code: int
    stdout: str
    stderr: str
    duration_ms: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def diagnostics(self) -> str:
        """Compiler output, stderr first."""
        return "\n".join(part for part in (self.stderr, self.stdout) if part)


def version_matches(version: str, reported: str) -> bool:
    """Check that version appears in reported as a whole version token.

    Example:
        >>> version_matches("1.88", "cargo 1.88.0 (2025-05-13)")
        True
        >>> version_matches("1.8", "cargo 1.88.0")
        False
    """
    return re.search(rf"(?<!\w){re.escape(version)}(?!\w)", reported) is not None


def scrub_environment(
    allowlist: Sequence[str],
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Copy only allow-listed variables from the host environment."""
    env = os.environ if environ is None else environ
    return {name: env[name] for name in allowlist if name in env}


def run_command(
    argv: Sequence[str],
    *,
    cwd: Path | None,
    env: Mapping[str, str],
    timeout_seconds: int,
) -> CompileOutcome:
    """Run a command to completion, capturing its output.

    A timeout or KeyboardInterrupt kills the process. The interrupt is
    re-raised so the caller can clean up.
    """
    start = time.monotonic()
    try:
        process = subprocess.Popen(
            list(argv),
            cwd=cwd,
            env=dict(env),
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as e:
        raise EnvironmentUnavailableError(
            f"Cannot execute '{argv[0]}': {e.strerror or type(e).__name__}",
            component="toolchain",
        ) from e

    try:
        stdout, stderr = process.communicate(timeout=timeout_seconds)
        exit_code = process.returncode
    except subprocess.TimeoutExpired:
        process.kill()
        stdout, stderr = process.communicate()
        stderr = f"{stderr}\ncompile command timed out after {timeout_seconds}s".lstrip()
        exit_code = TIMEOUT_EXIT_CODE
    except KeyboardInterrupt:
        process.kill()
        process.wait()
        raise

    if exit_code < 0:
        exit_code = 128 - exit_code

    return CompileOutcome(
        exit_code=exit_code,
        stdout=redact(stdout or ""),
        stderr=redact(stderr or ""),
        duration_ms=int((time.monotonic() - start) * 1000),
    )


class Toolchain(ABC):
    """A pinned toolchain able to run the compile command.

    Attributes:
        config: Toolchain configuration.
    """

    backend: BuildBackend

    def __init__(self, config: ToolchainConfig) -> None:
        self.config = config
        self._log = logger.bind(toolchain=config.name, backend=self.backend.value)

    @abstractmethod
    def ensure_available(self) -> str:
        """Verify the toolchain can run.

        Returns:
            Description of the resolved toolchain (version output or image).

        Raises:
            EnvironmentUnavailableError: If the toolchain is missing or the
                pinned version does not match.
        """

    @abstractmethod
    def compile(self, workdir: Path, exports: Mapping[str, str]) -> CompileOutcome:
        """Run the compile command in workdir.

        Args:
            workdir: Build context snapshot.
            exports: Variables exported into the compile process only.
        """

    @abstractmethod
    def compile_root(self, workdir: Path) -> str:
        """Path of workdir as seen by the compile process."""

    @property
    def reference(self) -> str:
        """Pinned reference recorded in the artifact manifest."""
        return f"{self.config.name} {self.config.version}"


class LocalToolchain(Toolchain):
    """Runs the compile command as a host subprocess."""

    backend = BuildBackend.LOCAL

    def __init__(
        self,
        config: ToolchainConfig,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(config)
        self._environ = os.environ if environ is None else environ

    def _base_env(self) -> dict[str, str]:
        allowlist = [*BASE_ENV_ALLOWLIST, *self.config.passthrough_env]
        return scrub_environment(allowlist, self._environ)

    def ensure_available(self) -> str:
        executable = self.config.command[0]
        base_env = self._base_env()
        if shutil.which(executable, path=base_env.get("PATH")) is None:
            raise EnvironmentUnavailableError(
                f"Compiler '{executable}' not found on PATH",
                component="toolchain",
                reference=self.reference,
            )

        probe_executable = self.config.version_command[0]
        if shutil.which(probe_executable, path=base_env.get("PATH")) is None:
            raise EnvironmentUnavailableError(
                f"Toolchain version probe '{probe_executable}' not found on PATH",
                component="toolchain",
                reference=self.reference,
            )

        outcome = run_command(
            self.config.version_command,
            cwd=None,
            env=base_env,
            timeout_seconds=60,
        )
        reported = (outcome.stdout or outcome.stderr).strip()
        if not outcome.succeeded:
            raise EnvironmentUnavailableError(
                f"Toolchain version probe failed with exit code {outcome.exit_code}",
                component="toolchain",
                reference=self.reference,
                internal_details=outcome.diagnostics,
            )
        if not version_matches(self.config.version, reported):
            raise EnvironmentUnavailableError(
                f"Toolchain version mismatch: expected {self.config.version}, "
                f"found '{reported.splitlines()[0] if reported else 'nothing'}'",
                component="toolchain",
                reference=self.reference,
            )

        self._log.info("toolchain_available", version=reported)
        return reported

    def compile_root(self, workdir: Path) -> str:
        return str(workdir)

    def compile(self, workdir: Path, exports: Mapping[str, str]) -> CompileOutcome:
        env = {**self._base_env(), **exports}
        self._log.info(
            "compile_started",
            command=self.config.command,
            exported=sorted(exports),
        )
        return run_command(
            self.config.command,
            cwd=workdir,
            env=env,
            timeout_seconds=self.config.timeout_seconds,
        )


class ContainerToolchain(Toolchain):
    """Runs the compile command in a throwaway toolchain container."""

    backend = BuildBackend.CONTAINER

    def __init__(
        self,
        config: ToolchainConfig,
        environ: Mapping[str, str] | None = None,
        docker: str = "docker",
    ) -> None:
        super().__init__(config)
        self._environ = os.environ if environ is None else environ
        self.docker = docker

    @property
    def reference(self) -> str:
        return self.config.image

    def _client_env(self) -> dict[str, str]:
        return scrub_environment(DOCKER_ENV_ALLOWLIST, self._environ)

    def ensure_available(self) -> str:
        if shutil.which(self.docker) is None:
            raise EnvironmentUnavailableError(
                "docker CLI not found on PATH (required by the container backend)",
                component="docker",
                reference=self.config.image,
            )
        ensure_image(self.docker, self.config.image, env=self._client_env(), component="toolchain")
        self._log.info("toolchain_available", image=self.config.image)
        return self.config.image

    def compile_root(self, workdir: Path) -> str:
        return self.config.container_workdir

    def container_command(self, workdir: Path, exports: Mapping[str, str]) -> list[str]:
        """docker run argv for the compile command (values never included)."""
        argv = [
            self.docker,
            "run",
            "--rm",
            "--volume",
            f"{workdir}:{self.config.container_workdir}",
            "--workdir",
            self.config.container_workdir,
        ]
        if self.config.run_as_invoker and sys.platform.startswith("linux"):
            # Bind-mounted outputs stay owned by the invoker
            argv.extend(["--user", f"{os.getuid()}:{os.getgid()}"])
        if self.config.network:
            argv.extend(["--network", self.config.network])
        for name in sorted({*exports, *self.config.passthrough_env}):
            argv.extend(["--env", name])
        argv.append(self.config.image)
        argv.extend(self.config.command)
        return argv

    def compile(self, workdir: Path, exports: Mapping[str, str]) -> CompileOutcome:
        passthrough = scrub_environment(self.config.passthrough_env, self._environ)
        env = {**self._client_env(), **passthrough, **exports}
        argv = self.container_command(workdir, exports)
        self._log.info(
            "compile_started",
            image=self.config.image,
            command=self.config.command,
            exported=sorted(exports),
        )
        return run_command(
            argv,
            cwd=None,
            env=env,
            timeout_seconds=self.config.timeout_seconds,
        )


def ensure_image(
    docker: str,
    image: str,
    *,
    env: Mapping[str, str],
    component: str,
) -> None:
    """Make sure an image is present locally, pulling it if needed.

    Raises:
        EnvironmentUnavailableError: If the daemon is unreachable or the
            image cannot be pulled.
    """
    inspect = run_command(
        [docker, "image", "inspect", "--format", "{{.Id}}", image],
        cwd=None,
        env=env,
        timeout_seconds=60,
    )
    if inspect.succeeded:
        return

    logger.info("image_pull_started", image=image)
    pull = run_command([docker, "pull", image], cwd=None, env=env, timeout_seconds=1800)
    if not pull.succeeded:
        raise EnvironmentUnavailableError(
            f"Image '{image}' is not available and could not be pulled",
            component=component,
            reference=image,
            internal_details=pull.diagnostics,
        )


def create_toolchain(
    config: ToolchainConfig,
    backend: BuildBackend | None = None,
    environ: Mapping[str, str] | None = None,
) -> Toolchain:
    """Create the toolchain for a backend.

    Args:
        config: Toolchain configuration.
        backend: Override for ``config.backend``.
        environ: Host environment. Defaults to os.environ.
    """
    selected = backend or config.backend
    if selected == BuildBackend.LOCAL:
        return LocalToolchain(config, environ=environ)
    return ContainerToolchain(config, environ=environ)

