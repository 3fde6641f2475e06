"""Render Containerfiles with jinja2.

Two renderings are provided:
- render_containerfile: the runtime image's Containerfile, copying the
  single artifact out of the assembled rootfs
- render_dockerfile: a two-stage Dockerfile equivalent of the whole
  pipeline, for builds that run under ``docker build`` instead of kiln.
  The build-time value is passed through a BuildKit secret mount, so it is
  never an ARG or ENV and never lands in an image layer.
"""

from __future__ import annotations

import json
import shlex
from typing import Any

from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from kiln_core.schemas import PipelineSpec, ValidationMode

RUNTIME_TEMPLATE = """\
# {{ name }} {{ version }} runtime image
FROM {{ base_image }}
{% for key, value in labels | dictsort %}
LABEL {{ key | json }}={{ value | json }}
{% endfor %}
WORKDIR {{ workdir }}
COPY rootfs{{ artifact_path }} {{ artifact_path }}
{% if user %}
USER {{ user }}
{% endif %}
CMD {{ entrypoint | json }}
"""

TWO_STAGE_TEMPLATE = """\
# syntax=docker/dockerfile:1.10
# {{ name }} {{ version }}
{% if fixture_mode %}
#   docker build .
{% else %}
#   docker build --secret id={{ secret_id }},env={{ source_env_var }} .
{% endif %}

FROM {{ toolchain_image }} AS builder
WORKDIR {{ container_workdir }}
COPY . .
{% if fixture_mode %}
{% for key, value in offline_env | dictsort %}
ENV {{ key }}={{ value | json }}
{% endfor %}
ENV {{ fixture_env_var }}={{ fixture_path | json }}
RUN {{ command }}
{% else %}
RUN --mount=type=secret,id={{ secret_id }},env={{ value_name }},required=true \\
    {{ command }}
{% endif %}

FROM {{ base_image }}
{% for key, value in labels | dictsort %}
LABEL {{ key | json }}={{ value | json }}
{% endfor %}
WORKDIR {{ workdir }}
COPY --from=builder {{ container_workdir }}/{{ build_path }} ./{{ artifact }}
{% if user %}
USER {{ user }}
{% endif %}
CMD {{ entrypoint | json }}
"""


def _environment() -> SandboxedEnvironment:
    env = SandboxedEnvironment(
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["json"] = json.dumps
    return env


def _render(template: str, **context: Any) -> str:
    return _environment().from_string(template).render(**context)


def render_containerfile(
    *,
    name: str,
    version: str,
    base_image: str,
    workdir: str,
    artifact: str,
    user: str | None = None,
    labels: dict[str, str] | None = None,
) -> str:
    """Render the runtime Containerfile.

    Example:
        >>> print(render_containerfile(
        ...     name="user-service", version="1.0.0", base_image="ubuntu:22.04",
        ...     workdir="/usr/local/bin", artifact="user-service",
        ... ))
        # user-service 1.0.0 runtime image
        FROM ubuntu:22.04
        WORKDIR /usr/local/bin
        COPY rootfs/usr/local/bin/user-service /usr/local/bin/user-service
        CMD ["./user-service"]
    """
    artifact_path = f"{workdir.rstrip('/')}/{artifact}"
    return _render(
        RUNTIME_TEMPLATE,
        name=name,
        version=version,
        base_image=base_image,
        workdir=workdir,
        artifact_path=artifact_path,
        user=user,
        labels=labels or {},
        entrypoint=[f"./{artifact}"],
    )


def render_dockerfile(spec: PipelineSpec) -> str:
    """Render the two-stage Dockerfile equivalent of a pipeline."""
    build = spec.build
    validation = spec.validation
    fixture_mode = validation.mode == ValidationMode.FIXTURE
    container_workdir = build.toolchain.container_workdir.rstrip("/")
    return _render(
        TWO_STAGE_TEMPLATE,
        name=spec.name,
        version=spec.version,
        toolchain_image=build.toolchain.image,
        container_workdir=container_workdir,
        command=shlex.join(build.toolchain.command),
        fixture_mode=fixture_mode,
        offline_env=validation.offline_env,
        fixture_env_var=validation.fixture_env_var,
        fixture_path=f"{container_workdir}/{validation.fixture}" if validation.fixture else "",
        secret_id=build.config_value.name.lower(),
        value_name=build.config_value.name,
        source_env_var=build.config_value.source_env_var,
        base_image=spec.runtime.base_image,
        labels=spec.runtime.labels,
        workdir=spec.runtime.workdir,
        build_path=build.artifact.build_path,
        artifact=build.artifact.name,
        user=spec.runtime.user,
        entrypoint=spec.entrypoint,
    )


def render_dockerignore(spec: PipelineSpec) -> str:
    """Render a .dockerignore mirroring the build context exclusions."""
    lines = [f"# {spec.name} build context exclusions"]
    lines.extend(spec.build.context.exclude)
    return "\n".join(lines) + "\n"
