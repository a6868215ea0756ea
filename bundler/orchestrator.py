"""
orchestrator.py

Responsibility: drive the per-platform build loop for a `BuildPlan`.

High-level flow, strictly serial, for each platform in plan order:
1) Expand output/archive path templates with that platform's context
2) Build the binary via the `ModuleBuilder`
3) Write a Dockerfile next to the binary (linux/amd64 only)
4) Package binary + LICENSE + README.md into the archive

The first failure aborts the whole run; later platforms are never attempted.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import TextIO

from bundler import archiver
from bundler.config import EnvContext
from bundler.module_builder import BuildRequest, ModuleBuilder
from bundler.plan import CANONICAL_PLATFORM, BuildPlan, PlatformTarget
from bundler.renderer import expand

logger = logging.getLogger(__name__)

DOCKERFILE = "Dockerfile"
_DOCKERFILE_TEMPLATE = "templates/Dockerfile.j2"

_SET_OUTPUT = "::set-output name={}::{}\n"


@dataclass(frozen=True)
class Artifacts:
    """Paths produced for one platform."""

    platform: PlatformTarget
    binary: Path
    archive: Path
    dockerfile: Path | None = None


def _dockerfile_template() -> str:
    return resources.files("bundler").joinpath(_DOCKERFILE_TEMPLATE).read_text(encoding="utf-8")


def create_dockerfile(binary: Path) -> Path:
    """Write a Dockerfile next to `binary` that copies it in as the image entrypoint."""
    content = expand(DOCKERFILE, _dockerfile_template(), {"Output": binary.name})
    path = binary.parent / DOCKERFILE
    path.write_text(content, encoding="utf-8", newline="\n")
    path.chmod(0o644)
    return path


def _resolve(path: str, env: EnvContext) -> Path:
    p = Path(path)
    return p if p.is_absolute() else env.cwd / p


def build_platform(
    plan: BuildPlan,
    platform: PlatformTarget,
    builder: ModuleBuilder,
    env: EnvContext,
) -> Artifacts:
    context = plan.context_for(platform).as_dict()
    binary = _resolve(expand("output", plan.output, context), env)
    archive = _resolve(expand("archive", plan.archive, context), env)

    binary.parent.mkdir(parents=True, exist_ok=True)

    logger.info("Building %s for %s", binary, platform)
    request = BuildRequest(
        platform=platform,
        extensions=plan.extensions,
        replacements=plan.replacements,
        cgo_enabled=False,
        k6_repo=plan.k6_repo,
        k6_version=plan.k6_version,
    )
    builder.build(request, binary)

    dockerfile = None
    if platform.is_canonical:
        dockerfile = create_dockerfile(binary)
        logger.info("Created %s", dockerfile)

    archive.parent.mkdir(parents=True, exist_ok=True)
    archiver.package(archive, binary, [env.cwd / name for name in archiver.AUX_FILES])

    return Artifacts(platform=platform, binary=binary, archive=archive, dockerfile=dockerfile)


def github_outputs(plan: BuildPlan) -> list[tuple[str, str]]:
    """Key/value pairs a calling workflow reads back: name, version and Dockerfile location."""
    context = plan.context_for(CANONICAL_PLATFORM).as_dict()
    out = expand("output", plan.output, context)
    docker_dir = os.path.dirname(out)
    return [
        ("name", plan.name),
        ("version", plan.version),
        ("dockerdir", docker_dir),
        ("dockerfile", os.path.join(docker_dir, DOCKERFILE)),
    ]


def run(
    plan: BuildPlan,
    builder: ModuleBuilder,
    *,
    env: EnvContext,
    stdout: TextIO | None = None,
) -> int:
    """
    Build every platform of `plan` in order; return the process exit code.

    Errors propagate to the caller untouched (see `cli.main`).
    """
    results: list[Artifacts] = []
    for platform in plan.platforms:
        results.append(build_platform(plan, platform, builder, env))

    logger.info("Built %d platform(s) for %s %s", len(results), plan.name, plan.version)

    if env.is_github_action:
        stream = stdout if stdout is not None else sys.stdout
        for key, value in github_outputs(plan):
            stream.write(_SET_OUTPUT.format(key, value))
        stream.flush()

    return 0
