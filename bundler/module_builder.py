"""
module_builder.py

Responsibility: isolate all interaction with the tool that actually compiles k6.

This module must be the only place that:
- Knows the `xk6` command line
- Sets the Go cross-compilation environment (GOOS, GOARCH, CGO_ENABLED)
- Interprets build tool failures

The orchestrator only sees the `ModuleBuilder` protocol, so tests can plug in a stub.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from bundler import BundlerError
from bundler.plan import DEFAULT_K6_VERSION, ExtensionRef, PlatformTarget, ReplacementRef

logger = logging.getLogger(__name__)


class BuildError(BundlerError):
    pass


@dataclass(frozen=True)
class BuildRequest:
    """Everything a single platform build needs; every field is explicit."""

    platform: PlatformTarget
    extensions: tuple[ExtensionRef, ...] = ()
    replacements: tuple[ReplacementRef, ...] = ()
    cgo_enabled: bool = False
    k6_repo: str = ""
    k6_version: str = DEFAULT_K6_VERSION


class ModuleBuilder(Protocol):
    def build(self, request: BuildRequest, output: Path) -> None:
        """Produce one executable at `output` or raise `BuildError`."""
        ...


def with_args(request: BuildRequest) -> list[str]:
    """`--with` arguments, folding replacements back into `module[@version]=path`."""
    replaced = {r.module_path: r.local_path for r in request.replacements}
    args: list[str] = []
    for ext in request.extensions:
        spec = str(ext)
        if ext.module_path in replaced:
            spec = f"{spec}={replaced[ext.module_path]}"
        args.extend(["--with", spec])
    return args


class XK6Builder:
    """Build k6 by running `xk6 build` as a subprocess."""

    def __init__(self, executable: str = "xk6", base_env: Mapping[str, str] | None = None) -> None:
        self._executable = executable
        self._base_env = dict(os.environ if base_env is None else base_env)

    def command(self, request: BuildRequest, output: Path) -> list[str]:
        cmd = [self._executable, "build"]
        if request.k6_version:
            cmd.append(request.k6_version)
        cmd.extend(["--output", str(output)])
        cmd.extend(with_args(request))
        return cmd

    def environment(self, request: BuildRequest) -> dict[str, str]:
        env = dict(self._base_env)
        env["GOOS"] = request.platform.os
        env["GOARCH"] = request.platform.arch
        if request.platform.arm:
            env["GOARM"] = request.platform.arm
        env["CGO_ENABLED"] = "1" if request.cgo_enabled else "0"
        if request.k6_repo:
            env["XK6_K6_REPO"] = request.k6_repo
        return env

    def build(self, request: BuildRequest, output: Path) -> None:
        cmd = self.command(request, output)
        logger.debug("Running: %s", " ".join(cmd))
        try:
            subprocess.run(
                cmd,
                env=self.environment(request),
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as e:
            raise BuildError(f"Build tool not found: {self._executable}") from e
        except subprocess.CalledProcessError as e:
            raise BuildError(f"Command failed: {' '.join(cmd)}\n\n{e.stdout}") from e
