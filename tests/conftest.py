from __future__ import annotations

from pathlib import Path

import pytest

from bundler.config import EnvContext
from bundler.module_builder import BuildError, BuildRequest

PLACEHOLDER = b"\x7fELF placeholder k6 binary\n"


class StubBuilder:
    """Writes a fixed placeholder binary instead of compiling anything."""

    def __init__(self, fail_on: set[str] | None = None) -> None:
        self.fail_on = fail_on or set()
        self.requests: list[tuple[BuildRequest, Path]] = []

    def build(self, request: BuildRequest, output: Path) -> None:
        self.requests.append((request, output))
        if str(request.platform) in self.fail_on:
            raise BuildError(f"go: unsupported GOOS/GOARCH pair {request.platform}")
        output.write_bytes(PLACEHOLDER)
        output.chmod(0o755)


@pytest.fixture
def env(tmp_path: Path) -> EnvContext:
    return EnvContext(environ={}, cwd=tmp_path)


@pytest.fixture
def stub_builder() -> StubBuilder:
    return StubBuilder()
