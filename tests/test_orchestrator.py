from __future__ import annotations

import io
import tarfile
from pathlib import Path

import pytest

from bundler.config import EnvContext
from bundler.module_builder import BuildError
from bundler.orchestrator import create_dockerfile, github_outputs, run
from bundler.plan import BuildPlan, ExtensionRef, PlatformTarget, ReplacementRef

from .conftest import PLACEHOLDER, StubBuilder

LINUX = PlatformTarget(os="linux", arch="amd64")
WINDOWS = PlatformTarget(os="windows", arch="amd64")


def _plan(*platforms: PlatformTarget, **kwargs: object) -> BuildPlan:
    return BuildPlan(name="acme", version="1.0", platforms=platforms, **kwargs)  # type: ignore[arg-type]


def test_end_to_end(tmp_path: Path, env: EnvContext, stub_builder: StubBuilder) -> None:
    (tmp_path / "LICENSE").write_text("MIT\n", encoding="utf-8")

    assert run(_plan(LINUX, WINDOWS), stub_builder, env=env) == 0

    dist = tmp_path / "dist"
    assert (dist / "acme_linux_amd64" / "k6").read_bytes() == PLACEHOLDER
    assert (dist / "acme_windows_amd64" / "k6.exe").read_bytes() == PLACEHOLDER
    assert sorted(p.name for p in dist.glob("*.tar.gz")) == [
        "acme_1.0_linux_amd64.tar.gz",
        "acme_1.0_windows_amd64.tar.gz",
    ]
    assert [p.relative_to(dist).as_posix() for p in dist.rglob("Dockerfile")] == ["acme_linux_amd64/Dockerfile"]

    with tarfile.open(dist / "acme_1.0_windows_amd64.tar.gz", "r:gz") as tar:
        assert tar.getnames() == ["k6.exe", "LICENSE"]


def test_builder_receives_plan_dependencies(env: EnvContext, stub_builder: StubBuilder) -> None:
    plan = _plan(
        LINUX,
        extensions=(ExtensionRef("github.com/a/xk6-a", "v1"),),
        replacements=(ReplacementRef("github.com/a/xk6-a", "/src/a"),),
        k6_version="v0.45.0",
    )
    run(plan, stub_builder, env=env)

    ((request, output),) = stub_builder.requests
    assert request.platform == LINUX
    assert request.extensions == plan.extensions
    assert request.replacements == plan.replacements
    assert request.cgo_enabled is False
    assert request.k6_version == "v0.45.0"
    assert output == env.cwd / "dist" / "acme_linux_amd64" / "k6"


def test_fails_fast(tmp_path: Path, env: EnvContext) -> None:
    builder = StubBuilder(fail_on={"windows/amd64"})

    with pytest.raises(BuildError, match="unsupported GOOS/GOARCH pair windows/amd64"):
        run(_plan(WINDOWS, LINUX), builder, env=env)

    assert len(builder.requests) == 1
    assert not (tmp_path / "dist" / "acme_linux_amd64").exists()
    assert list((tmp_path / "dist").glob("*.tar.gz")) == []


def test_duplicate_platforms_build_twice(env: EnvContext, stub_builder: StubBuilder) -> None:
    run(_plan(LINUX, LINUX), stub_builder, env=env)
    assert len(stub_builder.requests) == 2


def test_custom_templates(tmp_path: Path, env: EnvContext, stub_builder: StubBuilder) -> None:
    plan = _plan(
        PlatformTarget(os="darwin", arch="arm64"),
        output="out/{{ .Os }}/{{ .Name | upper }}{{ .Ext }}",
        archive="pkg/{{ .Name }}-{{ .Version }}-{{ .Os }}.tar.gz",
    )
    run(plan, stub_builder, env=env)

    assert (tmp_path / "out" / "darwin" / "ACME").exists()
    assert (tmp_path / "pkg" / "acme-1.0-darwin.tar.gz").exists()
    assert not (tmp_path / "out" / "darwin" / "Dockerfile").exists()


def test_create_dockerfile(tmp_path: Path) -> None:
    binary = tmp_path / "k6"
    binary.write_bytes(PLACEHOLDER)

    dockerfile = create_dockerfile(binary)

    assert dockerfile == tmp_path / "Dockerfile"
    text = dockerfile.read_text(encoding="utf-8")
    assert "COPY k6 /usr/bin/k6" in text
    assert "{{" not in text


def test_github_outputs() -> None:
    assert github_outputs(_plan(WINDOWS)) == [
        ("name", "acme"),
        ("version", "1.0"),
        ("dockerdir", "dist/acme_linux_amd64"),
        ("dockerfile", "dist/acme_linux_amd64/Dockerfile"),
    ]


def test_github_action_output_lines(tmp_path: Path, stub_builder: StubBuilder) -> None:
    env = EnvContext(environ={"GITHUB_ACTIONS": "true"}, cwd=tmp_path)
    stdout = io.StringIO()

    run(_plan(LINUX), stub_builder, env=env, stdout=stdout)

    assert stdout.getvalue().splitlines() == [
        "::set-output name=name::acme",
        "::set-output name=version::1.0",
        "::set-output name=dockerdir::dist/acme_linux_amd64",
        "::set-output name=dockerfile::dist/acme_linux_amd64/Dockerfile",
    ]


def test_no_output_lines_outside_github(env: EnvContext, stub_builder: StubBuilder) -> None:
    stdout = io.StringIO()
    run(_plan(LINUX), stub_builder, env=env, stdout=stdout)
    assert stdout.getvalue() == ""
