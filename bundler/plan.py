"""
plan.py

Responsibility: typed, immutable models for everything the orchestrator consumes.

A `BuildPlan` is constructed once during option normalization and is read-only
from then on; the orchestrator derives one `TemplateContext` per platform.
"""

from __future__ import annotations

from dataclasses import dataclass

from bundler import BundlerError

DEFAULT_VERSION = "SNAPSHOT"
DEFAULT_K6_VERSION = "latest"
DEFAULT_PLATFORMS = ("linux/amd64", "windows/amd64", "darwin/amd64")
DEFAULT_OUTPUT = "dist/{{.Name}}_{{.Os}}_{{.Arch}}/k6{{.Ext}}"
DEFAULT_ARCHIVE = "dist/{{.Name}}_{{.Version}}_{{.Os}}_{{.Arch}}.tar.gz"

WINDOWS_EXT = ".exe"


class MissingNameError(BundlerError):
    def __init__(self) -> None:
        super().__init__("couldn't guess bundle name, please specify it")


@dataclass(frozen=True)
class ExtensionRef:
    """An extension module compiled into the bundle."""

    module_path: str
    version: str = ""

    def __str__(self) -> str:
        return f"{self.module_path}@{self.version}" if self.version else self.module_path


@dataclass(frozen=True)
class ReplacementRef:
    """Use a local copy of `module_path` instead of the resolved one."""

    module_path: str
    local_path: str


@dataclass(frozen=True)
class PlatformTarget:
    os: str
    arch: str
    # Reserved for GOARM; parsing never sets it.
    arm: str = ""

    @property
    def is_canonical(self) -> bool:
        """The single platform that also gets a Dockerfile."""
        return self.os == "linux" and self.arch == "amd64"

    def __str__(self) -> str:
        return f"{self.os}/{self.arch}"


CANONICAL_PLATFORM = PlatformTarget(os="linux", arch="amd64")


@dataclass(frozen=True)
class TemplateContext:
    Name: str
    Version: str
    Os: str
    Arch: str
    Ext: str

    def as_dict(self) -> dict[str, str]:
        return {
            "Name": self.Name,
            "Version": self.Version,
            "Os": self.Os,
            "Arch": self.Arch,
            "Ext": self.Ext,
        }


def executable_extension(os_name: str) -> str:
    return WINDOWS_EXT if os_name == "windows" else ""


@dataclass(frozen=True)
class BuildPlan:
    """Normalized, validated inputs handed to the orchestrator."""

    name: str
    version: str = DEFAULT_VERSION
    extensions: tuple[ExtensionRef, ...] = ()
    replacements: tuple[ReplacementRef, ...] = ()
    platforms: tuple[PlatformTarget, ...] = ()
    output: str = DEFAULT_OUTPUT
    archive: str = DEFAULT_ARCHIVE
    k6_repo: str = ""
    k6_version: str = DEFAULT_K6_VERSION

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise MissingNameError()
        if not self.version:
            object.__setattr__(self, "version", DEFAULT_VERSION)

    def context_for(self, platform: PlatformTarget) -> TemplateContext:
        return TemplateContext(
            Name=self.name,
            Version=self.version,
            Os=platform.os,
            Arch=platform.arch,
            Ext=executable_extension(platform.os),
        )
