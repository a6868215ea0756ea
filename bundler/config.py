"""
config.py

Responsibility: resolve user options into a `BuildPlan`.

Every option can come from (highest precedence first):
1) a command line flag
2) an environment variable `K6_BUNDLER_<OPTION>` (multi-value options comma-delimited)
3) YAML frontmatter of the `--markdown` document
4) a built-in default

Inside GitHub Actions the variable prefix becomes `INPUT_`, the version and
name default to the pushed ref and repository, and multi-value inputs are
re-split on whitespace (action inputs arrive as one space-joined string).

Process state (environment, working directory) is only ever read through an
explicit `EnvContext`, so callers and tests can fabricate one.
"""

from __future__ import annotations

import argparse
import configparser
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from bundler import plan as plan_defaults
from bundler.plan import BuildPlan, MissingNameError
from bundler.spec_parser import SpecError, load_document, parse_extensions, parse_platforms

logger = logging.getLogger(__name__)

ENV_PREFIX = "K6_BUNDLER_"
ACTION_ENV_PREFIX = "INPUT_"


@dataclass(frozen=True)
class EnvContext:
    """Snapshot of the process environment the bundler is allowed to consult."""

    environ: Mapping[str, str] = field(default_factory=dict)
    cwd: Path = field(default_factory=Path)

    @classmethod
    def from_process(cls) -> EnvContext:
        return cls(environ=dict(os.environ), cwd=Path.cwd())

    def get(self, key: str, default: str = "") -> str:
        return self.environ.get(key, default)

    @property
    def is_github_action(self) -> bool:
        return self.get("GITHUB_ACTIONS") == "true"

    @property
    def env_prefix(self) -> str:
        return ACTION_ENV_PREFIX if self.is_github_action else ENV_PREFIX


def _origin_name(git_config: Path) -> str:
    parser = configparser.ConfigParser(strict=False, interpolation=None)
    parser.read(git_config, encoding="utf-8")
    url = parser.get('remote "origin"', "url", fallback="")
    if not url:
        return ""
    name = PurePosixPath(url.rstrip("/")).name
    if ":" in name:  # scp-like remote without a path, e.g. host:repo.git
        name = name.rsplit(":", 1)[1]
    return name.removesuffix(".git")


def guess_name(env: EnvContext) -> str:
    """
    Guess the bundle name from the origin remote, or the working directory name.

    Returns "" when nothing usable is found.
    """
    git_config = env.cwd / ".git" / "config"
    if git_config.is_file():
        try:
            name = _origin_name(git_config)
        except configparser.Error as e:
            logger.debug("Unreadable git config %s: %s", git_config, e)
            name = ""
        if name:
            return name
    return Path(env.cwd).absolute().name


def _github_defaults(env: EnvContext) -> dict[str, str]:
    """Version/name implied by GITHUB_REF and GITHUB_REPOSITORY."""
    out: dict[str, str] = {}
    parts = env.get("GITHUB_REF").split("/", 2)
    if len(parts) == 3:
        out["version"] = parts[2]
    repo = env.get("GITHUB_REPOSITORY").split("/", 1)
    if len(repo) == 2:
        out["name"] = repo[1]
    return out


@dataclass(frozen=True)
class Options:
    """Raw option values after precedence resolution, before parsing tokens."""

    name: str = ""
    version: str = ""
    with_: tuple[str, ...] = ()
    markdown: str = ""
    platform: tuple[str, ...] = ()
    output: str = plan_defaults.DEFAULT_OUTPUT
    archive: str = plan_defaults.DEFAULT_ARCHIVE
    k6_repo: str = ""
    k6_version: str = plan_defaults.DEFAULT_K6_VERSION


# option name -> (environment suffix, multi-value)
_OPTION_ENV: dict[str, tuple[str, bool]] = {
    "name": ("NAME", False),
    "version": ("VERSION", False),
    "with_": ("WITH", True),
    "markdown": ("MARKDOWN", False),
    "platform": ("PLATFORM", True),
    "output": ("OUTPUT", False),
    "archive": ("ARCHIVE", False),
    "k6_repo": ("K6_REPO", False),
    "k6_version": ("K6_VERSION", False),
}

# option name -> frontmatter key
_FRONTMATTER_KEYS = {
    "name": "name",
    "version": "version",
    "with_": "with",
    "platform": "platform",
    "output": "output",
    "archive": "archive",
    "k6_repo": "k6_repo",
    "k6_version": "k6_version",
}


def _env_value(env: EnvContext, option: str) -> Any:
    suffix, multi = _OPTION_ENV[option]
    raw = env.get(env.env_prefix + suffix)
    if not raw:
        return None
    if multi:
        return [p.strip() for p in raw.split(",") if p.strip()]
    return raw


def _frontmatter_value(frontmatter: Mapping[str, Any], option: str) -> Any:
    key = _FRONTMATTER_KEYS.get(option)
    if key is None or frontmatter.get(key) in (None, "", []):
        return None
    value = frontmatter[key]
    _, multi = _OPTION_ENV[option]
    if multi:
        if isinstance(value, str):
            return value.split()
        if not isinstance(value, list):
            raise SpecError(f"`{key}` must be a list or a string when provided.")
        return [str(v) for v in value]
    return str(value)


def _split_fields(values: list[str]) -> list[str]:
    out: list[str] = []
    for v in values:
        out.extend(v.split())
    return out


def resolve_options(args: argparse.Namespace, env: EnvContext) -> Options:
    """
    Merge flags, environment, frontmatter and defaults into `Options`.

    Extension tokens found in ```xk6 blocks of the markdown document are appended
    after the `--with` values.
    """
    implied = _github_defaults(env) if env.is_github_action else {}

    def pick(option: str, frontmatter: Mapping[str, Any]) -> Any:
        value = getattr(args, option, None)
        if value not in (None, [], ""):
            return value
        value = _env_value(env, option)
        if value is not None:
            return value
        if option in implied:
            return implied[option]
        return _frontmatter_value(frontmatter, option)

    markdown = pick("markdown", {}) or ""
    frontmatter: Mapping[str, Any] = {}
    extracted: list[str] = []
    if markdown:
        path = Path(markdown)
        if not path.is_absolute():
            path = env.cwd / path
        frontmatter, extracted = load_document(path)

    with_ = list(pick("with_", frontmatter) or [])
    platform = list(pick("platform", frontmatter) or plan_defaults.DEFAULT_PLATFORMS)
    if env.is_github_action:
        with_ = _split_fields(with_)
        platform = _split_fields(platform)
    with_.extend(extracted)

    name = pick("name", frontmatter) or guess_name(env)

    opts = Options(
        name=name,
        version=pick("version", frontmatter) or plan_defaults.DEFAULT_VERSION,
        with_=tuple(with_),
        markdown=markdown,
        platform=tuple(platform),
        output=pick("output", frontmatter) or plan_defaults.DEFAULT_OUTPUT,
        archive=pick("archive", frontmatter) or plan_defaults.DEFAULT_ARCHIVE,
        k6_repo=pick("k6_repo", frontmatter) or "",
        k6_version=pick("k6_version", frontmatter) or plan_defaults.DEFAULT_K6_VERSION,
    )
    logger.debug("Resolved options: %s", opts)
    return opts


def build_plan(opts: Options, env: EnvContext) -> BuildPlan:
    """Parse the raw tokens of `opts` into an immutable `BuildPlan`."""
    extensions, replacements = parse_extensions(list(opts.with_), env)
    platforms = parse_platforms(list(opts.platform))

    if not opts.name:
        raise MissingNameError()

    return BuildPlan(
        name=opts.name,
        version=opts.version,
        extensions=extensions,
        replacements=replacements,
        platforms=platforms,
        output=opts.output,
        archive=opts.archive,
        k6_repo=opts.k6_repo,
        k6_version=opts.k6_version,
    )
