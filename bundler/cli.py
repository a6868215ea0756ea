"""
cli.py

Responsibility: CLI entrypoint for k6-bundler.

High-level flow:
1) Parse flags, then resolve options from flags / environment / markdown (`config.py`)
2) Parse extension and platform tokens into a `BuildPlan`
3) Run the per-platform build loop (`orchestrator.py`)

Every user-facing failure is printed to stderr and turns into exit code 1.
"""

from __future__ import annotations

import argparse
import logging
import platform
import sys

from bundler import BundlerError, __version__
from bundler.config import EnvContext, build_plan, resolve_options
from bundler.module_builder import ModuleBuilder, XK6Builder
from bundler.orchestrator import run

logger = logging.getLogger(__name__)

APP = "k6-bundler"
DESCRIPTION = "Bundle k6 with extensions as fast and easily as possible"

_GOARCH = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64", "i386": "386", "i686": "386"}


def about() -> str:
    os_name = sys.platform.rstrip("0123456789")
    if os_name == "win":
        os_name = "windows"
    machine = platform.machine().lower()
    return f"{APP}/{__version__} {os_name}/{_GOARCH.get(machine, machine)}"


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog=APP, description=DESCRIPTION)
    p.add_argument("-V", "--about", action="store_true", help="Show version information")
    p.add_argument("-n", "--name", default=None, help="Short name of the bundle (env: K6_BUNDLER_NAME)")
    p.add_argument("-v", "--version", default=None, help="Bundle version (default: SNAPSHOT)")
    p.add_argument(
        "-w",
        "--with",
        dest="with_",
        action="append",
        default=None,
        metavar="EXTENSION",
        help=(
            "Add extension in 'module[@version][=replacement]' format. Can be used multiple times. "
            "Module name is required, version and local replacement are optional. "
            "Replacement path must be absolute ('.' means the current directory)."
        ),
    )
    p.add_argument(
        "-m",
        "--markdown",
        default=None,
        help="Extract extension list from markdown code blocks with language 'xk6'",
    )
    p.add_argument(
        "-p",
        "--platform",
        action="append",
        default=None,
        metavar="TARGET",
        help="Add target platform in 'os/arch' format (default: linux/amd64 windows/amd64 darwin/amd64)",
    )
    p.add_argument("-o", "--output", default=None, metavar="PATH", help="Output file path template")
    p.add_argument("-a", "--archive", default=None, metavar="PATH", help="Archive (.tar.gz) file path template")
    p.add_argument(
        "--k6-repo",
        default=None,
        metavar="REPO",
        help="Build using a k6 fork repository (remote repository or local directory)",
    )
    p.add_argument("--k6-version", default=None, help="The core k6 version to build (default: latest)")
    p.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return p


def _setup_logging(verbose: bool) -> None:
    # stdout is reserved for GitHub Actions outputs.
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(
    argv: list[str] | None = None,
    *,
    env: EnvContext | None = None,
    builder: ModuleBuilder | None = None,
) -> int:
    parser = _build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # Usage errors exit 1; --help (code 0) passes through.
        if not e.code:
            raise
        return 1
    _setup_logging(bool(args.verbose))

    if args.about:
        print(about(), file=sys.stderr)
        return 0

    env = env or EnvContext.from_process()
    builder = builder or XK6Builder(base_env=env.environ)

    try:
        opts = resolve_options(args, env)
        plan = build_plan(opts, env)
        return run(plan, builder, env=env)
    except (BundlerError, OSError) as e:
        logger.debug("Run failed", exc_info=True)
        print(str(e), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
