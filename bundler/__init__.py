"""
bundler package

This package implements k6-bundler as a CLI-first utility: bundle k6 with a set of
extensions, cross-compile it for several platforms and package every binary.

Key responsibilities are split across modules:
- `spec_parser.py`: parse extension/platform tokens and extract them from markdown
- `renderer.py`: deterministic expansion of output path templates
- `plan.py`: the immutable build plan and its per-platform template context
- `module_builder.py`: isolated interaction with the external `xk6` tool
- `archiver.py`: `.tar.gz` packaging of built binaries
- `orchestrator.py`: the per-platform build loop (build -> Dockerfile -> archive)
- `config.py`: option resolution from flags, environment and markdown frontmatter
- `cli.py`: CLI entrypoint and error reporting
"""

from __future__ import annotations

__all__ = ["BundlerError", "__version__"]

__version__ = "0.1.0"


class BundlerError(RuntimeError):
    """Base class for every error the bundler reports to the user."""
