"""
renderer.py

Responsibility: deterministic expansion of path (and Dockerfile) templates.

Templates are Jinja2 with strict undefined handling. Field references may be
written Go-template style (`{{.Name}}`) or Jinja style (`{{ Name }}`); a leading
dot on a name outside string literals is dropped before compiling. A small set
of string helper filters is registered on top of the Jinja built-ins.

This module intentionally does NOT know about platforms, builds or archives.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

import jinja2
from jinja2 import Environment, StrictUndefined

from bundler import BundlerError


class RenderError(BundlerError):
    pass


class TemplateSyntaxError(RenderError):
    pass


class TemplateRenderError(RenderError):
    pass


_EXPR_RE = re.compile(r"({{-?|{%-?)(.*?)(-?}}|-?%})", re.DOTALL)
_DOT_FIELD_RE = re.compile(
    r"""("(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')|(?<![\w)\].])\.([A-Za-z_]\w*)"""
)
_WORD_SPLIT_RE = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])|[A-Z]")


def _strip_dots(expr: str) -> str:
    def repl(m: re.Match[str]) -> str:
        if m.group(1) is not None:
            return m.group(1)
        return m.group(2)

    return _DOT_FIELD_RE.sub(repl, expr)


def normalize_source(source: str) -> str:
    """Rewrite Go-style `.Field` references inside tags into plain Jinja names."""
    return _EXPR_RE.sub(lambda m: m.group(1) + _strip_dots(m.group(2)) + m.group(3), source)


def _words(value: str) -> list[str]:
    return [w.lower() for w in _WORD_SPLIT_RE.findall(value)]


def _trim_prefix(value: str, prefix: str) -> str:
    return value[len(prefix) :] if prefix and value.startswith(prefix) else value


def _trim_suffix(value: str, suffix: str) -> str:
    return value[: -len(suffix)] if suffix and value.endswith(suffix) else value


def _camelcase(value: str) -> str:
    return "".join(w.capitalize() for w in _words(value))


STRING_FILTERS: dict[str, Any] = {
    "trimPrefix": _trim_prefix,
    "trimSuffix": _trim_suffix,
    "trimAll": lambda value, chars: value.strip(chars),
    "snakecase": lambda value: "_".join(_words(value)),
    "kebabcase": lambda value: "-".join(_words(value)),
    "camelcase": _camelcase,
    "nospace": lambda value: "".join(value.split()),
    "repeat": lambda value, count: value * int(count),
}


def _environment() -> Environment:
    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.filters.update(STRING_FILTERS)
    return env


_ENV = _environment()


def compile_template(name: str, source: str) -> jinja2.Template:
    try:
        return _ENV.from_string(normalize_source(source))
    except jinja2.TemplateSyntaxError as e:
        raise TemplateSyntaxError(f"template: {name}: {e.message} (line {e.lineno})") from e


def expand(name: str, source: str, context: Mapping[str, Any]) -> str:
    """
    Render `source` with `context`.

    `name` only identifies the template in error messages ("output", "archive").
    """
    template = compile_template(name, source)
    try:
        return template.render(**context)
    except jinja2.UndefinedError as e:
        raise TemplateRenderError(f"template: {name}: {e.message}") from e
    except jinja2.TemplateError as e:
        raise TemplateRenderError(f"template: {name}: {e}") from e
    except (TypeError, ValueError) as e:  # helper filter called with bad arguments
        raise TemplateRenderError(f"template: {name}: {e}") from e
