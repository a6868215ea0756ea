"""
spec_parser.py

Responsibility: turn raw user input into typed extension and platform models.

Inputs come in three shapes:
- extension tokens: `module[@version][=replacement]`
- platform tokens: `os/arch`
- markdown documents whose ```xk6 fenced code blocks hold extension tokens

The markdown document may also start with YAML frontmatter holding option
defaults; `config.py` decides what to do with it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

import yaml
from markdown_it import MarkdownIt

from bundler import BundlerError
from bundler.plan import ExtensionRef, PlatformTarget, ReplacementRef

if TYPE_CHECKING:
    from bundler.config import EnvContext

logger = logging.getLogger(__name__)

# Fenced code blocks with this info string carry extension tokens.
FENCE_LANGUAGE = "xk6"

_VERSION_SPLIT = "@"
_REPLACE_SPLIT = "="
_PLATFORM_SPLIT = "/"
_CURRENT_DIR = "."


class SpecError(BundlerError, ValueError):
    pass


class MissingModuleError(SpecError):
    def __init__(self, token: str) -> None:
        super().__init__(f"module name is required: {token}")
        self.token = token


class InvalidPlatformError(SpecError):
    def __init__(self, token: str) -> None:
        super().__init__(f"invalid platform: {token}")
        self.token = token


def split_extension_token(token: str) -> tuple[str, str, str]:
    """
    Split `module[@version][=replacement]` into (module, version, replacement).

    The version delimiter wins: `a@v=r` is split on `@` first, and only the
    right half is searched for `=`.
    """
    module, sep, rest = token.partition(_VERSION_SPLIT)
    version = ""
    replace = ""
    if not sep:
        module, _, replace = module.partition(_REPLACE_SPLIT)
    else:
        version, _, replace = rest.partition(_REPLACE_SPLIT)

    if not module:
        raise MissingModuleError(token)
    return module, version, replace


def parse_extension_token(token: str, env: EnvContext) -> tuple[ExtensionRef, ReplacementRef | None]:
    """
    Parse one extension token.

    `env` is the `EnvContext` used to resolve the `.` replacement to the
    working directory.
    """
    module, version, replace = split_extension_token(token)

    # Easy to leave a trailing slash when pasting from a URL.
    module = module.rstrip("/")
    if not module:
        raise MissingModuleError(token)

    extension = ExtensionRef(module_path=module, version=version)
    if not replace:
        return extension, None

    if replace == _CURRENT_DIR:
        replace = str(Path(env.cwd).absolute())
    return extension, ReplacementRef(module_path=module, local_path=replace)


def parse_extensions(
    tokens: list[str], env: EnvContext
) -> tuple[tuple[ExtensionRef, ...], tuple[ReplacementRef, ...]]:
    extensions: list[ExtensionRef] = []
    replacements: list[ReplacementRef] = []
    for token in tokens:
        ext, repl = parse_extension_token(token, env)
        extensions.append(ext)
        if repl is not None:
            replacements.append(repl)
    return tuple(extensions), tuple(replacements)


def parse_platform_token(token: str) -> PlatformTarget:
    os_name, sep, arch = token.partition(_PLATFORM_SPLIT)
    if not sep or not os_name or not arch:
        raise InvalidPlatformError(token)
    return PlatformTarget(os=os_name, arch=arch)


def parse_platforms(tokens: list[str]) -> tuple[PlatformTarget, ...]:
    return tuple(parse_platform_token(t) for t in tokens)


@dataclass(frozen=True)
class FenceNode:
    """A fenced code block: its info string and raw content."""

    language: str
    content: str


@dataclass(frozen=True)
class OtherNode:
    """Any other markdown token; kept only so extraction can skip it explicitly."""

    kind: str


MarkdownNode = Union[FenceNode, OtherNode]


def parse_markdown(text: str) -> list[MarkdownNode]:
    """Parse markdown (CommonMark) into a flat list of tagged nodes."""
    md = MarkdownIt("commonmark")
    nodes: list[MarkdownNode] = []
    for tok in md.parse(text):
        if tok.type == "fence":
            nodes.append(FenceNode(language=tok.info.strip(), content=tok.content))
        else:
            nodes.append(OtherNode(kind=tok.type))
    return nodes


def extract_tokens(text: str, language: str = FENCE_LANGUAGE) -> list[str]:
    chunks: list[str] = []
    for node in parse_markdown(text):
        if isinstance(node, FenceNode):
            if node.language == language:
                chunks.append(node.content)
        elif isinstance(node, OtherNode):
            continue
    return "\n".join(chunks).split()


def extract_from_document(path: str | Path) -> list[str]:
    """
    Return every extension token listed in ```xk6 fenced blocks of a markdown file.

    A document without such blocks yields an empty list. Read errors propagate.
    """
    text = Path(path).read_text(encoding="utf-8")
    return extract_tokens(text)


_FRONTMATTER_FENCE = "---\n"


def parse_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """
    Split option defaults off the top of a bundle document.

    Only a leading `---` block holding a YAML mapping counts. Anything else (no
    closing `---`, YAML that does not parse, a list or a scalar) is an ordinary
    horizontal rule, so the whole text is returned untouched for extraction.
    """
    if not text.startswith(_FRONTMATTER_FENCE):
        return None, text

    head, sep, body = text[len(_FRONTMATTER_FENCE) :].partition("\n" + _FRONTMATTER_FENCE)
    if not sep:
        if not head.endswith("\n---"):
            return None, text
        head, body = head[: -len("\n---")], ""

    try:
        options = yaml.safe_load(head)
    except yaml.YAMLError as e:
        logger.debug("Leading '---' block is not YAML, reading it as markdown: %s", e)
        return None, text
    if options is None:
        return {}, body
    if not isinstance(options, dict):
        return None, text
    return options, body


def load_document(path: str | Path) -> tuple[dict[str, Any], list[str]]:
    """Read a markdown file once and return (frontmatter, extension tokens)."""
    text = Path(path).read_text(encoding="utf-8")
    frontmatter, rest = parse_frontmatter(text)
    return frontmatter or {}, extract_tokens(rest)
