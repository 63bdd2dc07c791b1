"""Fenced code block extraction and lightweight content validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePosixPath
import re
from typing import Protocol

from .exceptions import ValidationError

_FENCE_RE = re.compile(
    r"```(?P<lang>[^\n`]*)\n(?P<code>.*?)```",
    re.DOTALL,
)

CODE_KEYWORDS = frozenset(
    {
        "import",
        "from",
        "def",
        "class",
        "return",
        "function",
        "const",
        "let",
        "var",
        "public",
        "private",
        "static",
        "void",
        "final",
        "package",
        "func",
        "fn",
        "struct",
        "enum",
        "interface",
        "#include",
        "using",
        "namespace",
        "if",
        "for",
        "while",
        "async",
        "await",
        "export",
        "module",
        "main",
        "print",
        "echo",
        "library",
        "widget",
        "extends",
        "implements",
        "=>",
        "{",
        "}",
        "<html",
        "<div",
        "select",
        "create",
    }
)

# Extensions whose content is checked against CODE_KEYWORDS.
SOURCE_EXTENSIONS = frozenset(
    {
        ".py",
        ".js",
        ".jsx",
        ".ts",
        ".tsx",
        ".java",
        ".kt",
        ".go",
        ".rs",
        ".c",
        ".h",
        ".cc",
        ".cpp",
        ".hpp",
        ".cs",
        ".dart",
        ".swift",
        ".rb",
        ".php",
        ".sh",
        ".html",
        ".css",
        ".scss",
        ".sql",
        ".scala",
        ".lua",
    }
)

_TOKEN_RE = re.compile(r"#include|=>|<html|<div|[{}]|[A-Za-z_]+")


@dataclass(frozen=True)
class CodeBlock:
    """A fenced region of an AI reply."""

    code: str
    language: str = ""
    start: int = 0

    @property
    def tagged(self) -> bool:
        return bool(self.language)


def find_code_blocks(text: str) -> list[CodeBlock]:
    """Return all fenced blocks, tagged ones first, each group in text order."""
    blocks = [
        CodeBlock(
            code=match.group("code"),
            language=match.group("lang").strip(),
            start=match.start(),
        )
        for match in _FENCE_RE.finditer(text)
    ]
    return [b for b in blocks if b.tagged] + [b for b in blocks if not b.tagged]


def _mentions_path(text: str, block: CodeBlock, path: str) -> bool:
    name = PurePosixPath(path).name
    if path in block.language or (name and name in block.language):
        return True
    preceding = text[: block.start].rstrip().rsplit("\n", 1)[-1]
    return path in preceding or (bool(name) and name in preceding)


def extract_code_block(text: str, path: str | None = None) -> CodeBlock | None:
    """Pick the block to commit for ``path``.

    A block whose fence info string or the line just above it names the path
    wins; otherwise the first tagged block, then the first untagged one.
    """
    blocks = find_code_blocks(text)
    if not blocks:
        return None
    if path:
        for block in blocks:
            if _mentions_path(text, block, path):
                return block
    return blocks[0]


class ContentValidator(Protocol):
    def validate(self, path: str, content: str) -> str:
        """Return normalized content or raise ValidationError."""
        ...


class KeywordContentValidator:
    """Accept non-empty content; source files must also contain a code keyword."""

    def __init__(
        self,
        keywords: frozenset[str] = CODE_KEYWORDS,
        source_extensions: frozenset[str] = SOURCE_EXTENSIONS,
    ) -> None:
        self.keywords = keywords
        self.source_extensions = source_extensions

    def validate(self, path: str, content: str) -> str:
        # Keep leading indentation of the first line; only blank lines are trimmed.
        normalized = content.strip("\r\n")
        if not normalized.strip():
            raise ValidationError(f"Extracted content for {path} is empty.")
        suffix = PurePosixPath(path).suffix.lower()
        if suffix not in self.source_extensions:
            return normalized
        tokens = {token.lower() for token in _TOKEN_RE.findall(normalized)}
        if tokens & self.keywords:
            return normalized
        raise ValidationError(
            f"Extracted content for {path} does not look like {suffix} source."
        )
