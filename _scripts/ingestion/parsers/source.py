"""
Source code parser.

Reality files are code, where the vocabulary hides inside identifiers
(validateToken, cache_latency). Identifiers are split into words and
appended to the text so the keyword patterns can see them.
"""

import re
from pathlib import Path
from typing import List

from .base import BaseParser, read_text_file
from ..types import ParsedContent


LANGUAGES = {
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".go": "go",
    ".rs": "rust",
    ".java": "java",
    ".rb": "ruby",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".sh": "shell",
}

IDENTIFIER_PATTERN = re.compile(r'\b[A-Za-z_][A-Za-z0-9_]{3,}\b')
CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def split_identifier(identifier: str) -> List[str]:
    """Split camelCase / snake_case identifiers into lowercase words."""
    words = []
    for chunk in identifier.split("_"):
        if not chunk:
            continue
        words.extend(w.lower() for w in CAMEL_BOUNDARY.split(chunk) if w)
    return words


class SourceCodeParser(BaseParser):
    """Parse source files, exposing identifier words."""

    def get_extensions(self):
        return sorted(LANGUAGES)

    def can_parse(self, path: Path) -> bool:
        return path.suffix.lower() in LANGUAGES

    def get_file_type(self) -> str:
        return "source"

    def parse(self, path: Path) -> ParsedContent:
        content = read_text_file(path)
        parsed = self.parse_text(content, path.name)
        parsed.metadata["language"] = LANGUAGES.get(path.suffix.lower(), "unknown")
        return parsed

    def parse_text(self, text: str, name: str = "") -> ParsedContent:
        split_words = []
        for identifier in IDENTIFIER_PATTERN.findall(text):
            parts = split_identifier(identifier)
            if len(parts) > 1:
                split_words.append(" ".join(parts))

        expanded = text
        if split_words:
            expanded = text + "\n\n" + "\n".join(split_words)

        return ParsedContent(
            text=expanded,
            metadata={"line_count": text.count("\n") + 1 if text else 0},
            title=name or None,
        )
