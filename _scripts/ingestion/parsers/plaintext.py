"""
Plain text parser.
"""

from pathlib import Path
from typing import Optional

from .base import BaseParser, read_text_file
from ..types import ParsedContent


class PlaintextParser(BaseParser):
    """Parse plain text files (fallback for anything textual)."""

    def get_extensions(self):
        return [".txt", ".text"]

    def can_parse(self, path: Path) -> bool:
        # Accept .txt and extensionless files (README, LICENSE, ...)
        return path.suffix.lower() in (".txt", ".text", "")

    def get_file_type(self) -> str:
        return "text"

    def parse(self, path: Path) -> ParsedContent:
        """
        Read plain text file.
        """
        return self.parse_text(read_text_file(path), path.stem)

    def parse_text(self, text: str, name: str = "") -> ParsedContent:
        title = self._extract_title(text) or name or None
        return ParsedContent(
            text=text,
            metadata={"source_file": name} if name else {},
            title=title,
        )

    def _extract_title(self, content: str) -> Optional[str]:
        """Try to extract a title from the first line."""
        lines = content.strip().split("\n", 1)
        if not lines:
            return None

        first_line = lines[0].strip()

        # If first line is short and doesn't end in punctuation, use as title
        if first_line and len(first_line) < 100 and not first_line.endswith((".", "?", "!", ",")):
            return first_line

        return None
