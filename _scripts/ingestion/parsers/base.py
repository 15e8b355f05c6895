"""
Base parser interface and factory.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, List

from ..types import ParsedContent


BINARY_SNIFF_BYTES = 8192


def read_text_file(path: Path) -> str:
    """
    Read a file as UTF-8 text.

    Raises ValueError for binary content (NUL bytes in the head) so the
    loader can skip it; undecodable bytes in text files are replaced.
    """
    raw = path.read_bytes()
    if b"\x00" in raw[:BINARY_SNIFF_BYTES]:
        raise ValueError("binary content")
    return raw.decode("utf-8", errors="replace")


class BaseParser(ABC):
    """Abstract base for corpus parsers."""

    @abstractmethod
    def can_parse(self, path: Path) -> bool:
        """Check if this parser can handle the file."""
        pass

    @abstractmethod
    def parse(self, path: Path) -> ParsedContent:
        """Parse the file and return content."""
        pass

    @abstractmethod
    def get_file_type(self) -> str:
        """Return the file type identifier."""
        pass

    def get_extensions(self) -> List[str]:
        """Return list of file extensions this parser handles."""
        return []

    def parse_text(self, text: str, name: str = "") -> ParsedContent:
        """Parse already-loaded text (historical blobs have no path)."""
        return ParsedContent(text=text, title=name or None)


def get_parser(path: Path) -> Optional[BaseParser]:
    """
    Get appropriate parser for a file.

    Args:
        path: Path to file

    Returns:
        Parser instance or None if unsupported
    """
    for parser in get_all_parsers():
        if parser.can_parse(path):
            return parser

    return None


def get_all_parsers() -> List[BaseParser]:
    """Get list of all available parsers, most specific first."""
    from .markdown import MarkdownParser
    from .source import SourceCodeParser
    from .plaintext import PlaintextParser

    return [
        MarkdownParser(),
        SourceCodeParser(),
        PlaintextParser(),
    ]


def get_supported_extensions() -> List[str]:
    """Get all supported file extensions."""
    extensions = set()
    for parser in get_all_parsers():
        extensions.update(parser.get_extensions())
    return sorted(extensions)


__all__ = [
    "BaseParser",
    "read_text_file",
    "get_parser",
    "get_all_parsers",
    "get_supported_extensions",
]
