"""
Corpus parsers for documentation and source formats.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

from .base import (
    BaseParser,
    read_text_file,
    get_parser,
    get_all_parsers,
    get_supported_extensions,
)
from .markdown import MarkdownParser
from .plaintext import PlaintextParser
from .source import SourceCodeParser, split_identifier

__all__ = [
    "BaseParser",
    "read_text_file",
    "get_parser",
    "get_all_parsers",
    "get_supported_extensions",
    "MarkdownParser",
    "PlaintextParser",
    "SourceCodeParser",
    "split_identifier",
]
