"""
Trust Debt Ingestion - Corpus Loading and Parsing

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root
"""

from .types import (
    ParsedContent,
    CorpusFile,
    Corpus,
)

from .parsers import (
    BaseParser,
    get_parser,
    get_all_parsers,
    get_supported_extensions,
)

from .loader import (
    collect_files,
    read_corpus_file,
    load_corpus,
    GitCorpusSource,
)


__all__ = [
    # Types
    "ParsedContent",
    "CorpusFile",
    "Corpus",
    # Parsers
    "BaseParser",
    "get_parser",
    "get_all_parsers",
    "get_supported_extensions",
    # Loading
    "collect_files",
    "read_corpus_file",
    "load_corpus",
    "GitCorpusSource",
]
