"""
Trust Debt Parser Tests - Corpus File Parsing

Tests the documentation and source parsers with sample content.

Run with: pytest tests/test_parsers.py -v
"""

import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ingestion.parsers import (
    get_parser,
    get_all_parsers,
    get_supported_extensions,
    read_text_file,
    split_identifier,
    MarkdownParser,
    PlaintextParser,
    SourceCodeParser,
)
from ingestion.types import ParsedContent


# =============================================================================
# TEST DATA
# =============================================================================

SAMPLE_MARKDOWN = """---
title: Storage Design
keywords: [durability, cache]
date: 2025-01-15
---

# Storage

The cache must keep read latency under 10ms.
Every write is encrypted at rest.
"""

SAMPLE_RST = """Deployment Guide
================

Run the migrations before each release.
"""

SAMPLE_PLAINTEXT = """Release notes

Fixed a timeout in the retry loop. Added regression tests.
"""

SAMPLE_SOURCE = '''
def validateToken(token):
    cache_latency = measureLatency()
    return token is not None
'''


def write_temp(content: str, suffix: str) -> Path:
    with tempfile.NamedTemporaryFile(mode="w", suffix=suffix, delete=False, encoding="utf-8") as f:
        f.write(content)
        return Path(f.name)


# =============================================================================
# PARSER REGISTRY
# =============================================================================

def test_get_all_parsers():
    parsers = get_all_parsers()
    assert [type(p) for p in parsers] == [MarkdownParser, SourceCodeParser, PlaintextParser]


def test_get_supported_extensions():
    extensions = get_supported_extensions()
    for ext in (".md", ".rst", ".txt", ".py", ".ts", ".go"):
        assert ext in extensions
    assert extensions == sorted(extensions)


@pytest.mark.parametrize("name,parser_type", [
    ("README.md", MarkdownParser),
    ("guide.RST", MarkdownParser),
    ("app.py", SourceCodeParser),
    ("main.go", SourceCodeParser),
    ("notes.txt", PlaintextParser),
    ("LICENSE", PlaintextParser),
])
def test_get_parser(name, parser_type):
    assert isinstance(get_parser(Path(name)), parser_type)


def test_unknown_extension_has_no_parser():
    assert get_parser(Path("image.png")) is None


# =============================================================================
# MARKDOWN
# =============================================================================

def test_markdown_frontmatter():
    path = write_temp(SAMPLE_MARKDOWN, ".md")
    try:
        result = MarkdownParser().parse(path)
    finally:
        path.unlink()

    assert result.title == "Storage Design"
    assert result.date == "2025-01-15"
    assert "---" not in result.text
    assert "The cache must keep" in result.text
    # Frontmatter keywords are part of what the document claims
    assert "durability" in result.text


def test_markdown_heading_title():
    result = MarkdownParser().parse_text("# Overview\n\nSome text.\n", "fallback")
    assert result.title == "Overview"


def test_rst_underlined_title():
    result = MarkdownParser().parse_text(SAMPLE_RST, "deploy")
    assert result.title == "Deployment Guide"


def test_markdown_invalid_frontmatter_is_kept_raw():
    result = MarkdownParser().parse_text("---\n: [unclosed\n---\nBody text\n", "x")
    assert "_raw" in result.metadata
    assert result.text.strip() == "Body text"


def test_markdown_impossible_frontmatter_date_is_kept_raw():
    result = MarkdownParser().parse_text("---\ndate: 2025-13-45\n---\n# Plan\n\nBody text\n", "x")
    assert result.metadata == {"_raw": "date: 2025-13-45"}
    assert result.title == "Plan"
    assert result.date is None


# =============================================================================
# PLAIN TEXT
# =============================================================================

def test_plaintext_title_from_first_line():
    result = PlaintextParser().parse_text(SAMPLE_PLAINTEXT, "notes")
    assert result.title == "Release notes"
    assert "retry loop" in result.text


def test_plaintext_handles_encoding():
    path = write_temp("", ".txt")
    path.write_bytes(b"caf\xe9 latency\n")
    try:
        result = PlaintextParser().parse(path)
    finally:
        path.unlink()
    assert "latency" in result.text


def test_binary_content_is_rejected():
    path = write_temp("", ".txt")
    path.write_bytes(b"\x89PNG\x00\x00\x00binary")
    try:
        with pytest.raises(ValueError):
            read_text_file(path)
    finally:
        path.unlink()


# =============================================================================
# SOURCE
# =============================================================================

@pytest.mark.parametrize("identifier,words", [
    ("validateToken", ["validate", "token"]),
    ("cache_latency", ["cache", "latency"]),
    ("HTTPServerError", ["http", "server", "error"]),
    ("__init__", ["init"]),
])
def test_split_identifier(identifier, words):
    assert split_identifier(identifier) == words


def test_source_parser_exposes_identifier_words():
    path = write_temp(SAMPLE_SOURCE, ".py")
    try:
        result = SourceCodeParser().parse(path)
    finally:
        path.unlink()

    assert result.metadata["language"] == "python"
    assert "validate token" in result.text
    assert "measure latency" in result.text
    assert result.text.startswith(SAMPLE_SOURCE)


def test_parsed_content_has_required_fields():
    result = SourceCodeParser().parse_text("x = 1\n", "tiny.py")
    assert isinstance(result, ParsedContent)
    assert result.text == "x = 1\n"
    assert result.title == "tiny.py"
