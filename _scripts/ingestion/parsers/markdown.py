"""
Markdown parser with YAML frontmatter extraction.
"""

import re
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

import yaml

from .base import BaseParser, read_text_file
from ..types import ParsedContent


class MarkdownParser(BaseParser):
    """Parse Markdown and reStructuredText docs with YAML frontmatter."""

    def get_extensions(self):
        return [".md", ".markdown", ".rst"]

    FRONTMATTER_PATTERN = re.compile(
        r'^---\s*\n(.*?)\n---\s*\n',
        re.DOTALL
    )

    def can_parse(self, path: Path) -> bool:
        return path.suffix.lower() in (".md", ".markdown", ".rst")

    def get_file_type(self) -> str:
        return "markdown"

    def parse(self, path: Path) -> ParsedContent:
        """
        Extract content and frontmatter from markdown.
        """
        return self.parse_text(read_text_file(path), path.stem)

    def parse_text(self, text: str, name: str = "") -> ParsedContent:
        frontmatter, body = self._extract_frontmatter(text)

        metadata = frontmatter.copy() if frontmatter else {}

        title = frontmatter.get("title") if frontmatter else None
        if not title:
            title = self._extract_first_heading(body) or name or None

        doc_date = None
        if frontmatter:
            doc_date = frontmatter.get("date") or frontmatter.get("created")
            if doc_date and not isinstance(doc_date, str):
                doc_date = str(doc_date)

        # Frontmatter keywords/tags are part of what the doc claims
        extra = []
        if frontmatter:
            for key in ("keywords", "tags"):
                values = frontmatter.get(key)
                if isinstance(values, list):
                    extra.extend(str(v) for v in values)
                elif isinstance(values, str):
                    extra.append(values)
        if extra:
            body = body + "\n\n" + " ".join(extra)

        return ParsedContent(
            text=body,
            metadata=metadata,
            title=str(title) if title else None,
            author=frontmatter.get("author") if frontmatter else None,
            date=doc_date,
        )

    def _extract_frontmatter(self, content: str) -> Tuple[Optional[Dict[str, Any]], str]:
        """
        Extract YAML frontmatter from content.

        Returns:
            Tuple of (frontmatter dict or None, body text)
        """
        match = self.FRONTMATTER_PATTERN.match(content)

        if not match:
            return None, content

        frontmatter_text = match.group(1)
        body = content[match.end():]

        try:
            frontmatter = yaml.safe_load(frontmatter_text)
        except (yaml.YAMLError, ValueError):
            return {"_raw": frontmatter_text}, body

        if not isinstance(frontmatter, dict):
            frontmatter = {"_raw": frontmatter_text}
        return frontmatter, body

    def _extract_first_heading(self, text: str) -> Optional[str]:
        """Extract the first markdown heading."""
        match = re.search(r'^#\s+(.+)$', text, re.MULTILINE)
        if match:
            return match.group(1).strip()

        # Underlined heading (markdown setext or rst)
        match = re.search(r'^(.+)\n[=]+\s*$', text, re.MULTILINE)
        if match:
            return match.group(1).strip()

        return None
