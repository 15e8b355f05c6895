"""
Ingestion type definitions.

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3
"""

import hashlib
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any, Tuple

from trustdebt_engine.core.types import Domain


@dataclass
class ParsedContent:
    """Result from a parser."""
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    # Extracted metadata
    title: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None


@dataclass(frozen=True)
class CorpusFile:
    """One readable document of the Intent or Reality corpus."""
    source_path: str               # Stable, root-relative POSIX path
    domain: Domain
    text: str
    file_type: str = "text"
    title: Optional[str] = None
    content_hash: str = ""

    @classmethod
    def create(cls, source_path: str, domain: Domain, text: str,
               file_type: str = "text", title: Optional[str] = None) -> "CorpusFile":
        """Factory that fills in the content hash."""
        return cls(
            source_path=source_path,
            domain=domain,
            text=text,
            file_type=file_type,
            title=title,
            content_hash=hashlib.sha256(text.encode("utf-8")).hexdigest(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_path": self.source_path,
            "domain": self.domain.value,
            "text": self.text,
            "file_type": self.file_type,
            "title": self.title,
            "content_hash": self.content_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CorpusFile":
        return cls(
            source_path=data["source_path"],
            domain=Domain(data["domain"]),
            text=data["text"],
            file_type=data.get("file_type", "text"),
            title=data.get("title"),
            content_hash=data.get("content_hash", ""),
        )


@dataclass(frozen=True)
class Corpus:
    """Both file sets, plus what had to be left out."""
    intent: Tuple[CorpusFile, ...] = ()
    reality: Tuple[CorpusFile, ...] = ()
    skipped: Tuple[str, ...] = ()
    notes: Tuple[str, ...] = ()

    @property
    def files(self) -> Tuple[CorpusFile, ...]:
        return self.intent + self.reality

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": [f.to_dict() for f in self.intent],
            "reality": [f.to_dict() for f in self.reality],
            "skipped": list(self.skipped),
            "notes": list(self.notes),
            "counts": {"intent": len(self.intent), "reality": len(self.reality)},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Corpus":
        return cls(
            intent=tuple(CorpusFile.from_dict(f) for f in data["intent"]),
            reality=tuple(CorpusFile.from_dict(f) for f in data["reality"]),
            skipped=tuple(data.get("skipped", [])),
            notes=tuple(data.get("notes", [])),
        )


__all__ = [
    "ParsedContent",
    "CorpusFile",
    "Corpus",
]
