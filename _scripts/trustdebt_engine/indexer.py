"""
Trust Debt Engine - Keyword Indexer v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Regex keyword extraction over the Intent and Reality corpora.
A fixed dictionary of topic-tagged terms is matched against every file;
matches are normalised, deduplicated per (keyword, domain, source_path)
with a running frequency, and kept with a context snippet for tracing.

Output order is canonical (source_path, keyword, domain) so repeated
runs over the same corpus produce identical artifacts.
"""

import logging
import re
from collections import Counter, defaultdict
from typing import Dict, List, Any, Optional, Tuple, Pattern

from .core.config import TrustDebtConfig
from .core.types import Domain, KeywordOccurrence, KeywordIndex

logger = logging.getLogger(__name__)


# =============================================================================
# KEYWORD DICTIONARIES
# =============================================================================

# A term may sit under several topics; overlap is what the taxonomy
# refinement later resolves.
TOPIC_KEYWORDS = {
    "data": [
        "database", "databases", "schema", "schemas", "migration", "migrations",
        "query", "queries", "storage", "persistence", "cache", "records",
        "serialization", "serialisation", "json", "index", "indexing", "transaction",
    ],
    "documentation": [
        "documentation", "docs", "readme", "docstring", "docstrings", "guide",
        "tutorial", "changelog", "examples", "comments", "annotated",
    ],
    "intent": [
        "intent", "intended", "goal", "goals", "objective", "objectives", "purpose",
        "requirement", "requirements", "specification", "spec", "design", "plan",
        "roadmap", "should", "must", "promise", "expected",
    ],
    "measurement": [
        "measure", "measurement", "metric", "metrics", "statistics", "analysis",
        "grade", "score", "scores", "rating", "assessment", "calculate",
        "calculation", "threshold", "drift",
    ],
    "performance": [
        "performance", "latency", "throughput", "optimize", "optimise",
        "optimization", "optimisation", "speed", "fast", "faster", "slow",
        "cache", "caching", "memory", "cpu", "benchmark", "benchmarks",
        "profiling", "scalability", "scalable", "efficient", "efficiency",
    ],
    "reality": [
        "reality", "actual", "actually", "currently", "existing", "implementation",
        "implemented", "working", "running", "commit", "commits", "shipped",
    ],
    "reliability": [
        "reliability", "reliable", "retry", "retries", "fallback", "resilience",
        "availability", "uptime", "failover", "recovery", "error handling",
        "exception", "exceptions", "timeout", "timeouts", "crash", "robust",
    ],
    "security": [
        "security", "secure", "auth", "authentication", "authorization",
        "authorisation", "encryption", "encrypt", "token", "tokens", "password",
        "passwords", "credential", "credentials", "vulnerability",
        "vulnerabilities", "permission", "permissions", "sanitize", "sanitise",
        "injection", "csrf", "xss",
    ],
    "taxonomy": [
        "category", "categories", "orthogonal", "orthogonality", "matrix",
        "diagonal", "classify", "classification", "taxonomy", "ontology",
    ],
    "testing": [
        "test", "tests", "testing", "unit test", "unit tests", "coverage",
        "assert", "assertion", "assertions", "fixture", "fixtures", "mock",
        "mocks", "pytest", "integration test", "regression",
    ],
    "timeline": [
        "timeline", "history", "historical", "evolution", "version", "versions",
        "trend", "trends", "progression", "milestone", "release", "releases",
        "commit", "commits",
    ],
    "user_experience": [
        "usability", "user interface", "user experience", "accessibility",
        "onboarding", "feedback", "workflow", "workflows",
    ],
}

TOPICS = tuple(sorted(TOPIC_KEYWORDS))


def _compile(keywords: List[str]) -> Pattern:
    # Longest first so "unit tests" wins over "unit test"
    terms = sorted(set(keywords), key=lambda k: (-len(k), k))
    alternation = "|".join(re.escape(t).replace(r"\ ", r"\s+") for t in terms)
    return re.compile(rf"\b(?:{alternation})\b", re.IGNORECASE)


TOPIC_PATTERNS: Dict[str, Pattern] = {topic: _compile(TOPIC_KEYWORDS[topic]) for topic in TOPICS}


# =============================================================================
# EXTRACTION
# =============================================================================

def normalize_keyword(raw: str, min_length: int = 3) -> Optional[str]:
    """Lowercase, trim and collapse whitespace. None if too short."""
    keyword = " ".join(raw.lower().split())
    return keyword if len(keyword) >= min_length else None


def _snippet(text: str, start: int, end: int, radius: int) -> str:
    left = max(0, start - radius)
    right = min(len(text), end + radius)
    return " ".join(text[left:right].split())


def extract_keywords(text: str, min_length: int = 3,
                     context_chars: int = 50) -> Dict[str, Dict[str, Any]]:
    """
    Find topic keywords in text.

    A span matched by several topics counts once and carries all of
    them; overlapping spans keep the earliest, longest match.

    Returns:
        keyword -> {"frequency", "topics", "context"}
    """
    if not text or not text.strip():
        return {}

    spans: Dict[Tuple[int, int], Tuple[str, List[str]]] = {}
    for topic in TOPICS:
        for match in TOPIC_PATTERNS[topic].finditer(text):
            keyword = normalize_keyword(match.group(0), min_length)
            if keyword is None:
                continue
            if match.span() in spans:
                spans[match.span()][1].append(topic)
            else:
                spans[match.span()] = (keyword, [topic])

    found: Dict[str, Dict[str, Any]] = {}
    last_end = -1
    for (start, end) in sorted(spans, key=lambda s: (s[0], -(s[1] - s[0]))):
        if start < last_end:
            continue
        last_end = end
        keyword, topics = spans[(start, end)]
        entry = found.get(keyword)
        if entry is None:
            found[keyword] = {
                "frequency": 1,
                "topics": set(topics),
                "context": _snippet(text, start, end, context_chars),
            }
        else:
            entry["frequency"] += 1
            entry["topics"].update(topics)

    for entry in found.values():
        entry["topics"] = tuple(sorted(entry["topics"]))
    return found


def index(corpus, config: Optional[TrustDebtConfig] = None) -> KeywordIndex:
    """
    Build the keyword-frequency index for a corpus.

    Args:
        corpus: Anything with .intent and .reality sequences of files
            carrying source_path, domain and text (see ingestion.Corpus)
        config: Keyword length and context settings

    Returns:
        KeywordIndex sorted by (source_path, keyword, domain)
    """
    config = config or TrustDebtConfig()
    merged: Dict[Tuple[str, str, str], KeywordOccurrence] = {}
    skipped = list(getattr(corpus, "skipped", ()))

    for corpus_file in tuple(corpus.intent) + tuple(corpus.reality):
        text = getattr(corpus_file, "text", None)
        if not isinstance(text, str) or not text.strip():
            logger.warning(
                f"Skipping unreadable content: {corpus_file.source_path}",
                extra={"source_path": corpus_file.source_path},
            )
            skipped.append(f"{corpus_file.domain.value}:{corpus_file.source_path}: no content")
            continue

        found = extract_keywords(text, config.min_keyword_length, config.context_chars)
        for keyword, entry in found.items():
            occ = KeywordOccurrence(
                keyword=keyword,
                domain=corpus_file.domain,
                source_path=corpus_file.source_path,
                frequency=entry["frequency"],
                topics=entry["topics"],
                context=entry["context"],
            )
            existing = merged.get(occ.key)
            if existing is None:
                merged[occ.key] = occ
            else:
                merged[occ.key] = KeywordOccurrence(
                    keyword=keyword,
                    domain=existing.domain,
                    source_path=existing.source_path,
                    frequency=existing.frequency + occ.frequency,
                    topics=tuple(sorted(set(existing.topics) | set(occ.topics))),
                    context=existing.context,
                )

    result = KeywordIndex(
        occurrences=tuple(sorted(merged.values(), key=KeywordOccurrence.sort_key)),
        skipped=tuple(sorted(set(skipped))),
    )
    logger.info(
        f"Indexed {len(result.occurrences)} keyword occurrences "
        f"(intent={result.total(Domain.INTENT)}, reality={result.total(Domain.REALITY)})"
    )
    return result


# =============================================================================
# SUMMARY
# =============================================================================

def summarise_index(keyword_index: KeywordIndex, top_n: int = 10) -> Dict[str, Any]:
    """Per-domain and per-topic totals plus top keywords, for the artifact."""
    per_domain: Dict[str, Counter] = {d.value: Counter() for d in Domain}
    per_topic: Dict[str, int] = defaultdict(int)
    for occ in keyword_index.occurrences:
        per_domain[occ.domain.value][occ.keyword] += occ.frequency
        if occ.topics:
            per_topic[occ.topics[0]] += occ.frequency

    return {
        "totals": {d: sum(c.values()) for d, c in per_domain.items()},
        "distinct_keywords": len(keyword_index.keyword_totals()),
        "topics": dict(sorted(per_topic.items())),
        "top_keywords": {
            d: [[kw, n] for kw, n in sorted(c.items(), key=lambda kv: (-kv[1], kv[0]))[:top_n]]
            for d, c in per_domain.items()
        },
        "files": len({(o.domain.value, o.source_path) for o in keyword_index.occurrences}),
    }


# =============================================================================
# PROCESSOR CLASS (for consistency with other modules)
# =============================================================================

class KeywordIndexer:
    """Wrapper class for keyword indexing (stateless)."""

    @staticmethod
    def process(corpus, config: Optional[TrustDebtConfig] = None) -> KeywordIndex:
        return index(corpus, config)

    @staticmethod
    def summarise(keyword_index: KeywordIndex) -> Dict[str, Any]:
        return summarise_index(keyword_index)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Classes
    "KeywordIndexer",
    # Main functions
    "index",
    "extract_keywords",
    "normalize_keyword",
    "summarise_index",
    # Constants
    "TOPIC_KEYWORDS",
    "TOPIC_PATTERNS",
    "TOPICS",
]
