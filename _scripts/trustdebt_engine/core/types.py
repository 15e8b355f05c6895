"""
Trust Debt Core - Type Definitions v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Core data types for the drift-measurement pipeline.
All types are plain Python dataclasses, JSON-serialisable,
with no external dependencies. Types produced by a stage are
frozen: a new run produces new values, nothing is patched in place.
"""

from collections import defaultdict
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Any, Optional, Tuple, FrozenSet, Set


# =============================================================================
# ENUMS
# =============================================================================

class Domain(Enum):
    """Which side of the drift comparison a signal comes from."""
    INTENT = "intent"      # Documentation, specs, READMEs
    REALITY = "reality"    # Source code, commit history


class Triangle(Enum):
    """Position of a matrix cell relative to the diagonal."""
    UPPER = "upper"        # row rank < col rank, Reality-sourced
    LOWER = "lower"        # row rank > col rank, Intent-sourced
    DIAGONAL = "diagonal"


class ArtifactStatus(Enum):
    """Trust level of a persisted stage artifact."""
    OK = "ok"
    DEGRADED = "degraded"
    FAILED = "failed"


# =============================================================================
# TAXONOMY
# =============================================================================

@dataclass(frozen=True)
class Category:
    """
    A semantically distinct drift category.

    The id is a plain structured code: one uppercase letter for a
    parent, parent letter plus one lowercase letter for a child.
    The display label lives separately so ordering stays string-based.
    """
    id: str
    keywords: FrozenSet[str]
    label: str = ""
    parent_id: Optional[str] = None
    shortlex_rank: int = -1
    weight: float = 0.0            # Observed share of keyword units
    unit_budget: float = 0.0       # Target share of keyword units

    @property
    def depth(self) -> int:
        return 0 if self.parent_id is None else 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "parent_id": self.parent_id,
            "shortlex_rank": self.shortlex_rank,
            "keywords": sorted(self.keywords),
            "weight": self.weight,
            "unit_budget": self.unit_budget,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=data["id"],
            keywords=frozenset(data["keywords"]),
            label=data.get("label", ""),
            parent_id=data.get("parent_id"),
            shortlex_rank=data.get("shortlex_rank", -1),
            weight=data.get("weight", 0.0),
            unit_budget=data.get("unit_budget", 0.0),
        )


@dataclass(frozen=True)
class TaxonomyResult:
    """Output of taxonomy generation, converged or best-effort."""
    categories: Tuple[Category, ...]
    converged: bool
    orthogonality: float           # 1 - mean pairwise Jaccard similarity
    correlation: float             # Mean pairwise Jaccard similarity
    balance_cv: float
    iterations: int
    target_count: int
    history: Tuple[Dict[str, Any], ...] = ()
    notes: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "converged": self.converged,
            "orthogonality": self.orthogonality,
            "correlation": self.correlation,
            "balance_cv": self.balance_cv,
            "iterations": self.iterations,
            "target_count": self.target_count,
            "history": list(self.history),
            "notes": list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaxonomyResult":
        return cls(
            categories=tuple(Category.from_dict(c) for c in data["categories"]),
            converged=data["converged"],
            orthogonality=data["orthogonality"],
            correlation=data["correlation"],
            balance_cv=data["balance_cv"],
            iterations=data["iterations"],
            target_count=data["target_count"],
            history=tuple(data.get("history", [])),
            notes=tuple(data.get("notes", [])),
        )


# =============================================================================
# KEYWORD INDEX
# =============================================================================

@dataclass(frozen=True)
class KeywordOccurrence:
    """
    A normalized keyword found in one source file of one domain.

    Deduplicated by (keyword, domain, source_path); frequency carries
    the running count. topics lists the pattern families that matched,
    primary first.
    """
    keyword: str
    domain: Domain
    source_path: str
    frequency: int = 1
    category_id: Optional[str] = None
    topics: Tuple[str, ...] = ()
    context: str = ""

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.keyword, self.domain.value, self.source_path)

    def sort_key(self) -> Tuple[str, str, str]:
        return (self.source_path, self.keyword, self.domain.value)

    def classified(self, category_id: Optional[str]) -> "KeywordOccurrence":
        return replace(self, category_id=category_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "keyword": self.keyword,
            "domain": self.domain.value,
            "source_path": self.source_path,
            "frequency": self.frequency,
            "category_id": self.category_id,
            "topics": list(self.topics),
            "context": self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeywordOccurrence":
        return cls(
            keyword=data["keyword"],
            domain=Domain(data["domain"]),
            source_path=data["source_path"],
            frequency=data["frequency"],
            category_id=data.get("category_id"),
            topics=tuple(data.get("topics", [])),
            context=data.get("context", ""),
        )


@dataclass(frozen=True)
class KeywordIndex:
    """Keyword-frequency index over both corpora, in canonical order."""
    occurrences: Tuple[KeywordOccurrence, ...]
    skipped: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.occurrences

    def total(self, domain: Domain) -> int:
        return sum(o.frequency for o in self.occurrences if o.domain == domain)

    def keyword_totals(self) -> Dict[str, int]:
        """Frequency per keyword summed across both domains."""
        totals: Dict[str, int] = defaultdict(int)
        for occ in self.occurrences:
            totals[occ.keyword] += occ.frequency
        return dict(totals)

    def keyword_topics(self) -> Dict[str, Tuple[str, ...]]:
        topics: Dict[str, Tuple[str, ...]] = {}
        for occ in self.occurrences:
            if occ.keyword not in topics:
                topics[occ.keyword] = occ.topics
        return topics

    def file_keywords(self) -> Dict[Tuple[str, str], Set[str]]:
        """Keyword set per (domain, source_path)."""
        files: Dict[Tuple[str, str], Set[str]] = defaultdict(set)
        for occ in self.occurrences:
            files[(occ.domain.value, occ.source_path)].add(occ.keyword)
        return dict(files)

    def with_occurrences(self, occurrences: List[KeywordOccurrence]) -> "KeywordIndex":
        return KeywordIndex(
            occurrences=tuple(sorted(occurrences, key=KeywordOccurrence.sort_key)),
            skipped=self.skipped,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "occurrences": [o.to_dict() for o in self.occurrences],
            "skipped": list(self.skipped),
            "totals": {d.value: self.total(d) for d in Domain},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeywordIndex":
        return cls(
            occurrences=tuple(KeywordOccurrence.from_dict(o) for o in data["occurrences"]),
            skipped=tuple(data.get("skipped", [])),
        )


# =============================================================================
# MATRIX
# =============================================================================

@dataclass(frozen=True)
class MatrixCell:
    """One (row, col) cell of the asymmetric drift matrix."""
    row_category_id: str
    col_category_id: str
    intent_value: float
    reality_value: float
    drift_units: float
    triangle: Triangle
    source_domain: Optional[Domain] = None   # None on the diagonal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row_category_id,
            "col": self.col_category_id,
            "intent_value": self.intent_value,
            "reality_value": self.reality_value,
            "drift_units": self.drift_units,
            "triangle": self.triangle.value,
            "source_domain": self.source_domain.value if self.source_domain else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MatrixCell":
        source = data.get("source_domain")
        return cls(
            row_category_id=data["row"],
            col_category_id=data["col"],
            intent_value=data["intent_value"],
            reality_value=data["reality_value"],
            drift_units=data["drift_units"],
            triangle=Triangle(data["triangle"]),
            source_domain=Domain(source) if source else None,
        )


@dataclass(frozen=True)
class Matrix:
    """
    N x N Intent/Reality matrix over ShortLex-ranked categories.

    Cells are stored row-major. The upper and lower triangles come
    from different domains and are never symmetrized.
    """
    categories: Tuple[Category, ...]
    cells: Tuple[MatrixCell, ...]
    diagonal_weight: float
    unit_scale: float
    intent_counts: Dict[str, int] = field(default_factory=dict)
    reality_counts: Dict[str, int] = field(default_factory=dict)
    taxonomy_converged: bool = True
    orthogonality_score: Optional[float] = None

    @property
    def size(self) -> int:
        return len(self.categories)

    def cell(self, row: int, col: int) -> MatrixCell:
        return self.cells[row * self.size + col]

    def cell_by_ids(self, row_id: str, col_id: str) -> MatrixCell:
        ids = [c.id for c in self.categories]
        return self.cell(ids.index(row_id), ids.index(col_id))

    def row(self, row: int) -> Tuple[MatrixCell, ...]:
        return self.cells[row * self.size:(row + 1) * self.size]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "categories": [c.to_dict() for c in self.categories],
            "cells": [c.to_dict() for c in self.cells],
            "diagonal_weight": self.diagonal_weight,
            "unit_scale": self.unit_scale,
            "intent_counts": dict(sorted(self.intent_counts.items())),
            "reality_counts": dict(sorted(self.reality_counts.items())),
            "taxonomy_converged": self.taxonomy_converged,
            "orthogonality_score": self.orthogonality_score,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Matrix":
        return cls(
            categories=tuple(Category.from_dict(c) for c in data["categories"]),
            cells=tuple(MatrixCell.from_dict(c) for c in data["cells"]),
            diagonal_weight=data["diagonal_weight"],
            unit_scale=data["unit_scale"],
            intent_counts=data.get("intent_counts", {}),
            reality_counts=data.get("reality_counts", {}),
            taxonomy_converged=data.get("taxonomy_converged", True),
            orthogonality_score=data.get("orthogonality_score"),
        )


# =============================================================================
# GRADING
# =============================================================================

@dataclass(frozen=True)
class GradeResult:
    """Aggregate drift statistics for one run."""
    total_drift_units: float
    upper_triangle_sum: float
    lower_triangle_sum: float
    diagonal_sum: float
    asymmetry_ratio: float
    asymmetry_interpretation: str
    orthogonality_score: float          # Mean pairwise category correlation
    orthogonality_legitimate: bool
    grade: str
    grade_label: str
    taxonomy_converged: bool = True
    category_subtotals: Dict[str, float] = field(default_factory=dict)
    category_grades: Dict[str, str] = field(default_factory=dict)
    statistics: Dict[str, Any] = field(default_factory=dict)
    diagonal_coherence: float = 1.0
    notes: Tuple[str, ...] = ()

    def snapshot(self) -> Dict[str, Any]:
        """Subset embedded in timeline entries."""
        return {
            "total_drift_units": self.total_drift_units,
            "grade": self.grade,
            "upper_triangle_sum": self.upper_triangle_sum,
            "lower_triangle_sum": self.lower_triangle_sum,
            "asymmetry_ratio": self.asymmetry_ratio,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_drift_units": self.total_drift_units,
            "upper_triangle_sum": self.upper_triangle_sum,
            "lower_triangle_sum": self.lower_triangle_sum,
            "diagonal_sum": self.diagonal_sum,
            "asymmetry_ratio": self.asymmetry_ratio,
            "asymmetry_interpretation": self.asymmetry_interpretation,
            "orthogonality_score": self.orthogonality_score,
            "orthogonality_legitimate": self.orthogonality_legitimate,
            "grade": self.grade,
            "grade_label": self.grade_label,
            "taxonomy_converged": self.taxonomy_converged,
            "category_subtotals": dict(self.category_subtotals),
            "category_grades": dict(self.category_grades),
            "statistics": dict(self.statistics),
            "diagonal_coherence": self.diagonal_coherence,
            "notes": list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GradeResult":
        return cls(
            total_drift_units=data["total_drift_units"],
            upper_triangle_sum=data["upper_triangle_sum"],
            lower_triangle_sum=data["lower_triangle_sum"],
            diagonal_sum=data["diagonal_sum"],
            asymmetry_ratio=data["asymmetry_ratio"],
            asymmetry_interpretation=data.get("asymmetry_interpretation", ""),
            orthogonality_score=data["orthogonality_score"],
            orthogonality_legitimate=data.get("orthogonality_legitimate", False),
            grade=data["grade"],
            grade_label=data.get("grade_label", ""),
            taxonomy_converged=data.get("taxonomy_converged", True),
            category_subtotals=data.get("category_subtotals", {}),
            category_grades=data.get("category_grades", {}),
            statistics=data.get("statistics", {}),
            diagonal_coherence=data.get("diagonal_coherence", 1.0),
            notes=tuple(data.get("notes", [])),
        )


# =============================================================================
# TIMELINE
# =============================================================================

@dataclass(frozen=True)
class TimelineEntry:
    """Grade snapshot at one historical commit."""
    commit_hash: str
    timestamp: str
    grade_snapshot: Dict[str, Any]
    subject: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commit_hash": self.commit_hash,
            "timestamp": self.timestamp,
            "subject": self.subject,
            "grade_snapshot": dict(self.grade_snapshot),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineEntry":
        return cls(
            commit_hash=data["commit_hash"],
            timestamp=data["timestamp"],
            grade_snapshot=data["grade_snapshot"],
            subject=data.get("subject", ""),
        )


@dataclass(frozen=True)
class TimelineResult:
    """Ordered timeline plus the commits that had to be skipped."""
    entries: Tuple[TimelineEntry, ...]
    gaps: Tuple[Dict[str, str], ...] = ()
    trend: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [e.to_dict() for e in self.entries],
            "gaps": [dict(g) for g in self.gaps],
            "trend": dict(self.trend),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimelineResult":
        return cls(
            entries=tuple(TimelineEntry.from_dict(e) for e in data["entries"]),
            gaps=tuple(data.get("gaps", [])),
            trend=data.get("trend", {}),
        )


# =============================================================================
# NARRATIVE
# =============================================================================

@dataclass(frozen=True)
class Recommendation:
    """A prioritized finding about one category pair."""
    row_category_id: str
    col_category_id: str
    kind: str                 # "one_sided_drift" | "cold_spot"
    severity: str             # "issue" | "benign"
    direction: str            # "intent_ahead" | "reality_ahead" | "none"
    drift_units: float
    description: str
    effort: str = "small"     # "small" | "medium" | "large"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "row": self.row_category_id,
            "col": self.col_category_id,
            "kind": self.kind,
            "severity": self.severity,
            "direction": self.direction,
            "drift_units": self.drift_units,
            "description": self.description,
            "effort": self.effort,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        return cls(
            row_category_id=data["row"],
            col_category_id=data["col"],
            kind=data["kind"],
            severity=data["severity"],
            direction=data["direction"],
            drift_units=data["drift_units"],
            description=data["description"],
            effort=data.get("effort", "small"),
        )


@dataclass(frozen=True)
class Narrative:
    """Ranked recommendations plus summary lines for the report."""
    recommendations: Tuple[Recommendation, ...]
    cold_spots: Tuple[Recommendation, ...] = ()
    summary: Tuple[str, ...] = ()
    notices: Tuple[str, ...] = ()
    trend: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "cold_spots": [r.to_dict() for r in self.cold_spots],
            "summary": list(self.summary),
            "notices": list(self.notices),
            "trend": dict(self.trend),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Narrative":
        return cls(
            recommendations=tuple(Recommendation.from_dict(r) for r in data["recommendations"]),
            cold_spots=tuple(Recommendation.from_dict(r) for r in data.get("cold_spots", [])),
            summary=tuple(data.get("summary", [])),
            notices=tuple(data.get("notices", [])),
            trend=data.get("trend", {}),
        )


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Enums
    "Domain",
    "Triangle",
    "ArtifactStatus",
    # Taxonomy
    "Category",
    "TaxonomyResult",
    # Index
    "KeywordOccurrence",
    "KeywordIndex",
    # Matrix
    "MatrixCell",
    "Matrix",
    # Grading
    "GradeResult",
    # Timeline
    "TimelineEntry",
    "TimelineResult",
    # Narrative
    "Recommendation",
    "Narrative",
]
