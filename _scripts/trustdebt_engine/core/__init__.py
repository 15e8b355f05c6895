"""
Trust Debt Core - Core Module

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Core types, ordering and configuration for the drift-measurement pipeline.
"""

from .types import (
    # Enums
    Domain,
    Triangle,
    ArtifactStatus,
    # Core types
    Category,
    TaxonomyResult,
    KeywordOccurrence,
    KeywordIndex,
    MatrixCell,
    Matrix,
    GradeResult,
    TimelineEntry,
    TimelineResult,
    Recommendation,
    Narrative,
)

from .config import TrustDebtConfig, DEFAULT_GRADE_BOUNDARIES

from .shortlex import (
    shortlex_key,
    assign_ranks,
    is_shortlex_ordered,
)


__all__ = [
    # Enums
    "Domain",
    "Triangle",
    "ArtifactStatus",
    # Types
    "Category",
    "TaxonomyResult",
    "KeywordOccurrence",
    "KeywordIndex",
    "MatrixCell",
    "Matrix",
    "GradeResult",
    "TimelineEntry",
    "TimelineResult",
    "Recommendation",
    "Narrative",
    # Config
    "TrustDebtConfig",
    "DEFAULT_GRADE_BOUNDARIES",
    # Ordering
    "shortlex_key",
    "assign_ranks",
    "is_shortlex_ordered",
]
