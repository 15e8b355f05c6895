"""
Trust Debt Engine - Matrix Builder v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Builds the asymmetric Intent/Reality matrix over ShortLex-ranked
categories.

Diagonal cells compare how much of each corpus a category takes up.
Off-diagonal cells compare how strongly two categories co-occur in
files. The upper triangle weights that joint strength by Reality's
emphasis on the pair, the lower triangle by Intent's, so the two
halves are derived from different domains and never mirror each other.
"""

import logging
import math
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from .core.config import TrustDebtConfig
from .core.shortlex import shortlex_key
from .core.types import Category, Domain, KeywordIndex, Matrix, MatrixCell, Triangle
from .errors import ValidationError
from .taxonomy import classify

logger = logging.getLogger(__name__)


# =============================================================================
# HELPERS
# =============================================================================

def squared_drift(intent_value: float, reality_value: float) -> float:
    """Zero when equal, strictly increasing in the absolute difference."""
    diff = intent_value - reality_value
    return diff * diff


def _ordered(categories: Sequence[Category]) -> List[Category]:
    return sorted(categories, key=lambda c: (c.depth, shortlex_key(c.id)))


class _DomainCounts:
    """Per-category and per-file unit counts for one domain."""

    def __init__(self):
        self.by_category: Dict[str, int] = defaultdict(int)
        self.by_file: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.total = 0

    def add(self, source_path: str, category_id: str, units: int) -> None:
        self.by_category[category_id] += units
        self.by_file[source_path][category_id] += units
        self.total += units

    def density(self, category_id: str) -> float:
        return self.by_category.get(category_id, 0) / self.total if self.total > 0 else 0.0

    def joint_strength(self, a: str, b: str) -> float:
        """Sum over files of the smaller count, normalized by domain total."""
        if self.total <= 0:
            return 0.0
        shared = sum(
            min(counts.get(a, 0), counts.get(b, 0))
            for counts in self.by_file.values()
        )
        return shared / self.total


def _count(keyword_index: KeywordIndex, known: set) -> Dict[Domain, _DomainCounts]:
    counts = {d: _DomainCounts() for d in Domain}
    for occ in keyword_index.occurrences:
        if occ.category_id in known:
            counts[occ.domain].add(occ.source_path, occ.category_id, occ.frequency)
    return counts


def _needs_classification(keyword_index: KeywordIndex, known: set) -> bool:
    return any(
        occ.category_id is not None and occ.category_id not in known
        for occ in keyword_index.occurrences
    ) or all(occ.category_id is None for occ in keyword_index.occurrences)


# =============================================================================
# BUILD
# =============================================================================

def build(categories: Sequence[Category], keyword_index: KeywordIndex,
          config: Optional[TrustDebtConfig] = None,
          taxonomy_converged: bool = True,
          orthogonality_score: Optional[float] = None) -> Matrix:
    """
    Build the N x N drift matrix.

    Args:
        categories: Finalized taxonomy (any order; ShortLex is applied)
        keyword_index: Index to measure; classified here if it is not
            already classified against these categories
        config: unit_scale and diagonal_weight
        taxonomy_converged: Carried through for downstream notices
        orthogonality_score: Orthogonality recorded by the taxonomy gate

    Returns:
        Matrix with cells in row-major order

    Raises:
        ValidationError: no categories to build over
    """
    config = config or TrustDebtConfig()
    if not categories:
        raise ValidationError("categories", "cannot build a matrix over an empty taxonomy")

    ordered = _ordered(categories)
    ids = [c.id for c in ordered]
    known = set(ids)

    if _needs_classification(keyword_index, known):
        keyword_index = classify(keyword_index, ordered)

    counts = _count(keyword_index, known)
    intent, reality = counts[Domain.INTENT], counts[Domain.REALITY]
    scale = config.unit_scale

    cells = []
    for i, row_id in enumerate(ids):
        for j, col_id in enumerate(ids):
            if i == j:
                iv = scale * intent.density(row_id)
                rv = scale * reality.density(row_id)
                cells.append(MatrixCell(
                    row_category_id=row_id,
                    col_category_id=col_id,
                    intent_value=iv,
                    reality_value=rv,
                    drift_units=squared_drift(iv, rv) * config.diagonal_weight,
                    triangle=Triangle.DIAGONAL,
                ))
                continue

            if i < j:
                source, triangle = Domain.REALITY, Triangle.UPPER
                emphasis = (reality.density(row_id) + reality.density(col_id)) / 2
            else:
                source, triangle = Domain.INTENT, Triangle.LOWER
                emphasis = (intent.density(row_id) + intent.density(col_id)) / 2

            iv = scale * intent.joint_strength(row_id, col_id) * emphasis
            rv = scale * reality.joint_strength(row_id, col_id) * emphasis
            cells.append(MatrixCell(
                row_category_id=row_id,
                col_category_id=col_id,
                intent_value=iv,
                reality_value=rv,
                drift_units=squared_drift(iv, rv),
                triangle=triangle,
                source_domain=source,
            ))

    matrix = Matrix(
        categories=tuple(ordered),
        cells=tuple(cells),
        diagonal_weight=config.diagonal_weight,
        unit_scale=scale,
        intent_counts={cid: intent.by_category.get(cid, 0) for cid in ids},
        reality_counts={cid: reality.by_category.get(cid, 0) for cid in ids},
        taxonomy_converged=taxonomy_converged,
        orthogonality_score=orthogonality_score,
    )

    logger.info(
        f"Built {len(ids)}x{len(ids)} matrix "
        f"(intent units={intent.total}, reality units={reality.total})"
    )
    return matrix


def triangle_sums(matrix: Matrix) -> Tuple[float, float, float]:
    """(upper, lower, diagonal) drift sums."""
    sums = {t: [] for t in Triangle}
    for cell in matrix.cells:
        sums[cell.triangle].append(cell.drift_units)
    return (
        math.fsum(sums[Triangle.UPPER]),
        math.fsum(sums[Triangle.LOWER]),
        math.fsum(sums[Triangle.DIAGONAL]),
    )


__all__ = [
    "build",
    "squared_drift",
    "triangle_sums",
]
