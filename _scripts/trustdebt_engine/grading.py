"""
Trust Debt Engine - Grade Calculator v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Aggregates matrix drift into a letter grade.

Grade bands are closed integer ranges from configuration and must tile
[0, inf) with no gaps or overlaps; a real-valued total t falls in the
band with min <= t < max + 1. Orthogonality is recomputed here with the
same function that gated taxonomy convergence and must agree exactly.
"""

import logging
import math
import statistics
from typing import Dict, List, Any, Optional, Sequence, Tuple

from .core.config import TrustDebtConfig
from .core.shortlex import shortlex_key
from .core.types import GradeResult, Matrix, Triangle
from .errors import GradeBoundaryError, OrthogonalityMismatchError, ValidationError
from .matrix import triangle_sums
from .taxonomy import measure_correlation

logger = logging.getLogger(__name__)

ORTHOGONALITY_TOLERANCE = 1e-12

# Upper / lower ratio bands, checked in order
ASYMMETRY_BANDS = [
    (1.0, "over-documented: Intent describes more than Reality delivers"),
    (1.2, "slightly under-documented"),
    (2.0, "healthy: implementation leads documentation moderately"),
    (math.inf, "under-documented: Reality has moved well past Intent"),
]
NO_OFF_DIAGONAL_DRIFT = "balanced: no off-diagonal drift in either triangle"


# =============================================================================
# GRADE BOUNDARIES
# =============================================================================

def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def grade_boundary_errors(rows: Sequence[Dict[str, Any]]) -> List[str]:
    """
    Every problem with a grade boundary table, empty if it is valid.

    Valid means: integer bounds, first min is 0, each next min is the
    previous max + 1, only the last row is unbounded, grades unique.
    """
    if not isinstance(rows, (list, tuple)) or not rows:
        return ["grade_boundaries must be a non-empty list"]

    errors = []
    grades = set()
    previous_max: Optional[int] = None
    for position, row in enumerate(rows):
        where = f"grade_boundaries[{position}]"
        if not isinstance(row, dict):
            errors.append(f"{where} must be a mapping")
            continue

        missing = [k for k in ("grade", "min", "max", "label") if k not in row]
        if missing:
            errors.append(f"{where} is missing {', '.join(missing)}")
            continue

        grade, low, high = row["grade"], row["min"], row["max"]
        if not isinstance(grade, str) or not grade:
            errors.append(f"{where}.grade must be a non-empty string")
        elif grade in grades:
            errors.append(f"{where}: duplicate grade {grade!r}")
        grades.add(grade)

        if not _is_int(low) or (high is not None and not _is_int(high)):
            errors.append(f"{where}: min and max must be integers (max may be null)")
            previous_max = None
            continue

        if position == 0 and low != 0:
            errors.append(f"{where}: first range must start at 0 (got {low})")
        if position > 0 and previous_max is not None and low != previous_max + 1:
            kind = "gap" if low > previous_max + 1 else "overlap"
            errors.append(f"{where}: {kind} (min {low} after previous max {previous_max})")
        if high is not None and high < low:
            errors.append(f"{where}: max {high} is below min {low}")

        last = position == len(rows) - 1
        if high is None and not last:
            errors.append(f"{where}: only the last range may be unbounded")
        if high is not None and last:
            errors.append(f"{where}: last range must be unbounded (max null)")
        previous_max = high

    return errors


class GradeTable:
    """Validated grade boundaries with total lookup."""

    def __init__(self, rows: Sequence[Dict[str, Any]]):
        errors = grade_boundary_errors(rows)
        if errors:
            raise GradeBoundaryError(errors)
        self.rows = [dict(r) for r in rows]

    def lookup(self, total: float) -> Tuple[str, str]:
        """(grade, label) for a drift total."""
        if math.isnan(total) or total < 0:
            raise ValidationError("total_drift_units", f"must be a non-negative number (got {total})")
        for row in self.rows:
            if row["min"] <= total and (row["max"] is None or total < row["max"] + 1):
                return row["grade"], row["label"]
        # Unreachable for a validated table: bands tile [0, inf)
        raise GradeBoundaryError([f"no grade band covers {total}"])

    @property
    def grades(self) -> List[str]:
        return [r["grade"] for r in self.rows]


# =============================================================================
# INTERPRETATION
# =============================================================================

def interpret_asymmetry(ratio: float) -> str:
    for upper_bound, text in ASYMMETRY_BANDS:
        if ratio < upper_bound:
            return text
    return ASYMMETRY_BANDS[-1][1]


def _check_orthogonality(matrix: Matrix, recorded: Optional[float]) -> float:
    """Recompute correlation; compare with the taxonomy's orthogonality."""
    correlation = measure_correlation(matrix.categories)
    if recorded is not None:
        recomputed = 1.0 - correlation
        if not math.isclose(recorded, recomputed, rel_tol=0.0, abs_tol=ORTHOGONALITY_TOLERANCE):
            raise OrthogonalityMismatchError(recorded, recomputed)
    return correlation


def _category_statistics(subtotals: Dict[str, float], grades: Dict[str, str],
                         table: GradeTable) -> Dict[str, Any]:
    values = list(subtotals.values())
    distribution = {g: 0 for g in table.grades}
    for g in grades.values():
        distribution[g] += 1

    ids = sorted(subtotals, key=shortlex_key)
    top = min(ids, key=lambda cid: (-subtotals[cid], shortlex_key(cid)))
    bottom = min(ids, key=lambda cid: (subtotals[cid], shortlex_key(cid)))
    return {
        "mean": statistics.fmean(values),
        "median": statistics.median(values),
        "std": statistics.pstdev(values) if len(values) > 1 else 0.0,
        "distribution": distribution,
        "top_category": top,
        "bottom_category": bottom,
    }


# =============================================================================
# GRADE
# =============================================================================

def grade(matrix: Matrix, config: Optional[TrustDebtConfig] = None,
          taxonomy_orthogonality: Optional[float] = None) -> GradeResult:
    """
    Grade a drift matrix.

    Args:
        matrix: Output of the matrix builder
        config: Grade boundaries, epsilon and coherence settings
        taxonomy_orthogonality: Orthogonality the taxonomy gate recorded
            (defaults to the value carried on the matrix)

    Returns:
        GradeResult

    Raises:
        GradeBoundaryError: invalid grade boundaries
        OrthogonalityMismatchError: recomputed orthogonality disagrees
    """
    config = config or TrustDebtConfig()
    table = GradeTable(config.grade_boundaries)
    if matrix.size == 0:
        raise ValidationError("matrix", "cannot grade an empty matrix")

    recorded = taxonomy_orthogonality
    if recorded is None:
        recorded = matrix.orthogonality_score
    correlation = _check_orthogonality(matrix, recorded)
    legitimate = correlation < config.orthogonality_legitimacy

    upper, lower, diagonal = triangle_sums(matrix)
    total = math.fsum((upper, lower, diagonal))

    if upper <= config.epsilon and lower <= config.epsilon:
        ratio, interpretation = 1.0, NO_OFF_DIAGONAL_DRIFT
    else:
        ratio = upper / max(lower, config.epsilon)
        interpretation = interpret_asymmetry(ratio)

    letter, label = table.lookup(total)

    subtotals = {
        cat.id: math.fsum(cell.drift_units for cell in matrix.row(r))
        for r, cat in enumerate(matrix.categories)
    }
    category_grades = {cid: table.lookup(v)[0] for cid, v in subtotals.items()}

    tolerance = config.coherence_tolerance * matrix.unit_scale
    diagonal_cells = [c for c in matrix.cells if c.triangle == Triangle.DIAGONAL]
    coherent = sum(1 for c in diagonal_cells if abs(c.intent_value - c.reality_value) <= tolerance)
    coherence = coherent / len(diagonal_cells)

    notes = []
    if not matrix.taxonomy_converged:
        notes.append("Taxonomy did not converge; categories are best-effort")
    if not legitimate:
        notes.append(
            f"Category correlation {correlation:.3f} is above {config.orthogonality_legitimacy}; "
            f"drift may be double-counted across overlapping categories"
        )
    if coherence < config.coherence_threshold:
        notes.append(
            f"Only {coherent}/{len(diagonal_cells)} categories are self-consistent "
            f"(coherence {coherence:.2f} < {config.coherence_threshold})"
        )

    result = GradeResult(
        total_drift_units=total,
        upper_triangle_sum=upper,
        lower_triangle_sum=lower,
        diagonal_sum=diagonal,
        asymmetry_ratio=ratio,
        asymmetry_interpretation=interpretation,
        orthogonality_score=correlation,
        orthogonality_legitimate=legitimate,
        grade=letter,
        grade_label=label,
        taxonomy_converged=matrix.taxonomy_converged,
        category_subtotals=subtotals,
        category_grades=category_grades,
        statistics=_category_statistics(subtotals, category_grades, table),
        diagonal_coherence=coherence,
        notes=tuple(notes),
    )

    logger.info(
        f"Grade {letter} ({label}): total={total:.2f}, upper={upper:.2f}, "
        f"lower={lower:.2f}, diagonal={diagonal:.2f}, asymmetry={ratio:.2f}"
    )
    return result


__all__ = [
    "grade",
    "GradeTable",
    "grade_boundary_errors",
    "interpret_asymmetry",
    "ASYMMETRY_BANDS",
]
