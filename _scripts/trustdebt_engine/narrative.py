"""
Trust Debt Engine - Narrative Generator v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Turns a graded matrix into ranked, human-readable findings.

A cell quiet in both domains is a cold spot: benign, reported but never
ranked. A cell loud in one domain and near zero in the other is a
one-sided drift issue, ranked by drift units.
"""

import logging
from typing import Dict, List, Optional

from .core.config import TrustDebtConfig
from .core.shortlex import shortlex_key
from .core.types import GradeResult, Matrix, MatrixCell, Narrative, Recommendation, TimelineResult, Triangle

logger = logging.getLogger(__name__)


def _effort(drift: float, total: float, config: TrustDebtConfig) -> str:
    share = drift / total if total > 0 else 0.0
    if share >= config.large_effort_share:
        return "large"
    if share >= config.medium_effort_share:
        return "medium"
    return "small"


def _pair_name(cell: MatrixCell, labels: Dict[str, str]) -> str:
    row = labels.get(cell.row_category_id) or cell.row_category_id
    if cell.triangle == Triangle.DIAGONAL:
        return f"{cell.row_category_id} {row}"
    col = labels.get(cell.col_category_id) or cell.col_category_id
    return f"{cell.row_category_id} {row} x {cell.col_category_id} {col}"


def _describe(cell: MatrixCell, direction: str, labels: Dict[str, str]) -> str:
    name = _pair_name(cell, labels)
    if direction == "intent_ahead":
        return (f"{name}: documented ({cell.intent_value:.1f}) "
                f"but barely implemented ({cell.reality_value:.1f})")
    return (f"{name}: implemented ({cell.reality_value:.1f}) "
            f"but barely documented ({cell.intent_value:.1f})")


def classify_cell(cell: MatrixCell, scale: float, config: TrustDebtConfig) -> Optional[str]:
    """'cold', 'issue' or None for an unremarkable cell."""
    iv, rv = cell.intent_value, cell.reality_value
    if iv < config.cold_spot_threshold * scale and rv < config.cold_spot_threshold * scale:
        return "cold"
    hot = config.hot_value_threshold * scale
    near_zero = config.near_zero_threshold * scale
    if (iv >= hot and rv <= near_zero) or (rv >= hot and iv <= near_zero):
        return "issue"
    return None


def narrate(matrix: Matrix, grade_result: GradeResult,
            timeline: Optional[TimelineResult] = None,
            config: Optional[TrustDebtConfig] = None) -> Narrative:
    """
    Build ranked recommendations and summary lines.

    Args:
        matrix: Drift matrix
        grade_result: Grade for the same matrix
        timeline: Optional history, for the trend line
        config: Cold/hot thresholds, effort shares and list length

    Returns:
        Narrative; notices[0] is the degradation notice when the
        taxonomy did not converge
    """
    config = config or TrustDebtConfig()
    scale = matrix.unit_scale
    total = grade_result.total_drift_units
    labels = {c.id: c.label for c in matrix.categories}

    issues: List[Recommendation] = []
    cold: List[Recommendation] = []
    for cell in matrix.cells:
        kind = classify_cell(cell, scale, config)
        if kind == "cold":
            cold.append(Recommendation(
                row_category_id=cell.row_category_id,
                col_category_id=cell.col_category_id,
                kind="cold_spot",
                severity="benign",
                direction="none",
                drift_units=cell.drift_units,
                description=f"{_pair_name(cell, labels)}: low activity in both corpora",
            ))
        elif kind == "issue":
            direction = "intent_ahead" if cell.intent_value > cell.reality_value else "reality_ahead"
            issues.append(Recommendation(
                row_category_id=cell.row_category_id,
                col_category_id=cell.col_category_id,
                kind="one_sided_drift",
                severity="issue",
                direction=direction,
                drift_units=cell.drift_units,
                description=_describe(cell, direction, labels),
                effort=_effort(cell.drift_units, total, config),
            ))

    issues.sort(key=lambda r: (
        -r.drift_units, shortlex_key(r.row_category_id), shortlex_key(r.col_category_id),
    ))
    ranked = issues[:config.max_recommendations]

    notices = []
    if not (matrix.taxonomy_converged and grade_result.taxonomy_converged):
        notices.append(
            "WARNING: the category taxonomy did not converge. Categories overlap or are "
            "unbalanced, so the grade and findings below are best-effort."
        )
    if not grade_result.orthogonality_legitimate:
        notices.append(
            f"Category correlation {grade_result.orthogonality_score:.3f} is high; "
            f"drift may be counted in more than one category."
        )
    if timeline is not None and timeline.gaps:
        notices.append(f"Timeline skipped {len(timeline.gaps)} commit(s) that could not be replayed.")

    summary = [
        f"Grade {grade_result.grade} ({grade_result.grade_label}): "
        f"{grade_result.total_drift_units:.1f} drift units",
        f"Asymmetry {grade_result.asymmetry_ratio:.2f}: {grade_result.asymmetry_interpretation}",
        f"Diagonal coherence {grade_result.diagonal_coherence:.0%}",
    ]
    cold_categories = sorted(
        (r.row_category_id for r in cold if r.row_category_id == r.col_category_id),
        key=shortlex_key,
    )
    if cold_categories:
        summary.append("Cold categories (benign): " + ", ".join(
            f"{cid} {labels.get(cid, '')}".strip() for cid in cold_categories
        ))
    if issues:
        summary.append(f"{len(issues)} one-sided drift issue(s), showing top {len(ranked)}")
    else:
        summary.append("No one-sided drift issues found")

    trend = dict(timeline.trend) if timeline is not None else {}
    if trend.get("direction") not in (None, "insufficient_data"):
        summary.append(
            f"Trend over {trend['points']} commits: {trend['direction']} "
            f"({trend['first_total']:.1f} -> {trend['last_total']:.1f})"
        )

    logger.info(f"Narrative: {len(ranked)} recommendation(s), {len(cold)} cold spot(s)")

    return Narrative(
        recommendations=tuple(ranked),
        cold_spots=tuple(cold),
        summary=tuple(summary),
        notices=tuple(notices),
        trend=trend,
    )


__all__ = [
    "narrate",
    "classify_cell",
]
