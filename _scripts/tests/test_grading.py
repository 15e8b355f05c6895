"""
Trust Debt Grading Tests - Grade Calculator

Tests triangle sums, asymmetry interpretation, grade boundary
validation and lookup, orthogonality recomputation and per-category
statistics.

Run with: pytest tests/test_grading.py -v
"""

import sys
from dataclasses import replace
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from trustdebt_engine.core.config import DEFAULT_GRADE_BOUNDARIES, TrustDebtConfig
from trustdebt_engine.core.shortlex import assign_ranks
from trustdebt_engine.core.types import Category, Domain, KeywordIndex, KeywordOccurrence
from trustdebt_engine.errors import GradeBoundaryError, OrthogonalityMismatchError
from trustdebt_engine.grading import (
    NO_OFF_DIAGONAL_DRIFT,
    GradeTable,
    grade,
    grade_boundary_errors,
    interpret_asymmetry,
)
from trustdebt_engine.matrix import build
from trustdebt_engine.taxonomy import measure_orthogonality


# =============================================================================
# TEST DATA
# =============================================================================

def occ(keyword: str, path: str, frequency: int, domain: Domain) -> KeywordOccurrence:
    return KeywordOccurrence(keyword=keyword, domain=domain, source_path=path, frequency=frequency)


def make_index(occurrences) -> KeywordIndex:
    return KeywordIndex(occurrences=()).with_occurrences(list(occurrences))


CATEGORIES = assign_ranks([
    Category(id="A", keywords=frozenset({"cache"}), label="cache"),
    Category(id="B", keywords=frozenset({"latency"}), label="latency"),
    Category(id="C", keywords=frozenset({"pytest"}), label="pytest"),
])

DRIFTING = make_index([
    occ("cache", "docs/a.md", 4, Domain.INTENT),
    occ("latency", "docs/a.md", 4, Domain.INTENT),
    occ("pytest", "docs/b.md", 8, Domain.INTENT),
    occ("cache", "src/s1.py", 4, Domain.REALITY),
    occ("latency", "src/s1.py", 1, Domain.REALITY),
    occ("latency", "src/s2.py", 10, Domain.REALITY),
    occ("pytest", "tests/t.py", 1, Domain.REALITY),
])

MIRRORED = make_index([
    occ(kw, path, n, domain)
    for kw, path, n in [("cache", "x.md", 3), ("latency", "x.md", 2), ("pytest", "y.md", 5)]
    for domain in Domain
])


# =============================================================================
# BOUNDARIES
# =============================================================================

def test_default_boundaries_are_valid():
    assert grade_boundary_errors(DEFAULT_GRADE_BOUNDARIES) == []


@pytest.mark.parametrize("total,expected", [
    (0, "A"), (500, "A"), (500.5, "A"), (500.999, "A"),
    (501, "B"), (1500, "B"), (1501, "C"), (3000.9, "C"),
    (3001, "D"), (10 ** 9, "D"),
])
def test_default_lookup(total, expected):
    assert GradeTable(DEFAULT_GRADE_BOUNDARIES).lookup(total)[0] == expected


@pytest.mark.parametrize("rows,fragment", [
    ([], "non-empty"),
    ([{"grade": "A", "min": 1, "max": None, "label": "x"}], "start at 0"),
    ([{"grade": "A", "min": 0, "max": 10, "label": "x"},
      {"grade": "B", "min": 12, "max": None, "label": "y"}], "gap"),
    ([{"grade": "A", "min": 0, "max": 10, "label": "x"},
      {"grade": "B", "min": 10, "max": None, "label": "y"}], "overlap"),
    ([{"grade": "A", "min": 0, "max": None, "label": "x"},
      {"grade": "B", "min": 1, "max": None, "label": "y"}], "only the last"),
    ([{"grade": "A", "min": 0, "max": 10, "label": "x"}], "unbounded"),
    ([{"grade": "A", "min": 0, "max": 10, "label": "x"},
      {"grade": "A", "min": 11, "max": None, "label": "y"}], "duplicate"),
    ([{"grade": "A", "min": 0, "label": "x"}], "missing"),
    ([{"grade": "A", "min": 0.5, "max": None, "label": "x"}], "integers"),
])
def test_invalid_boundaries_are_reported(rows, fragment):
    errors = grade_boundary_errors(rows)
    assert errors, f"expected a problem containing {fragment!r}"
    assert any(fragment in e for e in errors)


def test_invalid_boundaries_fail_config_validation():
    config = TrustDebtConfig(grade_boundaries=[{"grade": "A", "min": 5, "max": None, "label": "x"}])
    with pytest.raises(GradeBoundaryError):
        config.validate()


def test_grade_table_rejects_invalid_rows():
    with pytest.raises(GradeBoundaryError):
        GradeTable([{"grade": "A", "min": 0, "max": 10, "label": "x"}])


# =============================================================================
# INTERPRETATION
# =============================================================================

@pytest.mark.parametrize("ratio,fragment", [
    (0.5, "over-documented"),
    (1.1, "slightly under-documented"),
    (1.5, "healthy"),
    (3.0, "under-documented: Reality"),
])
def test_interpret_asymmetry(ratio, fragment):
    assert fragment in interpret_asymmetry(ratio)


# =============================================================================
# GRADE
# =============================================================================

def test_triangle_sums_add_up():
    matrix = build(CATEGORIES, DRIFTING)
    result = grade(matrix)

    assert result.upper_triangle_sum > 0
    assert result.lower_triangle_sum > 0
    assert result.diagonal_sum > 0
    assert result.total_drift_units == pytest.approx(
        result.upper_triangle_sum + result.lower_triangle_sum + result.diagonal_sum
    )
    assert result.asymmetry_ratio == pytest.approx(result.upper_triangle_sum / result.lower_triangle_sum)


def test_mirrored_corpora_score_zero_and_best_grade():
    result = grade(build(CATEGORIES, MIRRORED))

    assert result.total_drift_units == 0.0
    assert result.grade == "A"
    assert result.asymmetry_interpretation == NO_OFF_DIAGONAL_DRIFT
    assert result.diagonal_coherence == 1.0
    assert set(result.category_grades.values()) == {"A"}


def test_orthogonality_recomputed_matches_recorded():
    recorded = measure_orthogonality(CATEGORIES)
    result = grade(build(CATEGORIES, DRIFTING), taxonomy_orthogonality=recorded)
    assert result.orthogonality_score == 0.0
    assert result.orthogonality_legitimate is True


def test_orthogonality_mismatch_is_fatal():
    matrix = build(CATEGORIES, DRIFTING, orthogonality_score=0.5)
    with pytest.raises(OrthogonalityMismatchError):
        grade(matrix)


def test_category_statistics():
    result = grade(build(CATEGORIES, DRIFTING))
    stats = result.statistics

    assert set(result.category_subtotals) == {"A", "B", "C"}
    assert stats["top_category"] in {"B", "C"}
    assert stats["mean"] == pytest.approx(sum(result.category_subtotals.values()) / 3)
    assert sum(stats["distribution"].values()) == 3
    assert stats["top_category"] != stats["bottom_category"]


def test_non_converged_matrix_is_noted():
    matrix = replace(build(CATEGORIES, DRIFTING), taxonomy_converged=False)
    result = grade(matrix)
    assert result.taxonomy_converged is False
    assert any("did not converge" in n for n in result.notes)


def test_low_coherence_is_noted():
    result = grade(build(CATEGORIES, DRIFTING))
    # A matches exactly; B and C are far apart
    assert result.diagonal_coherence == pytest.approx(1 / 3)
    assert any("self-consistent" in n for n in result.notes)


