"""
Trust Debt Matrix Tests - Asymmetric Intent/Reality Matrix

Tests diagonal density drift, the Reality-sourced upper and
Intent-sourced lower triangles, cold categories and determinism.

Run with: pytest tests/test_matrix.py -v
"""

import json
import math
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from trustdebt_engine.core.config import TrustDebtConfig
from trustdebt_engine.core.shortlex import assign_ranks
from trustdebt_engine.core.types import Category, Domain, KeywordIndex, KeywordOccurrence, Triangle
from trustdebt_engine.errors import ValidationError
from trustdebt_engine.indexer import index
from trustdebt_engine.matrix import build, squared_drift
from trustdebt_engine.taxonomy import generate
from ingestion.types import Corpus, CorpusFile


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

# Intent: A 4, B 4, C 8 (total 16). Reality: A 4, B 11, C 1 (total 16).
INDEX = make_index([
    occ("cache", "docs/a.md", 4, Domain.INTENT),
    occ("latency", "docs/a.md", 4, Domain.INTENT),
    occ("pytest", "docs/b.md", 8, Domain.INTENT),
    occ("cache", "src/s1.py", 4, Domain.REALITY),
    occ("latency", "src/s1.py", 1, Domain.REALITY),
    occ("latency", "src/s2.py", 10, Domain.REALITY),
    occ("pytest", "tests/t.py", 1, Domain.REALITY),
])


# =============================================================================
# STRUCTURE
# =============================================================================

def test_empty_taxonomy_is_a_validation_error():
    with pytest.raises(ValidationError):
        build([], INDEX)


def test_cells_are_row_major_with_triangles():
    matrix = build(CATEGORIES, INDEX)

    assert matrix.size == 3
    assert len(matrix.cells) == 9
    for r in range(3):
        for c in range(3):
            cell = matrix.cell(r, c)
            assert cell.row_category_id == matrix.categories[r].id
            assert cell.col_category_id == matrix.categories[c].id
            expected = Triangle.DIAGONAL if r == c else (Triangle.UPPER if r < c else Triangle.LOWER)
            assert cell.triangle == expected


def test_categories_are_put_in_shortlex_order():
    shuffled = [CATEGORIES[2], CATEGORIES[0], CATEGORIES[1]]
    matrix = build(shuffled, INDEX)
    assert [c.id for c in matrix.categories] == ["A", "B", "C"]


# =============================================================================
# VALUES
# =============================================================================

def test_diagonal_compares_domain_densities():
    config = TrustDebtConfig()
    matrix = build(CATEGORIES, INDEX, config)

    a = matrix.cell_by_ids("A", "A")
    assert a.intent_value == pytest.approx(25.0)
    assert a.reality_value == pytest.approx(25.0)
    assert a.drift_units == pytest.approx(0.0)

    b = matrix.cell_by_ids("B", "B")
    assert b.intent_value == pytest.approx(25.0)
    assert b.reality_value == pytest.approx(68.75)
    assert b.drift_units == pytest.approx(43.75 ** 2 * config.diagonal_weight)


def test_upper_triangle_uses_reality_emphasis():
    matrix = build(CATEGORIES, INDEX)
    upper = matrix.cell_by_ids("A", "B")

    # Joint strength: intent min(4,4)/16, reality min(4,1)/16; emphasis (4+11)/32
    assert upper.source_domain == Domain.REALITY
    assert upper.intent_value == pytest.approx(100 * 0.25 * 15 / 32)
    assert upper.reality_value == pytest.approx(100 * (1 / 16) * 15 / 32)


def test_lower_triangle_uses_intent_emphasis():
    matrix = build(CATEGORIES, INDEX)
    lower = matrix.cell_by_ids("B", "A")

    assert lower.source_domain == Domain.INTENT
    assert lower.intent_value == pytest.approx(100 * 0.25 * 0.25)
    assert lower.reality_value == pytest.approx(100 * (1 / 16) * 0.25)


def test_matrix_is_not_symmetrized():
    matrix = build(CATEGORIES, INDEX)
    upper = matrix.cell_by_ids("A", "B")
    lower = matrix.cell_by_ids("B", "A")

    assert upper.source_domain != lower.source_domain
    assert upper.intent_value != lower.intent_value
    assert upper.drift_units != lower.drift_units


def test_squared_drift_laws():
    assert squared_drift(3.0, 3.0) == 0.0
    assert squared_drift(0.0, 0.0) == 0.0
    assert squared_drift(1.0, 3.0) < squared_drift(0.0, 3.0)
    assert squared_drift(5.0, 2.0) == squared_drift(2.0, 5.0)


def test_cold_category_has_all_zero_cells():
    categories = assign_ranks(list(CATEGORIES) + [
        Category(id="D", keywords=frozenset({"ontology"}), label="ontology"),
    ])
    matrix = build(categories, INDEX)
    d = [c.id for c in matrix.categories].index("D")

    for k in range(matrix.size):
        for cell in (matrix.cell(d, k), matrix.cell(k, d)):
            assert cell.intent_value == 0.0
            assert cell.reality_value == 0.0
            assert cell.drift_units == 0.0
            assert not math.isnan(cell.drift_units)


def test_empty_domains_never_divide_by_zero():
    intent_only = make_index([occ("cache", "a.md", 3, Domain.INTENT)])
    matrix = build(CATEGORIES, intent_only)

    assert all(not math.isnan(c.drift_units) and c.drift_units >= 0 for c in matrix.cells)
    assert matrix.reality_counts == {"A": 0, "B": 0, "C": 0}


def test_counts_are_recorded():
    matrix = build(CATEGORIES, INDEX)
    assert matrix.intent_counts == {"A": 4, "B": 4, "C": 8}
    assert matrix.reality_counts == {"A": 4, "B": 11, "C": 1}


def test_matrix_is_byte_identical_across_runs():
    first = json.dumps(build(CATEGORIES, INDEX).to_dict(), sort_keys=True, indent=2)
    second = json.dumps(build(CATEGORIES, INDEX).to_dict(), sort_keys=True, indent=2)
    assert first == second


# =============================================================================
# SCENARIOS
# =============================================================================

def test_performance_mentioned_only_in_intent_dominates_the_diagonal():
    """Intent says 'performance' 50 times, Reality never does."""
    corpus = Corpus(
        intent=(CorpusFile.create("docs/README.md", Domain.INTENT,
                                  "performance " * 50 + "security " * 10 + "pytest " * 10),),
        reality=(CorpusFile.create("src/app.py", Domain.REALITY,
                                   "security " * 10 + "pytest " * 10),),
    )
    keyword_index = index(corpus)
    taxonomy = generate(keyword_index, target_count=3)
    matrix = build(taxonomy.categories, keyword_index)

    perf = next(c for c in matrix.categories if "performance" in c.keywords)
    diagonal = {c.row_category_id: c.drift_units for c in matrix.cells if c.triangle == Triangle.DIAGONAL}

    assert diagonal[perf.id] > 0
    assert diagonal[perf.id] == max(diagonal.values())
    assert all(v < diagonal[perf.id] for cid, v in diagonal.items() if cid != perf.id)
