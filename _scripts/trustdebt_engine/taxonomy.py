"""
Trust Debt Engine - Category Taxonomy v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Derives a small set of semantically distinct categories from the
keyword index and refines it until it is orthogonal and balanced.

Orthogonality is 1 - mean pairwise Jaccard similarity of category
keyword sets. Balance is the coefficient of variation of the keyword
units each category receives. Refinement is one bounded loop of pure
passes (merge, reweight, split, rebalance); when the cap is hit or no
pass applies, the best-effort taxonomy is returned with converged=False.
"""

import logging
import math
import statistics
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Any, Optional, Tuple, FrozenSet, Sequence, Set

from .core.config import TrustDebtConfig
from .core.shortlex import assign_ranks, child_id, parent_code, shortlex_key, CHILD_SUFFIXES, PARENT_CODES
from .core.types import Category, KeywordIndex, TaxonomyResult
from .errors import EmptyIndexError, ValidationError

logger = logging.getLogger(__name__)

MAX_PARENTS = len(PARENT_CODES)
MAX_CHILDREN = len(CHILD_SUFFIXES)
UNTAGGED_TOPIC = "general"


# =============================================================================
# METRICS
# =============================================================================

def jaccard(a: FrozenSet[str], b: FrozenSet[str]) -> float:
    """Jaccard overlap of two keyword sets."""
    union = len(a | b)
    return len(a & b) / union if union > 0 else 0.0


def mean_pairwise_similarity(keyword_sets: Sequence[FrozenSet[str]]) -> float:
    """
    Mean Jaccard similarity over all unordered pairs.

    fsum makes the result independent of category order, so the value
    gated here is bit-identical to any later recomputation.
    """
    n = len(keyword_sets)
    if n < 2:
        return 0.0
    sims = [
        jaccard(keyword_sets[i], keyword_sets[j])
        for i in range(n) for j in range(i + 1, n)
    ]
    return math.fsum(sims) / len(sims)


def measure_correlation(categories: Sequence[Category]) -> float:
    """Mean pairwise category correlation (lower is more orthogonal)."""
    return mean_pairwise_similarity([c.keywords for c in categories])


def measure_orthogonality(categories: Sequence[Category]) -> float:
    """Average orthogonality: 1 - mean pairwise similarity."""
    return 1.0 - measure_correlation(categories)


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population std / mean; 0 for empty, single or all-zero input."""
    if len(values) < 2:
        return 0.0
    mean = statistics.fmean(values)
    if mean <= 0:
        return 0.0
    return statistics.pstdev(values) / mean


# =============================================================================
# CLASSIFICATION
# =============================================================================

def _tiebreak(label: str, keywords: FrozenSet[str]) -> Tuple[str, Tuple[str, ...]]:
    return (label, tuple(sorted(keywords)))


def _best(candidates: Sequence[int], keyword_sets: Sequence[FrozenSet[str]],
          tiebreaks: Sequence[Tuple], file_keywords: Set[str]) -> int:
    """Candidate with the largest overlap with the file's keywords."""
    return min(
        candidates,
        key=lambda i: (-len(keyword_sets[i] & file_keywords), tiebreaks[i]),
    )


def classify(keyword_index: KeywordIndex, categories: Sequence[Category]) -> KeywordIndex:
    """
    Assign every occurrence to its best-matching category.

    Candidates are the categories holding the keyword; the winner has
    the largest keyword overlap with the occurrence's file, ties going
    to the smaller ShortLex id. Keywords no category holds stay
    unclassified (category_id None).
    """
    keyword_sets = [c.keywords for c in categories]
    tiebreaks = [shortlex_key(c.id) for c in categories]
    holders: Dict[str, List[int]] = defaultdict(list)
    for i, cat in enumerate(categories):
        for kw in cat.keywords:
            holders[kw].append(i)

    file_keywords = keyword_index.file_keywords()
    classified = []
    for occ in keyword_index.occurrences:
        candidates = holders.get(occ.keyword)
        if not candidates:
            classified.append(occ.classified(None))
            continue
        best = _best(candidates, keyword_sets, tiebreaks,
                     file_keywords[(occ.domain.value, occ.source_path)])
        classified.append(occ.classified(categories[best].id))

    return keyword_index.with_occurrences(classified)


# =============================================================================
# WORKING STATE
# =============================================================================

@dataclass(frozen=True)
class _Node:
    """A category draft; ids are only assigned once the taxonomy is final."""
    label: str
    keywords: FrozenSet[str]

    @property
    def token(self) -> Tuple[str, Tuple[str, ...]]:
        return _tiebreak(self.label, self.keywords)


@dataclass(frozen=True)
class _Group:
    parent: _Node
    children: Tuple[_Node, ...] = ()


State = Tuple[_Group, ...]
Position = Tuple[int, Optional[int]]     # (group index, child index or None)


def _flatten(state: State) -> List[Tuple[Position, _Node]]:
    flat = []
    for gi, group in enumerate(state):
        flat.append(((gi, None), group.parent))
        for ci, child in enumerate(group.children):
            flat.append(((gi, ci), child))
    return flat


def _count(state: State) -> int:
    return sum(1 + len(g.children) for g in state)


def _replace(state: State, updates: Dict[Position, _Node]) -> State:
    groups = []
    for gi, group in enumerate(state):
        parent = updates.get((gi, None), group.parent)
        children = tuple(updates.get((gi, ci), c) for ci, c in enumerate(group.children))
        groups.append(_Group(parent, children))
    return tuple(groups)


class _Scorer:
    """Assignment of index occurrences onto drafts (read-only)."""

    def __init__(self, keyword_index: KeywordIndex):
        self.occurrences = keyword_index.occurrences
        self.file_keywords = keyword_index.file_keywords()
        self.keyword_totals = keyword_index.keyword_totals()

    def units(self, nodes: Sequence[_Node]) -> Tuple[List[int], Dict[Tuple[int, str], int]]:
        """Units per node, plus per (node, keyword) contributions."""
        keyword_sets = [n.keywords for n in nodes]
        tiebreaks = [n.token for n in nodes]
        holders: Dict[str, List[int]] = defaultdict(list)
        for i, node in enumerate(nodes):
            for kw in node.keywords:
                holders[kw].append(i)

        units = [0] * len(nodes)
        contrib: Dict[Tuple[int, str], int] = defaultdict(int)
        for occ in self.occurrences:
            candidates = holders.get(occ.keyword)
            if not candidates:
                continue
            best = _best(candidates, keyword_sets, tiebreaks,
                         self.file_keywords[(occ.domain.value, occ.source_path)])
            units[best] += occ.frequency
            contrib[(best, occ.keyword)] += occ.frequency
        return units, dict(contrib)

    def top_keyword(self, keywords: FrozenSet[str]) -> str:
        return min(keywords, key=lambda k: (-self.keyword_totals.get(k, 0), k))

    def pack(self, keywords: Set[str], bins: int) -> List[FrozenSet[str]]:
        """
        Greedy longest-processing-time packing of keywords into bins.

        Heaviest keywords first, each into the lightest bin; with at
        least `bins` keywords every bin ends up non-empty.
        """
        loads = [0] * bins
        contents: List[Set[str]] = [set() for _ in range(bins)]
        for kw in sorted(keywords, key=lambda k: (-self.keyword_totals.get(k, 0), k)):
            target = min(range(bins), key=lambda b: (loads[b], b))
            contents[target].add(kw)
            loads[target] += max(self.keyword_totals.get(kw, 0), 1)
        return [frozenset(c) for c in contents]


def _evaluate(state: State, scorer: _Scorer) -> Dict[str, Any]:
    nodes = [n for _, n in _flatten(state)]
    units, _ = scorer.units(nodes)
    correlation = mean_pairwise_similarity([n.keywords for n in nodes])
    return {
        "categories": len(nodes),
        "orthogonality": 1.0 - correlation,
        "correlation": correlation,
        "balance_cv": coefficient_of_variation(units),
    }


def _failed_criteria(metrics: Dict[str, Any], target_count: int,
                     config: TrustDebtConfig) -> List[str]:
    failed = []
    if metrics["orthogonality"] < config.orthogonality_threshold:
        failed.append(
            f"orthogonality {metrics['orthogonality']:.3f} < {config.orthogonality_threshold}"
        )
    if metrics["balance_cv"] > config.balance_cv_threshold:
        failed.append(f"balance CV {metrics['balance_cv']:.3f} > {config.balance_cv_threshold}")
    if metrics["categories"] != target_count:
        failed.append(f"{metrics['categories']} categories, target {target_count}")
    return failed


# =============================================================================
# INITIAL PROPOSAL
# =============================================================================

def _allocate(budget: int, capacities: List[int]) -> List[int]:
    """Largest-remainder split of budget in proportion to capacity."""
    total = sum(capacities)
    budget = max(0, min(budget, total))
    if budget == 0:
        return [0] * len(capacities)

    shares = [budget * c / total for c in capacities]
    alloc = [min(int(s), c) for s, c in zip(shares, capacities)]
    order = sorted(range(len(capacities)), key=lambda i: (-(shares[i] - int(shares[i])), i))

    remaining = budget - sum(alloc)
    while remaining > 0:
        progressed = False
        for i in order:
            if remaining == 0:
                break
            if alloc[i] < capacities[i]:
                alloc[i] += 1
                remaining -= 1
                progressed = True
        if not progressed:
            break
    return alloc


def _propose(keyword_index: KeywordIndex, target_count: int,
             scorer: _Scorer) -> Tuple[State, List[str]]:
    """One parent group per topic, children packed from its keyword pool."""
    topics_of = keyword_index.keyword_topics()
    pools: Dict[str, Set[str]] = defaultdict(set)
    for kw in scorer.keyword_totals:
        for topic in topics_of.get(kw) or (UNTAGGED_TOPIC,):
            pools[topic].add(kw)

    topic_units = {t: sum(scorer.keyword_totals[k] for k in pool) for t, pool in pools.items()}
    ranked = sorted(pools, key=lambda t: (-topic_units[t], t))
    kept = ranked[:min(len(ranked), target_count, MAX_PARENTS)]

    notes = []
    covered = set().union(*(pools[t] for t in kept))
    orphans = set(scorer.keyword_totals) - covered
    if orphans:
        notes.append(
            f"{len(orphans)} keyword(s) from {len(ranked) - len(kept)} smaller topic(s) "
            f"left unclassified (target_count {target_count})"
        )

    capacities = [min(len(pools[t]) - 1, MAX_CHILDREN) for t in kept]
    allocation = _allocate(target_count - len(kept), capacities)

    groups = []
    for topic, n_children in zip(kept, allocation):
        bins = scorer.pack(pools[topic], n_children + 1)
        children = tuple(_Node(scorer.top_keyword(b), b) for b in bins[1:])
        groups.append(_Group(_Node(topic, bins[0]), children))
    return tuple(groups), notes


# =============================================================================
# REFINEMENT PASSES
# =============================================================================

def _outranks(a: Position, b: Position) -> bool:
    """Which draft survives a merge: parents beat children, then position."""
    if (a[1] is None) != (b[1] is None):
        return a[1] is None
    return (a[0], -1 if a[1] is None else a[1]) < (b[0], -1 if b[1] is None else b[1])


def _merge_pass(state: State, threshold: float) -> Tuple[State, List[str]]:
    """Merge identical and highly similar pairs, each draft at most once."""
    flat = _flatten(state)
    pairs = []
    for a in range(len(flat)):
        for b in range(a + 1, len(flat)):
            sim = jaccard(flat[a][1].keywords, flat[b][1].keywords)
            # Identical sets always merge, whatever the threshold
            if sim > 0 and (sim >= threshold or sim == 1.0):
                pairs.append((-sim, flat[a][1].token, flat[b][1].token, a, b))
    if not pairs:
        return state, []

    absorbed: Dict[Position, Position] = {}
    extra: Dict[Position, FrozenSet[str]] = defaultdict(frozenset)
    used: Set[int] = set()
    ops = []
    for neg_sim, _, _, a, b in sorted(pairs):
        if a in used or b in used:
            continue
        used.update((a, b))
        (pos_a, node_a), (pos_b, node_b) = flat[a], flat[b]
        if _outranks(pos_a, pos_b):
            survivor, gone, kept_node, gone_node = pos_a, pos_b, node_a, node_b
        else:
            survivor, gone, kept_node, gone_node = pos_b, pos_a, node_b, node_a
        absorbed[gone] = survivor
        extra[survivor] = extra[survivor] | gone_node.keywords
        ops.append(f"merged '{gone_node.label}' into '{kept_node.label}' (similarity {-neg_sim:.2f})")

    def updated(pos: Position, node: _Node) -> _Node:
        if pos in extra:
            return _Node(node.label, node.keywords | extra[pos])
        return node

    children_of: Dict[int, List[_Node]] = {
        gi: [updated((gi, ci), c) for ci, c in enumerate(g.children) if (gi, ci) not in absorbed]
        for gi, g in enumerate(state)
    }
    for gi in range(len(state)):
        if (gi, None) in absorbed:
            # An absorbed parent always merged into another parent
            target_gi = absorbed[(gi, None)][0]
            children_of[target_gi].extend(children_of[gi])
            children_of[gi] = []

    groups = []
    for gi, group in enumerate(state):
        if (gi, None) in absorbed:
            continue
        parent = updated((gi, None), group.parent)
        children = children_of[gi]
        while len(children) > MAX_CHILDREN:
            overflow = min(children, key=lambda c: (len(c.keywords), c.token))
            children.remove(overflow)
            parent = _Node(parent.label, parent.keywords | overflow.keywords)
        groups.append(_Group(parent, tuple(children)))
    return tuple(groups), ops


def _reweight_pass(state: State, scorer: _Scorer) -> Tuple[State, List[str]]:
    """
    Give each shared keyword to a single holder.

    A draft whose only keyword is the shared one keeps it; otherwise the
    least-loaded holder does. No draft is ever emptied.
    """
    flat = _flatten(state)
    nodes = [n for _, n in flat]
    units, _ = scorer.units(nodes)

    holders: Dict[str, List[int]] = defaultdict(list)
    for i, node in enumerate(nodes):
        for kw in node.keywords:
            holders[kw].append(i)

    removals: Dict[int, Set[str]] = defaultdict(set)
    for kw in sorted(k for k, hs in holders.items() if len(hs) > 1):
        hs = holders[kw]
        keeper = min(hs, key=lambda i: (len(nodes[i].keywords) > 1, units[i], nodes[i].token))
        for i in hs:
            if i == keeper:
                continue
            if nodes[i].keywords - removals[i] - {kw}:
                removals[i].add(kw)

    if not any(removals.values()):
        return state, []

    updates = {
        flat[i][0]: _Node(nodes[i].label, nodes[i].keywords - frozenset(dropped))
        for i, dropped in removals.items() if dropped
    }
    moved = sum(len(d) for d in removals.values())
    return _replace(state, updates), [f"reweighted {moved} shared keyword assignment(s)"]


def _split_pass(state: State, scorer: _Scorer, target_count: int) -> Tuple[State, List[str]]:
    """Split the heaviest splittable draft until the target size is reached."""
    ops = []
    while _count(state) < target_count:
        flat = _flatten(state)
        nodes = [n for _, n in flat]
        units, _ = scorer.units(nodes)
        candidates = [
            i for i, (pos, node) in enumerate(flat)
            if len(node.keywords) >= 2 and len(state[pos[0]].children) < MAX_CHILDREN
        ]
        if not candidates:
            break

        i = min(candidates, key=lambda i: (-units[i], -len(nodes[i].keywords), nodes[i].token))
        (gi, ci), node = flat[i]
        keep, spun = scorer.pack(set(node.keywords), 2)
        new_child = _Node(scorer.top_keyword(spun), spun)

        state = _replace(state, {(gi, ci): _Node(node.label, keep)})
        group = state[gi]
        state = state[:gi] + (_Group(group.parent, group.children + (new_child,)),) + state[gi + 1:]
        ops.append(f"split '{new_child.label}' out of '{node.label}'")
    return state, ops


def _rebalance_pass(state: State, scorer: _Scorer, cv_threshold: float) -> Tuple[State, List[str]]:
    """Move keywords from the heaviest to the lightest draft while CV drops."""
    ops = []
    for _ in range(_count(state)):
        flat = _flatten(state)
        nodes = [n for _, n in flat]
        units, contrib = scorer.units(nodes)
        cv = coefficient_of_variation(units)
        if cv <= cv_threshold or len(nodes) < 2:
            break

        splittable = [i for i in range(len(nodes)) if len(nodes[i].keywords) >= 2]
        if not splittable:
            break
        heavy = min(splittable, key=lambda i: (-units[i], nodes[i].token))
        light = min((i for i in range(len(nodes)) if i != heavy),
                    key=lambda i: (units[i], nodes[i].token))
        gap = units[heavy] - units[light]
        options = [
            kw for kw in nodes[heavy].keywords
            if kw not in nodes[light].keywords and 0 < contrib.get((heavy, kw), 0) < gap
        ]
        if not options:
            break

        kw = min(options, key=lambda k: (abs(gap / 2 - contrib[(heavy, k)]), k))
        candidate = _replace(state, {
            flat[heavy][0]: _Node(nodes[heavy].label, nodes[heavy].keywords - {kw}),
            flat[light][0]: _Node(nodes[light].label, nodes[light].keywords | {kw}),
        })
        new_units, _ = scorer.units([n for _, n in _flatten(candidate)])
        if coefficient_of_variation(new_units) >= cv:
            break
        state = candidate
        ops.append(f"moved '{kw}' from '{nodes[heavy].label}' to '{nodes[light].label}'")
    return state, ops


def refine(state: State, scorer: _Scorer, target_count: int,
           config: TrustDebtConfig) -> Tuple[State, List[str]]:
    """One refinement iteration. Pure: returns a new state and what changed."""
    ops: List[str] = []
    state, step = _merge_pass(state, config.merge_similarity_threshold)
    ops.extend(step)
    state, step = _reweight_pass(state, scorer)
    ops.extend(step)
    state, step = _split_pass(state, scorer, target_count)
    ops.extend(step)
    state, step = _rebalance_pass(state, scorer, config.balance_cv_threshold)
    ops.extend(step)
    return state, ops


def _deduplicate(state: State, scorer: _Scorer) -> Tuple[State, List[str]]:
    """
    Merge identical sets and reweight until no keyword is shared.

    Every step drops a draft or a keyword membership, so this ends;
    afterwards keyword sets are disjoint and the taxonomy is no larger
    than the number of distinct keywords.
    """
    ops: List[str] = []
    while True:
        state, merged = _merge_pass(state, 1.0)
        state, reweighted = _reweight_pass(state, scorer)
        if not merged and not reweighted:
            return state, ops
        ops.extend(merged + reweighted)


# =============================================================================
# FINALIZATION
# =============================================================================

def _materialize(state: State, scorer: _Scorer) -> List[Category]:
    """Assign structured ids and ShortLex ranks to the final drafts."""
    flat = _flatten(state)
    units, _ = scorer.units([n for _, n in flat])
    unit_of = {pos: units[i] for i, (pos, _) in enumerate(flat)}
    total_units = sum(units)

    def group_units(gi: int) -> int:
        return unit_of[(gi, None)] + sum(unit_of[(gi, ci)] for ci in range(len(state[gi].children)))

    group_order = sorted(range(len(state)), key=lambda gi: (-group_units(gi), state[gi].parent.token))

    def share(pos: Position) -> float:
        return unit_of[pos] / total_units if total_units > 0 else 0.0

    categories = []
    for letter, gi in enumerate(group_order):
        group = state[gi]
        pid = parent_code(letter)
        categories.append(Category(
            id=pid, keywords=group.parent.keywords, label=group.parent.label,
            weight=share((gi, None)),
        ))
        child_order = sorted(
            range(len(group.children)),
            key=lambda ci: (-unit_of[(gi, ci)], group.children[ci].token),
        )
        for k, ci in enumerate(child_order):
            child = group.children[ci]
            categories.append(Category(
                id=child_id(pid, k), keywords=child.keywords, label=child.label,
                parent_id=pid, weight=share((gi, ci)),
            ))

    budget = 1.0 / len(categories) if categories else 0.0
    return assign_ranks(
        Category(id=c.id, keywords=c.keywords, label=c.label, parent_id=c.parent_id,
                 weight=c.weight, unit_budget=budget)
        for c in categories
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def generate(keyword_index: KeywordIndex, target_count: Optional[int] = None,
             config: Optional[TrustDebtConfig] = None) -> TaxonomyResult:
    """
    Generate a ShortLex-ranked taxonomy from a keyword index.

    Args:
        keyword_index: Output of the keyword indexer
        target_count: Desired number of categories (default: config)
        config: Thresholds and the refinement iteration cap

    Returns:
        TaxonomyResult; converged is False unless orthogonality, balance
        and size all meet their targets

    Raises:
        ValidationError: target_count is not a positive integer
        EmptyIndexError: nothing to build categories from
    """
    config = config or TrustDebtConfig()
    target = config.target_count if target_count is None else target_count
    if isinstance(target, bool) or not isinstance(target, int) or target <= 0:
        raise ValidationError("target_count", f"must be a positive integer (got {target!r})")
    if keyword_index.is_empty:
        raise EmptyIndexError()

    scorer = _Scorer(keyword_index)
    state, notes = _propose(keyword_index, target, scorer)
    metrics = _evaluate(state, scorer)
    history = [dict(iteration=0, operations=["initial proposal"], **metrics)]

    iterations = 0
    while _failed_criteria(metrics, target, config) and iterations < config.max_refinement_iterations:
        state, ops = refine(state, scorer, target, config)
        if not ops:
            notes.append(f"Refinement stopped after {iterations} iteration(s): no pass applies")
            break
        iterations += 1
        metrics = _evaluate(state, scorer)
        history.append(dict(iteration=iterations, operations=ops, **metrics))
        logger.debug(f"Refinement iteration {iterations}: {len(ops)} operation(s)")

    state, ops = _deduplicate(state, scorer)
    if ops:
        metrics = _evaluate(state, scorer)
        history.append(dict(iteration=iterations, operations=["final deduplication"] + ops, **metrics))

    failed = _failed_criteria(metrics, target, config)
    converged = not failed
    if not converged:
        distinct = len(scorer.keyword_totals)
        if distinct < target:
            failed.append(f"only {distinct} distinct keyword(s) available")
        notes.append("Taxonomy did not converge: " + "; ".join(failed))
        logger.warning(notes[-1], extra={"stage_id": "taxonomy", "status": "degraded"})

    categories = _materialize(state, scorer)
    correlation = measure_correlation(categories)

    logger.info(
        f"Generated {len(categories)} categories in {iterations} iteration(s) "
        f"(orthogonality={1.0 - correlation:.3f}, cv={metrics['balance_cv']:.3f}, converged={converged})"
    )

    return TaxonomyResult(
        categories=tuple(categories),
        converged=converged,
        orthogonality=1.0 - correlation,
        correlation=correlation,
        balance_cv=metrics["balance_cv"],
        iterations=iterations,
        target_count=target,
        history=tuple(history),
        notes=tuple(notes),
    )


__all__ = [
    "generate",
    "refine",
    "classify",
    "jaccard",
    "mean_pairwise_similarity",
    "measure_correlation",
    "measure_orthogonality",
    "coefficient_of_variation",
]
