"""
Trust Debt Engine - Timeline Analyzer v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Replays a cheap version of the pipeline across historical commits.

The repository is anything with list_commits() (oldest first) and
read_state(commit) -> corpus. Each sampled commit is scored with a
formula(corpus) -> GradeResult; the default formula re-indexes the
corpus and classifies it against the current taxonomy instead of
regenerating one. A commit that cannot be replayed becomes a gap.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, Dict, List, Any, Optional, Sequence, Tuple

from .core.config import TrustDebtConfig
from .core.types import Category, GradeResult, TimelineEntry, TimelineResult
from .errors import CorpusError, EmptyIndexError, HistoryError
from .grading import grade
from .indexer import index
from .matrix import build
from .taxonomy import classify

logger = logging.getLogger(__name__)

Formula = Callable[[Any], GradeResult]

# Relative change in total drift treated as noise
TREND_TOLERANCE = 0.05


# =============================================================================
# FORMULA
# =============================================================================

def approximate_formula(categories: Sequence[Category],
                        config: Optional[TrustDebtConfig] = None) -> Formula:
    """
    Score a historical corpus against a fixed taxonomy.

    Skips taxonomy generation entirely, so every timeline point is
    measured in the same categories as the current run.
    """
    config = config or TrustDebtConfig()
    categories = tuple(categories)

    def formula(corpus) -> GradeResult:
        keyword_index = classify(index(corpus, config), categories)
        return grade(build(categories, keyword_index, config), config)

    return formula


# =============================================================================
# SAMPLING
# =============================================================================

def sample_commits(commits: Sequence[Any], every: int, max_commits: int) -> List[Tuple[int, Any]]:
    """
    Every Nth commit plus the newest, thinned evenly to max_commits.

    Returns (position, commit) pairs in history order.
    """
    if not commits:
        return []
    every = max(1, every)
    positions = sorted(set(range(0, len(commits), every)) | {len(commits) - 1})

    if len(positions) > max_commits:
        if max_commits <= 1:
            positions = [positions[-1]]
        else:
            step = (len(positions) - 1) / (max_commits - 1)
            positions = sorted({positions[round(k * step)] for k in range(max_commits)})

    return [(p, commits[p]) for p in positions]


def _epoch(timestamp: str) -> float:
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return math.inf
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


# =============================================================================
# TREND
# =============================================================================

def summarise_trend(entries: Sequence[TimelineEntry]) -> Dict[str, Any]:
    """First/last totals, delta and direction (lower drift is improving)."""
    if len(entries) < 2:
        return {"points": len(entries), "direction": "insufficient_data"}

    first = entries[0].grade_snapshot["total_drift_units"]
    last = entries[-1].grade_snapshot["total_drift_units"]
    delta = last - first
    if abs(delta) <= TREND_TOLERANCE * max(abs(first), 1.0):
        direction = "stable"
    elif delta < 0:
        direction = "improving"
    else:
        direction = "worsening"

    return {
        "points": len(entries),
        "first_total": first,
        "last_total": last,
        "delta": delta,
        "first_grade": entries[0].grade_snapshot["grade"],
        "last_grade": entries[-1].grade_snapshot["grade"],
        "direction": direction,
    }


# =============================================================================
# HISTORY
# =============================================================================

def history(repo, formula: Formula, config: Optional[TrustDebtConfig] = None) -> TimelineResult:
    """
    Walk sampled commits oldest to newest and score each one.

    Args:
        repo: Object with list_commits() and read_state(commit)
        formula: Callable corpus -> GradeResult
        config: Sampling limits and worker count

    Returns:
        TimelineResult with entries sorted by timestamp, gaps for
        skipped commits and a trend summary

    Raises:
        HistoryError: the commit list itself cannot be read
    """
    config = config or TrustDebtConfig()
    commits = list(repo.list_commits())
    sampled = sample_commits(commits, config.timeline_sample_every, config.timeline_max_commits)
    logger.info(f"Replaying {len(sampled)} of {len(commits)} commits")

    def _replay(item: Tuple[int, Any]):
        position, commit = item
        try:
            corpus = repo.read_state(commit)
            result = formula(corpus)
        except (HistoryError, CorpusError, EmptyIndexError) as e:
            reason = getattr(e, "reason", None) or str(e)
            logger.warning(
                f"Timeline gap at {commit.hash[:12]}: {reason}",
                extra={"commit_hash": commit.hash, "status": "skipped"},
            )
            return position, None, {"commit_hash": commit.hash, "reason": reason}

        entry = TimelineEntry(
            commit_hash=commit.hash,
            timestamp=commit.timestamp,
            grade_snapshot=result.snapshot(),
            subject=getattr(commit, "subject", ""),
        )
        return position, entry, None

    with ThreadPoolExecutor(max_workers=config.workers) as pool:
        results = list(pool.map(_replay, sampled))

    entries = sorted(
        ((position, entry) for position, entry, _ in results if entry is not None),
        key=lambda pe: (_epoch(pe[1].timestamp), pe[0]),
    )
    ordered = [entry for _, entry in entries]
    gaps = [gap for _, _, gap in results if gap is not None]

    if gaps:
        logger.warning(f"Timeline skipped {len(gaps)} commit(s)", extra={"status": "degraded"})

    return TimelineResult(
        entries=tuple(ordered),
        gaps=tuple(gaps),
        trend=summarise_trend(ordered),
    )


__all__ = [
    "history",
    "approximate_formula",
    "sample_commits",
    "summarise_trend",
    "TREND_TOLERANCE",
]
