"""
Trust Debt Engine - Pipeline v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Sequential batch orchestration over persisted stage artifacts.

Each stage reads its upstream artifacts from the store, validates the
fields it needs, runs a pure stage function and writes its own artifact.
State flows through an immutable PipelineContext; a stage returns a new
context rather than mutating anything shared.

Stages:
    corpus -> keyword_index -> taxonomy -> matrix -> grade
    -> timeline (only with a repository) -> narrative
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, List, Any, Optional, Sequence, Tuple

from ingestion import Corpus, load_corpus

from .artifacts import ArtifactStore, STAGES
from .core.config import TrustDebtConfig
from .core.types import (
    ArtifactStatus,
    Category,
    GradeResult,
    KeywordIndex,
    Matrix,
    TaxonomyResult,
    TimelineResult,
)
from .errors import HistoryError, MissingFieldError, TrustDebtError, ValidationError
from .grading import grade
from .indexer import index, summarise_index
from .logging_utils import Timer, make_run_id, set_run_id
from .matrix import build
from .narrative import narrate
from .taxonomy import generate
from .timeline import approximate_formula, history

logger = logging.getLogger(__name__)


# Payload fields a downstream stage relies on
REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "corpus": ("intent", "reality", "skipped"),
    "keyword_index": ("occurrences", "skipped"),
    "taxonomy": ("categories", "converged", "orthogonality", "correlation", "balance_cv"),
    "matrix": ("categories", "cells", "diagonal_weight", "unit_scale", "taxonomy_converged"),
    "grade": ("total_drift_units", "upper_triangle_sum", "lower_triangle_sum",
              "diagonal_sum", "asymmetry_ratio", "orthogonality_score", "grade"),
    "timeline": ("entries", "gaps", "trend"),
    "narrative": ("recommendations", "summary", "notices"),
}


# =============================================================================
# CONTEXT
# =============================================================================

@dataclass(frozen=True)
class PipelineContext:
    """Immutable run state: config, store, run id and written artifacts."""
    config: TrustDebtConfig
    store: ArtifactStore
    run_id: str
    artifacts: Tuple[Tuple[str, str], ...] = ()

    def with_artifact(self, stage_id: str, path: Path) -> "PipelineContext":
        kept = tuple((s, p) for s, p in self.artifacts if s != stage_id)
        return replace(self, artifacts=kept + ((stage_id, str(path)),))

    def has(self, stage_id: str) -> bool:
        return any(s == stage_id for s, _ in self.artifacts)


def new_context(config: Optional[TrustDebtConfig] = None,
                store: Optional[ArtifactStore] = None,
                run_id: Optional[str] = None) -> PipelineContext:
    """Validate config, bind the run id to logging and start a context."""
    config = (config or TrustDebtConfig()).validate()
    if store is None:
        raise MissingFieldError("store")
    run_id = set_run_id(run_id or make_run_id(store.clock()))
    return PipelineContext(config=config, store=store, run_id=run_id)


# =============================================================================
# STAGE FUNCTIONS
# =============================================================================

StageOutput = Tuple[Dict[str, Any], ArtifactStatus, List[str]]


def _load(context: PipelineContext, stage_id: str) -> Dict[str, Any]:
    return context.store.read(stage_id, REQUIRED_FIELDS[stage_id])["payload"]


def _stage_corpus(context: PipelineContext, intent_paths: Sequence[Path] = (),
                  reality_paths: Sequence[Path] = (), repo_path: Optional[Path] = None,
                  **_) -> StageOutput:
    corpus = load_corpus(
        [Path(p) for p in intent_paths], [Path(p) for p in reality_paths],
        context.config, repo_path=repo_path,
    )
    notes = list(corpus.notes) + [f"Skipped {s}" for s in corpus.skipped]
    status = ArtifactStatus.DEGRADED if corpus.skipped else ArtifactStatus.OK
    return corpus.to_dict(), status, notes


def _stage_keyword_index(context: PipelineContext, **_) -> StageOutput:
    corpus = Corpus.from_dict(_load(context, "corpus"))
    keyword_index = index(corpus, context.config)
    payload = keyword_index.to_dict()
    payload["summary"] = summarise_index(keyword_index)
    status = ArtifactStatus.DEGRADED if keyword_index.skipped else ArtifactStatus.OK
    return payload, status, [f"Skipped {s}" for s in keyword_index.skipped]


def _stage_taxonomy(context: PipelineContext, **_) -> StageOutput:
    keyword_index = KeywordIndex.from_dict(_load(context, "keyword_index"))
    result = generate(keyword_index, config=context.config)
    status = ArtifactStatus.OK if result.converged else ArtifactStatus.DEGRADED
    return result.to_dict(), status, list(result.notes)


def _stage_matrix(context: PipelineContext, **_) -> StageOutput:
    taxonomy = TaxonomyResult.from_dict(_load(context, "taxonomy"))
    keyword_index = KeywordIndex.from_dict(_load(context, "keyword_index"))
    matrix = build(
        taxonomy.categories, keyword_index, context.config,
        taxonomy_converged=taxonomy.converged,
        orthogonality_score=taxonomy.orthogonality,
    )
    if taxonomy.converged:
        return matrix.to_dict(), ArtifactStatus.OK, []
    return matrix.to_dict(), ArtifactStatus.DEGRADED, ["Built over a non-converged taxonomy"]


def _stage_grade(context: PipelineContext, **_) -> StageOutput:
    taxonomy = _load(context, "taxonomy")
    matrix = Matrix.from_dict(_load(context, "matrix"))
    result = grade(matrix, context.config, taxonomy_orthogonality=taxonomy["orthogonality"])
    status = ArtifactStatus.OK if result.taxonomy_converged else ArtifactStatus.DEGRADED
    return result.to_dict(), status, list(result.notes)


def _stage_timeline(context: PipelineContext, repo=None, formula=None, **_) -> StageOutput:
    if repo is None:
        raise MissingFieldError("repo")
    if formula is None:
        taxonomy = _load(context, "taxonomy")
        categories = [Category.from_dict(c) for c in taxonomy["categories"]]
        formula = approximate_formula(categories, context.config)

    try:
        result = history(repo, formula, context.config)
    except HistoryError as e:
        logger.warning(f"Commit history unavailable: {e}", extra={"stage_id": "timeline"})
        empty = TimelineResult(entries=(), gaps=(), trend={"points": 0, "direction": "insufficient_data"})
        return empty.to_dict(), ArtifactStatus.DEGRADED, [e.user_message]

    notes = [f"Skipped commit {g['commit_hash'][:12]}: {g['reason']}" for g in result.gaps]
    status = ArtifactStatus.DEGRADED if result.gaps else ArtifactStatus.OK
    return result.to_dict(), status, notes


def _timeline_available(context: PipelineContext) -> bool:
    """
    Whether the narrative should read the timeline artifact.

    A context that graded in this run only trusts a timeline it also
    wrote; one resumed from the store (stages run one at a time) uses
    whatever timeline the namespace holds, unless that stage failed.
    """
    if context.has("timeline"):
        return True
    if context.has("grade") or not context.store.exists("timeline"):
        return False
    return context.store.read_status("timeline") != ArtifactStatus.FAILED


def _stage_narrative(context: PipelineContext, **_) -> StageOutput:
    matrix = Matrix.from_dict(_load(context, "matrix"))
    grade_result = GradeResult.from_dict(_load(context, "grade"))
    timeline = None
    if _timeline_available(context):
        timeline = TimelineResult.from_dict(_load(context, "timeline"))

    result = narrate(matrix, grade_result, timeline, context.config)
    converged = matrix.taxonomy_converged and grade_result.taxonomy_converged
    status = ArtifactStatus.OK if converged else ArtifactStatus.DEGRADED
    return result.to_dict(), status, list(result.notices)


STAGE_FUNCTIONS = {
    "corpus": _stage_corpus,
    "keyword_index": _stage_keyword_index,
    "taxonomy": _stage_taxonomy,
    "matrix": _stage_matrix,
    "grade": _stage_grade,
    "timeline": _stage_timeline,
    "narrative": _stage_narrative,
}


# =============================================================================
# RUNNING
# =============================================================================

def run_stage(stage_id: str, context: PipelineContext, **inputs) -> PipelineContext:
    """
    Run one stage against the store and return the extended context.

    A fatal error is persisted as a failed artifact (so downstream reads
    refuse it) and then re-raised.
    """
    if stage_id not in STAGE_FUNCTIONS:
        raise ValidationError("stage_id", f"unknown stage {stage_id!r}; expected one of {', '.join(STAGES)}")

    with Timer(logger, f"stage {stage_id}", level=logging.INFO, stage_id=stage_id):
        try:
            payload, status, notes = STAGE_FUNCTIONS[stage_id](context, **inputs)
        except TrustDebtError as e:
            context.store.write(stage_id, {}, ArtifactStatus.FAILED, [e.user_message])
            logger.error(f"Stage {stage_id} failed: {e}", extra={"stage_id": stage_id, "status": "failed"})
            raise

        path = context.store.write(stage_id, payload, status, notes)

    if status != ArtifactStatus.OK:
        logger.warning(
            f"Stage {stage_id} completed with {len(notes)} note(s)",
            extra={"stage_id": stage_id, "status": status.value},
        )
    return context.with_artifact(stage_id, path)


def run_full(intent_paths: Sequence[Path], reality_paths: Sequence[Path],
             config: Optional[TrustDebtConfig] = None,
             store: Optional[ArtifactStore] = None,
             repo=None, repo_path: Optional[Path] = None) -> PipelineContext:
    """
    Run every stage in order and write the pipeline summary.

    Args:
        intent_paths: Documentation files or directories
        reality_paths: Source files or directories
        config: Pipeline config (validated before anything runs)
        store: Artifact store for this run's namespace
        repo: Commit history source; the timeline stage runs only if given
        repo_path: Repository for commit messages in Reality, when enabled

    Returns:
        Final PipelineContext listing every artifact written
    """
    context = new_context(config, store)
    logger.info(f"Starting pipeline run {context.run_id}")

    context = run_stage("corpus", context, intent_paths=intent_paths,
                        reality_paths=reality_paths, repo_path=repo_path)
    for stage_id in ("keyword_index", "taxonomy", "matrix", "grade"):
        context = run_stage(stage_id, context)
    if repo is not None:
        context = run_stage("timeline", context, repo=repo)
    context = run_stage("narrative", context)

    summary = {
        "run_id": context.run_id,
        "namespace": context.store.namespace,
        "stages": [
            {
                "stage_id": stage_id,
                "status": context.store.read(stage_id)["status"],
                "path": Path(path).name,
            }
            for stage_id, path in context.artifacts
        ],
    }
    grade_payload = _load(context, "grade")
    summary["grade"] = grade_payload["grade"]
    summary["total_drift_units"] = grade_payload["total_drift_units"]
    context.store.write_summary(summary)

    logger.info(f"Pipeline run {context.run_id} finished: grade {summary['grade']}")
    return context


__all__ = [
    "PipelineContext",
    "new_context",
    "run_stage",
    "run_full",
    "STAGES",
    "REQUIRED_FIELDS",
]
