"""
Trust Debt Engine - Intent/Reality Drift Measurement v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Commercial licenses available: brent@ehkolabs.io

Measures how far a codebase has drifted from its documentation by
comparing keyword signals in two corpora: Intent (docs, specs, READMEs)
and Reality (source files, commit history).

Stages:
- Corpus: load both file sets (see the ingestion package)
- Keyword index: topic-tagged regex extraction
- Taxonomy: orthogonal, balanced, ShortLex-ranked categories
- Matrix: asymmetric Intent/Reality drift matrix
- Grade: triangle sums, asymmetry and letter grade
- Timeline: cheap replay across historical commits
- Narrative: ranked one-sided drift findings

The orchestrator lives in trustdebt_engine.pipeline and is imported
explicitly, since it depends on the ingestion package.
"""

__version__ = '1.0.0'


# =============================================================================
# CORE API
# =============================================================================

from .core import (
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
    # Config
    TrustDebtConfig,
    # Ordering
    shortlex_key,
    assign_ranks,
)


# =============================================================================
# STAGES
# =============================================================================

from .indexer import index, extract_keywords, KeywordIndexer
from .taxonomy import generate, classify, measure_orthogonality, measure_correlation
from .matrix import build
from .grading import grade, GradeTable, grade_boundary_errors
from .timeline import history, approximate_formula
from .narrative import narrate


# =============================================================================
# INFRASTRUCTURE
# =============================================================================

from .artifacts import ArtifactStore, STAGES
from .git_history import Commit, GitRepository
from .config_validator import load_config_from_env, validate_on_startup
from .logging_utils import setup_logging, set_run_id, get_run_id
from .errors import (
    TrustDebtError,
    CorpusError,
    UnreadableFileError,
    HistoryError,
    CommitReplayError,
    ValidationError,
    MissingFieldError,
    ArtifactValidationError,
    EmptyIndexError,
    OrthogonalityMismatchError,
    ConfigurationError,
    GradeBoundaryError,
)


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    '__version__',
    # Enums
    'Domain',
    'Triangle',
    'ArtifactStatus',
    # Types
    'Category',
    'TaxonomyResult',
    'KeywordOccurrence',
    'KeywordIndex',
    'MatrixCell',
    'Matrix',
    'GradeResult',
    'TimelineEntry',
    'TimelineResult',
    'Recommendation',
    'Narrative',
    'TrustDebtConfig',
    'shortlex_key',
    'assign_ranks',
    # Stages
    'index',
    'extract_keywords',
    'KeywordIndexer',
    'generate',
    'classify',
    'measure_orthogonality',
    'measure_correlation',
    'build',
    'grade',
    'GradeTable',
    'grade_boundary_errors',
    'history',
    'approximate_formula',
    'narrate',
    # Infrastructure
    'ArtifactStore',
    'STAGES',
    'Commit',
    'GitRepository',
    'load_config_from_env',
    'validate_on_startup',
    'setup_logging',
    'set_run_id',
    'get_run_id',
    # Errors
    'TrustDebtError',
    'CorpusError',
    'UnreadableFileError',
    'HistoryError',
    'CommitReplayError',
    'ValidationError',
    'MissingFieldError',
    'ArtifactValidationError',
    'EmptyIndexError',
    'OrthogonalityMismatchError',
    'ConfigurationError',
    'GradeBoundaryError',
]
