# trustdebt_engine/errors.py
"""
Trust Debt - Custom Exceptions v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Error types for pipeline operations.
Each exception includes both a technical message (for logs) and
a user-friendly message (for artifact notes and reports).

Input errors are recoverable and handled where they occur.
Validation and configuration errors are fatal and surface to the top.
"""

from typing import List


class TrustDebtError(Exception):
    """Base exception for Trust Debt errors."""

    def __init__(self, message: str, user_message: str = None, exit_code: int = 1):
        super().__init__(message)
        self.user_message = user_message or message
        self.exit_code = exit_code


# =============================================================================
# INPUT ERRORS (recoverable)
# =============================================================================

class CorpusError(TrustDebtError):
    """Corpus input errors."""
    pass


class UnreadableFileError(CorpusError):
    """Corpus file missing, unreadable or undecodable."""

    def __init__(self, path: str, reason: str = ""):
        reason_suffix = f": {reason}" if reason else ""
        super().__init__(
            f"Unreadable corpus file {path}{reason_suffix}",
            f"Skipped '{path}' because it could not be read{reason_suffix}. "
            f"It was excluded from this run.",
            0
        )
        self.path = path
        self.reason = reason


# =============================================================================
# HISTORY ERRORS (recoverable per commit)
# =============================================================================

class HistoryError(TrustDebtError):
    """Version-control history errors."""
    pass


class CommitReplayError(HistoryError):
    """A historical commit could not be replayed."""

    def __init__(self, commit_hash: str, reason: str):
        super().__init__(
            f"Commit {commit_hash[:12]} could not be replayed: {reason}",
            f"Commit {commit_hash[:12]} was skipped ({reason}).",
            0
        )
        self.commit_hash = commit_hash
        self.reason = reason


# =============================================================================
# VALIDATION ERRORS (fatal)
# =============================================================================

class ValidationError(TrustDebtError):
    """Input validation failed."""

    def __init__(self, field: str, issue: str):
        super().__init__(
            f"Validation error: {field} - {issue}",
            f"Invalid input for '{field}': {issue}",
            2
        )
        self.field = field
        self.issue = issue


class MissingFieldError(ValidationError):
    """Required field is missing."""

    def __init__(self, field: str):
        super().__init__(
            field,
            f"'{field}' is required but was not provided."
        )


class ArtifactValidationError(ValidationError):
    """Upstream stage artifact is absent or structurally invalid."""

    def __init__(self, stage_id: str, issue: str):
        super().__init__(f"artifact[{stage_id}]", issue)
        self.stage_id = stage_id


class EmptyIndexError(ValidationError):
    """Keyword index has nothing to build a taxonomy from."""

    def __init__(self):
        super().__init__(
            "keyword_index",
            "no keyword occurrences were found in either corpus; "
            "a taxonomy cannot be derived from an empty index"
        )


class OrthogonalityMismatchError(ValidationError):
    """Orthogonality recomputed at grading differs from the taxonomy gate."""

    def __init__(self, recorded: float, recomputed: float):
        super().__init__(
            "orthogonality_score",
            f"taxonomy recorded {recorded:.6f} but grading recomputed {recomputed:.6f}"
        )
        self.recorded = recorded
        self.recomputed = recomputed


# =============================================================================
# CONFIGURATION ERRORS (fatal)
# =============================================================================

class ConfigurationError(TrustDebtError):
    """Configuration is invalid."""

    def __init__(self, errors: List[str]):
        error_summary = "; ".join(errors[:3])
        if len(errors) > 3:
            error_summary += f" (+{len(errors) - 3} more)"
        super().__init__(
            f"Invalid configuration: {error_summary}",
            "The pipeline configuration is invalid:\n" +
            "\n".join(f"  - {e}" for e in errors),
            2
        )
        self.errors = errors


class GradeBoundaryError(ConfigurationError):
    """Grade boundary table is not contiguous, overlapping or incomplete."""
    pass


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = [
    # Base
    "TrustDebtError",
    # Input
    "CorpusError",
    "UnreadableFileError",
    # History
    "HistoryError",
    "CommitReplayError",
    # Validation
    "ValidationError",
    "MissingFieldError",
    "ArtifactValidationError",
    "EmptyIndexError",
    "OrthogonalityMismatchError",
    # Configuration
    "ConfigurationError",
    "GradeBoundaryError",
]
