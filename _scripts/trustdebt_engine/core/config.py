"""
Trust Debt Core - Configuration v1.0

Copyright (c) 2025 Brent Lefebure / EhkoLabs
Licensed under AGPLv3 - See LICENSE in repository root

Pipeline configuration. Every tuneable the stages use lives here,
is loadable from JSON or YAML, and is validated before a run starts.
"""

from dataclasses import dataclass, field, asdict
from typing import Dict, Any, List
import json
from pathlib import Path

import yaml

from ..errors import ConfigurationError, GradeBoundaryError


DEFAULT_GRADE_BOUNDARIES = [
    {"grade": "A", "min": 0, "max": 500, "label": "EXCELLENT"},
    {"grade": "B", "min": 501, "max": 1500, "label": "GOOD"},
    {"grade": "C", "min": 1501, "max": 3000, "label": "NEEDS ATTENTION"},
    {"grade": "D", "min": 3001, "max": None, "label": "REQUIRES WORK"},
]

# 26 parents, each with up to 26 children
MAX_TARGET_COUNT = 26 * 27

INTEGER_FIELDS = (
    "max_file_bytes", "commit_limit", "min_keyword_length", "context_chars",
    "target_count", "max_refinement_iterations", "max_recommendations",
    "timeline_sample_every", "timeline_max_commits", "workers",
)

NUMBER_FIELDS = (
    "orthogonality_threshold", "balance_cv_threshold", "merge_similarity_threshold",
    "diagonal_weight", "unit_scale", "epsilon", "orthogonality_legitimacy",
    "coherence_tolerance", "coherence_threshold", "cold_spot_threshold",
    "hot_value_threshold", "near_zero_threshold", "large_effort_share",
    "medium_effort_share",
)

UNIT_INTERVAL_FIELDS = (
    "orthogonality_threshold", "merge_similarity_threshold",
    "coherence_tolerance", "coherence_threshold",
    "cold_spot_threshold", "hot_value_threshold", "near_zero_threshold",
    "large_effort_share", "medium_effort_share",
    "orthogonality_legitimacy",
)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class TrustDebtConfig:
    """
    Configuration for a Trust Debt pipeline run.

    All thresholds and limits are tuneable. Defaults are sensible
    starting points for a mid-sized repository.
    """

    # =========================================================================
    # CORPUS
    # =========================================================================

    intent_globs: List[str] = field(default_factory=lambda: [
        "*.md", "*.markdown", "*.rst", "*.txt",
    ])
    reality_globs: List[str] = field(default_factory=lambda: [
        "*.py", "*.js", "*.ts", "*.jsx", "*.tsx", "*.go", "*.rs",
        "*.java", "*.rb", "*.c", "*.h", "*.cpp", "*.sh",
    ])
    exclude_dirs: List[str] = field(default_factory=lambda: [
        ".git", "node_modules", "__pycache__", ".venv", "venv", "dist", "build",
    ])
    max_file_bytes: int = 2_000_000            # Skip larger files with a warning
    include_commit_messages: bool = False      # Add recent commit messages to Reality
    commit_limit: int = 100

    # =========================================================================
    # KEYWORD INDEX
    # =========================================================================

    min_keyword_length: int = 3
    context_chars: int = 50                    # Snippet radius around a match

    # =========================================================================
    # TAXONOMY
    # =========================================================================

    target_count: int = 20
    orthogonality_threshold: float = 0.95      # Mean 1 - Jaccard must reach this
    balance_cv_threshold: float = 0.30         # CV of category units must stay under
    max_refinement_iterations: int = 7         # Hard cap on the refinement loop
    merge_similarity_threshold: float = 0.5    # Jaccard at or above merges a pair

    # =========================================================================
    # MATRIX & GRADING
    # =========================================================================

    diagonal_weight: float = 2.0               # Self-consistency importance, > 1
    unit_scale: float = 100.0                  # Densities expressed in points
    epsilon: float = 1e-9
    grade_boundaries: List[Dict[str, Any]] = field(
        default_factory=lambda: [dict(b) for b in DEFAULT_GRADE_BOUNDARIES]
    )
    orthogonality_legitimacy: float = 0.10     # Correlation below this is legitimate
    coherence_tolerance: float = 0.05          # |intent - reality| share per category
    coherence_threshold: float = 0.7

    # =========================================================================
    # NARRATIVE
    # =========================================================================

    cold_spot_threshold: float = 0.01          # Share of unit_scale
    hot_value_threshold: float = 0.10
    near_zero_threshold: float = 0.01
    large_effort_share: float = 0.25           # Share of total drift
    medium_effort_share: float = 0.05
    max_recommendations: int = 20

    # =========================================================================
    # TIMELINE & EXECUTION
    # =========================================================================

    timeline_sample_every: int = 10
    timeline_max_commits: int = 50
    workers: int = 4

    # =========================================================================
    # METHODS
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrustDebtConfig":
        """Create config from dictionary. Unknown keys are rejected."""
        known = set(cls.__dataclass_fields__)
        unknown = sorted(k for k in data if k not in known)
        if unknown:
            raise ConfigurationError([f"Unknown config key: {k}" for k in unknown])
        return cls(**data)

    def save(self, path: Path) -> None:
        """Save config to JSON or YAML file (by suffix)."""
        path = Path(path)
        with open(path, 'w', encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                yaml.safe_dump(self.to_dict(), f, sort_keys=True)
            else:
                json.dump(self.to_dict(), f, indent=2, sort_keys=True)

    @classmethod
    def load(cls, path: Path) -> "TrustDebtConfig":
        """Load config from JSON or YAML file (by suffix)."""
        path = Path(path)
        with open(path, 'r', encoding="utf-8") as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
        if not isinstance(data, dict):
            raise ConfigurationError([f"{path} must contain a mapping of settings"])
        return cls.from_dict(data)

    def validate(self) -> "TrustDebtConfig":
        """
        Check every setting and raise on the first invalid config.

        All problems are collected before raising so the diagnostic
        lists them together. A setting of the wrong type is reported
        once and its range checks are skipped. Returns self for chaining.
        """
        from ..grading import grade_boundary_errors

        errors = []
        mistyped = set()

        for name in INTEGER_FIELDS:
            value = getattr(self, name)
            if not _is_int(value):
                errors.append(f"{name} must be an integer (got {value!r})")
                mistyped.add(name)
        for name in NUMBER_FIELDS:
            value = getattr(self, name)
            if not _is_number(value):
                errors.append(f"{name} must be a number (got {value!r})")
                mistyped.add(name)
        if not isinstance(self.include_commit_messages, bool):
            errors.append(f"include_commit_messages must be true or false (got {self.include_commit_messages!r})")
        for name in ("intent_globs", "reality_globs", "exclude_dirs"):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                errors.append(f"{name} must be a list of strings")
                mistyped.add(name)

        def ok(*names: str) -> bool:
            return not mistyped.intersection(names)

        if ok("target_count"):
            if self.target_count <= 0:
                errors.append(f"target_count must be a positive integer (got {self.target_count!r})")
            elif self.target_count > MAX_TARGET_COUNT:
                errors.append(f"target_count must be at most {MAX_TARGET_COUNT} (got {self.target_count})")

        for name in UNIT_INTERVAL_FIELDS:
            value = getattr(self, name)
            if ok(name) and not 0.0 <= value <= 1.0:
                errors.append(f"{name} must be within [0, 1] (got {value})")

        if ok("balance_cv_threshold") and self.balance_cv_threshold < 0:
            errors.append(f"balance_cv_threshold must be >= 0 (got {self.balance_cv_threshold})")
        if ok("max_refinement_iterations") and self.max_refinement_iterations < 0:
            errors.append("max_refinement_iterations must be a non-negative integer")
        if ok("diagonal_weight") and self.diagonal_weight <= 1.0:
            errors.append(f"diagonal_weight must be greater than 1 (got {self.diagonal_weight})")
        if ok("unit_scale") and self.unit_scale <= 0:
            errors.append(f"unit_scale must be positive (got {self.unit_scale})")
        if ok("epsilon") and self.epsilon <= 0:
            errors.append(f"epsilon must be positive (got {self.epsilon})")
        if ok("medium_effort_share", "large_effort_share") and self.medium_effort_share > self.large_effort_share:
            errors.append("medium_effort_share must not exceed large_effort_share")
        if ok("near_zero_threshold", "hot_value_threshold") and self.near_zero_threshold >= self.hot_value_threshold:
            errors.append("near_zero_threshold must be below hot_value_threshold")
        if ok("min_keyword_length") and self.min_keyword_length < 1:
            errors.append("min_keyword_length must be at least 1")
        if ok("context_chars") and self.context_chars < 0:
            errors.append("context_chars must not be negative")
        for name in ("workers", "timeline_sample_every", "timeline_max_commits",
                     "commit_limit", "max_file_bytes", "max_recommendations"):
            if ok(name) and getattr(self, name) < 1:
                errors.append(f"{name} must be at least 1")
        if ok("intent_globs", "reality_globs") and (not self.intent_globs or not self.reality_globs):
            errors.append("intent_globs and reality_globs must not be empty")

        boundary_errors = grade_boundary_errors(self.grade_boundaries)
        if boundary_errors:
            raise GradeBoundaryError(boundary_errors + errors)
        if errors:
            raise ConfigurationError(errors)
        return self

    @classmethod
    def for_testing(cls) -> "TrustDebtConfig":
        """Small, fast config for tests."""
        return cls(
            target_count=4,
            max_refinement_iterations=5,
            workers=2,
            timeline_sample_every=1,
            timeline_max_commits=10,
        )

    @classmethod
    def for_ci(cls) -> "TrustDebtConfig":
        """Config for CI runs: includes commit history in Reality."""
        return cls(
            include_commit_messages=True,
            commit_limit=200,
            workers=8,
        )


# =============================================================================
# MODULE EXPORTS
# =============================================================================

__all__ = ["TrustDebtConfig", "DEFAULT_GRADE_BOUNDARIES", "MAX_TARGET_COUNT"]
