# ABOUTME: Groups the configurable attendance scoring engine.
# ABOUTME: Re-exports config normalization, the config store, and pure scoring functions.

from .config import (
    DEFAULT_SCORING_CONFIG,
    SCORING_PRESETS,
    ScoringConfigError,
    apply_preset,
    normalize_scoring_config,
    validate_scoring_config,
)
from .engine import ScoringEngine, coverage_factor, late_score, weighted_score
from .store import ScoringConfigStore
from .student_scores import score_students

__all__ = [
    "DEFAULT_SCORING_CONFIG",
    "SCORING_PRESETS",
    "ScoringConfigError",
    "apply_preset",
    "normalize_scoring_config",
    "validate_scoring_config",
    "ScoringEngine",
    "coverage_factor",
    "late_score",
    "weighted_score",
    "ScoringConfigStore",
    "score_students",
]
