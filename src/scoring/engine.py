# ABOUTME: Implements the pure weighted-score computations driven by a ScoringConfig.
# ABOUTME: Covers exponential late decay, coverage normalization, and preview curves.

from __future__ import annotations

import math
from typing import Optional

import numpy as np
import pandas as pd

from src.common.rounding import round_half_up
from src.common.schemas import LateBracket, ScoreResult, ScoringConfig

from .config import DEFAULT_SCORING_CONFIG


def late_score(late_minutes: Optional[float], config: ScoringConfig) -> float:
    """
    Credit in [late_minimum_credit, 1] for arriving ``late_minutes`` late.

    Unknown lateness earns ``late_null_estimate``; arriving early or on time
    earns full credit. Otherwise credit decays as exp(-t/tau).
    """

    if late_minutes is None:
        return config.late_null_estimate
    if late_minutes <= 0:
        return 1.0
    if config.late_decay_constant <= 0:
        # degenerate tau: any lateness decays straight to the floor
        return config.late_minimum_credit
    return max(config.late_minimum_credit, math.exp(-late_minutes / config.late_decay_constant))


def coverage_factor(effective_days: float, total_session_days: float, config: ScoringConfig) -> float:
    """
    Discount for students obligated to only part of the course's sessions.

    The result is clamped to [coverage_minimum, 1] so short enrollments are
    never zeroed out.
    """

    if not config.coverage_enabled or total_session_days == 0:
        return 1.0

    ratio = max(0.0, effective_days / total_session_days)
    method = config.coverage_method
    if method == "none":
        return 1.0
    if method == "linear":
        factor = ratio
    elif method == "log":
        # rescaled so ratio 0 -> 0 and ratio 1 -> 1
        factor = math.log(1 + ratio * (math.e - 1))
    else:
        factor = math.sqrt(ratio)

    return max(config.coverage_minimum, min(factor, 1.0))


def weighted_score(
    quality_adjusted_rate: float,
    attendance_rate: float,
    punctuality_pct: float,
    effective_days: float,
    total_session_days: float,
    config: ScoringConfig,
) -> ScoreResult:
    """
    Combine the three rate components and apply the coverage factor.

    Weights are used as given (divided by 100); they are not renormalized.
    """

    raw_score = (
        (config.weight_quality / 100) * quality_adjusted_rate
        + (config.weight_attendance / 100) * attendance_rate
        + (config.weight_punctuality / 100) * punctuality_pct
    )
    factor = coverage_factor(effective_days, total_session_days, config)
    return ScoreResult(raw_score=raw_score, coverage_factor=factor, final_score=raw_score * factor)


def late_bracket_for(late_minutes: Optional[float], config: ScoringConfig) -> Optional[LateBracket]:
    """Display bracket containing ``late_minutes``; never used for scoring."""

    if late_minutes is None or late_minutes <= 0:
        return None
    for bracket in config.late_brackets:
        if bracket.min <= late_minutes <= bracket.max:
            return bracket
    return None


def generate_decay_curve(config: ScoringConfig, max_minutes: float = 120, points: int = 50) -> pd.DataFrame:
    """Sample late credit (percent) over [0, max_minutes] for previews."""

    minutes = np.linspace(0.0, max_minutes, points + 1)
    return pd.DataFrame(
        {
            "minutes": [round_half_up(m) for m in minutes],
            "credit": [round_half_up(late_score(float(m), config) * 100, 1) for m in minutes],
        }
    )


def generate_coverage_curve(config: ScoringConfig, total_sessions: int = 30, points: int = 30) -> pd.DataFrame:
    """Sample the coverage factor (percent) from 0 to ``total_sessions`` covered days."""

    days = [round_half_up(d) for d in np.linspace(0.0, total_sessions, points + 1)]
    return pd.DataFrame(
        {
            "days": days,
            "factor": [round_half_up(coverage_factor(d, total_sessions, config) * 100, 1) for d in days],
        }
    )


class ScoringEngine:
    """Scoring functions bound to an explicit default configuration."""

    def __init__(self, default_config: ScoringConfig = DEFAULT_SCORING_CONFIG):
        self.default_config = default_config

    def _resolve(self, config: Optional[ScoringConfig]) -> ScoringConfig:
        return self.default_config if config is None else config

    def late_score(self, late_minutes: Optional[float], config: Optional[ScoringConfig] = None) -> float:
        return late_score(late_minutes, self._resolve(config))

    def coverage_factor(
        self, effective_days: float, total_session_days: float, config: Optional[ScoringConfig] = None
    ) -> float:
        return coverage_factor(effective_days, total_session_days, self._resolve(config))

    def weighted_score(
        self,
        quality_adjusted_rate: float,
        attendance_rate: float,
        punctuality_pct: float,
        effective_days: float,
        total_session_days: float,
        config: Optional[ScoringConfig] = None,
    ) -> ScoreResult:
        return weighted_score(
            quality_adjusted_rate,
            attendance_rate,
            punctuality_pct,
            effective_days,
            total_session_days,
            self._resolve(config),
        )

    def late_bracket_for(self, late_minutes: Optional[float], config: Optional[ScoringConfig] = None):
        return late_bracket_for(late_minutes, self._resolve(config))
