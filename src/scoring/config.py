# ABOUTME: Declares the default scoring configuration, presets, and normalization helpers.
# ABOUTME: Coerces persisted configs (string numerics, JSON brackets) into typed ScoringConfig values.

from __future__ import annotations

import json
import logging
import math
import numbers
from dataclasses import asdict, replace
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from src.common.schemas import DEFAULT_LATE_BRACKETS, LateBracket, ScoringConfig

logger = logging.getLogger(__name__)

COVERAGE_METHODS = ("sqrt", "linear", "log", "none")
WEIGHT_FIELDS = ("weight_quality", "weight_attendance", "weight_punctuality")
WEIGHT_SUM_TOLERANCE = 0.5

NUMERIC_FIELDS = (
    "weight_quality",
    "weight_attendance",
    "weight_punctuality",
    "late_decay_constant",
    "late_minimum_credit",
    "late_null_estimate",
    "coverage_minimum",
    "perfect_attendance_bonus",
    "streak_bonus_per_week",
    "absence_penalty_multiplier",
)
BOOLEAN_FIELDS = ("is_default", "coverage_enabled")

DEFAULT_SCORING_CONFIG = ScoringConfig()

SCORING_PRESETS: Dict[str, Dict[str, float]] = {
    "Balanced (Default)": {
        "weight_quality": 55,
        "weight_attendance": 35,
        "weight_punctuality": 10,
        "late_decay_constant": 43.3,
        "late_minimum_credit": 0.05,
    },
    "Strict Punctuality": {
        "weight_quality": 45,
        "weight_attendance": 25,
        "weight_punctuality": 30,
        "late_decay_constant": 20,
        "late_minimum_credit": 0.01,
    },
    "Lenient": {
        "weight_quality": 30,
        "weight_attendance": 60,
        "weight_punctuality": 10,
        "late_decay_constant": 80,
        "late_minimum_credit": 0.20,
    },
    "Quality First": {
        "weight_quality": 70,
        "weight_attendance": 20,
        "weight_punctuality": 10,
        "late_decay_constant": 35,
        "late_minimum_credit": 0.05,
    },
    "Attendance Only": {
        "weight_quality": 10,
        "weight_attendance": 85,
        "weight_punctuality": 5,
        "late_decay_constant": 100,
        "late_minimum_credit": 0.50,
    },
    "Military Precision": {
        "weight_quality": 50,
        "weight_attendance": 15,
        "weight_punctuality": 35,
        "late_decay_constant": 10,
        "late_minimum_credit": 0.01,
    },
}


class ScoringConfigError(ValueError):
    """Raised when a scoring config is rejected before persistence."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("Invalid scoring config: " + "; ".join(self.problems))


def normalize_scoring_config(
    raw: Union[Mapping[str, Any], ScoringConfig, None],
    defaults: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ScoringConfig:
    """
    Coerce a persisted or user-supplied config into a typed ScoringConfig.

    Decimal-preserving stores return numeric columns as strings such as
    ``"55.00"`` or as ``Decimal`` values; both are parsed here. Fields that
    cannot be interpreted keep the value from ``defaults``. Applying this to
    an already normalized config returns an equal config.
    """

    if isinstance(raw, ScoringConfig):
        raw = scoring_config_to_dict(raw)
    if not isinstance(raw, Mapping):
        return defaults

    values: Dict[str, Any] = {}
    for name in NUMERIC_FIELDS:
        values[name] = _as_number(raw.get(name), getattr(defaults, name))
    for name in BOOLEAN_FIELDS:
        values[name] = _as_bool(raw.get(name), getattr(defaults, name))

    config_name = raw.get("config_name")
    values["config_name"] = config_name if isinstance(config_name, str) else defaults.config_name

    method = raw.get("coverage_method")
    values["coverage_method"] = method if method in COVERAGE_METHODS else defaults.coverage_method

    values["late_brackets"] = _as_brackets(raw.get("late_brackets"), defaults.late_brackets)
    return ScoringConfig(**values)


def scoring_config_to_dict(config: ScoringConfig) -> Dict[str, Any]:
    """Plain representation used for YAML/JSON persistence."""

    data = asdict(config)
    data["late_brackets"] = [asdict(bracket) for bracket in config.late_brackets]
    return data


def validate_scoring_config(config: ScoringConfig) -> List[str]:
    """Return human-readable problems; an empty list means the config is valid."""

    problems: List[str] = []
    weights = [getattr(config, name) for name in WEIGHT_FIELDS]
    if any(w < 0 for w in weights):
        problems.append("Weights must be non-negative")
    total = sum(weights)
    if abs(total - 100) > WEIGHT_SUM_TOLERANCE:
        problems.append(f"Weights must sum to 100% (currently {total:g}%)")

    if not config.late_decay_constant > 0:
        problems.append("late_decay_constant must be greater than 0")
    for name in ("late_minimum_credit", "late_null_estimate", "coverage_minimum"):
        value = getattr(config, name)
        if not 0 <= value <= 1:
            problems.append(f"{name} must be between 0 and 1 (got {value:g})")
    if config.coverage_method not in COVERAGE_METHODS:
        problems.append(f"coverage_method must be one of {', '.join(COVERAGE_METHODS)}")

    ordered = sorted(config.late_brackets, key=lambda b: b.min)
    for bracket in ordered:
        if bracket.min > bracket.max:
            problems.append(f"Late bracket '{bracket.name}' has min greater than max")
    for previous, current in zip(ordered, ordered[1:]):
        if current.min <= previous.max:
            problems.append(f"Late brackets '{previous.name}' and '{current.name}' overlap")
    return problems


def ensure_valid(config: ScoringConfig) -> ScoringConfig:
    problems = validate_scoring_config(config)
    if problems:
        raise ScoringConfigError(problems)
    return config


def apply_preset(config: ScoringConfig, name: str) -> ScoringConfig:
    """Return a copy of ``config`` with a named preset's overrides applied."""

    if name not in SCORING_PRESETS:
        raise KeyError(f"Unknown scoring preset '{name}'. Expected one of: {', '.join(SCORING_PRESETS)}.")
    overrides = {key: float(value) for key, value in SCORING_PRESETS[name].items()}
    return replace(config, **overrides)


def balance_weights(config: ScoringConfig, changed: str, value: float) -> ScoringConfig:
    """
    Set one weight and rescale the other two so the three sum to 100.

    The remaining share is split in proportion to the other two weights; when
    both are zero, all of it goes to the first of them.
    """

    field_name = changed if changed.startswith("weight_") else f"weight_{changed}"
    if field_name not in WEIGHT_FIELDS:
        raise ValueError(f"Unknown weight '{changed}'. Expected one of: {', '.join(WEIGHT_FIELDS)}.")

    clamped = max(0.0, min(100.0, float(value)))
    remaining = 100.0 - clamped
    first, second = [name for name in WEIGHT_FIELDS if name != field_name]
    ratio = getattr(config, first) + getattr(config, second)
    if ratio > 0:
        first_share = float(math.floor(remaining * getattr(config, first) / ratio + 0.5))
    else:
        first_share = remaining
    return replace(config, **{field_name: clamped, first: first_share, second: remaining - first_share})


def _as_number(value: Any, fallback: float) -> float:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, (numbers.Real, Decimal)):
        try:
            parsed = float(value)
        except (ValueError, OverflowError):
            return fallback
        return fallback if math.isnan(parsed) else parsed
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return fallback
        return fallback if math.isnan(parsed) else parsed
    return fallback


def _as_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if value == "true":
        return True
    if value == "false":
        return False
    return fallback


def _as_brackets(value: Any, fallback: Tuple[LateBracket, ...]) -> Tuple[LateBracket, ...]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning("Ignoring unparseable late_brackets; keeping defaults")
            return fallback
    if not isinstance(value, (list, tuple)):
        return fallback

    brackets = []
    for index, item in enumerate(value, start=1):
        bracket = _as_bracket(item, index)
        if bracket is None:
            logger.warning("Ignoring malformed late bracket at position %d; keeping defaults", index)
            return fallback
        brackets.append(bracket)
    return tuple(brackets)


def _as_bracket(item: Any, index: int) -> Optional[LateBracket]:
    if isinstance(item, LateBracket):
        return item
    if not isinstance(item, Mapping):
        return None
    try:
        low = int(float(item["min"]))
        high = int(float(item["max"]))
    except (KeyError, TypeError, ValueError, OverflowError):
        return None
    return LateBracket(
        id=str(item.get("id", index)),
        min=low,
        max=high,
        name=str(item.get("name", "")),
    )
