# ABOUTME: Tests scoring config normalization, validation, presets, and weight balancing.
# ABOUTME: Covers string numerics and JSON brackets as returned by decimal-preserving stores.

import json
from dataclasses import replace
from decimal import Decimal

import pytest

from src.common.schemas import LateBracket, ScoringConfig
from src.scoring.config import (
    DEFAULT_LATE_BRACKETS,
    DEFAULT_SCORING_CONFIG,
    ScoringConfigError,
    apply_preset,
    balance_weights,
    ensure_valid,
    normalize_scoring_config,
    scoring_config_to_dict,
    validate_scoring_config,
)


def _stored_row():
    return {
        "config_name": "Spring Term",
        "is_default": "false",
        "weight_quality": "60.00",
        "weight_attendance": "30.00",
        "weight_punctuality": "10.00",
        "late_decay_constant": "43.30",
        "late_minimum_credit": "0.05",
        "late_null_estimate": "0.60",
        "coverage_enabled": "true",
        "coverage_method": "linear",
        "coverage_minimum": "0.10",
        "late_brackets": json.dumps([{"id": "a", "min": 1, "max": 10, "name": "Short"}]),
    }


def test_normalize_parses_string_numerics_and_json_brackets():
    config = normalize_scoring_config(_stored_row())
    assert config.config_name == "Spring Term"
    assert config.is_default is False
    assert config.weight_quality == 60.0
    assert config.late_decay_constant == pytest.approx(43.3)
    assert config.coverage_method == "linear"
    assert config.late_brackets == (LateBracket(id="a", min=1, max=10, name="Short"),)


def test_normalize_accepts_decimal_values():
    config = normalize_scoring_config(
        {"weight_quality": Decimal("70.00"), "weight_attendance": Decimal("20.00"), "coverage_minimum": Decimal("NaN")}
    )
    assert config.weight_quality == 70.0
    assert config.weight_attendance == 20.0
    assert config.coverage_minimum == 0.1


def test_bare_config_carries_default_brackets():
    assert ScoringConfig().late_brackets == DEFAULT_LATE_BRACKETS
    assert ScoringConfig() == DEFAULT_SCORING_CONFIG


def test_normalize_is_idempotent():
    once = normalize_scoring_config(_stored_row())
    assert normalize_scoring_config(once) == once
    assert normalize_scoring_config(scoring_config_to_dict(once)) == once


def test_normalize_falls_back_to_defaults():
    assert normalize_scoring_config(None) == DEFAULT_SCORING_CONFIG
    assert normalize_scoring_config("not a mapping") == DEFAULT_SCORING_CONFIG

    config = normalize_scoring_config(
        {
            "weight_quality": "abc",
            "weight_attendance": True,
            "coverage_method": "cubic",
            "late_brackets": "not json",
        }
    )
    assert config.weight_quality == 55.0
    assert config.weight_attendance == 35.0
    assert config.coverage_method == "sqrt"
    assert config.late_brackets == DEFAULT_LATE_BRACKETS


def test_normalize_keeps_defaults_for_missing_fields():
    config = normalize_scoring_config({"weight_quality": 60})
    assert config.weight_quality == 60.0
    assert config.weight_attendance == 35.0
    assert config.late_null_estimate == 0.6


def test_normalize_rejects_malformed_bracket_list():
    config = normalize_scoring_config({"late_brackets": [{"min": 1}]})
    assert config.late_brackets == DEFAULT_LATE_BRACKETS


def test_default_config_is_valid():
    assert validate_scoring_config(DEFAULT_SCORING_CONFIG) == []
    assert ensure_valid(DEFAULT_SCORING_CONFIG) is DEFAULT_SCORING_CONFIG


def test_validation_reports_problems():
    config = replace(
        DEFAULT_SCORING_CONFIG,
        weight_quality=70,
        late_decay_constant=0,
        coverage_minimum=1.5,
        late_brackets=(
            LateBracket(id="1", min=1, max=10, name="A"),
            LateBracket(id="2", min=5, max=20, name="B"),
        ),
    )
    problems = validate_scoring_config(config)
    assert any("sum to 100" in p for p in problems)
    assert any("late_decay_constant" in p for p in problems)
    assert any("coverage_minimum" in p for p in problems)
    assert any("overlap" in p for p in problems)

    with pytest.raises(ScoringConfigError) as excinfo:
        ensure_valid(config)
    assert excinfo.value.problems == problems


def test_validation_tolerates_rounding_in_weight_sum():
    config = replace(DEFAULT_SCORING_CONFIG, weight_quality=33.33, weight_attendance=33.33, weight_punctuality=33.33)
    assert validate_scoring_config(config) == []


def test_negative_weight_is_rejected():
    config = replace(DEFAULT_SCORING_CONFIG, weight_quality=-10, weight_attendance=100, weight_punctuality=10)
    assert "Weights must be non-negative" in validate_scoring_config(config)


def test_apply_preset_overrides_weights_and_decay():
    config = apply_preset(DEFAULT_SCORING_CONFIG, "Strict Punctuality")
    assert config.weight_punctuality == 30.0
    assert config.late_decay_constant == 20.0
    assert config.coverage_method == DEFAULT_SCORING_CONFIG.coverage_method
    assert validate_scoring_config(config) == []


def test_apply_unknown_preset_raises():
    with pytest.raises(KeyError):
        apply_preset(DEFAULT_SCORING_CONFIG, "Nonexistent")


def test_balance_weights_keeps_sum_at_100():
    config = balance_weights(DEFAULT_SCORING_CONFIG, "quality", 70)
    assert config.weight_quality == 70.0
    assert config.weight_attendance == 23.0
    assert config.weight_punctuality == 7.0


def test_balance_weights_with_zero_others_and_clamping():
    zeroed = replace(DEFAULT_SCORING_CONFIG, weight_attendance=0, weight_punctuality=0)
    config = balance_weights(zeroed, "weight_quality", 40)
    assert (config.weight_quality, config.weight_attendance, config.weight_punctuality) == (40.0, 60.0, 0.0)

    clamped = balance_weights(DEFAULT_SCORING_CONFIG, "punctuality", 150)
    assert clamped.weight_punctuality == 100.0
    assert clamped.weight_quality + clamped.weight_attendance == 0.0


def test_balance_weights_rejects_unknown_weight():
    with pytest.raises(ValueError):
        balance_weights(DEFAULT_SCORING_CONFIG, "effort", 10)
