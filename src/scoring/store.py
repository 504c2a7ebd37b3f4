# ABOUTME: Persists scoring configs as YAML files with default fallbacks.
# ABOUTME: Loading never raises; saving validates and replaces the file atomically.

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping, Union

import yaml

from src.common.schemas import ScoringConfig

from .config import (
    DEFAULT_SCORING_CONFIG,
    WEIGHT_FIELDS,
    ensure_valid,
    normalize_scoring_config,
    scoring_config_to_dict,
)

logger = logging.getLogger(__name__)


class ScoringConfigStore:
    """
    File-backed scoring config store.

    Each save rewrites the whole file, so concurrent writers resolve as
    last-writer-wins.
    """

    def __init__(self, path: Path, defaults: ScoringConfig = DEFAULT_SCORING_CONFIG):
        self.path = Path(path)
        self.defaults = defaults

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> ScoringConfig:
        """Return the stored config, or the defaults when none is usable."""

        if not self.path.exists():
            return self.defaults
        try:
            with open(self.path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.warning("Could not read scoring config %s (%s); using defaults", self.path, exc)
            return self.defaults
        if not isinstance(raw, Mapping):
            logger.warning("Scoring config %s is not a mapping; using defaults", self.path)
            return self.defaults
        return normalize_scoring_config(raw, defaults=self.defaults)

    def save(self, config: Union[ScoringConfig, Mapping[str, Any]]) -> ScoringConfig:
        """Validate, persist and return the normalized config."""

        merged = normalize_scoring_config(config, defaults=self.defaults)
        rounded = normalize_scoring_config(
            {
                **scoring_config_to_dict(merged),
                **{name: round(getattr(merged, name), 2) for name in WEIGHT_FIELDS},
            },
            defaults=self.defaults,
        )
        ensure_valid(rounded)

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(scoring_config_to_dict(rounded), f, sort_keys=False)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info("Saved scoring config '%s' to %s", rounded.config_name, self.path)
        return rounded

    def reset(self) -> ScoringConfig:
        """Remove the stored config so subsequent loads return the defaults."""

        self.path.unlink(missing_ok=True)
        return self.defaults
