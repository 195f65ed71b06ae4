"""
Configuration loader module.

Typed settings for every director component, loaded from
config/director.json. Each section maps onto one component's constructor
so the wiring in director.py stays explicit.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from constants import (
    ACCESSIBILITY_COMPLEXITY_THRESHOLD,
    ANALYTICS_ANALYSIS_INTERVAL,
    ANALYTICS_COLLECTION_INTERVAL,
    ANALYTICS_MAX_SAMPLES,
    COMFORT_HEIGHT_THRESHOLD,
    COMPLEXITY_GLOBAL_MAX,
    COMPLEXITY_GLOBAL_MIN,
    DIFFICULTY_CURVE,
    DIFFICULTY_EPSILON,
    DIFFICULTY_HIGH_PERFORMANCE,
    DIFFICULTY_HISTORY_SIZE,
    DIFFICULTY_INITIAL,
    DIFFICULTY_LOW_PERFORMANCE,
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    DIFFICULTY_SMOOTHING_RATE,
    DIFFICULTY_STEP,
    DIFFICULTY_UPDATE_INTERVAL,
    DRAW_CALL_BUDGET,
    DRAW_CALLS_PER_COMPLEXITY,
    GENERATION_INTERVAL,
    INSIGHT_ENGAGEMENT_THRESHOLD,
    INSIGHT_FRUSTRATION_THRESHOLD,
    INSIGHT_MASTERY_THRESHOLD,
    MAX_GENERATED_ROOMS,
    MAX_OVERLAP_PASSES,
    MIN_PUZZLE_SEPARATION,
    OVERLAP_OFFSET_RADIUS,
    PATTERN_COOLDOWN,
    PREFERRED_CATEGORY_BOOST,
    PUZZLES_PER_ROOM_MAX,
    PUZZLES_PER_ROOM_MIN,
    ROOM_COMPLEXITY_MAX,
    ROOM_COMPLEXITY_MIN,
    STAGE_TIMEOUT_SECONDS,
)
from exceptions import ConfigurationError

_CONFIG_DIR = Path(__file__).parent
_DEFAULT_CONFIG_PATH = _CONFIG_DIR / "director.json"

# Cache for the default config file
_default_config: DirectorConfig | None = None


class _Settings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class AnalyticsSettings(_Settings):
    """PerformanceAnalyzer settings."""

    max_samples: int = Field(ANALYTICS_MAX_SAMPLES, ge=20, le=100_000)
    collection_interval: float = Field(ANALYTICS_COLLECTION_INTERVAL, gt=0)
    analysis_interval: float = Field(ANALYTICS_ANALYSIS_INTERVAL, gt=0)
    frustration_threshold: float = Field(INSIGHT_FRUSTRATION_THRESHOLD, ge=0, le=1)
    engagement_threshold: float = Field(INSIGHT_ENGAGEMENT_THRESHOLD, ge=0, le=1)
    mastery_threshold: float = Field(INSIGHT_MASTERY_THRESHOLD, ge=0, le=1)
    pattern_cooldown: float = Field(PATTERN_COOLDOWN, ge=0)
    enable_prediction: bool = True


class DifficultySettings(_Settings):
    """DifficultyController settings."""

    min_difficulty: float = Field(DIFFICULTY_MIN, ge=DIFFICULTY_MIN, le=DIFFICULTY_MAX)
    max_difficulty: float = Field(DIFFICULTY_MAX, ge=DIFFICULTY_MIN, le=DIFFICULTY_MAX)
    initial_difficulty: float = DIFFICULTY_INITIAL
    step: float = Field(DIFFICULTY_STEP, gt=0)
    smoothing_rate: float = Field(DIFFICULTY_SMOOTHING_RATE, gt=0)
    epsilon: float = Field(DIFFICULTY_EPSILON, ge=0)
    low_performance_threshold: float = Field(DIFFICULTY_LOW_PERFORMANCE, ge=0, le=1)
    high_performance_threshold: float = Field(DIFFICULTY_HIGH_PERFORMANCE, ge=0, le=1)
    history_size: int = Field(DIFFICULTY_HISTORY_SIZE, ge=1)
    update_interval: float = Field(DIFFICULTY_UPDATE_INTERVAL, gt=0)

    @model_validator(mode="after")
    def _check_ranges(self) -> DifficultySettings:
        if self.min_difficulty > self.max_difficulty:
            raise ValueError("min_difficulty must not exceed max_difficulty")
        if self.low_performance_threshold > self.high_performance_threshold:
            raise ValueError("low_performance_threshold must not exceed high_performance_threshold")
        return self


class SelectorSettings(_Settings):
    """
    PuzzleTypeSelector tables keyed by category/theme value.

    Any table left as None falls back to the built-in defaults in
    puzzle_types.py.
    """

    base_weights: Optional[dict[str, float]] = None
    complexity_rates: Optional[dict[str, float]] = None
    theme_affinities: Optional[dict[str, dict[str, float]]] = None
    enable_complexity_scaling: bool = True
    enable_theme_affinity: bool = True
    preferred_category_boost: float = Field(PREFERRED_CATEGORY_BOOST, ge=1.0)


class GenerationSettings(_Settings):
    """ContentGenerator settings."""

    min_room_complexity: int = Field(ROOM_COMPLEXITY_MIN, ge=COMPLEXITY_GLOBAL_MIN, le=COMPLEXITY_GLOBAL_MAX)
    max_room_complexity: int = Field(ROOM_COMPLEXITY_MAX, ge=COMPLEXITY_GLOBAL_MIN, le=COMPLEXITY_GLOBAL_MAX)
    min_complexity: int = Field(COMPLEXITY_GLOBAL_MIN, ge=1)
    max_complexity: int = Field(COMPLEXITY_GLOBAL_MAX, ge=1)
    min_puzzles_per_room: int = Field(PUZZLES_PER_ROOM_MIN, ge=1)
    max_puzzles_per_room: int = Field(PUZZLES_PER_ROOM_MAX, ge=1)
    difficulty_curve: float = Field(DIFFICULTY_CURVE, ge=0)
    enable_progressive_difficulty: bool = True
    enable_room_themes: bool = True
    enabled_themes: Optional[list[str]] = None
    enable_theme_parameters: bool = True
    enable_lod_generation: bool = True
    enable_skill_adaptation: bool = True
    difficulty_spread: Optional[float] = Field(None, gt=0)

    @model_validator(mode="after")
    def _check_ranges(self) -> GenerationSettings:
        if self.min_room_complexity > self.max_room_complexity:
            raise ValueError("min_room_complexity must not exceed max_room_complexity")
        if self.min_complexity > self.max_complexity:
            raise ValueError("min_complexity must not exceed max_complexity")
        if self.min_puzzles_per_room > self.max_puzzles_per_room:
            raise ValueError("min_puzzles_per_room must not exceed max_puzzles_per_room")
        return self


class ValidationSettings(_Settings):
    """QualityValidator settings."""

    min_puzzle_separation: float = Field(MIN_PUZZLE_SEPARATION, ge=0)
    overlap_offset_radius: float = Field(OVERLAP_OFFSET_RADIUS, gt=0)
    max_overlap_passes: int = Field(MAX_OVERLAP_PASSES, ge=1)
    draw_calls_per_complexity: int = Field(DRAW_CALLS_PER_COMPLEXITY, ge=1)
    draw_call_budget: int = Field(DRAW_CALL_BUDGET, ge=1)
    comfort_height_threshold: float = Field(COMFORT_HEIGHT_THRESHOLD, gt=0)
    accessibility_complexity_threshold: int = Field(ACCESSIBILITY_COMPLEXITY_THRESHOLD, ge=1)


class SchedulerSettings(_Settings):
    """Periodic task settings for AdaptiveDirector."""

    generation_interval: float = Field(GENERATION_INTERVAL, gt=0)
    max_generated_rooms: int = Field(MAX_GENERATED_ROOMS, ge=1)
    stage_timeout: float = Field(STAGE_TIMEOUT_SECONDS, gt=0)
    enable_continuous_generation: bool = True


class DirectorConfig(_Settings):
    """Complete director configuration."""

    analytics: AnalyticsSettings = Field(default_factory=AnalyticsSettings)
    difficulty: DifficultySettings = Field(default_factory=DifficultySettings)
    selector: SelectorSettings = Field(default_factory=SelectorSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)


def parse_director_config(data: dict[str, Any]) -> DirectorConfig:
    """
    Build a DirectorConfig from a plain mapping.

    Raises:
        ConfigurationError: If any section fails validation
    """
    try:
        return DirectorConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid director configuration: {e}") from e


def load_director_config(path: str | Path | None = None) -> DirectorConfig:
    """
    Load director configuration from JSON.

    Resolution order: explicit path, DIRECTOR_CONFIG_PATH, then the bundled
    config/director.json. The bundled file is cached after the first load.
    """
    global _default_config

    if path is None:
        env_path = os.getenv("DIRECTOR_CONFIG_PATH")
        if env_path:
            path = env_path

    if path is None and _default_config is not None:
        return _default_config

    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    if not config_path.exists():
        raise ConfigurationError(f"Director config not found: {config_path}")

    try:
        with open(config_path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Director config is not valid JSON: {config_path}: {e}") from e

    config = parse_director_config(data)
    if path is None:
        _default_config = config
    return config


__all__ = [
    "AnalyticsSettings",
    "DifficultySettings",
    "DirectorConfig",
    "GenerationSettings",
    "SchedulerSettings",
    "SelectorSettings",
    "ValidationSettings",
    "load_director_config",
    "parse_director_config",
]
