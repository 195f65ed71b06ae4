"""
Project-wide constants.

Centralizes magic numbers and tuning values for the adaptive director.
Anything a deployment may want to change lives in config/director.json;
these are the defaults and the fixed formula coefficients.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Performance Analytics - Window Sizes
# =============================================================================
ANALYTICS_MAX_SAMPLES: Final[int] = 1000
ANALYTICS_COLLECTION_INTERVAL: Final[float] = 1.0
ANALYTICS_ANALYSIS_INTERVAL: Final[float] = 2.0
DIFFICULTY_PROGRESSION_WINDOW: Final[int] = 20  # Per-category difficulty history
SATISFACTION_WINDOW: Final[int] = 10
RECENT_OUTCOME_WINDOW: Final[int] = 20

# =============================================================================
# Performance Analytics - Minimum Data
# =============================================================================
ENGAGEMENT_MIN_SAMPLES: Final[int] = 5
FRUSTRATION_MIN_SAMPLES: Final[int] = 10
TREND_WINDOW: Final[int] = 20  # Compared against the preceding TREND_WINDOW samples
PATTERN_MIN_SAMPLES: Final[int] = 50
SKILL_MIN_ATTEMPTS: Final[int] = 3
PREDICTION_MIN_ATTEMPTS: Final[int] = 5

# Neutral defaults returned when history is insufficient
NEUTRAL_ENGAGEMENT: Final[float] = 0.5
NEUTRAL_FRUSTRATION: Final[float] = 0.0
NEUTRAL_MASTERY: Final[float] = 0.0
NEUTRAL_SKILL: Final[float] = 0.5
NEUTRAL_PERFORMANCE: Final[float] = 0.5

# =============================================================================
# Performance Analytics - Score Weights
# =============================================================================
ENGAGEMENT_MOVEMENT_WEIGHT: Final[float] = 0.3
ENGAGEMENT_INTERACTION_WEIGHT: Final[float] = 0.4
ENGAGEMENT_PROGRESS_WEIGHT: Final[float] = 0.3

FRUSTRATION_FAILED_PROGRESS: Final[float] = 0.1
FRUSTRATION_SLOW_PROGRESS: Final[float] = 0.3
FRUSTRATION_LOW_INTERACTION: Final[float] = 0.2
FRUSTRATION_FAILED_WEIGHT: Final[float] = 0.4
FRUSTRATION_SLOW_WEIGHT: Final[float] = 0.3
FRUSTRATION_INTERACTION_WEIGHT: Final[float] = 0.3

MASTERY_COMPLETION_WEIGHT: Final[float] = 0.5
MASTERY_TIME_WEIGHT: Final[float] = 0.3
MASTERY_DIFFICULTY_WEIGHT: Final[float] = 0.2
MASTERY_TIME_BASELINE: Final[float] = 600.0  # 10 minute baseline

SKILL_COMPLETION_WEIGHT: Final[float] = 0.7
SKILL_TIME_WEIGHT: Final[float] = 0.3

PERFORMANCE_COMPLETION_WEIGHT: Final[float] = 0.6
PERFORMANCE_TIME_WEIGHT: Final[float] = 0.4
PERFORMANCE_TIME_BASELINE: Final[float] = 300.0  # 5 minute baseline

# =============================================================================
# Performance Analytics - Trends, Insights, Patterns
# =============================================================================
TREND_ENGAGEMENT_DECLINE: Final[float] = -0.2
TREND_FRUSTRATION_INCREASE: Final[float] = 0.3
TREND_FLOW_ENGAGEMENT_RISE: Final[float] = 0.2
TREND_FLOW_FRUSTRATION_DROP: Final[float] = -0.1

INSIGHT_FRUSTRATION_THRESHOLD: Final[float] = 0.2
INSIGHT_ENGAGEMENT_THRESHOLD: Final[float] = 0.7
INSIGHT_MASTERY_THRESHOLD: Final[float] = 0.9
INSIGHT_LIFETIME: Final[float] = 600.0

LEVEL_CHANGE_NOTIFY_DELTA: Final[float] = 0.1
SKILL_CHANGE_NOTIFY_DELTA: Final[float] = 0.1

PATTERN_COOLDOWN: Final[float] = 300.0

HIGH_ACTIVITY_MAX_VARIANCE: Final[float] = 0.1
HIGH_ACTIVITY_MIN_MEAN: Final[float] = 0.7
LOW_INTERACTION_MAX_VARIANCE: Final[float] = 0.15
LOW_INTERACTION_MAX_MEAN: Final[float] = 0.3
STUCK_MAX_VARIANCE: Final[float] = 0.05
STUCK_MAX_FINAL_PROGRESS: Final[float] = 0.2

# =============================================================================
# Difficulty Control Loop
# =============================================================================
DIFFICULTY_MIN: Final[float] = 1.0
DIFFICULTY_MAX: Final[float] = 10.0
DIFFICULTY_INITIAL: Final[float] = 5.0
DIFFICULTY_STEP: Final[float] = 0.5
DIFFICULTY_SMOOTHING_RATE: Final[float] = 0.5
DIFFICULTY_EPSILON: Final[float] = 0.1
DIFFICULTY_LOW_PERFORMANCE: Final[float] = 0.3
DIFFICULTY_HIGH_PERFORMANCE: Final[float] = 0.8
DIFFICULTY_HISTORY_SIZE: Final[int] = 20
DIFFICULTY_UPDATE_INTERVAL: Final[float] = 2.0

# =============================================================================
# Content Generation
# =============================================================================
COMPLEXITY_GLOBAL_MIN: Final[int] = 1
COMPLEXITY_GLOBAL_MAX: Final[int] = 10
ROOM_COMPLEXITY_MIN: Final[int] = 3
ROOM_COMPLEXITY_MAX: Final[int] = 8
PUZZLES_PER_ROOM_MIN: Final[int] = 1
PUZZLES_PER_ROOM_MAX: Final[int] = 8
PUZZLE_BASE_COUNT_MAX: Final[int] = 5
DIFFICULTY_CURVE: Final[float] = 1.5
GENERATION_INTERVAL: Final[float] = 30.0
MAX_GENERATED_ROOMS: Final[int] = 100

COMPLEXITY_PERFORMANCE_WEIGHT: Final[float] = 0.6
COMPLEXITY_SUCCESS_WEIGHT: Final[float] = 0.4
DEFAULT_SUCCESS_RATE: Final[float] = 0.7

# Skill-driven adaptation
SKILL_COMPLEXITY_SCALE_MIN: Final[float] = 0.5
SKILL_COMPLEXITY_SCALE_MAX: Final[float] = 1.5
PREFERRED_CATEGORY_COUNT: Final[int] = 3
PREFERRED_CATEGORY_BOOST: Final[float] = 1.5

PUZZLE_RADIUS_FRACTION: Final[float] = 0.3
PUZZLE_HEIGHT: Final[float] = 1.0  # Slightly above the floor

ROOM_BASE_SIZE: Final[float] = 5.0
ROOM_SIZE_PER_COMPLEXITY: Final[float] = 2.0
ROOM_BASE_HEIGHT: Final[float] = 3.0
ROOM_HEIGHT_PER_COMPLEXITY: Final[float] = 0.5

# =============================================================================
# Quality Validation
# =============================================================================
MIN_PUZZLE_SEPARATION: Final[float] = 2.0
OVERLAP_OFFSET_RADIUS: Final[float] = 2.0
MAX_OVERLAP_PASSES: Final[int] = 10
DRAW_CALLS_PER_COMPLEXITY: Final[int] = 10
DRAW_CALL_BUDGET: Final[int] = 100
COMFORT_HEIGHT_THRESHOLD: Final[float] = 5.0
ACCESSIBILITY_COMPLEXITY_THRESHOLD: Final[int] = 7
STAGE_TIMEOUT_SECONDS: Final[float] = 5.0

QUALITY_POINTS_PER_COMPLEXITY: Final[float] = 5.0
QUALITY_POINTS_PER_PUZZLE: Final[float] = 2.0
QUALITY_THEME_BONUS: Final[float] = 10.0
QUALITY_LOD_BONUS: Final[float] = 15.0
QUALITY_COMFORT_BONUS: Final[float] = 10.0
QUALITY_MAX_SCORE: Final[float] = 100.0

# =============================================================================
# Logging Configuration
# =============================================================================
LOG_LEVEL_PRODUCTION: Final[str] = "INFO"
LOG_LEVEL_DEVELOPMENT: Final[str] = "DEBUG"
LOG_FORMAT_JSON: Final[bool] = True  # Set to False for development readable format
