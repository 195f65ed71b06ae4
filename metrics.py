"""
Prometheus metrics instrumentation for the adaptive director.

This module provides metrics tracking for:
- Rooms generated by theme, and generation failures by reason
- Per-stage generation latency
- Room quality score distribution
- Current and target difficulty
- Content pool size
- Insights and behaviour patterns emitted by the analyzer

Usage:
    from metrics import track_generation_stage, record_room_generated

    with track_generation_stage("validation"):
        validator.validate(room)

    record_room_generated(room.theme.value, room.quality_score)
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator

from prometheus_client import Counter, Gauge, Histogram

# === COUNTERS ===

rooms_generated_total = Counter(
    "director_rooms_generated_total",
    "Total number of rooms accepted into the content pool",
    ["theme"],
)

generation_failures_total = Counter(
    "director_generation_failures_total",
    "Total number of abandoned room generations",
    ["reason"],
)

insights_total = Counter(
    "director_insights_total",
    "Total number of performance insights emitted",
    ["insight_type"],
)

behavior_patterns_total = Counter(
    "director_behavior_patterns_total",
    "Total number of behaviour patterns detected",
    ["pattern"],
)

# === HISTOGRAMS ===

generation_stage_seconds = Histogram(
    "director_generation_stage_seconds",
    "Time taken by each room generation stage",
    ["stage"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, float("inf")),
)

room_quality_score = Histogram(
    "director_room_quality_score",
    "Quality score of validated rooms",
    buckets=(10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0, 90.0, 100.0),
)

# === GAUGES ===

difficulty_current_gauge = Gauge(
    "director_difficulty_current",
    "Smoothed difficulty currently read by content generation",
)

difficulty_target_gauge = Gauge(
    "director_difficulty_target",
    "Difficulty the control loop is moving toward",
)

content_pool_size_gauge = Gauge(
    "director_content_pool_size",
    "Number of rooms resident in the content pool",
)

# === CONTEXT MANAGERS ===


@contextmanager
def track_generation_stage(stage: str) -> Generator[None, None, None]:
    """
    Context manager to time a generation pipeline stage.

    Args:
        stage: Stage name (e.g., "structure", "puzzles", "validation")
    """
    start_time = time.perf_counter()
    try:
        yield
    finally:
        duration = time.perf_counter() - start_time
        generation_stage_seconds.labels(stage=stage).observe(duration)


def record_room_generated(theme: str, quality: float) -> None:
    """Count an accepted room and observe its quality score."""
    rooms_generated_total.labels(theme=theme).inc()
    room_quality_score.observe(quality)


def record_generation_failure(reason: str) -> None:
    """
    Count an abandoned generation.

    Args:
        reason: Failure reason (e.g., "cancelled", "timeout")
    """
    generation_failures_total.labels(reason=reason).inc()


def record_insight(insight_type: str) -> None:
    insights_total.labels(insight_type=insight_type).inc()


def record_behavior_pattern(pattern: str) -> None:
    behavior_patterns_total.labels(pattern=pattern).inc()


def record_difficulty(current: float, target: float) -> None:
    difficulty_current_gauge.set(current)
    difficulty_target_gauge.set(target)


def set_pool_size(size: int) -> None:
    content_pool_size_gauge.set(size)
