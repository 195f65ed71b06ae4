"""
Difficulty Controller - Smoothed Difficulty Control Loop

Two conceptual states:
- Stable: |current - target| <= epsilon
- Adjusting: current is being pulled toward target

Each tick nudges the target by a fixed step when recent performance is
outside the comfort band, then moves current toward target with
exponential smoothing. Generation reads `current` directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

import metrics
from constants import (
    DIFFICULTY_EPSILON,
    DIFFICULTY_HIGH_PERFORMANCE,
    DIFFICULTY_HISTORY_SIZE,
    DIFFICULTY_INITIAL,
    DIFFICULTY_LOW_PERFORMANCE,
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    DIFFICULTY_SMOOTHING_RATE,
    DIFFICULTY_STEP,
)
from events import EventChannel
from telemetry import RollingWindow, clamp01

if TYPE_CHECKING:
    from config import DifficultySettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DifficultyState:
    current: float
    target: float
    min_difficulty: float
    max_difficulty: float
    stable: bool


@dataclass(frozen=True)
class DifficultyChange:
    """Payload of difficulty_changed."""

    previous: float
    current: float
    target: float


class DifficultyController:
    """
    Owns the difficulty value. Nothing else mutates it.

    Usage:
        controller = DifficultyController(performance_source=analyzer.current_performance)
        controller.difficulty_changed.subscribe(on_change)
        controller.tick(delta_time=2.0)
    """

    def __init__(
        self,
        min_difficulty: float = DIFFICULTY_MIN,
        max_difficulty: float = DIFFICULTY_MAX,
        initial_difficulty: float = DIFFICULTY_INITIAL,
        step: float = DIFFICULTY_STEP,
        smoothing_rate: float = DIFFICULTY_SMOOTHING_RATE,
        epsilon: float = DIFFICULTY_EPSILON,
        low_performance_threshold: float = DIFFICULTY_LOW_PERFORMANCE,
        high_performance_threshold: float = DIFFICULTY_HIGH_PERFORMANCE,
        history_size: int = DIFFICULTY_HISTORY_SIZE,
        performance_source: Optional[Callable[[], float]] = None,
    ) -> None:
        if min_difficulty > max_difficulty:
            raise ValueError(f"min_difficulty {min_difficulty} exceeds max_difficulty {max_difficulty}")

        self.min_difficulty = min_difficulty
        self.max_difficulty = max_difficulty
        self.step = step
        self.smoothing_rate = smoothing_rate
        self.epsilon = epsilon
        self.low_performance_threshold = low_performance_threshold
        self.high_performance_threshold = high_performance_threshold
        self.performance_source = performance_source

        initial = self._clamp(initial_difficulty)
        self._current = initial
        self._target = initial
        self.performance_history: RollingWindow[float] = RollingWindow(history_size)

        self.difficulty_changed: EventChannel[DifficultyChange] = EventChannel("difficulty_changed")

        metrics.record_difficulty(self._current, self._target)
        logger.info(
            "[DifficultyController] Initialized at %.2f (range %.1f-%.1f)",
            initial, min_difficulty, max_difficulty,
        )

    @classmethod
    def from_settings(
        cls,
        settings: DifficultySettings,
        performance_source: Optional[Callable[[], float]] = None,
    ) -> DifficultyController:
        return cls(
            min_difficulty=settings.min_difficulty,
            max_difficulty=settings.max_difficulty,
            initial_difficulty=settings.initial_difficulty,
            step=settings.step,
            smoothing_rate=settings.smoothing_rate,
            epsilon=settings.epsilon,
            low_performance_threshold=settings.low_performance_threshold,
            high_performance_threshold=settings.high_performance_threshold,
            history_size=settings.history_size,
            performance_source=performance_source,
        )

    def _clamp(self, value: float) -> float:
        return max(self.min_difficulty, min(self.max_difficulty, float(value)))

    @property
    def current(self) -> float:
        return self._current

    @property
    def target(self) -> float:
        return self._target

    @property
    def is_stable(self) -> bool:
        return abs(self._current - self._target) <= self.epsilon

    @property
    def state(self) -> DifficultyState:
        return DifficultyState(
            current=self._current,
            target=self._target,
            min_difficulty=self.min_difficulty,
            max_difficulty=self.max_difficulty,
            stable=self.is_stable,
        )

    def record_performance(self, performance: float) -> None:
        self.performance_history.append(clamp01(performance))

    def average_performance(self) -> Optional[float]:
        history = self.performance_history.to_list()
        if not history:
            return None
        return sum(history) / len(history)

    def set_target(self, target: float) -> None:
        """Override the target (clamped to bounds)."""
        self._target = self._clamp(target)
        metrics.record_difficulty(self._current, self._target)

    def tick(self, delta_time: float) -> Optional[DifficultyChange]:
        """
        Advance the control loop by delta_time.

        Returns:
            The DifficultyChange emitted this tick, or None if current moved
            by no more than epsilon
        """
        if self.performance_source is not None:
            self.record_performance(self.performance_source())

        self._adjust_target()
        return self._smooth(delta_time)

    def _adjust_target(self) -> None:
        average = self.average_performance()
        if average is None:
            return

        if average < self.low_performance_threshold:
            self._target = self._clamp(self._target - self.step)
        elif average > self.high_performance_threshold:
            self._target = self._clamp(self._target + self.step)

    def _smooth(self, delta_time: float) -> Optional[DifficultyChange]:
        gap = self._target - self._current
        if abs(gap) <= self.epsilon:
            metrics.record_difficulty(self._current, self._target)
            return None

        # Factor capped at 1 so a long tick lands on target instead of overshooting
        factor = min(1.0, self.smoothing_rate * max(0.0, delta_time))
        previous = self._current
        self._current = self._clamp(previous + gap * factor)
        metrics.record_difficulty(self._current, self._target)

        if abs(self._current - previous) <= self.epsilon:
            return None

        change = DifficultyChange(previous=previous, current=self._current, target=self._target)
        logger.info(
            "[DifficultyController] Difficulty %.2f -> %.2f (target %.2f)",
            previous, self._current, self._target,
        )
        self.difficulty_changed.emit(change)
        return change

    def reset(self, difficulty: Optional[float] = None) -> None:
        value = self._clamp(difficulty if difficulty is not None else (self.min_difficulty + self.max_difficulty) / 2)
        self._current = value
        self._target = value
        self.performance_history.clear()
        metrics.record_difficulty(self._current, self._target)
