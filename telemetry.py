"""
Telemetry intake.

TelemetrySink is the boundary where external collaborators (input, scene
assembly, puzzle controllers) hand over raw observations. It only
normalizes and timestamps; all interpretation happens in
PerformanceAnalyzer.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterator, Optional, TypeVar

from constants import COMPLEXITY_GLOBAL_MAX, COMPLEXITY_GLOBAL_MIN
from puzzle_types import PuzzleCategory

if TYPE_CHECKING:
    from performance_analyzer import PerformanceAnalyzer

logger = logging.getLogger(__name__)

T = TypeVar("T")


def clamp01(value: float) -> float:
    """Clamp to [0, 1]; NaN becomes 0."""
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


class RollingWindow(Generic[T]):
    """
    Bounded FIFO history.

    Once full, each append evicts the oldest entry. Iteration runs oldest
    to newest.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError(f"RollingWindow capacity must be positive, got {capacity}")
        self._items: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen  # type: ignore[return-value]

    def append(self, item: T) -> Optional[T]:
        """
        Add an item, returning the evicted oldest item if the window was full.
        """
        evicted = self._items[0] if len(self._items) == self._items.maxlen else None
        self._items.append(item)
        return evicted

    def last(self, count: int) -> list[T]:
        """The most recent `count` items, oldest first."""
        if count <= 0:
            return []
        items = list(self._items)
        return items[-count:]

    def preceding(self, count: int, skip: int) -> list[T]:
        """The `count` items that come before the most recent `skip` items."""
        items = list(self._items)
        end = len(items) - skip
        if end <= 0 or count <= 0:
            return []
        return items[max(0, end - count):end]

    def is_full(self) -> bool:
        return len(self._items) == self._items.maxlen

    def clear(self) -> None:
        self._items.clear()

    def to_list(self) -> list[T]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __getitem__(self, index: int) -> T:
        return self._items[index]

    def __repr__(self) -> str:
        return f"RollingWindow(size={len(self._items)}, capacity={self._items.maxlen})"


@dataclass(frozen=True)
class PerformanceSample:
    """
    One telemetry observation with the derived levels at collection time.

    Attributes:
        timestamp: Clock time the sample was taken
        engagement: Engagement level in [0, 1]
        frustration: Frustration level in [0, 1]
        mastery: Mastery level in [0, 1]
        active_puzzle_count: Puzzles the player had open
        movement_intensity: Normalized movement intensity in [0, 1]
        interaction_frequency: Normalized interaction rate in [0, 1]
        puzzle_progress: Progress on the current puzzle in [0, 1]
    """

    timestamp: float
    engagement: float
    frustration: float
    mastery: float
    active_puzzle_count: int
    movement_intensity: float
    interaction_frequency: float
    puzzle_progress: float


@dataclass(frozen=True)
class PuzzleOutcome:
    """A finished puzzle attempt reported by the scene collaborator."""

    category: Optional[PuzzleCategory]
    success: bool
    completion_time: float
    difficulty: float
    player_id: str = "player_1"
    timestamp: float = 0.0


class TelemetrySink:
    """
    Normalizes and timestamps raw telemetry, then forwards it to the analyzer.

    Out-of-range values are clamped, never rejected. An outcome for an
    unknown puzzle category still counts toward overall performance but
    not toward any per-category statistics.
    """

    def __init__(
        self,
        analyzer: PerformanceAnalyzer,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.analyzer = analyzer
        self._clock = clock
        self.samples_received = 0
        self.outcomes_received = 0

    def record_sample(
        self,
        movement_intensity: float,
        interaction_frequency: float,
        puzzle_progress: float,
        active_puzzle_count: int = 0,
    ) -> PerformanceSample:
        """Accept one continuous telemetry sample."""
        self.samples_received += 1
        return self.analyzer.record_telemetry(
            movement_intensity=clamp01(movement_intensity),
            interaction_frequency=clamp01(interaction_frequency),
            puzzle_progress=clamp01(puzzle_progress),
            active_puzzle_count=max(0, int(active_puzzle_count)),
            timestamp=self._clock(),
        )

    def record_outcome(
        self,
        puzzle_category: Any,
        success: bool,
        completion_time: Optional[float],
        difficulty_at_attempt: Optional[float],
        player_id: str = "player_1",
    ) -> PuzzleOutcome:
        """
        Accept one puzzle outcome event.

        A missing or NaN completion time counts as 0; a missing or NaN
        difficulty counts as the global minimum.
        """
        category = PuzzleCategory.parse(puzzle_category)
        if category is None:
            logger.warning("[TelemetrySink] Unknown puzzle category %r; recording as uncategorised", puzzle_category)

        if completion_time is None or math.isnan(completion_time):
            completion_time = 0.0
        if difficulty_at_attempt is None or math.isnan(difficulty_at_attempt):
            difficulty_at_attempt = COMPLEXITY_GLOBAL_MIN

        outcome = PuzzleOutcome(
            category=category,
            success=bool(success),
            completion_time=max(0.0, float(completion_time)),
            difficulty=max(float(COMPLEXITY_GLOBAL_MIN), min(float(COMPLEXITY_GLOBAL_MAX), float(difficulty_at_attempt))),
            player_id=player_id,
            timestamp=self._clock(),
        )
        self.outcomes_received += 1
        self.analyzer.record_attempt(outcome)
        return outcome
