"""
Quality validation for generated rooms.

Stages, run in order by validate():
1. Overlap resolution - nudge puzzles that sit closer than the minimum
   separation (bounded number of passes)
2. Cost check - drop complexity one step when the draw-call estimate is
   over budget
3. Comfort flagging - comfort aids for tall rooms, cue aids for complex ones
4. Scoring - quality score in [0, 100]

The validator never rejects a room; it only adjusts and flags it.
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from constants import (
    ACCESSIBILITY_COMPLEXITY_THRESHOLD,
    COMFORT_HEIGHT_THRESHOLD,
    DRAW_CALL_BUDGET,
    DRAW_CALLS_PER_COMPLEXITY,
    MAX_OVERLAP_PASSES,
    MIN_PUZZLE_SEPARATION,
    OVERLAP_OFFSET_RADIUS,
    QUALITY_COMFORT_BONUS,
    QUALITY_LOD_BONUS,
    QUALITY_MAX_SCORE,
    QUALITY_POINTS_PER_COMPLEXITY,
    QUALITY_POINTS_PER_PUZZLE,
    QUALITY_THEME_BONUS,
    ROOM_COMPLEXITY_MIN,
)
from content_models import AccessibilityFeatures, ComfortFeatures, GeneratedRoom
from puzzle_types import RoomTheme

if TYPE_CHECKING:
    from config import ValidationSettings

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """What validation did to one room."""

    room_id: str
    overlap_passes: int = 0
    repositioned: int = 0
    unresolved_overlaps: int = 0
    estimated_draw_calls: int = 0
    complexity_reduced: bool = False
    comfort_flagged: bool = False
    accessibility_flagged: bool = False
    quality_score: float = 0.0


class QualityValidator:
    def __init__(
        self,
        rng: Optional[random.Random] = None,
        min_puzzle_separation: float = MIN_PUZZLE_SEPARATION,
        overlap_offset_radius: float = OVERLAP_OFFSET_RADIUS,
        max_overlap_passes: int = MAX_OVERLAP_PASSES,
        draw_calls_per_complexity: int = DRAW_CALLS_PER_COMPLEXITY,
        draw_call_budget: int = DRAW_CALL_BUDGET,
        comfort_height_threshold: float = COMFORT_HEIGHT_THRESHOLD,
        accessibility_complexity_threshold: int = ACCESSIBILITY_COMPLEXITY_THRESHOLD,
        min_room_complexity: int = ROOM_COMPLEXITY_MIN,
    ) -> None:
        self._rng = rng or random.Random()
        self.min_puzzle_separation = min_puzzle_separation
        self.overlap_offset_radius = overlap_offset_radius
        self.max_overlap_passes = max_overlap_passes
        self.draw_calls_per_complexity = draw_calls_per_complexity
        self.draw_call_budget = draw_call_budget
        self.comfort_height_threshold = comfort_height_threshold
        self.accessibility_complexity_threshold = accessibility_complexity_threshold
        self.min_room_complexity = min_room_complexity

    @classmethod
    def from_settings(
        cls,
        settings: ValidationSettings,
        rng: Optional[random.Random] = None,
        min_room_complexity: int = ROOM_COMPLEXITY_MIN,
    ) -> QualityValidator:
        return cls(
            rng=rng,
            min_puzzle_separation=settings.min_puzzle_separation,
            overlap_offset_radius=settings.overlap_offset_radius,
            max_overlap_passes=settings.max_overlap_passes,
            draw_calls_per_complexity=settings.draw_calls_per_complexity,
            draw_call_budget=settings.draw_call_budget,
            comfort_height_threshold=settings.comfort_height_threshold,
            accessibility_complexity_threshold=settings.accessibility_complexity_threshold,
            min_room_complexity=min_room_complexity,
        )

    def validate(self, room: GeneratedRoom) -> ValidationReport:
        """Run every stage on the room in place and score it."""
        report = ValidationReport(room_id=room.id)
        self.resolve_overlaps(room, report)
        self.check_cost(room, report)
        self.flag_comfort(room, report)
        self.score(room, report)
        return report

    def _overlapping_pairs(self, room: GeneratedRoom) -> list[tuple[int, int]]:
        puzzles = room.puzzles
        return [
            (i, j)
            for i in range(len(puzzles))
            for j in range(i + 1, len(puzzles))
            if puzzles[i].position.distance_to(puzzles[j].position) < self.min_puzzle_separation
        ]

    def _random_offset(self) -> tuple[float, float]:
        # Uniform over a disc on the floor plane; puzzle height is kept
        angle = self._rng.uniform(0.0, 2.0 * math.pi)
        radius = self.overlap_offset_radius * math.sqrt(self._rng.random())
        return math.cos(angle) * radius, math.sin(angle) * radius

    def resolve_overlaps(self, room: GeneratedRoom, report: Optional[ValidationReport] = None) -> int:
        """
        Push apart puzzles closer than the minimum separation.

        Each pass walks every pair and moves the later puzzle of an
        overlapping pair by a random offset. Stops as soon as a pass finds
        no overlap, or after max_overlap_passes.

        Returns:
            Number of overlapping pairs still present
        """
        report = report or ValidationReport(room_id=room.id)

        for _ in range(self.max_overlap_passes):
            moved = False
            for i in range(len(room.puzzles)):
                for j in range(i + 1, len(room.puzzles)):
                    first, second = room.puzzles[i], room.puzzles[j]
                    if first.position.distance_to(second.position) < self.min_puzzle_separation:
                        dx, dz = self._random_offset()
                        second.position = second.position.offset(dx=dx, dz=dz)
                        report.repositioned += 1
                        moved = True
            if not moved:
                break
            report.overlap_passes += 1

        remaining = len(self._overlapping_pairs(room))
        report.unresolved_overlaps = remaining
        if remaining:
            logger.warning(
                "[QualityValidator] %s keeps %d overlapping puzzle pair(s) after %d passes",
                room.name, remaining, report.overlap_passes,
            )
        return remaining

    def estimate_draw_calls(self, room: GeneratedRoom) -> int:
        return room.complexity * self.draw_calls_per_complexity

    def check_cost(self, room: GeneratedRoom, report: Optional[ValidationReport] = None) -> bool:
        """
        Reduce complexity one step when over the draw-call budget.

        Returns:
            True if complexity was reduced
        """
        report = report or ValidationReport(room_id=room.id)
        report.estimated_draw_calls = self.estimate_draw_calls(room)

        if report.estimated_draw_calls <= self.draw_call_budget:
            return False

        reduced = max(self.min_room_complexity, room.complexity - 1)
        if reduced == room.complexity:
            return False

        logger.info(
            "[QualityValidator] %s over draw-call budget (%d > %d); complexity %d -> %d",
            room.name, report.estimated_draw_calls, self.draw_call_budget, room.complexity, reduced,
        )
        room.complexity = reduced
        report.complexity_reduced = True
        return True

    def flag_comfort(self, room: GeneratedRoom, report: Optional[ValidationReport] = None) -> None:
        report = report or ValidationReport(room_id=room.id)

        if room.dimensions.height > self.comfort_height_threshold:
            room.comfort_features = room.comfort_features or ComfortFeatures()
            report.comfort_flagged = True

        if room.complexity > self.accessibility_complexity_threshold:
            room.accessibility_features = room.accessibility_features or AccessibilityFeatures()
            report.accessibility_flagged = True

    @staticmethod
    def compute_score(room: GeneratedRoom) -> float:
        score = room.complexity * QUALITY_POINTS_PER_COMPLEXITY + room.puzzle_count * QUALITY_POINTS_PER_PUZZLE
        if room.theme is not RoomTheme.NONE:
            score += QUALITY_THEME_BONUS
        if room.lod_levels:
            score += QUALITY_LOD_BONUS
        if room.comfort_features is not None:
            score += QUALITY_COMFORT_BONUS
        return max(0.0, min(QUALITY_MAX_SCORE, float(score)))

    def score(self, room: GeneratedRoom, report: Optional[ValidationReport] = None) -> float:
        room.quality_score = self.compute_score(room)
        if report is not None:
            report.quality_score = room.quality_score
        return room.quality_score
