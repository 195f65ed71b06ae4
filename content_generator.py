"""
Content Generator - Procedural Room and Puzzle Generation

Pure generation; no quality checks happen here. The pipeline is split into
stages so the director can check for cancellation between them:

1. build_room_structure: complexity, theme, name, dimensions, layout,
   lighting and atmosphere
2. populate_puzzles: count, progressive difficulty, category, parameters,
   position and requirements for every puzzle
3. optimize_room: LOD levels, mesh budget and lighting limits

Room complexity follows recent performance and success rate, blended with
the controller's current difficulty when one is wired in and scaled by the
player's average skill. Categories the player is strong in are favoured
when drawing puzzle types.
"""

from __future__ import annotations

import logging
import math
import random
import time
import uuid
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Optional

from constants import (
    COMPLEXITY_GLOBAL_MAX,
    COMPLEXITY_GLOBAL_MIN,
    COMPLEXITY_PERFORMANCE_WEIGHT,
    COMPLEXITY_SUCCESS_WEIGHT,
    DEFAULT_SUCCESS_RATE,
    DIFFICULTY_CURVE,
    NEUTRAL_PERFORMANCE,
    PUZZLE_BASE_COUNT_MAX,
    PUZZLE_HEIGHT,
    PUZZLE_RADIUS_FRACTION,
    PUZZLES_PER_ROOM_MAX,
    PUZZLES_PER_ROOM_MIN,
    ROOM_BASE_HEIGHT,
    ROOM_BASE_SIZE,
    ROOM_COMPLEXITY_MAX,
    ROOM_COMPLEXITY_MIN,
    ROOM_HEIGHT_PER_COMPLEXITY,
    ROOM_SIZE_PER_COMPLEXITY,
    SKILL_COMPLEXITY_SCALE_MAX,
    SKILL_COMPLEXITY_SCALE_MIN,
)
from content_models import (
    AtmosphericEffects,
    GeneratedPuzzle,
    GeneratedRoom,
    LODLevel,
    MeshBudget,
    PuzzleRequirements,
    RoomDimensions,
    RoomLayout,
    RoomLighting,
    Vector3,
)
from events import EventChannel
from puzzle_types import PuzzleCategory, PuzzleTypeSelector, RoomTheme
from telemetry import clamp01

if TYPE_CHECKING:
    from config import GenerationSettings
    from performance_analyzer import PerformanceSnapshot

logger = logging.getLogger(__name__)

NAME_ADJECTIVES = (
    "Ancient", "Mystical", "Technological", "Natural", "Abandoned",
    "Sacred", "Hidden", "Floating", "Underground", "Celestial",
)
NAME_ELEMENTS = (
    "Chamber", "Sanctuary", "Laboratory", "Garden", "Temple",
    "Library", "Observatory", "Portal", "Nexus", "Core",
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _clamp_int(value: float, low: int, high: int) -> int:
    return int(max(low, min(high, value)))


# === PARAMETER TABLES ===
# Tolerances and time limits shrink, counts grow as difficulty rises.

def _relic_parameters(d: int) -> dict[str, Any]:
    return {
        "required_relics": _clamp_int(d, 1, 8),
        "slot_count": _clamp_int(d + 1, 2, 10),
        "snap_distance": max(0.05, 0.2 - d * 0.01),
        "time_limit": _clamp(120.0 - d * 8.0, 30.0, 180.0),
        "require_specific_order": d > 5,
        "haptic_feedback": True,
    }


def _gesture_parameters(d: int) -> dict[str, Any]:
    return {
        "required_gestures": _clamp_int(d // 2, 1, 6),
        "gesture_hold_time": _clamp(0.5 + d * 0.2, 0.5, 3.0),
        "gesture_tolerance": max(0.05, 0.2 - d * 0.015),
        "require_sequential": d > 4,
        "require_both_hands": d > 6,
        "gesture_visualization": True,
    }


def _pattern_parameters(d: int) -> dict[str, Any]:
    return {
        "pattern_size": _clamp_int(d, 2, 8),
        "pattern_complexity": _clamp_int(d // 2, 1, 5),
        "time_limit": _clamp(90.0 - d * 5.0, 30.0, 120.0),
        "allow_hints": d <= 3,
        "pattern_highlighting": True,
    }


def _sequence_parameters(d: int) -> dict[str, Any]:
    return {
        "sequence_length": _clamp_int(d + 2, 3, 12),
        "sequence_complexity": _clamp_int(d // 2, 1, 6),
        "time_limit": _clamp(60.0 - d * 3.0, 20.0, 90.0),
        "allow_backtracking": d <= 4,
        "sequence_visualization": True,
    }


def _logic_parameters(d: int) -> dict[str, Any]:
    return {
        "logic_steps": _clamp_int(d, 2, 8),
        "logic_complexity": _clamp_int(d // 2, 1, 5),
        "time_limit": _clamp(180.0 - d * 10.0, 60.0, 300.0),
        "allow_hints": d <= 4,
        "logic_visualization": True,
    }


def _physics_parameters(d: int) -> dict[str, Any]:
    return {
        "physics_objects": _clamp_int(d, 2, 10),
        "physics_complexity": _clamp_int(d // 2, 1, 6),
        "time_limit": _clamp(150.0 - d * 8.0, 45.0, 240.0),
        "physics_debug": d <= 3,
        "require_precision": d > 5,
    }


def _combination_parameters(d: int) -> dict[str, Any]:
    return {
        "combination_length": _clamp_int(d, 3, 10),
        "combination_complexity": _clamp_int(d // 2, 1, 6),
        "time_limit": _clamp(120.0 - d * 6.0, 40.0, 180.0),
        "allow_hints": d <= 3,
        "combination_visualization": True,
    }


CATEGORY_PARAMETERS: dict[PuzzleCategory, Callable[[int], dict[str, Any]]] = {
    PuzzleCategory.RELIC_PLACEMENT: _relic_parameters,
    PuzzleCategory.HAND_GESTURE: _gesture_parameters,
    PuzzleCategory.PATTERN_MATCHING: _pattern_parameters,
    PuzzleCategory.SEQUENCE: _sequence_parameters,
    PuzzleCategory.LOGIC: _logic_parameters,
    PuzzleCategory.PHYSICS: _physics_parameters,
    PuzzleCategory.COMBINATION: _combination_parameters,
}

THEME_PARAMETERS: dict[RoomTheme, Callable[[int], dict[str, Any]]] = {
    RoomTheme.ANCIENT: lambda d: {
        "ancient_symbols": True,
        "symbol_complexity": _clamp_int(d // 2, 1, 4),
        "require_archaeological_knowledge": d > 6,
    },
    RoomTheme.MYSTICAL: lambda d: {
        "mystical_elements": True,
        "magic_level": _clamp_int(d // 2, 1, 5),
        "require_spiritual_alignment": d > 5,
    },
    RoomTheme.TECHNOLOGICAL: lambda d: {
        "tech_level": _clamp_int(d // 2, 1, 5),
        "require_technical_knowledge": d > 4,
        "tech_hud": True,
    },
    RoomTheme.NATURAL: lambda d: {
        "natural_elements": True,
        "environmental_factors": _clamp_int(d // 2, 1, 4),
        "require_environmental_awareness": d > 5,
    },
    RoomTheme.SACRED: lambda d: {
        "sacred_elements": True,
        "divine_complexity": _clamp_int(d // 2, 1, 5),
        "require_spiritual_purity": d > 6,
    },
}


@dataclass
class GenerationStats:
    """Aggregate statistics over every puzzle generated so far."""

    rooms_generated: int = 0
    total_puzzles: int = 0
    category_distribution: dict[PuzzleCategory, int] = field(default_factory=dict)
    difficulty_distribution: dict[int, int] = field(default_factory=dict)
    average_difficulty: float = 0.0


class ContentGenerator:
    """
    Builds GeneratedRoom descriptors.

    Usage:
        generator = ContentGenerator(
            selector=PuzzleTypeSelector(rng=rng),
            performance_source=analyzer.snapshot,
            difficulty_source=lambda: controller.current,
            rng=rng,
        )
        room = generator.generate_room()
    """

    def __init__(
        self,
        selector: PuzzleTypeSelector,
        performance_source: Optional[Callable[[], PerformanceSnapshot]] = None,
        difficulty_source: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
        min_room_complexity: int = ROOM_COMPLEXITY_MIN,
        max_room_complexity: int = ROOM_COMPLEXITY_MAX,
        min_complexity: int = COMPLEXITY_GLOBAL_MIN,
        max_complexity: int = COMPLEXITY_GLOBAL_MAX,
        min_puzzles_per_room: int = PUZZLES_PER_ROOM_MIN,
        max_puzzles_per_room: int = PUZZLES_PER_ROOM_MAX,
        difficulty_curve: float = DIFFICULTY_CURVE,
        enable_progressive_difficulty: bool = True,
        enable_room_themes: bool = True,
        enabled_themes: Optional[Iterable[Any]] = None,
        enable_theme_parameters: bool = True,
        enable_lod_generation: bool = True,
        enable_skill_adaptation: bool = True,
        difficulty_spread: Optional[float] = None,
    ) -> None:
        self.selector = selector
        self.performance_source = performance_source
        self.difficulty_source = difficulty_source
        self._rng = rng or random.Random()
        self._clock = clock

        self.min_complexity = min_complexity
        self.max_complexity = max_complexity
        # Room bounds always sit inside the global bounds
        self.min_room_complexity = _clamp_int(min_room_complexity, min_complexity, max_complexity)
        self.max_room_complexity = _clamp_int(max_room_complexity, self.min_room_complexity, max_complexity)
        self.min_puzzles_per_room = min_puzzles_per_room
        self.max_puzzles_per_room = max(min_puzzles_per_room, max_puzzles_per_room)
        self.difficulty_curve = difficulty_curve
        self.enable_progressive_difficulty = enable_progressive_difficulty
        self.enable_room_themes = enable_room_themes
        self.enable_theme_parameters = enable_theme_parameters
        self.enable_lod_generation = enable_lod_generation
        self.enable_skill_adaptation = enable_skill_adaptation
        self.difficulty_spread = difficulty_spread
        self.enabled_themes = self._resolve_themes(enabled_themes)

        self._rooms_generated = 0
        self._category_counts: Counter[PuzzleCategory] = Counter()
        self._difficulty_counts: Counter[int] = Counter()

        self.room_generated: EventChannel[GeneratedRoom] = EventChannel("room_generated")
        self.puzzle_generated: EventChannel[GeneratedPuzzle] = EventChannel("puzzle_generated")

        if performance_source is None:
            logger.warning("[ContentGenerator] No performance source; complexity uses neutral defaults")

    @classmethod
    def from_settings(
        cls,
        settings: GenerationSettings,
        selector: PuzzleTypeSelector,
        performance_source: Optional[Callable[[], PerformanceSnapshot]] = None,
        difficulty_source: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.time,
    ) -> ContentGenerator:
        return cls(
            selector=selector,
            performance_source=performance_source,
            difficulty_source=difficulty_source,
            rng=rng,
            clock=clock,
            min_room_complexity=settings.min_room_complexity,
            max_room_complexity=settings.max_room_complexity,
            min_complexity=settings.min_complexity,
            max_complexity=settings.max_complexity,
            min_puzzles_per_room=settings.min_puzzles_per_room,
            max_puzzles_per_room=settings.max_puzzles_per_room,
            difficulty_curve=settings.difficulty_curve,
            enable_progressive_difficulty=settings.enable_progressive_difficulty,
            enable_room_themes=settings.enable_room_themes,
            enabled_themes=settings.enabled_themes,
            enable_theme_parameters=settings.enable_theme_parameters,
            enable_lod_generation=settings.enable_lod_generation,
            enable_skill_adaptation=settings.enable_skill_adaptation,
            difficulty_spread=settings.difficulty_spread,
        )

    @staticmethod
    def _resolve_themes(enabled_themes: Optional[Iterable[Any]]) -> list[RoomTheme]:
        if enabled_themes is None:
            return [theme for theme in RoomTheme if theme is not RoomTheme.NONE]

        themes = []
        for value in enabled_themes:
            theme = RoomTheme.parse(value)
            if theme is None:
                logger.warning("[ContentGenerator] Ignoring unknown theme %r", value)
            elif theme not in themes:
                themes.append(theme)
        return themes

    # ------------------------------------------------------------------
    # Room-level decisions
    # ------------------------------------------------------------------

    def room_complexity(self, snapshot: Optional[PerformanceSnapshot] = None) -> int:
        """
        Interpolate between room complexity bounds from performance.

        blend = performance × 0.6 + success_rate × 0.4. With a difficulty
        source wired in, the result is averaged with the current difficulty
        (clamped to the room bounds). With skill adaptation on, the value
        is then scaled by skill_scale() before the final clamp.
        """
        if snapshot is None and self.performance_source is not None:
            snapshot = self.performance_source()

        performance = NEUTRAL_PERFORMANCE
        success_rate = DEFAULT_SUCCESS_RATE
        if snapshot is not None:
            performance = snapshot.performance
            if snapshot.success_rate is not None:
                success_rate = snapshot.success_rate

        blend = clamp01(performance * COMPLEXITY_PERFORMANCE_WEIGHT + success_rate * COMPLEXITY_SUCCESS_WEIGHT)
        complexity = self.min_room_complexity + (self.max_room_complexity - self.min_room_complexity) * blend

        if self.difficulty_source is not None:
            difficulty = _clamp(self.difficulty_source(), self.min_room_complexity, self.max_room_complexity)
            complexity = (complexity + difficulty) / 2.0

        complexity *= self.skill_scale(snapshot)
        return _clamp_int(round(complexity), self.min_room_complexity, self.max_room_complexity)

    def skill_scale(self, snapshot: Optional[PerformanceSnapshot]) -> float:
        """lerp(0.5, 1.5, average_skill); 1.0 without skill data."""
        if not self.enable_skill_adaptation or snapshot is None or snapshot.average_skill is None:
            return 1.0
        skill = clamp01(snapshot.average_skill)
        return SKILL_COMPLEXITY_SCALE_MIN + (SKILL_COMPLEXITY_SCALE_MAX - SKILL_COMPLEXITY_SCALE_MIN) * skill

    def focus_categories(self, snapshot: Optional[PerformanceSnapshot]) -> list[PuzzleCategory]:
        if not self.enable_skill_adaptation or snapshot is None:
            return []
        return list(snapshot.preferred_categories)

    def select_theme(self) -> RoomTheme:
        if not self.enable_room_themes or not self.enabled_themes:
            return RoomTheme.NONE
        return self._rng.choice(self.enabled_themes)

    def room_name(self) -> str:
        adjective = self._rng.choice(NAME_ADJECTIVES)
        element = self._rng.choice(NAME_ELEMENTS)
        return f"{adjective} {element} {self._rng.randint(1, 999):03d}"

    def _new_id(self) -> str:
        return str(uuid.UUID(int=self._rng.getrandbits(128), version=4))

    @staticmethod
    def room_dimensions(complexity: int) -> RoomDimensions:
        size = ROOM_BASE_SIZE + complexity * ROOM_SIZE_PER_COMPLEXITY
        return RoomDimensions(
            width=size,
            height=ROOM_BASE_HEIGHT + complexity * ROOM_HEIGHT_PER_COMPLEXITY,
            depth=size,
        )

    @staticmethod
    def room_layout(complexity: int) -> RoomLayout:
        return RoomLayout(
            wall_segments=_clamp_int(complexity * 2, 4, 16),
            floor_segments=_clamp_int(complexity * 3, 8, 24),
            ceiling_segments=_clamp_int(complexity * 2, 4, 16),
        )

    def room_lighting(self, complexity: int) -> RoomLighting:
        return RoomLighting(
            main_light_intensity=0.8 + complexity * 0.1,
            ambient_intensity=0.3 + complexity * 0.05,
            shadow_strength=_clamp(0.5 + complexity * 0.1, 0.3, 0.9),
            color_temperature=self._rng.uniform(2000.0, 8000.0),
        )

    @staticmethod
    def room_atmosphere(complexity: int) -> AtmosphericEffects:
        return AtmosphericEffects(
            fog_density=_clamp(complexity * 0.02, 0.01, 0.1),
            particle_count=complexity * 100,
            wind_strength=complexity * 0.1,
            ambient_occlusion=complexity > 5,
        )

    # ------------------------------------------------------------------
    # Puzzle-level decisions
    # ------------------------------------------------------------------

    def puzzle_count(self, complexity: int) -> int:
        """clamp(complexity // 2, 1, 5) ± 1, clamped to the per-room bounds."""
        base = _clamp_int(complexity // 2, 1, PUZZLE_BASE_COUNT_MAX)
        count = base + self._rng.randint(-1, 1)
        return _clamp_int(count, self.min_puzzles_per_room, self.max_puzzles_per_room)

    def difficulty_window(self) -> tuple[int, int]:
        """
        Puzzle difficulty bounds for the next room.

        The global bounds, narrowed to current ± difficulty_spread when a
        spread is configured and a difficulty source is wired in.
        """
        if self.difficulty_spread is None or self.difficulty_source is None:
            return self.min_complexity, self.max_complexity

        current = _clamp(self.difficulty_source(), self.min_complexity, self.max_complexity)
        low = _clamp_int(math.floor(current - self.difficulty_spread), self.min_complexity, self.max_complexity)
        high = _clamp_int(math.ceil(current + self.difficulty_spread), low, self.max_complexity)
        return low, high

    def puzzle_difficulty(
        self,
        complexity: int,
        index: int,
        count: int,
        window: Optional[tuple[int, int]] = None,
    ) -> int:
        """
        Progressive difficulty for puzzle `index` of `count`.

        round(complexity × (1 + index / (count - 1) × curve)), clamped to
        `window` (the global bounds by default). The first puzzle always
        gets the base multiplier.
        """
        low, high = window or (self.min_complexity, self.max_complexity)
        multiplier = 1.0
        if self.enable_progressive_difficulty:
            progression = index / max(1, count - 1)
            multiplier = 1.0 + progression * self.difficulty_curve
        return _clamp_int(round(complexity * multiplier), low, high)

    @staticmethod
    def puzzle_position(dimensions: RoomDimensions, index: int, count: int) -> Vector3:
        """Evenly spaced around the room centre at a fixed radius."""
        angle = math.radians(360.0 / max(1, count) * index)
        radius = dimensions.width * PUZZLE_RADIUS_FRACTION
        return Vector3(x=math.cos(angle) * radius, y=PUZZLE_HEIGHT, z=math.sin(angle) * radius)

    def puzzle_parameters(self, category: PuzzleCategory, difficulty: int, theme: RoomTheme) -> dict[str, Any]:
        parameters = CATEGORY_PARAMETERS[category](difficulty)
        if self.enable_theme_parameters and theme in THEME_PARAMETERS:
            parameters.update(THEME_PARAMETERS[theme](difficulty))
        return parameters

    @staticmethod
    def puzzle_requirements(category: PuzzleCategory, difficulty: int) -> PuzzleRequirements:
        min_time = _clamp(20.0 - difficulty * 1.5, 10.0, 60.0)
        max_time = _clamp(300.0 - difficulty * 15.0, 120.0, 600.0)
        success_threshold = _clamp(0.9 - difficulty * 0.03, 0.6, 0.95)

        if category is PuzzleCategory.RELIC_PLACEMENT:
            success_threshold = _clamp(0.95 - difficulty * 0.02, 0.8, 0.98)
        elif category is PuzzleCategory.HAND_GESTURE:
            success_threshold = _clamp(0.85 - difficulty * 0.025, 0.7, 0.9)
        elif category is PuzzleCategory.LOGIC:
            max_time = _clamp(600.0 - difficulty * 30.0, 300.0, 900.0)
        elif category is PuzzleCategory.PHYSICS:
            success_threshold = _clamp(0.8 - difficulty * 0.02, 0.65, 0.85)

        return PuzzleRequirements(
            min_time=min_time,
            max_time=max_time,
            required_actions=_clamp_int(difficulty, 1, 15),
            success_threshold=success_threshold,
        )

    # ------------------------------------------------------------------
    # Pipeline stages
    # ------------------------------------------------------------------

    def build_room_structure(self, snapshot: Optional[PerformanceSnapshot] = None) -> GeneratedRoom:
        if snapshot is None and self.performance_source is not None:
            snapshot = self.performance_source()

        complexity = self.room_complexity(snapshot)
        dimensions = self.room_dimensions(complexity)

        room = GeneratedRoom(
            id=self._new_id(),
            name=self.room_name(),
            complexity=complexity,
            theme=self.select_theme(),
            dimensions=dimensions,
            layout=self.room_layout(complexity),
            created_at=self._clock(),
            lighting=self.room_lighting(complexity),
            atmosphere=self.room_atmosphere(complexity),
            focus_categories=self.focus_categories(snapshot),
        )

        logger.debug(
            "[ContentGenerator] Built structure for %s (complexity %d, theme %s)",
            room.name, complexity, room.theme.value,
        )
        return room

    def populate_puzzles(self, room: GeneratedRoom) -> list[GeneratedPuzzle]:
        """
        Fill room.puzzles. Touches only the room, so it is safe to run off the
        loop; statistics and notifications wait for mark_generated() and
        publish_room().
        """
        count = self.puzzle_count(room.complexity)
        window = self.difficulty_window()
        puzzles = []

        for index in range(count):
            difficulty = self.puzzle_difficulty(room.complexity, index, count, window)
            category = self.selector.select_type(difficulty, room.theme, room.focus_categories)

            puzzle = GeneratedPuzzle(
                id=f"{room.id}_puzzle_{index}",
                room_id=room.id,
                category=category,
                difficulty=difficulty,
                position=self.puzzle_position(room.dimensions, index, count),
                parameters=self.puzzle_parameters(category, difficulty, room.theme),
                requirements=self.puzzle_requirements(category, difficulty),
                index=index,
            )
            puzzles.append(puzzle)

        room.puzzles = puzzles
        logger.debug("[ContentGenerator] Generated %d puzzles for %s", count, room.name)
        return puzzles

    def optimize_room(self, room: GeneratedRoom) -> None:
        """Attach LOD levels, mesh budget and lighting limits."""
        if self.enable_lod_generation:
            level_count = _clamp_int(room.complexity // 2, 2, 4)
            room.lod_levels = [
                LODLevel(distance=10.0 + i * 15.0, quality=1.0 - i * 0.2)
                for i in range(level_count)
            ]

        room.mesh_budget = MeshBudget(
            target_vertex_count=10000 - room.complexity * 500,
            batch_size=_clamp_int(100 - room.complexity * 5, 50, 200),
        )

        if room.lighting is not None:
            room.lighting.max_lights = _clamp_int(room.complexity, 2, 8)
            room.lighting.real_time_shadows = room.complexity <= 6

    def generate_room(self, snapshot: Optional[PerformanceSnapshot] = None) -> GeneratedRoom:
        """Run every generation stage in one go. Validation is separate."""
        room = self.build_room_structure(snapshot)
        self.populate_puzzles(room)
        self.optimize_room(room)
        self.mark_generated(room)
        return room

    def mark_generated(self, room: GeneratedRoom) -> None:
        """Count an accepted room and its puzzles in stats()."""
        self._rooms_generated += 1
        for puzzle in room.puzzles:
            self._category_counts[puzzle.category] += 1
            self._difficulty_counts[puzzle.difficulty] += 1

    def publish_room(self, room: GeneratedRoom) -> None:
        """Announce an accepted room: puzzle_generated per puzzle, then room_generated."""
        for puzzle in room.puzzles:
            self.puzzle_generated.emit(puzzle)

        logger.info(
            "[ContentGenerator] Room ready: %s (%d puzzles, quality %.1f)",
            room.name, room.puzzle_count, room.quality_score,
        )
        self.room_generated.emit(room)

    def stats(self) -> GenerationStats:
        total = sum(self._category_counts.values())
        weighted = sum(difficulty * count for difficulty, count in self._difficulty_counts.items())
        return GenerationStats(
            rooms_generated=self._rooms_generated,
            total_puzzles=total,
            category_distribution=dict(self._category_counts),
            difficulty_distribution=dict(sorted(self._difficulty_counts.items())),
            average_difficulty=weighted / total if total else 0.0,
        )

    def close(self) -> None:
        self.room_generated.clear()
        self.puzzle_generated.clear()
