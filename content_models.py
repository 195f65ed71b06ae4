"""
Descriptors produced by content generation.

A GeneratedRoom is built by ContentGenerator, mutated by QualityValidator,
and treated as read-only once it is resident in ContentPool. Descriptors
are plain data; turning them into renderable scenes is the job of the
scene-assembly collaborator.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from puzzle_types import PuzzleCategory, RoomTheme


@dataclass(frozen=True)
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def distance_to(self, other: Vector3) -> float:
        return math.sqrt((self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2)

    def offset(self, dx: float = 0.0, dy: float = 0.0, dz: float = 0.0) -> Vector3:
        return Vector3(self.x + dx, self.y + dy, self.z + dz)


@dataclass(frozen=True)
class RoomDimensions:
    width: float
    height: float
    depth: float


@dataclass(frozen=True)
class RoomLayout:
    """Segment counts for the room shell."""

    wall_segments: int
    floor_segments: int
    ceiling_segments: int


@dataclass(frozen=True)
class PuzzleRequirements:
    min_time: float
    max_time: float
    required_actions: int
    success_threshold: float


@dataclass
class RoomLighting:
    main_light_intensity: float
    ambient_intensity: float
    shadow_strength: float
    color_temperature: float
    max_lights: int = 4
    real_time_shadows: bool = True


@dataclass
class AtmosphericEffects:
    fog_density: float
    particle_count: int
    wind_strength: float
    ambient_occlusion: bool


@dataclass(frozen=True)
class LODLevel:
    distance: float
    quality: float


@dataclass
class MeshBudget:
    target_vertex_count: int
    batch_size: int
    culling: bool = True


@dataclass
class ComfortFeatures:
    """Comfort aids attached to tall rooms."""

    blink: bool = True
    vignette: bool = True


@dataclass
class AccessibilityFeatures:
    """Cue aids attached to complex rooms."""

    audio_cues: bool = True
    visual_cues: bool = True


@dataclass
class GeneratedPuzzle:
    """
    One puzzle placed in a room.

    Attributes:
        id: "<room_id>_puzzle_<index>"
        room_id: Owning room (back-reference only)
        category: Puzzle category
        difficulty: Integer difficulty within the global bounds
        position: Room-local position
        parameters: Category (and theme) specific tuning values
        requirements: Completion requirements
        index: Position of the puzzle in the room's progression
    """

    id: str
    room_id: str
    category: PuzzleCategory
    difficulty: int
    position: Vector3
    parameters: dict[str, Any]
    requirements: PuzzleRequirements
    index: int = 0


@dataclass
class GeneratedRoom:
    """A complete room descriptor."""

    id: str
    name: str
    complexity: int
    theme: RoomTheme
    dimensions: RoomDimensions
    layout: RoomLayout
    puzzles: list[GeneratedPuzzle] = field(default_factory=list)
    quality_score: float = 0.0
    created_at: float = 0.0
    lighting: Optional[RoomLighting] = None
    atmosphere: Optional[AtmosphericEffects] = None
    lod_levels: list[LODLevel] = field(default_factory=list)
    mesh_budget: Optional[MeshBudget] = None
    comfort_features: Optional[ComfortFeatures] = None
    accessibility_features: Optional[AccessibilityFeatures] = None
    focus_categories: list[PuzzleCategory] = field(default_factory=list)

    @property
    def puzzle_count(self) -> int:
        return len(self.puzzles)

    @property
    def puzzle_difficulties(self) -> list[int]:
        return [puzzle.difficulty for puzzle in self.puzzles]

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (enums as their values)."""
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
