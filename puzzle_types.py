"""
Puzzle categories, room themes and weighted category selection.

The selector turns a complexity level and a theme into a probability
distribution over puzzle categories:

    weight = base_weight × complexity_multiplier × theme_multiplier

then renormalizes and draws one category. Categories that scale well with
complexity (sequence, logic) gain share as rooms get harder; themes with
an affinity for a category boost it.
"""

from __future__ import annotations

import logging
import math
import random
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from constants import COMPLEXITY_GLOBAL_MAX, COMPLEXITY_GLOBAL_MIN, PREFERRED_CATEGORY_BOOST

if TYPE_CHECKING:
    from config import SelectorSettings

logger = logging.getLogger(__name__)


class PuzzleCategory(Enum):
    """Kinds of puzzle the generator can place in a room."""

    RELIC_PLACEMENT = "relic_placement"
    HAND_GESTURE = "hand_gesture"
    PATTERN_MATCHING = "pattern_matching"
    SEQUENCE = "sequence"
    LOGIC = "logic"
    PHYSICS = "physics"
    COMBINATION = "combination"

    @classmethod
    def parse(cls, value: Any) -> Optional[PuzzleCategory]:
        """
        Resolve a category from an enum, value or name in any common casing.

        Accepts "relic_placement", "RELIC_PLACEMENT", "RelicPlacement" and
        "relic-placement". Returns None for anything unrecognised.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        return _CATEGORY_LOOKUP.get(_normalize_key(value))


class RoomTheme(Enum):
    """Aesthetic/narrative context of a room."""

    NONE = "none"
    ANCIENT = "ancient"
    MYSTICAL = "mystical"
    TECHNOLOGICAL = "technological"
    NATURAL = "natural"
    ABANDONED = "abandoned"
    SACRED = "sacred"
    HIDDEN = "hidden"
    FLOATING = "floating"
    UNDERGROUND = "underground"
    CELESTIAL = "celestial"

    @classmethod
    def parse(cls, value: Any) -> Optional[RoomTheme]:
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        return _THEME_LOOKUP.get(_normalize_key(value))


def _normalize_key(value: str) -> str:
    return value.replace("_", "").replace("-", "").replace(" ", "").lower()


_CATEGORY_LOOKUP = {_normalize_key(c.value): c for c in PuzzleCategory}
_THEME_LOOKUP = {_normalize_key(t.value): t for t in RoomTheme}

# Fixed walk order for the cumulative distribution
CATEGORY_ORDER: tuple[PuzzleCategory, ...] = tuple(PuzzleCategory)

DEFAULT_BASE_WEIGHTS: dict[PuzzleCategory, float] = {
    PuzzleCategory.RELIC_PLACEMENT: 0.25,
    PuzzleCategory.HAND_GESTURE: 0.20,
    PuzzleCategory.PATTERN_MATCHING: 0.15,
    PuzzleCategory.SEQUENCE: 0.15,
    PuzzleCategory.LOGIC: 0.10,
    PuzzleCategory.PHYSICS: 0.08,
    PuzzleCategory.COMBINATION: 0.07,
}

# Multiplier gained per complexity point above the minimum
DEFAULT_COMPLEXITY_RATES: dict[PuzzleCategory, float] = {
    PuzzleCategory.RELIC_PLACEMENT: 0.10,
    PuzzleCategory.HAND_GESTURE: 0.05,   # Gestures scale moderately
    PuzzleCategory.PATTERN_MATCHING: 0.15,
    PuzzleCategory.SEQUENCE: 0.20,
    PuzzleCategory.LOGIC: 0.25,          # Logic scales best
    PuzzleCategory.PHYSICS: 0.10,
    PuzzleCategory.COMBINATION: 0.15,
}

DEFAULT_THEME_AFFINITIES: dict[RoomTheme, dict[PuzzleCategory, float]] = {
    RoomTheme.ANCIENT: {
        PuzzleCategory.RELIC_PLACEMENT: 1.5,
        PuzzleCategory.PATTERN_MATCHING: 1.3,
    },
    RoomTheme.MYSTICAL: {
        PuzzleCategory.HAND_GESTURE: 1.4,
        PuzzleCategory.LOGIC: 1.2,
    },
    RoomTheme.TECHNOLOGICAL: {
        PuzzleCategory.SEQUENCE: 1.5,
        PuzzleCategory.PATTERN_MATCHING: 1.3,
    },
    RoomTheme.NATURAL: {
        PuzzleCategory.HAND_GESTURE: 1.2,
        PuzzleCategory.RELIC_PLACEMENT: 1.1,
    },
    RoomTheme.SACRED: {
        PuzzleCategory.RELIC_PLACEMENT: 1.6,
        PuzzleCategory.HAND_GESTURE: 1.4,
    },
}


def _parse_category_table(table: Mapping[Any, float], label: str) -> dict[PuzzleCategory, float]:
    parsed: dict[PuzzleCategory, float] = {}
    for key, value in table.items():
        category = PuzzleCategory.parse(key)
        if category is None:
            logger.warning("[PuzzleTypeSelector] Ignoring unknown category %r in %s", key, label)
            continue
        parsed[category] = float(value)
    return parsed


class PuzzleTypeSelector:
    """
    Weighted random choice of puzzle category.

    Usage:
        selector = PuzzleTypeSelector(rng=random.Random(7))
        category = selector.select_type(complexity=6, theme=RoomTheme.ANCIENT)
    """

    def __init__(
        self,
        base_weights: Optional[Mapping[Any, float]] = None,
        complexity_rates: Optional[Mapping[Any, float]] = None,
        theme_affinities: Optional[Mapping[Any, Mapping[Any, float]]] = None,
        rng: Optional[random.Random] = None,
        enable_complexity_scaling: bool = True,
        enable_theme_affinity: bool = True,
        preferred_boost: float = PREFERRED_CATEGORY_BOOST,
        min_complexity: int = COMPLEXITY_GLOBAL_MIN,
        max_complexity: int = COMPLEXITY_GLOBAL_MAX,
    ) -> None:
        self._rng = rng or random.Random()
        self.enable_complexity_scaling = enable_complexity_scaling
        self.enable_theme_affinity = enable_theme_affinity
        # Boosts below 1 would penalize strong categories
        self.preferred_boost = max(1.0, preferred_boost)
        self.min_complexity = min_complexity
        self.max_complexity = max_complexity

        self.base_weights = self._normalize_base_weights(
            _parse_category_table(base_weights, "base_weights")
            if base_weights is not None else dict(DEFAULT_BASE_WEIGHTS)
        )

        rates = (
            _parse_category_table(complexity_rates, "complexity_rates")
            if complexity_rates is not None else dict(DEFAULT_COMPLEXITY_RATES)
        )
        self.complexity_rates: dict[PuzzleCategory, float] = {}
        for category, rate in rates.items():
            if rate < 0:
                # A negative rate would make the multiplier decrease with complexity
                logger.warning("[PuzzleTypeSelector] Clamping negative complexity rate for %s", category.value)
                rate = 0.0
            self.complexity_rates[category] = rate

        self.theme_affinities: dict[RoomTheme, dict[PuzzleCategory, float]] = {}
        source = theme_affinities if theme_affinities is not None else DEFAULT_THEME_AFFINITIES
        for theme_key, table in source.items():
            theme = RoomTheme.parse(theme_key)
            if theme is None:
                logger.warning("[PuzzleTypeSelector] Ignoring unknown theme %r in theme_affinities", theme_key)
                continue
            affinities = {
                category: multiplier
                for category, multiplier in _parse_category_table(table, f"theme_affinities.{theme.value}").items()
                if multiplier > 0
            }
            self.theme_affinities[theme] = affinities

    @classmethod
    def from_settings(
        cls,
        settings: SelectorSettings,
        rng: Optional[random.Random] = None,
        min_complexity: int = COMPLEXITY_GLOBAL_MIN,
        max_complexity: int = COMPLEXITY_GLOBAL_MAX,
    ) -> PuzzleTypeSelector:
        return cls(
            base_weights=settings.base_weights,
            complexity_rates=settings.complexity_rates,
            theme_affinities=settings.theme_affinities,
            rng=rng,
            enable_complexity_scaling=settings.enable_complexity_scaling,
            enable_theme_affinity=settings.enable_theme_affinity,
            preferred_boost=settings.preferred_category_boost,
            min_complexity=min_complexity,
            max_complexity=max_complexity,
        )

    @staticmethod
    def _normalize_base_weights(weights: dict[PuzzleCategory, float]) -> dict[PuzzleCategory, float]:
        """Ensure the base table covers every category, is non-negative and sums to 1."""
        table = {category: max(0.0, weights.get(category, 0.0)) for category in CATEGORY_ORDER}
        total = sum(table.values())

        if total <= 0:
            logger.warning("[PuzzleTypeSelector] Base weights are all zero; using a uniform table")
            return {category: 1.0 / len(CATEGORY_ORDER) for category in CATEGORY_ORDER}

        if not math.isclose(total, 1.0, abs_tol=1e-6):
            logger.warning("[PuzzleTypeSelector] Base weights sum to %.4f; renormalizing", total)

        return {category: weight / total for category, weight in table.items()}

    def _clamp_complexity(self, complexity: int) -> int:
        return max(self.min_complexity, min(self.max_complexity, int(complexity)))

    def complexity_multiplier(self, category: PuzzleCategory, complexity: int) -> float:
        """Non-decreasing in complexity: 1 + (complexity - min) × rate."""
        if not self.enable_complexity_scaling:
            return 1.0
        level = self._clamp_complexity(complexity)
        return 1.0 + (level - self.min_complexity) * self.complexity_rates.get(category, 0.0)

    def theme_multiplier(self, category: PuzzleCategory, theme: Optional[RoomTheme]) -> float:
        if not self.enable_theme_affinity or theme is None:
            return 1.0
        return self.theme_affinities.get(theme, {}).get(category, 1.0)

    def distribution(
        self,
        complexity: int,
        theme: Optional[RoomTheme] = None,
        preferred: Iterable[PuzzleCategory] = (),
    ) -> dict[PuzzleCategory, float]:
        """
        Renormalized selection probabilities, in CATEGORY_ORDER.

        Args:
            complexity: Complexity level (clamped to the configured bounds)
            theme: Room theme, or None for no theme adjustment
            preferred: Categories the player is strong in; their weight is
                multiplied by preferred_boost

        Returns:
            Mapping of category to probability; values sum to 1
        """
        favoured = set(preferred)
        adjusted = {
            category: (
                self.base_weights[category]
                * self.complexity_multiplier(category, complexity)
                * self.theme_multiplier(category, theme)
                * (self.preferred_boost if category in favoured else 1.0)
            )
            for category in CATEGORY_ORDER
        }
        total = sum(adjusted.values())
        return {category: weight / total for category, weight in adjusted.items()}

    def select_type(
        self,
        complexity: int,
        theme: Optional[RoomTheme] = None,
        preferred: Iterable[PuzzleCategory] = (),
    ) -> PuzzleCategory:
        """
        Draw one category from the adjusted distribution.

        Walks the cumulative distribution in CATEGORY_ORDER and returns the
        first category whose cumulative weight reaches the draw. If rounding
        leaves the draw above the final cumulative value, the first category
        is returned.
        """
        weights = self.distribution(complexity, theme, preferred)
        draw = self._rng.random()
        cumulative = 0.0

        for category in CATEGORY_ORDER:
            weight = weights[category]
            cumulative += weight
            if weight > 0 and cumulative >= draw:
                return category

        logger.debug(
            "[PuzzleTypeSelector] Draw %.12f exceeded cumulative %.12f; falling back to %s",
            draw, cumulative, CATEGORY_ORDER[0].value,
        )
        return CATEGORY_ORDER[0]
