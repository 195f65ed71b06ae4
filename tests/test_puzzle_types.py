"""
Tests for puzzle categories, themes and weighted category selection.
"""

import random
import unittest
from collections import Counter

import pytest

from puzzle_types import (
    CATEGORY_ORDER,
    DEFAULT_BASE_WEIGHTS,
    PuzzleCategory,
    PuzzleTypeSelector,
    RoomTheme,
)


class TestParsing(unittest.TestCase):
    def test_category_parse_variants(self):
        for value in ("relic_placement", "RELIC_PLACEMENT", "RelicPlacement", "relic-placement"):
            self.assertEqual(PuzzleCategory.parse(value), PuzzleCategory.RELIC_PLACEMENT)

    def test_category_parse_unknown(self):
        self.assertIsNone(PuzzleCategory.parse("juggling"))
        self.assertIsNone(PuzzleCategory.parse(3))

    def test_theme_parse(self):
        self.assertEqual(RoomTheme.parse("Celestial"), RoomTheme.CELESTIAL)
        self.assertIs(RoomTheme.parse(RoomTheme.SACRED), RoomTheme.SACRED)
        self.assertIsNone(RoomTheme.parse("haunted"))


class TestSelectorWeights(unittest.TestCase):
    def setUp(self):
        self.selector = PuzzleTypeSelector(rng=random.Random(3))

    def test_distribution_sums_to_one(self):
        for complexity in range(1, 11):
            for theme in (None, *RoomTheme):
                total = sum(self.selector.distribution(complexity, theme).values())
                self.assertAlmostEqual(total, 1.0)

    def test_complexity_multiplier_non_decreasing(self):
        for category in CATEGORY_ORDER:
            values = [self.selector.complexity_multiplier(category, c) for c in range(1, 11)]
            self.assertEqual(values, sorted(values))

    def test_minimum_complexity_keeps_base_weights(self):
        distribution = self.selector.distribution(1)
        for category, weight in DEFAULT_BASE_WEIGHTS.items():
            self.assertAlmostEqual(distribution[category], weight)

    def test_logic_gains_share_with_complexity(self):
        low = self.selector.distribution(1)[PuzzleCategory.LOGIC]
        high = self.selector.distribution(10)[PuzzleCategory.LOGIC]
        self.assertGreater(high, low)

    def test_theme_affinity_boosts_category(self):
        plain = self.selector.distribution(5)[PuzzleCategory.RELIC_PLACEMENT]
        sacred = self.selector.distribution(5, RoomTheme.SACRED)[PuzzleCategory.RELIC_PLACEMENT]
        self.assertGreater(sacred, plain)

    def test_theme_without_affinities_is_no_op(self):
        for theme in (RoomTheme.ABANDONED, RoomTheme.FLOATING, RoomTheme.NONE):
            self.assertEqual(self.selector.distribution(6, theme), self.selector.distribution(6))

    def test_out_of_range_complexity_clamped(self):
        self.assertEqual(self.selector.distribution(-4), self.selector.distribution(1))
        self.assertEqual(self.selector.distribution(99), self.selector.distribution(10))

    def test_unnormalized_base_weights_renormalized(self):
        with self.assertLogs("puzzle_types", level="WARNING"):
            selector = PuzzleTypeSelector(base_weights={"logic": 2.0, "physics": 2.0})

        self.assertAlmostEqual(selector.base_weights[PuzzleCategory.LOGIC], 0.5)
        self.assertEqual(selector.base_weights[PuzzleCategory.SEQUENCE], 0.0)

    def test_zero_base_weights_fall_back_to_uniform(self):
        selector = PuzzleTypeSelector(base_weights={"logic": 0.0})
        for weight in selector.base_weights.values():
            self.assertAlmostEqual(weight, 1.0 / len(CATEGORY_ORDER))

    def test_zero_weight_category_never_selected(self):
        selector = PuzzleTypeSelector(base_weights={"logic": 1.0}, rng=random.Random(0))
        picks = {selector.select_type(5) for _ in range(500)}
        self.assertEqual(picks, {PuzzleCategory.LOGIC})

    def test_draw_past_cumulative_falls_back_to_first(self):
        selector = PuzzleTypeSelector(rng=random.Random(0))
        selector._rng = type("MaxRng", (), {"random": lambda self: 1.5})()
        self.assertEqual(selector.select_type(5), CATEGORY_ORDER[0])

    def test_disabled_scaling_and_affinity(self):
        selector = PuzzleTypeSelector(enable_complexity_scaling=False, enable_theme_affinity=False)
        self.assertEqual(selector.distribution(10, RoomTheme.SACRED), selector.distribution(1))

    def test_preferred_categories_boosted(self):
        plain = self.selector.distribution(5)
        favoured = self.selector.distribution(5, preferred=[PuzzleCategory.LOGIC, PuzzleCategory.PHYSICS])

        self.assertAlmostEqual(sum(favoured.values()), 1.0)
        self.assertGreater(favoured[PuzzleCategory.LOGIC], plain[PuzzleCategory.LOGIC])
        self.assertGreater(favoured[PuzzleCategory.PHYSICS], plain[PuzzleCategory.PHYSICS])
        self.assertLess(favoured[PuzzleCategory.SEQUENCE], plain[PuzzleCategory.SEQUENCE])
        self.assertAlmostEqual(
            favoured[PuzzleCategory.LOGIC] / favoured[PuzzleCategory.SEQUENCE],
            1.5 * plain[PuzzleCategory.LOGIC] / plain[PuzzleCategory.SEQUENCE],
        )

    def test_boost_never_penalizes(self):
        selector = PuzzleTypeSelector(preferred_boost=0.2)
        self.assertEqual(selector.preferred_boost, 1.0)
        self.assertEqual(selector.distribution(5, preferred=[PuzzleCategory.LOGIC]), selector.distribution(5))


def assert_converges(selector, complexity, theme, draws=100_000, tolerance=0.02):
    expected = selector.distribution(complexity, theme)
    counts = Counter(selector.select_type(complexity, theme) for _ in range(draws))
    for category in CATEGORY_ORDER:
        observed = counts[category] / draws
        assert observed == pytest.approx(expected[category], abs=tolerance), category


class TestSelectionConvergence:
    def test_converges_to_configured_distribution(self):
        selector = PuzzleTypeSelector(rng=random.Random(2024))
        assert_converges(selector, complexity=5, theme=None)

    def test_converges_with_theme(self):
        selector = PuzzleTypeSelector(rng=random.Random(99))
        assert_converges(selector, complexity=8, theme=RoomTheme.ANCIENT)

    def test_theme_without_affinity_matches_complexity_adjusted_base(self):
        selector = PuzzleTypeSelector(rng=random.Random(7))
        complexity = 6

        adjusted = {
            category: DEFAULT_BASE_WEIGHTS[category] * selector.complexity_multiplier(category, complexity)
            for category in CATEGORY_ORDER
        }
        total = sum(adjusted.values())

        distribution = selector.distribution(complexity, RoomTheme.HIDDEN)
        for category in CATEGORY_ORDER:
            assert distribution[category] == pytest.approx(adjusted[category] / total)

        assert_converges(selector, complexity, RoomTheme.HIDDEN)
