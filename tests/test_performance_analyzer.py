"""
Unit tests for PerformanceAnalyzer

Covers level computation, skill profile, trend and state insights,
behaviour patterns, prediction and the notification channels.
"""

import unittest
from unittest.mock import Mock

import pytest

from performance_analyzer import (
    BehaviorPatternType,
    InsightPriority,
    InsightType,
    PerformanceAnalyzer,
    SkillProfile,
)
from puzzle_types import PuzzleCategory
from telemetry import PerformanceSample, PuzzleOutcome
from conftest import FakeClock


def make_sample(timestamp=0.0, engagement=0.5, frustration=0.0, movement=0.5, interaction=0.5, progress=0.5):
    return PerformanceSample(
        timestamp=timestamp,
        engagement=engagement,
        frustration=frustration,
        mastery=0.0,
        active_puzzle_count=1,
        movement_intensity=movement,
        interaction_frequency=interaction,
        puzzle_progress=progress,
    )


def make_outcome(category=PuzzleCategory.RELIC_PLACEMENT, success=True, completion_time=60.0, difficulty=5.0):
    return PuzzleOutcome(category=category, success=success, completion_time=completion_time, difficulty=difficulty)


class TestLevels(unittest.TestCase):
    """Engagement, frustration and mastery."""

    def setUp(self):
        self.clock = FakeClock()
        self.analyzer = PerformanceAnalyzer(max_samples=100, clock=self.clock)

    def test_engagement_neutral_with_few_samples(self):
        for _ in range(4):
            self.analyzer.record_telemetry(1.0, 1.0, 1.0)
        self.assertEqual(self.analyzer.compute_engagement(), 0.5)

    def test_engagement_full_activity(self):
        for _ in range(5):
            self.analyzer.record_telemetry(1.0, 1.0, 1.0)
        self.assertAlmostEqual(self.analyzer.compute_engagement(), 1.0)

    def test_engagement_weights(self):
        for _ in range(5):
            self.analyzer.record_telemetry(1.0, 0.0, 0.0)
        self.assertAlmostEqual(self.analyzer.compute_engagement(), 0.3)

    def test_frustration_zero_with_few_samples(self):
        for _ in range(9):
            self.analyzer.record_telemetry(0.0, 0.0, 0.0)
        self.assertEqual(self.analyzer.compute_frustration(), 0.0)

    def test_frustration_near_maximum_when_stalled(self):
        for _ in range(10):
            self.analyzer.record_telemetry(0.5, 0.0, 0.0)
        self.assertGreater(self.analyzer.compute_frustration(), 0.9)

    def test_frustration_slow_progress_only(self):
        for _ in range(10):
            self.analyzer.record_telemetry(0.5, 0.5, 0.2)
        self.assertAlmostEqual(self.analyzer.compute_frustration(), 0.3)

    def test_mastery_excludes_categories_below_three_attempts(self):
        self.analyzer.record_attempt(make_outcome())
        self.analyzer.record_attempt(make_outcome())
        self.assertEqual(self.analyzer.compute_mastery(), 0.0)

    def test_mastery_score(self):
        for _ in range(3):
            self.analyzer.record_attempt(make_outcome(completion_time=60.0, difficulty=5.0))

        # 1.0 * 0.5 + 0.9 * 0.3 + 0.5 * 0.2
        self.assertAlmostEqual(self.analyzer.compute_mastery(), 0.87)

    def test_level_change_notification(self):
        listener = Mock()
        self.analyzer.engagement_changed.subscribe(listener)

        for _ in range(6):
            self.analyzer.record_telemetry(1.0, 1.0, 1.0)

        listener.assert_called_once()
        change = listener.call_args[0][0]
        self.assertEqual(change.metric, "engagement")
        self.assertEqual(change.previous, 0.5)
        self.assertAlmostEqual(change.current, 1.0)

    def test_window_capacity(self):
        analyzer = PerformanceAnalyzer(max_samples=20, clock=self.clock)
        for i in range(30):
            analyzer.record(make_sample(timestamp=float(i)))

        self.assertEqual(len(analyzer.history), 20)
        self.assertEqual(analyzer.history[0].timestamp, 10.0)


class TestOutcomes(unittest.TestCase):
    def setUp(self):
        self.analyzer = PerformanceAnalyzer(clock=FakeClock())

    def test_current_performance_neutral_without_outcomes(self):
        self.assertEqual(self.analyzer.current_performance(), 0.5)
        self.assertIsNone(self.analyzer.success_rate())

    def test_current_performance_mix(self):
        self.analyzer.record_attempt(make_outcome(success=True, completion_time=30.0))
        self.analyzer.record_attempt(make_outcome(success=False, completion_time=90.0))

        # 0.5 * 0.6 + (1 - 60/300) * 0.4
        self.assertAlmostEqual(self.analyzer.current_performance(), 0.62)
        self.assertEqual(self.analyzer.success_rate(), 0.5)

    def test_current_performance_ignores_attempt_difficulty(self):
        self.analyzer.record_attempt(make_outcome(success=True, completion_time=30.0, difficulty=9.0))
        self.analyzer.record_attempt(make_outcome(success=False, completion_time=90.0, difficulty=9.0))

        self.assertAlmostEqual(self.analyzer.current_performance(), 0.62)

    def test_uncategorised_outcome_counts_overall_only(self):
        self.analyzer.record_attempt(make_outcome(category=None, success=False, completion_time=300.0))

        self.assertEqual(self.analyzer.total_attempts, 1)
        self.assertEqual(self.analyzer.success_rate(), 0.0)
        for stats in self.analyzer.category_stats.values():
            self.assertEqual(stats.total_attempts, 0)

    def test_category_stats(self):
        self.analyzer.record_attempt(make_outcome(success=True, completion_time=40.0, difficulty=8.0))
        self.analyzer.record_attempt(make_outcome(success=False, completion_time=80.0, difficulty=4.0))

        stats = self.analyzer.category_stats[PuzzleCategory.RELIC_PLACEMENT]
        self.assertEqual(stats.total_attempts, 2)
        self.assertEqual(stats.successful_completions, 1)
        self.assertAlmostEqual(stats.average_completion_time, 60.0)
        self.assertEqual(stats.best_completion_time, 40.0)
        self.assertEqual(stats.difficulty_progression.to_list(), [0.8, 0.4])

    def test_skill_updated_on_third_attempt(self):
        listener = Mock()
        self.analyzer.skill_updated.subscribe(listener)

        self.analyzer.record_attempt(make_outcome())
        self.analyzer.record_attempt(make_outcome())
        listener.assert_not_called()
        self.assertEqual(self.analyzer.skill_profile.skill(PuzzleCategory.RELIC_PLACEMENT), 0.5)

        self.analyzer.record_attempt(make_outcome())
        listener.assert_called_once()
        update = listener.call_args[0][0]
        self.assertIsNone(update.previous)
        # 1.0 * 0.7 + 0.9 * 0.3
        self.assertAlmostEqual(update.skill, 0.97)

        # Unchanged skill does not notify again
        self.analyzer.record_attempt(make_outcome())
        listener.assert_called_once()

    def test_record_satisfaction(self):
        self.analyzer.record_satisfaction(PuzzleCategory.LOGIC, 1.4)
        self.analyzer.record_satisfaction("not-a-category", 0.5)

        self.assertEqual(self.analyzer.category_stats[PuzzleCategory.LOGIC].satisfaction.to_list(), [1.0])

    def test_predict_requires_five_attempts(self):
        for _ in range(4):
            self.analyzer.record_attempt(make_outcome(category=PuzzleCategory.LOGIC))

        prediction = self.analyzer.predict_performance(PuzzleCategory.LOGIC, 5)
        self.assertEqual(prediction.confidence, 0.0)

    def test_predict_performance(self):
        for _ in range(10):
            self.analyzer.record_attempt(make_outcome(category=PuzzleCategory.LOGIC, completion_time=100.0))

        prediction = self.analyzer.predict_performance(PuzzleCategory.LOGIC, 7)
        self.assertEqual(prediction.expected_completion_rate, 1.0)
        self.assertAlmostEqual(prediction.expected_completion_time, 140.0)
        self.assertAlmostEqual(prediction.confidence, 0.5)

    def test_snapshot(self):
        snapshot = self.analyzer.snapshot()
        self.assertEqual(snapshot.performance, 0.5)
        self.assertIsNone(snapshot.success_rate)
        self.assertEqual(snapshot.sample_count, 0)
        self.assertIsNone(snapshot.average_skill)
        self.assertEqual(snapshot.preferred_categories, ())

    def test_snapshot_carries_skill_profile(self):
        for _ in range(3):
            self.analyzer.record_attempt(make_outcome(category=PuzzleCategory.LOGIC, completion_time=30.0))
            self.analyzer.record_attempt(make_outcome(category=PuzzleCategory.PHYSICS, success=False, completion_time=500.0))
        self.analyzer.record_attempt(make_outcome(category=PuzzleCategory.SEQUENCE))

        snapshot = self.analyzer.snapshot()

        # 0.7 + 0.95 * 0.3 and 0.3 * (1 - 500/600); SEQUENCE has no entry yet
        self.assertAlmostEqual(snapshot.average_skill, (0.985 + 0.05) / 2)
        self.assertEqual(snapshot.preferred_categories, (PuzzleCategory.LOGIC, PuzzleCategory.PHYSICS))


class TestSkillProfile:
    def test_preferred_categories_ranked(self):
        profile = SkillProfile()
        analyzer = PerformanceAnalyzer(clock=FakeClock())
        for _ in range(3):
            analyzer.record_attempt(make_outcome(category=PuzzleCategory.LOGIC, completion_time=30.0))
            analyzer.record_attempt(make_outcome(category=PuzzleCategory.PHYSICS, success=False, completion_time=500.0))

        for category in (PuzzleCategory.LOGIC, PuzzleCategory.PHYSICS):
            profile.update(analyzer.category_stats[category], timestamp=0.0)

        assert profile.preferred_categories(2) == [PuzzleCategory.LOGIC, PuzzleCategory.PHYSICS]
        assert profile.average_skill() == pytest.approx((0.985 + 0.3 * (1 - 500 / 600)) / 2)


class TestInsights:
    @pytest.fixture
    def analyzer(self, clock):
        return PerformanceAnalyzer(clock=clock)

    def feed_trend(self, analyzer, older, recent):
        for _ in range(20):
            analyzer.record(make_sample(**older))
        for _ in range(20):
            analyzer.record(make_sample(**recent))

    def test_trend_needs_forty_samples(self, analyzer):
        for _ in range(39):
            analyzer.record(make_sample())
        assert analyzer.detect_trend() == []

    def test_engagement_decline(self, analyzer):
        listener = Mock()
        analyzer.insights.subscribe(listener)
        self.feed_trend(analyzer, {"engagement": 0.9}, {"engagement": 0.4})

        raised = analyzer.detect_trend()

        assert [i.insight_type for i in raised] == [InsightType.ENGAGEMENT_DECLINE]
        assert raised[0].priority == InsightPriority.MEDIUM
        listener.assert_called_once_with(raised[0])

    def test_frustration_increase(self, analyzer):
        self.feed_trend(analyzer, {"frustration": 0.1}, {"frustration": 0.6})
        raised = analyzer.detect_trend()
        assert [i.insight_type for i in raised] == [InsightType.FRUSTRATION_INCREASE]

    def test_optimal_flow(self, analyzer):
        self.feed_trend(
            analyzer,
            {"engagement": 0.4, "frustration": 0.5},
            {"engagement": 0.8, "frustration": 0.2},
        )
        raised = analyzer.detect_trend()
        assert [i.insight_type for i in raised] == [InsightType.OPTIMAL_EXPERIENCE]
        assert raised[0].priority == InsightPriority.LOW

    def test_active_insight_refreshed_not_reemitted(self, analyzer, clock):
        listener = Mock()
        analyzer.insights.subscribe(listener)
        self.feed_trend(analyzer, {"engagement": 0.9}, {"engagement": 0.4})

        analyzer.detect_trend()
        clock.advance(10)
        assert analyzer.detect_trend() == []

        assert listener.call_count == 1
        active = analyzer.active_insights()
        assert len(active) == 1
        assert active[0].timestamp == 10

    def test_insights_expire(self, analyzer, clock):
        self.feed_trend(analyzer, {"engagement": 0.9}, {"engagement": 0.4})
        analyzer.detect_trend()

        clock.advance(601)
        assert analyzer.active_insights() == []
        assert len(analyzer.detect_trend()) == 1

    def test_state_insights_on_fresh_analyzer(self, analyzer):
        raised = analyzer.evaluate_state_insights()

        # Neutral engagement (0.5) is below the 0.7 threshold
        assert [i.insight_type for i in raised] == [InsightType.LOW_ENGAGEMENT]
        assert raised[0].priority == InsightPriority.HIGH

    def test_high_frustration_insight(self, analyzer):
        for _ in range(11):
            analyzer.record_telemetry(0.0, 0.0, 0.0)

        types = {i.insight_type for i in analyzer.evaluate_state_insights()}
        assert InsightType.HIGH_FRUSTRATION in types


class TestBehaviorPatterns:
    @pytest.fixture
    def analyzer(self, clock):
        return PerformanceAnalyzer(clock=clock)

    def fill(self, analyzer, count=50, **values):
        for _ in range(count):
            analyzer.record(make_sample(**values))

    def test_needs_fifty_samples(self, analyzer):
        self.fill(analyzer, count=49, movement=0.9, interaction=0.1, progress=0.05)
        assert analyzer.detect_behavior_patterns() == []

    def test_detects_all_three_patterns(self, analyzer):
        listener = Mock()
        analyzer.behavior_patterns.subscribe(listener)
        self.fill(analyzer, movement=0.9, interaction=0.1, progress=0.05)

        detected = analyzer.detect_behavior_patterns()

        assert [p.category for p in detected] == [
            BehaviorPatternType.CONSISTENT_HIGH_ACTIVITY,
            BehaviorPatternType.LOW_INTERACTION,
            BehaviorPatternType.STUCK_ON_PUZZLE,
        ]
        assert [p.confidence for p in detected] == [0.8, 0.7, 0.9]
        assert listener.call_count == 3

    def test_cooldown_suppresses_repeat(self, analyzer, clock):
        self.fill(analyzer, movement=0.9, interaction=0.5, progress=0.5)

        assert len(analyzer.detect_behavior_patterns()) == 1
        clock.advance(299)
        assert analyzer.detect_behavior_patterns() == []
        clock.advance(2)
        assert len(analyzer.detect_behavior_patterns()) == 1

    def test_varied_activity_no_pattern(self, analyzer):
        for i in range(60):
            level = 1.0 if i % 2 else 0.0
            analyzer.record(make_sample(movement=level, interaction=level, progress=level))
        assert analyzer.detect_behavior_patterns() == []

    def test_run_analysis_collects_everything(self, analyzer):
        self.fill(analyzer, movement=0.9, interaction=0.5, progress=0.5)
        report = analyzer.run_analysis()

        assert [p.category for p in report.patterns] == [BehaviorPatternType.CONSISTENT_HIGH_ACTIVITY]
        assert InsightType.LOW_ENGAGEMENT in {i.insight_type for i in report.insights}


if __name__ == '__main__':
    unittest.main()
