"""
Performance Analyzer - Player Signal Extraction

Turns raw telemetry and puzzle outcomes into the signals the rest of the
director steers by:
- Engagement, frustration and mastery levels (each in [0, 1])
- Per-category skill profile and outcome statistics
- Trend insights (engagement decline, frustration increase, flow)
- Behaviour patterns over the full history window
- Completion predictions per category

Every computation degrades to a documented neutral value when history is
too short. Nothing here raises for missing data.
"""

from __future__ import annotations

import logging
import statistics
import time
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Callable, Optional

import metrics
from constants import (
    ANALYTICS_MAX_SAMPLES,
    DIFFICULTY_MAX,
    DIFFICULTY_PROGRESSION_WINDOW,
    ENGAGEMENT_INTERACTION_WEIGHT,
    ENGAGEMENT_MIN_SAMPLES,
    ENGAGEMENT_MOVEMENT_WEIGHT,
    ENGAGEMENT_PROGRESS_WEIGHT,
    FRUSTRATION_FAILED_PROGRESS,
    FRUSTRATION_FAILED_WEIGHT,
    FRUSTRATION_INTERACTION_WEIGHT,
    FRUSTRATION_LOW_INTERACTION,
    FRUSTRATION_MIN_SAMPLES,
    FRUSTRATION_SLOW_PROGRESS,
    FRUSTRATION_SLOW_WEIGHT,
    HIGH_ACTIVITY_MAX_VARIANCE,
    HIGH_ACTIVITY_MIN_MEAN,
    INSIGHT_ENGAGEMENT_THRESHOLD,
    INSIGHT_FRUSTRATION_THRESHOLD,
    INSIGHT_LIFETIME,
    INSIGHT_MASTERY_THRESHOLD,
    LEVEL_CHANGE_NOTIFY_DELTA,
    LOW_INTERACTION_MAX_MEAN,
    LOW_INTERACTION_MAX_VARIANCE,
    MASTERY_COMPLETION_WEIGHT,
    MASTERY_DIFFICULTY_WEIGHT,
    MASTERY_TIME_BASELINE,
    MASTERY_TIME_WEIGHT,
    NEUTRAL_ENGAGEMENT,
    NEUTRAL_FRUSTRATION,
    NEUTRAL_MASTERY,
    NEUTRAL_PERFORMANCE,
    NEUTRAL_SKILL,
    PATTERN_COOLDOWN,
    PATTERN_MIN_SAMPLES,
    PERFORMANCE_COMPLETION_WEIGHT,
    PERFORMANCE_TIME_BASELINE,
    PERFORMANCE_TIME_WEIGHT,
    PREDICTION_MIN_ATTEMPTS,
    PREFERRED_CATEGORY_COUNT,
    RECENT_OUTCOME_WINDOW,
    SATISFACTION_WINDOW,
    SKILL_CHANGE_NOTIFY_DELTA,
    SKILL_COMPLETION_WEIGHT,
    SKILL_MIN_ATTEMPTS,
    SKILL_TIME_WEIGHT,
    STUCK_MAX_FINAL_PROGRESS,
    STUCK_MAX_VARIANCE,
    TREND_ENGAGEMENT_DECLINE,
    TREND_FLOW_ENGAGEMENT_RISE,
    TREND_FLOW_FRUSTRATION_DROP,
    TREND_FRUSTRATION_INCREASE,
    TREND_WINDOW,
)
from events import EventChannel
from puzzle_types import CATEGORY_ORDER, PuzzleCategory
from telemetry import PerformanceSample, PuzzleOutcome, RollingWindow, clamp01

if TYPE_CHECKING:
    from config import AnalyticsSettings

logger = logging.getLogger(__name__)


class InsightType(Enum):
    HIGH_FRUSTRATION = "high_frustration"
    LOW_ENGAGEMENT = "low_engagement"
    ENGAGEMENT_DECLINE = "engagement_decline"
    FRUSTRATION_INCREASE = "frustration_increase"
    OPTIMAL_EXPERIENCE = "optimal_experience"
    HIGH_MASTERY = "high_mastery"


class InsightPriority(IntEnum):
    LOW = 0
    MEDIUM = 1
    HIGH = 2


_INSIGHT_PRIORITIES = {
    InsightType.HIGH_FRUSTRATION: InsightPriority.HIGH,
    InsightType.LOW_ENGAGEMENT: InsightPriority.HIGH,
    InsightType.ENGAGEMENT_DECLINE: InsightPriority.MEDIUM,
    InsightType.FRUSTRATION_INCREASE: InsightPriority.MEDIUM,
}


class BehaviorPatternType(Enum):
    CONSISTENT_HIGH_ACTIVITY = "consistent_high_activity"
    LOW_INTERACTION = "low_interaction"
    STUCK_ON_PUZZLE = "stuck_on_puzzle"
    RAPID_PROGRESS = "rapid_progress"
    HESITANT_MOVEMENT = "hesitant_movement"


@dataclass
class PerformanceInsight:
    """
    A named observation about the player's state or trend.

    Active insights are refreshed in place when re-raised, so value and
    timestamp track the latest observation.
    """

    insight_type: InsightType
    message: str
    value: float
    timestamp: float
    priority: InsightPriority = InsightPriority.LOW

    @property
    def confidence(self) -> float:
        return clamp01(abs(self.value))


@dataclass(frozen=True)
class BehaviorPattern:
    """A behaviour pattern detected over the full sample window."""

    category: BehaviorPatternType
    confidence: float
    description: str
    detected_at: float

    @property
    def message(self) -> str:
        return self.description


@dataclass(frozen=True)
class LevelChange:
    """Notification payload when engagement/frustration/mastery move noticeably."""

    metric: str
    previous: float
    current: float


@dataclass(frozen=True)
class SkillUpdate:
    category: PuzzleCategory
    skill: float
    previous: Optional[float]
    timestamp: float


@dataclass(frozen=True)
class PerformancePrediction:
    expected_completion_rate: float = 0.0
    expected_completion_time: float = 0.0
    confidence: float = 0.0


@dataclass(frozen=True)
class PerformanceSnapshot:
    """
    Read-only view of the analyzer's latest state.

    success_rate is None until at least one outcome has been recorded.
    average_skill is None until some category holds a skill entry;
    preferred_categories lists the strongest categories first.
    """

    timestamp: float
    engagement: float
    frustration: float
    mastery: float
    performance: float
    success_rate: Optional[float]
    sample_count: int
    attempt_count: int
    average_skill: Optional[float] = None
    preferred_categories: tuple[PuzzleCategory, ...] = ()


@dataclass
class AnalysisReport:
    """What one analysis pass emitted."""

    insights: list[PerformanceInsight] = field(default_factory=list)
    patterns: list[BehaviorPattern] = field(default_factory=list)


@dataclass
class CategoryStats:
    """Outcome statistics for one puzzle category."""

    category: PuzzleCategory
    total_attempts: int = 0
    successful_completions: int = 0
    average_completion_time: float = 0.0
    best_completion_time: float = float("inf")
    difficulty_progression: RollingWindow[float] = field(
        default_factory=lambda: RollingWindow(DIFFICULTY_PROGRESSION_WINDOW)
    )
    satisfaction: RollingWindow[float] = field(default_factory=lambda: RollingWindow(SATISFACTION_WINDOW))

    @property
    def completion_rate(self) -> float:
        if self.total_attempts == 0:
            return 0.0
        return self.successful_completions / self.total_attempts

    def record(self, outcome: PuzzleOutcome, max_difficulty: float) -> None:
        self.total_attempts += 1
        if outcome.success:
            self.successful_completions += 1
            self.best_completion_time = min(self.best_completion_time, outcome.completion_time)

        # Running mean over every attempt, successful or not
        total_time = self.average_completion_time * (self.total_attempts - 1) + outcome.completion_time
        self.average_completion_time = total_time / self.total_attempts

        self.difficulty_progression.append(clamp01(outcome.difficulty / max_difficulty))


class SkillProfile:
    """
    Per-category skill estimates in [0, 1].

    No entry exists for a category until it has SKILL_MIN_ATTEMPTS
    attempts; such categories report the neutral skill of 0.5.
    """

    def __init__(
        self,
        min_attempts: int = SKILL_MIN_ATTEMPTS,
        notify_delta: float = SKILL_CHANGE_NOTIFY_DELTA,
    ) -> None:
        self.min_attempts = min_attempts
        self.notify_delta = notify_delta
        self._skills: dict[PuzzleCategory, float] = {}

    def skill(self, category: PuzzleCategory) -> float:
        return self._skills.get(category, NEUTRAL_SKILL)

    def update(self, stats: CategoryStats, timestamp: float) -> Optional[SkillUpdate]:
        """
        Recompute the skill for a category.

        Returns:
            A SkillUpdate when an entry is created or moves by more than
            notify_delta, otherwise None
        """
        if stats.total_attempts < self.min_attempts:
            return None

        time_score = clamp01(1.0 - stats.average_completion_time / MASTERY_TIME_BASELINE)
        skill = clamp01(stats.completion_rate * SKILL_COMPLETION_WEIGHT + time_score * SKILL_TIME_WEIGHT)

        previous = self._skills.get(stats.category)
        if previous is not None and abs(previous - skill) <= self.notify_delta:
            return None

        self._skills[stats.category] = skill
        return SkillUpdate(category=stats.category, skill=skill, previous=previous, timestamp=timestamp)

    def entries(self) -> dict[PuzzleCategory, float]:
        return dict(self._skills)

    def average_skill(self) -> float:
        if not self._skills:
            return NEUTRAL_SKILL
        return statistics.fmean(self._skills.values())

    def preferred_categories(self, count: int = PREFERRED_CATEGORY_COUNT) -> list[PuzzleCategory]:
        """Categories the player handles best, strongest first."""
        ranked = sorted(self._skills.items(), key=lambda item: item[1], reverse=True)
        return [category for category, _ in ranked[:count]]

    def clear(self) -> None:
        self._skills.clear()


class PerformanceAnalyzer:
    """
    Rolling analysis of player telemetry.

    Usage:
        analyzer = PerformanceAnalyzer(max_samples=1000)
        analyzer.insights.subscribe(on_insight)
        analyzer.record_telemetry(0.6, 0.4, 0.2)
        analyzer.run_analysis()
    """

    def __init__(
        self,
        max_samples: int = ANALYTICS_MAX_SAMPLES,
        clock: Callable[[], float] = time.monotonic,
        frustration_threshold: float = INSIGHT_FRUSTRATION_THRESHOLD,
        engagement_threshold: float = INSIGHT_ENGAGEMENT_THRESHOLD,
        mastery_threshold: float = INSIGHT_MASTERY_THRESHOLD,
        pattern_cooldown: float = PATTERN_COOLDOWN,
        enable_prediction: bool = True,
        max_difficulty: float = DIFFICULTY_MAX,
    ) -> None:
        self.clock = clock
        self.frustration_threshold = frustration_threshold
        self.engagement_threshold = engagement_threshold
        self.mastery_threshold = mastery_threshold
        self.pattern_cooldown = pattern_cooldown
        self.enable_prediction = enable_prediction
        self.max_difficulty = max_difficulty

        self.history: RollingWindow[PerformanceSample] = RollingWindow(max_samples)
        self.recent_outcomes: RollingWindow[PuzzleOutcome] = RollingWindow(RECENT_OUTCOME_WINDOW)
        self.category_stats: dict[PuzzleCategory, CategoryStats] = {
            category: CategoryStats(category=category) for category in CATEGORY_ORDER
        }
        self.skill_profile = SkillProfile()

        # Latest levels, updated on each collected sample
        self.engagement_level = NEUTRAL_ENGAGEMENT
        self.frustration_level = NEUTRAL_FRUSTRATION
        self.mastery_level = NEUTRAL_MASTERY

        self._active_insights: list[PerformanceInsight] = []
        self._pattern_detected_at: dict[BehaviorPatternType, float] = {}
        self.total_attempts = 0

        # Notification channels
        self.insights: EventChannel[PerformanceInsight] = EventChannel("insights")
        self.behavior_patterns: EventChannel[BehaviorPattern] = EventChannel("behavior_patterns")
        self.engagement_changed: EventChannel[LevelChange] = EventChannel("engagement_changed")
        self.frustration_changed: EventChannel[LevelChange] = EventChannel("frustration_changed")
        self.mastery_changed: EventChannel[LevelChange] = EventChannel("mastery_changed")
        self.skill_updated: EventChannel[SkillUpdate] = EventChannel("skill_updated")

        logger.info("[PerformanceAnalyzer] Initialized with window of %d samples", max_samples)

    @classmethod
    def from_settings(
        cls,
        settings: AnalyticsSettings,
        clock: Callable[[], float] = time.monotonic,
        max_difficulty: float = DIFFICULTY_MAX,
    ) -> PerformanceAnalyzer:
        return cls(
            max_samples=settings.max_samples,
            clock=clock,
            frustration_threshold=settings.frustration_threshold,
            engagement_threshold=settings.engagement_threshold,
            mastery_threshold=settings.mastery_threshold,
            pattern_cooldown=settings.pattern_cooldown,
            enable_prediction=settings.enable_prediction,
            max_difficulty=max_difficulty,
        )

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, sample: PerformanceSample) -> None:
        """Append a sample to the rolling window, evicting the oldest when full."""
        self.history.append(sample)

    def record_telemetry(
        self,
        movement_intensity: float,
        interaction_frequency: float,
        puzzle_progress: float,
        active_puzzle_count: int = 0,
        timestamp: Optional[float] = None,
    ) -> PerformanceSample:
        """
        Build a sample from raw telemetry and record it.

        The sample's engagement/frustration/mastery are the levels derived
        from history at collection time.
        """
        sample = PerformanceSample(
            timestamp=self.clock() if timestamp is None else timestamp,
            engagement=self.compute_engagement(),
            frustration=self.compute_frustration(),
            mastery=self.compute_mastery(),
            active_puzzle_count=active_puzzle_count,
            movement_intensity=clamp01(movement_intensity),
            interaction_frequency=clamp01(interaction_frequency),
            puzzle_progress=clamp01(puzzle_progress),
        )
        self.record(sample)
        self._update_levels(sample)
        return sample

    def _update_levels(self, sample: PerformanceSample) -> None:
        changes = (
            ("engagement", self.engagement_level, sample.engagement, self.engagement_changed),
            ("frustration", self.frustration_level, sample.frustration, self.frustration_changed),
            ("mastery", self.mastery_level, sample.mastery, self.mastery_changed),
        )

        self.engagement_level = sample.engagement
        self.frustration_level = sample.frustration
        self.mastery_level = sample.mastery

        for metric, previous, current, channel in changes:
            if abs(current - previous) > LEVEL_CHANGE_NOTIFY_DELTA:
                logger.debug("[PerformanceAnalyzer] %s changed %.2f -> %.2f", metric, previous, current)
                channel.emit(LevelChange(metric=metric, previous=previous, current=current))

    def record_attempt(self, outcome: PuzzleOutcome) -> None:
        """
        Record a finished puzzle attempt.

        Uncategorised outcomes feed overall performance only.
        """
        self.total_attempts += 1
        self.recent_outcomes.append(outcome)

        if outcome.category is None:
            return

        stats = self.category_stats[outcome.category]
        stats.record(outcome, self.max_difficulty)

        update = self.skill_profile.update(stats, self.clock())
        if update is not None:
            logger.info(
                "[PerformanceAnalyzer] Skill for %s now %.2f",
                update.category.value,
                update.skill,
            )
            self.skill_updated.emit(update)

    def record_satisfaction(self, category: PuzzleCategory, satisfaction: float) -> None:
        parsed = PuzzleCategory.parse(category)
        if parsed is None:
            logger.warning("[PerformanceAnalyzer] Satisfaction for unknown category %r ignored", category)
            return
        self.category_stats[parsed].satisfaction.append(clamp01(satisfaction))

    # ------------------------------------------------------------------
    # Levels
    # ------------------------------------------------------------------

    def compute_engagement(self) -> float:
        """
        Weighted mix of recent movement, interaction and progress.

        Needs ENGAGEMENT_MIN_SAMPLES samples, else returns 0.5.
        """
        if len(self.history) < ENGAGEMENT_MIN_SAMPLES:
            return NEUTRAL_ENGAGEMENT

        recent = self.history.last(ENGAGEMENT_MIN_SAMPLES)
        movement = statistics.fmean(s.movement_intensity for s in recent)
        interaction = statistics.fmean(s.interaction_frequency for s in recent)
        progress = statistics.fmean(s.puzzle_progress for s in recent)

        engagement = (
            movement * ENGAGEMENT_MOVEMENT_WEIGHT
            + interaction * ENGAGEMENT_INTERACTION_WEIGHT
            + progress * ENGAGEMENT_PROGRESS_WEIGHT
        )
        return clamp01(engagement)

    def compute_frustration(self) -> float:
        """
        Share of recent samples showing stalled progress or low interaction.

        Needs FRUSTRATION_MIN_SAMPLES samples, else returns 0.0.
        """
        if len(self.history) < FRUSTRATION_MIN_SAMPLES:
            return NEUTRAL_FRUSTRATION

        recent = self.history.last(FRUSTRATION_MIN_SAMPLES)
        failed = sum(1 for s in recent if s.puzzle_progress < FRUSTRATION_FAILED_PROGRESS)
        slow = sum(1 for s in recent if s.puzzle_progress < FRUSTRATION_SLOW_PROGRESS)
        low_interaction = sum(1 for s in recent if s.interaction_frequency < FRUSTRATION_LOW_INTERACTION)

        score = (
            failed * FRUSTRATION_FAILED_WEIGHT
            + slow * FRUSTRATION_SLOW_WEIGHT
            + low_interaction * FRUSTRATION_INTERACTION_WEIGHT
        ) / len(recent)
        return clamp01(score)

    def compute_mastery(self) -> float:
        """
        Mean mastery over categories with enough attempts.

        Categories below SKILL_MIN_ATTEMPTS are excluded, not defaulted.
        Returns 0.0 when no category qualifies.
        """
        scores = []
        for stats in self.category_stats.values():
            if stats.total_attempts < SKILL_MIN_ATTEMPTS:
                continue

            time_efficiency = clamp01(1.0 - stats.average_completion_time / MASTERY_TIME_BASELINE)
            progression = stats.difficulty_progression.to_list()
            difficulty_handling = statistics.fmean(progression) if progression else 0.5

            scores.append(
                stats.completion_rate * MASTERY_COMPLETION_WEIGHT
                + time_efficiency * MASTERY_TIME_WEIGHT
                + difficulty_handling * MASTERY_DIFFICULTY_WEIGHT
            )

        if not scores:
            return NEUTRAL_MASTERY
        return clamp01(statistics.fmean(scores))

    def current_performance(self) -> float:
        """
        Recent puzzle performance in [0, 1] for the difficulty loop.

        completion rate × 0.6 + time score × 0.4 over the recent outcome
        window; 0.5 before any outcome arrives.
        """
        outcomes = self.recent_outcomes.to_list()
        if not outcomes:
            return NEUTRAL_PERFORMANCE

        completion_rate = sum(1 for o in outcomes if o.success) / len(outcomes)
        average_time = statistics.fmean(o.completion_time for o in outcomes)
        time_score = clamp01(1.0 - average_time / PERFORMANCE_TIME_BASELINE)

        return clamp01(completion_rate * PERFORMANCE_COMPLETION_WEIGHT + time_score * PERFORMANCE_TIME_WEIGHT)

    def success_rate(self) -> Optional[float]:
        outcomes = self.recent_outcomes.to_list()
        if not outcomes:
            return None
        return sum(1 for o in outcomes if o.success) / len(outcomes)

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def run_analysis(self) -> AnalysisReport:
        """One analysis pass: trends, behaviour patterns, then state insights."""
        report = AnalysisReport()
        report.insights.extend(self.detect_trend())
        report.patterns.extend(self.detect_behavior_patterns())
        report.insights.extend(self.evaluate_state_insights())
        return report

    def detect_trend(self) -> list[PerformanceInsight]:
        """
        Compare the latest TREND_WINDOW samples with the window before them.

        No-op until 2 × TREND_WINDOW samples exist.

        Returns:
            Insights newly raised by this pass
        """
        if len(self.history) < TREND_WINDOW * 2:
            return []

        recent = self.history.last(TREND_WINDOW)
        older = self.history.preceding(TREND_WINDOW, skip=TREND_WINDOW)

        engagement_trend = (
            statistics.fmean(s.engagement for s in recent) - statistics.fmean(s.engagement for s in older)
        )
        frustration_trend = (
            statistics.fmean(s.frustration for s in recent) - statistics.fmean(s.frustration for s in older)
        )

        raised = []
        if engagement_trend < TREND_ENGAGEMENT_DECLINE:
            raised.append(self._raise_insight(
                InsightType.ENGAGEMENT_DECLINE, "Player engagement is declining", engagement_trend
            ))

        if frustration_trend > TREND_FRUSTRATION_INCREASE:
            raised.append(self._raise_insight(
                InsightType.FRUSTRATION_INCREASE, "Player frustration is increasing", frustration_trend
            ))

        if engagement_trend > TREND_FLOW_ENGAGEMENT_RISE and frustration_trend < TREND_FLOW_FRUSTRATION_DROP:
            raised.append(self._raise_insight(
                InsightType.OPTIMAL_EXPERIENCE, "Player is in optimal flow state", engagement_trend
            ))

        return [insight for insight in raised if insight is not None]

    def evaluate_state_insights(self) -> list[PerformanceInsight]:
        """Raise insights for the current levels crossing their thresholds."""
        raised = []
        if self.frustration_level > self.frustration_threshold:
            raised.append(self._raise_insight(
                InsightType.HIGH_FRUSTRATION, "Player frustration level is high", self.frustration_level
            ))

        if self.engagement_level < self.engagement_threshold:
            raised.append(self._raise_insight(
                InsightType.LOW_ENGAGEMENT, "Player engagement level is low", self.engagement_level
            ))

        if self.mastery_level > self.mastery_threshold:
            raised.append(self._raise_insight(
                InsightType.HIGH_MASTERY, "Player has achieved high mastery", self.mastery_level
            ))

        return [insight for insight in raised if insight is not None]

    def _raise_insight(self, insight_type: InsightType, message: str, value: float) -> Optional[PerformanceInsight]:
        """
        Add or refresh an insight.

        Returns:
            The insight if it is new (and was emitted), None if an active
            insight of the same type was refreshed instead
        """
        now = self.clock()
        self._prune_insights(now)

        for insight in self._active_insights:
            if insight.insight_type == insight_type:
                insight.value = value
                insight.timestamp = now
                return None

        insight = PerformanceInsight(
            insight_type=insight_type,
            message=message,
            value=value,
            timestamp=now,
            priority=_INSIGHT_PRIORITIES.get(insight_type, InsightPriority.LOW),
        )
        self._active_insights.append(insight)
        logger.info("[PerformanceAnalyzer] Insight %s (%.2f): %s", insight_type.value, value, message)
        metrics.record_insight(insight_type.value)
        self.insights.emit(insight)
        return insight

    def _prune_insights(self, now: float) -> None:
        self._active_insights = [
            insight for insight in self._active_insights
            if now - insight.timestamp <= INSIGHT_LIFETIME
        ]

    def active_insights(self) -> list[PerformanceInsight]:
        self._prune_insights(self.clock())
        return list(self._active_insights)

    def detect_behavior_patterns(self) -> list[BehaviorPattern]:
        """
        Look for stable behaviour across the whole window.

        Needs PATTERN_MIN_SAMPLES samples. Each pattern type is reported
        at most once per cooldown period.

        Returns:
            Patterns newly reported by this pass
        """
        if len(self.history) < PATTERN_MIN_SAMPLES:
            return []

        data = self.history.to_list()
        movement = [s.movement_intensity for s in data]
        interaction = [s.interaction_frequency for s in data]
        progress = [s.puzzle_progress for s in data]

        candidates = []

        if statistics.variance(movement) < HIGH_ACTIVITY_MAX_VARIANCE and statistics.fmean(movement) > HIGH_ACTIVITY_MIN_MEAN:
            candidates.append((
                BehaviorPatternType.CONSISTENT_HIGH_ACTIVITY,
                0.8,
                "Player maintains consistent high activity level",
            ))

        if statistics.variance(interaction) < LOW_INTERACTION_MAX_VARIANCE and statistics.fmean(interaction) < LOW_INTERACTION_MAX_MEAN:
            candidates.append((
                BehaviorPatternType.LOW_INTERACTION,
                0.7,
                "Player shows consistently low interaction",
            ))

        if statistics.variance(progress) < STUCK_MAX_VARIANCE and progress[-1] < STUCK_MAX_FINAL_PROGRESS:
            candidates.append((
                BehaviorPatternType.STUCK_ON_PUZZLE,
                0.9,
                "Player appears stuck on current puzzle",
            ))

        detected = []
        now = self.clock()
        for category, confidence, description in candidates:
            last_seen = self._pattern_detected_at.get(category)
            if last_seen is not None and now - last_seen <= self.pattern_cooldown:
                continue

            pattern = BehaviorPattern(
                category=category,
                confidence=confidence,
                description=description,
                detected_at=now,
            )
            self._pattern_detected_at[category] = now
            logger.info("[PerformanceAnalyzer] Behaviour pattern: %s", category.value)
            metrics.record_behavior_pattern(category.value)
            self.behavior_patterns.emit(pattern)
            detected.append(pattern)

        return detected

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def predict_performance(self, category: PuzzleCategory, difficulty: float) -> PerformancePrediction:
        """
        Expected completion rate and time for a category at a difficulty.

        Confidence is 0 with prediction disabled or fewer than
        PREDICTION_MIN_ATTEMPTS attempts.
        """
        parsed = PuzzleCategory.parse(category)
        if not self.enable_prediction or parsed is None:
            return PerformancePrediction()

        stats = self.category_stats[parsed]
        if stats.total_attempts < PREDICTION_MIN_ATTEMPTS:
            return PerformancePrediction()

        return PerformancePrediction(
            expected_completion_rate=stats.completion_rate,
            expected_completion_time=stats.average_completion_time * (1.0 + (difficulty - 5.0) * 0.2),
            confidence=clamp01(stats.total_attempts / 20.0),
        )

    def snapshot(self) -> PerformanceSnapshot:
        return PerformanceSnapshot(
            timestamp=self.clock(),
            engagement=self.engagement_level,
            frustration=self.frustration_level,
            mastery=self.mastery_level,
            performance=self.current_performance(),
            success_rate=self.success_rate(),
            sample_count=len(self.history),
            attempt_count=self.total_attempts,
            average_skill=self.skill_profile.average_skill() if self.skill_profile.entries() else None,
            preferred_categories=tuple(self.skill_profile.preferred_categories(PREFERRED_CATEGORY_COUNT)),
        )

    def close(self) -> None:
        """Drop all subscribers."""
        for channel in (
            self.insights,
            self.behavior_patterns,
            self.engagement_changed,
            self.frustration_changed,
            self.mastery_changed,
            self.skill_updated,
        ):
            channel.clear()

    def reset(self) -> None:
        """Forget all history, statistics and detections."""
        self.history.clear()
        self.recent_outcomes.clear()
        self.category_stats = {category: CategoryStats(category=category) for category in CATEGORY_ORDER}
        self.skill_profile.clear()
        self.engagement_level = NEUTRAL_ENGAGEMENT
        self.frustration_level = NEUTRAL_FRUSTRATION
        self.mastery_level = NEUTRAL_MASTERY
        self._active_insights.clear()
        self._pattern_detected_at.clear()
        self.total_attempts = 0
        logger.info("[PerformanceAnalyzer] Reset")
