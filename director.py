"""
Adaptive Director - Wiring and Periodic Scheduling

The AdaptiveDirector owns no game logic of its own. It receives its
collaborators at construction time and runs three periodic tasks on the
current asyncio loop:

- analysis:   trend, behaviour-pattern and state-insight detection
- difficulty: one DifficultyController tick
- generation: one guarded room generation, when idle and the pool has room

All tasks share a single event loop, so each step runs to completion
before another starts. Room generation is the exception: its stages run
in worker threads under a per-stage timeout, with a cooperative
cancellation check between stages. A stopped or timed-out generation never
reaches the pool, and is_generating stays set until an abandoned worker
thread has returned. Stage functions only touch the room being built;
statistics and notifications happen on the loop once the room is accepted.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Optional, TypeVar

import metrics
from config import DirectorConfig, SchedulerSettings
from content_generator import ContentGenerator
from content_models import GeneratedRoom
from content_pool import ContentPool, PoolStats
from difficulty_controller import DifficultyChange, DifficultyController, DifficultyState
from exceptions import GenerationCancelledError, GenerationTimeoutError
from logging_config import StructuredLoggerAdapter
from performance_analyzer import AnalysisReport, BehaviorPattern, PerformanceAnalyzer, PerformanceInsight, PerformanceSnapshot
from puzzle_types import PuzzleTypeSelector
from quality_validator import QualityValidator, ValidationReport
from telemetry import TelemetrySink

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass(frozen=True)
class DirectorStatus:
    running: bool
    is_generating: bool
    difficulty: Optional[DifficultyState]
    performance: Optional[PerformanceSnapshot]
    pool: PoolStats
    rooms_generated: int
    generation_failures: int
    active_tasks: int


class AdaptiveDirector:
    """
    Runs the adaptive difficulty and content loops.

    Any collaborator except the pool may be None; the feature that depends
    on it is disabled and a warning is logged once.

    Usage:
        director = create_adaptive_director(load_director_config())
        director.start()
        director.telemetry.record_sample(0.6, 0.4, 0.2)
        ...
        await director.stop()
        director.close()
    """

    def __init__(
        self,
        pool: ContentPool,
        analyzer: Optional[PerformanceAnalyzer] = None,
        controller: Optional[DifficultyController] = None,
        generator: Optional[ContentGenerator] = None,
        validator: Optional[QualityValidator] = None,
        scheduler: Optional[SchedulerSettings] = None,
        analysis_interval: float = 2.0,
        difficulty_interval: float = 2.0,
        director_id: str = "director",
    ) -> None:
        self.pool = pool
        self.analyzer = analyzer
        self.controller = controller
        self.generator = generator
        self.validator = validator
        self.scheduler = scheduler or SchedulerSettings()
        self.analysis_interval = analysis_interval
        self.difficulty_interval = difficulty_interval
        self.director_id = director_id

        self.log = StructuredLoggerAdapter(logger, {"director_id": director_id})

        self.telemetry: Optional[TelemetrySink] = None
        if analyzer is not None:
            self.telemetry = TelemetrySink(analyzer, clock=analyzer.clock)

        self.is_generating = False
        self.running = False
        self._stop_requested = False
        self._background_tasks: set[asyncio.Task] = set()
        self._abandoned_stage: Optional[asyncio.Future] = None
        self._unsubscribers: list[Callable[[], None]] = []

        self.rooms_generated = 0
        self.generation_failures = 0
        self.last_validation: Optional[ValidationReport] = None

        for label, collaborator in (
            ("performance analyzer", analyzer),
            ("difficulty controller", controller),
            ("content generator", generator),
            ("quality validator", validator),
        ):
            if collaborator is None:
                logger.warning("[AdaptiveDirector] No %s wired in; dependent feature disabled", label)

        if controller is not None:
            self._unsubscribers.append(controller.difficulty_changed.subscribe(self._on_difficulty_changed))
        if analyzer is not None:
            self._unsubscribers.append(analyzer.insights.subscribe(self._on_insight))
            self._unsubscribers.append(analyzer.behavior_patterns.subscribe(self._on_behavior_pattern))

    # ------------------------------------------------------------------
    # Notification logging
    # ------------------------------------------------------------------

    def _on_difficulty_changed(self, change: DifficultyChange) -> None:
        self.log.info_event(
            "difficulty_changed",
            f"Difficulty {change.previous:.2f} -> {change.current:.2f}",
            previous=change.previous,
            current=change.current,
            target=change.target,
        )

    def _on_insight(self, insight: PerformanceInsight) -> None:
        self.log.info_event(
            "insight",
            insight.message,
            insight_type=insight.insight_type.value,
            value=insight.value,
            priority=insight.priority.name,
        )

    def _on_behavior_pattern(self, pattern: BehaviorPattern) -> None:
        self.log.info_event(
            "behavior_pattern",
            pattern.description,
            pattern=pattern.category.value,
            confidence=pattern.confidence,
        )

    # ------------------------------------------------------------------
    # Task tracking
    # ------------------------------------------------------------------

    def _create_tracked_task(self, coro: Coroutine[Any, Any, Any], name: str = "unknown") -> asyncio.Task:
        """
        Create a tracked background task that won't silently fail.

        Args:
            coro: Coroutine to run as background task
            name: Descriptive name for logging

        Returns:
            The created Task object
        """
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)

        def _task_done_callback(t: asyncio.Task) -> None:
            self._background_tasks.discard(t)
            try:
                t.result()
            except asyncio.CancelledError:
                logger.debug("[AdaptiveDirector] Background task '%s' was cancelled", name)
            except Exception as e:
                logger.error(
                    "[AdaptiveDirector] Background task '%s' failed with error: %s", name, e,
                    exc_info=True,
                )

        task.add_done_callback(_task_done_callback)
        logger.debug("[AdaptiveDirector] Created tracked task: %s", name)
        return task

    async def _cleanup_background_tasks(self) -> None:
        """Cancel all background tasks and wait for them to complete."""
        if not self._background_tasks:
            return

        logger.info("[AdaptiveDirector] Cancelling %d background tasks...", len(self._background_tasks))

        for task in self._background_tasks:
            if not task.done():
                task.cancel()

        await asyncio.gather(*self._background_tasks, return_exceptions=True)
        self._background_tasks.clear()
        logger.info("[AdaptiveDirector] All background tasks cleaned up")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Schedule the periodic tasks. Must be called from a running loop."""
        if self.running:
            return

        self.running = True
        self._stop_requested = False

        if self.analyzer is not None:
            self._create_tracked_task(self._analysis_loop(), name="analysis_loop")
        if self.controller is not None:
            self._create_tracked_task(self._difficulty_loop(), name="difficulty_loop")
        if self.generator is not None and self.validator is not None and self.scheduler.enable_continuous_generation:
            self._create_tracked_task(self._generation_loop(), name="generation_loop")

        self.log.info_event("director_started", "Adaptive director started", tasks=len(self._background_tasks))

    async def stop(self) -> None:
        """Request cooperative cancellation, then cancel and await every task."""
        self.request_stop()
        await self._cleanup_background_tasks()
        self.running = False
        self.log.info_event("director_stopped", "Adaptive director stopped", rooms_generated=self.rooms_generated)

    def close(self) -> None:
        """Drop every subscription on the channels of the wired components."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()

        if self.analyzer is not None:
            self.analyzer.close()
        if self.controller is not None:
            self.controller.difficulty_changed.clear()
        if self.generator is not None:
            self.generator.close()
        self.pool.room_evicted.clear()

    def request_stop(self) -> None:
        """Ask the loops and any in-flight generation to stop at their next check."""
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    # ------------------------------------------------------------------
    # Periodic loops
    # ------------------------------------------------------------------

    async def _analysis_loop(self) -> None:
        while not self._stop_requested:
            await asyncio.sleep(self.analysis_interval)
            self.run_analysis_step()

    async def _difficulty_loop(self) -> None:
        while not self._stop_requested:
            await asyncio.sleep(self.difficulty_interval)
            self.run_difficulty_step(self.difficulty_interval)

    async def _generation_loop(self) -> None:
        while not self._stop_requested:
            await asyncio.sleep(self.scheduler.generation_interval)
            if not self.should_generate():
                continue
            try:
                await self.generate_room()
            except GenerationCancelledError as e:
                logger.info("[AdaptiveDirector] %s; room discarded", e)
            except GenerationTimeoutError as e:
                logger.warning("[AdaptiveDirector] %s; room discarded", e)

    # ------------------------------------------------------------------
    # Single steps
    # ------------------------------------------------------------------

    def run_analysis_step(self) -> Optional[AnalysisReport]:
        if self.analyzer is None:
            return None
        return self.analyzer.run_analysis()

    def run_difficulty_step(self, delta_time: Optional[float] = None) -> Optional[DifficultyChange]:
        if self.controller is None:
            return None
        return self.controller.tick(self.difficulty_interval if delta_time is None else delta_time)

    def should_generate(self) -> bool:
        return (
            self.generator is not None
            and self.validator is not None
            and not self.is_generating
            and len(self.pool) < self.pool.capacity
        )

    def _check_cancelled(self, stage: str) -> None:
        if self._stop_requested:
            raise GenerationCancelledError(stage)

    async def _run_stage(self, stage: str, func: Callable[..., R], *args: Any) -> R:
        """
        Run one stage in a worker thread under stage_timeout.

        The worker is shielded: if the wait times out or is cancelled, the
        thread keeps running and is remembered so the generation guard stays
        held until it actually finishes.
        """
        timeout = self.scheduler.stage_timeout
        worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
        with metrics.track_generation_stage(stage):
            try:
                return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
            except asyncio.TimeoutError:
                self._abandoned_stage = worker
                raise GenerationTimeoutError(stage, timeout) from None
            except asyncio.CancelledError:
                self._abandoned_stage = worker
                raise

    def _release_generation_guard(self, worker: asyncio.Future) -> None:
        self.is_generating = False
        if not worker.cancelled() and worker.exception() is not None:
            logger.warning(
                "[AdaptiveDirector] Abandoned generation stage failed: %s", worker.exception(),
            )
        logger.debug("[AdaptiveDirector] Abandoned generation stage finished; guard released")

    async def generate_room(self, snapshot: Optional[PerformanceSnapshot] = None) -> Optional[GeneratedRoom]:
        """
        Run one generation through validation and into the pool.

        Returns None without generating when generation is unavailable or
        already in progress.

        Raises:
            GenerationCancelledError: stop() was requested between stages
            GenerationTimeoutError: a stage exceeded stage_timeout
        """
        if self.generator is None or self.validator is None:
            logger.debug("[AdaptiveDirector] Generation unavailable")
            return None
        if self.is_generating:
            logger.debug("[AdaptiveDirector] Generation already in progress; skipping")
            return None

        self.is_generating = True
        try:
            # Read shared analyzer state on the loop, not in the worker thread
            if snapshot is None and self.analyzer is not None:
                snapshot = self.analyzer.snapshot()

            room = await self._run_stage("structure", self.generator.build_room_structure, snapshot)
            room_log = self.log.bind(room_id=room.id)
            room_log.debug_event("generation_stage", "Structure ready", stage="structure", complexity=room.complexity)
            self._check_cancelled("structure")

            await self._run_stage("puzzles", self.generator.populate_puzzles, room)
            await self._run_stage("optimization", self.generator.optimize_room, room)
            room_log.debug_event("generation_stage", "Puzzles placed", stage="puzzles", puzzle_count=room.puzzle_count)
            self._check_cancelled("puzzles")

            report = await self._run_stage("validation", self.validator.validate, room)
            self._check_cancelled("validation")
        except GenerationCancelledError:
            self.generation_failures += 1
            metrics.record_generation_failure("cancelled")
            raise
        except GenerationTimeoutError:
            self.generation_failures += 1
            metrics.record_generation_failure("timeout")
            raise
        finally:
            abandoned, self._abandoned_stage = self._abandoned_stage, None
            if abandoned is not None and not abandoned.done():
                abandoned.add_done_callback(self._release_generation_guard)
            else:
                self.is_generating = False

        self.last_validation = report
        self.pool.add(room)
        self.generator.mark_generated(room)
        self.rooms_generated += 1
        metrics.record_room_generated(room.theme.value, room.quality_score)

        room_log.info_event(
            "room_generated",
            f"Generated {room.name}",
            room_name=room.name,
            complexity=room.complexity,
            puzzle_count=room.puzzle_count,
            quality_score=room.quality_score,
            theme=room.theme.value,
        )
        self.generator.publish_room(room)
        return room

    def status(self) -> DirectorStatus:
        return DirectorStatus(
            running=self.running,
            is_generating=self.is_generating,
            difficulty=self.controller.state if self.controller is not None else None,
            performance=self.analyzer.snapshot() if self.analyzer is not None else None,
            pool=self.pool.stats(),
            rooms_generated=self.rooms_generated,
            generation_failures=self.generation_failures,
            active_tasks=len(self._background_tasks),
        )


def create_adaptive_director(
    config: Optional[DirectorConfig] = None,
    rng: Optional[random.Random] = None,
    clock: Callable[[], float] = time.monotonic,
    director_id: str = "director",
) -> AdaptiveDirector:
    """
    Build a fully wired director from configuration.

    Args:
        config: Director configuration (defaults when None)
        rng: Shared random source; seed it for reproducible content
        clock: Time source for analytics timestamps and cooldowns
        director_id: Identifier bound into structured log records
    """
    config = config or DirectorConfig()
    rng = rng or random.Random()

    analyzer = PerformanceAnalyzer.from_settings(
        config.analytics, clock=clock, max_difficulty=config.difficulty.max_difficulty
    )
    controller = DifficultyController.from_settings(
        config.difficulty, performance_source=analyzer.current_performance
    )
    selector = PuzzleTypeSelector.from_settings(
        config.selector,
        rng=rng,
        min_complexity=config.generation.min_complexity,
        max_complexity=config.generation.max_complexity,
    )
    generator = ContentGenerator.from_settings(
        config.generation,
        selector=selector,
        performance_source=analyzer.snapshot,
        difficulty_source=lambda: controller.current,
        rng=rng,
    )
    validator = QualityValidator.from_settings(
        config.validation, rng=rng, min_room_complexity=config.generation.min_room_complexity
    )
    pool = ContentPool(capacity=config.scheduler.max_generated_rooms)

    return AdaptiveDirector(
        pool=pool,
        analyzer=analyzer,
        controller=controller,
        generator=generator,
        validator=validator,
        scheduler=config.scheduler,
        analysis_interval=config.analytics.analysis_interval,
        difficulty_interval=config.difficulty.update_interval,
        director_id=director_id,
    )
