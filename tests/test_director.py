"""
Tests for AdaptiveDirector wiring, guarded generation and task lifecycle.
"""

import asyncio
import random
import threading
import time
from unittest.mock import Mock

import pytest

from config import DifficultySettings, DirectorConfig, GenerationSettings, SchedulerSettings
from conftest import FakeClock
from content_generator import ContentGenerator
from content_pool import ContentPool
from difficulty_controller import DifficultyController
from director import AdaptiveDirector, create_adaptive_director
from exceptions import GenerationCancelledError, GenerationTimeoutError
from puzzle_types import PuzzleCategory, PuzzleTypeSelector
from quality_validator import QualityValidator


class SlowSelector(PuzzleTypeSelector):
    """Selector whose draws outlast a short stage timeout."""

    def select_type(self, complexity, theme=None, preferred=()):
        time.sleep(0.1)
        return super().select_type(complexity, theme, preferred)


async def wait_for_guard_release(director, limit=3.0):
    waited = 0.0
    while director.is_generating and waited < limit:
        await asyncio.sleep(0.02)
        waited += 0.02
    return not director.is_generating


def make_director(capacity=5, seed=3, scheduler=None, **kwargs):
    rng = random.Random(seed)
    return AdaptiveDirector(
        pool=ContentPool(capacity=capacity),
        generator=ContentGenerator(selector=PuzzleTypeSelector(rng=rng), rng=rng),
        validator=QualityValidator(rng=rng),
        scheduler=scheduler,
        **kwargs,
    )


class TestGeneration:
    async def test_generated_room_lands_in_pool(self):
        director = make_director()
        published = Mock()
        director.generator.room_generated.subscribe(published)

        room = await director.generate_room()

        assert room is not None
        assert director.pool.get(room.id) is room
        assert director.rooms_generated == 1
        assert director.generator.stats().rooms_generated == 1
        assert director.last_validation.room_id == room.id
        assert director.is_generating is False
        published.assert_called_once_with(room)

    async def test_concurrent_request_is_skipped(self):
        director = make_director()
        director.is_generating = True

        assert director.should_generate() is False
        assert await director.generate_room() is None
        assert len(director.pool) == 0

    async def test_full_pool_stops_scheduling(self):
        director = make_director(capacity=1)
        await director.generate_room()
        assert director.should_generate() is False

    async def test_cancellation_discards_room(self):
        director = make_director()
        published = Mock()
        director.generator.room_generated.subscribe(published)
        director.request_stop()

        with pytest.raises(GenerationCancelledError) as exc_info:
            await director.generate_room()

        assert exc_info.value.stage == "structure"
        assert len(director.pool) == 0
        assert director.generation_failures == 1
        assert director.is_generating is False
        published.assert_not_called()

    async def test_stage_timeout_discards_room(self):
        director = make_director(scheduler=SchedulerSettings(stage_timeout=0.05))
        director.validator.validate = lambda room: time.sleep(0.3)

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await director.generate_room()

        assert exc_info.value.stage == "validation"
        assert len(director.pool) == 0
        assert director.generation_failures == 1

        # Guard held until the abandoned worker returns
        assert director.is_generating is True
        assert await wait_for_guard_release(director)

    async def test_timed_out_worker_blocks_next_generation(self):
        director = make_director(scheduler=SchedulerSettings(stage_timeout=0.05))
        director.generator.selector = SlowSelector(rng=random.Random(8))
        puzzle_listener = Mock()
        director.generator.puzzle_generated.subscribe(puzzle_listener)

        with pytest.raises(GenerationTimeoutError) as exc_info:
            await director.generate_room()

        assert exc_info.value.stage == "puzzles"
        assert director.should_generate() is False
        assert await director.generate_room() is None

        assert await wait_for_guard_release(director)

        puzzle_listener.assert_not_called()
        stats = director.generator.stats()
        assert stats.total_puzzles == 0
        assert stats.rooms_generated == 0
        assert len(director.pool) == 0
        assert director.should_generate() is True

    async def test_accepted_room_announces_puzzles_on_loop(self):
        director = make_director()
        seen = []
        director.generator.puzzle_generated.subscribe(
            lambda puzzle: seen.append(threading.current_thread() is threading.main_thread())
        )

        room = await director.generate_room()

        assert len(seen) == room.puzzle_count
        assert all(seen)
        assert director.generator.stats().total_puzzles == room.puzzle_count

    async def test_missing_collaborators_disable_features(self, caplog):
        director = AdaptiveDirector(pool=ContentPool(capacity=2))

        assert "No content generator" in caplog.text
        assert director.telemetry is None
        assert await director.generate_room() is None
        assert director.run_analysis_step() is None
        assert director.run_difficulty_step(1.0) is None

        status = director.status()
        assert status.difficulty is None
        assert status.performance is None
        assert status.pool.count == 0


class TestLifecycle:
    async def test_start_and_stop_track_tasks(self):
        director = create_adaptive_director(rng=random.Random(1))
        director.start()
        director.start()

        assert director.running is True
        assert director.status().active_tasks == 3

        await director.stop()

        assert director.running is False
        assert director.stop_requested is True
        assert director.status().active_tasks == 0

    async def test_generation_loop_fills_pool_up_to_capacity(self):
        config = DirectorConfig(scheduler=SchedulerSettings(generation_interval=0.01, max_generated_rooms=3))
        director = create_adaptive_director(config, rng=random.Random(2))

        director.start()
        for _ in range(100):
            if len(director.pool) == 3:
                break
            await asyncio.sleep(0.02)
        await director.stop()

        assert len(director.pool) == 3
        assert director.rooms_generated == 3

    async def test_continuous_generation_can_be_disabled(self):
        config = DirectorConfig(scheduler=SchedulerSettings(enable_continuous_generation=False))
        director = create_adaptive_director(config, rng=random.Random(2))

        director.start()
        assert director.status().active_tasks == 2
        await director.stop()

    def test_close_clears_channels(self):
        director = create_adaptive_director(rng=random.Random(1))
        director.controller.difficulty_changed.subscribe(Mock())
        director.analyzer.insights.subscribe(Mock())
        director.pool.room_evicted.subscribe(Mock())

        director.close()

        assert director.controller.difficulty_changed.subscriber_count == 0
        assert director.analyzer.insights.subscriber_count == 0
        assert director.pool.room_evicted.subscriber_count == 0


class TestWiring:
    def test_factory_applies_config(self):
        config = DirectorConfig(
            difficulty=DifficultySettings(min_difficulty=3, max_difficulty=8, initial_difficulty=4),
            scheduler=SchedulerSettings(max_generated_rooms=7),
        )
        director = create_adaptive_director(config, rng=random.Random(0), director_id="dir-test")

        assert director.pool.capacity == 7
        assert director.controller.current == 4
        assert director.controller.performance_source == director.analyzer.current_performance
        assert director.log.extra["director_id"] == "dir-test"

    def test_difficulty_follows_analyzer_performance(self):
        clock = FakeClock()
        director = create_adaptive_director(rng=random.Random(0), clock=clock)

        for _ in range(5):
            clock.advance(10)
            director.telemetry.record_outcome("logic", True, 20.0, 5)

        change = director.run_difficulty_step(2.0)

        assert director.controller.target == 5.5
        assert change is not None
        assert change.current > 5.0

    async def test_skill_profile_steers_generation(self):
        clock = FakeClock()
        director = create_adaptive_director(rng=random.Random(0), clock=clock)

        for _ in range(3):
            clock.advance(10)
            director.telemetry.record_outcome("logic", True, 20.0, 5)

        room = await director.generate_room()

        assert room.focus_categories == [PuzzleCategory.LOGIC]
        assert director.analyzer.snapshot().average_skill == pytest.approx(0.7 + 0.3 * (1 - 20.0 / 600))


@pytest.mark.parametrize("seed", range(3))
async def test_oscillating_player_keeps_difficulty_and_pool_bounded(seed):
    config = DirectorConfig(
        difficulty=DifficultySettings(min_difficulty=3, max_difficulty=8),
        generation=GenerationSettings(min_room_complexity=3, max_room_complexity=8),
        scheduler=SchedulerSettings(max_generated_rooms=20),
    )
    clock = FakeClock()
    rng = random.Random(seed)
    director = create_adaptive_director(config, rng=random.Random(seed), clock=clock)
    categories = [c.value for c in PuzzleCategory]

    for round_index in range(50):
        strong = (round_index // 5) % 2 == 0
        for _ in range(4):
            clock.advance(1.0)
            level = 0.9 if strong else 0.1
            director.telemetry.record_sample(level, level, level, active_puzzle_count=1)
        clock.advance(5.0)
        director.telemetry.record_outcome(
            rng.choice(categories),
            success=strong,
            completion_time=30.0 if strong else 280.0,
            difficulty_at_attempt=director.controller.current,
        )

        director.run_difficulty_step(2.0)
        director.run_analysis_step()
        room = await director.generate_room()

        assert 3 <= director.controller.target <= 8
        assert 3 <= director.controller.current <= 8
        assert 3 <= room.complexity <= 8
        assert 0 <= room.quality_score <= 100
        assert len(director.pool) <= 20

    assert director.rooms_generated == 50
    assert len(director.pool) == 20
    assert director.generation_failures == 0
