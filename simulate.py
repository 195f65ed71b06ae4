"""
Simulation harness.

Drives a fully wired AdaptiveDirector with synthetic telemetry and puzzle
outcomes, stepping the analysis and difficulty loops by hand so a run is
reproducible for a given seed.

    python simulate.py --rooms 20 --profile oscillating --seed 7
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random

from dotenv import load_dotenv

from config import load_director_config
from constants import DIFFICULTY_INITIAL
from director import AdaptiveDirector, create_adaptive_director
from logging_config import setup_logging
from puzzle_types import CATEGORY_ORDER

load_dotenv()

logger = logging.getLogger(__name__)

PROFILES = ("struggling", "skilled", "oscillating")


class SimulatedClock:
    """Monotonic clock advanced explicitly by the simulation."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def player_skill(profile: str, round_index: int) -> float:
    if profile == "struggling":
        return 0.15
    if profile == "skilled":
        return 0.9
    # Alternate between a good and a bad stretch every five rooms
    return 0.9 if (round_index // 5) % 2 == 0 else 0.1


def play_round(director: AdaptiveDirector, rng: random.Random, skill: float, samples: int) -> None:
    """Feed one room's worth of telemetry and outcomes."""
    sink = director.telemetry
    if sink is None:
        return

    for _ in range(samples):
        sink.record_sample(
            movement_intensity=rng.gauss(0.3 + skill * 0.5, 0.1),
            interaction_frequency=rng.gauss(skill, 0.1),
            puzzle_progress=rng.gauss(skill, 0.15),
        )

    room = director.pool.latest()
    puzzles = room.puzzles if room is not None else []
    for puzzle in puzzles:
        success = rng.random() < skill
        completion_time = rng.uniform(30.0, 120.0) if success else rng.uniform(150.0, 400.0)
        sink.record_outcome(puzzle.category, success, completion_time, puzzle.difficulty)


def skill_report(director: AdaptiveDirector) -> dict:
    """Skill estimates and per-category predictions at the final difficulty."""
    analyzer = director.analyzer
    if analyzer is None:
        return {}

    snapshot = analyzer.snapshot()
    difficulty = director.controller.current if director.controller is not None else DIFFICULTY_INITIAL
    predictions = {}
    for category in CATEGORY_ORDER:
        prediction = analyzer.predict_performance(category, difficulty)
        if prediction.confidence > 0:
            predictions[category.value] = {
                "completion_rate": round(prediction.expected_completion_rate, 3),
                "completion_time": round(prediction.expected_completion_time, 1),
                "confidence": round(prediction.confidence, 2),
            }

    return {
        "average_skill": round(snapshot.average_skill, 3) if snapshot.average_skill is not None else None,
        "preferred_categories": [category.value for category in snapshot.preferred_categories],
        "predictions": predictions,
    }


async def run(args: argparse.Namespace) -> dict:
    config = load_director_config(args.config)
    rng = random.Random(args.seed)
    clock = SimulatedClock()
    director = create_adaptive_director(config, rng=random.Random(args.seed), clock=clock, director_id="simulation")

    difficulty_trace = []
    try:
        for round_index in range(args.rooms):
            play_round(director, rng, player_skill(args.profile, round_index), args.samples)
            clock.advance(config.analytics.analysis_interval)

            director.run_analysis_step()
            director.run_difficulty_step()
            difficulty_trace.append(round(director.controller.current, 2))

            room = await director.generate_room()
            if room is not None:
                logger.info(
                    "[Simulation] Round %d: %s complexity=%d puzzles=%d quality=%.1f",
                    round_index, room.name, room.complexity, room.puzzle_count, room.quality_score,
                )
    finally:
        await director.stop()
        director.close()

    status = director.status()
    return {
        "profile": args.profile,
        "rooms_generated": status.rooms_generated,
        "pool": {
            "count": status.pool.count,
            "average_quality": round(status.pool.average_quality, 2),
            "average_complexity": round(status.pool.average_complexity, 2),
            "average_puzzle_count": round(status.pool.average_puzzle_count, 2),
        },
        "difficulty_trace": difficulty_trace,
        "final_performance": round(status.performance.performance, 3) if status.performance else None,
        "skills": skill_report(director),
    }


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the adaptive director against a synthetic player.")
    parser.add_argument('--rooms', type=int, default=20, help='Number of rooms to generate')
    parser.add_argument('--samples', type=int, default=30, help='Telemetry samples fed per room')
    parser.add_argument('--profile', type=str, choices=PROFILES, default='oscillating', help='Synthetic player profile')
    parser.add_argument('--seed', type=int, default=7, help='Random seed')
    parser.add_argument('--config', type=str, default=None, help='Path to a director config JSON file')
    parser.add_argument('--json-logs', action='store_true', help='Emit JSON log lines')
    parser.add_argument('--log-level', type=str, default=None, help='Log level override')
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    setup_logging(use_json=args.json_logs or None, log_level=args.log_level)
    summary = asyncio.run(run(args))
    print(json.dumps(summary, indent=2))


if __name__ == '__main__':
    main()
