"""
Tests for the bounded content pool.
"""

import unittest
from unittest.mock import Mock

from content_models import GeneratedRoom, RoomDimensions, RoomLayout
from content_pool import ContentPool
from exceptions import RoomNotFoundError
from puzzle_types import RoomTheme


def make_room(room_id, quality=50.0, complexity=5, theme=RoomTheme.ANCIENT):
    return GeneratedRoom(
        id=room_id,
        name=f"Room {room_id}",
        complexity=complexity,
        theme=theme,
        dimensions=RoomDimensions(15.0, 5.5, 15.0),
        layout=RoomLayout(10, 15, 10),
        quality_score=quality,
    )


class TestContentPool(unittest.TestCase):
    def setUp(self):
        self.pool = ContentPool(capacity=3)

    def test_rejects_non_positive_capacity(self):
        with self.assertRaises(ValueError):
            ContentPool(capacity=0)

    def test_add_and_get(self):
        room = make_room("a")
        self.assertIsNone(self.pool.add(room))
        self.assertIs(self.pool.get("a"), room)
        self.assertIn("a", self.pool)
        self.assertIsNone(self.pool.get("missing"))

    def test_evicts_oldest(self):
        listener = Mock()
        self.pool.room_evicted.subscribe(listener)

        for room_id in "abcd":
            self.pool.add(make_room(room_id))

        self.assertEqual(len(self.pool), 3)
        self.assertEqual([r.id for r in self.pool.rooms()], ["b", "c", "d"])
        listener.assert_called_once()
        self.assertEqual(listener.call_args[0][0].id, "a")

    def test_size_never_exceeds_capacity(self):
        for i in range(50):
            self.pool.add(make_room(str(i)))
            self.assertLessEqual(len(self.pool), self.pool.capacity)

    def test_require_raises_for_unknown(self):
        with self.assertRaises(RoomNotFoundError) as ctx:
            self.pool.require("ghost")
        self.assertEqual(ctx.exception.room_id, "ghost")

    def test_latest(self):
        self.assertIsNone(self.pool.latest())
        self.pool.add(make_room("a"))
        self.pool.add(make_room("b"))
        self.assertEqual(self.pool.latest().id, "b")

    def test_find(self):
        self.pool.add(make_room("a", quality=30.0, theme=RoomTheme.ANCIENT))
        self.pool.add(make_room("b", quality=70.0, theme=RoomTheme.ANCIENT))
        self.pool.add(make_room("c", quality=90.0, theme=RoomTheme.SACRED))

        self.assertEqual([r.id for r in self.pool.find(theme=RoomTheme.ANCIENT)], ["a", "b"])
        self.assertEqual([r.id for r in self.pool.find(min_quality=60.0)], ["b", "c"])
        self.assertEqual([r.id for r in self.pool.find(RoomTheme.SACRED, 95.0)], [])

    def test_remove_and_clear(self):
        self.pool.add(make_room("a"))
        self.pool.add(make_room("b"))
        self.assertEqual(self.pool.remove("a").id, "a")
        self.assertIsNone(self.pool.remove("a"))
        self.pool.clear()
        self.assertEqual(len(self.pool), 0)

    def test_stats_empty(self):
        stats = self.pool.stats()
        self.assertEqual(stats.count, 0)
        self.assertEqual(stats.average_quality, 0.0)

    def test_stats_computed_on_demand(self):
        self.pool.add(make_room("a", quality=40.0, complexity=4))
        self.pool.add(make_room("b", quality=60.0, complexity=6))

        stats = self.pool.stats()
        self.assertEqual(stats.count, 2)
        self.assertEqual(stats.capacity, 3)
        self.assertEqual(stats.average_quality, 50.0)
        self.assertEqual(stats.average_complexity, 5.0)
        self.assertEqual(stats.average_puzzle_count, 0.0)

        self.pool.remove("a")
        self.assertEqual(self.pool.stats().average_quality, 60.0)


if __name__ == '__main__':
    unittest.main()
