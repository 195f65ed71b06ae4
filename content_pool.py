"""
Bounded store of validated rooms.

Insertion-ordered; once capacity is reached, each add evicts the oldest
room. The scene-assembly collaborator looks rooms up here. Rooms are
treated as read-only while resident.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional

import metrics
from constants import MAX_GENERATED_ROOMS
from content_models import GeneratedRoom
from events import EventChannel
from exceptions import RoomNotFoundError
from puzzle_types import RoomTheme

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolStats:
    count: int
    capacity: int
    average_quality: float
    average_complexity: float
    average_puzzle_count: float


class ContentPool:
    def __init__(self, capacity: int = MAX_GENERATED_ROOMS) -> None:
        if capacity < 1:
            raise ValueError(f"ContentPool capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._rooms: OrderedDict[str, GeneratedRoom] = OrderedDict()
        self.room_evicted: EventChannel[GeneratedRoom] = EventChannel("room_evicted")
        metrics.set_pool_size(0)

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms

    @property
    def is_full(self) -> bool:
        return len(self._rooms) >= self.capacity

    def add(self, room: GeneratedRoom) -> Optional[GeneratedRoom]:
        """
        Add a room, evicting the oldest if the pool is over capacity.

        Returns:
            The evicted room, if any
        """
        self._rooms[room.id] = room
        self._rooms.move_to_end(room.id)

        evicted = None
        if len(self._rooms) > self.capacity:
            _, evicted = self._rooms.popitem(last=False)
            logger.debug("[ContentPool] Evicted %s", evicted.name)
            self.room_evicted.emit(evicted)

        metrics.set_pool_size(len(self._rooms))
        return evicted

    def get(self, room_id: str) -> Optional[GeneratedRoom]:
        return self._rooms.get(room_id)

    def require(self, room_id: str) -> GeneratedRoom:
        """Like get(), but raises RoomNotFoundError for unknown ids."""
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(room_id)
        return room

    def rooms(self) -> list[GeneratedRoom]:
        """All resident rooms, oldest first."""
        return list(self._rooms.values())

    def latest(self) -> Optional[GeneratedRoom]:
        if not self._rooms:
            return None
        return next(reversed(self._rooms.values()))

    def find(self, theme: Optional[RoomTheme] = None, min_quality: float = 0.0) -> list[GeneratedRoom]:
        return [
            room for room in self._rooms.values()
            if (theme is None or room.theme is theme) and room.quality_score >= min_quality
        ]

    def remove(self, room_id: str) -> Optional[GeneratedRoom]:
        room = self._rooms.pop(room_id, None)
        metrics.set_pool_size(len(self._rooms))
        return room

    def clear(self) -> None:
        self._rooms.clear()
        metrics.set_pool_size(0)

    def stats(self) -> PoolStats:
        """Computed on demand from the resident rooms."""
        rooms = list(self._rooms.values())
        count = len(rooms)
        if count == 0:
            return PoolStats(0, self.capacity, 0.0, 0.0, 0.0)

        return PoolStats(
            count=count,
            capacity=self.capacity,
            average_quality=sum(r.quality_score for r in rooms) / count,
            average_complexity=sum(r.complexity for r in rooms) / count,
            average_puzzle_count=sum(r.puzzle_count for r in rooms) / count,
        )
