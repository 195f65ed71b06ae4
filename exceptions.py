"""
Custom exceptions for the adaptive director.

Computation on live telemetry never raises: insufficient data and
out-of-range inputs resolve to neutral defaults or clamped values.
These types cover configuration problems and the generation pipeline.
"""

from __future__ import annotations


class DirectorError(Exception):
    """Base exception for all adaptive director errors."""

    pass


class ConfigurationError(DirectorError):
    """Raised when a configuration file or value is invalid."""

    pass


class GenerationError(DirectorError):
    """Base exception for room generation pipeline errors."""

    pass


class GenerationCancelledError(GenerationError):
    """Raised when a shutdown request interrupts a generation between stages."""

    def __init__(self, stage: str) -> None:
        self.stage = stage
        super().__init__(f"Generation cancelled after stage: {stage}")


class GenerationTimeoutError(GenerationError):
    """Raised when a generation stage exceeds its time budget."""

    def __init__(self, stage: str, timeout: float) -> None:
        self.stage = stage
        self.timeout = timeout
        super().__init__(f"Generation stage '{stage}' exceeded {timeout:.1f}s")


class ContentPoolError(DirectorError):
    """Base exception for content pool errors."""

    pass


class RoomNotFoundError(ContentPoolError):
    """Raised when a strict lookup asks for a room that is not resident."""

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__(f"Room not found: {room_id}")
