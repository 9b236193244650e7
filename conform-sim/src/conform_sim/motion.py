"""Time-based linear motion model for simulated devices."""

from __future__ import annotations

import time


class LinearMotion:
    """A single axis moving at constant speed.

    Position is interpolated from the wall clock, so no background task is
    needed: readers see the axis move between calls.

    Args:
        position: Initial position.
        speed: Units per second (> 0).
    """

    def __init__(self, position: float, speed: float) -> None:
        if speed <= 0:
            raise ValueError("speed must be > 0")
        self._speed = speed
        self._start_position = position
        self._target = position
        self._start_time = time.monotonic()
        self._duration = 0.0

    def start(self, target: float) -> float:
        """Begin moving toward target from the current position.

        Args:
            target: Destination.

        Returns:
            Seconds the move will take.
        """
        current = self.position
        self._start_position = current
        self._target = target
        self._start_time = time.monotonic()
        self._duration = abs(target - current) / self._speed
        return self._duration

    def halt(self) -> None:
        """Stop at the current position."""
        current = self.position
        self._start_position = current
        self._target = current
        self._duration = 0.0

    def jump(self, position: float) -> None:
        """Set the position instantly."""
        self._start_position = position
        self._target = position
        self._duration = 0.0

    @property
    def target(self) -> float:
        """Return the destination of the current or last move."""
        return self._target

    @property
    def is_moving(self) -> bool:
        """Return True while the move is in progress."""
        return self._duration > 0 and time.monotonic() - self._start_time < self._duration

    @property
    def remaining(self) -> float:
        """Return seconds until the move completes."""
        if self._duration <= 0:
            return 0.0
        return max(0.0, self._duration - (time.monotonic() - self._start_time))

    @property
    def position(self) -> float:
        """Return the current interpolated position."""
        if not self.is_moving:
            return self._target
        fraction = (time.monotonic() - self._start_time) / self._duration
        return self._start_position + (self._target - self._start_position) * fraction
