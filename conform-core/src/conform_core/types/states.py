"""Device state enumerations shared by testers and simulators."""

from __future__ import annotations

from enum import IntEnum


class CoverStatus(IntEnum):
    """Cover state reported by a cover calibrator's CoverState property."""

    NOT_PRESENT = 0
    CLOSED = 1
    MOVING = 2
    OPEN = 3
    UNKNOWN = 4
    ERROR = 5


class CalibratorStatus(IntEnum):
    """Calibrator state reported by a cover calibrator's CalibratorState property."""

    NOT_PRESENT = 0
    OFF = 1
    NOT_READY = 2
    READY = 3
    UNKNOWN = 4
    ERROR = 5
