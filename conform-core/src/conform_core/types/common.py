"""Common types used across the conformance harness.

Type Aliases:
    CheckName: Name of a single conformance check as it appears in reports.
    RunId: Identifies one conformance run.

Classes:
    DeviceType: The device categories the harness knows how to exercise.
    Timestamp: High-resolution timestamp with nanosecond precision.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import NewType

CheckName = NewType("CheckName", str)
"""Type alias for conformance check names (e.g., "Position", "MoveAbsolute")."""

RunId = NewType("RunId", str)
"""Type alias for conformance run identifiers."""


class DeviceType(Enum):
    """Device categories under test.

    Values are the lower-case names used in Alpaca URLs.
    """

    ROTATOR = "rotator"
    FOCUSER = "focuser"
    COVER_CALIBRATOR = "covercalibrator"

    @classmethod
    def parse(cls, name: str) -> DeviceType:
        """Parse a device type name, ignoring case and separators.

        Args:
            name: Name such as "Rotator", "cover_calibrator" or "covercalibrator".

        Returns:
            The matching DeviceType.

        Raises:
            ValueError: If the name matches no device type.
        """
        normalized = name.strip().lower().replace("_", "").replace("-", "")
        for device_type in cls:
            if device_type.value == normalized:
                return device_type
        raise ValueError(f"Unknown device type: {name!r}")


@dataclass(frozen=True)
class Timestamp:
    """High-resolution timestamp with nanosecond precision.

    Timestamps are stored as nanoseconds since the Unix epoch.

    Attributes:
        unix_ns: Nanoseconds since Unix epoch.

    Example:
        >>> ts = Timestamp.now()
        >>> print(f"Time: {ts.to_datetime().isoformat()}")
    """

    unix_ns: int

    @classmethod
    def now(cls) -> Timestamp:
        """Create a timestamp for the current time."""
        return cls(unix_ns=time.time_ns())

    def to_datetime(self) -> datetime:
        """Convert to a timezone-aware datetime object in UTC."""
        return datetime.fromtimestamp(self.unix_ns / 1_000_000_000, tz=timezone.utc)

    @property
    def unix_seconds(self) -> float:
        """Return the timestamp as seconds since Unix epoch."""
        return self.unix_ns / 1_000_000_000

    def __str__(self) -> str:
        return self.to_datetime().isoformat()
