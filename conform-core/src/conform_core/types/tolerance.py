"""Tolerance comparison for reported physical quantities.

Deviation between an expected and an actual value is classified into bands:

    |d| <= ok_band_width                     -> OK
    ok_band_width < |d| <= info_band_width   -> INFO
    |d| > info_band_width                    -> ISSUE

Wrapping quantities (angles) are compared modulo their period, so 359 and 1
are 2 degrees apart, not 358.
"""

from __future__ import annotations

from dataclasses import dataclass

from conform_core.errors import ToleranceError
from conform_core.types.verdict import Verdict

FULL_CIRCLE = 360.0


def normalize_deviation(difference: float, period: float = FULL_CIRCLE) -> float:
    """Map a signed difference into [-period/2, period/2).

    Args:
        difference: actual - expected.
        period: Wrap period.

    Returns:
        The equivalent signed difference closest to zero.
    """
    half = period / 2.0
    return ((difference + half) % period) - half


def angular_distance(a: float, b: float, period: float = FULL_CIRCLE) -> float:
    """Return the unsigned wrap-aware distance between two values."""
    return abs(normalize_deviation(b - a, period))


def in_range(value: float, low: float, high: float, high_inclusive: bool = True) -> bool:
    """Check that value lies in [low, high] or [low, high).

    Args:
        value: Value to check.
        low: Inclusive lower bound.
        high: Upper bound.
        high_inclusive: Whether high itself is accepted.

    Returns:
        True if the value lies in range.
    """
    if value < low:
        return False
    if high_inclusive:
        return value <= high
    return value < high


@dataclass(frozen=True)
class ToleranceSpec:
    """One expected/actual comparison.

    Attributes:
        expected: Expected value.
        actual: Value reported by the device.
        ok_band_width: Largest deviation still judged OK.
        info_band_width: Largest deviation judged INFO rather than ISSUE.
        wraps: True for circular quantities.
        period: Wrap period, used only when wraps is True.

    Raises:
        ToleranceError: If bands are negative, misordered, or the period is
            not positive.
    """

    expected: float
    actual: float
    ok_band_width: float
    info_band_width: float
    wraps: bool = False
    period: float = FULL_CIRCLE

    def __post_init__(self) -> None:
        if self.ok_band_width < 0:
            raise ToleranceError(f"ok_band_width must be >= 0, got {self.ok_band_width}")
        if self.info_band_width < self.ok_band_width:
            raise ToleranceError(
                f"info_band_width ({self.info_band_width}) must be >= "
                f"ok_band_width ({self.ok_band_width})"
            )
        if self.wraps and self.period <= 0:
            raise ToleranceError(f"period must be > 0, got {self.period}")

    @property
    def deviation(self) -> float:
        """Return the unsigned deviation, wrap-aware when configured."""
        difference = self.actual - self.expected
        if self.wraps:
            difference = normalize_deviation(difference, self.period)
        return abs(difference)


def compare(spec: ToleranceSpec) -> Verdict:
    """Classify the deviation described by spec.

    Args:
        spec: The comparison to classify.

    Returns:
        OK, INFO or ISSUE.
    """
    deviation = spec.deviation
    if deviation <= spec.ok_band_width:
        return Verdict.OK
    if deviation <= spec.info_band_width:
        return Verdict.INFO
    return Verdict.ISSUE
