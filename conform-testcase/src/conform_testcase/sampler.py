"""Transaction-rate sampling for performance checks."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from conform_core.errors import SampleAbortedError
from conform_core.types.device import DeviceResult
from conform_core.types.verdict import Verdict

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.polling import StatusCallback, Stopwatch

logger = logging.getLogger(__name__)

Probe = Callable[[], Awaitable[DeviceResult]]


class RateBand(Enum):
    """Transaction rate bands."""

    FAST = "fast"  # > 10/s
    NOMINAL = "nominal"  # 2 - 10/s
    SLOW = "slow"  # 1 - 2/s
    VERY_SLOW = "very_slow"  # < 1/s


@dataclass(frozen=True)
class RateSample:
    """Result of one sampling window.

    Attributes:
        count: Completed transactions.
        elapsed: Seconds sampled.
        cancelled: True if the window was cut short by cancellation.
    """

    count: int
    elapsed: float
    cancelled: bool = False

    @property
    def rate(self) -> float:
        """Return transactions per second."""
        if self.elapsed <= 0:
            return 0.0
        return self.count / self.elapsed


def rate_band(rate: float) -> RateBand:
    """Return the band a transaction rate falls in."""
    if rate > 10.0:
        return RateBand.FAST
    if rate >= 2.0:
        return RateBand.NOMINAL
    if rate >= 1.0:
        return RateBand.SLOW
    return RateBand.VERY_SLOW


def rate_verdict(rate: float) -> Verdict:
    """Return the verdict for a transaction rate.

    Performance is informational: a nominal rate is OK, anything else INFO.
    """
    return Verdict.OK if rate_band(rate) == RateBand.NOMINAL else Verdict.INFO


def rate_message(name: str, rate: float) -> str:
    """Return the report message for a transaction rate."""
    band = rate_band(rate)
    if band in (RateBand.FAST, RateBand.NOMINAL):
        return f"Transaction rate: {rate:.1f} per second"
    if band == RateBand.SLOW:
        return f"{name} is slow, transaction rate: {rate:.1f} per second"
    return f"{name} is very slow, transaction rate: {rate:.1f} per second"


async def sample_rate(
    probe: Probe,
    window_seconds: float,
    cancellation: CancellationSignal,
    on_status: StatusCallback | None = None,
) -> RateSample:
    """Call probe back to back for window_seconds and count the calls.

    Args:
        probe: Device call to repeat.
        window_seconds: Sampling window.
        cancellation: Checked before every call.
        on_status: Optional callback, invoked at most once per elapsed second.

    Returns:
        RateSample for the window.

    Raises:
        SampleAbortedError: If the probe fails. The failure is not retried.
    """
    stopwatch = Stopwatch()
    count = 0
    last_status_second = 0

    while stopwatch.elapsed < window_seconds:
        if cancellation.is_cancelled:
            return RateSample(count=count, elapsed=stopwatch.elapsed, cancelled=True)

        result = await probe()
        if result.failed:
            raise SampleAbortedError(result, count)
        count += 1

        whole_seconds = int(stopwatch.elapsed)
        if on_status is not None and whole_seconds > last_status_second:
            last_status_second = whole_seconds
            on_status(f"{whole_seconds} / {window_seconds:.0f} seconds")

    sample = RateSample(count=count, elapsed=stopwatch.elapsed)
    logger.debug("Sampled %d transactions in %.2fs", sample.count, sample.elapsed)
    return sample
