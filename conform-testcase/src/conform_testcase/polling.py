"""Bounded, cancellable polling of a busy predicate.

The poller is the only place the harness waits on pending hardware motion.
It evaluates a predicate, sleeps one interval on the cancellation signal,
and stops when the predicate turns false, the timeout expires or the run is
cancelled. A timeout is a normal outcome; the caller decides the verdict.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from conform_core.errors import ConfigurationError

from conform_testcase.cancellation import CancellationSignal

logger = logging.getLogger(__name__)

Predicate = Callable[[], Awaitable[bool]]
ProgressProbe = Callable[[], Awaitable[str]]
StatusCallback = Callable[[str], None]


class Stopwatch:
    """Monotonic elapsed-time measurement.

    Example:
        stopwatch = Stopwatch()
        await command()
        print(stopwatch.elapsed_ms)
    """

    def __init__(self) -> None:
        self._start = time.monotonic()

    @property
    def elapsed(self) -> float:
        """Return elapsed seconds."""
        return time.monotonic() - self._start

    @property
    def elapsed_ms(self) -> float:
        """Return elapsed milliseconds."""
        return self.elapsed * 1000.0


class PollOutcome(Enum):
    """Why a poll loop stopped."""

    PREDICATE = "predicate"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollSpec:
    """Parameters for one wait.

    Attributes:
        predicate: Returns True while the device is still busy.
        poll_interval_ms: Minimum delay between predicate evaluations.
        timeout_seconds: Maximum wait.
        progress_probe: Optional status string provider, called each iteration.

    Raises:
        ConfigurationError: If the interval is not positive or the timeout is
            negative.
    """

    predicate: Predicate
    poll_interval_ms: int = 500
    timeout_seconds: float = 60.0
    progress_probe: ProgressProbe | None = None

    def __post_init__(self) -> None:
        if self.poll_interval_ms <= 0:
            raise ConfigurationError(f"poll_interval_ms must be > 0, got {self.poll_interval_ms}")
        if self.timeout_seconds < 0:
            raise ConfigurationError(f"timeout_seconds must be >= 0, got {self.timeout_seconds}")


@dataclass(frozen=True)
class PollResult:
    """Outcome of one wait.

    Attributes:
        stopped_because: Why the loop exited.
        elapsed: Seconds spent waiting.
        polls: Number of predicate evaluations.
    """

    stopped_because: PollOutcome
    elapsed: float
    polls: int

    @property
    def completed(self) -> bool:
        """Return True if the predicate turned false."""
        return self.stopped_because == PollOutcome.PREDICATE

    @property
    def timed_out(self) -> bool:
        """Return True if the timeout expired."""
        return self.stopped_because == PollOutcome.TIMEOUT

    @property
    def cancelled(self) -> bool:
        """Return True if the run was cancelled during the wait."""
        return self.stopped_because == PollOutcome.CANCELLED


async def poll_until_false(
    spec: PollSpec,
    cancellation: CancellationSignal,
    on_status: StatusCallback | None = None,
) -> PollResult:
    """Evaluate spec.predicate until it returns False.

    A TIMEOUT result is only returned once the full timeout has elapsed; a
    sleep that wakes early is followed by another poll.

    Exceptions raised by the predicate or the progress probe propagate to the
    caller.

    Args:
        spec: Wait parameters.
        cancellation: Signal checked after every sleep.
        on_status: Optional callback receiving a status string each iteration.

    Returns:
        PollResult describing why the wait ended.
    """
    stopwatch = Stopwatch()
    interval = spec.poll_interval_ms / 1000.0
    polls = 0

    while True:
        polls += 1
        if not await spec.predicate():
            return PollResult(PollOutcome.PREDICATE, stopwatch.elapsed, polls)

        remaining = spec.timeout_seconds - stopwatch.elapsed
        if await cancellation.sleep(min(interval, max(remaining, 0.0))):
            logger.debug("Poll cancelled after %.3fs", stopwatch.elapsed)
            return PollResult(PollOutcome.CANCELLED, stopwatch.elapsed, polls)

        elapsed = stopwatch.elapsed
        if elapsed >= spec.timeout_seconds:
            logger.debug("Poll timed out after %.3fs (%d polls)", elapsed, polls)
            return PollResult(PollOutcome.TIMEOUT, elapsed, polls)

        if on_status is not None:
            if spec.progress_probe is not None:
                status = await spec.progress_probe()
            else:
                status = f"{elapsed:.1f} / {spec.timeout_seconds:.1f} seconds"
            on_status(status)
