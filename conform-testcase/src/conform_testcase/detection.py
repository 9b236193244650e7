"""Synchronous/asynchronous command completion detection.

A command that returns within the threshold is treated as asynchronous: the
device has only initiated the operation and a busy indicator must be polled.
A command that takes longer is treated as synchronous: it should have
completed before returning, so a busy indicator that is still set is a
contract violation the caller reports.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from conform_core.errors import DeviceCallError
from conform_core.types.device import DeviceResult

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.polling import (
    PollResult,
    PollSpec,
    ProgressProbe,
    StatusCallback,
    Stopwatch,
    poll_until_false,
)

logger = logging.getLogger(__name__)

# Longest time an asynchronous operation may take to return after being started
DEFAULT_ASYNC_THRESHOLD_MS = 1000

Command = Callable[[], Awaitable[DeviceResult]]
BusyProbe = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class AsyncDetectionResult:
    """Timing classification of one command invocation.

    Attributes:
        is_asynchronous: True if the command returned within the threshold.
        elapsed: Seconds the command took to return.
        result: The command's result.
    """

    is_asynchronous: bool
    elapsed: float
    result: DeviceResult


async def invoke_and_classify(command: Command, threshold_ms: int = DEFAULT_ASYNC_THRESHOLD_MS) -> AsyncDetectionResult:
    """Invoke command and classify it by how long it took to return.

    Args:
        command: Device call to time.
        threshold_ms: Returns at or below this are asynchronous.

    Returns:
        AsyncDetectionResult for this invocation.
    """
    stopwatch = Stopwatch()
    result = await command()
    elapsed = stopwatch.elapsed
    is_asynchronous = elapsed * 1000.0 <= threshold_ms
    logger.debug(
        "Command returned in %.0fms, treating as %s",
        elapsed * 1000.0,
        "asynchronous" if is_asynchronous else "synchronous",
    )
    return AsyncDetectionResult(is_asynchronous=is_asynchronous, elapsed=elapsed, result=result)


@dataclass(frozen=True)
class CompletionResult:
    """Outcome of running a command to completion.

    Attributes:
        detection: Timing classification of the command.
        busy_readable: False if the busy indicator was absent or failed, in
            which case the command was assumed synchronous.
        busy_after_sync: True if a synchronous command returned while the busy
            indicator was still set.
        poll: The wait, if one was needed.
    """

    detection: AsyncDetectionResult
    busy_readable: bool = True
    busy_after_sync: bool = False
    poll: PollResult | None = None

    @property
    def result(self) -> DeviceResult:
        """Return the command's result."""
        return self.detection.result

    @property
    def command_failed(self) -> bool:
        """Return True if the command itself failed."""
        return self.detection.result.failed

    @property
    def timed_out(self) -> bool:
        """Return True if the wait hit its timeout."""
        return self.poll is not None and self.poll.timed_out

    @property
    def cancelled(self) -> bool:
        """Return True if the wait was cancelled."""
        return self.poll is not None and self.poll.cancelled


async def run_to_completion(
    command: Command,
    busy: BusyProbe | None,
    *,
    cancellation: CancellationSignal,
    threshold_ms: int = DEFAULT_ASYNC_THRESHOLD_MS,
    poll_interval_ms: int = 500,
    timeout_seconds: float = 60.0,
    progress_probe: ProgressProbe | None = None,
    on_status: StatusCallback | None = None,
) -> CompletionResult:
    """Invoke command and wait for the operation it started to finish.

    Args:
        command: Device call that starts the operation.
        busy: Returns True while the operation is in progress. Raises
            DeviceCallError when the indicator cannot be read. None when the
            device has no busy indicator.
        cancellation: Signal the wait sleeps on.
        threshold_ms: Synchronous/asynchronous boundary.
        poll_interval_ms: Delay between busy reads.
        timeout_seconds: Maximum wait.
        progress_probe: Optional status provider for the wait.
        on_status: Optional status callback.

    Returns:
        CompletionResult. Busy-indicator failures after the first read
        propagate as DeviceCallError.
    """
    detection = await invoke_and_classify(command, threshold_ms)
    if detection.result.failed:
        return CompletionResult(detection=detection)

    if busy is None:
        return CompletionResult(detection=detection, busy_readable=False)

    try:
        still_busy = await busy()
    except DeviceCallError as exc:
        logger.debug("Busy indicator unreadable, assuming synchronous: %s", exc)
        return CompletionResult(detection=detection, busy_readable=False)

    if not still_busy:
        return CompletionResult(detection=detection)

    busy_after_sync = not detection.is_asynchronous
    if busy_after_sync:
        logger.debug("Synchronous command returned while still busy, waiting")

    spec = PollSpec(
        predicate=busy,
        poll_interval_ms=poll_interval_ms,
        timeout_seconds=timeout_seconds,
        progress_probe=progress_probe,
    )
    poll = await poll_until_false(spec, cancellation, on_status)
    return CompletionResult(detection=detection, busy_after_sync=busy_after_sync, poll=poll)
