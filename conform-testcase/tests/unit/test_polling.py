"""Unit tests for the bounded poller and completion detection."""

from __future__ import annotations

import asyncio

import pytest

from conform_core.errors import ConfigurationError, DeviceCallError
from conform_core.types.device import DeviceResult, ErrorKind

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.detection import invoke_and_classify, run_to_completion
from conform_testcase.polling import PollOutcome, PollSpec, poll_until_false


def busy_for(polls: int):
    """Return a predicate that is True for the first polls evaluations."""
    calls = {"n": 0}

    async def _predicate() -> bool:
        calls["n"] += 1
        return calls["n"] <= polls

    return _predicate


class TestPollSpec:
    """Tests for PollSpec validation."""

    def test_rejects_zero_interval(self) -> None:
        with pytest.raises(ConfigurationError):
            PollSpec(predicate=busy_for(0), poll_interval_ms=0)

    def test_rejects_negative_timeout(self) -> None:
        with pytest.raises(ConfigurationError):
            PollSpec(predicate=busy_for(0), timeout_seconds=-1.0)


class TestPollUntilFalse:
    """Tests for poll_until_false."""

    @pytest.mark.asyncio
    async def test_returns_immediately_when_not_busy(self) -> None:
        result = await poll_until_false(PollSpec(busy_for(0), poll_interval_ms=10), CancellationSignal())

        assert result.completed
        assert result.polls == 1

    @pytest.mark.asyncio
    async def test_polls_until_predicate_false(self) -> None:
        result = await poll_until_false(PollSpec(busy_for(3), poll_interval_ms=10), CancellationSignal())

        assert result.stopped_because == PollOutcome.PREDICATE
        assert result.polls == 4

    @pytest.mark.asyncio
    async def test_times_out(self) -> None:
        async def always_busy() -> bool:
            return True

        spec = PollSpec(always_busy, poll_interval_ms=20, timeout_seconds=0.1)
        result = await poll_until_false(spec, CancellationSignal())

        assert result.timed_out
        assert 0.1 <= result.elapsed < 0.5

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_timeout_waits_full_duration(self) -> None:
        async def always_busy() -> bool:
            return True

        spec = PollSpec(always_busy, poll_interval_ms=500, timeout_seconds=2.0)
        result = await poll_until_false(spec, CancellationSignal())

        assert result.timed_out
        assert 2.0 <= result.elapsed < 2.5
        assert result.polls >= 4

    @pytest.mark.asyncio
    async def test_zero_timeout_times_out_after_one_poll(self) -> None:
        async def always_busy() -> bool:
            return True

        result = await poll_until_false(PollSpec(always_busy, timeout_seconds=0.0), CancellationSignal())

        assert result.timed_out
        assert result.polls == 1

    @pytest.mark.asyncio
    async def test_cancellation_wakes_sleep(self) -> None:
        cancellation = CancellationSignal()

        async def always_busy() -> bool:
            return True

        spec = PollSpec(always_busy, poll_interval_ms=5000, timeout_seconds=60.0)
        task = asyncio.create_task(poll_until_false(spec, cancellation))
        await asyncio.sleep(0.05)
        cancellation.cancel("test")
        result = await asyncio.wait_for(task, timeout=1.0)

        assert result.cancelled
        assert result.elapsed < 1.0

    @pytest.mark.asyncio
    async def test_reports_status(self) -> None:
        statuses: list[str] = []

        async def progress() -> str:
            return "moving"

        spec = PollSpec(busy_for(2), poll_interval_ms=10, progress_probe=progress)
        await poll_until_false(spec, CancellationSignal(), statuses.append)

        assert statuses == ["moving", "moving"]

    @pytest.mark.asyncio
    async def test_predicate_error_propagates(self) -> None:
        async def broken() -> bool:
            raise DeviceCallError("IsMoving", DeviceResult.failure(ErrorKind.OTHER, "gone"))

        with pytest.raises(DeviceCallError):
            await poll_until_false(PollSpec(broken, poll_interval_ms=10), CancellationSignal())


class TestDetection:
    """Tests for synchronous/asynchronous detection."""

    @pytest.mark.asyncio
    async def test_fast_command_is_asynchronous(self) -> None:
        async def command() -> DeviceResult:
            await asyncio.sleep(0.05)
            return DeviceResult.success()

        detection = await invoke_and_classify(command, threshold_ms=1000)

        assert detection.is_asynchronous

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_slow_command_is_synchronous(self) -> None:
        async def command() -> DeviceResult:
            await asyncio.sleep(1.5)
            return DeviceResult.success()

        detection = await invoke_and_classify(command, threshold_ms=1000)

        assert not detection.is_asynchronous
        assert detection.elapsed >= 1.5

    @pytest.mark.asyncio
    async def test_slow_command_with_low_threshold(self) -> None:
        async def command() -> DeviceResult:
            await asyncio.sleep(0.05)
            return DeviceResult.success()

        detection = await invoke_and_classify(command, threshold_ms=10)

        assert not detection.is_asynchronous


class TestRunToCompletion:
    """Tests for run_to_completion."""

    @pytest.mark.asyncio
    async def test_failed_command_skips_wait(self) -> None:
        async def command() -> DeviceResult:
            return DeviceResult.failure(ErrorKind.INVALID_VALUE, "bad angle")

        completion = await run_to_completion(command, busy_for(5), cancellation=CancellationSignal())

        assert completion.command_failed
        assert completion.poll is None

    @pytest.mark.asyncio
    async def test_waits_for_asynchronous_operation(self) -> None:
        async def command() -> DeviceResult:
            return DeviceResult.success()

        completion = await run_to_completion(
            command, busy_for(3), cancellation=CancellationSignal(), poll_interval_ms=10
        )

        assert completion.poll is not None
        assert completion.poll.completed
        assert not completion.busy_after_sync

    @pytest.mark.asyncio
    async def test_synchronous_command_still_busy(self) -> None:
        async def command() -> DeviceResult:
            await asyncio.sleep(0.05)
            return DeviceResult.success()

        completion = await run_to_completion(
            command, busy_for(2), cancellation=CancellationSignal(), threshold_ms=10, poll_interval_ms=10
        )

        assert completion.busy_after_sync
        assert completion.poll is not None and completion.poll.completed

    @pytest.mark.asyncio
    async def test_missing_busy_indicator(self) -> None:
        async def command() -> DeviceResult:
            return DeviceResult.success()

        completion = await run_to_completion(command, None, cancellation=CancellationSignal())

        assert not completion.busy_readable
        assert completion.poll is None

    @pytest.mark.asyncio
    async def test_unreadable_busy_indicator(self) -> None:
        async def command() -> DeviceResult:
            return DeviceResult.success()

        async def broken() -> bool:
            raise DeviceCallError("IsMoving", DeviceResult.failure(ErrorKind.NOT_IMPLEMENTED))

        completion = await run_to_completion(command, broken, cancellation=CancellationSignal())

        assert not completion.busy_readable
        assert not completion.command_failed

    @pytest.mark.asyncio
    async def test_timeout_reported(self) -> None:
        async def command() -> DeviceResult:
            return DeviceResult.success()

        async def always_busy() -> bool:
            return True

        completion = await run_to_completion(
            command,
            always_busy,
            cancellation=CancellationSignal(),
            poll_interval_ms=10,
            timeout_seconds=0.05,
        )

        assert completion.timed_out
