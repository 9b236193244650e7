"""Unit tests for the run context and cancellation signal."""

from __future__ import annotations

import asyncio

import pytest

from conform_core.errors import RunCancelledError
from conform_core.types.verdict import Verdict, VerdictRecord

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.context import RunContext


class ListSink:
    """Sink keeping emitted records."""

    def __init__(self) -> None:
        self.records: list[VerdictRecord] = []

    def emit(self, record: VerdictRecord) -> None:
        self.records.append(record)


class TestRunContext:
    """Tests for RunContext."""

    def test_flags_default_false(self) -> None:
        context = RunContext(run_id="run-1")

        assert not context.flag("can_read_position")
        context.set_flag("can_read_position")
        assert context.flag("can_read_position")

    def test_missing_flags(self) -> None:
        context = RunContext(run_id="run-1")
        context.set_flag("a")

        assert context.missing_flags(("a", "b", "c")) == ["b", "c"]

    def test_interface_version_defaults_to_one(self) -> None:
        context = RunContext(run_id="run-1")

        assert context.interface_version == 1
        context.set_value("interface_version", 3)
        assert context.interface_version == 3

    def test_invalid_interface_version_treated_as_one(self) -> None:
        context = RunContext(run_id="run-1")
        context.set_value("interface_version", "three")

        assert context.interface_version == 1

    def test_record_forwards_to_sink(self) -> None:
        sink = ListSink()
        context = RunContext(run_id="run-1", sink=sink)

        context.record("Position", Verdict.OK, "45.0")
        context.record("Position", Verdict.ISSUE, "out of range")

        assert [r.verdict for r in sink.records] == [Verdict.OK, Verdict.ISSUE]
        assert context.issue_count == 1
        assert context.error_count == 0
        assert [r.check_name for r in context.records] == ["Position", "Position"]

    def test_set_test_clears_progress(self) -> None:
        context = RunContext(run_id="run-1")
        context.set_test("Move 45")
        context.set_action("Waiting")
        context.set_status("1.0 / 60.0 seconds")

        context.set_test("Move 135")

        assert context.current_test == "Move 135"
        assert context.current_action == ""
        assert context.current_status == ""

    def test_start_stop_record_times(self) -> None:
        context = RunContext(run_id="run-1")
        assert context.start_time is None

        context.start()
        context.stop()

        assert context.start_time is not None
        assert context.end_time.unix_ns >= context.start_time.unix_ns


class TestCancellationSignal:
    """Tests for CancellationSignal."""

    def test_cancel_sets_reason(self) -> None:
        signal = CancellationSignal()
        signal.cancel("user request")

        assert signal.is_cancelled
        assert signal.reason == "user request"

    def test_raise_if_cancelled(self) -> None:
        signal = CancellationSignal()
        signal.raise_if_cancelled()

        signal.cancel("stop")
        with pytest.raises(RunCancelledError, match="stop"):
            signal.raise_if_cancelled()

    @pytest.mark.asyncio
    async def test_sleep_full_duration(self) -> None:
        assert await CancellationSignal().sleep(0.01) is False

    @pytest.mark.asyncio
    async def test_sleep_wakes_on_cancel(self) -> None:
        signal = CancellationSignal()
        loop = asyncio.get_running_loop()
        loop.call_later(0.02, signal.cancel)

        assert await asyncio.wait_for(signal.sleep(10.0), timeout=1.0) is True

    @pytest.mark.asyncio
    async def test_sleep_when_already_cancelled(self) -> None:
        signal = CancellationSignal()
        signal.cancel()

        assert await signal.sleep(10.0) is True
