"""Unit tests for the DeviceTester base class."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from conform_core.errors import ConfigurationError
from conform_core.types.common import DeviceType
from conform_core.types.device import DeviceResult, ErrorKind, MemberAction
from conform_core.types.policy import RequirementPolicy
from conform_core.types.verdict import Verdict

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.phase import PhaseStatus, SequencerState
from conform_testcase.tester import (
    DeviceTester,
    MemberCheck,
    TesterSettings,
    TesterStatus,
    expect_false,
    range_validator,
    version_policy,
)

COMMON_VALUES = {
    "InterfaceVersion": 3,
    "Description": "Fake device",
    "DriverInfo": "Fake driver",
    "DriverVersion": "1.0",
    "Name": "Fake",
    "SupportedActions": [],
}


class FakeDevice:
    """Dictionary-backed device handle."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self.values: dict[str, Any] = {"Connected": False, **COMMON_VALUES, **(values or {})}
        self.failures: dict[str, DeviceResult] = {}
        self.calls: list[str] = []

    async def get(self, member: str) -> DeviceResult:
        if member in self.failures:
            return self.failures[member]
        if member not in self.values:
            return DeviceResult.failure(ErrorKind.NOT_IMPLEMENTED, f"{member} not implemented")
        return DeviceResult.success(self.values[member])

    async def put(self, member: str, value: Any) -> DeviceResult:
        if member in self.failures:
            return self.failures[member]
        self.values[member] = value
        return DeviceResult.success()

    async def call(self, member: str, **params: Any) -> DeviceResult:
        self.calls.append(member)
        if member in self.failures:
            return self.failures[member]
        return DeviceResult.success()


class SimpleTester(DeviceTester):
    """Tester running a configurable list of property checks."""

    device_type = DeviceType.FOCUSER
    name = "Simple"
    ok_tolerance = 2.0
    info_tolerance = 5.0

    def __init__(self, *args: Any, checks: tuple[MemberCheck, ...] = (), **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.checks = checks
        self.post_run_called = False

    async def check_properties(self) -> None:
        for check in self.checks:
            await self.check_member(check)

    async def check_methods(self) -> None:
        await self.check_member(MemberCheck("Halt", action=MemberAction.CALL, policy=RequirementPolicy.OPTIONAL))

    async def post_run_check(self) -> None:
        self.post_run_called = True


def verdicts(result, name: str) -> list[Verdict]:
    return [r.verdict for r in result.records if r.check_name == name]


def records_for(context, name: str) -> list:
    return [r for r in context.records if r.check_name == name]


class TestTesterSettings:
    """Tests for TesterSettings validation."""

    def test_defaults(self) -> None:
        settings = TesterSettings()

        assert settings.async_threshold_ms == 1000
        assert not settings.test_performance

    @pytest.mark.parametrize(
        "field,value",
        [
            ("poll_interval_ms", 0),
            ("async_threshold_ms", -1),
            ("operation_timeout_seconds", 0),
            ("performance_window_seconds", -1.0),
        ],
    )
    def test_rejects_invalid_durations(self, field: str, value: float) -> None:
        with pytest.raises(ConfigurationError):
            TesterSettings(**{field: value})


class TestValidators:
    """Tests for the reusable validators."""

    def test_range_validator(self) -> None:
        validate = range_validator(0.0, 360.0, high_inclusive=False)
        context = SimpleTester(FakeDevice()).context

        assert validate(0.0, context)[0] == Verdict.OK
        assert validate(360.0, context)[0] == Verdict.ISSUE
        assert validate("north", context)[0] == Verdict.ISSUE

    def test_expect_false(self) -> None:
        validate = expect_false("still moving")
        context = SimpleTester(FakeDevice()).context

        assert validate(False, context) == (Verdict.OK, "False")
        assert validate(True, context) == (Verdict.ISSUE, "still moving")

    def test_version_policy(self) -> None:
        select = version_policy(3)
        context = SimpleTester(FakeDevice()).context

        assert select(context) == RequirementPolicy.OPTIONAL
        context.set_value("interface_version", 3)
        assert select(context) == RequirementPolicy.MANDATORY


class TestCheckMember:
    """Tests for the declarative member check."""

    @pytest.mark.asyncio
    async def test_missing_prerequisite_skips_with_info(self) -> None:
        tester = SimpleTester(FakeDevice({"Position": 1}))

        result = await tester.check_member(MemberCheck("Position", requires=("can_read_position",)))

        assert result is None
        records = records_for(tester.context, "Position")
        assert records[0].verdict == Verdict.INFO
        assert "can_read_position" in records[0].message

    @pytest.mark.asyncio
    async def test_newer_member_not_run_on_old_interface(self) -> None:
        tester = SimpleTester(FakeDevice({"MechanicalPosition": 1.0}))

        result = await tester.check_member(MemberCheck("MechanicalPosition", min_interface_version=3))

        assert result is None
        assert tester.context.records == []

    @pytest.mark.asyncio
    async def test_success_sets_flag_and_stores_value(self) -> None:
        tester = SimpleTester(FakeDevice({"MaxStep": 1000}))

        await tester.check_member(MemberCheck("MaxStep", flag="has_max_step", store="max_step"))

        assert tester.context.flag("has_max_step")
        assert tester.context.get_value("max_step") == 1000
        assert records_for(tester.context, "MaxStep")[0].verdict == Verdict.OK

    @pytest.mark.asyncio
    async def test_failure_does_not_set_flag(self) -> None:
        tester = SimpleTester(FakeDevice())

        await tester.check_member(MemberCheck("Position", flag="can_read_position"))

        assert not tester.context.flag("can_read_position")
        assert records_for(tester.context, "Position")[0].verdict == Verdict.ISSUE

    @pytest.mark.asyncio
    async def test_optional_not_implemented_is_ok(self) -> None:
        tester = SimpleTester(FakeDevice())

        await tester.check_member(MemberCheck("StepSize", policy=RequirementPolicy.OPTIONAL))

        assert records_for(tester.context, "StepSize")[0].verdict == Verdict.OK

    @pytest.mark.asyncio
    async def test_must_not_success_names_capability(self) -> None:
        tester = SimpleTester(FakeDevice({"Reverse": False}))

        await tester.check_member(
            MemberCheck(
                "Reverse",
                policy=RequirementPolicy.MUST_NOT_BE_IMPLEMENTED,
                capability="CanReverse",
                validate=lambda value, context: (Verdict.OK, "unused"),
            )
        )

        record = records_for(tester.context, "Reverse")[0]
        assert record.verdict == Verdict.ISSUE
        assert record.message == "CanReverse is false but no exception generated"

    @pytest.mark.asyncio
    async def test_expected_invalid_value(self) -> None:
        device = FakeDevice()
        device.failures["MoveAbsolute"] = DeviceResult.failure(ErrorKind.INVALID_VALUE, "out of range")
        tester = SimpleTester(device)

        await tester.check_member(
            MemberCheck(
                "MoveAbsolute",
                action=MemberAction.CALL,
                params={"Position": 405.0},
                expecting_invalid_value=True,
            )
        )

        assert records_for(tester.context, "MoveAbsolute")[0].verdict == Verdict.OK

    @pytest.mark.asyncio
    async def test_policy_selected_when_check_runs(self) -> None:
        tester = SimpleTester(FakeDevice())
        check = MemberCheck("Position", policy=version_policy(3))

        await tester.check_member(check)
        tester.context.set_value("interface_version", 3)
        await tester.check_member(check)

        assert verdicts(tester.context, "Position") == [Verdict.OK, Verdict.ISSUE]


class TestRun:
    """Tests for the complete sequence."""

    @pytest.mark.asyncio
    async def test_passing_run(self) -> None:
        device = FakeDevice({"Absolute": True})
        tester = SimpleTester(device, checks=(MemberCheck("Absolute"),))

        result = await tester.run()

        assert result.status == TesterStatus.PASSED
        assert result.passed
        assert result.final_state == SequencerState.DONE
        assert tester.post_run_called
        assert device.values["Connected"] is False
        assert [p.status for p in result.phase_results] == [
            PhaseStatus.COMPLETED,
            PhaseStatus.COMPLETED,
            PhaseStatus.COMPLETED,
            PhaseStatus.SKIPPED,
        ]

    @pytest.mark.asyncio
    async def test_issue_fails_run(self) -> None:
        tester = SimpleTester(FakeDevice(), checks=(MemberCheck("Position"),))

        result = await tester.run()

        assert result.status == TesterStatus.FAILED
        assert "1 issue(s)" in result.message

    @pytest.mark.asyncio
    async def test_state_history_is_forward_only(self) -> None:
        tester = SimpleTester(FakeDevice())

        await tester.run()

        assert tester.state_history == tuple(SequencerState)

    @pytest.mark.asyncio
    async def test_connect_failure_halts_run(self) -> None:
        device = FakeDevice()
        device.failures["Connected"] = DeviceResult.failure(ErrorKind.OTHER, "refused")
        tester = SimpleTester(device, checks=(MemberCheck("Absolute"),))

        result = await tester.run()

        assert result.status == TesterStatus.FAILED
        assert verdicts(result, "Connected") == [Verdict.ISSUE]
        assert [p.status for p in result.phase_results[1:]] == [PhaseStatus.SKIPPED] * 3
        assert not tester.post_run_called

    @pytest.mark.asyncio
    async def test_phase_exception_records_error(self) -> None:
        class BrokenTester(SimpleTester):
            async def check_methods(self) -> None:
                raise RuntimeError("boom")

        tester = BrokenTester(FakeDevice())

        result = await tester.run()

        assert result.status == TesterStatus.FAILED
        assert result.counts()[Verdict.ERROR] == 1
        methods = [p for p in result.phase_results if p.state == SequencerState.RUNNING_METHODS][0]
        assert methods.status == PhaseStatus.FAILED

    @pytest.mark.asyncio
    async def test_cancelled_run_is_aborted(self) -> None:
        cancellation = CancellationSignal()
        cancellation.cancel("operator stop")
        tester = SimpleTester(FakeDevice(), cancellation=cancellation)

        result = await tester.run()

        assert result.status == TesterStatus.ABORTED
        assert result.final_state == SequencerState.DONE
        assert "operator stop" in result.message
        assert not tester.post_run_called

    @pytest.mark.asyncio
    async def test_disabled_phases_are_skipped(self) -> None:
        settings = TesterSettings(test_properties=False, test_methods=False)
        device = FakeDevice()
        tester = SimpleTester(device, settings, checks=(MemberCheck("Position"),))

        result = await tester.run()

        assert result.status == TesterStatus.PASSED
        assert "Halt" not in device.calls

    @pytest.mark.asyncio
    async def test_sink_receives_every_record(self) -> None:
        received = []

        class Sink:
            def emit(self, record) -> None:
                received.append(record)

        tester = SimpleTester(FakeDevice(), sink=Sink())

        result = await tester.run()

        assert tuple(received) == result.records

    @pytest.mark.asyncio
    async def test_to_dict(self) -> None:
        result = await SimpleTester(FakeDevice(), run_id="run-42").run()

        data = result.to_dict()

        assert data["run_id"] == "run-42"
        assert data["device_type"] == "focuser"
        assert data["final_state"] == "done"


class TestHelpers:
    """Tests for tester helpers."""

    def test_tolerance_bands_defaults(self) -> None:
        tester = SimpleTester(FakeDevice())

        assert tester.tolerance_bands() == (2.0, 5.0)
        assert tester.tolerance_bands(default_ok=0.5) == (0.5, 5.0)

    def test_tolerance_bands_override(self) -> None:
        settings = TesterSettings(ok_tolerance=10.0, info_tolerance=3.0)
        tester = SimpleTester(FakeDevice(), settings)

        assert tester.tolerance_bands(default_ok=0.5) == (10.0, 10.0)

    @pytest.mark.asyncio
    async def test_run_operation_flags_busy_after_synchronous_return(self) -> None:
        settings = TesterSettings(async_threshold_ms=0, poll_interval_ms=10)
        tester = SimpleTester(FakeDevice(), settings)
        remaining = {"n": 2}

        async def command() -> DeviceResult:
            await asyncio.sleep(0.01)
            return DeviceResult.success()

        async def busy() -> bool:
            remaining["n"] -= 1
            return remaining["n"] >= 0

        completion = await tester.run_operation("Move", command, busy)

        assert completion.busy_after_sync
        assert records_for(tester.context, "Move")[0].verdict == Verdict.ISSUE

    @pytest.mark.asyncio
    async def test_run_operation_timeout_is_issue(self) -> None:
        settings = TesterSettings(poll_interval_ms=10)
        tester = SimpleTester(FakeDevice(), settings)

        async def command() -> DeviceResult:
            return DeviceResult.success()

        async def busy() -> bool:
            return True

        completion = await tester.run_operation("Move", command, busy, timeout_seconds=0.05)

        assert completion.timed_out
        record = records_for(tester.context, "Move")[0]
        assert record.verdict == Verdict.ISSUE
        assert "did not complete" in record.message

    @pytest.mark.asyncio
    async def test_guarded_classifies_unwrapped_failure(self) -> None:
        tester = SimpleTester(FakeDevice())

        async def body() -> None:
            await tester.read("Position")

        await tester.guarded("Move 45", body)

        assert records_for(tester.context, "Move 45")[0].verdict == Verdict.ISSUE

    @pytest.mark.asyncio
    async def test_guarded_unconvertible_value_is_error(self) -> None:
        tester = SimpleTester(FakeDevice({"Position": "north"}))

        async def body() -> None:
            float(await tester.read("Position"))

        assert await tester.guarded("Move 45", body) is None

        record = records_for(tester.context, "Move 45")[0]
        assert record.verdict == Verdict.ERROR
        assert record.message.startswith("Unexpected value from device")

    @pytest.mark.asyncio
    async def test_guarded_returns_body_value(self) -> None:
        tester = SimpleTester(FakeDevice())

        async def body() -> float:
            return -10.0

        assert await tester.guarded("Move 10", body) == -10.0
        assert records_for(tester.context, "Move 10") == []

    @pytest.mark.asyncio
    async def test_raising_validator_is_error_for_that_check(self) -> None:
        def strict(value: Any, context: Any) -> tuple[Verdict, str]:
            return Verdict.OK, f"{int(value)}"

        device = FakeDevice({"Position": "north", "MaxStep": 100})
        tester = SimpleTester(
            device,
            checks=(MemberCheck("Position", validate=strict), MemberCheck("MaxStep")),
        )

        result = await tester.run()

        assert verdicts(result, "Position") == [Verdict.ERROR]
        assert verdicts(result, "MaxStep") == [Verdict.OK]

    @pytest.mark.asyncio
    async def test_run_operation_reports_progress(self) -> None:
        settings = TesterSettings(poll_interval_ms=10)
        tester = SimpleTester(FakeDevice(), settings)
        polls = {"busy": 0, "probe": 0}

        async def command() -> DeviceResult:
            return DeviceResult.success()

        async def busy() -> bool:
            polls["busy"] += 1
            return polls["busy"] <= 3

        async def progress() -> str:
            polls["probe"] += 1
            return f"{polls['probe'] * 10} / 100 steps"

        completion = await tester.run_operation("Move", command, busy, progress_probe=progress)

        assert completion.poll is not None and completion.poll.completed
        assert polls["probe"] == 2
        assert tester.context.current_status == "20 / 100 steps"

    @pytest.mark.asyncio
    async def test_measure_rate_skips_unsupported(self) -> None:
        tester = SimpleTester(FakeDevice())

        await tester.measure_rate("Position", ("can_read_position",))

        record = records_for(tester.context, "Position Performance")[0]
        assert record.verdict == Verdict.INFO

    @pytest.mark.asyncio
    async def test_measure_rate_probe_failure_is_info(self) -> None:
        tester = SimpleTester(FakeDevice(), TesterSettings(performance_window_seconds=0.1))

        await tester.measure_rate("Temperature")

        record = records_for(tester.context, "Temperature Performance")[0]
        assert record.verdict == Verdict.INFO
        assert record.message.startswith("Unable to complete test")
