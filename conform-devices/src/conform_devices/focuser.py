"""Focuser conformance tester."""

from __future__ import annotations

import logging
from typing import Any

from conform_core.types.common import DeviceType
from conform_core.types.device import ErrorKind, MemberAction
from conform_core.types.policy import RequirementPolicy
from conform_core.types.tolerance import ToleranceSpec, compare
from conform_core.types.verdict import Verdict

from conform_testcase.context import RunContext
from conform_testcase.detection import BusyProbe, Command, CompletionResult
from conform_testcase.polling import ProgressProbe
from conform_testcase.tester import DeviceTester, MemberCheck, expect_false

logger = logging.getLogger(__name__)

# Steps a completed move may miss its target by
FOCUSER_MOVE_TOLERANCE = 2.0
# Distance beyond 0 or MaxStep used to test clamping
OUT_OF_RANGE_INCREMENT = 10
TEMPERATURE_LIMITS = (-50.0, 50.0)


def _position_policy(context: RunContext) -> RequirementPolicy:
    if context.get_value("absolute", True):
        return RequirementPolicy.MUST_BE_IMPLEMENTED
    return RequirementPolicy.MUST_NOT_BE_IMPLEMENTED


def _temp_comp_policy(context: RunContext) -> RequirementPolicy:
    if context.get_value("temp_comp_available"):
        return RequirementPolicy.MUST_BE_IMPLEMENTED
    return RequirementPolicy.MUST_NOT_BE_IMPLEMENTED


def _max_step_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return Verdict.ISSUE, f"MaxStep must be a positive integer, actual value: {value!r}"
    return Verdict.OK, f"{value}"


def _max_increment_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    max_step = context.get_value("max_step")
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return Verdict.ISSUE, f"MaxIncrement must be at least 1, actual value: {value!r}"
    if isinstance(max_step, int) and value > max_step:
        return Verdict.ISSUE, f"MaxIncrement is greater than MaxStep and shouldn't be: {value}"
    return Verdict.OK, f"{value}"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _position_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if not _is_number(value):
        return Verdict.ISSUE, f"Expected a number, got {value!r}"
    max_step = context.get_value("max_step")
    if value < 0:
        return Verdict.ISSUE, f"Position is < 0, actual value: {value}"
    if isinstance(max_step, int) and value > max_step:
        return Verdict.ISSUE, f"Position is > MaxStep, actual value: {value}"
    return Verdict.OK, f"{value}"


def _step_size_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if not _is_number(value):
        return Verdict.ISSUE, f"Expected a number, got {value!r}"
    if value <= 0:
        return Verdict.ISSUE, f"StepSize must be > 0.0, actual value: {value}"
    return Verdict.OK, f"{value}"


def _temp_comp_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if value and not context.get_value("temp_comp_available"):
        return Verdict.ISSUE, "TempComp is True when TempCompAvailable is False - this should not be so"
    return Verdict.OK, f"{value}"


def _temperature_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if not _is_number(value):
        return Verdict.ISSUE, f"Expected a number, got {value!r}"
    low, high = TEMPERATURE_LIMITS
    if value <= low:
        return Verdict.INFO, f"Temperature < {low}, possibly an issue, actual value: {value}"
    if value >= high:
        return Verdict.INFO, f"Temperature > {high}, possibly an issue, actual value: {value}"
    return Verdict.OK, f"{value}"


PROPERTY_CHECKS: tuple[MemberCheck, ...] = (
    MemberCheck("Absolute", store="absolute"),
    MemberCheck(
        "IsMoving",
        flag="can_read_is_moving",
        validate=expect_false("IsMoving is True at start of tests and it should be false"),
    ),
    MemberCheck("MaxStep", store="max_step", validate=_max_step_validator),
    MemberCheck("MaxIncrement", store="max_increment", validate=_max_increment_validator),
    MemberCheck(
        "Position",
        policy=_position_policy,
        flag="can_read_position",
        validate=_position_validator,
        capability="Absolute",
    ),
    MemberCheck("StepSize", policy=RequirementPolicy.OPTIONAL, validate=_step_size_validator),
    MemberCheck("TempCompAvailable", store="temp_comp_available"),
    MemberCheck("TempComp Read", member="TempComp", store="temp_comp", validate=_temp_comp_validator),
)


class FocuserTester(DeviceTester):
    """Conformance tester for focusers.

    Absolute focusers are moved by a tenth of MaxStep and back, then to and
    beyond both ends of travel. Relative focusers are moved out and back by
    a tenth of MaxIncrement.
    """

    device_type = DeviceType.FOCUSER
    name = "Focuser"
    performance_members = (
        ("Position", ("can_read_position",)),
        ("IsMoving", ("can_read_is_moving",)),
        ("Temperature", ("can_read_temperature",)),
    )
    ok_tolerance = FOCUSER_MOVE_TOLERANCE
    info_tolerance = FOCUSER_MOVE_TOLERANCE

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._initial_position: int | None = None

    @property
    def absolute(self) -> bool:
        """Return True unless the device reported itself as relative."""
        return bool(self.context.get_value("absolute", True))

    async def pre_run_check(self) -> None:
        """Remember the initial position of an absolute focuser."""

        async def _remember() -> None:
            position = await self.device.get("Position")
            if position.ok:
                self._initial_position = int(position.value)

        await self.guarded("Pre-run Check", _remember)

    async def post_run_check(self) -> None:
        """Return an absolute focuser to where it started."""
        if self._initial_position is None or not self.absolute:
            return
        name = "Post-run Check"
        self.begin_check(name)
        await self.guarded(name, lambda: self._move_to(name, self._initial_position, judge=False))

    async def check_properties(self) -> None:
        """Check the focuser properties."""
        for check in PROPERTY_CHECKS:
            await self.check_member(check)
        await self._check_temp_comp_write()
        await self.check_member(
            MemberCheck(
                "Temperature",
                policy=RequirementPolicy.OPTIONAL,
                flag="can_read_temperature",
                validate=_temperature_validator,
            )
        )

    async def _check_temp_comp_write(self) -> None:
        name = "TempComp Write"
        original = self.context.get_value("temp_comp", False)
        result = await self.check_member(
            MemberCheck(
                name,
                member="TempComp",
                action=MemberAction.PUT,
                value=True,
                policy=_temp_comp_policy,
                capability="TempCompAvailable",
            )
        )
        if result is None or result.failed or not self.context.get_value("temp_comp_available"):
            return
        off = await self.device.put("TempComp", False)
        if off.failed:
            self.record_outcome(name, RequirementPolicy.MUST_BE_IMPLEMENTED, off, member="TempComp")
            return
        self.context.set_flag("can_write_temp_comp")
        self.record(name, Verdict.OK, "Successfully turned temperature compensation on and off")
        restored = await self.device.put("TempComp", bool(original))
        if restored.failed:
            logger.debug("Unable to restore TempComp: %s", restored.message)

    async def check_methods(self) -> None:
        """Check Halt and Move."""
        await self.check_member(MemberCheck("Halt", action=MemberAction.CALL, policy=RequirementPolicy.OPTIONAL))

        writable = self.context.flag("can_write_temp_comp")
        if writable:
            await self.device.put("TempComp", False)
        name = "Move - TempComp False"
        self.begin_check(name)
        await self.guarded(name, lambda: self._move_and_return(name, judge=True))

        if writable:
            await self._check_move_with_temp_comp()
            await self.device.put("TempComp", False)

        if self.absolute:
            await self._check_limits()

    async def _check_move_with_temp_comp(self) -> None:
        if (await self.device.put("TempComp", True)).failed:
            return
        if self.context.interface_version >= 3:
            name = "Move - TempComp True V3"
            self.begin_check(name)
            await self.guarded(name, lambda: self._move_and_return(name, judge=False))
            return

        name = "Move - TempComp True"
        self.begin_check(name)
        await self.guarded(name, lambda: self._move_rejected_with_temp_comp(name))

    async def _move_rejected_with_temp_comp(self, name: str) -> None:
        completion = await self.run_operation(name, self._move_command(self._test_target()), self._busy_probe())
        result = completion.result
        if result.ok:
            self.record(
                name,
                Verdict.ISSUE,
                "TempComp is True but no exception is thrown by the Move method",
            )
        elif result.error == ErrorKind.INVALID_OPERATION:
            self.record(name, Verdict.OK, "InvalidOperation error correctly raised as expected")
        else:
            self.record(
                name,
                Verdict.ISSUE,
                f"TempComp is True but incorrect {result.error.value if result.error else 'unknown'} "
                f"error was returned by the Move method: {result.message}",
            )

    async def _check_limits(self) -> None:
        max_step = self.context.get_value("max_step")
        if not isinstance(max_step, int) or isinstance(max_step, bool) or max_step < 1:
            return
        midpoint = max_step // 2
        moves = (
            ("Move - To 0", 0, 0),
            ("Move - Below 0", -OUT_OF_RANGE_INCREMENT, 0),
            ("Move - To MidPoint", midpoint, midpoint),
            ("Move - To MaxStep", max_step, max_step),
            ("Move - Above MaxStep", max_step + OUT_OF_RANGE_INCREMENT, max_step),
        )
        for name, target, expected in moves:
            self.begin_check(name)
            await self.guarded(name, lambda n=name, t=target, e=expected: self._move_to(n, t, expected=e))

    # -------------------------------------------------------------------------
    # Move helpers
    # -------------------------------------------------------------------------

    def _busy_probe(self) -> BusyProbe | None:
        if self.context.flag("can_read_is_moving"):
            return self.busy_reader("IsMoving")
        return None

    def _progress_probe(self, target: int) -> ProgressProbe | None:
        if not (self.absolute and self.context.flag("can_read_position")):
            return None

        async def _progress() -> str:
            position = int(await self.read("Position"))
            return f"Position {position}, {abs(target - position)} steps from target {target}"

        return _progress

    def _move_command(self, target: int) -> Command:
        return lambda: self.device.call("Move", Position=target)

    def _test_target(self, start: int = 0) -> int:
        max_step = int(self.context.get_value("max_step", 1))
        max_increment = int(self.context.get_value("max_increment", max_step))
        if not self.absolute:
            return max(1, min(max_increment // 10, max_increment))
        target = start + max_step // 10
        if target >= max_step:
            target = start - max_step // 10
        if abs(target - start) > max_increment:
            target = start + max_increment if start + max_increment <= max_step else start - max_increment
        return target

    async def _run_move(self, name: str, target: int) -> CompletionResult | None:
        completion = await self.run_operation(
            name,
            self._move_command(target),
            self._busy_probe(),
            progress_probe=self._progress_probe(target),
        )
        if completion.command_failed:
            self.record_outcome(name, RequirementPolicy.MANDATORY, completion.result, member="Move")
            return None
        if completion.timed_out:
            return None
        return completion

    async def _move_to(self, name: str, target: int, *, expected: int | None = None, judge: bool = True) -> bool:
        """Move an absolute focuser to target and compare the final position.

        Args:
            name: Check name.
            target: Commanded position.
            expected: Position the focuser should end at; defaults to target.
            judge: Compare the final position against expected.

        Returns:
            True if the move completed.
        """
        if await self._run_move(name, target) is None:
            return False
        if not judge:
            return True
        expected = target if expected is None else expected
        actual = int(await self.read("Position"))
        ok_band, info_band = self.tolerance_bands()
        spec = ToleranceSpec(expected=expected, actual=actual, ok_band_width=ok_band, info_band_width=info_band)
        verdict = compare(spec)
        if verdict == Verdict.OK:
            self.record(name, verdict, f"Reported position: {actual}")
        else:
            self.record(
                name,
                verdict,
                f"Move ended at {actual}, which is {spec.deviation:g} steps away from the expected position "
                f"{expected}. The configured move tolerance is {ok_band:g}.",
            )
        return True

    async def _move_and_return(self, name: str, judge: bool) -> None:
        if not self.absolute:
            step = self._test_target()
            if await self._run_move(name, step) is None:
                return
            self.record(name, Verdict.OK, "Relative move OK")
            await self._run_move(name, -step)
            return

        start = int(await self.read("Position"))
        target = self._test_target(start)
        if not await self._move_to(name, target, judge=judge):
            return
        if not judge:
            self.record(name, Verdict.OK, "Absolute move OK")
        self.context.set_action(f"Returning to original position: {start}")
        await self._run_move(name, start)
