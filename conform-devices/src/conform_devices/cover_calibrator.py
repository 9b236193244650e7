"""Cover calibrator conformance tester.

A cover calibrator may have a cover, a calibrator light or both. CoverState
and CalibratorState report NotPresent for a missing part, and every member
belonging to a missing part must return a not-implemented error.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any

from conform_core.types.common import DeviceType
from conform_core.types.device import MemberAction
from conform_core.types.policy import RequirementPolicy
from conform_core.types.states import CalibratorStatus, CoverStatus
from conform_core.types.verdict import Verdict

from conform_testcase.context import RunContext
from conform_testcase.detection import BusyProbe
from conform_testcase.tester import DeviceTester, MemberCheck, Validator, expect_false

logger = logging.getLogger(__name__)


def _state_validator(enum: type[IntEnum], flag: str) -> Validator:
    def _validate(value: Any, context: RunContext) -> tuple[Verdict, str]:
        try:
            state = enum(value)
        except ValueError:
            return Verdict.ISSUE, f"Unknown state value: {value!r}"
        context.set_flag(flag, state != enum.NOT_PRESENT)
        return Verdict.OK, state.name

    return _validate


def _calibrator_policy(context: RunContext) -> RequirementPolicy:
    if context.flag("has_calibrator"):
        return RequirementPolicy.MUST_BE_IMPLEMENTED
    return RequirementPolicy.MUST_NOT_BE_IMPLEMENTED


def _max_brightness_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        context.set_flag("max_brightness_ok", False)
        return Verdict.ISSUE, f"MaxBrightness must be at least 1, actual value: {value!r}"
    return Verdict.OK, f"{value}"


def _brightness_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    max_brightness = context.get_value("max_brightness", 0)
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= max_brightness:
        return Verdict.ISSUE, f"Brightness must be between 0 and {max_brightness}, actual value: {value!r}"
    return Verdict.OK, f"{value}"


class CoverCalibratorTester(DeviceTester):
    """Conformance tester for cover calibrators."""

    device_type = DeviceType.COVER_CALIBRATOR
    name = "CoverCalibrator"
    performance_members = (
        ("CoverState", ("can_read_cover_state",)),
        ("CalibratorState", ("can_read_calibrator_state",)),
        ("Brightness", ("max_brightness_ok",)),
    )

    async def check_properties(self) -> None:
        """Check the state, busy and brightness properties."""
        await self.check_member(
            MemberCheck(
                "CoverState",
                flag="can_read_cover_state",
                validate=_state_validator(CoverStatus, "has_cover"),
            )
        )
        await self.check_member(
            MemberCheck(
                "CalibratorState",
                flag="can_read_calibrator_state",
                validate=_state_validator(CalibratorStatus, "has_calibrator"),
            )
        )
        await self.check_member(
            MemberCheck(
                "CoverMoving",
                min_interface_version=2,
                flag="can_read_cover_moving",
                validate=expect_false("CoverMoving is True at start of tests and it should be false"),
            )
        )
        await self.check_member(
            MemberCheck(
                "CalibratorChanging",
                min_interface_version=2,
                flag="can_read_calibrator_changing",
                validate=expect_false("CalibratorChanging is True at start of tests and it should be false"),
            )
        )
        await self.check_member(
            MemberCheck(
                "MaxBrightness",
                policy=_calibrator_policy,
                flag="max_brightness_ok",
                store="max_brightness",
                validate=_max_brightness_validator,
                capability="CalibratorPresent",
            )
        )
        await self.check_member(
            MemberCheck(
                "Brightness",
                policy=_calibrator_policy,
                requires=("max_brightness_ok",) if self.context.flag("has_calibrator") else (),
                validate=_brightness_validator,
                capability="CalibratorPresent",
            )
        )

    async def check_methods(self) -> None:
        """Check the cover and calibrator methods."""
        if self.context.flag("has_cover"):
            await self._cover_move_test("OpenCover", CoverStatus.OPEN)
            await self._cover_move_test("CloseCover", CoverStatus.CLOSED)
            await self._halt_cover_test()
        else:
            for member in ("OpenCover", "CloseCover", "HaltCover"):
                await self._must_not_call(member)

        if self.context.flag("has_calibrator"):
            await self._calibrator_tests()
        else:
            await self._must_not_call("CalibratorOn", Brightness=1)
            await self._must_not_call("CalibratorOff")

    async def _must_not_call(self, member: str, **params: Any) -> None:
        await self.check_member(
            MemberCheck(
                member,
                action=MemberAction.CALL,
                policy=RequirementPolicy.MUST_NOT_BE_IMPLEMENTED,
                params=params,
                capability="CoverPresent" if "Cover" in member else "CalibratorPresent",
            )
        )

    # -------------------------------------------------------------------------
    # Cover
    # -------------------------------------------------------------------------

    def _cover_busy(self) -> BusyProbe:
        if self.context.flag("can_read_cover_moving"):
            return self.busy_reader("CoverMoving")

        async def _moving() -> bool:
            return int(await self.read("CoverState")) == CoverStatus.MOVING

        return _moving

    async def _cover_move_test(self, member: str, expected: CoverStatus) -> None:
        self.begin_check(member)

        async def _body() -> None:
            completion = await self.run_operation(
                member,
                lambda: self.device.call(member),
                self._cover_busy(),
                busy_name="CoverMoving",
            )
            if completion.command_failed:
                self.record_outcome(member, RequirementPolicy.MANDATORY, completion.result, member=member)
                return
            if completion.timed_out:
                return
            state = CoverStatus(int(await self.read("CoverState")))
            if state == expected:
                self.record(member, Verdict.OK, f"{member} was successful")
            else:
                self.record(member, Verdict.ISSUE, f"CoverState is {state.name} after {member}, expected {expected.name}")

        await self.guarded(member, _body)

    async def _halt_cover_test(self) -> None:
        name = "HaltCover"
        self.begin_check(name)

        async def _body() -> None:
            (await self.device.call("OpenCover")).unwrap("OpenCover")
            result = await self.device.call("HaltCover")
            if result.failed:
                self.record_outcome(name, RequirementPolicy.OPTIONAL, result, member=name)
            else:
                state = CoverStatus(int(await self.read("CoverState")))
                if state == CoverStatus.MOVING:
                    self.record(name, Verdict.ISSUE, "CoverState is still Moving after HaltCover")
                else:
                    self.record(name, Verdict.OK, f"Cover halted, CoverState is {state.name}")
            await self.run_operation(
                name,
                lambda: self.device.call("CloseCover"),
                self._cover_busy(),
                busy_name="CoverMoving",
            )

        await self.guarded(name, _body)

    # -------------------------------------------------------------------------
    # Calibrator
    # -------------------------------------------------------------------------

    def _calibrator_busy(self) -> BusyProbe:
        if self.context.flag("can_read_calibrator_changing"):
            return self.busy_reader("CalibratorChanging")

        async def _changing() -> bool:
            return int(await self.read("CalibratorState")) == CalibratorStatus.NOT_READY

        return _changing

    async def _calibrator_tests(self) -> None:
        if not self.context.flag("max_brightness_ok"):
            self.skip("CalibratorOn", ["max_brightness_ok"])
        else:
            max_brightness = int(self.context.get_value("max_brightness"))
            for brightness in (0, max_brightness // 2, max_brightness):
                await self._calibrator_on_test(brightness)
            for brightness in (-1, max_brightness + 1):
                await self._calibrator_on_invalid_test(brightness)
        await self._calibrator_off_test()

    async def _calibrator_on_test(self, brightness: int) -> None:
        name = f"CalibratorOn {brightness}"
        self.begin_check(name)

        async def _body() -> None:
            completion = await self.run_operation(
                name,
                lambda: self.device.call("CalibratorOn", Brightness=brightness),
                self._calibrator_busy(),
                busy_name="CalibratorChanging",
            )
            if completion.command_failed:
                self.record_outcome(name, RequirementPolicy.MANDATORY, completion.result, member="CalibratorOn")
                return
            if completion.timed_out:
                return
            state = CalibratorStatus(int(await self.read("CalibratorState")))
            if state != CalibratorStatus.READY:
                self.record(name, Verdict.ISSUE, f"CalibratorState is {state.name} after CalibratorOn, expected READY")
                return
            actual = await self.read("Brightness")
            if actual != brightness:
                self.record(name, Verdict.ISSUE, f"Brightness is {actual} after CalibratorOn({brightness})")
                return
            self.record(name, Verdict.OK, f"Calibrator ready at brightness {brightness}")

        await self.guarded(name, _body)

    async def _calibrator_on_invalid_test(self, brightness: int) -> None:
        name = f"CalibratorOn {brightness}"
        self.begin_check(name)

        async def _body() -> None:
            result = await self.device.call("CalibratorOn", Brightness=brightness)
            if result.ok:
                self.record(
                    name,
                    Verdict.ISSUE,
                    f"CalibratorOn({brightness}) succeeded but should have returned an InvalidValue error",
                )
                return
            self.record_outcome(
                name,
                RequirementPolicy.MANDATORY,
                result,
                expecting_invalid_value=True,
                member="CalibratorOn",
            )

        await self.guarded(name, _body)

    async def _calibrator_off_test(self) -> None:
        name = "CalibratorOff"
        self.begin_check(name)

        async def _body() -> None:
            completion = await self.run_operation(
                name,
                lambda: self.device.call("CalibratorOff"),
                self._calibrator_busy(),
                busy_name="CalibratorChanging",
            )
            if completion.command_failed:
                self.record_outcome(name, RequirementPolicy.MANDATORY, completion.result, member=name)
                return
            if completion.timed_out:
                return
            state = CalibratorStatus(int(await self.read("CalibratorState")))
            if state != CalibratorStatus.OFF:
                self.record(name, Verdict.ISSUE, f"CalibratorState is {state.name} after CalibratorOff, expected OFF")
                return
            if self.context.flag("max_brightness_ok"):
                brightness = await self.read("Brightness")
                if brightness != 0:
                    self.record(name, Verdict.ISSUE, f"Brightness is {brightness} after CalibratorOff, expected 0")
                    return
            self.record(name, Verdict.OK, "Calibrator is off")

        await self.guarded(name, _body)
