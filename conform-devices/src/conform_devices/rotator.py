"""Rotator conformance tester.

Positions are angles in degrees and compared on the circle, so a rotator
that reports 359.95 after a move to 0 is 0.05 degrees away, not 359.95.

Interface version 3 made the motion members mandatory and added
MechanicalPosition, MoveMechanical and Sync. Older drivers are tested with
the version 1/2 policies and the version 3 members are not exercised.
"""

from __future__ import annotations

import logging
from typing import Any

from conform_core.types.common import DeviceType
from conform_core.types.device import MemberAction
from conform_core.types.policy import RequirementPolicy
from conform_core.types.tolerance import (
    FULL_CIRCLE,
    ToleranceSpec,
    angular_distance,
    compare,
    normalize_deviation,
)
from conform_core.types.verdict import Verdict

from conform_testcase.context import RunContext
from conform_testcase.detection import BusyProbe
from conform_testcase.polling import PollSpec, poll_until_false
from conform_testcase.tester import DeviceTester, MemberCheck, range_validator, version_policy

logger = logging.getLogger(__name__)

ROTATOR_OK_TOLERANCE = 1.0
ROTATOR_INFO_TOLERANCE = 2.0
# Largest Position error accepted straight after a Sync
ROTATOR_POSITION_TOLERANCE = 0.001

ABSOLUTE_ANGLES = (45.0, 135.0, 225.0, 315.0)
OUT_OF_RANGE_ANGLES = (-405.0, 405.0)
RELATIVE_STEPS = (10.0, 40.0, 130.0)
LARGE_RELATIVE_MOVES = (-375.0, 375.0)
# (sync angle, mechanical angle)
SYNC_PAIRS = ((90.0, 90.0), (120.0, 90.0), (60.0, 90.0), (0.0, 0.0), (30.0, 0.0), (330.0, 0.0))

SKIP_V3_MESSAGE = "Skipping tests because either the MechanicalPosition or Position property cannot be read."

_MOTION_POLICY = version_policy(3)
_angle_validator = range_validator(0.0, FULL_CIRCLE, high_inclusive=False)


def _reverse_policy(context: RunContext) -> RequirementPolicy:
    if context.interface_version >= 3:
        return RequirementPolicy.MANDATORY
    if context.get_value("can_reverse"):
        return RequirementPolicy.MUST_BE_IMPLEMENTED
    return RequirementPolicy.MUST_NOT_BE_IMPLEMENTED


def _step_size_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return Verdict.ISSUE, f"Expected a number, got {value!r}"
    if 0.0 < value < FULL_CIRCLE:
        return Verdict.OK, f"{value}"
    return Verdict.ISSUE, f"Invalid value: {value}, expected (0.0, 360.0)"


class RotatorTester(DeviceTester):
    """Conformance tester for camera rotators."""

    device_type = DeviceType.ROTATOR
    name = "Rotator"
    can_checks = (MemberCheck("CanReverse", store="can_reverse"),)
    performance_members = (
        ("Position", ("can_read_position",)),
        ("TargetPosition", ("can_read_target_position",)),
        ("StepSize", ("can_read_step_size",)),
        ("IsMoving", ("can_read_is_moving",)),
    )
    ok_tolerance = ROTATOR_OK_TOLERANCE
    info_tolerance = ROTATOR_INFO_TOLERANCE

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._initial_position: float | None = None
        self._initial_mechanical: float | None = None

    # -------------------------------------------------------------------------
    # Pre/post run
    # -------------------------------------------------------------------------

    async def pre_run_check(self) -> None:
        """Stop any movement and remember where the rotator started."""
        name = "Pre-run Check"
        self.begin_check(name)
        await self.guarded(name, self._record_initial_state)

    async def _record_initial_state(self) -> None:
        name = "Pre-run Check"
        stopped = await self.device.call("Halt")
        if stopped.failed:
            logger.debug("Pre-run Halt failed: %s", stopped.message)

        moving = await self.device.get("IsMoving")
        if moving.ok and moving.value:
            self.context.set_action("Waiting for rotator to stop moving")
            poll = await poll_until_false(
                PollSpec(
                    predicate=self.busy_reader("IsMoving"),
                    poll_interval_ms=self.settings.poll_interval_ms,
                    timeout_seconds=self.settings.operation_timeout_seconds,
                ),
                self.context.cancellation,
                self.context.set_status,
            )
            if poll.cancelled:
                self.context.cancellation.raise_if_cancelled()
            if poll.timed_out:
                self.record(name, Verdict.ISSUE, "Rotator did not stop moving before testing started")
                return
        self.record(name, Verdict.OK, "Rotator is stationary")

        position = await self.device.get("Position")
        if position.failed:
            self.record(name, Verdict.INFO, "Unable to read the initial position, it will not be restored")
            return
        self._initial_position = float(position.value)
        self.record(name, Verdict.OK, f"Rotator initial position: {self._initial_position}")

        mechanical = await self.device.get("MechanicalPosition")
        if mechanical.ok:
            self._initial_mechanical = float(mechanical.value)
            offset = normalize_deviation(self._initial_position - self._initial_mechanical)
            self.record(
                name,
                Verdict.OK,
                f"Rotator initial mechanical position: {self._initial_mechanical}, initial sync offset: {offset:.3f}",
            )

    async def post_run_check(self) -> None:
        """Restore the initial sync offset and position."""
        name = "Post-run Check"
        self.begin_check(name)
        if self._initial_position is None:
            self.record(name, Verdict.INFO, "The initial position is unknown so it cannot be restored")
            return
        await self.guarded(name, self._restore_initial_state)

    async def _restore_initial_state(self) -> None:
        name = "Post-run Check"
        if self.context.interface_version >= 3 and self._initial_mechanical is not None:
            offset = self._initial_position - self._initial_mechanical
            mechanical = float(await self.read("MechanicalPosition"))
            sync_position = (mechanical + offset) % FULL_CIRCLE
            (await self.device.call("Sync", Position=sync_position)).unwrap("Sync")
            self.record(name, Verdict.OK, f"Restored sync offset {normalize_deviation(offset):.3f}")

        completion = await self.run_operation(
            name,
            lambda: self.device.call("MoveAbsolute", Position=self._initial_position),
            self._busy_probe(),
        )
        completion.result.unwrap("MoveAbsolute")
        self.record(name, Verdict.OK, f"Rotator returned to its initial position: {self._initial_position}")

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    async def check_properties(self) -> None:
        """Check the rotator properties."""
        await self.check_member(
            MemberCheck("IsMoving", policy=_MOTION_POLICY, flag="can_read_is_moving", validate=self._at_rest)
        )
        if self.halted:
            return

        await self.check_member(
            MemberCheck("Position", policy=_MOTION_POLICY, flag="can_read_position", validate=_angle_validator)
        )
        await self.check_member(
            MemberCheck(
                "TargetPosition",
                policy=_MOTION_POLICY,
                flag="can_read_target_position",
                validate=_angle_validator,
            )
        )
        await self.check_member(
            MemberCheck(
                "StepSize",
                policy=RequirementPolicy.OPTIONAL,
                flag="can_read_step_size",
                store="step_size",
                validate=_step_size_validator,
            )
        )
        await self._check_reverse()
        await self._check_mechanical_position()

    def _at_rest(self, value: Any, context: RunContext) -> tuple[Verdict, str]:
        if value:
            self.halt_run("rotator was moving before any movement was commanded")
            return Verdict.ISSUE, "IsMoving is True before any movement has been commanded!"
        return Verdict.OK, f"{value}"

    async def _check_reverse(self) -> None:
        result = await self.check_member(
            MemberCheck("Reverse Read", member="Reverse", policy=_reverse_policy, capability="CanReverse")
        )
        current = bool(result.value) if result is not None and result.ok else False

        written = await self.check_member(
            MemberCheck(
                "Reverse Write",
                member="Reverse",
                action=MemberAction.PUT,
                value=not current,
                policy=_reverse_policy,
                capability="CanReverse",
            )
        )
        if written is not None and written.ok:
            restored = await self.device.put("Reverse", current)
            if restored.failed:
                self.record("Reverse Write", Verdict.ISSUE, f"Unable to restore Reverse to {current}: {restored.message}")

    async def _check_mechanical_position(self) -> None:
        result = await self.check_member(
            MemberCheck(
                "MechanicalPosition",
                min_interface_version=3,
                flag="can_read_mechanical_position",
                validate=_angle_validator,
            )
        )
        if result is None or result.failed or not self.context.flag("can_read_position"):
            return
        async def _offset() -> None:
            position = await self.device.get("Position")
            if position.ok:
                offset = normalize_deviation(float(position.value) - float(result.value))
                self.record("MechanicalPosition", Verdict.INFO, f"Rotator sync offset: {offset:.3f}")

        await self.guarded("MechanicalPosition", _offset)

    # -------------------------------------------------------------------------
    # Methods
    # -------------------------------------------------------------------------

    async def check_methods(self) -> None:
        """Check Halt, the moves and Sync."""
        await self.check_member(MemberCheck("Halt", action=MemberAction.CALL, policy=RequirementPolicy.OPTIONAL))

        for angle in ABSOLUTE_ANGLES:
            await self._move_test("MoveAbsolute", angle)
        for angle in OUT_OF_RANGE_ANGLES:
            await self._move_test("MoveAbsolute", angle, expecting_invalid_value=True)

        for step in RELATIVE_STEPS:
            await self._relative_move_test(step)
        for angle in LARGE_RELATIVE_MOVES:
            await self._move_test("Move", angle, expecting_invalid_value=True)

        if self.context.interface_version < 3:
            return
        if not (self.context.flag("can_read_mechanical_position") and self.context.flag("can_read_position")):
            self.record("MoveMechanical", Verdict.INFO, SKIP_V3_MESSAGE)
            self.record("Sync", Verdict.INFO, SKIP_V3_MESSAGE)
            return

        for angle in ABSOLUTE_ANGLES:
            await self._move_test("MoveMechanical", angle)
        for angle in OUT_OF_RANGE_ANGLES:
            await self._move_test("MoveMechanical", angle, expecting_invalid_value=True)
        for sync_angle, mechanical_angle in SYNC_PAIRS:
            await self._sync_test(sync_angle, mechanical_angle)

    def _busy_probe(self) -> BusyProbe | None:
        if self.context.flag("can_read_is_moving"):
            return self.busy_reader("IsMoving")
        return None

    def _policy_for(self, member: str) -> RequirementPolicy:
        if member == "MoveMechanical":
            return RequirementPolicy.MANDATORY
        return _MOTION_POLICY(self.context)

    async def _relative_target(self, step: float) -> float:
        """Move backwards when a forward step would pass 360 degrees."""
        if self.context.flag("can_read_position"):
            position = await self.device.get("Position")
            if position.ok and float(position.value) >= step:
                return -step
        return step

    async def _relative_move_test(self, step: float) -> None:
        target = await self.guarded(f"Move {step:g}", lambda: self._relative_target(step))
        if target is None:
            target = step
        await self._move_test("Move", target)
        await self._move_test("Move", -target)

    async def _move_test(
        self,
        member: str,
        angle: float,
        *,
        expecting_invalid_value: bool = False,
        name: str | None = None,
    ) -> None:
        """Move, wait for the move to finish and judge the final position.

        Args:
            member: Move, MoveAbsolute or MoveMechanical.
            angle: Relative offset for Move, target angle otherwise.
            expecting_invalid_value: The angle is out of range, so an
                INVALID_VALUE failure is correct.
            name: Check name prefix; defaults to member.
        """
        check_name = f"{name or member} {angle:g}"
        self.begin_check(check_name)
        policy = self._policy_for(member)

        async def _body() -> None:
            mechanical = member == "MoveMechanical"
            position_member = "MechanicalPosition" if mechanical else "Position"
            readable = self.context.flag("can_read_mechanical_position" if mechanical else "can_read_position")

            start = float(await self.read(position_member)) if readable else 0.0
            travel = abs(angle) if member == "Move" else angular_distance(angle, start)

            async def _progress() -> str:
                moved = angular_distance(float(await self.read(position_member)), start)
                return f"{moved:.1f} / {travel:.1f} degrees from start"

            completion = await self.run_operation(
                check_name,
                lambda: self.device.call(member, Position=angle),
                self._busy_probe(),
                progress_probe=_progress if readable else None,
            )
            if completion.command_failed:
                self.record_outcome(
                    check_name,
                    policy,
                    completion.result,
                    expecting_invalid_value=expecting_invalid_value,
                    member=member,
                )
                return
            if completion.timed_out:
                return

            kind = "Asynchronous" if completion.poll is not None else "Synchronous"
            if not readable:
                self.record(check_name, Verdict.OK, f"{kind} move completed")
                return
            actual = float(await self.read(position_member))
            expected = start + angle if member == "Move" else angle
            self._judge_position(check_name, actual, expected)

        await self.guarded(check_name, _body, policy)

    def _judge_position(self, name: str, actual: float, expected: float) -> None:
        if self.context.interface_version < 3:
            if actual < 0.0:
                self.record(name, Verdict.INFO, "Rotator supports angles < 0.0")
            if actual > FULL_CIRCLE:
                self.record(name, Verdict.INFO, "Rotator supports angles > 360.0")
        elif not 0.0 <= actual < FULL_CIRCLE:
            self.record(
                name,
                Verdict.ISSUE,
                f"Rotator position {actual:.3f} is outside the valid range: 0.0 to 359.99999...",
            )

        step_size = self.context.get_value("step_size") if self.context.flag("can_read_step_size") else None
        ok_band, info_band = self.tolerance_bands(1.1 * step_size if step_size else None)
        spec = ToleranceSpec(
            expected=expected,
            actual=actual,
            ok_band_width=ok_band,
            info_band_width=info_band,
            wraps=True,
            period=FULL_CIRCLE,
        )
        verdict = compare(spec)
        if verdict == Verdict.OK:
            message = f"Rotator is within {ok_band:.3f} degrees of the expected position: {actual}"
        elif verdict == Verdict.INFO:
            message = f"Rotator is {spec.deviation:.3f} degrees from expected position: {actual}"
        else:
            message = (
                f"Rotator is {spec.deviation:.3f} degrees from expected position {actual}, "
                f"which is more than the conformance value of {info_band:.1f} degrees"
            )
        self.record(name, verdict, message)

    async def _sync_test(self, sync_angle: float, mechanical_angle: float) -> None:
        await self._move_test("MoveMechanical", mechanical_angle, name="Sync")
        self.begin_check("Sync")

        async def _body() -> None:
            (await self.device.call("Sync", Position=sync_angle)).unwrap("Sync")
            self.record("Sync", Verdict.OK, "Synced OK")
            difference = angular_distance(float(await self.read("Position")), sync_angle)
            if difference < ROTATOR_POSITION_TOLERANCE:
                self.record("Sync", Verdict.OK, f"Rotator Position has synced to {sync_angle} OK.")
            else:
                self.record(
                    "Sync",
                    Verdict.ISSUE,
                    f"Rotator Position is {difference:.4f} degrees from the requested position {sync_angle}. "
                    f"Alert tolerance is {ROTATOR_POSITION_TOLERANCE} degrees.",
                )

        await self.guarded("Sync", _body)
