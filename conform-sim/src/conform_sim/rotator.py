"""Simulated rotator."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from conform_core.types.device import ErrorKind
from conform_core.types.tolerance import normalize_deviation

from conform_sim.base import (
    SimulatedDevice,
    SimulatorConfig,
    SimulatorFault,
    not_implemented,
    to_bool,
    to_float,
)
from conform_sim.motion import LinearMotion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotatorConfig(SimulatorConfig):
    """Configuration for a simulated rotator.

    Args:
        can_reverse: Value of CanReverse.
        reverse_implemented: Whether Reverse works; follows can_reverse when
            None. Setting it to True with can_reverse False simulates a
            driver that violates the interface.
        step_size: StepSize in degrees, or None if not implemented.
        speed: Degrees per second (> 0).
        mechanical_position: Initial mechanical angle.
        sync_offset: Initial sky-minus-mechanical offset.
    """

    name: str = "Rotator Simulator"
    can_reverse: bool = True
    reverse_implemented: bool | None = None
    step_size: float | None = 0.1
    speed: float = 360.0
    mechanical_position: float = 0.0
    sync_offset: float = 0.0

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.speed <= 0:
            raise ValueError("speed must be > 0")
        if self.step_size is not None and self.step_size <= 0:
            raise ValueError("step_size must be > 0")


class SimulatedRotator(SimulatedDevice):
    """In-process rotator.

    Position is the mechanical angle plus the sync offset, reduced to
    [0, 360). Moves follow the shortest path for absolute targets and the
    literal angle for relative ones.

    Args:
        config: Rotator configuration.
    """

    device_type = "rotator"
    description = "Simulated camera rotator"

    def __init__(self, config: RotatorConfig | None = None) -> None:
        config = config or RotatorConfig()
        super().__init__(config)
        self._rotator_config = config
        self._motion = LinearMotion(config.mechanical_position, config.speed)
        self._offset = config.sync_offset % 360.0
        self._target_position = self._sky(config.mechanical_position)
        self._reverse = False

        self._getters.update(
            {
                "CanReverse": lambda: config.can_reverse,
                "IsMoving": lambda: self._motion.is_moving,
                "Position": lambda: self._sky(self._motion.position),
                "TargetPosition": lambda: self._target_position,
                "StepSize": self._get_step_size,
                "Reverse": self._get_reverse,
                "MechanicalPosition": self._get_mechanical_position,
            }
        )
        self._setters.update({"Reverse": self._set_reverse})
        self._methods.update(
            {
                "Halt": self._halt,
                "Move": self._move,
                "MoveAbsolute": self._move_absolute,
                "MoveMechanical": self._move_mechanical,
                "Sync": self._sync,
            }
        )

    @property
    def mechanical_position(self) -> float:
        """Return the current mechanical angle in [0, 360)."""
        return self._motion.position % 360.0

    @property
    def sync_offset(self) -> float:
        """Return the current sky-minus-mechanical offset."""
        return self._offset

    def _sky(self, mechanical: float) -> float:
        return (mechanical + self._offset) % 360.0

    def _reverse_works(self) -> bool:
        implemented = self._rotator_config.reverse_implemented
        return self._rotator_config.can_reverse if implemented is None else implemented

    def _require_v3(self, member: str) -> None:
        if self.interface_version < 3:
            raise not_implemented(member)

    def _get_step_size(self) -> float:
        if self._rotator_config.step_size is None:
            raise not_implemented("StepSize")
        return self._rotator_config.step_size

    def _get_reverse(self) -> bool:
        if not self._reverse_works():
            raise not_implemented("Reverse")
        return self._reverse

    def _set_reverse(self, value: object) -> None:
        if not self._reverse_works():
            raise not_implemented("Reverse")
        self._reverse = to_bool(value)

    def _get_mechanical_position(self) -> float:
        self._require_v3("MechanicalPosition")
        return self.mechanical_position

    async def _halt(self) -> None:
        self._motion.halt()

    async def _start(self, mechanical_target: float) -> None:
        duration = self._motion.start(mechanical_target)
        logger.debug("Rotator moving to mechanical %.3f in %.3fs", mechanical_target, duration)
        if not self._config.asynchronous and duration > 0:
            await asyncio.sleep(duration)

    async def _move(self, Position: object) -> None:  # pylint: disable=invalid-name
        delta = to_float(Position)
        self._target_position = (self._target_position + delta) % 360.0
        await self._start(self._motion.position + delta)

    async def _move_absolute(self, Position: object) -> None:  # pylint: disable=invalid-name
        target = self._check_angle(Position)
        self._target_position = target
        mechanical_target = (target - self._offset) % 360.0
        current = self._motion.position
        await self._start(current + normalize_deviation(mechanical_target - current % 360.0))

    async def _move_mechanical(self, Position: object) -> None:  # pylint: disable=invalid-name
        self._require_v3("MoveMechanical")
        target = self._check_angle(Position)
        self._target_position = self._sky(target)
        current = self._motion.position
        await self._start(current + normalize_deviation(target - current % 360.0))

    async def _sync(self, Position: object) -> None:  # pylint: disable=invalid-name
        self._require_v3("Sync")
        target = self._check_angle(Position)
        if self._motion.is_moving:
            raise SimulatorFault(ErrorKind.INVALID_OPERATION, "Cannot sync while moving")
        self._offset = (target - self.mechanical_position) % 360.0
        self._target_position = target

    @staticmethod
    def _check_angle(value: object) -> float:
        angle = to_float(value)
        if not 0.0 <= angle < 360.0:
            raise SimulatorFault(ErrorKind.INVALID_VALUE, f"Angle {angle} is outside the range 0 to 359.999")
        return angle
