"""Simulated focuser."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from conform_core.types.device import ErrorKind

from conform_sim.base import (
    SimulatedDevice,
    SimulatorConfig,
    SimulatorFault,
    not_implemented,
    to_bool,
    to_int,
)
from conform_sim.motion import LinearMotion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FocuserConfig(SimulatorConfig):
    """Configuration for a simulated focuser.

    Args:
        absolute: True for an absolute focuser, False for a relative one.
        max_step: Highest reachable position (>= 1).
        max_increment: Largest single move (1 <= max_increment <= max_step).
        position: Initial position.
        step_size: Microns per step, or None if not implemented.
        speed: Steps per second (> 0).
        temp_comp_available: Whether temperature compensation exists.
        temperature: Reported temperature, or None if not implemented.
    """

    name: str = "Focuser Simulator"
    interface_version: int = 3
    absolute: bool = True
    max_step: int = 50000
    max_increment: int = 50000
    position: int = 25000
    step_size: float | None = 2.5
    speed: float = 100000.0
    temp_comp_available: bool = True
    temperature: float | None = 12.5

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.max_step < 1:
            raise ValueError("max_step must be >= 1")
        if not 1 <= self.max_increment <= self.max_step:
            raise ValueError("max_increment must be between 1 and max_step")
        if not 0 <= self.position <= self.max_step:
            raise ValueError("position must be between 0 and max_step")
        if self.speed <= 0:
            raise ValueError("speed must be > 0")


class SimulatedFocuser(SimulatedDevice):
    """In-process focuser.

    Absolute moves clamp to [0, MaxStep]. Relative moves larger than
    MaxIncrement are rejected with INVALID_VALUE. Before interface version 3
    a move with TempComp enabled fails with INVALID_OPERATION.

    Args:
        config: Focuser configuration.
    """

    device_type = "focuser"
    description = "Simulated focuser"

    def __init__(self, config: FocuserConfig | None = None) -> None:
        config = config or FocuserConfig()
        super().__init__(config)
        self._focuser_config = config
        self._motion = LinearMotion(float(config.position), config.speed)
        self._temp_comp = False

        self._getters.update(
            {
                "Absolute": lambda: config.absolute,
                "IsMoving": lambda: self._motion.is_moving,
                "MaxIncrement": lambda: config.max_increment,
                "MaxStep": lambda: config.max_step,
                "Position": self._get_position,
                "StepSize": self._get_step_size,
                "TempComp": lambda: self._temp_comp,
                "TempCompAvailable": lambda: config.temp_comp_available,
                "Temperature": self._get_temperature,
            }
        )
        self._setters.update({"TempComp": self._set_temp_comp})
        self._methods.update({"Halt": self._halt, "Move": self._move})

    @property
    def position(self) -> int:
        """Return the current position in steps."""
        return int(round(self._motion.position))

    def _get_position(self) -> int:
        if not self._focuser_config.absolute:
            raise not_implemented("Position")
        return self.position

    def _get_step_size(self) -> float:
        if self._focuser_config.step_size is None:
            raise not_implemented("StepSize")
        return self._focuser_config.step_size

    def _get_temperature(self) -> float:
        if self._focuser_config.temperature is None:
            raise not_implemented("Temperature")
        return self._focuser_config.temperature

    def _set_temp_comp(self, value: object) -> None:
        if not self._focuser_config.temp_comp_available:
            raise not_implemented("TempComp")
        self._temp_comp = to_bool(value)

    async def _halt(self) -> None:
        self._motion.halt()

    async def _move(self, Position: object) -> None:  # pylint: disable=invalid-name
        value = to_int(Position)
        config = self._focuser_config
        if self._temp_comp and self.interface_version < 3:
            raise SimulatorFault(ErrorKind.INVALID_OPERATION, "Cannot move while temperature compensation is active")
        if config.absolute:
            target = min(max(value, 0), config.max_step)
        else:
            if abs(value) > config.max_increment:
                raise SimulatorFault(
                    ErrorKind.INVALID_VALUE, f"Move of {value} exceeds MaxIncrement {config.max_increment}"
                )
            target = self._motion.position + value
        duration = self._motion.start(float(target))
        logger.debug("Focuser moving to %s in %.3fs", target, duration)
        if not config.asynchronous and duration > 0:
            await asyncio.sleep(duration)
