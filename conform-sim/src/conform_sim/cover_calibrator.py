"""Simulated cover calibrator."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from conform_core.types.device import ErrorKind
from conform_core.types.states import CalibratorStatus, CoverStatus

from conform_sim.base import SimulatedDevice, SimulatorConfig, SimulatorFault, not_implemented, to_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CoverCalibratorConfig(SimulatorConfig):
    """Configuration for a simulated cover calibrator.

    Args:
        cover_present: Whether the device has a motorised cover.
        calibrator_present: Whether the device has a light source.
        max_brightness: Highest brightness (>= 1).
        cover_travel_seconds: Time to open or close the cover.
        warmup_seconds: Time for the light source to reach brightness.
    """

    name: str = "Cover Calibrator Simulator"
    interface_version: int = 2
    cover_present: bool = True
    calibrator_present: bool = True
    max_brightness: int = 100
    cover_travel_seconds: float = 0.2
    warmup_seconds: float = 0.1

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.max_brightness < 1:
            raise ValueError("max_brightness must be >= 1")
        if self.cover_travel_seconds < 0 or self.warmup_seconds < 0:
            raise ValueError("durations must be >= 0")


class SimulatedCoverCalibrator(SimulatedDevice):
    """In-process cover calibrator.

    Args:
        config: Cover calibrator configuration.
    """

    device_type = "covercalibrator"
    description = "Simulated flat panel with cover"

    def __init__(self, config: CoverCalibratorConfig | None = None) -> None:
        config = config or CoverCalibratorConfig()
        super().__init__(config)
        self._cc_config = config
        self._cover_target = CoverStatus.CLOSED if config.cover_present else CoverStatus.NOT_PRESENT
        self._cover_done_at = 0.0
        self._cover_halted = False
        self._calibrator_target = CalibratorStatus.OFF if config.calibrator_present else CalibratorStatus.NOT_PRESENT
        self._calibrator_ready_at = 0.0
        self._brightness = 0

        self._getters.update(
            {
                "CoverState": self._get_cover_state,
                "CalibratorState": self._get_calibrator_state,
                "CoverMoving": lambda: self._get_cover_state() == CoverStatus.MOVING,
                "CalibratorChanging": lambda: self._get_calibrator_state() == CalibratorStatus.NOT_READY,
                "Brightness": self._get_brightness,
                "MaxBrightness": self._get_max_brightness,
            }
        )
        self._methods.update(
            {
                "OpenCover": self._open_cover,
                "CloseCover": self._close_cover,
                "HaltCover": self._halt_cover,
                "CalibratorOn": self._calibrator_on,
                "CalibratorOff": self._calibrator_off,
            }
        )

    def _get_cover_state(self) -> int:
        if self._cover_target != CoverStatus.NOT_PRESENT and time.monotonic() < self._cover_done_at:
            return int(CoverStatus.MOVING)
        return int(self._cover_target)

    def _get_calibrator_state(self) -> int:
        if self._calibrator_target == CalibratorStatus.READY and time.monotonic() < self._calibrator_ready_at:
            return int(CalibratorStatus.NOT_READY)
        return int(self._calibrator_target)

    def _get_brightness(self) -> int:
        if not self._cc_config.calibrator_present:
            raise not_implemented("Brightness")
        return self._brightness

    def _get_max_brightness(self) -> int:
        if not self._cc_config.calibrator_present:
            raise not_implemented("MaxBrightness")
        return self._cc_config.max_brightness

    async def _move_cover(self, target: CoverStatus, member: str) -> None:
        if not self._cc_config.cover_present:
            raise not_implemented(member)
        travel = self._cc_config.cover_travel_seconds
        self._cover_target = target
        self._cover_done_at = time.monotonic() + travel
        logger.debug("Cover moving to %s in %.3fs", target.name, travel)
        if not self._config.asynchronous and travel > 0:
            await asyncio.sleep(travel)

    async def _open_cover(self) -> None:
        await self._move_cover(CoverStatus.OPEN, "OpenCover")

    async def _close_cover(self) -> None:
        await self._move_cover(CoverStatus.CLOSED, "CloseCover")

    async def _halt_cover(self) -> None:
        if not self._cc_config.cover_present:
            raise not_implemented("HaltCover")
        if time.monotonic() < self._cover_done_at:
            self._cover_target = CoverStatus.UNKNOWN
            self._cover_done_at = 0.0

    async def _calibrator_on(self, Brightness: object) -> None:  # pylint: disable=invalid-name
        if not self._cc_config.calibrator_present:
            raise not_implemented("CalibratorOn")
        brightness = to_int(Brightness)
        if not 0 <= brightness <= self._cc_config.max_brightness:
            raise SimulatorFault(
                ErrorKind.INVALID_VALUE,
                f"Brightness {brightness} is outside the range 0 to {self._cc_config.max_brightness}",
            )
        warmup = self._cc_config.warmup_seconds
        self._brightness = brightness
        self._calibrator_target = CalibratorStatus.READY
        self._calibrator_ready_at = time.monotonic() + warmup
        if not self._config.asynchronous and warmup > 0:
            await asyncio.sleep(warmup)

    async def _calibrator_off(self) -> None:
        if not self._cc_config.calibrator_present:
            raise not_implemented("CalibratorOff")
        self._brightness = 0
        self._calibrator_target = CalibratorStatus.OFF
        self._calibrator_ready_at = 0.0
