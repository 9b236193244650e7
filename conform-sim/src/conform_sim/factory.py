"""Simulator construction by device type."""

from __future__ import annotations

from typing import Any

from conform_core.types.common import DeviceType

from conform_sim.base import SimulatedDevice
from conform_sim.cover_calibrator import CoverCalibratorConfig, SimulatedCoverCalibrator
from conform_sim.focuser import FocuserConfig, SimulatedFocuser
from conform_sim.rotator import RotatorConfig, SimulatedRotator


def create_simulator(device_type: DeviceType, **overrides: Any) -> SimulatedDevice:
    """Create a simulator for a device type.

    Args:
        device_type: Category to simulate.
        **overrides: Fields of the category's config dataclass.

    Returns:
        A new simulator.

    Raises:
        ValueError: If an override is not a field of the config or fails
            validation.
    """
    try:
        if device_type == DeviceType.ROTATOR:
            return SimulatedRotator(RotatorConfig(**overrides))
        if device_type == DeviceType.FOCUSER:
            return SimulatedFocuser(FocuserConfig(**overrides))
        if device_type == DeviceType.COVER_CALIBRATOR:
            return SimulatedCoverCalibrator(CoverCalibratorConfig(**overrides))
    except TypeError as exc:
        raise ValueError(f"Invalid {device_type.value} simulator option: {exc}") from exc
    raise ValueError(f"No simulator for device type {device_type.value}")
