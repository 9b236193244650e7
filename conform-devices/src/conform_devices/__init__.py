"""Device category testers.

Each tester subclasses ``conform_testcase.DeviceTester`` and declares the
property, method and performance checks for one device category.
"""

from __future__ import annotations

from typing import Any

from conform_core.interfaces.device import DeviceHandle
from conform_core.types.common import DeviceType

from conform_devices.cover_calibrator import CoverCalibratorTester
from conform_devices.focuser import FocuserTester
from conform_devices.rotator import RotatorTester

from conform_testcase.tester import DeviceTester, TesterSettings

TESTERS: dict[DeviceType, type[DeviceTester]] = {
    DeviceType.ROTATOR: RotatorTester,
    DeviceType.FOCUSER: FocuserTester,
    DeviceType.COVER_CALIBRATOR: CoverCalibratorTester,
}


def create_tester(
    device_type: DeviceType,
    device: DeviceHandle,
    settings: TesterSettings | None = None,
    **kwargs: Any,
) -> DeviceTester:
    """Create the tester for a device category.

    Args:
        device_type: Category of the device under test.
        device: Handle to the device.
        settings: Tester settings.
        **kwargs: Passed to the tester (run_id, sink, cancellation).

    Returns:
        The category's tester.

    Raises:
        ValueError: If no tester exists for the category.
    """
    try:
        tester_class = TESTERS[device_type]
    except KeyError:
        raise ValueError(f"No tester for device type {device_type.value}") from None
    return tester_class(device, settings, **kwargs)


__all__ = [
    "TESTERS",
    "CoverCalibratorTester",
    "FocuserTester",
    "RotatorTester",
    "create_tester",
]
