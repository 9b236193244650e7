"""Simulated devices for the conformance harness.

In-process simulators implement the ``DeviceHandle`` protocol directly, so
sequencers can be exercised without hardware. The server module exposes any
simulator over the Alpaca REST convention with FastAPI.
"""

from conform_sim.base import SimulatedDevice, SimulatorConfig, SimulatorFault
from conform_sim.cover_calibrator import CoverCalibratorConfig, SimulatedCoverCalibrator
from conform_sim.factory import create_simulator
from conform_sim.focuser import FocuserConfig, SimulatedFocuser
from conform_sim.motion import LinearMotion
from conform_sim.rotator import RotatorConfig, SimulatedRotator

__all__ = [
    "CoverCalibratorConfig",
    "FocuserConfig",
    "LinearMotion",
    "RotatorConfig",
    "SimulatedCoverCalibrator",
    "SimulatedDevice",
    "SimulatedFocuser",
    "SimulatedRotator",
    "SimulatorConfig",
    "SimulatorFault",
    "create_simulator",
]
