"""Protocol-based interfaces for the conformance harness."""

from conform_core.interfaces.device import DeviceHandle
from conform_core.interfaces.reporter import VerdictSink

__all__ = [
    "DeviceHandle",
    "VerdictSink",
]
