"""Exception types for conform-core.

This module defines the exception hierarchy used throughout the conformance
harness. All harness exceptions inherit from ConformError, allowing consumers
to catch every framework-specific error with a single except clause.

Device failures are not exceptions: every device call returns a tagged
DeviceResult. DeviceCallError only appears when a check explicitly unwraps a
failed result.

Exception hierarchy:
    ConformError (base)
    +-- DeviceCallError: A failed device result was unwrapped
    +-- SampleAbortedError: A rate-sampler probe failed mid-window
    +-- ToleranceError: Invalid tolerance band definition
    +-- ConfigurationError: Invalid settings or poll specification
    +-- RunCancelledError: The cancellation signal was observed
    +-- SequencerStateError: Backward sequencer state transition
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from conform_core.types.device import DeviceResult


class ConformError(Exception):
    """Base exception for all conformance harness errors.

    This is the root of the harness exception hierarchy. Catch this to handle
    any framework-specific error.
    """


class DeviceCallError(ConformError):
    """Raised when a failed device result is unwrapped.

    The original result is kept so the caller can classify it against the
    member's requirement policy.
    """

    def __init__(self, member: str, result: DeviceResult) -> None:
        self.member = member
        self.result = result
        kind = result.error.value if result.error is not None else "unknown"
        super().__init__(f"{member} failed ({kind}): {result.message}")


class SampleAbortedError(ConformError):
    """Raised when a transaction-rate probe fails before the window closes."""

    def __init__(self, result: DeviceResult, count: int) -> None:
        self.result = result
        self.count = count
        super().__init__(f"Probe failed after {count} transactions: {result.message}")


class ToleranceError(ConformError):
    """Raised for invalid tolerance definitions.

    This includes negative band widths, an info band narrower than the ok
    band, or a non-positive period for a wrapping quantity.
    """


class ConfigurationError(ConformError):
    """Raised for invalid configuration.

    Covers malformed tester settings, poll specifications with a non-positive
    interval, and unknown device types.
    """


class RunCancelledError(ConformError):
    """Raised at a check boundary once cancellation has been requested."""


class SequencerStateError(ConformError):
    """Raised when a sequencer is asked to move backwards."""
