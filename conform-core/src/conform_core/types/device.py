"""Device call result types.

Device handles never raise for driver-side failures. Every get, put or call
returns a DeviceResult that is either a value or a tagged failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from conform_core.errors import DeviceCallError


class ErrorKind(Enum):
    """Classification of a device-reported failure."""

    NOT_IMPLEMENTED = "not_implemented"
    INVALID_VALUE = "invalid_value"
    INVALID_OPERATION = "invalid_operation"
    OTHER = "other"


class MemberAction(Enum):
    """How a device member is exercised."""

    GET = "get"
    PUT = "put"
    CALL = "call"


@dataclass(frozen=True)
class DeviceResult:
    """Outcome of one device call.

    Attributes:
        value: Returned value, None for failures and void methods.
        error: Failure kind, None on success.
        message: Driver or transport supplied error text.
        code: Raw transport error number when one was reported.
    """

    value: Any = None
    error: ErrorKind | None = None
    message: str = ""
    code: int | None = None

    @classmethod
    def success(cls, value: Any = None) -> DeviceResult:
        """Create a successful result."""
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str = "", code: int | None = None) -> DeviceResult:
        """Create a failed result."""
        return cls(error=kind, message=message, code=code)

    @property
    def ok(self) -> bool:
        """Return True if the call succeeded."""
        return self.error is None

    @property
    def failed(self) -> bool:
        """Return True if the call failed."""
        return self.error is not None

    def unwrap(self, member: str = "") -> Any:
        """Return the value or raise for a failed result.

        Args:
            member: Member name used in the exception message.

        Returns:
            The returned value.

        Raises:
            DeviceCallError: If the result is a failure.
        """
        if self.error is not None:
            raise DeviceCallError(member, self)
        return self.value
