"""Device handle interface.

The harness talks to a device only through this protocol. Transports (an
Alpaca HTTP client, an in-process simulator) implement it; the sequencers
never know which one they hold.

Protocols:
    DeviceHandle: Read properties, write properties and invoke methods.
"""

# pylint: disable=unnecessary-ellipsis  # Ellipsis required for Protocol method stubs

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from conform_core.types.device import DeviceResult


@runtime_checkable
class DeviceHandle(Protocol):
    """Protocol for a device under test.

    Member names use the interface's canonical spelling ("Position",
    "MoveAbsolute"). Implementations must not raise for driver-side failures;
    they return a failed DeviceResult instead.

    Example:
        >>> result = await device.get("Position")
        >>> if result.ok:
        ...     print(result.value)
        >>> await device.call("MoveAbsolute", Position=45.0)
    """

    async def get(self, member: str) -> DeviceResult:
        """Read a property.

        Args:
            member: Property name.

        Returns:
            The property value or a tagged failure.
        """
        ...

    async def put(self, member: str, value: Any) -> DeviceResult:
        """Write a property.

        Args:
            member: Property name.
            value: New value.

        Returns:
            An empty success or a tagged failure.
        """
        ...

    async def call(self, member: str, **params: Any) -> DeviceResult:
        """Invoke a method.

        Args:
            member: Method name.
            **params: Named method parameters.

        Returns:
            The method's return value or a tagged failure.
        """
        ...
