"""Simulated device base class.

Provides an in-process device implementing the ``DeviceHandle`` protocol.
Each category subclass registers getters, setters and methods in dispatch
tables; this class handles connection state, the common members, fault
injection and conversion of handler exceptions into tagged results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from conform_core.types.device import DeviceResult, ErrorKind

logger = logging.getLogger(__name__)

Getter = Callable[[], Any]
Setter = Callable[[Any], None]
Method = Callable[..., Awaitable[Any]]

# Members usable while disconnected
_ALWAYS_AVAILABLE = frozenset(
    {"Connected", "Description", "DriverInfo", "DriverVersion", "InterfaceVersion", "Name", "SupportedActions"}
)


class SimulatorFault(Exception):
    """Raised by handlers to return a tagged failure."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


def not_implemented(member: str) -> SimulatorFault:
    """Return the fault for an unimplemented member."""
    return SimulatorFault(ErrorKind.NOT_IMPLEMENTED, f"{member} is not implemented")


def to_bool(value: Any) -> bool:
    """Coerce a written value to bool, accepting "True"/"False" strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise SimulatorFault(ErrorKind.INVALID_VALUE, f"Expected a boolean, got {value!r}")


def to_float(value: Any) -> float:
    """Coerce a written value to float."""
    if isinstance(value, bool):
        raise SimulatorFault(ErrorKind.INVALID_VALUE, f"Expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise SimulatorFault(ErrorKind.INVALID_VALUE, f"Expected a number, got {value!r}") from exc


def to_int(value: Any) -> int:
    """Coerce a written value to int, rejecting fractional numbers."""
    number = to_float(value)
    if number != int(number):
        raise SimulatorFault(ErrorKind.INVALID_VALUE, f"Expected an integer, got {value!r}")
    return int(number)


@dataclass(frozen=True)
class SimulatorConfig:
    """Configuration shared by all simulated devices.

    Args:
        name: Device name.
        interface_version: Reported interface version (>= 1).
        driver_version: Reported driver version string.
        asynchronous: Motion commands return immediately when True and block
            until complete when False.
        faults: Members that always fail, mapped to the failure kind.
    """

    name: str = "Simulator"
    interface_version: int = 3
    driver_version: str = "1.0"
    asynchronous: bool = True
    faults: dict[str, ErrorKind] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("name must be non-empty")
        if self.interface_version < 1:
            raise ValueError("interface_version must be >= 1")


class SimulatedDevice:
    """In-process simulated device implementing ``DeviceHandle``.

    Args:
        config: Shared simulator configuration.
    """

    device_type: str = "device"
    description: str = "Simulated device"

    def __init__(self, config: SimulatorConfig) -> None:
        self._config = config
        self._connected = False
        self._faults: dict[str, tuple[ErrorKind, str]] = {
            member: (kind, f"Injected {kind.value} fault") for member, kind in config.faults.items()
        }
        self.call_log: list[tuple[str, str]] = []

        self._getters: dict[str, Getter] = {
            "Connected": lambda: self._connected,
            "Description": lambda: self.description,
            "DriverInfo": lambda: f"conform-sim {self.device_type} simulator",
            "DriverVersion": lambda: self._config.driver_version,
            "InterfaceVersion": lambda: self._config.interface_version,
            "Name": lambda: self._config.name,
            "SupportedActions": lambda: [],
        }
        self._setters: dict[str, Setter] = {
            "Connected": self._set_connected,
        }
        self._methods: dict[str, Method] = {}

    @property
    def config(self) -> SimulatorConfig:
        """Return the simulator configuration."""
        return self._config

    @property
    def connected(self) -> bool:
        """Return True if a client has connected."""
        return self._connected

    @property
    def interface_version(self) -> int:
        """Return the reported interface version."""
        return self._config.interface_version

    def inject_fault(self, member: str, kind: ErrorKind, message: str = "") -> None:
        """Make every access to member fail with kind.

        Args:
            member: Canonical member name.
            kind: Failure kind to return.
            message: Failure message.
        """
        self._faults[member] = (kind, message or f"Injected {kind.value} fault")

    def clear_fault(self, member: str) -> None:
        """Remove an injected fault."""
        self._faults.pop(member, None)

    def members(self) -> set[str]:
        """Return every member name the simulator knows."""
        return set(self._getters) | set(self._setters) | set(self._methods)

    def is_method(self, member: str) -> bool:
        """Return True if member is a method rather than a property."""
        return member in self._methods

    def resolve(self, name: str) -> str | None:
        """Return the canonical spelling of a member name, ignoring case."""
        lowered = name.lower()
        for member in self.members():
            if member.lower() == lowered:
                return member
        return None

    async def get(self, member: str) -> DeviceResult:
        """Read a property."""
        return await self._dispatch("get", member, lambda: self._getters[member]())

    async def put(self, member: str, value: Any) -> DeviceResult:
        """Write a property."""

        def _write() -> None:
            self._setters[member](value)

        return await self._dispatch("put", member, _write, member not in self._setters)

    async def call(self, member: str, **params: Any) -> DeviceResult:
        """Invoke a method."""
        if member not in self._methods:
            return self._unknown(member)
        self.call_log.append(("call", member))
        failure = self._precheck(member)
        if failure is not None:
            return failure
        try:
            value = await self._methods[member](**params)
        except SimulatorFault as fault:
            logger.debug("%s %s failed: %s", self.device_type, member, fault.message)
            return DeviceResult.failure(fault.kind, fault.message)
        except TypeError as exc:
            return DeviceResult.failure(ErrorKind.INVALID_VALUE, f"Bad parameters for {member}: {exc}")
        return DeviceResult.success(value)

    async def _dispatch(
        self,
        verb: str,
        member: str,
        handler: Callable[[], Any],
        missing: bool | None = None,
    ) -> DeviceResult:
        if missing is None:
            missing = member not in self._getters
        if missing:
            return self._unknown(member)
        self.call_log.append((verb, member))
        failure = self._precheck(member)
        if failure is not None:
            return failure
        try:
            value = handler()
        except SimulatorFault as fault:
            logger.debug("%s %s %s failed: %s", self.device_type, verb, member, fault.message)
            return DeviceResult.failure(fault.kind, fault.message)
        return DeviceResult.success(value)

    def _precheck(self, member: str) -> DeviceResult | None:
        if member in self._faults:
            kind, message = self._faults[member]
            return DeviceResult.failure(kind, message)
        if not self._connected and member not in _ALWAYS_AVAILABLE:
            return DeviceResult.failure(ErrorKind.OTHER, "Not connected")
        return None

    def _unknown(self, member: str) -> DeviceResult:
        if member in self.members():
            # Known member, wrong access (e.g. writing a read-only property)
            return DeviceResult.failure(ErrorKind.NOT_IMPLEMENTED, f"{member} does not support this access")
        return DeviceResult.failure(ErrorKind.NOT_IMPLEMENTED, f"Unknown member {member}")

    def _set_connected(self, value: Any) -> None:
        self._connected = to_bool(value)
        logger.debug("%s connected=%s", self.device_type, self._connected)
