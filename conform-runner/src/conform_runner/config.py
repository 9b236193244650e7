"""Run configuration loading for conform-runner.

A run config names the device under test, how to reach it and which
phases to run, in a single YAML file.

Example YAML:
    device:
      type: rotator
      transport: alpaca
      url: "http://127.0.0.1:11111"
      number: 0
      timeout: 10.0

    tests:
      properties: true
      methods: true
      performance: false

    timing:
      poll_interval_ms: 500
      async_threshold_ms: 1000
      performance_window_seconds: 5.0

    timeouts:
      rotator: 120

    tolerances:
      rotator:
        ok: 1.0
        info: 2.0

    report:
      path: "rotator-report.json"
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from conform_core.errors import ConfigurationError
from conform_core.types.common import DeviceType

from conform_testcase.tester import TesterSettings

TRANSPORTS = ("alpaca", "simulator")
DEFAULT_OPERATION_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class DeviceConfig:
    """Device under test and how to reach it.

    Attributes:
        type: Device category.
        transport: "alpaca" for a REST device, "simulator" for an in-process one.
        url: Alpaca server base URL (alpaca transport only).
        number: Alpaca device number.
        timeout: HTTP request timeout in seconds.
        simulator: Simulator config overrides (simulator transport only).
    """

    type: DeviceType
    transport: str = "alpaca"
    url: str | None = None
    number: int = 0
    timeout: float = 10.0
    simulator: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToleranceOverride:
    """Band widths replacing a category's defaults."""

    ok: float | None = None
    info: float | None = None


@dataclass(frozen=True)
class ConformConfig:
    """Complete run configuration.

    Attributes:
        device: Device under test.
        test_properties: Run the property phase.
        test_methods: Run the method phase.
        test_performance: Run the performance phase.
        poll_interval_ms: Delay between busy-indicator reads.
        async_threshold_ms: Synchronous/asynchronous boundary.
        performance_window_seconds: Sampling window per performance check.
        operation_timeouts: Per-category operation timeouts in seconds.
        tolerances: Per-category tolerance overrides.
        report_path: Where to write the JSON report, if anywhere.
    """

    device: DeviceConfig
    test_properties: bool = True
    test_methods: bool = True
    test_performance: bool = False
    poll_interval_ms: int = 500
    async_threshold_ms: int = 1000
    performance_window_seconds: float = 5.0
    operation_timeouts: dict[DeviceType, float] = field(default_factory=dict)
    tolerances: dict[DeviceType, ToleranceOverride] = field(default_factory=dict)
    report_path: Path | None = None

    def tester_settings(self, device_type: DeviceType | None = None) -> TesterSettings:
        """Build the tester settings for a category.

        Args:
            device_type: Category; defaults to the configured device's.

        Returns:
            TesterSettings for the category.

        Raises:
            ValueError: If a duration is out of range.
        """
        device_type = device_type or self.device.type
        tolerance = self.tolerances.get(device_type, ToleranceOverride())
        try:
            return TesterSettings(
                poll_interval_ms=self.poll_interval_ms,
                async_threshold_ms=self.async_threshold_ms,
                operation_timeout_seconds=self.operation_timeouts.get(
                    device_type, DEFAULT_OPERATION_TIMEOUT_SECONDS
                ),
                performance_window_seconds=self.performance_window_seconds,
                test_properties=self.test_properties,
                test_methods=self.test_methods,
                test_performance=self.test_performance,
                ok_tolerance=tolerance.ok,
                info_tolerance=tolerance.info,
            )
        except ConfigurationError as exc:
            raise ValueError(str(exc)) from exc


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name} must be a mapping")
    return section


def _number(section: dict[str, Any], key: str, default: Any, kind: type, where: str) -> Any:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{where}.{key} must be a number, got {value!r}")
    return kind(value)


def _flag(section: dict[str, Any], key: str, default: bool, where: str) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{where}.{key} must be true or false, got {value!r}")
    return value


def _device_type(name: Any, where: str) -> DeviceType:
    if not isinstance(name, str):
        raise ValueError(f"{where} must be a device type name, got {name!r}")
    return DeviceType.parse(name)


def parse_config(data: Any) -> ConformConfig:
    """Build a ConformConfig from parsed YAML.

    Args:
        data: The YAML document as loaded by yaml.safe_load.

    Returns:
        Parsed ConformConfig.

    Raises:
        ValueError: If required fields are missing or malformed.
    """
    if not isinstance(data, dict):
        raise ValueError("Run config must be a YAML mapping")

    # Parse device section
    device_data = _section(data, "device")
    if not device_data.get("type"):
        raise ValueError("Missing required field: device.type")
    device_type = _device_type(device_data["type"], "device.type")
    transport = device_data.get("transport", "alpaca")
    if transport not in TRANSPORTS:
        raise ValueError(f"device.transport must be one of {', '.join(TRANSPORTS)}, got {transport!r}")
    url = device_data.get("url")
    if transport == "alpaca" and not url:
        raise ValueError("Missing required field: device.url")
    simulator = _section(device_data, "simulator")
    device = DeviceConfig(
        type=device_type,
        transport=transport,
        url=url,
        number=_number(device_data, "number", 0, int, "device"),
        timeout=_number(device_data, "timeout", 10.0, float, "device"),
        simulator=dict(simulator),
    )

    # Parse tests section
    tests = _section(data, "tests")
    timing = _section(data, "timing")

    # Per-category sections are keyed by device type name
    operation_timeouts = {
        _device_type(name, "timeouts"): _number({"value": value}, "value", None, float, f"timeouts.{name}")
        for name, value in _section(data, "timeouts").items()
    }
    tolerances: dict[DeviceType, ToleranceOverride] = {}
    for name, values in _section(data, "tolerances").items():
        if not isinstance(values, dict):
            raise ValueError(f"tolerances.{name} must be a mapping")
        where = f"tolerances.{name}"
        tolerances[_device_type(name, "tolerances")] = ToleranceOverride(
            ok=_number(values, "ok", None, float, where) if "ok" in values else None,
            info=_number(values, "info", None, float, where) if "info" in values else None,
        )

    report_path = _section(data, "report").get("path")

    config = ConformConfig(
        device=device,
        test_properties=_flag(tests, "properties", True, "tests"),
        test_methods=_flag(tests, "methods", True, "tests"),
        test_performance=_flag(tests, "performance", False, "tests"),
        poll_interval_ms=_number(timing, "poll_interval_ms", 500, int, "timing"),
        async_threshold_ms=_number(timing, "async_threshold_ms", 1000, int, "timing"),
        performance_window_seconds=_number(timing, "performance_window_seconds", 5.0, float, "timing"),
        operation_timeouts=operation_timeouts,
        tolerances=tolerances,
        report_path=Path(report_path) if report_path else None,
    )
    # Validate durations now rather than when the run starts
    config.tester_settings()
    return config


def load_config(path: str | Path) -> ConformConfig:
    """Load run configuration from a YAML file.

    Args:
        path: Path to the run configuration YAML file.

    Returns:
        Parsed ConformConfig.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ValueError: If required fields are missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Run config not found: {path}")

    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    return parse_config(data)
