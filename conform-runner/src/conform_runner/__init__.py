"""Conformance run orchestration.

Loads a run configuration, opens the device under test over Alpaca or as an
in-process simulator, runs the category tester and writes the report.
"""

from conform_runner.config import ConformConfig, DeviceConfig, ToleranceOverride, load_config, parse_config
from conform_runner.executor import ConformanceExecutor
from conform_runner.models import ConformanceReport
from conform_runner.report import CollectingSink, LoggingSink, MultiSink, build_report, write_json_report

__all__ = [
    "CollectingSink",
    "ConformConfig",
    "ConformanceExecutor",
    "ConformanceReport",
    "DeviceConfig",
    "LoggingSink",
    "MultiSink",
    "ToleranceOverride",
    "build_report",
    "load_config",
    "parse_config",
    "write_json_report",
]
