"""Conformance run context."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from conform_core.interfaces.reporter import VerdictSink
from conform_core.types.common import Timestamp
from conform_core.types.verdict import Verdict, VerdictRecord

from conform_testcase.cancellation import CancellationSignal

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """State shared by the checks of one conformance run.

    The context provides:
    - Capability flags written by producing checks and read by dependents
    - Stored values (interface version, initial positions, limits)
    - The cancellation signal
    - The verdict records emitted so far, forwarded to an optional sink
    - The current test/action/status strings for progress display

    Example:
        context = RunContext(run_id="rotator-001")
        context.set_flag("can_read_position")
        context.record("Position", Verdict.OK, "45.0")
    """

    run_id: str
    device_type: str = ""
    sink: VerdictSink | None = None
    cancellation: CancellationSignal = field(default_factory=CancellationSignal)
    start_time: Timestamp | None = None
    end_time: Timestamp | None = None
    flags: dict[str, bool] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)
    records: list[VerdictRecord] = field(default_factory=list)
    current_test: str = ""
    current_action: str = ""
    current_status: str = ""

    def start(self) -> None:
        """Mark run as started."""
        self.start_time = Timestamp.now()
        logger.info("Run %s started at %s", self.run_id, self.start_time)

    def stop(self) -> None:
        """Mark run as stopped."""
        self.end_time = Timestamp.now()
        logger.info("Run %s stopped at %s", self.run_id, self.end_time)

    # -------------------------------------------------------------------------
    # Capability flags and stored values
    # -------------------------------------------------------------------------

    def set_flag(self, name: str, value: bool = True) -> None:
        """Set a capability flag.

        Args:
            name: Flag name, e.g. "can_read_position".
            value: Flag value.
        """
        self.flags[name] = value
        logger.debug("Flag %s = %s", name, value)

    def flag(self, name: str) -> bool:
        """Return a capability flag, False if never set."""
        return self.flags.get(name, False)

    def missing_flags(self, names: tuple[str, ...]) -> list[str]:
        """Return the flags from names that are not set."""
        return [name for name in names if not self.flag(name)]

    def set_value(self, name: str, value: Any) -> None:
        """Store a value produced by a check."""
        self.values[name] = value

    def get_value(self, name: str, default: Any = None) -> Any:
        """Return a stored value."""
        return self.values.get(name, default)

    @property
    def interface_version(self) -> int:
        """Return the device's interface version, 1 if it was never read."""
        version = self.values.get("interface_version")
        return version if isinstance(version, int) and version > 0 else 1

    # -------------------------------------------------------------------------
    # Verdicts and progress
    # -------------------------------------------------------------------------

    def record(self, check_name: str, verdict: Verdict, message: str = "") -> VerdictRecord:
        """Emit a verdict.

        Args:
            check_name: Name of the check.
            verdict: The verdict.
            message: Explanation.

        Returns:
            The emitted record.
        """
        record = VerdictRecord(check_name=check_name, verdict=verdict, message=message)
        self.records.append(record)
        if self.sink is not None:
            self.sink.emit(record)
        return record

    @property
    def issue_count(self) -> int:
        """Return the number of ISSUE records."""
        return sum(1 for record in self.records if record.verdict == Verdict.ISSUE)

    @property
    def error_count(self) -> int:
        """Return the number of ERROR records."""
        return sum(1 for record in self.records if record.verdict == Verdict.ERROR)

    def set_test(self, name: str) -> None:
        """Set the current test name and clear action and status."""
        self.current_test = name
        self.current_action = ""
        self.current_status = ""

    def set_action(self, action: str) -> None:
        """Set the current action."""
        self.current_action = action
        logger.debug("%s: %s", self.current_test, action)

    def set_status(self, status: str) -> None:
        """Set the current status string."""
        self.current_status = status

