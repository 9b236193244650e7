"""Verdict types.

Every conformance check ends in exactly one Verdict. Emitted verdicts are
captured as VerdictRecord instances and delivered to a sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from conform_core.types.common import Timestamp


class Verdict(Enum):
    """Outcome of a single conformance check.

    Attributes:
        OK: Behaviour matches the interface contract.
        INFO: Noteworthy but acceptable (a skipped check, a near miss).
        ISSUE: Contract violation or out-of-tolerance result.
        ERROR: The failure could not be classified.
    """

    OK = "ok"
    INFO = "info"
    ISSUE = "issue"
    ERROR = "error"

    @property
    def severity(self) -> int:
        """Return an ordering key, higher is worse."""
        return _SEVERITY[self]

    @property
    def is_failure(self) -> bool:
        """Return True for ISSUE and ERROR."""
        return self in (Verdict.ISSUE, Verdict.ERROR)

    @staticmethod
    def worst(verdicts: list[Verdict]) -> Verdict:
        """Return the most severe verdict, or OK for an empty list."""
        if not verdicts:
            return Verdict.OK
        return max(verdicts, key=lambda v: v.severity)


_SEVERITY = {
    Verdict.OK: 0,
    Verdict.INFO: 1,
    Verdict.ISSUE: 2,
    Verdict.ERROR: 3,
}


@dataclass(frozen=True)
class VerdictRecord:
    """One emitted verdict.

    Attributes:
        check_name: Name of the check that produced the verdict.
        verdict: The verdict.
        message: Human-readable explanation.
        timestamp: When the verdict was emitted.
    """

    check_name: str
    verdict: Verdict
    message: str = ""
    timestamp: Timestamp = field(default_factory=Timestamp.now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "check_name": self.check_name,
            "verdict": self.verdict.value,
            "message": self.message,
            "timestamp": self.timestamp.unix_ns,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> VerdictRecord:
        """Create a record from a dictionary produced by to_dict."""
        return cls(
            check_name=data["check_name"],
            verdict=Verdict(data["verdict"]),
            message=data.get("message", ""),
            timestamp=Timestamp(unix_ns=int(data["timestamp"])),
        )
