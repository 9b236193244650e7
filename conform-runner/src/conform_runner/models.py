"""Pydantic models for the conformance report.

The report is the serialised form of a TesterResult: one entry per verdict
plus per-verdict counts and the phase outcomes.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class VerdictModel(BaseModel):
    """One emitted verdict.

    Attributes:
        check: Check name.
        verdict: ok, info, issue or error.
        message: Human-readable explanation.
        timestamp: ISO 8601 time the verdict was emitted.
    """

    check: str
    verdict: str
    message: str = ""
    timestamp: str


class VerdictCounts(BaseModel):
    """Number of verdicts of each kind."""

    ok: int = 0
    info: int = 0
    issue: int = 0
    error: int = 0


class PhaseModel(BaseModel):
    """Outcome of one sequencer phase."""

    state: str
    status: str
    duration_seconds: float
    message: str = ""


class ConformanceReport(BaseModel):
    """Complete report for one conformance run.

    Attributes:
        run_id: Run identifier.
        device_type: Device category tested.
        status: passed, failed or aborted.
        message: Summary message.
        started_at: ISO 8601 start time.
        finished_at: ISO 8601 end time.
        duration_seconds: Run duration.
        counts: Verdict counts.
        phases: Phase outcomes in execution order.
        verdicts: Every verdict in emission order.
    """

    run_id: str
    device_type: str
    status: str
    message: str = ""
    started_at: str
    finished_at: str
    duration_seconds: float
    counts: VerdictCounts
    phases: list[PhaseModel] = Field(default_factory=list)
    verdicts: list[VerdictModel] = Field(default_factory=list)
