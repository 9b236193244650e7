"""Verdict sinks and the JSON conformance report."""

from __future__ import annotations

import logging
from pathlib import Path

from conform_core.interfaces.reporter import VerdictSink
from conform_core.types.verdict import Verdict, VerdictRecord

from conform_testcase.tester import TesterResult

from conform_runner.models import ConformanceReport, PhaseModel, VerdictCounts, VerdictModel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Verdict.OK: logging.INFO,
    Verdict.INFO: logging.INFO,
    Verdict.ISSUE: logging.WARNING,
    Verdict.ERROR: logging.ERROR,
}


class LoggingSink:
    """Writes every verdict to a logger.

    Args:
        log: Logger to write to; defaults to this module's logger.
    """

    def __init__(self, log: logging.Logger | None = None) -> None:
        self._log = log or logger

    def emit(self, record: VerdictRecord) -> None:
        """Log one verdict at the level matching its severity."""
        self._log.log(
            _LOG_LEVELS[record.verdict],
            "%-24s %-5s %s",
            record.check_name,
            record.verdict.value.upper(),
            record.message,
        )


class CollectingSink:
    """Keeps every verdict in memory."""

    def __init__(self) -> None:
        self.records: list[VerdictRecord] = []

    def emit(self, record: VerdictRecord) -> None:
        """Store one verdict."""
        self.records.append(record)

    def verdicts(self, check_name: str) -> list[Verdict]:
        """Return the verdicts emitted for one check, in order."""
        return [r.verdict for r in self.records if r.check_name == check_name]


class MultiSink:
    """Forwards every verdict to several sinks."""

    def __init__(self, *sinks: VerdictSink) -> None:
        self._sinks = list(sinks)

    def add(self, sink: VerdictSink) -> None:
        """Add another sink."""
        self._sinks.append(sink)

    def emit(self, record: VerdictRecord) -> None:
        """Forward one verdict."""
        for sink in self._sinks:
            sink.emit(record)


def build_report(result: TesterResult) -> ConformanceReport:
    """Convert a tester result into the serialisable report.

    Args:
        result: Completed run.

    Returns:
        ConformanceReport for the run.
    """
    counts = result.counts()
    return ConformanceReport(
        run_id=result.run_id,
        device_type=result.device_type.value,
        status=result.status.value,
        message=result.message,
        started_at=str(result.start_time),
        finished_at=str(result.end_time),
        duration_seconds=result.duration_seconds,
        counts=VerdictCounts(**{verdict.value: n for verdict, n in counts.items()}),
        phases=[
            PhaseModel(
                state=phase.state.value,
                status=phase.status.value,
                duration_seconds=phase.duration_seconds,
                message=phase.message,
            )
            for phase in result.phase_results
        ],
        verdicts=[
            VerdictModel(
                check=record.check_name,
                verdict=record.verdict.value,
                message=record.message,
                timestamp=str(record.timestamp),
            )
            for record in result.records
        ],
    )


def write_json_report(report: ConformanceReport, path: str | Path) -> Path:
    """Write a report as indented JSON.

    Args:
        report: Report to write.
        path: Destination file; parent directories are created.

    Returns:
        The path written.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
    logger.info("Report written to %s", path)
    return path
