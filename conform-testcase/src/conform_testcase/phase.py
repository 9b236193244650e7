"""Sequencer states and phase results."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from conform_core.errors import SequencerStateError
from conform_core.types.common import Timestamp

logger = logging.getLogger(__name__)


class SequencerState(Enum):
    """Sequencer states, in the only order they may be visited."""

    NOT_STARTED = "not_started"
    RUNNING_PREREQUISITES = "running_prerequisites"
    RUNNING_PROPERTIES = "running_properties"
    RUNNING_METHODS = "running_methods"
    RUNNING_PERFORMANCE = "running_performance"
    DONE = "done"


_ORDER = {state: index for index, state in enumerate(SequencerState)}


class PhaseStatus(Enum):
    """Status of a sequencer phase."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PhaseResult:
    """Result of executing one sequencer phase."""

    state: SequencerState
    status: PhaseStatus
    start_time: Timestamp
    end_time: Timestamp
    message: str = ""

    @property
    def passed(self) -> bool:
        """Return True if the phase ran to the end."""
        return self.status == PhaseStatus.COMPLETED

    @property
    def duration_seconds(self) -> float:
        """Return phase duration in seconds."""
        return (self.end_time.unix_ns - self.start_time.unix_ns) / 1_000_000_000

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "state": self.state.value,
            "status": self.status.value,
            "start_time": self.start_time.unix_ns,
            "end_time": self.end_time.unix_ns,
            "message": self.message,
        }


class SequencerStateMachine:
    """Forward-only state tracker.

    Phases may be skipped but never revisited; DONE is reachable from any
    state so a cancelled run can finish immediately.
    """

    def __init__(self) -> None:
        self._state = SequencerState.NOT_STARTED
        self._history: list[SequencerState] = [self._state]

    @property
    def state(self) -> SequencerState:
        """Return the current state."""
        return self._state

    @property
    def history(self) -> tuple[SequencerState, ...]:
        """Return every state visited, in order."""
        return tuple(self._history)

    def advance(self, state: SequencerState) -> None:
        """Move to a later state.

        Args:
            state: Target state.

        Raises:
            SequencerStateError: If state is not after the current state.
        """
        if _ORDER[state] <= _ORDER[self._state]:
            raise SequencerStateError(f"Cannot move from {self._state.value} to {state.value}")
        logger.debug("Sequencer %s -> %s", self._state.value, state.value)
        self._state = state
        self._history.append(state)
