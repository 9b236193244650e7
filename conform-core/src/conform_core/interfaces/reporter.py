"""Verdict sink interface.

Protocols:
    VerdictSink: Receives every verdict record as it is emitted.
"""

# pylint: disable=unnecessary-ellipsis  # Ellipsis required for Protocol method stubs

from __future__ import annotations

from typing import Protocol, runtime_checkable

from conform_core.types.verdict import VerdictRecord


@runtime_checkable
class VerdictSink(Protocol):
    """Protocol for consumers of verdict records.

    Sinks are called synchronously on the sequencer task and must not block.
    """

    def emit(self, record: VerdictRecord) -> None:
        """Receive one verdict record.

        Args:
            record: The emitted record.
        """
        ...
