"""Core library for device conformance testing.

This package provides the leaf types, pure functions, interfaces and error
types shared by every other conform package. It has no third-party
dependencies.

Key components:
    - Types: Verdicts and verdict records, requirement policies and the
      failure classifier, tagged device results, the wrap-aware tolerance
      comparator, common identifiers.
    - Interfaces: Protocols for device handles and verdict sinks.
    - Errors: Hierarchy of exception types rooted at ConformError.

Example:
    >>> from conform_core import RequirementPolicy, ErrorKind, classify
    >>> classify(RequirementPolicy.OPTIONAL, raised=True, error_kind=ErrorKind.NOT_IMPLEMENTED)
    <Verdict.OK: 'ok'>
"""

from conform_core.errors import (
    ConfigurationError,
    ConformError,
    DeviceCallError,
    RunCancelledError,
    SampleAbortedError,
    SequencerStateError,
    ToleranceError,
)
from conform_core.interfaces import DeviceHandle, VerdictSink
from conform_core.types import (
    FULL_CIRCLE,
    CheckName,
    DeviceResult,
    DeviceType,
    ErrorKind,
    MemberAction,
    RequirementPolicy,
    RunId,
    Timestamp,
    ToleranceSpec,
    Verdict,
    VerdictRecord,
    angular_distance,
    classify,
    classify_result,
    compare,
    describe,
    in_range,
    normalize_deviation,
)

__all__ = [
    # errors
    "ConfigurationError",
    "ConformError",
    "DeviceCallError",
    "RunCancelledError",
    "SampleAbortedError",
    "SequencerStateError",
    "ToleranceError",
    # interfaces
    "DeviceHandle",
    "VerdictSink",
    # types
    "FULL_CIRCLE",
    "CheckName",
    "DeviceResult",
    "DeviceType",
    "ErrorKind",
    "MemberAction",
    "RequirementPolicy",
    "RunId",
    "Timestamp",
    "ToleranceSpec",
    "Verdict",
    "VerdictRecord",
    "angular_distance",
    "classify",
    "classify_result",
    "compare",
    "describe",
    "in_range",
    "normalize_deviation",
]
