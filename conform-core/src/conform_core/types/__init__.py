"""Core data types for the conformance harness.

Submodules:
    common: Base types (Timestamp, DeviceType, CheckName, RunId)
    verdict: Verdict and VerdictRecord
    device: Device call results (DeviceResult, ErrorKind, MemberAction)
    policy: Requirement policies and the failure classifier
    states: Cover and calibrator state enumerations
    tolerance: Tolerance bands and the wrap-aware comparator

All types are exported from this package for convenience.
"""

from conform_core.types.common import CheckName, DeviceType, RunId, Timestamp
from conform_core.types.device import DeviceResult, ErrorKind, MemberAction
from conform_core.types.policy import RequirementPolicy, classify, classify_result, describe
from conform_core.types.states import CalibratorStatus, CoverStatus
from conform_core.types.tolerance import (
    FULL_CIRCLE,
    ToleranceSpec,
    angular_distance,
    compare,
    in_range,
    normalize_deviation,
)
from conform_core.types.verdict import Verdict, VerdictRecord

__all__ = [
    # common
    "CheckName",
    "DeviceType",
    "RunId",
    "Timestamp",
    # device
    "DeviceResult",
    "ErrorKind",
    "MemberAction",
    # policy
    "RequirementPolicy",
    "classify",
    "classify_result",
    "describe",
    # states
    "CalibratorStatus",
    "CoverStatus",
    # tolerance
    "FULL_CIRCLE",
    "ToleranceSpec",
    "angular_distance",
    "compare",
    "in_range",
    "normalize_deviation",
    # verdict
    "Verdict",
    "VerdictRecord",
]
