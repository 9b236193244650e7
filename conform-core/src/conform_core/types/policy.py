"""Requirement policies and the failure classifier.

A requirement policy states whether a device member may legally fail. The
classifier turns "did the call fail, and how" plus the policy into a verdict.
The decision table:

    policy                   no error   NOT_IMPLEMENTED   other kind
    MANDATORY                OK         ISSUE             ISSUE
    OPTIONAL                 OK         OK                ISSUE
    MUST_BE_IMPLEMENTED      OK         ISSUE             ISSUE
    MUST_NOT_BE_IMPLEMENTED  ISSUE      OK                ISSUE

When the caller deliberately passed an out-of-domain argument, an
INVALID_VALUE failure is OK under every policy except MUST_NOT_BE_IMPLEMENTED.
A failure without a recognised kind is always ERROR.
"""

from __future__ import annotations

from enum import Enum

from conform_core.types.device import DeviceResult, ErrorKind
from conform_core.types.verdict import Verdict


class RequirementPolicy(Enum):
    """Declared expectation for whether a member may fail."""

    MANDATORY = "mandatory"
    OPTIONAL = "optional"
    MUST_BE_IMPLEMENTED = "must_be_implemented"
    MUST_NOT_BE_IMPLEMENTED = "must_not_be_implemented"


def classify(
    policy: RequirementPolicy,
    raised: bool,
    error_kind: ErrorKind | None = None,
    expecting_invalid_value: bool = False,
) -> Verdict:
    """Classify a member call outcome against its requirement policy.

    Args:
        policy: The policy in force at this call site.
        raised: True if the call failed.
        error_kind: Failure kind when raised is True.
        expecting_invalid_value: True when the call deliberately used an
            out-of-domain argument, so INVALID_VALUE is the correct response.

    Returns:
        The verdict for this outcome.
    """
    if not raised:
        if policy is RequirementPolicy.MUST_NOT_BE_IMPLEMENTED:
            return Verdict.ISSUE
        return Verdict.OK

    if not isinstance(error_kind, ErrorKind):
        return Verdict.ERROR

    if policy is RequirementPolicy.MUST_NOT_BE_IMPLEMENTED:
        return Verdict.OK if error_kind is ErrorKind.NOT_IMPLEMENTED else Verdict.ISSUE

    if expecting_invalid_value and error_kind is ErrorKind.INVALID_VALUE:
        return Verdict.OK

    if policy is RequirementPolicy.OPTIONAL and error_kind is ErrorKind.NOT_IMPLEMENTED:
        return Verdict.OK

    return Verdict.ISSUE


def classify_result(
    policy: RequirementPolicy,
    result: DeviceResult,
    expecting_invalid_value: bool = False,
) -> Verdict:
    """Apply classify to a DeviceResult."""
    return classify(policy, result.failed, result.error, expecting_invalid_value)


def describe(
    policy: RequirementPolicy,
    result: DeviceResult,
    verdict: Verdict,
    member: str = "",
    capability: str = "",
) -> str:
    """Build the report message for a classified outcome.

    Args:
        policy: Policy the outcome was classified against.
        result: The device result.
        verdict: Verdict returned by classify.
        member: Member name for the message.
        capability: Name of the capability that selected the policy, used in
            the MUST_NOT_BE_IMPLEMENTED success message.

    Returns:
        Message text.
    """
    subject = member or "Member"
    if result.ok:
        if policy is RequirementPolicy.MUST_NOT_BE_IMPLEMENTED:
            if capability:
                return f"{capability} is false but no exception generated"
            return f"{subject} should not be implemented but no exception generated"
        return f"{subject} completed successfully"

    kind = result.error.value if isinstance(result.error, ErrorKind) else "unrecognised"
    detail = f": {result.message}" if result.message else ""

    if verdict is Verdict.ERROR:
        return f"Unexpected {kind} error from {subject}{detail}"
    if result.error is ErrorKind.NOT_IMPLEMENTED:
        if policy is RequirementPolicy.OPTIONAL:
            return f"Optional member {subject} threw a NotImplemented error"
        if policy is RequirementPolicy.MUST_NOT_BE_IMPLEMENTED:
            return f"{subject} is not implemented as required"
        if policy is RequirementPolicy.MUST_BE_IMPLEMENTED:
            return f"{subject} must be implemented but threw a NotImplemented error{detail}"
        return f"Mandatory member {subject} threw a NotImplemented error{detail}"
    if result.error is ErrorKind.INVALID_VALUE and verdict is Verdict.OK:
        return f"{subject} threw an InvalidValue error as expected{detail}"
    return f"{subject} threw an unexpected {kind} error{detail}"
