"""Conformance test orchestration.

This package provides the mechanism shared by every device category tester:
the cancellation signal, the bounded poller, synchronous/asynchronous
completion detection, the transaction-rate sampler, the run context and the
DeviceTester base class with its forward-only sequencer.
"""

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.context import RunContext
from conform_testcase.detection import (
    DEFAULT_ASYNC_THRESHOLD_MS,
    AsyncDetectionResult,
    CompletionResult,
    invoke_and_classify,
    run_to_completion,
)
from conform_testcase.phase import PhaseResult, PhaseStatus, SequencerState, SequencerStateMachine
from conform_testcase.polling import PollOutcome, PollResult, PollSpec, Stopwatch, poll_until_false
from conform_testcase.sampler import RateBand, RateSample, rate_band, rate_verdict, sample_rate
from conform_testcase.tester import (
    COMMON_CHECKS,
    DeviceTester,
    MemberCheck,
    TesterResult,
    TesterSettings,
    TesterStatus,
    expect_false,
    range_validator,
    version_policy,
)

__all__ = [
    "COMMON_CHECKS",
    "DEFAULT_ASYNC_THRESHOLD_MS",
    "AsyncDetectionResult",
    "CancellationSignal",
    "CompletionResult",
    "DeviceTester",
    "MemberCheck",
    "PhaseResult",
    "PhaseStatus",
    "PollOutcome",
    "PollResult",
    "PollSpec",
    "RateBand",
    "RateSample",
    "RunContext",
    "SequencerState",
    "SequencerStateMachine",
    "Stopwatch",
    "TesterResult",
    "TesterSettings",
    "TesterStatus",
    "expect_false",
    "invoke_and_classify",
    "poll_until_false",
    "range_validator",
    "rate_band",
    "rate_verdict",
    "run_to_completion",
    "sample_rate",
    "version_policy",
]
