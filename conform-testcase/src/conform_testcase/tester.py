"""Device tester base class.

A DeviceTester drives one device category through the fixed conformance
sequence:

    prerequisites  connect, common members, "Can" properties, pre-run check
    properties     category property checks
    methods        category method checks, including motion
    performance    transaction-rate sampling
    post-run       restore the device, disconnect

Most property checks are declared as MemberCheck rows and executed by
check_member(), which applies the same micro-protocol to every member:
prerequisite guard, invoke, validate or classify, record. Motion checks use
run_operation(), which adds synchronous/asynchronous detection and a bounded
wait before the caller validates the final position.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping

from conform_core.errors import (
    ConfigurationError,
    DeviceCallError,
    RunCancelledError,
    SampleAbortedError,
)
from conform_core.interfaces.device import DeviceHandle
from conform_core.interfaces.reporter import VerdictSink
from conform_core.types.common import DeviceType, Timestamp
from conform_core.types.device import DeviceResult, MemberAction
from conform_core.types.policy import RequirementPolicy, classify_result, describe
from conform_core.types.tolerance import in_range
from conform_core.types.verdict import Verdict, VerdictRecord

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.context import RunContext
from conform_testcase.detection import BusyProbe, Command, CompletionResult, run_to_completion
from conform_testcase.phase import (
    PhaseResult,
    PhaseStatus,
    SequencerState,
    SequencerStateMachine,
)
from conform_testcase.polling import ProgressProbe
from conform_testcase.sampler import rate_message, rate_verdict, sample_rate

logger = logging.getLogger(__name__)

PolicySelector = Callable[[RunContext], RequirementPolicy]
Validator = Callable[[Any, RunContext], tuple[Verdict, str]]


class TesterStatus(Enum):
    """Overall status of a conformance run."""

    PENDING = "pending"
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class TesterSettings:
    """Per-category tester configuration.

    Attributes:
        poll_interval_ms: Delay between busy-indicator reads.
        async_threshold_ms: Commands returning within this are asynchronous.
        operation_timeout_seconds: Maximum wait for one operation.
        performance_window_seconds: Sampling window per performance check.
        test_properties: Run the property phase.
        test_methods: Run the method phase.
        test_performance: Run the performance phase.
        ok_tolerance: Overrides the category's OK band width.
        info_tolerance: Overrides the category's INFO band width.

    Raises:
        ConfigurationError: If any duration is out of range.
    """

    poll_interval_ms: int = 500
    async_threshold_ms: int = 1000
    operation_timeout_seconds: float = 60.0
    performance_window_seconds: float = 5.0
    test_properties: bool = True
    test_methods: bool = True
    test_performance: bool = False
    ok_tolerance: float | None = None
    info_tolerance: float | None = None

    def __post_init__(self) -> None:
        if self.poll_interval_ms <= 0:
            raise ConfigurationError(f"poll_interval_ms must be > 0, got {self.poll_interval_ms}")
        if self.async_threshold_ms < 0:
            raise ConfigurationError(f"async_threshold_ms must be >= 0, got {self.async_threshold_ms}")
        if self.operation_timeout_seconds <= 0:
            raise ConfigurationError(
                f"operation_timeout_seconds must be > 0, got {self.operation_timeout_seconds}"
            )
        if self.performance_window_seconds <= 0:
            raise ConfigurationError(
                f"performance_window_seconds must be > 0, got {self.performance_window_seconds}"
            )


@dataclass(frozen=True)
class MemberCheck:
    """Declarative description of one member check.

    Attributes:
        name: Check name used in verdict records.
        member: Device member; defaults to name.
        action: GET, PUT or CALL.
        policy: A fixed policy, or a selector evaluated against the context
            at the moment the check runs.
        requires: Capability flags that must be set for the check to run.
        min_interface_version: Checks for members introduced in later
            interface versions are silently not run on older devices.
        flag: Capability flag set when the call succeeds.
        store: Context value key the returned value is stored under.
        validate: Judges a successful value; defaults to OK.
        value: Value written by a PUT.
        params: Parameters passed to a CALL.
        expecting_invalid_value: The argument is deliberately out of domain.
        capability: Capability named in "X is false but no exception
            generated" messages.
    """

    name: str
    member: str = ""
    action: MemberAction = MemberAction.GET
    policy: RequirementPolicy | PolicySelector = RequirementPolicy.MANDATORY
    requires: tuple[str, ...] = ()
    min_interface_version: int = 1
    flag: str | None = None
    store: str | None = None
    validate: Validator | None = None
    value: Any = None
    params: Mapping[str, Any] = field(default_factory=dict)
    expecting_invalid_value: bool = False
    capability: str = ""

    @property
    def member_name(self) -> str:
        """Return the device member exercised by this check."""
        return self.member or self.name

    def resolve_policy(self, context: RunContext) -> RequirementPolicy:
        """Return the policy in force for this context."""
        if isinstance(self.policy, RequirementPolicy):
            return self.policy
        return self.policy(context)


def range_validator(low: float, high: float, high_inclusive: bool = True) -> Validator:
    """Return a validator accepting numeric values in a range.

    Args:
        low: Inclusive lower bound.
        high: Upper bound.
        high_inclusive: Whether high itself is accepted.

    Returns:
        Validator producing OK in range and ISSUE otherwise.
    """

    def _validate(value: Any, context: RunContext) -> tuple[Verdict, str]:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return Verdict.ISSUE, f"Expected a number, got {value!r}"
        if in_range(float(value), low, high, high_inclusive):
            return Verdict.OK, f"{value}"
        upper = "]" if high_inclusive else ")"
        return Verdict.ISSUE, f"Invalid value: {value}, expected [{low}, {high}{upper}"

    return _validate


def expect_false(message: str) -> Validator:
    """Return a validator that reports ISSUE with message when the value is truthy."""

    def _validate(value: Any, context: RunContext) -> tuple[Verdict, str]:
        if value:
            return Verdict.ISSUE, message
        return Verdict.OK, f"{value}"

    return _validate


def version_policy(
    min_version: int,
    from_version: RequirementPolicy = RequirementPolicy.MANDATORY,
    before_version: RequirementPolicy = RequirementPolicy.OPTIONAL,
) -> PolicySelector:
    """Return a selector for members whose policy changed at an interface version.

    Args:
        min_version: First interface version using from_version.
        from_version: Policy at or above min_version.
        before_version: Policy below min_version.

    Returns:
        Policy selector.
    """

    def _select(context: RunContext) -> RequirementPolicy:
        return from_version if context.interface_version >= min_version else before_version

    return _select


def _interface_version_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return Verdict.ISSUE, f"InterfaceVersion must be a positive integer, got {value!r}"
    return Verdict.OK, f"{value}"


def _string_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if not isinstance(value, str):
        return Verdict.ISSUE, f"Expected a string, got {value!r}"
    if not value.strip():
        return Verdict.INFO, "Returned an empty string"
    return Verdict.OK, value


def _supported_actions_validator(value: Any, context: RunContext) -> tuple[Verdict, str]:
    if not isinstance(value, (list, tuple)):
        return Verdict.ISSUE, f"Expected a list of action names, got {value!r}"
    if not value:
        return Verdict.OK, "Driver returned an empty action list"
    bad = [action for action in value if not isinstance(action, str) or not action.strip()]
    if bad:
        return Verdict.ISSUE, f"Action names must be non-empty strings, got {bad!r}"
    return Verdict.OK, ", ".join(value)


COMMON_CHECKS: tuple[MemberCheck, ...] = (
    MemberCheck("InterfaceVersion", store="interface_version", validate=_interface_version_validator),
    MemberCheck("Description", validate=_string_validator),
    MemberCheck("DriverInfo", validate=_string_validator),
    MemberCheck("DriverVersion", validate=_string_validator),
    MemberCheck("Name", validate=_string_validator),
    MemberCheck("SupportedActions", policy=RequirementPolicy.OPTIONAL, validate=_supported_actions_validator),
)


@dataclass(frozen=True)
class TesterResult:
    """Result of one conformance run."""

    run_id: str
    device_type: DeviceType
    status: TesterStatus
    start_time: Timestamp
    end_time: Timestamp
    final_state: SequencerState
    phase_results: tuple[PhaseResult, ...]
    records: tuple[VerdictRecord, ...]
    message: str = ""

    @property
    def passed(self) -> bool:
        """Return True if the run finished without ISSUE or ERROR verdicts."""
        return self.status == TesterStatus.PASSED

    @property
    def duration_seconds(self) -> float:
        """Return run duration in seconds."""
        return (self.end_time.unix_ns - self.start_time.unix_ns) / 1_000_000_000

    def counts(self) -> dict[Verdict, int]:
        """Return the number of records per verdict."""
        counts = {verdict: 0 for verdict in Verdict}
        for record in self.records:
            counts[record.verdict] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "device_type": self.device_type.value,
            "status": self.status.value,
            "start_time": self.start_time.unix_ns,
            "end_time": self.end_time.unix_ns,
            "final_state": self.final_state.value,
            "phase_results": [p.to_dict() for p in self.phase_results],
            "records": [r.to_dict() for r in self.records],
            "counts": {v.value: n for v, n in self.counts().items()},
            "message": self.message,
            "duration_seconds": self.duration_seconds,
        }


class DeviceTester(ABC):
    """Base class for device category testers.

    Subclasses declare their category and implement the property and method
    phases. The "Can" properties, performance members and pre/post-run hooks
    have table-driven or no-op defaults.

    Example:
        class RotatorTester(DeviceTester):
            device_type = DeviceType.ROTATOR
            can_checks = (MemberCheck("CanReverse", store="can_reverse"),)

            async def check_properties(self) -> None:
                await self.check_member(MemberCheck("Position", flag="can_read_position"))

            async def check_methods(self) -> None:
                await self.check_member(MemberCheck("Halt", action=MemberAction.CALL))
    """

    device_type: DeviceType
    name: str = "Device"
    can_checks: tuple[MemberCheck, ...] = ()
    # (member, required flags) pairs sampled in the performance phase
    performance_members: tuple[tuple[str, tuple[str, ...]], ...] = ()
    # Default bands for final-position comparisons, overridable per run
    ok_tolerance: float = 0.0
    info_tolerance: float = 0.0

    def __init__(
        self,
        device: DeviceHandle,
        settings: TesterSettings | None = None,
        *,
        run_id: str | None = None,
        sink: VerdictSink | None = None,
        cancellation: CancellationSignal | None = None,
    ) -> None:
        """Initialize the tester.

        Args:
            device: Handle to the device under test.
            settings: Tester settings; defaults apply when omitted.
            run_id: Run identifier; generated when omitted.
            sink: Receives every verdict record as it is emitted.
            cancellation: Shared cancellation signal.
        """
        self._device = device
        self._settings = settings or TesterSettings()
        self._context = RunContext(
            run_id=run_id or f"{self.device_type.value}-{uuid.uuid4().hex[:8]}",
            device_type=self.device_type.value,
            sink=sink,
            cancellation=cancellation or CancellationSignal(),
        )
        self._machine = SequencerStateMachine()
        self._phase_results: list[PhaseResult] = []
        self._status = TesterStatus.PENDING
        self._halt_reason = ""

    @property
    def device(self) -> DeviceHandle:
        """Return the device under test."""
        return self._device

    @property
    def settings(self) -> TesterSettings:
        """Return the tester settings."""
        return self._settings

    @property
    def context(self) -> RunContext:
        """Return the run context."""
        return self._context

    @property
    def state(self) -> SequencerState:
        """Return the current sequencer state."""
        return self._machine.state

    @property
    def state_history(self) -> tuple[SequencerState, ...]:
        """Return every sequencer state visited so far."""
        return self._machine.history

    @property
    def status(self) -> TesterStatus:
        """Return the run status."""
        return self._status

    @property
    def halted(self) -> bool:
        """Return True once halt_run() has been called."""
        return bool(self._halt_reason)

    def request_abort(self, reason: str = "") -> None:
        """Request cancellation.

        The run stops at the next check boundary.
        """
        self._context.cancellation.cancel(reason)

    def tolerance_bands(self, default_ok: float | None = None) -> tuple[float, float]:
        """Return the (ok, info) band widths in force for this run.

        Settings overrides win over default_ok and the class defaults. The
        INFO band never narrows below the OK band.
        """
        ok = self._settings.ok_tolerance
        if ok is None:
            ok = self.ok_tolerance if default_ok is None else default_ok
        info = self._settings.info_tolerance
        if info is None:
            info = self.info_tolerance
        return ok, max(ok, info)

    def halt_run(self, reason: str) -> None:
        """Skip every phase after the current one.

        Used when the device is in a state where further checks are
        meaningless, for example when it cannot be connected.
        """
        if not self._halt_reason:
            logger.warning("Remaining phases skipped: %s", reason)
            self._halt_reason = reason

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def check_can_properties(self) -> None:
        """Read the category's capability properties."""
        for check in self.can_checks:
            await self.check_member(check)

    async def pre_run_check(self) -> None:
        """Bring the device into a known state before the property phase."""

    @abstractmethod
    async def check_properties(self) -> None:
        """Run the category's property checks."""

    @abstractmethod
    async def check_methods(self) -> None:
        """Run the category's method checks."""

    async def check_performance(self) -> None:
        """Sample the transaction rate of each performance member."""
        for member, requires in self.performance_members:
            await self.measure_rate(member, requires)

    async def post_run_check(self) -> None:
        """Restore the device after the run."""

    async def run(self) -> TesterResult:
        """Run the complete conformance sequence.

        Returns:
            TesterResult describing the overall outcome.
        """
        start_time = Timestamp.now()
        self._status = TesterStatus.RUNNING
        self._context.start()
        message = ""

        phases: list[tuple[SequencerState, Callable[[], Awaitable[None]], bool]] = [
            (SequencerState.RUNNING_PREREQUISITES, self._check_prerequisites, True),
            (SequencerState.RUNNING_PROPERTIES, self.check_properties, self._settings.test_properties),
            (SequencerState.RUNNING_METHODS, self.check_methods, self._settings.test_methods),
            (SequencerState.RUNNING_PERFORMANCE, self.check_performance, self._settings.test_performance),
        ]

        try:
            for state, action, enabled in phases:
                self._machine.advance(state)
                await self._run_phase(state, action, enabled)
            await self._finish()
        except RunCancelledError as e:
            self._status = TesterStatus.ABORTED
            message = f"Run cancelled: {e}"
            logger.warning("%s run %s cancelled in %s", self.name, self._context.run_id, self.state.value)
        finally:
            if self._machine.state != SequencerState.DONE:
                self._machine.advance(SequencerState.DONE)
            self._context.stop()

        if self._status != TesterStatus.ABORTED:
            if self._context.issue_count or self._context.error_count:
                self._status = TesterStatus.FAILED
                message = (
                    f"{self._context.issue_count} issue(s), {self._context.error_count} error(s)"
                )
            else:
                self._status = TesterStatus.PASSED
                message = "No issues found"
            if self._halt_reason:
                message = f"{message}; {self._halt_reason}"

        return TesterResult(
            run_id=self._context.run_id,
            device_type=self.device_type,
            status=self._status,
            start_time=start_time,
            end_time=Timestamp.now(),
            final_state=self._machine.state,
            phase_results=tuple(self._phase_results),
            records=tuple(self._context.records),
            message=message,
        )

    async def _run_phase(
        self,
        state: SequencerState,
        action: Callable[[], Awaitable[None]],
        enabled: bool,
    ) -> None:
        start_time = Timestamp.now()
        if not enabled or self._halt_reason:
            reason = self._halt_reason or "disabled by configuration"
            logger.info("Skipping %s: %s", state.value, reason)
            self._phase_results.append(
                PhaseResult(state, PhaseStatus.SKIPPED, start_time, Timestamp.now(), reason)
            )
            return

        logger.info("Starting %s", state.value)
        try:
            await action()
        except RunCancelledError:
            self._phase_results.append(
                PhaseResult(state, PhaseStatus.CANCELLED, start_time, Timestamp.now(), "Cancelled")
            )
            raise
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Phase %s failed: %s", state.value, e)
            self._context.record(self._context.current_test or state.value, Verdict.ERROR, f"Unexpected error: {e}")
            self._phase_results.append(
                PhaseResult(state, PhaseStatus.FAILED, start_time, Timestamp.now(), str(e))
            )
            return

        self._phase_results.append(PhaseResult(state, PhaseStatus.COMPLETED, start_time, Timestamp.now()))

    async def _check_prerequisites(self) -> None:
        if not await self._connect():
            self.halt_run("device could not be connected")
            return
        for check in COMMON_CHECKS:
            await self.check_member(check)
        await self.check_can_properties()
        await self.pre_run_check()

    async def _connect(self) -> bool:
        self.begin_check("Connected")
        self._context.set_action("Connecting to device")
        result = await self._device.put("Connected", True)
        if result.failed:
            self.record_outcome("Connected", RequirementPolicy.MANDATORY, result)
            return False
        result = await self._device.get("Connected")
        if result.failed:
            self.record_outcome("Connected", RequirementPolicy.MANDATORY, result)
            return False
        if result.value is not True:
            self._context.record("Connected", Verdict.ISSUE, f"Connected reads {result.value!r} after connecting")
            return False
        self._context.record("Connected", Verdict.OK, "True")
        return True

    async def _finish(self) -> None:
        self._context.cancellation.raise_if_cancelled()
        if not self._halt_reason:
            try:
                await self.post_run_check()
            except RunCancelledError:
                raise
            except Exception as e:  # pylint: disable=broad-except
                logger.error("Post-run check failed: %s", e)
                self._context.record("Post-run Check", Verdict.ERROR, f"Unexpected error: {e}")
        result = await self._device.put("Connected", False)
        if result.failed:
            logger.warning("Disconnect failed: %s", result.message)

    # -------------------------------------------------------------------------
    # Check helpers
    # -------------------------------------------------------------------------

    def begin_check(self, name: str) -> None:
        """Start a check, raising RunCancelledError if cancellation was requested."""
        self._context.cancellation.raise_if_cancelled()
        self._context.set_test(name)

    def record(self, name: str, verdict: Verdict, message: str = "") -> VerdictRecord:
        """Emit a verdict."""
        return self._context.record(name, verdict, message)

    def skip(self, name: str, missing: list[str]) -> None:
        """Emit the INFO verdict for a check skipped on unmet prerequisites."""
        self._context.record(
            name,
            Verdict.INFO,
            f"Skipping test because these prerequisites are not met: {', '.join(missing)}",
        )

    def record_outcome(
        self,
        name: str,
        policy: RequirementPolicy,
        result: DeviceResult,
        *,
        expecting_invalid_value: bool = False,
        member: str = "",
        capability: str = "",
    ) -> Verdict:
        """Classify a device result against policy and emit the verdict.

        Returns:
            The emitted verdict.
        """
        verdict = classify_result(policy, result, expecting_invalid_value)
        self._context.record(name, verdict, describe(policy, result, verdict, member or name, capability))
        return verdict

    async def invoke(self, check: MemberCheck) -> DeviceResult:
        """Perform the device call a check describes."""
        member = check.member_name
        if check.action == MemberAction.GET:
            return await self._device.get(member)
        if check.action == MemberAction.PUT:
            return await self._device.put(member, check.value)
        return await self._device.call(member, **dict(check.params))

    async def check_member(self, check: MemberCheck) -> DeviceResult | None:
        """Run one declarative member check.

        Args:
            check: The check to run.

        Returns:
            The device result, or None if the check was not run.

        Raises:
            RunCancelledError: If cancellation was requested.
        """
        self.begin_check(check.name)
        if self._context.interface_version < check.min_interface_version:
            logger.debug(
                "%s not tested, needs interface version %d", check.name, check.min_interface_version
            )
            return None
        missing = self._context.missing_flags(check.requires)
        if missing:
            self.skip(check.name, missing)
            return None

        policy = check.resolve_policy(self._context)
        result = await self.invoke(check)
        if result.failed:
            self.record_outcome(
                check.name,
                policy,
                result,
                expecting_invalid_value=check.expecting_invalid_value,
                member=check.member_name,
                capability=check.capability,
            )
            return result

        if check.flag:
            self._context.set_flag(check.flag)
        if check.store:
            self._context.set_value(check.store, result.value)

        if policy == RequirementPolicy.MUST_NOT_BE_IMPLEMENTED:
            self.record_outcome(check.name, policy, result, member=check.member_name, capability=check.capability)
        elif check.validate is not None:
            try:
                verdict, message = check.validate(result.value, self._context)
            except (ValueError, TypeError) as e:
                verdict, message = Verdict.ERROR, f"Unexpected value from device: {e}"
            self._context.record(check.name, verdict, message)
        elif check.action == MemberAction.GET:
            self._context.record(check.name, Verdict.OK, f"{result.value}")
        else:
            self._context.record(check.name, Verdict.OK, f"{check.member_name} completed successfully")
        return result

    async def read(self, member: str) -> Any:
        """Read a property, raising DeviceCallError on failure."""
        return (await self._device.get(member)).unwrap(member)

    def busy_reader(self, member: str) -> BusyProbe:
        """Return a busy probe that reads a boolean property."""

        async def _busy() -> bool:
            return bool(await self.read(member))

        return _busy

    async def run_operation(
        self,
        name: str,
        command: Command,
        busy: BusyProbe | None,
        *,
        busy_name: str = "IsMoving",
        timeout_seconds: float | None = None,
        progress_probe: ProgressProbe | None = None,
    ) -> CompletionResult:
        """Start an operation and wait for it to finish.

        Emits ISSUE verdicts for a synchronous command that returned while
        still busy and for a wait that timed out. The caller classifies a
        failed command and validates the final state.

        Args:
            name: Check name.
            command: Device call that starts the operation.
            busy: Busy probe, or None when the device has none.
            busy_name: Busy indicator name used in messages.
            timeout_seconds: Overrides the configured operation timeout.
            progress_probe: Status string provider shown while waiting, e.g.
                distance travelled out of distance to go. Elapsed time is
                shown when omitted.

        Returns:
            CompletionResult for the operation.

        Raises:
            RunCancelledError: If cancellation was requested during the wait.
        """
        timeout = timeout_seconds or self._settings.operation_timeout_seconds
        self._context.set_action(f"Waiting for {name} to complete")
        completion = await run_to_completion(
            command,
            busy,
            cancellation=self._context.cancellation,
            threshold_ms=self._settings.async_threshold_ms,
            poll_interval_ms=self._settings.poll_interval_ms,
            timeout_seconds=timeout,
            progress_probe=progress_probe,
            on_status=self._context.set_status,
        )
        if completion.cancelled:
            self._context.cancellation.raise_if_cancelled()
        if completion.busy_after_sync:
            self._context.record(
                name,
                Verdict.ISSUE,
                f"{name} was assumed synchronous but {busy_name} was True after the method completed",
            )
        if completion.timed_out:
            self._context.record(name, Verdict.ISSUE, f"{name} did not complete within {timeout:.1f} seconds")
        self._context.set_action("")
        return completion

    async def measure_rate(self, member: str, requires: tuple[str, ...] = ()) -> None:
        """Sample the transaction rate of reading member and emit the verdict."""
        name = f"{member} Performance"
        self.begin_check(name)
        missing = self._context.missing_flags(requires)
        if missing:
            self._context.record(name, Verdict.INFO, "Skipping test as property is not supported")
            return
        try:
            sample = await sample_rate(
                lambda: self._device.get(member),
                self._settings.performance_window_seconds,
                self._context.cancellation,
                self._context.set_status,
            )
        except SampleAbortedError as e:
            self._context.record(name, Verdict.INFO, f"Unable to complete test: {e.result.message}")
            return
        if sample.cancelled:
            self._context.cancellation.raise_if_cancelled()
        self._context.record(name, rate_verdict(sample.rate), rate_message(member, sample.rate))

    async def guarded(
        self,
        name: str,
        action: Callable[[], Awaitable[Any]],
        policy: RequirementPolicy = RequirementPolicy.MANDATORY,
    ) -> Any:
        """Run a hand-written check, classifying any unwrapped device failure.

        A value the device returned that cannot be converted (ValueError or
        TypeError from the body) is an ERROR for this check only; the phase
        continues with the next check.

        Args:
            name: Check name for the failure verdict.
            action: The check body.
            policy: Policy applied to a DeviceCallError escaping the body.

        Returns:
            The body's return value, or None if the body failed.
        """
        try:
            return await action()
        except DeviceCallError as e:
            self.record_outcome(name, policy, e.result, member=e.member)
        except (ValueError, TypeError) as e:
            logger.warning("%s: unexpected value from device: %s", name, e)
            self._context.record(name, Verdict.ERROR, f"Unexpected value from device: {e}")
        return None
