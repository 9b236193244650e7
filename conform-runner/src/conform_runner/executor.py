"""Conformance run execution for conform-runner.

The executor turns a ConformConfig into a device handle and a category
tester, runs the tester to completion and writes the report.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack

from conform_alpaca.client import AlpacaDevice
from conform_core.interfaces.device import DeviceHandle
from conform_core.interfaces.reporter import VerdictSink
from conform_devices import create_tester
from conform_sim.factory import create_simulator

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.tester import TesterResult

from conform_runner.config import ConformConfig
from conform_runner.report import LoggingSink, build_report, write_json_report

logger = logging.getLogger(__name__)


class ConformanceExecutor:
    """Runs one configured conformance test.

    Args:
        config: Run configuration.
        sink: Receives every verdict; defaults to a LoggingSink.
    """

    def __init__(self, config: ConformConfig, sink: VerdictSink | None = None) -> None:
        self._config = config
        self._sink = sink or LoggingSink()
        self._result: TesterResult | None = None

    @property
    def config(self) -> ConformConfig:
        """Return the run configuration."""
        return self._config

    @property
    def result(self) -> TesterResult | None:
        """Return the result of the last run, if any."""
        return self._result

    async def _open_device(self, stack: AsyncExitStack) -> DeviceHandle:
        device = self._config.device
        if device.transport == "simulator":
            logger.info("Using in-process %s simulator", device.type.value)
            return create_simulator(device.type, **device.simulator)

        if not device.url:
            raise ValueError("device.url is required for the alpaca transport")
        logger.info("Connecting to %s %d at %s", device.type.value, device.number, device.url)
        return await stack.enter_async_context(
            AlpacaDevice(device.url, device.type.value, device.number, timeout=device.timeout)
        )

    async def run(self, cancellation: CancellationSignal | None = None) -> TesterResult:
        """Run the configured test to completion.

        Args:
            cancellation: Signal that stops the run at the next check boundary.

        Returns:
            TesterResult for the run.

        Raises:
            ValueError: If the configuration cannot be turned into a run.
        """
        settings = self._config.tester_settings()
        async with AsyncExitStack() as stack:
            device = await self._open_device(stack)
            tester = create_tester(
                self._config.device.type,
                device,
                settings,
                sink=self._sink,
                cancellation=cancellation,
            )
            logger.info("Starting %s conformance run %s", tester.name, tester.context.run_id)
            result = await tester.run()

        logger.info(
            "%s run %s finished: %s (%s) in %.1fs",
            tester.name,
            result.run_id,
            result.status.value,
            result.message,
            result.duration_seconds,
        )
        self._result = result

        if self._config.report_path is not None:
            write_json_report(build_report(result), self._config.report_path)
        return result
