"""Command-line interface for conform-runner.

Usage:
    # Run the test described by a config file
    conform run --config rotator.yaml --report rotator-report.json

    # Test a device served over Alpaca without a config file
    conform run --device-type rotator --url http://127.0.0.1:11111

    # Test an in-process simulator
    conform run --device-type focuser --simulate

    # List the supported device types
    conform devices

Exit codes:
    0    the run finished without issues or errors
    1    the run reported issues or errors
    2    the configuration is invalid
    130  the run was cancelled
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import signal
import sys
from pathlib import Path

from conform_core.types.common import DeviceType
from conform_devices import TESTERS

from conform_testcase.cancellation import CancellationSignal
from conform_testcase.tester import TesterResult, TesterStatus

from conform_runner.config import ConformConfig, DeviceConfig, load_config
from conform_runner.executor import ConformanceExecutor

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130


def setup_logging(debug: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_config(args: argparse.Namespace) -> ConformConfig:
    """Build the run configuration from command line arguments.

    Raises:
        FileNotFoundError: If --config names a missing file.
        ValueError: If the arguments do not describe a run.
    """
    if args.config:
        config = load_config(args.config)
    else:
        if not args.device_type:
            raise ValueError("Either --config or --device-type is required")
        device_type = DeviceType.parse(args.device_type)
        if args.simulate:
            device = DeviceConfig(type=device_type, transport="simulator")
        elif args.url:
            device = DeviceConfig(type=device_type, url=args.url, number=args.device_number)
        else:
            raise ValueError("--device-type needs either --url or --simulate")
        config = ConformConfig(device=device)

    if args.report:
        config = dataclasses.replace(config, report_path=Path(args.report))
    if args.performance:
        config = dataclasses.replace(config, test_performance=True)
    return config


def exit_code_for(result: TesterResult) -> int:
    """Return the process exit code for a run result."""
    if result.status == TesterStatus.ABORTED:
        return EXIT_CANCELLED
    if result.status == TesterStatus.PASSED:
        return EXIT_OK
    return EXIT_FAILED


async def run_with_signals(executor: ConformanceExecutor) -> TesterResult:
    """Run the executor with SIGINT and SIGTERM wired to cancellation."""
    cancellation = CancellationSignal()
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, cancellation.cancel, f"received {sig.name}")
            installed.append(sig)
        except NotImplementedError:
            logger.debug("Signal handlers are not supported on this platform")
    try:
        return await executor.run(cancellation)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def print_summary(result: TesterResult) -> None:
    """Print the verdict counts and the failing checks."""
    counts = result.counts()
    print(f"\n{result.device_type.value} conformance: {result.status.value.upper()}")
    print(f"  {result.message}")
    print("  " + ", ".join(f"{verdict.value}: {n}" for verdict, n in counts.items()))
    failures = [r for r in result.records if r.verdict.is_failure]
    if failures:
        print("\nIssues and errors:")
        for record in failures:
            print(f"  {record.check_name}: [{record.verdict.value.upper()}] {record.message}")


def cmd_run(args: argparse.Namespace) -> int:
    """Run a conformance test."""
    try:
        config = build_config(args)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}")
        return EXIT_CONFIG_ERROR

    executor = ConformanceExecutor(config)
    try:
        result = asyncio.run(run_with_signals(executor))
    except ValueError as exc:
        print(f"Error: {exc}")
        return EXIT_CONFIG_ERROR

    print_summary(result)
    if config.report_path is not None:
        print(f"\nReport written to: {config.report_path}")
    return exit_code_for(result)


def cmd_devices(args: argparse.Namespace) -> int:
    """List supported device types."""
    for device_type, tester in TESTERS.items():
        print(f"  {device_type.value:<16} {tester.name}")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Device driver conformance tester",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    run_parser = subparsers.add_parser("run", help="Run a conformance test")
    run_parser.add_argument("--config", "-c", help="Run configuration YAML file")
    run_parser.add_argument(
        "--device-type",
        help=f"Device type when no config is given ({', '.join(t.value for t in DeviceType)})",
    )
    run_parser.add_argument("--url", help="Alpaca server URL (e.g., http://127.0.0.1:11111)")
    run_parser.add_argument("--device-number", type=int, default=0, help="Alpaca device number (default: 0)")
    run_parser.add_argument("--simulate", action="store_true", help="Test an in-process simulator")
    run_parser.add_argument("--report", "-r", help="Write a JSON report to this file")
    run_parser.add_argument("--performance", action="store_true", help="Also run the performance phase")
    run_parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers.add_parser("devices", help="List supported device types")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_FAILED

    setup_logging(args.debug)

    if args.command == "run":
        return cmd_run(args)
    if args.command == "devices":
        return cmd_devices(args)

    parser.print_help()
    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
