"""Tests for the conform command line interface."""

from __future__ import annotations

import argparse
import json
import textwrap
from pathlib import Path
from types import SimpleNamespace

import pytest

from conform_core.types.common import DeviceType

from conform_testcase.tester import TesterStatus

from conform_runner.cli import (
    EXIT_CANCELLED,
    EXIT_CONFIG_ERROR,
    EXIT_FAILED,
    EXIT_OK,
    build_config,
    exit_code_for,
    main,
)


def run_args(**overrides: object) -> argparse.Namespace:
    values: dict[str, object] = {
        "config": None,
        "device_type": None,
        "url": None,
        "device_number": 0,
        "simulate": False,
        "report": None,
        "performance": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.fixture
def sim_yaml(tmp_path: Path) -> Path:
    """Create a run config for a fast in-process cover calibrator."""
    config = tmp_path / "cover.yaml"
    config.write_text(
        textwrap.dedent("""\
        device:
          type: covercalibrator
          transport: simulator
          simulator:
            cover_travel_seconds: 0.05
            warmup_seconds: 0.02

        timing:
          poll_interval_ms: 10

        timeouts:
          covercalibrator: 5
        """)
    )
    return config


class TestBuildConfig:
    """Tests for build_config."""

    def test_from_url(self) -> None:
        config = build_config(run_args(device_type="Rotator", url="http://localhost:11111", device_number=1))

        assert config.device.type == DeviceType.ROTATOR
        assert config.device.url == "http://localhost:11111"
        assert config.device.number == 1
        assert config.report_path is None

    def test_simulate_with_overrides(self) -> None:
        config = build_config(run_args(device_type="focuser", simulate=True, report="out.json", performance=True))

        assert config.device.transport == "simulator"
        assert config.report_path == Path("out.json")
        assert config.test_performance

    def test_from_file(self, sim_yaml: Path) -> None:
        config = build_config(run_args(config=str(sim_yaml)))

        assert config.device.type == DeviceType.COVER_CALIBRATOR
        assert config.poll_interval_ms == 10

    def test_requires_device(self) -> None:
        with pytest.raises(ValueError, match="--config or --device-type"):
            build_config(run_args())

    def test_requires_url_or_simulate(self) -> None:
        with pytest.raises(ValueError, match="--url or --simulate"):
            build_config(run_args(device_type="rotator"))


class TestExitCode:
    """Tests for exit_code_for."""

    @pytest.mark.parametrize(
        "status,code",
        [
            (TesterStatus.PASSED, EXIT_OK),
            (TesterStatus.FAILED, EXIT_FAILED),
            (TesterStatus.ABORTED, EXIT_CANCELLED),
        ],
    )
    def test_status_maps_to_exit_code(self, status: TesterStatus, code: int) -> None:
        assert exit_code_for(SimpleNamespace(status=status)) == code  # type: ignore[arg-type]


class TestMain:
    """Tests for main."""

    def test_no_command(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == EXIT_FAILED
        assert "usage" in capsys.readouterr().out

    def test_devices(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["devices"]) == EXIT_OK

        out = capsys.readouterr().out
        for device_type in DeviceType:
            assert device_type.value in out

    def test_missing_config_file(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        code = main(["run", "--config", str(tmp_path / "missing.yaml")])

        assert code == EXIT_CONFIG_ERROR
        assert "Run config not found" in capsys.readouterr().out

    def test_invalid_arguments(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["run", "--device-type", "telescope", "--simulate"]) == EXIT_CONFIG_ERROR
        assert "Unknown device type" in capsys.readouterr().out

    def test_run_simulator(self, sim_yaml: Path, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        report = tmp_path / "report.json"

        code = main(["run", "--config", str(sim_yaml), "--report", str(report)])

        assert code == EXIT_OK
        out = capsys.readouterr().out
        assert "covercalibrator conformance: PASSED" in out
        assert json.loads(report.read_text())["status"] == "passed"
