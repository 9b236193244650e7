"""Unit tests for the simulator REST API server."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from conform_alpaca.protocol import DRIVER_ERROR_BASE, INVALID_VALUE, NOT_IMPLEMENTED
from conform_core.types.device import ErrorKind

from conform_sim.rotator import RotatorConfig, SimulatedRotator
from conform_sim.server import create_app, parse_args

BASE = "/api/v1/rotator/0"


@pytest.fixture
def rotator() -> SimulatedRotator:
    """Create a fast simulated rotator."""
    return SimulatedRotator(RotatorConfig(speed=36000.0))


@pytest.fixture
def client(rotator: SimulatedRotator) -> TestClient:
    """Create a test client serving the rotator."""
    return TestClient(create_app(rotator))


def connect(client: TestClient) -> None:
    response = client.put(f"{BASE}/connected", data={"Connected": "True", "ClientTransactionID": "1"})
    assert response.json()["ErrorNumber"] == 0


class TestManagementEndpoints:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["device_type"] == "rotator"
        assert data["connected"] is False

    def test_api_versions(self, client: TestClient) -> None:
        assert client.get("/management/apiversions").json()["Value"] == [1]

    def test_description(self, client: TestClient) -> None:
        value = client.get("/management/v1/description").json()["Value"]

        assert value["ServerName"] == "Conform Device Simulator"

    def test_configured_devices(self, client: TestClient) -> None:
        devices = client.get("/management/v1/configureddevices").json()["Value"]

        assert devices == [
            {
                "DeviceName": "Rotator Simulator",
                "DeviceType": "rotator",
                "DeviceNumber": 0,
                "UniqueID": "conform-sim-rotator-0",
            }
        ]


class TestDeviceEndpoints:
    def test_get_property(self, client: TestClient) -> None:
        response = client.get(f"{BASE}/interfaceversion", params={"ClientTransactionID": "7"})

        data = response.json()
        assert data["Value"] == 3
        assert data["ErrorNumber"] == 0
        assert data["ClientTransactionID"] == 7
        assert data["ServerTransactionID"] > 0

    def test_server_transaction_ids_increase(self, client: TestClient) -> None:
        first = client.get(f"{BASE}/name").json()["ServerTransactionID"]
        second = client.get(f"{BASE}/name").json()["ServerTransactionID"]

        assert second > first

    def test_not_connected_error(self, client: TestClient) -> None:
        data = client.get(f"{BASE}/position").json()

        assert data["ErrorNumber"] == DRIVER_ERROR_BASE
        assert data["ErrorMessage"] == "Not connected"
        assert "Value" not in data

    def test_connect_and_read(self, client: TestClient, rotator: SimulatedRotator) -> None:
        connect(client)

        assert rotator.connected
        assert client.get(f"{BASE}/position").json()["Value"] == 0.0

    def test_method_call(self, client: TestClient, rotator: SimulatedRotator) -> None:
        connect(client)

        response = client.put(f"{BASE}/moveabsolute", data={"Position": "45", "ClientID": "1"})

        assert response.json()["ErrorNumber"] == 0
        assert rotator.call_log[-1] == ("call", "MoveAbsolute")

    def test_invalid_value_error(self, client: TestClient) -> None:
        connect(client)

        data = client.put(f"{BASE}/moveabsolute", data={"Position": "405"}).json()

        assert data["ErrorNumber"] == INVALID_VALUE
        assert "outside the range" in data["ErrorMessage"]

    def test_not_implemented_error(self, client: TestClient, rotator: SimulatedRotator) -> None:
        connect(client)
        rotator.inject_fault("StepSize", ErrorKind.NOT_IMPLEMENTED)

        assert client.get(f"{BASE}/stepsize").json()["ErrorNumber"] == NOT_IMPLEMENTED

    def test_property_write(self, client: TestClient) -> None:
        connect(client)

        client.put(f"{BASE}/reverse", data={"Reverse": "True"})

        assert client.get(f"{BASE}/reverse").json()["Value"] is True

    def test_property_write_missing_value(self, client: TestClient) -> None:
        connect(client)

        response = client.put(f"{BASE}/reverse", data={"ClientID": "1"})

        assert response.status_code == 400

    def test_body_not_utf8(self, client: TestClient) -> None:
        connect(client)

        response = client.put(
            f"{BASE}/reverse",
            content=b"Reverse=\xff\xfe",
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )

        assert response.status_code == 400
        assert "UTF-8" in response.text
        assert client.get(f"{BASE}/reverse").json()["Value"] is False

    def test_unknown_member(self, client: TestClient) -> None:
        assert client.get(f"{BASE}/altitude").status_code == 400

    def test_wrong_device_number(self, client: TestClient) -> None:
        assert client.get("/api/v1/rotator/1/name").status_code == 400

    def test_wrong_device_type(self, client: TestClient) -> None:
        assert client.get("/api/v1/focuser/0/name").status_code == 400


class TestParseArgs:
    def test_defaults(self) -> None:
        args = parse_args([])

        assert args.device_type == "rotator"
        assert args.port == 11111
        assert not args.synchronous

    def test_device_type(self) -> None:
        args = parse_args(["--device-type", "covercalibrator", "--port", "8000"])

        assert args.device_type == "covercalibrator"
        assert args.port == 8000
