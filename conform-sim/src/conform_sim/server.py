"""FastAPI server exposing a simulated device over the Alpaca REST convention.

Example:
    Serve a simulated rotator on port 11111::

        conform-sim --device-type rotator --port 11111

    Then point the harness at it::

        conform run --device-type rotator --url http://127.0.0.1:11111
"""

from __future__ import annotations

import argparse
import itertools
import logging
from typing import Any
from urllib.parse import parse_qs

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from conform_alpaca.protocol import TRANSACTION_PARAMS, error_code_for
from conform_core.types.common import DeviceType
from conform_core.types.device import DeviceResult, ErrorKind

from conform_sim.base import SimulatedDevice
from conform_sim.factory import create_simulator
from conform_sim.models import AlpacaResponse, ConfiguredDevice, HealthResponse, ServerDescription

logger = logging.getLogger(__name__)

__version__ = "0.1.0"


def create_app(device: SimulatedDevice, device_number: int = 0) -> FastAPI:
    """Create a FastAPI application serving one simulated device.

    Args:
        device: The simulator to expose.
        device_number: Alpaca device number it is served under.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(
        title="Conform Device Simulator",
        description="Simulated device exposed over the Alpaca REST convention",
        version=__version__,
    )
    app.state.device = device
    app.state.device_number = device_number
    app.state.transactions = itertools.count(1)

    app.add_api_route("/health", _health, methods=["GET"], response_model=HealthResponse)
    app.add_api_route("/management/apiversions", _api_versions, methods=["GET"])
    app.add_api_route("/management/v1/description", _description, methods=["GET"])
    app.add_api_route("/management/v1/configureddevices", _configured_devices, methods=["GET"])
    app.add_api_route("/api/v1/{device_type}/{number}/{member}", _get_member, methods=["GET"])
    app.add_api_route("/api/v1/{device_type}/{number}/{member}", _put_member, methods=["PUT"])
    return app


def _device(request: Request) -> SimulatedDevice:
    device: SimulatedDevice = request.app.state.device
    return device


def _envelope(request: Request, client_transaction: int, **fields: Any) -> dict[str, Any]:
    return AlpacaResponse(
        ClientTransactionID=client_transaction,
        ServerTransactionID=next(request.app.state.transactions),
        **fields,
    ).model_dump()


async def _health(request: Request) -> HealthResponse:
    device = _device(request)
    return HealthResponse(status="healthy", device_type=device.device_type, connected=device.connected)


async def _api_versions(request: Request) -> dict[str, Any]:
    return _envelope(request, 0, Value=[1])


async def _description(request: Request) -> dict[str, Any]:
    description = ServerDescription(
        ServerName="Conform Device Simulator",
        Manufacturer="conform",
        ManufacturerVersion=__version__,
        Location="localhost",
    )
    return _envelope(request, 0, Value=description.model_dump())


async def _configured_devices(request: Request) -> dict[str, Any]:
    device = _device(request)
    number = request.app.state.device_number
    entry = ConfiguredDevice(
        DeviceName=device.config.name,
        DeviceType=device.device_type,
        DeviceNumber=number,
        UniqueID=f"conform-sim-{device.device_type}-{number}",
    )
    return _envelope(request, 0, Value=[entry.model_dump()])


def _route_error(request: Request, device_type: str, number: int, member: str) -> tuple[str | None, Any]:
    device = _device(request)
    if device_type.lower() != device.device_type or number != request.app.state.device_number:
        return None, PlainTextResponse(f"No {device_type} device number {number}", status_code=400)
    canonical = device.resolve(member)
    if canonical is None:
        return None, PlainTextResponse(f"Unknown member {member}", status_code=400)
    return canonical, None


def _client_transaction(params: dict[str, str]) -> int:
    for name, value in params.items():
        if name.lower() == "clienttransactionid":
            try:
                return int(value)
            except ValueError:
                return 0
    return 0


def _respond(request: Request, client_transaction: int, result: DeviceResult, include_value: bool) -> JSONResponse:
    if result.failed:
        code = result.code or error_code_for(result.error or ErrorKind.OTHER)
        body = _envelope(request, client_transaction, ErrorNumber=code, ErrorMessage=result.message)
        body.pop("Value", None)
        return JSONResponse(body)
    body = _envelope(request, client_transaction, Value=result.value)
    if not include_value:
        body.pop("Value", None)
    return JSONResponse(body)


async def _get_member(request: Request, device_type: str, number: int, member: str) -> Any:
    canonical, error = _route_error(request, device_type, number, member)
    if error is not None:
        return error
    params = dict(request.query_params)
    result = await _device(request).get(canonical)
    return _respond(request, _client_transaction(params), result, include_value=True)


async def _put_member(request: Request, device_type: str, number: int, member: str) -> Any:
    canonical, error = _route_error(request, device_type, number, member)
    if error is not None:
        return error
    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError:
        return PlainTextResponse("Request body is not valid UTF-8", status_code=400)
    params = {name: values[-1] for name, values in parse_qs(body, keep_blank_values=True).items()}
    device_params = {name: value for name, value in params.items() if name.lower() not in TRANSACTION_PARAMS}
    device = _device(request)

    if device.is_method(canonical):
        result = await device.call(canonical, **device_params)
        return _respond(request, _client_transaction(params), result, include_value=result.value is not None)

    value = next((v for name, v in device_params.items() if name.lower() == canonical.lower()), None)
    if value is None:
        return PlainTextResponse(f"Missing parameter {canonical}", status_code=400)
    result = await device.put(canonical, value)
    return _respond(request, _client_transaction(params), result, include_value=False)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Serve a simulated device over Alpaca REST")
    parser.add_argument(
        "--device-type",
        default="rotator",
        choices=[device_type.value for device_type in DeviceType],
        help="Device category to simulate (default: rotator)",
    )
    parser.add_argument("--device-number", type=int, default=0, help="Alpaca device number (default: 0)")
    parser.add_argument("--host", default="127.0.0.1", help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=11111, help="Port to listen on (default: 11111)")
    parser.add_argument(
        "--synchronous", action="store_true", help="Make motion commands block until complete"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    device = create_simulator(DeviceType.parse(args.device_type), asynchronous=not args.synchronous)
    app = create_app(device, device_number=args.device_number)
    logger.info("Serving simulated %s on %s:%d", device.device_type, args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
