"""Pydantic models for the simulator's Alpaca REST API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel


class AlpacaResponse(BaseModel):
    """Response envelope for every device member request."""

    Value: Any = None
    ClientTransactionID: int = 0
    ServerTransactionID: int = 0
    ErrorNumber: int = 0
    ErrorMessage: str = ""


class ConfiguredDevice(BaseModel):
    """Entry in the management configured-devices list."""

    DeviceName: str
    DeviceType: str
    DeviceNumber: int
    UniqueID: str


class ServerDescription(BaseModel):
    """Management server description."""

    ServerName: str
    Manufacturer: str
    ManufacturerVersion: str
    Location: str


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    device_type: str
    connected: bool
