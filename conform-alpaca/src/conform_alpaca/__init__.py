"""Alpaca REST transport for the conformance harness.

Provides AlpacaDevice, a ``DeviceHandle`` that speaks the Alpaca REST
convention with httpx, and the protocol's error numbers and value encoding.
"""

from conform_alpaca.client import AlpacaDevice
from conform_alpaca.protocol import (
    ACTION_NOT_IMPLEMENTED,
    INVALID_OPERATION,
    INVALID_VALUE,
    NOT_CONNECTED,
    NOT_IMPLEMENTED,
    encode_value,
    error_code_for,
    error_kind_for,
    member_path,
)

__all__ = [
    "ACTION_NOT_IMPLEMENTED",
    "INVALID_OPERATION",
    "INVALID_VALUE",
    "NOT_CONNECTED",
    "NOT_IMPLEMENTED",
    "AlpacaDevice",
    "encode_value",
    "error_code_for",
    "error_kind_for",
    "member_path",
]
