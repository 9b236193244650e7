"""Alpaca REST convention: error numbers and value encoding.

Alpaca devices are reached at ``/api/v1/{device_type}/{device_number}/{member}``.
Reads are GET requests with query parameters; writes and method calls are PUT
requests with form-encoded parameters. Every response is a JSON object with
``Value`` (reads only), ``ErrorNumber``, ``ErrorMessage``,
``ClientTransactionID`` and ``ServerTransactionID``.
"""

from __future__ import annotations

from typing import Any

from conform_core.types.device import ErrorKind

API_VERSION = 1

NOT_IMPLEMENTED = 0x400
INVALID_VALUE = 0x401
VALUE_NOT_SET = 0x402
NOT_CONNECTED = 0x407
INVALID_WHILE_PARKED = 0x408
INVALID_WHILE_SLAVED = 0x409
INVALID_OPERATION = 0x40B
ACTION_NOT_IMPLEMENTED = 0x40C
OPERATION_CANCELLED = 0x40E
DRIVER_ERROR_BASE = 0x500
DRIVER_ERROR_MAX = 0xFFF

_KIND_BY_CODE: dict[int, ErrorKind] = {
    NOT_IMPLEMENTED: ErrorKind.NOT_IMPLEMENTED,
    ACTION_NOT_IMPLEMENTED: ErrorKind.NOT_IMPLEMENTED,
    INVALID_VALUE: ErrorKind.INVALID_VALUE,
    INVALID_OPERATION: ErrorKind.INVALID_OPERATION,
}

_CODE_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_IMPLEMENTED: NOT_IMPLEMENTED,
    ErrorKind.INVALID_VALUE: INVALID_VALUE,
    ErrorKind.INVALID_OPERATION: INVALID_OPERATION,
    ErrorKind.OTHER: DRIVER_ERROR_BASE,
}

# Transaction parameters carried on every request, never passed to the device
TRANSACTION_PARAMS = frozenset({"clientid", "clienttransactionid"})


def error_kind_for(code: int) -> ErrorKind:
    """Map an Alpaca error number to an ErrorKind.

    Args:
        code: Non-zero ErrorNumber from a response.

    Returns:
        The matching kind; unlisted numbers, including driver-specific
        0x500-0xFFF errors, map to OTHER.
    """
    return _KIND_BY_CODE.get(code, ErrorKind.OTHER)


def error_code_for(kind: ErrorKind) -> int:
    """Map an ErrorKind to the Alpaca error number a server reports."""
    return _CODE_BY_KIND[kind]


def encode_value(value: Any) -> str:
    """Encode a parameter value for a form-encoded PUT body.

    Booleans use the ``True``/``False`` spelling Alpaca servers expect.
    """
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


def member_path(device_type: str, device_number: int, member: str) -> str:
    """Return the URL path of a device member."""
    return f"/api/v{API_VERSION}/{device_type.lower()}/{device_number}/{member.lower()}"
