"""Alpaca HTTP device handle.

Provides an async client implementing the ``DeviceHandle`` protocol over the
Alpaca REST convention.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

import httpx

from conform_core.types.device import DeviceResult, ErrorKind

from conform_alpaca.protocol import encode_value, error_kind_for, member_path

logger = logging.getLogger(__name__)


class AlpacaDevice:
    """Async HTTP device handle for one Alpaca device.

    Driver-side and transport failures are returned as tagged results, never
    raised, so a conformance run survives a misbehaving server.

    Example:
        >>> async with AlpacaDevice("http://127.0.0.1:11111", "rotator") as device:
        ...     result = await device.get("Position")
        ...     await device.call("MoveAbsolute", Position=45.0)
    """

    def __init__(
        self,
        base_url: str,
        device_type: str,
        device_number: int = 0,
        client_id: int = 1,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the device handle.

        Args:
            base_url: Server URL (e.g., "http://127.0.0.1:11111").
            device_type: Alpaca device type (e.g., "rotator").
            device_number: Alpaca device number.
            client_id: ClientID sent with every request.
            timeout: Request timeout in seconds.
            client: Optional httpx client (for testing).
        """
        self._base_url = base_url.rstrip("/")
        self._device_type = device_type.lower()
        self._device_number = device_number
        self._client_id = client_id
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._transactions = itertools.count(1)

    async def __aenter__(self) -> AlpacaDevice:
        """Async context manager entry."""
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this handle created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def device_type(self) -> str:
        """Return the Alpaca device type."""
        return self._device_type

    @property
    def device_number(self) -> int:
        """Return the Alpaca device number."""
        return self._device_number

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)
            self._owns_client = True
        return self._client

    def _transaction(self) -> dict[str, str]:
        return {
            "ClientID": str(self._client_id),
            "ClientTransactionID": str(next(self._transactions)),
        }

    # -------------------------------------------------------------------------
    # DeviceHandle
    # -------------------------------------------------------------------------

    async def get(self, member: str) -> DeviceResult:
        """Read a property with a GET request."""
        client = self._ensure_client()
        path = member_path(self._device_type, self._device_number, member)
        try:
            response = await client.get(path, params=self._transaction())
        except httpx.HTTPError as exc:
            return self._transport_failure("GET", member, exc)
        return self._parse(member, response)

    async def put(self, member: str, value: Any) -> DeviceResult:
        """Write a property with a PUT request carrying ``{member}=value``."""
        return await self._put(member, {member: value})

    async def call(self, member: str, **params: Any) -> DeviceResult:
        """Invoke a method with a PUT request carrying its parameters."""
        return await self._put(member, params)

    async def _put(self, member: str, params: dict[str, Any]) -> DeviceResult:
        client = self._ensure_client()
        path = member_path(self._device_type, self._device_number, member)
        data = {name: encode_value(value) for name, value in params.items()}
        data.update(self._transaction())
        try:
            response = await client.put(path, data=data)
        except httpx.HTTPError as exc:
            return self._transport_failure("PUT", member, exc)
        return self._parse(member, response)

    @staticmethod
    def _transport_failure(verb: str, member: str, exc: Exception) -> DeviceResult:
        logger.debug("%s %s failed: %s", verb, member, exc)
        return DeviceResult.failure(ErrorKind.OTHER, f"Transport error: {exc}")

    @staticmethod
    def _parse(member: str, response: httpx.Response) -> DeviceResult:
        if response.status_code != 200:
            text = response.text.strip()
            logger.debug("%s returned HTTP %d: %s", member, response.status_code, text)
            return DeviceResult.failure(ErrorKind.OTHER, f"HTTP {response.status_code}: {text}")
        try:
            payload = response.json()
        except ValueError:
            return DeviceResult.failure(ErrorKind.OTHER, "Response is not valid JSON")
        if not isinstance(payload, dict):
            return DeviceResult.failure(ErrorKind.OTHER, "Response is not a JSON object")

        code = payload.get("ErrorNumber", 0)
        if not isinstance(code, int):
            return DeviceResult.failure(ErrorKind.OTHER, f"Invalid ErrorNumber: {code!r}")
        if code != 0:
            message = str(payload.get("ErrorMessage", ""))
            logger.debug("%s returned error 0x%X: %s", member, code, message)
            return DeviceResult.failure(error_kind_for(code), message, code)
        return DeviceResult.success(payload.get("Value"))
