"""How the flow controller reaches the relay.

Two interchangeable transports implement :class:`RelayTransport`:

* :class:`GatewayTransport` calls a :class:`~authplay.relay.RelayGateway`
  in-process (CLI use, tests).
* :class:`HttpRelayTransport` POSTs to a running relay server's
  ``/device-code-relay`` and ``/token-relay`` endpoints, the way a page on
  the relay's own origin does.

Both return the provider's JSON object as a dict and raise
:class:`~authplay.exceptions.RelayError` for everything else: network
failures, non-success relay responses, and bodies that are not JSON
objects.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

import httpx

from authplay.exceptions import RelayError
from authplay.relay.gateway import TARGET_FIELD, RelayGateway

DEVICE_CODE_PATH = "/device-code-relay"
TOKEN_PATH = "/token-relay"


class RelayTransport(Protocol):
    """The two exchanges a device flow needs."""

    async def request_device_code(
        self, target_url: str, fields: dict[str, str]
    ) -> dict[str, Any]: ...

    async def request_token(
        self, target_url: str, fields: dict[str, str]
    ) -> dict[str, Any]: ...


def _require_object(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise RelayError(
            f"Relay returned a malformed body (expected a JSON object, got {type(body).__name__})"
        )
    return body


class GatewayTransport:
    """Drive a :class:`RelayGateway` directly, without an HTTP hop."""

    def __init__(self, gateway: Optional[RelayGateway] = None) -> None:
        self._gateway = gateway or RelayGateway()

    async def request_device_code(
        self, target_url: str, fields: dict[str, str]
    ) -> dict[str, Any]:
        result = await self._gateway.request_device_code({TARGET_FIELD: target_url, **fields})
        return _require_object(result.body)

    async def request_token(
        self, target_url: str, fields: dict[str, str]
    ) -> dict[str, Any]:
        result = await self._gateway.request_token({TARGET_FIELD: target_url, **fields})
        return _require_object(result.body)


class HttpRelayTransport:
    """POST to a relay server reachable at *base_url*.

    Args:
        base_url: Origin of the relay server, e.g. ``http://127.0.0.1:8787``.
        client: Optional shared :class:`httpx.AsyncClient`.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    async def request_device_code(
        self, target_url: str, fields: dict[str, str]
    ) -> dict[str, Any]:
        return await self._post(DEVICE_CODE_PATH, target_url, fields)

    async def request_token(
        self, target_url: str, fields: dict[str, str]
    ) -> dict[str, Any]:
        return await self._post(TOKEN_PATH, target_url, fields)

    async def _post(
        self, path: str, target_url: str, fields: dict[str, str]
    ) -> dict[str, Any]:
        url = self._base_url + path
        data = {TARGET_FIELD: target_url, **fields}
        headers = {"Accept": "application/json"}
        try:
            if self._client is not None:
                response = await self._client.post(
                    url, data=data, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, data=data, headers=headers)
        except httpx.HTTPError as exc:
            raise RelayError(f"Relay request to {url} failed: {exc}") from exc

        try:
            body: Any = response.json()
        except ValueError:
            body = None

        if not response.is_success:
            message = f"Relay answered HTTP {response.status_code}"
            if isinstance(body, dict):
                message = str(body.get("error_description") or body.get("error") or message)
            raise RelayError(
                message,
                status_code=response.status_code,
                payload=body if isinstance(body, dict) else None,
            )
        return _require_object(body)
