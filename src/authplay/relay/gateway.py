"""Stateless same-origin relay to OAuth provider endpoints.

A browser page cannot POST to most providers' device and token endpoints
because of cross-origin restrictions. The relay takes a form body whose
``_target_url`` field names the real endpoint, strips that field, forwards
the rest verbatim, and hands the provider's JSON back untouched.

The gateway makes exactly one upstream request per call. It never retries
and keeps no state between calls; all polling intelligence lives in
:mod:`authplay.flow`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from authplay.exceptions import RelayInputError, RelayUpstreamError

logger = logging.getLogger(__name__)

TARGET_FIELD = "_target_url"
"""Internal form field naming the provider URL to forward to."""

FORWARD_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Accept": "application/json",
}


@dataclass
class RelayResult:
    """The provider's decoded JSON and the status the relay answers with.

    ``status_code`` is always 200: provider error payloads such as
    ``authorization_pending`` are data for the caller, not relay failures.
    ``upstream_status`` keeps the provider's own status for diagnostics.
    """

    body: Any
    status_code: int = 200
    upstream_status: int = 200


class RelayGateway:
    """Forward form-encoded requests to provider endpoints.

    Args:
        client: Optional shared :class:`httpx.AsyncClient`. When omitted a
            short-lived client is created per request.
        timeout: Upstream timeout in seconds.

    Example::

        gateway = RelayGateway()
        result = await gateway.request_token({
            "_target_url": "https://github.com/login/oauth/access_token",
            "client_id": "abc",
            "device_code": "dc",
            "grant_type": "urn:ietf:params:oauth:grant-type:device_code",
        })
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def request_device_code(self, form: Mapping[str, str]) -> RelayResult:
        """Relay a device authorization request (:rfc:`8628` section 3.1)."""
        return await self.forward(form, purpose="device-code")

    async def request_token(self, form: Mapping[str, str]) -> RelayResult:
        """Relay a device access token request (:rfc:`8628` section 3.4)."""
        return await self.forward(form, purpose="token")

    async def forward(self, form: Mapping[str, str], purpose: str = "relay") -> RelayResult:
        """Strip the routing field, POST the rest upstream, return its JSON.

        Args:
            form: Incoming form fields, including :data:`TARGET_FIELD`.
            purpose: Label used in log records.

        Returns:
            A :class:`RelayResult` carrying the upstream JSON unmodified.

        Raises:
            RelayInputError: If ``_target_url`` is missing or blank. No
                network call is made.
            RelayUpstreamError: If the provider is unreachable or answers
                with a body that is not JSON.
        """
        fields = {key: str(value) for key, value in form.items()}
        target = fields.pop(TARGET_FIELD, "").strip()
        if not target:
            raise RelayInputError(f"Missing {TARGET_FIELD} in {purpose} relay request")
        if not target.startswith(("https://", "http://")):
            raise RelayInputError(f"{TARGET_FIELD} must be an http(s) URL, got '{target}'")

        logger.debug("Relaying %s request to %s", purpose, target)
        try:
            response = await self._post(target, fields)
        except httpx.HTTPError as exc:
            logger.warning("Relay %s request to %s failed: %s", purpose, target, exc)
            raise RelayUpstreamError(
                f"Could not reach {target}: {exc}",
                payload={
                    "error": "upstream_unreachable",
                    "error_description": f"Could not reach {target}: {exc}",
                },
            ) from exc

        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RelayUpstreamError(
                f"{target} answered HTTP {response.status_code} with a non-JSON body",
                payload={
                    "error": "invalid_upstream_response",
                    "error_description": (
                        f"{target} answered HTTP {response.status_code} with a non-JSON body"
                    ),
                },
            ) from exc

        logger.debug("Relay %s upstream answered HTTP %s", purpose, response.status_code)
        return RelayResult(body=body, upstream_status=response.status_code)

    async def _post(self, target: str, fields: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                target, data=fields, headers=FORWARD_HEADERS, timeout=self._timeout
            )
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(target, data=fields, headers=FORWARD_HEADERS)
