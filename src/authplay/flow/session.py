"""Per-attempt state of a device authorization flow.

A :class:`DeviceFlowSession` lives only in memory. The controller creates a
fresh one on every :meth:`~authplay.flow.controller.DeviceFlowController.start`
and is its only writer; views receive it by reference through the
listener signals.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_INTERVAL_MS = 5000
DEFAULT_EXPIRES_IN = 900


class FlowState(str, Enum):
    """States of the device authorization state machine.

    ``IDLE -> REQUESTING -> AWAITING_USER_ACTION -> POLLING ->
    {AUTHENTICATED | FAILED}``. Both end states are terminal for the
    session; a new attempt starts a new session.
    """

    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_USER_ACTION = "awaiting_user_action"
    POLLING = "polling"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


@dataclass
class DeviceFlowSession:
    """Mutable session record owned by one controller.

    Attributes:
        state: Current :class:`FlowState`.
        device_code: Opaque code sent back on every poll.
        user_code: Short code the user types at the verification URI.
        verification_uri: Where the user authorizes the device.
        verification_uri_complete: Optional URI with the code pre-filled.
        poll_interval_ms: Current polling cadence. Only ever grows.
        started_at: Clock reading when the session was created.
        expires_at: Clock reading after which polling stops.
        credential: ``"Bearer <token>"`` once authenticated.
        error: Human-readable failure reason once failed.
        poll_count: Token requests issued so far.
        malformed_count: Consecutive poll responses with no recognised field.
    """

    state: FlowState = FlowState.IDLE
    device_code: Optional[str] = None
    user_code: Optional[str] = None
    verification_uri: Optional[str] = None
    verification_uri_complete: Optional[str] = None
    poll_interval_ms: int = DEFAULT_INTERVAL_MS
    started_at: float = 0.0
    expires_at: float = 0.0
    credential: Optional[str] = None
    error: Optional[str] = None
    poll_count: int = 0
    malformed_count: int = 0

    @property
    def headers(self) -> dict[str, str]:
        """Authorization header derived from the credential (empty until authenticated)."""
        if self.credential is None:
            return {}
        return {"Authorization": self.credential}
