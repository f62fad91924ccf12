"""OAuth2 Device Authorization Grant (:rfc:`8628`) state machine.

Flow:
    1. POST the formula's ``device`` endpoint (through the relay) to obtain
       ``device_code`` + ``user_code``.
    2. Emit ``on_code_received`` so a view can show "Go to
       {verification_uri} and enter {user_code}".
    3. Poll the ``token`` endpoint on the provider's cadence until the user
       authorizes, the provider refuses, or the code expires.
    4. On success derive ``Authorization: Bearer <token>`` and stop.

Polls are chained, never concurrent: the next timer is armed only after
the previous response (or exception) has been fully handled. Every timer
carries the generation number of the session that armed it, so a timer
that fires after :meth:`DeviceFlowController.start` has replaced the
session does nothing.

Error policy:

* ``authorization_pending`` -- poll again at the same interval.
* ``slow_down`` -- add five seconds to the interval, permanently.
* any other ``error`` -- fail with ``error_description`` or the code.
* exceptions raised by the transport and unrecognised bodies -- poll
  again; only the expiry deadline ends a session that keeps misbehaving.
"""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Any, Callable, Optional, Union

from authplay.config import FlowSettings
from authplay.events import FlowListener
from authplay.exceptions import FlowConfigError
from authplay.flow.scheduler import LoopScheduler, Scheduler, TimerHandle
from authplay.flow.session import DeviceFlowSession, FlowState
from authplay.flow.transport import RelayTransport
from authplay.models import Client, Formula

logger = logging.getLogger(__name__)

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
EXPIRED_MESSAGE = "Device code expired -- please try again"


class DeviceFlowController:
    """Drive one formula's device flow through a relay transport.

    Args:
        formula: The formula supplying endpoints and scope. Must define a
            ``device_code`` method with ``device`` and ``token`` endpoints.
        transport: How to reach the relay.
        client: A :class:`~authplay.models.Client`, a client name, or
            ``None`` for the formula's first device-code client.
        scheduler: Timer source; defaults to the running event loop.
        clock: Monotonic clock in seconds.
        listener: Receives state and code signals.
        settings: Polling defaults.

    Raises:
        FlowConfigError: If the formula or client cannot run a device flow.

    Example::

        controller = DeviceFlowController(formula, GatewayTransport())
        await controller.start()
        session = await controller.wait()
        print(session.credential)
    """

    def __init__(
        self,
        formula: Formula,
        transport: RelayTransport,
        client: Union[Client, str, None] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Callable[[], float] = time.monotonic,
        listener: Optional[FlowListener] = None,
        settings: Optional[FlowSettings] = None,
    ) -> None:
        method = formula.device_method
        if method is None:
            raise FlowConfigError(
                f"Formula '{formula.id}' has no device_code method with "
                "'device' and 'token' endpoints"
            )
        self._formula = formula
        self._device_url = method.endpoints["device"]
        self._token_url = method.endpoints["token"]
        self._scope = method.scope
        self._client = self._resolve_client(formula, client)
        self._transport = transport
        self._scheduler: Scheduler = scheduler or LoopScheduler()
        self._clock = clock
        self._listener = listener or FlowListener()
        self._settings = settings or FlowSettings()

        self._session = DeviceFlowSession()
        self._generation = 0
        self._timer: Optional[TimerHandle] = None
        self._finished: Optional[asyncio.Event] = None

    @staticmethod
    def _resolve_client(formula: Formula, client: Union[Client, str, None]) -> Client:
        if isinstance(client, Client):
            return client
        resolved = formula.device_flow_client(client)
        if resolved is None:
            if client is None:
                raise FlowConfigError(
                    f"Formula '{formula.id}' bundles no client that supports device_code"
                )
            raise FlowConfigError(
                f"Client '{client}' of formula '{formula.id}' does not support device_code"
            )
        return resolved

    @property
    def session(self) -> DeviceFlowSession:
        """The current session (a fresh ``IDLE`` one before the first start)."""
        return self._session

    @property
    def formula(self) -> Formula:
        return self._formula

    @property
    def client(self) -> Client:
        return self._client

    # ------------------------------------------------------------------ #
    # Public actions
    # ------------------------------------------------------------------ #

    async def start(self) -> DeviceFlowSession:
        """Begin a new attempt, discarding any previous session.

        Requests a device code and, on success, arms the first poll. Relay
        failures move the new session straight to ``FAILED``.

        Returns:
            The new session, in ``AWAITING_USER_ACTION`` or ``FAILED``.
        """
        self._invalidate()
        generation = self._generation
        session = DeviceFlowSession(state=FlowState.REQUESTING, started_at=self._clock())
        self._session = session
        self._finished = asyncio.Event()
        self._emit_state()

        fields = {"client_id": self._client.id}
        if self._scope:
            fields["scope"] = self._scope

        logger.debug("Requesting device code for %s from %s", self._formula.id, self._device_url)
        try:
            data = await self._transport.request_device_code(self._device_url, fields)
        except Exception as exc:
            if self._is_current(generation):
                logger.debug("Device code request failed", exc_info=True)
                self._fail(str(exc) or type(exc).__name__)
            return session
        if not self._is_current(generation):
            return session

        error = data.get("error")
        if error:
            self._fail(str(data.get("error_description") or error))
            return session
        for key in ("device_code", "user_code"):
            if not data.get(key):
                self._fail(f"Device authorization response missing '{key}'")
                return session
        verification_uri = data.get("verification_uri") or data.get("verification_url")
        if not verification_uri:
            self._fail("Device authorization response missing 'verification_uri'")
            return session

        interval = data.get("interval")
        if interval is None:
            interval = self._settings.default_interval
        expires_in = data.get("expires_in")
        if expires_in is None:
            expires_in = self._settings.default_expires_in
        try:
            session.poll_interval_ms = int(float(interval) * 1000)
            session.expires_at = self._clock() + float(expires_in)
        except (TypeError, ValueError):
            self._fail("Device authorization response has a non-numeric interval or expiry")
            return session

        session.device_code = str(data["device_code"])
        session.user_code = str(data["user_code"])
        session.verification_uri = str(verification_uri)
        if data.get("verification_uri_complete"):
            session.verification_uri_complete = str(data["verification_uri_complete"])

        self._set_state(FlowState.AWAITING_USER_ACTION)
        self._emit("on_code_received", session)
        self._schedule_poll(generation)
        return session

    def cancel(self) -> None:
        """Abandon the current session without touching its state.

        The pending timer is dropped and any in-flight poll result is
        ignored when it arrives.
        """
        self._invalidate()

    async def wait(self) -> DeviceFlowSession:
        """Wait until the current session ends (or is cancelled/replaced)."""
        if self._finished is not None:
            await self._finished.wait()
        return self._session

    # ------------------------------------------------------------------ #
    # Polling
    # ------------------------------------------------------------------ #

    async def _poll(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        session = self._session
        self._timer = None

        if self._clock() > session.expires_at:
            self._fail(EXPIRED_MESSAGE)
            return

        if session.state != FlowState.POLLING:
            self._set_state(FlowState.POLLING)

        if session.device_code is None:
            self._fail("Device flow session has no device code")
            return
        fields = {
            "client_id": self._client.id,
            "device_code": session.device_code,
            "grant_type": DEVICE_GRANT_TYPE,
        }
        if self._client.secret:
            fields["client_secret"] = self._client.secret

        session.poll_count += 1
        try:
            data = await self._transport.request_token(self._token_url, fields)
        except Exception as exc:
            if self._is_current(generation):
                logger.debug("Poll %d failed, retrying: %r", session.poll_count, exc)
                self._schedule_poll(generation)
            return
        if not self._is_current(generation):
            return

        self._handle_token_response(data, generation)

    def _handle_token_response(self, data: dict[str, Any], generation: int) -> None:
        session = self._session
        error = data.get("error")

        if error == "authorization_pending":
            session.malformed_count = 0
            self._schedule_poll(generation)
        elif error == "slow_down":
            session.malformed_count = 0
            session.poll_interval_ms += self._settings.slow_down_increment * 1000
            logger.debug("Provider asked to slow down; interval now %d ms", session.poll_interval_ms)
            self._schedule_poll(generation)
        elif error:
            self._fail(str(data.get("error_description") or error))
        elif data.get("access_token"):
            self._authenticate(str(data["access_token"]))
        else:
            session.malformed_count += 1
            if session.malformed_count == self._settings.malformed_warning_threshold:
                logger.warning(
                    "%d consecutive token responses from %s had no recognised field; "
                    "still polling until the code expires",
                    session.malformed_count,
                    self._token_url,
                )
            self._schedule_poll(generation)

    def _schedule_poll(self, generation: int) -> None:
        delay = self._session.poll_interval_ms / 1000
        self._timer = self._scheduler.call_later(delay, partial(self._poll, generation))

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def _authenticate(self, access_token: str) -> None:
        session = self._session
        session.credential = f"Bearer {access_token}"
        session.error = None
        self._timer = None
        logger.info("Device flow for %s authenticated after %d polls", self._formula.id, session.poll_count)
        self._set_state(FlowState.AUTHENTICATED)
        self._finish()

    def _fail(self, message: str) -> None:
        session = self._session
        session.error = message
        self._cancel_timer()
        logger.info("Device flow for %s failed: %s", self._formula.id, message)
        self._set_state(FlowState.FAILED)
        self._finish()

    def _set_state(self, state: FlowState) -> None:
        self._session.state = state
        self._emit_state()

    def _finish(self) -> None:
        if self._finished is not None:
            self._finished.set()

    def _invalidate(self) -> None:
        self._generation += 1
        self._cancel_timer()
        self._finish()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    # ------------------------------------------------------------------ #
    # Signals
    # ------------------------------------------------------------------ #

    def _emit_state(self) -> None:
        self._emit("on_state_changed", self._session)

    def _emit(self, signal: str, session: DeviceFlowSession) -> None:
        try:
            getattr(self._listener, signal)(session)
        except Exception:
            logger.exception("Flow listener %s raised", signal)
