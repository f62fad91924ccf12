"""Device Authorization Grant (:rfc:`8628`) state machine.

* :mod:`~authplay.flow.session` -- :class:`FlowState` and the in-memory
  :class:`DeviceFlowSession`.
* :mod:`~authplay.flow.controller` -- :class:`DeviceFlowController`, the
  polling state machine.
* :mod:`~authplay.flow.transport` -- in-process and HTTP relay transports.
* :mod:`~authplay.flow.scheduler` -- the timer abstraction polls are
  chained on.
"""

from authplay.flow.controller import DEVICE_GRANT_TYPE, EXPIRED_MESSAGE, DeviceFlowController
from authplay.flow.scheduler import LoopScheduler, Scheduler
from authplay.flow.session import DeviceFlowSession, FlowState
from authplay.flow.transport import GatewayTransport, HttpRelayTransport, RelayTransport

__all__ = [
    "DEVICE_GRANT_TYPE",
    "EXPIRED_MESSAGE",
    "DeviceFlowController",
    "DeviceFlowSession",
    "FlowState",
    "GatewayTransport",
    "HttpRelayTransport",
    "LoopScheduler",
    "RelayTransport",
    "Scheduler",
]
