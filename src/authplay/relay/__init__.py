"""Same-origin relay to OAuth provider endpoints.

* :mod:`~authplay.relay.gateway` -- the stateless :class:`RelayGateway`
  that strips ``_target_url`` and forwards the remaining form fields.
* :mod:`~authplay.relay.server` -- the FastAPI application exposing
  ``/device-code-relay``, ``/token-relay`` and the ``/api/formulas`` read
  API.
"""

from authplay.relay.gateway import TARGET_FIELD, RelayGateway, RelayResult
from authplay.relay.server import create_app, run_server

__all__ = ["TARGET_FIELD", "RelayGateway", "RelayResult", "create_app", "run_server"]
