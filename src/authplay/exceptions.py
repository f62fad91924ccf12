"""Exception hierarchy for authplay.

All exceptions inherit from :class:`AuthplayError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`authplay.exit_codes`.
The top-level error handler in :func:`authplay.app.main` catches
``AuthplayError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Relay errors additionally carry the HTTP ``status_code`` and JSON
``payload`` the relay endpoints answer with, so the FastAPI layer never
has to re-derive them.

Subclass hierarchy::

    AuthplayError (exit 1)
    +-- InvalidUsageError       (exit 2)
    +-- FlowError               (exit 3)
    |   +-- FlowConfigError
    +-- NotFoundError           (exit 4)
    +-- RelayError              (exit 6)
    |   +-- RelayInputError     (HTTP 400)
    |   +-- RelayUpstreamError  (HTTP 502)
    +-- FormulaError            (exit 7)
    +-- SandboxError            (exit 8)
    +-- ConfigError             (exit 1)
"""

from __future__ import annotations

from typing import Any

from authplay.exit_codes import (
    EXIT_FLOW_FAILURE,
    EXIT_FORMULA_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_RELAY_ERROR,
    EXIT_SANDBOX_ERROR,
)


class AuthplayError(Exception):
    """Base exception for all authplay errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`authplay.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(AuthplayError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class FlowError(AuthplayError):
    """Raised when a device authorization flow ends in failure."""

    exit_code = EXIT_FLOW_FAILURE


class FlowConfigError(FlowError):
    """Raised when a formula/client pair cannot drive a device flow."""


class NotFoundError(AuthplayError):
    """Raised when a formula, client, or API name does not exist."""

    exit_code = EXIT_NOT_FOUND


class RelayError(AuthplayError):
    """Raised when a relay exchange fails.

    Args:
        message: Human-readable error description.
        status_code: HTTP status the relay answers (or answered) with.
        payload: Optional JSON body. Defaults to an ``error`` /
            ``error_description`` pair built from *message*.
    """

    exit_code = EXIT_RELAY_ERROR
    status_code: int = 502
    error_code: str = "relay_error"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        payload: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {
            "error": self.error_code,
            "error_description": message,
        }


class RelayInputError(RelayError):
    """Raised when a relay request is missing its routing target."""

    status_code = 400
    error_code = "invalid_request"


class RelayUpstreamError(RelayError):
    """Raised when the provider cannot be reached or answers with non-JSON."""

    status_code = 502
    error_code = "upstream_error"


class FormulaError(AuthplayError):
    """Raised when a formula document is malformed or the catalog is inconsistent."""

    exit_code = EXIT_FORMULA_ERROR


class SandboxError(AuthplayError):
    """Raised inside the snippet interpreter for disallowed or failing code."""

    exit_code = EXIT_SANDBOX_ERROR


class ConfigError(AuthplayError):
    """Raised for configuration problems (invalid JSON, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
