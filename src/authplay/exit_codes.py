"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~authplay.exceptions.AuthplayError` subclass.
Shell wrappers can inspect the exit code to tell a denied authorization
apart from an unreachable relay without parsing stderr.

Example::

    $ authplay login github
    $ echo $?
    3   # EXIT_FLOW_FAILURE -- the provider denied or the code expired
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_FLOW_FAILURE = 3
"""The device authorization flow failed (denied, expired, misconfigured)."""

EXIT_NOT_FOUND = 4
"""The requested formula, client, or API was not found."""

EXIT_RELAY_ERROR = 6
"""The relay rejected the request or could not reach the provider."""

EXIT_FORMULA_ERROR = 7
"""A formula document could not be loaded or failed validation."""

EXIT_SANDBOX_ERROR = 8
"""A snippet could not be executed by the sandboxed runner."""
