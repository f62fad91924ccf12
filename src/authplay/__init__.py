"""authplay -- an OAuth 2.0 device-flow playground for provider formulas.

A *formula* describes how to authenticate against one API provider. This
package loads a catalog of formulas, relays device-flow requests to the
providers from a same-origin server, drives the :rfc:`8628` polling state
machine, and runs user snippets against the provider's API with the
resulting credential in a capability-scoped sandbox.

Typical workflow::

    authplay formulas search github   # find a formula
    authplay serve                    # start the relay + catalog API
    authplay login github             # run the device flow in a terminal

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic formula models.
    catalog: Formula loading, lookup and search.
    relay: The relay gateway and its FastAPI endpoints.
    flow: The device authorization state machine.
    sandbox: The snippet interpreter and runner.
    config: XDG-aware settings and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
