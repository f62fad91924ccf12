"""Serve command -- run the relay server.

Starts the FastAPI application from :mod:`authplay.relay.server` under
uvicorn: the two relay endpoints plus the CORS-enabled catalog read API.
"""

from __future__ import annotations

from typing import Optional

import typer

from authplay.exceptions import AuthplayError
from authplay.output import error, info


def serve_command(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(
        None, "--host", help="Interface to bind (default 127.0.0.1)."
    ),
    port: Optional[int] = typer.Option(
        None, "--port", help="Port to listen on (default 8787)."
    ),
    formulas: Optional[str] = typer.Option(
        None, "--formulas", help="Formula directory, file or URL to serve."
    ),
) -> None:
    """Run the OAuth relay and the formula read API.

    Example::

        authplay serve --port 9000
        curl -X POST localhost:9000/device-code-relay \\
            -d _target_url=https://github.com/login/device/code -d client_id=...
    """
    from authplay.catalog import FormulaCatalog
    from authplay.config import resolve_settings
    from authplay.relay import run_server

    if formulas is None and ctx.obj:
        formulas = ctx.obj.get("formulas")

    try:
        settings = resolve_settings(cli_formulas=formulas, cli_host=host, cli_port=port)
        catalog = FormulaCatalog.from_source(settings.formulas_path)
    except AuthplayError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    relay = settings.relay
    info(f"Serving {len(catalog)} formulas on http://{relay.host}:{relay.port}")
    info("Relay endpoints: POST /device-code-relay, POST /token-relay")
    run_server(catalog, host=relay.host, port=relay.port, timeout=relay.timeout)
