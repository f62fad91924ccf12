"""Login command -- run a device flow in the terminal.

``authplay login FORMULA`` requests a device code through the relay
(in-process by default, or a running ``authplay serve`` via ``--relay``),
prints the verification URL and user code to stderr, and polls until the
provider answers. With the resulting credential it then runs a snippet
file (``--run``) or, on an interactive terminal, a small snippet prompt
where each snippet sees ``headers``, ``fetch`` and ``console``.

Snippet output goes to stdout; error lines and every diagnostic go to
stderr.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Optional

import httpx
import typer

from authplay.config import Settings
from authplay.events import FlowListener, OutputLine
from authplay.exceptions import AuthplayError, FlowError, InvalidUsageError, NotFoundError
from authplay.exit_codes import EXIT_SANDBOX_ERROR, EXIT_SUCCESS
from authplay.flow import (
    DeviceFlowController,
    DeviceFlowSession,
    FlowState,
    GatewayTransport,
    HttpRelayTransport,
    RelayTransport,
)
from authplay.models import Formula
from authplay.output import debug, error, get_output, info, print_data, success, suggest
from authplay.relay import RelayGateway
from authplay.sandbox import SandboxedRunner


class TerminalListener(FlowListener):
    """Present flow signals and snippet output on the terminal."""

    def on_state_changed(self, session: DeviceFlowSession) -> None:
        debug(f"Flow state: {session.state.value}")

    def on_code_received(self, session: DeviceFlowSession) -> None:
        info("")
        info(f"Go to: {session.verification_uri}")
        info(f"Enter code: {session.user_code}")
        if session.verification_uri_complete:
            suggest(f"Or open: {session.verification_uri_complete}")
        info("")
        info("Waiting for authorization...")

    def on_output_line(self, line: OutputLine) -> None:
        get_output().snippet_line(line.text, is_error=line.is_error)


def example_snippet(formula: Formula) -> Optional[str]:
    """A starter snippet calling the formula's device-flow API, if any."""
    found = formula.device_flow_api()
    if found is None:
        return None
    _, api = found
    url = api.base_url.rstrip("/") + (api.example_endpoint or "")
    return (
        f'r = await fetch("{url}", headers=headers)\n'
        "console.log(r.status, r.json())"
    )


def _read_snippet_file(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    try:
        return Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidUsageError(f"Cannot read snippet file {path}: {exc}") from exc


def _prompt_snippet() -> Optional[str]:
    """Read lines until an empty one. ``None`` on EOF or ``exit``."""
    lines: list[str] = []
    while True:
        try:
            line = typer.prompt(
                "..." if lines else ">>>",
                default="",
                show_default=False,
                prompt_suffix=" ",
                err=True,
            )
        except typer.Abort:
            return None
        if not lines and line.strip() in ("exit", "quit"):
            return None
        if not line:
            return "\n".join(lines)
        lines.append(line)


async def _snippet_loop(runner: SandboxedRunner, credential: Optional[str]) -> None:
    info("Enter a snippet and finish it with an empty line. Type 'exit' to quit.")
    while True:
        source = _prompt_snippet()
        if source is None:
            return
        if source.strip():
            await runner.run(source, credential)


async def run_login(
    formula: Formula,
    settings: Settings,
    client_name: Optional[str] = None,
    relay_url: Optional[str] = None,
    snippet: Optional[str] = None,
    interactive: bool = False,
    print_header: bool = False,
    http_client: Optional[httpx.AsyncClient] = None,
) -> int:
    """Run the device flow, then snippets, and return the exit code.

    Args:
        formula: A playground-capable formula.
        settings: Resolved settings (relay timeout, flow and sandbox limits).
        client_name: Bundled client to use instead of the first
            device-code client.
        relay_url: Origin of a running relay server. ``None`` relays
            in-process.
        snippet: Snippet source to run once after authentication.
        interactive: Open the snippet prompt when no snippet is given.
        print_header: Print the ``Authorization`` header line to stdout.
        http_client: Client for relay and snippet traffic; one is created
            and closed here when omitted.

    Raises:
        FlowError: If the flow ends in ``FAILED``.
        FlowConfigError: If the formula or client cannot run a device flow.
    """
    if http_client is None:
        async with httpx.AsyncClient(timeout=settings.relay.timeout) as client:
            return await run_login(
                formula,
                settings,
                client_name=client_name,
                relay_url=relay_url,
                snippet=snippet,
                interactive=interactive,
                print_header=print_header,
                http_client=client,
            )

    transport: RelayTransport
    if relay_url:
        transport = HttpRelayTransport(relay_url, client=http_client, timeout=settings.relay.timeout)
    else:
        transport = GatewayTransport(RelayGateway(http_client, timeout=settings.relay.timeout))

    listener = TerminalListener()
    controller = DeviceFlowController(
        formula,
        transport,
        client=client_name,
        listener=listener,
        settings=settings.flow,
    )
    debug(f"Using client {controller.client.name} ({controller.client.id})")

    await controller.start()
    session = await controller.wait()
    if session.state != FlowState.AUTHENTICATED:
        raise FlowError(session.error or "Device flow did not complete")

    success(f"Authenticated with {formula.label} after {session.poll_count} polls")
    if print_header:
        print_data(f"Authorization: {session.credential}")

    runner = SandboxedRunner(http_client=http_client, listener=listener, settings=settings.sandbox)
    if snippet is not None:
        lines = await runner.run(snippet, session.credential)
        return EXIT_SANDBOX_ERROR if any(line.is_error for line in lines) else EXIT_SUCCESS

    if interactive:
        example = example_snippet(formula)
        if example:
            suggest("Example:")
            for line in example.splitlines():
                suggest(f"  {line}")
        await _snippet_loop(runner, session.credential)
    return EXIT_SUCCESS


def login_command(
    ctx: typer.Context,
    formula_id: str = typer.Argument(..., help="Formula id, e.g. 'github'."),
    client: Optional[str] = typer.Option(
        None, "--client", "-c", help="Bundled client name to authenticate as."
    ),
    relay: Optional[str] = typer.Option(
        None, "--relay", help="Relay server origin, e.g. http://127.0.0.1:8787."
    ),
    run: Optional[str] = typer.Option(
        None, "--run", "-r", help="Snippet file to run after login ('-' reads stdin)."
    ),
    print_header: bool = typer.Option(
        False, "--print-header", help="Print the Authorization header to stdout."
    ),
    no_input: bool = typer.Option(
        False, "--no-input", help="Do not open the snippet prompt."
    ),
) -> None:
    """Log in with a formula's device flow and try its API.

    Example::

        authplay login github
        authplay login github --run whoami.py
        authplay --quiet login github --print-header --no-input
    """
    from authplay.commands.formulas import load_settings_and_catalog

    settings, catalog = load_settings_and_catalog(ctx)

    try:
        formula = catalog.get(formula_id)
        if formula is None:
            raise NotFoundError(f"Formula not found: {formula_id}")
        if not formula.supports_playground:
            raise FlowError(
                f"Formula '{formula_id}' does not support the device flow playground"
            )
        snippet = _read_snippet_file(run) if run is not None else None
        interactive = snippet is None and not no_input and sys.stdin.isatty()

        code = asyncio.run(
            run_login(
                formula,
                settings,
                client_name=client,
                relay_url=relay,
                snippet=snippet,
                interactive=interactive,
                print_header=print_header,
            )
        )
    except AuthplayError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if code != EXIT_SUCCESS:
        raise typer.Exit(code=code)
