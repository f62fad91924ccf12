"""Run playground snippets with the session's credential.

:class:`SandboxedRunner` is the boundary between user-authored code and the
rest of the process. Each run:

1. clears the previous run's output,
2. builds fresh bindings -- ``headers``, ``fetch``, ``console`` -- and
   nothing else,
3. evaluates the snippet with :class:`~authplay.sandbox.interpreter.Interpreter`
   under a step budget and a wall-clock timeout,
4. turns any failure into exactly one error-styled output line.

The runner only ever receives the derived ``Authorization`` value, never the
flow session itself, so a snippet cannot disturb the flow's state.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from authplay.config import SandboxSettings
from authplay.events import FlowListener, LineLevel, OutputLine
from authplay.exceptions import SandboxError
from authplay.sandbox.capabilities import FetchCapability, SandboxConsole
from authplay.sandbox.interpreter import Interpreter

logger = logging.getLogger(__name__)

BINDING_NAMES = ("headers", "fetch", "console")


class SandboxedRunner:
    """Execute snippets against ``{headers, fetch, console}``.

    Args:
        http_client: Client the ``fetch`` binding sends requests with.
        listener: Receives ``on_output_line`` for every line as it is
            written.
        settings: Step budget, timeout and output cap.

    Example::

        runner = SandboxedRunner()
        lines = await runner.run(
            'r = await fetch("https://api.github.com/user", headers=headers)\\n'
            'console.log(r.status, r.json()["login"])',
            session.credential,
        )
    """

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        listener: Optional[FlowListener] = None,
        settings: Optional[SandboxSettings] = None,
    ) -> None:
        self._http_client = http_client
        self._listener = listener or FlowListener()
        self._settings = settings or SandboxSettings()
        self._lines: list[OutputLine] = []
        self._truncated = False

    @property
    def output(self) -> list[OutputLine]:
        """Lines written by the most recent run."""
        return list(self._lines)

    async def run(self, code: str, credential: Optional[str]) -> list[OutputLine]:
        """Execute *code* and return its output lines.

        Args:
            code: Snippet source.
            credential: ``Authorization`` header value, e.g.
                ``"Bearer abc"``. ``None`` leaves ``headers`` empty.

        Returns:
            The output of this run only. Never raises for snippet errors.
        """
        self._lines = []
        self._truncated = False

        headers: dict[str, str] = {}
        if credential:
            headers["Authorization"] = credential
        bindings = {
            "headers": headers,
            "fetch": FetchCapability(self._http_client, timeout=self._settings.timeout),
            "console": SandboxConsole(self._append),
        }
        interpreter = Interpreter(bindings, max_steps=self._settings.max_steps)

        try:
            await asyncio.wait_for(interpreter.run(code), timeout=self._settings.timeout)
        except asyncio.TimeoutError:
            self._append_error(f"Snippet timed out after {self._settings.timeout:g}s")
        except SandboxError as exc:
            self._append_error(str(exc))
        except Exception as exc:
            logger.debug("Snippet raised %s", type(exc).__name__, exc_info=True)
            self._append_error(_describe(exc))

        return list(self._lines)

    def _append(self, line: OutputLine) -> None:
        if len(self._lines) >= self._settings.max_output_lines:
            if not self._truncated:
                self._truncated = True
                self._record(
                    OutputLine(
                        f"Output truncated after {self._settings.max_output_lines} lines",
                        LineLevel.ERROR,
                    )
                )
            return
        self._record(line)

    def _append_error(self, message: str) -> None:
        self._record(OutputLine(message, LineLevel.ERROR))

    def _record(self, line: OutputLine) -> None:
        self._lines.append(line)
        try:
            self._listener.on_output_line(line)
        except Exception:
            logger.exception("Output listener raised")


def _describe(exc: Exception) -> str:
    message = str(exc)
    if isinstance(exc, httpx.HTTPError):
        return f"fetch failed: {message}"
    if not message:
        return type(exc).__name__
    return f"{type(exc).__name__}: {message}"
