"""The objects a snippet receives: ``fetch`` and ``console``.

Each capability class lists what a snippet may touch in
``sandbox_attributes``; the interpreter refuses everything else. Together
with the ``headers`` dict these are the only bindings a snippet gets.
"""

from __future__ import annotations

import json
import math
from typing import Any, Awaitable, Callable, Generator, Optional

import httpx

from authplay.events import LineLevel, OutputLine
from authplay.exceptions import SandboxError


def render_value(value: Any) -> str:
    """Render one console argument as text.

    Strings print as-is. ``None``, booleans and numbers use JavaScript
    spelling (``null``, ``true``, ``2`` for ``2.0``). Anything else is
    pretty-printed as JSON, falling back to ``str()`` when it cannot be
    serialised.
    """
    if isinstance(value, str):
        return value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    try:
        return json.dumps(value, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return str(value)


def render_args(args: tuple[Any, ...]) -> str:
    return " ".join(render_value(arg) for arg in args)


class SandboxConsole:
    """``console`` binding: ``log``/``info`` write plain lines, ``error``/``warn`` error lines."""

    sandbox_attributes = frozenset({"log", "info", "warn", "error"})

    def __init__(self, emit: Callable[[OutputLine], None]) -> None:
        self._emit = emit

    def log(self, *args: Any) -> None:
        self._emit(OutputLine(render_args(args), LineLevel.LOG))

    def info(self, *args: Any) -> None:
        self._emit(OutputLine(render_args(args), LineLevel.LOG))

    def warn(self, *args: Any) -> None:
        self._emit(OutputLine(render_args(args), LineLevel.ERROR))

    def error(self, *args: Any) -> None:
        self._emit(OutputLine(render_args(args), LineLevel.ERROR))

    def __repr__(self) -> str:
        return "<console>"


class FetchResponse:
    """What ``await fetch(...)`` resolves to.

    The body is read eagerly, so ``text()`` and ``json()`` are plain
    methods. Awaiting them also works because ``await`` on a
    non-awaitable returns the value unchanged.
    """

    sandbox_attributes = frozenset({"status", "status_text", "ok", "url", "headers", "text", "json"})

    def __init__(self, response: httpx.Response) -> None:
        self.status = response.status_code
        self.status_text = response.reason_phrase
        self.ok = response.is_success
        self.url = str(response.url)
        self.headers = dict(response.headers)
        self._body = response.text

    def text(self) -> str:
        return self._body

    def json(self) -> Any:
        return json.loads(self._body)

    def __repr__(self) -> str:
        return f"<Response {self.status} {self.url}>"

    __str__ = __repr__


class _Deferred:
    """Awaitable that creates its coroutine only when awaited.

    A snippet that calls ``fetch`` and never awaits the result then leaves
    no un-awaited coroutine behind.
    """

    def __init__(self, factory: Callable[[], Awaitable[Any]]) -> None:
        self._factory = factory

    def __await__(self) -> Generator[Any, None, Any]:
        return self._factory().__await__()

    def __repr__(self) -> str:
        return "<pending fetch>"


class FetchCapability:
    """``fetch`` binding, bound to the runner's HTTP client.

    Accepts both call styles::

        await fetch(url, headers=headers)
        await fetch(url, {"method": "POST", "headers": headers, "body": "..."})

    Args:
        client: Shared :class:`httpx.AsyncClient`; a short-lived one is
            created per call when ``None``.
        timeout: Per-request timeout in seconds.
    """

    sandbox_attributes: frozenset[str] = frozenset()

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0) -> None:
        self._client = client
        self._timeout = timeout

    def __call__(
        self,
        url: str,
        options: Optional[dict[str, Any]] = None,
        *,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        body: Optional[str] = None,
        json: Any = None,
        params: Optional[dict[str, Any]] = None,
    ) -> _Deferred:
        if not isinstance(url, str) or not url.startswith(("https://", "http://")):
            raise SandboxError(f"fetch() needs an http(s) URL, got {url!r}")
        if options is not None:
            if not isinstance(options, dict):
                raise SandboxError("fetch() options must be a dict")
            method = options.get("method", method)
            headers = options.get("headers", headers)
            body = options.get("body", body)
            json = options.get("json", json)
            params = options.get("params", params)

        request_kwargs: dict[str, Any] = {
            "headers": dict(headers or {}),
            "params": params,
        }
        if json is not None:
            request_kwargs["json"] = json
        elif body is not None:
            request_kwargs["content"] = body if isinstance(body, (str, bytes)) else str(body)

        return _Deferred(lambda: self._send(str(method).upper(), url, request_kwargs))

    async def _send(self, method: str, url: str, request_kwargs: dict[str, Any]) -> FetchResponse:
        if self._client is not None:
            response = await self._client.request(
                method, url, timeout=self._timeout, **request_kwargs
            )
        else:
            async with httpx.AsyncClient(timeout=self._timeout, follow_redirects=True) as client:
                response = await client.request(method, url, **request_kwargs)
        return FetchResponse(response)

    def __repr__(self) -> str:
        return "<fetch>"
