"""Tests for SandboxedRunner and the fetch/console capabilities."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
import pytest

from authplay.config import SandboxSettings
from authplay.events import CallbackListener, LineLevel, OutputLine
from authplay.sandbox import FetchResponse, SandboxedRunner, render_value


def _api(request: httpx.Request) -> httpx.Response:
    if request.headers.get("authorization") != "Bearer tok":
        return httpx.Response(401, json={"message": "Requires authentication"})
    if request.method == "POST":
        return httpx.Response(201, json={"echo": json.loads(request.content)})
    return httpx.Response(200, json={"login": "octocat", "id": 1})


def _run(
    code: str,
    credential: str | None = "Bearer tok",
    runner: SandboxedRunner | None = None,
    **kwargs: Any,
) -> list[OutputLine]:
    async def _go() -> list[OutputLine]:
        async with httpx.AsyncClient(transport=httpx.MockTransport(_api)) as client:
            active = runner or SandboxedRunner(http_client=client, **kwargs)
            return await active.run(code, credential)

    return asyncio.run(_go())


def _texts(lines: list[OutputLine]) -> list[str]:
    return [line.text for line in lines]


class TestConsole:
    def test_log_renders_values(self) -> None:
        lines = _run("console.log(1 + 1)\nconsole.log('a', None, True, 2.0)")
        assert _texts(lines) == ["2", "a null true 2"]
        assert all(line.level == LineLevel.LOG for line in lines)

    def test_error_and_warn_are_error_styled(self) -> None:
        lines = _run("console.error('bad')\nconsole.warn('careful')\nconsole.info('ok')")
        assert [line.is_error for line in lines] == [True, True, False]

    def test_objects_pretty_printed_as_json(self) -> None:
        lines = _run("console.log({'a': [1, 2]})")
        assert lines[0].text == json.dumps({"a": [1, 2]}, indent=2)


class TestBindings:
    def test_headers_carry_credential(self) -> None:
        lines = _run("console.log(headers['Authorization'])")
        assert _texts(lines) == ["Bearer tok"]

    def test_headers_empty_without_credential(self) -> None:
        lines = _run("console.log(headers)", credential=None)
        assert _texts(lines) == ["{}"]

    def test_headers_are_fresh_per_run(self) -> None:
        async def _go() -> list[OutputLine]:
            runner = SandboxedRunner()
            await runner.run("headers['X-Extra'] = '1'", "Bearer tok")
            return await runner.run("console.log(headers)", "Bearer tok")

        lines = asyncio.run(_go())
        assert json.loads(lines[0].text) == {"Authorization": "Bearer tok"}

    def test_no_other_bindings(self) -> None:
        lines = _run("console.log(len([1]))")
        assert len(lines) == 1
        assert lines[0].is_error
        assert "name 'len' is not defined" in lines[0].text


class TestFetch:
    def test_get_with_headers(self) -> None:
        code = (
            "r = await fetch('https://api.provider.example/me', headers=headers)\n"
            "console.log(r.status, r.ok, r.json()['login'])"
        )
        assert _texts(_run(code)) == ["200 true octocat"]

    def test_options_dict_style(self) -> None:
        code = (
            "r = await fetch('https://api.provider.example/items', "
            "{'method': 'POST', 'headers': headers, 'json': {'name': 'x'}})\n"
            "console.log(r.status, r.json())"
        )
        lines = _run(code)
        assert lines[0].text.startswith("201 ")
        assert '"name": "x"' in lines[0].text

    def test_unauthorized_response_is_data(self) -> None:
        code = "r = await fetch('https://api.provider.example/me')\nconsole.log(r.status)"
        assert _texts(_run(code)) == ["401"]

    def test_non_http_url_rejected(self) -> None:
        lines = _run("await fetch('file:///etc/passwd')")
        assert lines[0].is_error
        assert "http(s) URL" in lines[0].text

    def test_network_failure_is_one_error_line(self) -> None:
        def _down(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async def _go() -> list[OutputLine]:
            async with httpx.AsyncClient(transport=httpx.MockTransport(_down)) as client:
                runner = SandboxedRunner(http_client=client)
                return await runner.run("await fetch('https://api.provider.example/me')", "Bearer tok")

        lines = asyncio.run(_go())
        assert len(lines) == 1
        assert lines[0].text.startswith("fetch failed:")

    def test_response_private_state_hidden(self) -> None:
        code = "r = await fetch('https://api.provider.example/me', headers=headers)\nconsole.log(r._body)"
        lines = _run(code)
        assert lines[0].is_error
        assert "_body" in lines[0].text

    def test_fetch_response_wraps_httpx(self) -> None:
        request = httpx.Request("GET", "https://x.example/a")
        response = FetchResponse(httpx.Response(404, text="nope", request=request))
        assert response.status == 404
        assert not response.ok
        assert response.status_text == "Not Found"
        assert response.text() == "nope"
        assert repr(response) == "<Response 404 https://x.example/a>"


class TestFailures:
    def test_exception_becomes_single_error_line(self) -> None:
        lines = _run("console.log('before')\nx = 1 / 0\nconsole.log('after')")
        assert _texts(lines)[0] == "before"
        assert len(lines) == 2
        assert lines[1].is_error
        assert lines[1].text.startswith("ZeroDivisionError")

    def test_syntax_error(self) -> None:
        lines = _run("console.log(")
        assert len(lines) == 1
        assert lines[0].text.startswith("SyntaxError")

    def test_step_limit(self) -> None:
        lines = _run("while True:\n    pass", settings=SandboxSettings(max_steps=200))
        assert _texts(lines) == ["Step limit of 200 exceeded"]

    def test_timeout(self) -> None:
        async def _go() -> list[OutputLine]:
            async def _slow(request: httpx.Request) -> httpx.Response:
                await asyncio.sleep(1)
                return httpx.Response(200)

            async with httpx.AsyncClient(transport=httpx.MockTransport(_slow)) as client:
                runner = SandboxedRunner(
                    http_client=client, settings=SandboxSettings(timeout=0.05)
                )
                return await runner.run("await fetch('https://api.provider.example/me')", None)

        lines = asyncio.run(_go())
        assert len(lines) == 1
        assert "timed out" in lines[0].text

    def test_huge_arithmetic_is_one_error_line(self) -> None:
        code = "x = 3 ** 9999\ny = x ** 9999\nconsole.log('unreachable')"
        lines = _run(code, settings=SandboxSettings(timeout=0.5))
        assert _texts(lines) == ["Integer result is too large"]
        assert lines[0].is_error

    def test_output_cap(self) -> None:
        code = "for i in [0, 1, 2, 3, 4]:\n    console.log(i)"
        lines = _run(code, settings=SandboxSettings(max_output_lines=3))
        assert _texts(lines) == ["0", "1", "2", "Output truncated after 3 lines"]


class TestRunnerState:
    def test_output_cleared_between_runs(self) -> None:
        async def _go() -> SandboxedRunner:
            runner = SandboxedRunner()
            await runner.run("console.log('first')", None)
            await runner.run("console.log('second')", None)
            return runner

        runner = asyncio.run(_go())
        assert _texts(runner.output) == ["second"]

    def test_listener_receives_lines(self) -> None:
        seen: list[str] = []
        listener = CallbackListener(on_output_line=lambda line: seen.append(line.text))

        async def _go() -> None:
            await SandboxedRunner(listener=listener).run("console.log('hi')\nx = missing", None)

        asyncio.run(_go())
        assert seen[0] == "hi"
        assert "missing" in seen[1]


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("text", "text"),
        (None, "null"),
        (False, "false"),
        (3, "3"),
        (1.5, "1.5"),
        (float("nan"), "NaN"),
        ([1, "a"], '[\n  1,\n  "a"\n]'),
    ],
)
def test_render_value(value: Any, expected: str) -> None:
    assert render_value(value) == expected
