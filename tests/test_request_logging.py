from __future__ import annotations

import re
from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from httpx import ASGITransport, AsyncClient

from webserver.errors import install_error_handlers
from webserver.observability.capture import RequestRecord, ResponseInterceptor
from webserver.observability.middleware import ELLIPSIS, RequestLoggingMiddleware


LINE_RE = re.compile(r"^(?P<method>[A-Z]+) (?P<path>\S+) (?P<status>\d{3}) in (?P<ms>\d+)ms")


def _build_app() -> FastAPI:
    app = FastAPI()

    @app.get("/api/items")
    async def items() -> dict:
        return {"items": []}

    @app.get("/api/big")
    async def big() -> dict:
        return {"rows": [{"id": i, "label": f"row number {i}"} for i in range(50)]}

    @app.get("/api/text")
    async def text() -> PlainTextResponse:
        return PlainTextResponse("plain")

    @app.get("/api/boom")
    async def boom() -> dict:
        raise RuntimeError("boom")

    @app.get("/index.html")
    async def index() -> PlainTextResponse:
        return PlainTextResponse("<html></html>")

    install_error_handlers(app)
    return app


@pytest.fixture
def lines() -> list[str]:
    return []


@pytest.fixture
async def client(lines: list[str]) -> AsyncIterator[AsyncClient]:
    entry = RequestLoggingMiddleware(_build_app(), sink=lines.append)
    transport = ASGITransport(app=entry, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def test_api_request_logs_expected_line(client, lines, monkeypatch) -> None:
    monkeypatch.setattr(RequestRecord, "elapsed_ms", lambda self: 5)

    resp = await client.get("/api/items")

    assert resp.status_code == 200
    assert lines == ['GET /api/items 200 in 5ms :: {"items":[]}']


async def test_exactly_one_line_per_api_request(client, lines) -> None:
    await client.get("/api/items")
    await client.get("/api/items")

    assert len(lines) == 2
    for line in lines:
        match = LINE_RE.match(line)
        assert match is not None
        assert match["method"] == "GET"
        assert match["path"] == "/api/items"
        assert match["status"] == "200"
        assert int(match["ms"]) >= 0


async def test_non_api_request_is_not_logged(client, lines) -> None:
    resp = await client.get("/index.html")
    assert resp.status_code == 200
    assert lines == []


async def test_non_api_json_body_is_not_captured(lines, monkeypatch) -> None:
    seen: list[ResponseInterceptor] = []
    original_init = ResponseInterceptor.__init__

    def recording_init(self, *args, **kwargs) -> None:
        original_init(self, *args, **kwargs)
        seen.append(self)

    monkeypatch.setattr(ResponseInterceptor, "__init__", recording_init)
    app = _build_app()

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    entry = RequestLoggingMiddleware(app, sink=lines.append)
    async with AsyncClient(transport=ASGITransport(app=entry), base_url="http://test") as c:
        resp = await c.get("/health")

    assert resp.json() == {"status": "ok"}
    assert lines == []
    assert seen[0].record.captured_body is None


async def test_long_body_is_truncated(client, lines) -> None:
    resp = await client.get("/api/big")
    assert resp.status_code == 200
    assert len(lines) == 1
    assert len(lines[0]) == 80
    assert lines[0].endswith(ELLIPSIS)
    assert " :: {" in lines[0]


async def test_non_json_response_has_no_separator(client, lines) -> None:
    await client.get("/api/text")
    assert len(lines) == 1
    assert " :: " not in lines[0]


async def test_unknown_api_route_is_logged_with_404(client, lines) -> None:
    resp = await client.get("/api/missing")
    assert resp.status_code == 404
    assert lines[0].startswith("GET /api/missing 404 in ")
    assert lines[0].endswith(':: {"message":"Not Found"}')


async def test_error_response_is_observed(client, lines) -> None:
    resp = await client.get("/api/boom")

    assert resp.status_code == 500
    assert resp.json() == {"message": "boom"}
    assert len(lines) == 1
    assert lines[0].startswith("GET /api/boom 500 in ")
    assert lines[0].endswith(':: {"message":"boom"}')


async def test_responses_include_x_request_id(client) -> None:
    resp = await client.get("/api/items")
    assert resp.headers.get("x-request-id")


async def test_failing_sink_does_not_break_the_request() -> None:
    def broken_sink(line: str) -> None:
        raise OSError("disk full")

    entry = RequestLoggingMiddleware(_build_app(), sink=broken_sink)
    transport = ASGITransport(app=entry)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        resp = await c.get("/api/items")

    assert resp.status_code == 200
    assert resp.json() == {"items": []}


async def test_custom_prefix_controls_what_is_logged(lines) -> None:
    entry = RequestLoggingMiddleware(_build_app(), api_prefix="/index", sink=lines.append)
    transport = ASGITransport(app=entry)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        await c.get("/api/items")
        await c.get("/index.html")

    assert len(lines) == 1
    assert lines[0].startswith("GET /index.html 200 in ")
