from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from webserver.config import get_settings
from webserver.main import compose_app
from webserver.server import ServerHandle


INDEX_HTML = "<!doctype html><html><body><div id=\"root\"></div></body></html>"


class RecordingLogger:
    """Stands in for a structlog logger; keeps (level, event, kwargs) tuples."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def _record(self, level: str, event: str, **kwargs: Any) -> None:
        self.records.append((level, event, kwargs))

    def info(self, event: str, **kwargs: Any) -> None:
        self._record("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._record("warning", event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        self._record("error", event, **kwargs)

    def events(self, level: str | None = None) -> list[str]:
        return [event for lvl, event, _ in self.records if level is None or lvl == level]


async def ok_probe() -> bool:
    return True


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    client_dir = tmp_path / "client"
    client_dir.mkdir()
    (client_dir / "index.html").write_text(INDEX_HTML, encoding="utf-8")

    for name in ("DATABASE_URL", "NODE_ENV", "APP_ENV", "PORT", "HOST", "API_PREFIX", "LOG_LINE_MAX_LENGTH"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APP_ENV", "development")
    monkeypatch.setenv("CLIENT_DIR", str(client_dir))
    monkeypatch.setenv("STATIC_DIR", str(tmp_path / "dist" / "public"))
    get_settings.cache_clear()

    yield tmp_path

    get_settings.cache_clear()


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def log_lines() -> list[str]:
    return []


@pytest.fixture
async def server_handle(log_lines: list[str]) -> ServerHandle:
    _, handle = await compose_app(get_settings(), probe=ok_probe, sink=log_lines.append)
    log_lines.clear()
    return handle


@pytest.fixture
async def api_client(server_handle: ServerHandle) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=server_handle.app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
