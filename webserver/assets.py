from __future__ import annotations

from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, HTMLResponse, Response

from webserver.config import Settings
from webserver.errors import StaticBuildMissingError
from webserver.observability.logging import log
from webserver.server import ServerHandle


NO_CACHE = {"Cache-Control": "no-store"}


def _resolve_file(root: Path, relative: str) -> Path | None:
    if not relative:
        return None
    candidate = (root / relative).resolve()
    if root not in candidate.parents or not candidate.is_file():
        return None
    return candidate


def _is_api_path(path: str, api_prefix: str) -> bool:
    prefix = api_prefix.rstrip("/")
    return path == prefix or path.startswith(prefix + "/")


def _add_spa_route(app: FastAPI, root: Path, *, api_prefix: str, development: bool) -> None:
    root = root.resolve()
    index = root / "index.html"

    async def spa(full_path: str) -> Response:
        if _is_api_path(f"/{full_path}", api_prefix):
            raise HTTPException(status_code=404, detail="Not Found")

        headers = NO_CACHE if development else None
        target = _resolve_file(root, full_path)
        if target is not None:
            return FileResponse(target, headers=headers)

        if not index.is_file():
            raise HTTPException(status_code=404, detail="Not Found")
        if development:
            # Always re-read so edits to the client entry show up on reload.
            return HTMLResponse(index.read_text(encoding="utf-8"), headers=headers)
        return FileResponse(index)

    app.add_api_route(
        "/{full_path:path}",
        spa,
        methods=["GET", "HEAD"],
        include_in_schema=False,
        name="spa",
    )


def setup_dev_assets(app: FastAPI, server: ServerHandle, settings: Settings) -> None:
    """Serve client sources straight from ``client_dir`` without caching."""

    client_root = settings.client_path
    _add_spa_route(app, client_root, api_prefix=settings.api_prefix, development=True)
    server.on_listening(
        lambda port: log(f"Serving client sources from {client_root.resolve()}", source="assets")
    )


def serve_static(app: FastAPI, settings: Settings) -> None:
    """Serve the production client bundle from ``static_dir``."""

    dist = settings.static_path
    if not dist.is_dir():
        raise StaticBuildMissingError(
            f"Could not find the build directory: {dist.resolve()}, make sure to build the client first"
        )
    _add_spa_route(app, dist, api_prefix=settings.api_prefix, development=False)
