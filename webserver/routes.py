from __future__ import annotations

from typing import Any, Callable

from fastapi import APIRouter, FastAPI

from webserver.api.echo import router as echo_router
from webserver.api.health import router as health_router
from webserver.config import get_settings
from webserver.server import ServerHandle


root_router = APIRouter()


@root_router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


async def register_routes(
    app: FastAPI,
    entry: Callable[..., Any] | None = None,
    *,
    api_prefix: str | None = None,
) -> ServerHandle:
    """Attach the routers to ``app`` and return a listenable handle.

    ``entry`` is the outermost ASGI callable wrapping ``app`` (request logging);
    the handle serves it, or ``app`` itself when nothing wraps it.
    """

    api_prefix = api_prefix or get_settings().api_prefix

    app.include_router(root_router)
    app.include_router(health_router, prefix=api_prefix)
    app.include_router(echo_router, prefix=api_prefix)

    return ServerHandle(entry or app)
