from __future__ import annotations

import asyncio
from typing import Callable

from fastapi import FastAPI

from webserver import __version__
from webserver.assets import serve_static, setup_dev_assets
from webserver.config import Settings, get_settings
from webserver.db import session
from webserver.errors import install_error_handlers
from webserver.guard import install_process_guard
from webserver.health import Probe, check_database
from webserver.observability.logging import configure_logging, log
from webserver.observability.masking import mask_credentials
from webserver.observability.middleware import RequestLoggingMiddleware
from webserver.routes import register_routes
from webserver.server import ServerHandle


def create_app() -> FastAPI:
    return FastAPI(title="webserver", version=__version__)


async def compose_app(
    settings: Settings | None = None,
    *,
    probe: Probe | None = None,
    sink: Callable[[str], None] = log,
) -> tuple[FastAPI, ServerHandle]:
    """Build the application in startup order, without binding a socket.

    The database probe runs first but never stops the rest of the sequence.
    """

    settings = settings or get_settings()

    async def default_probe() -> bool:
        return await session.test_database_connection(settings.database_url)

    await check_database(probe or default_probe, settings.database_url, sink=sink)

    app = create_app()
    entry = RequestLoggingMiddleware(
        app,
        api_prefix=settings.api_prefix,
        max_line_length=settings.log_line_max_length,
        sink=sink,
    )
    handle = await register_routes(app, entry, api_prefix=settings.api_prefix)

    install_error_handlers(app)

    # Asset routes end in a catch-all, so they go after the API routes.
    if settings.is_development:
        setup_dev_assets(app, handle, settings)
    else:
        serve_static(app, settings)

    return app, handle


def _announce(settings: Settings, sink: Callable[[str], None]) -> Callable[[int], None]:
    def on_listening(port: int) -> None:
        sink(f"Server running in {settings.app_env} mode")
        sink(f"Serving on port {port}")
        if settings.database_url:
            sink(f"Using database: {mask_credentials(settings.database_url)}")
        else:
            sink("No DATABASE_URL found in environment")

    return on_listening


async def serve(
    settings: Settings | None = None,
    *,
    probe: Probe | None = None,
    sink: Callable[[str], None] = log,
) -> ServerHandle:
    settings = settings or get_settings()
    _, handle = await compose_app(settings, probe=probe, sink=sink)

    install_process_guard(asyncio.get_running_loop())

    await handle.listen(
        port=settings.port,
        host=settings.host,
        reuse_port=True,
        on_listening=_announce(settings, sink),
    )
    return handle


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    install_process_guard()
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
