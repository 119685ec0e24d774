from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from webserver.observability.logging import log
from webserver.observability.masking import mask_credentials


Probe = Callable[[], Awaitable[bool]]

DEGRADED_WARNING = "Starting server without database connection. Some features may not work."


async def check_database(
    probe: Probe,
    database_url: str | None,
    *,
    sink: Callable[[str], None] = log,
) -> bool:
    """Probe the database once before serving.

    Advisory only: a failed or crashing probe is logged and the caller carries
    on in degraded mode. There is no timeout, so a hanging database delays
    startup.
    """

    logger = structlog.get_logger("startup")

    try:
        connected = await probe()
    except Exception as exc:  # noqa: BLE001
        logger.error("Error testing database connection", error=repr(exc), exc_info=exc)
        logger.warning(DEGRADED_WARNING)
        return False

    if connected:
        sink("Database connection test successful")
        return True

    logger.error("Failed to connect to database. Please check your DATABASE_URL in .env file.")
    logger.error(f"Current DATABASE_URL: {mask_credentials(database_url)}")
    logger.warning(DEGRADED_WARNING)
    return False
