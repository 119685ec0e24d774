"""Request observability: structlog setup, JSON response capture and API request lines.

Request lines are plain strings handed to a sink (``log`` by default) so the
format stays stable regardless of the configured renderer.
"""

from __future__ import annotations

from webserver.observability.logging import configure_logging, log
from webserver.observability.masking import mask_credentials
from webserver.observability.middleware import RequestLoggingMiddleware, format_log_line

__all__ = [
    "RequestLoggingMiddleware",
    "configure_logging",
    "format_log_line",
    "log",
    "mask_credentials",
]
