from __future__ import annotations

import json
from typing import Any, Callable

import structlog

from webserver.observability.capture import RequestRecord, ResponseInterceptor
from webserver.observability.logging import log


ELLIPSIS = "…"


def _is_empty_body(body: Any) -> bool:
    # null, false, 0 and "" send no suffix; {} and [] still do.
    if isinstance(body, (dict, list)):
        return False
    return not body


def _serialize_body(body: Any) -> str | None:
    try:
        return json.dumps(body, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return None


def format_log_line(
    method: str,
    path: str,
    status_code: int,
    duration_ms: int,
    body: Any | None = None,
    max_length: int = 80,
) -> str:
    """Build the one-line summary for an API request.

    ``"GET /api/items 200 in 5ms :: {"items":[]}"``; lines longer than
    ``max_length`` keep their first ``max_length - 1`` characters plus an ellipsis.
    """

    line = f"{method} {path} {status_code} in {duration_ms}ms"
    if not _is_empty_body(body):
        serialized = _serialize_body(body)
        if serialized is not None:
            line += f" :: {serialized}"

    if len(line) > max_length:
        line = line[: max_length - 1] + ELLIPSIS
    return line


class RequestLoggingMiddleware:
    """Adds request_id context and one log line per completed API request.

    Meant to wrap the whole application (outside Starlette's error middleware)
    so responses written by the error handlers are observed as well.
    """

    def __init__(
        self,
        app: Callable[..., Any],
        *,
        api_prefix: str = "/api",
        max_line_length: int = 80,
        sink: Callable[[str], None] = log,
    ) -> None:
        self.app = app
        self.api_prefix = api_prefix
        self.max_line_length = max_line_length
        self.sink = sink

    async def __call__(self, scope: dict[str, Any], receive: Callable[..., Any], send: Callable[..., Any]) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        record = RequestRecord(method=scope.get("method", ""), path=scope.get("path", ""))
        is_api = record.path.startswith(self.api_prefix)

        structlog.contextvars.bind_contextvars(
            request_id=record.request_id,
            path=record.path,
            method=record.method,
        )

        try:
            await self.app(scope, receive, ResponseInterceptor(send, record, capture_body=is_api))
        finally:
            if is_api:
                self._emit(record)
            structlog.contextvars.clear_contextvars()

    def _emit(self, record: RequestRecord) -> None:
        line = format_log_line(
            record.method,
            record.path,
            record.status_code,
            record.elapsed_ms(),
            record.captured_body,
            max_length=self.max_line_length,
        )
        try:
            self.sink(line)
        except Exception:  # noqa: BLE001
            # A broken sink must not turn into a failed request.
            structlog.get_logger("access").exception("request_log_failed", line=line)
