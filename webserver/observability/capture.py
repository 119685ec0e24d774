from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Awaitable, Callable

from starlette.datastructures import MutableHeaders


Message = dict[str, Any]
Send = Callable[[Message], Awaitable[None]]


@dataclass
class RequestRecord:
    """Per-request observability state; lives only as long as the request."""

    method: str
    path: str
    start: float = field(default_factory=perf_counter)
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status_code: int = 500
    captured_body: Any | None = None

    def elapsed_ms(self) -> int:
        return max(0, int((perf_counter() - self.start) * 1000))


def _is_json_content_type(raw: bytes | str | None) -> bool:
    if not raw:
        return False
    if isinstance(raw, bytes):
        raw = raw.decode("latin-1")
    media_type = raw.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


class ResponseInterceptor:
    """Wraps an ASGI ``send`` so JSON payloads are captured on the way out.

    Every message is forwarded unchanged; the wrapper only reads what passes
    through it. If a response sends JSON more than once, the last payload wins.
    With ``capture_body=False`` bodies are never buffered (requests that are not logged).
    """

    def __init__(self, send: Send, record: RequestRecord, *, capture_body: bool = True) -> None:
        self._send = send
        self.record = record
        self._capture_body = capture_body
        self._is_json = False
        self._buffer = bytearray()

    async def __call__(self, message: Message) -> None:
        message_type = message.get("type")

        if message_type == "http.response.start":
            self.record.status_code = int(message.get("status", 500))
            headers = MutableHeaders(scope=message)
            headers["X-Request-ID"] = self.record.request_id
            self._is_json = self._capture_body and _is_json_content_type(headers.get("content-type"))
            self._buffer.clear()

        elif message_type == "http.response.body" and self._is_json:
            self._buffer.extend(message.get("body", b""))
            if not message.get("more_body", False):
                self._capture_buffer()

        return await self._send(message)

    def capture(self, payload: Any) -> None:
        self.record.captured_body = payload

    def _capture_buffer(self) -> None:
        raw = bytes(self._buffer)
        self._buffer.clear()
        try:
            payload = json.loads(raw)
        except ValueError:
            # Mislabelled or truncated body; there is nothing trustworthy to log.
            return
        self.capture(payload)
