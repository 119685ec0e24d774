from __future__ import annotations

import socket
from typing import Any, Callable

import uvicorn


ListenCallback = Callable[[int], None]


def bind_socket(host: str, port: int, *, reuse_port: bool = True) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    if reuse_port and hasattr(socket, "SO_REUSEPORT"):
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, 1)
    try:
        sock.bind((host, port))
    except OSError:
        sock.close()
        raise
    sock.set_inheritable(True)
    return sock


class _Server(uvicorn.Server):
    """uvicorn server that reports the bound port once it is accepting connections."""

    def __init__(self, config: uvicorn.Config, on_started: Callable[[], None]) -> None:
        super().__init__(config)
        self._on_started = on_started

    async def startup(self, sockets: list[socket.socket] | None = None) -> None:
        await super().startup(sockets=sockets)
        if self.started:
            self._on_started()


class ServerHandle:
    """Listenable handle around an ASGI application.

    Collaborators (asset setup, startup banners) register listening callbacks;
    they run in registration order once the socket accepts connections.
    """

    def __init__(self, app: Callable[..., Any]) -> None:
        self.app = app
        self.server: uvicorn.Server | None = None
        self.socket: socket.socket | None = None
        self.port: int | None = None
        self._listeners: list[ListenCallback] = []

    @property
    def started(self) -> bool:
        return bool(self.server and self.server.started)

    def on_listening(self, callback: ListenCallback) -> None:
        self._listeners.append(callback)

    def _notify_listening(self) -> None:
        port = self.port or 0
        for callback in self._listeners:
            callback(port)

    async def listen(
        self,
        *,
        port: int,
        host: str = "0.0.0.0",
        reuse_port: bool = True,
        on_listening: ListenCallback | None = None,
    ) -> None:
        """Bind ``host:port`` and serve until the server is asked to exit."""

        if on_listening is not None:
            self.on_listening(on_listening)

        self.socket = bind_socket(host, port, reuse_port=reuse_port)
        self.port = self.socket.getsockname()[1]
        config = uvicorn.Config(
            self.app,
            log_config=None,
            access_log=False,
            lifespan="auto",
        )
        self.server = _Server(config, on_started=self._notify_listening)
        try:
            await self.server.serve(sockets=[self.socket])
        finally:
            self.socket.close()

    def close(self) -> None:
        if self.server is not None:
            self.server.should_exit = True
