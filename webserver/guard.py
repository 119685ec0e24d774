"""Process-wide crash guards.

Uncaught exceptions and unhandled asyncio failures are logged and the process
keeps serving. Exiting would drop every in-flight and future request, so this
service accepts the risk of running on after a fault instead of failing fast.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from types import ModuleType, TracebackType
from typing import Any

import structlog


class ProcessGuard:
    """Installs exception hooks on an injectable runtime, at most once each."""

    def __init__(
        self,
        logger: Any = None,
        *,
        sys_module: ModuleType | Any = sys,
        threading_module: ModuleType | Any = threading,
    ) -> None:
        self.logger = logger or structlog.get_logger("process")
        self._sys = sys_module
        self._threading = threading_module
        self._previous_excepthook: Any = None
        self._previous_threading_hook: Any = None
        self._hooks_installed = False
        self._guarded_loops: dict[asyncio.AbstractEventLoop, Any] = {}

    @property
    def installed(self) -> bool:
        return self._hooks_installed

    def install(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if not self._hooks_installed:
            self._previous_excepthook = self._sys.excepthook
            self._previous_threading_hook = self._threading.excepthook
            self._sys.excepthook = self.handle_uncaught_exception
            self._threading.excepthook = self.handle_thread_exception
            self._hooks_installed = True

        if loop is not None and loop not in self._guarded_loops:
            self._guarded_loops[loop] = loop.get_exception_handler()
            loop.set_exception_handler(self.handle_unhandled_rejection)

    def uninstall(self) -> None:
        if self._hooks_installed:
            self._sys.excepthook = self._previous_excepthook
            self._threading.excepthook = self._previous_threading_hook
            self._hooks_installed = False
        for loop, previous in self._guarded_loops.items():
            loop.set_exception_handler(previous)
        self._guarded_loops.clear()

    def handle_uncaught_exception(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if issubclass(exc_type, KeyboardInterrupt) and self._previous_excepthook is not None:
            self._previous_excepthook(exc_type, exc, tb)
            return
        self.logger.error("Uncaught Exception", exc_info=(exc_type, exc, tb))

    def handle_thread_exception(self, args: Any) -> None:
        if args.exc_type is SystemExit:
            return
        self.logger.error(
            "Uncaught Exception",
            thread=getattr(args.thread, "name", None),
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    def handle_unhandled_rejection(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        reason = context.get("exception")
        origin = context.get("future") or context.get("task") or context.get("handle")
        self.logger.error(
            "Unhandled Rejection",
            origin=repr(origin) if origin is not None else None,
            reason=repr(reason) if reason is not None else context.get("message"),
            exc_info=reason if isinstance(reason, BaseException) else None,
        )


_GUARD: ProcessGuard | None = None


def get_process_guard() -> ProcessGuard:
    global _GUARD
    if _GUARD is None:
        _GUARD = ProcessGuard()
    return _GUARD


def install_process_guard(loop: asyncio.AbstractEventLoop | None = None) -> ProcessGuard:
    guard = get_process_guard()
    guard.install(loop)
    return guard
