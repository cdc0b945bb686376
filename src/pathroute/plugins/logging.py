"""Logging plugin (source of truth).

Responsibilities
----------------
- For every step of the continuation emit:
  * ``before`` (default True): ``"[<position>] <qualified_name> start"``
  * ``after`` (default True): ``"[<position>] <qualified_name> end (<ms> ms)"``
    with ``{elapsed:.2f}`` milliseconds. Executables call the continuation
    inline, so the elapsed time covers everything downstream. When the step
    returns an awaitable (asynchronous dispatch) the end message is emitted
    once it has been awaited.
- Sinks: ``print`` true → ``print(message)``; else ``log`` true →
  ``logger.info(message)`` when the logger has handlers, otherwise ``print``
  so messages are not lost; else nothing.

Options (``LoggingPlugin.Options``): ``enabled``, ``before``, ``after``,
``log``, ``print``; router-wide through ``plug("logging", ...)`` or
``router.logging.configure(...)``, per entry with a ``target``.

Exceptions propagate and skip the end message.

Registration
------------
Imported by ``pathroute/__init__.py``; registers itself as ``"logging"``.
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any, Callable, Optional

from pathroute.core.router import Router
from pathroute.plugins._base_plugin import BasePlugin, HandlerEntry


class LoggingPlugin(BasePlugin):
    """Log each step of a dispatch with timing."""

    plugin_code = "logging"
    plugin_description = "Logs executable calls with timing"

    class Options(BasePlugin.Options):
        before: bool = True
        after: bool = True
        log: bool = True
        print: bool = False

    __slots__ = ("_logger",)

    def __init__(self, router, *, logger: Optional[logging.Logger] = None, **options):
        self._logger = logger or logging.getLogger("pathroute")
        super().__init__(router, **options)

    def _emit(self, message: str, opts: "LoggingPlugin.Options") -> None:
        if opts.print:
            print(message)
        elif opts.log:
            if self._logger.hasHandlers():
                self._logger.info(message)
            else:
                print(message)

    def around(self, ctx, entry: HandlerEntry, position: int, call_next: Callable) -> Any:
        opts = self.options(entry)
        label = f"[{position}] {entry.qualified_name}"
        if opts.before:
            self._emit(f"{label} start", opts)
        t0 = time.perf_counter()
        result = call_next(ctx)
        if inspect.isawaitable(result):
            return self._finish_later(result, label, t0, opts)
        self._finish(label, t0, opts)
        return result

    async def _finish_later(self, pending, label: str, t0: float, opts) -> Any:
        result = await pending
        self._finish(label, t0, opts)
        return result

    def _finish(self, label: str, t0: float, opts) -> None:
        if opts.after:
            elapsed = (time.perf_counter() - t0) * 1000
            self._emit(f"{label} end ({elapsed:.2f} ms)", opts)


Router.register_plugin(LoggingPlugin)
