"""Fluent middleware handle returned by ``use()`` and ``route()``."""

from __future__ import annotations

from typing import Callable

__all__ = ["MiddlewareChain"]


class MiddlewareChain:
    """Proxy ``use()`` calls to the append closure captured at registration.

    After ``node.use(...)`` the closure appends at that node (``path`` is
    resolved relative to it). After ``node.route(...)`` it appends to the
    route's own middleware list, so the chained middleware runs only when
    that route matches.
    """

    __slots__ = ("_append",)

    def __init__(self, append: Callable[[Callable, str], None]) -> None:
        self._append = append

    def use(self, middleware: Callable, path: str = "") -> "MiddlewareChain":
        self._append(middleware, path)
        return self
