"""Entry variants stored in a routing node (source of truth).

A node keeps one ordered list of :class:`TreeEntry` items. Each item carries
an :class:`EntryKind` tag and a payload:

- ``EntryKind.MIDDLEWARE`` → :class:`HandlerEntry` (node-scoped middleware)
- ``EntryKind.ROUTE`` → :class:`Route`
- ``EntryKind.NODE`` → child ``RoutingNode``

The collection walk switches on ``kind`` only; payload types are never
inspected at runtime.

Route
-----
``Route(node, handler)`` binds a terminal :class:`HandlerEntry` to an ordered
list of route-scoped middleware entries. The owning node is held through a
weak reference (the node owns the route, never the reverse).

- ``str(route)`` → the owning node's full path joined with ``/``.
- ``executables()`` → route middleware in registration order, handler last.
- ``extract_params(path)`` → ``{wildcard_name: segment}`` for ``path``
  against the route's full path.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from pathroute.core.segments import SEPARATOR, extract_params, segment_path
from pathroute.plugins._base_plugin import HandlerEntry

if TYPE_CHECKING:  # pragma: no cover - import for typing only
    from pathroute.core.node import RoutingNode

__all__ = ["EntryKind", "TreeEntry", "Route", "HandlerEntry"]


class EntryKind(Enum):
    MIDDLEWARE = "middleware"
    ROUTE = "route"
    NODE = "node"


@dataclass(frozen=True)
class TreeEntry:
    """One tagged element of a node's execution list."""

    kind: EntryKind
    payload: Any


class Route:
    """Terminal handler plus its route-scoped middleware."""

    __slots__ = ("_node_ref", "handler", "middlewares")

    def __init__(self, node: "RoutingNode", handler: HandlerEntry) -> None:
        self._node_ref = weakref.ref(node)
        self.handler = handler
        self.middlewares: List[HandlerEntry] = []

    @property
    def node(self) -> Optional["RoutingNode"]:
        return self._node_ref()

    @property
    def callback(self) -> Any:
        return self.handler.func

    def full_path(self) -> List[str]:
        node = self.node
        return node.full_path() if node is not None else []

    def executables(self) -> List[HandlerEntry]:
        return [*self.middlewares, self.handler]

    def extract_params(self, path: str) -> Dict[str, str]:
        """Map this route's wildcard names to the matching segments of ``path``."""
        return extract_params(self.full_path(), segment_path(path))

    def __str__(self) -> str:
        return SEPARATOR.join(self.full_path())

    def __repr__(self) -> str:
        return f"<Route {str(self)!r} handler={self.handler.name!r}>"
