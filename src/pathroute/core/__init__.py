"""Core runtime aggregator (source of truth).

Expose the routing building blocks from a single module. Importing it only
imports; it neither registers plugins nor builds routers.

- ``segments`` → ``segment_path`` and wildcard helpers
- ``entries`` → ``EntryKind``, ``TreeEntry``, ``Route``
- ``chain`` → ``MiddlewareChain``
- ``context`` → ``ResponseContext``, ``DispatchState``
- ``node`` → ``RoutingNode`` (plugin-free tree)
- ``router`` → ``Router`` (root, dispatch, plugins)
"""

from .chain import MiddlewareChain
from .context import DispatchState, ResponseContext
from .entries import EntryKind, Route, TreeEntry
from .node import RoutingNode
from .router import Router, not_found
from .segments import extract_params, is_wildcard, match_segment, segment_path

__all__ = [
    "DispatchState",
    "EntryKind",
    "MiddlewareChain",
    "ResponseContext",
    "Route",
    "Router",
    "RoutingNode",
    "TreeEntry",
    "extract_params",
    "is_wildcard",
    "match_segment",
    "not_found",
    "segment_path",
]
