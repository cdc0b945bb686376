"""Plugin-free routing tree node (source of truth).

The module exposes :class:`RoutingNode`, one node of the routing tree (also
called a sub-router). The root :class:`~pathroute.core.router.Router` is a
``RoutingNode`` subclass; every other node is created lazily by registration.

Structure and slots
-------------------
- ``name``: the segment this node stands for (``""`` for the root). A name
  starting with ``:`` makes the node a wildcard matching any single segment.
- ``_parent_ref``: ``weakref.ref`` to the parent (``None`` on the root). Used
  only to rebuild ``full_path()``; ownership runs parent → child.
- ``_entries``: ordered list of :class:`TreeEntry` (middleware, route, child
  node). Insertion order is execution order; it is never re-sorted.
- ``_children``: name → child node index over the ``NODE`` entries. At most
  one child per name; registering the same name again reuses it.

Registration
------------
``use(middleware, path="")``
    Resolve (creating as needed) the node for ``path`` and append the
    middleware there. Returns a :class:`MiddlewareChain` appending further
    middleware at that node (the chain's own ``path`` is relative to it).

``route(path, handler)``
    Resolve the node for ``path`` and append a new :class:`Route`. Returns a
    chain appending to the route's own middleware list; a chain ``path`` is
    rejected with ``ValueError``.

``group(path)``
    Resolve the node for ``path`` and return it; repeated calls return the
    same instance.

``get_branch(path="", create=True)``
    Shared resolver. With ``create=False`` a missing segment raises
    ``KeyError`` and nothing is created.

Non-callable middleware/handlers raise ``TypeError``. Every mutation first
asks the root whether the tree is still writable (``_ensure_mutable``) and
every new :class:`HandlerEntry` is reported to the root
(``_after_entry_registered``); both hooks are no-ops here and implemented by
``Router``.

Collection
----------
``collect_entries(remaining)`` walks ``_entries`` in order:

- middleware entries are always collected;
- route entries only when ``remaining`` is empty (route middleware first,
  handler last);
- the first child (in insertion order) whose name equals ``remaining[0]`` or
  is a wildcard is descended with ``remaining[1:]``; once a child has been
  descended no other sibling is tried. A literal child registered after a
  wildcard sibling therefore never wins.

``collect_executables`` returns the same walk as plain callables.

Introspection
-------------
``full_path()``, ``entries()``, ``children()``, ``routes()``,
``iter_routes()``, ``iter_handler_entries()``, ``select_entries(target)``
and ``members()`` (nested dict; empty nodes yield ``{}``). ``members()``
lists routes as ``{"path", "handler", "middlewares"}`` records in
registration order, so several routes on one node all appear.

Entry names come from ``__name__`` and are not unique (every lambda is
``"<lambda>"``); ``HandlerEntry.qualified_name`` prefixes the node path.
"""

from __future__ import annotations

import inspect
import weakref
from fnmatch import fnmatchcase
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from pathroute.core.chain import MiddlewareChain
from pathroute.core.entries import EntryKind, Route, TreeEntry
from pathroute.core.segments import SEPARATOR, is_wildcard, match_segment, segment_path
from pathroute.plugins._base_plugin import HANDLER, MIDDLEWARE, ROUTE_MIDDLEWARE, HandlerEntry

__all__ = ["RoutingNode"]


class RoutingNode:
    """One node of the routing tree."""

    __slots__ = ("name", "_parent_ref", "_entries", "_children", "__weakref__")

    def __init__(self, name: str = "", parent: Optional["RoutingNode"] = None) -> None:
        self.name = name
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        self._entries: List[TreeEntry] = []
        self._children: Dict[str, RoutingNode] = {}

    # ------------------------------------------------------------------
    # Tree navigation
    # ------------------------------------------------------------------
    @property
    def parent(self) -> Optional["RoutingNode"]:
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @property
    def root(self) -> "RoutingNode":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def is_wildcard(self) -> bool:
        return is_wildcard(self.name)

    def full_path(self) -> List[str]:
        """Return the segment names from the root down to this node."""
        names: List[str] = []
        node: Optional[RoutingNode] = self
        while node is not None:
            if node.name:
                names.append(node.name)
            node = node.parent
        names.reverse()
        return names

    def find_child(self, name: str) -> Optional["RoutingNode"]:
        """Return the direct child called ``name`` (exact name, no wildcard matching)."""
        return self._children.get(name)

    def get_branch(self, path: str = "", create: bool = True) -> "RoutingNode":
        """Resolve the node for ``path`` relative to this node.

        Raises:
            KeyError: when ``create`` is False and a segment does not exist.
        """
        node = self
        for segment in segment_path(path):
            child = node.find_child(segment)
            if child is None:
                if not create:
                    raise KeyError(
                        f"No branch '{segment}' under '/{SEPARATOR.join(node.full_path())}' "
                        f"(resolving '{path}')"
                    )
                self._ensure_writable()
                child = RoutingNode(segment, parent=node)
                node._children[segment] = child
                node._entries.append(TreeEntry(EntryKind.NODE, child))
            node = child
        return node

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------
    def use(self, middleware: Callable, path: str = "") -> MiddlewareChain:
        """Register node-scoped middleware at ``path`` (relative to this node)."""
        self._ensure_writable()
        self._check_callable(middleware, "Middleware")
        node = self.get_branch(path)
        node._append_middleware(middleware)
        return MiddlewareChain(node._chain_use)

    def route(self, path: str, handler: Callable) -> MiddlewareChain:
        """Register a terminal handler at ``path``; chained ``use`` scopes to this route."""
        self._ensure_writable()
        self._check_callable(handler, "Route handler")
        node = self.get_branch(path)
        route = Route(node, node._make_entry(handler, HANDLER))
        node._entries.append(TreeEntry(EntryKind.ROUTE, route))
        node._report_entry(route.handler)

        def append_to_route(middleware: Callable, chained_path: str = "") -> None:
            if segment_path(chained_path):
                raise ValueError(
                    f"Route middleware cannot target a path (got '{chained_path}' "
                    f"for route '{route}')"
                )
            node._ensure_writable()
            node._check_callable(middleware, "Middleware")
            entry = node._make_entry(middleware, ROUTE_MIDDLEWARE)
            route.middlewares.append(entry)
            node._report_entry(entry)

        return MiddlewareChain(append_to_route)

    def group(self, path: str) -> "RoutingNode":
        """Return the node for ``path``, creating it on first use."""
        self._ensure_writable()
        return self.get_branch(path)

    def clear(self) -> None:
        """Drop every entry and child below this node."""
        self._ensure_writable()
        self._entries = []
        self._children = {}

    def _chain_use(self, middleware: Callable, path: str = "") -> None:
        self.use(middleware, path)

    def _append_middleware(self, middleware: Callable) -> None:
        entry = self._make_entry(middleware, MIDDLEWARE)
        self._entries.append(TreeEntry(EntryKind.MIDDLEWARE, entry))
        self._report_entry(entry)

    def _make_entry(self, func: Callable, kind: str) -> HandlerEntry:
        name = getattr(func, "__name__", None) or type(func).__name__
        return HandlerEntry(name=name, func=func, node=self, kind=kind)

    @staticmethod
    def _check_callable(target: Any, label: str) -> None:
        if not callable(target):
            raise TypeError(f"{label} must be callable, got {target!r}")

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------
    def collect_entries(self, remaining: Sequence[str]) -> List[HandlerEntry]:
        """Return the ordered entries to run for the ``remaining`` segments."""
        remaining = list(remaining)
        collected: List[HandlerEntry] = []
        descended = False
        for item in self._entries:
            if item.kind is EntryKind.MIDDLEWARE:
                collected.append(item.payload)
            elif item.kind is EntryKind.ROUTE:
                if not remaining:
                    collected.extend(item.payload.executables())
            elif item.kind is EntryKind.NODE:
                if descended or not remaining:
                    continue
                child: RoutingNode = item.payload
                if match_segment(child.name, remaining[0]):
                    descended = True
                    collected.extend(child.collect_entries(remaining[1:]))
        return collected

    def collect_executables(self, remaining: Sequence[str]) -> List[Callable]:
        return [entry.func for entry in self.collect_entries(remaining)]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    def entries(self) -> Tuple[TreeEntry, ...]:
        return tuple(self._entries)

    def children(self) -> Dict[str, "RoutingNode"]:
        return dict(self._children)

    def routes(self) -> List[Route]:
        """Routes registered directly on this node."""
        return [item.payload for item in self._entries if item.kind is EntryKind.ROUTE]

    def iter_routes(self) -> Iterator[Route]:
        """Every route at or below this node, in tree order."""
        for item in self._entries:
            if item.kind is EntryKind.ROUTE:
                yield item.payload
            elif item.kind is EntryKind.NODE:
                yield from item.payload.iter_routes()

    def iter_handler_entries(self) -> Iterator[HandlerEntry]:
        """Every middleware/handler entry at or below this node."""
        for item in self._entries:
            if item.kind is EntryKind.MIDDLEWARE:
                yield item.payload
            elif item.kind is EntryKind.ROUTE:
                yield from item.payload.executables()
            elif item.kind is EntryKind.NODE:
                yield from item.payload.iter_handler_entries()

    def select_entries(self, target: Any) -> List[HandlerEntry]:
        """Resolve ``target`` to the entries at or below this node.

        ``target`` is a :class:`HandlerEntry` (returned as is) or comma-separated
        ``fnmatch`` patterns matched against ``entry.qualified_name``, e.g.
        ``"/users/*#*"`` or ``"/#auth,/admin#auth"``.
        """
        if isinstance(target, HandlerEntry):
            return [target]
        if not isinstance(target, str):
            raise TypeError(f"Entry selector must be a HandlerEntry or a string, got {target!r}")
        patterns = [token.strip() for token in target.split(",") if token.strip()]
        return [
            entry
            for entry in self.iter_handler_entries()
            if any(fnmatchcase(entry.qualified_name, pattern) for pattern in patterns)
        ]

    def members(self) -> Dict[str, Any]:
        """Return a tree of middlewares/routes/children below this node."""
        middlewares = [
            self._entry_member_info(item.payload)
            for item in self._entries
            if item.kind is EntryKind.MIDDLEWARE
        ]
        routes = [
            {
                "path": str(route) or SEPARATOR,
                "handler": self._entry_member_info(route.handler),
                "middlewares": [self._entry_member_info(mw) for mw in route.middlewares],
            }
            for route in self.routes()
        ]
        children = {name: child.members() for name, child in self._children.items()}
        children = {k: v for k, v in children.items() if v}

        if not middlewares and not routes and not children:
            return {}

        result: Dict[str, Any] = {
            "name": self.name,
            "path": SEPARATOR.join(self.full_path()),
            "node": self,
        }
        if middlewares:
            result["middlewares"] = middlewares
        if routes:
            result["routes"] = routes
        if children:
            result["children"] = children
        return result

    def _entry_member_info(self, entry: HandlerEntry) -> Dict[str, Any]:
        info: Dict[str, Any] = {
            "name": entry.name,
            "kind": entry.kind,
            "callable": entry.func,
            "metadata": entry.metadata,
            "doc": inspect.getdoc(entry.func) or "",
        }
        extra = self.root._describe_entry_extra(entry, info)
        if extra:
            info.update(extra)
        return info

    # ------------------------------------------------------------------
    # Root hooks (no-op unless the root is a Router)
    # ------------------------------------------------------------------
    def _ensure_writable(self) -> None:
        self.root._ensure_mutable()

    def _report_entry(self, entry: HandlerEntry) -> None:
        self.root._after_entry_registered(entry)

    def _ensure_mutable(self) -> None:  # pragma: no cover - overridden by Router
        return None

    def _after_entry_registered(
        self, entry: HandlerEntry
    ) -> None:  # pragma: no cover - overridden by Router
        return None

    def _describe_entry_extra(
        self, entry: HandlerEntry, base_description: Dict[str, Any]
    ) -> Dict[str, Any]:  # pragma: no cover - overridden by Router
        return {}

    def __repr__(self) -> str:
        return f"<{type(self).__name__} '/{SEPARATOR.join(self.full_path())}'>"
