"""Root router: dispatch loop and plugin pipeline (source of truth).

``Router`` extends :class:`RoutingNode` (it is the tree root, name ``""``)
with the dispatch entry points, a freeze switch and the plugin pipeline.

Constructor
-----------
::

    Router(name=None, *, dispatch_sink=None, dispatch_not_found_handler=None,
           dispatch_use_smartasync=None, dispatch_kwargs=None)

``name`` labels the router in error messages. The ``dispatch_*`` keywords
become defaults merged with per-call options through ``SmartOptions``.

Dispatch
--------
``dispatch(path, **options)`` → :class:`ResponseContext`

1. ``segment_path(path)`` then ``collect_entries`` from the root.
2. Empty list → ``NOT_FOUND``: a fresh context with status 404 is handed to
   ``not_found_handler`` (default: write ``"Not Found"`` and finalize). No
   registered executable runs.
3. Otherwise one context is built whose continuation advances a cursor over
   the list. The router invokes the first executable; every later one runs
   only through ``ctx.advance()``. Each step goes through the plugin layers
   (``BasePlugin.around``).
4. When control returns to the router the state becomes ``DONE`` (already
   ``DONE`` if a handler finalized). Handler exceptions propagate and leave
   the state ``RUNNING``.

Options: ``sink`` (``sink(status, headers, body)``, called by
``finalize()``), ``not_found_handler``, ``use_smartasync``.

Asynchronous dispatch
---------------------
With ``use_smartasync`` the whole chain runs inside one event loop, driven
by ``smartasync``. ``ctx.advance()`` then returns an awaitable whatever the
next executable is: ``async def`` executables ``await ctx.next()`` and
resume once everything downstream has finished. A plain ``def`` executable
may call ``ctx.next()`` without awaiting it; the step is then run by the
router right after the caller returns. Called from synchronous code,
``dispatch`` blocks and returns the context; called inside a running loop
it returns an awaitable resolving to the context.

``run(environ=None)`` reads ``REQUEST_URI`` (falling back to ``PATH_INFO``)
from a WSGI/CGI-style mapping, ``os.environ`` by default, drops the query
string and dispatches.

Freezing
--------
``freeze()`` makes the tree read-only: registration on the router or on any
of its nodes, and ``clear()``, raise ``RuntimeError``. Lookups keep working.
Dispatch never mutates the tree, so a frozen router can be shared by
concurrent requests.

Plugins
-------
``Router.register_plugin(plugin_class, name=None)`` registers a
:class:`BasePlugin` subclass globally under ``plugin_code`` (or ``name``,
which may overwrite). ``plug(name, **options)`` instantiates it for this
router, runs ``on_register`` for every existing entry and returns ``self``.
Plugging the same name twice raises ``ValueError``. New entries are
reported to every plugin as they are registered. Attached plugins are
reachable as attributes (``router.logging``).

Per step the layers are nested in attach order: the first plugged plugin is
the outermost. A layer is skipped for an entry whose effective options say
``enabled=False``.

``select_entries(target)`` resolves a ``HandlerEntry`` or a selector string
(comma-separated ``fnmatch`` patterns over ``entry.qualified_name``) and is
what ``plugin.configure(target, ...)`` and ``get_config`` use.
"""

from __future__ import annotations

import inspect
import logging
import os
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Type

from smartseeds import SmartOptions

from pathroute.core.context import DispatchState, ResponseContext, Sink
from pathroute.core.node import RoutingNode
from pathroute.core.segments import segment_path
from pathroute.plugins._base_plugin import BasePlugin, HandlerEntry

__all__ = ["Router", "not_found"]

logger = logging.getLogger("pathroute")

_PLUGIN_REGISTRY: Dict[str, Type[BasePlugin]] = {}

NOT_FOUND_STATUS = 404
NOT_FOUND_BODY = "Not Found"


def not_found(ctx: ResponseContext) -> None:
    """Default executable for unmatched paths."""
    ctx.write(NOT_FOUND_BODY)
    ctx.finalize()


async def _nothing() -> None:
    return None


class Router(RoutingNode):
    """Routing tree root with dispatch and plugin support."""

    __slots__ = (
        "label",
        "_frozen",
        "_dispatch_defaults",
        "_plugins",
        "_plugins_by_name",
    )

    def __init__(
        self,
        name: Optional[str] = None,
        *,
        dispatch_sink: Optional[Sink] = None,
        dispatch_not_found_handler: Optional[Callable] = None,
        dispatch_use_smartasync: Optional[bool] = None,
        dispatch_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._plugins: List[BasePlugin] = []
        self._plugins_by_name: Dict[str, BasePlugin] = {}
        self._frozen = False
        super().__init__("")
        self.label = name
        defaults: Dict[str, Any] = dict(dispatch_kwargs or {})
        if dispatch_sink is not None:
            defaults.setdefault("sink", dispatch_sink)
        if dispatch_not_found_handler is not None:
            defaults.setdefault("not_found_handler", dispatch_not_found_handler)
        if dispatch_use_smartasync is not None:
            defaults.setdefault("use_smartasync", dispatch_use_smartasync)
        self._dispatch_defaults: Dict[str, Any] = defaults

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------
    def dispatch(self, path: str, **options: Any) -> ResponseContext:
        """Run the executables matching ``path`` and return the response context."""
        opts = SmartOptions(options, defaults=self._dispatch_defaults)
        sink = getattr(opts, "sink", None)
        not_found_handler = getattr(opts, "not_found_handler", None)
        use_smartasync = getattr(opts, "use_smartasync", False)

        segments = segment_path(path)
        entries = self.collect_entries(segments)
        if not entries:
            logger.debug("No executables for %r, answering %s", path, NOT_FOUND_STATUS)
            ctx = self._dispatch_not_found(path, segments, sink, not_found_handler)
            if use_smartasync:
                from smartasync import smartasync  # type: ignore

                return smartasync(self._settled)(ctx)
            return ctx

        logger.debug("Dispatching %r through %d executables", path, len(entries))
        cursor = 0
        pending: List[Any] = []

        def advance(ctx: ResponseContext) -> Any:
            nonlocal cursor
            if ctx.finalized or cursor >= len(entries):
                if use_smartasync:
                    step = _nothing()
                    pending.append(step)
                    return step
                return None
            position = cursor
            cursor += 1
            if use_smartasync:
                step = self._run_step_async(ctx, entries[position], position)
                pending.append(step)
                return step
            return self._run_step(ctx, entries[position], position)

        ctx = ResponseContext(advance, path=path, segments=segments, sink=sink)
        ctx.state = DispatchState.RUNNING
        if use_smartasync:
            from smartasync import smartasync  # type: ignore

            return smartasync(self._drive)(ctx, advance, pending)
        advance(ctx)
        return self._complete(ctx)

    __call__ = dispatch

    def run(self, environ: Optional[Mapping[str, str]] = None, **options: Any) -> ResponseContext:
        """Dispatch the request URI found in a WSGI/CGI-style ``environ``."""
        if environ is None:
            environ = os.environ
        uri = environ.get("REQUEST_URI") or environ.get("PATH_INFO") or "/"
        return self.dispatch(uri.split("?", 1)[0], **options)

    async def _drive(
        self, ctx: ResponseContext, advance: Callable, pending: List[Any]
    ) -> ResponseContext:
        advance(ctx)
        # Steps awaited by their caller are already closed; the rest run here.
        try:
            while pending:
                step = pending.pop(0)
                if inspect.getcoroutinestate(step) == inspect.CORO_CREATED:
                    await step
        finally:
            for step in pending:
                step.close()
            pending.clear()
        return self._complete(ctx)

    async def _settled(self, ctx: ResponseContext) -> ResponseContext:
        return ctx

    @staticmethod
    def _complete(ctx: ResponseContext) -> ResponseContext:
        if ctx.state is DispatchState.RUNNING:
            ctx.state = DispatchState.DONE
        return ctx

    def _run_step(self, ctx: ResponseContext, entry: HandlerEntry, position: int) -> Any:
        call: Callable = entry.func
        for plugin in reversed(self._plugins):
            if plugin.options(entry).enabled:
                call = self._layer(plugin, entry, position, call)
        return call(ctx)

    async def _run_step_async(
        self, ctx: ResponseContext, entry: HandlerEntry, position: int
    ) -> Any:
        result = self._run_step(ctx, entry, position)
        if inspect.isawaitable(result):
            result = await result
        return result

    @staticmethod
    def _layer(
        plugin: BasePlugin, entry: HandlerEntry, position: int, call_next: Callable
    ) -> Callable:
        def layer(ctx: ResponseContext) -> Any:
            return plugin.around(ctx, entry, position, call_next)

        return layer

    def _dispatch_not_found(
        self,
        path: str,
        segments: Sequence[str],
        sink: Optional[Sink],
        handler: Optional[Callable],
    ) -> ResponseContext:
        ctx = ResponseContext(lambda _ctx: None, path=path, segments=segments, sink=sink)
        ctx.state = DispatchState.NOT_FOUND
        ctx.set_status(NOT_FOUND_STATUS)
        (handler or not_found)(ctx)
        return ctx

    # ------------------------------------------------------------------
    # Tree lifecycle
    # ------------------------------------------------------------------
    def freeze(self) -> "Router":
        """Reject any further registration on this tree."""
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _ensure_mutable(self) -> None:  # type: ignore[override]
        if self._frozen:
            raise RuntimeError(f"Router '{self.label or ''}' is frozen; registration is closed")

    # ------------------------------------------------------------------
    # Plugin registration
    # ------------------------------------------------------------------
    @classmethod
    def register_plugin(cls, plugin_class: Type[BasePlugin], name: Optional[str] = None) -> None:
        """Register a plugin class globally.

        Args:
            plugin_class: A BasePlugin subclass with plugin_code defined.
            name: Optional registry key. When given it overwrites any existing
                registration; otherwise ``plugin_code`` is used and a different
                class already registered under it raises ``ValueError``.
        """
        if not isinstance(plugin_class, type) or not issubclass(plugin_class, BasePlugin):
            raise TypeError("plugin_class must be a BasePlugin subclass")
        if not getattr(plugin_class, "plugin_code", None):
            raise ValueError(
                f"Plugin {plugin_class.__name__} not following standards: missing plugin_code"
            )
        code = name or plugin_class.plugin_code
        if name is None:
            existing = _PLUGIN_REGISTRY.get(code)
            if existing is not None and existing is not plugin_class:
                raise ValueError(f"Plugin '{code}' already registered")
        _PLUGIN_REGISTRY[code] = plugin_class

    @classmethod
    def available_plugins(cls) -> Dict[str, Type[BasePlugin]]:
        return dict(_PLUGIN_REGISTRY)

    def plug(self, plugin: str, **options: Any) -> "Router":
        """Attach a plugin by its registered name."""
        if not isinstance(plugin, str):
            raise TypeError(
                f"Plugin must be referenced by name string, got {type(plugin).__name__}"
            )
        plugin_class = _PLUGIN_REGISTRY.get(plugin)
        if plugin_class is None:
            available = ", ".join(sorted(_PLUGIN_REGISTRY)) or "none"
            raise ValueError(
                f"Unknown plugin '{plugin}'. Register it first. Available plugins: {available}"
            )
        if plugin in self._plugins_by_name:
            raise ValueError(
                f"Plugin '{plugin}' already attached to router '{self.label}'; "
                f"use router.{plugin}.configure(...) instead"
            )
        instance = plugin_class(self, **options)
        self._plugins.append(instance)
        self._plugins_by_name[plugin] = instance
        for entry in self.iter_handler_entries():
            self._decorate(plugin, instance, entry)
        return self

    def iter_plugins(self) -> List[BasePlugin]:
        """Return attached plugin instances in application order."""
        return list(self._plugins)

    def get_config(self, plugin_name: str, target: Any = None) -> Dict[str, Any]:
        """Return the effective options of an attached plugin, router-wide or for one entry."""
        plugin = self._require_plugin(plugin_name)
        if target is None:
            return plugin.options().model_dump()
        entries = self.select_entries(target)
        if len(entries) != 1:
            raise KeyError(f"Selector {target!r} matches {len(entries)} entries, expected one")
        return plugin.options(entries[0]).model_dump()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._require_plugin(name)

    def _require_plugin(self, plugin_name: str) -> BasePlugin:
        plugin = self._plugins_by_name.get(plugin_name)
        if plugin is None:
            raise AttributeError(
                f"No plugin named '{plugin_name}' attached to router '{self.label}'"
            )
        return plugin

    # ------------------------------------------------------------------
    # Overrides/hooks
    # ------------------------------------------------------------------
    def _decorate(self, name: str, plugin: BasePlugin, entry: HandlerEntry) -> None:
        if name not in entry.plugins:
            entry.plugins.append(name)
        plugin.on_register(entry)

    def _after_entry_registered(self, entry: HandlerEntry) -> None:  # type: ignore[override]
        for name, plugin in self._plugins_by_name.items():
            self._decorate(name, plugin, entry)

    def _describe_entry_extra(  # type: ignore[override]
        self, entry: HandlerEntry, base_description: Dict[str, Any]
    ) -> Dict[str, Any]:
        if not self._plugins_by_name:
            return {}
        return {
            "plugins": {
                name: {"config": plugin.options(entry).model_dump()}
                for name, plugin in self._plugins_by_name.items()
            }
        }

    def __repr__(self) -> str:
        return f"<Router {self.label!r} routes={sum(1 for _ in self.iter_routes())}>"
