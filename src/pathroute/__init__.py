"""pathroute public API surface (source of truth).

Recreate the module with these rules:
- Public exports: ``Router``, ``RoutingNode``, ``Route``, ``MiddlewareChain``,
  ``ResponseContext``, ``DispatchState`` and ``segment_path``.
- Plugin registration: import built-in plugins (``logging``) for their side
  effect of calling ``Router.register_plugin``. Imports are done via
  ``import_module`` after the core is loaded to avoid cycles.

Constraints
-----------
- Import must stay lightweight: no router instantiation beyond plugin
  registration.
- ``__version__`` lives here for packaging tools.
"""

from importlib import import_module

__version__ = "0.3.0"

from .core import (
    DispatchState,
    MiddlewareChain,
    ResponseContext,
    Route,
    Router,
    RoutingNode,
    segment_path,
)

for _plugin in ("logging",):
    import_module(f"{__name__}.plugins.{_plugin}")
del _plugin

__all__ = [
    "DispatchState",
    "MiddlewareChain",
    "ResponseContext",
    "Route",
    "Router",
    "RoutingNode",
    "segment_path",
]
