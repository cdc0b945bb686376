"""Plugin contract used by the dispatch pump (source of truth).

Objects
~~~~~~~
``HandlerEntry``
    One registered callable (middleware or route handler). Fields: ``name``
    (the callable's ``__name__``), ``func``, ``node`` (owning
    ``RoutingNode``), ``kind`` (``MIDDLEWARE``, ``ROUTE_MIDDLEWARE`` or
    ``HANDLER``), ``plugins`` (names of plugins that saw the entry) and
    ``metadata`` (free-form annotations).

    Entries compare and hash by identity: registering the same function twice
    yields two distinct entries. ``qualified_name`` is ``"/<node path>#<name>"``
    and is what string selectors match against. It is not unique: two
    lambdas at the same node share it, so address such entries by object.

``BasePlugin``
    Subclasses set ``plugin_code`` / ``plugin_description`` and may extend the
    nested pydantic ``Options`` model (``enabled`` is always present).

    ``configure(target=None, *, flags=None, **changes)``
        ``target=None`` updates the router-wide options. Otherwise ``target``
        is a ``HandlerEntry`` or a selector string (comma-separated
        ``fnmatch`` patterns over ``qualified_name``, resolved through the
        router) and the changes are stored as per-entry overrides. Unknown
        keys or bad values raise pydantic ``ValidationError``; a selector
        matching nothing raises ``KeyError``. ``flags`` ("before:off,print")
        is parsed into booleans first.

    ``options(entry=None)``
        The effective ``Options`` instance for ``entry``.

    ``on_register(entry)``
        Called once per entry, at registration or when the plugin is plugged.

    ``around(ctx, entry, position, call_next)``
        Called by the pump for each step of the continuation. ``position`` is
        the executable's index in the matched list. Must call ``call_next(ctx)``
        to run the executable and return its result (which may be awaitable
        when the router dispatches asynchronously). Skipped when the entry's
        options say ``enabled=False``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

__all__ = [
    "BasePlugin",
    "HandlerEntry",
    "MIDDLEWARE",
    "ROUTE_MIDDLEWARE",
    "HANDLER",
    "parse_flags",
]

MIDDLEWARE = "middleware"
ROUTE_MIDDLEWARE = "route_middleware"
HANDLER = "handler"


@dataclass(eq=False)
class HandlerEntry:
    """Metadata for a registered middleware or route handler."""

    name: str
    func: Callable
    node: Any
    kind: str
    plugins: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return "/".join(self.node.full_path()) if self.node is not None else ""

    @property
    def qualified_name(self) -> str:
        return f"/{self.path}#{self.name}"


def parse_flags(flags: str) -> Dict[str, bool]:
    """``"a,b:off"`` -> ``{"a": True, "b": False}``."""
    mapping: Dict[str, bool] = {}
    for chunk in flags.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, _, value = chunk.partition(":")
        mapping[name.strip()] = value.strip().lower() != "off"
    return mapping


class BasePlugin:
    """Per-router plugin: options model plus the step hook."""

    plugin_code: str = ""
    plugin_description: str = ""

    class Options(BaseModel):
        model_config = ConfigDict(extra="forbid")

        enabled: bool = True

    __slots__ = ("router", "_base", "_overrides")

    def __init__(self, router: Any, **options: Any) -> None:
        self.router = router
        self._base = self.Options()
        self._overrides: Dict[HandlerEntry, Dict[str, Any]] = {}
        if options:
            self.configure(**options)

    @property
    def name(self) -> str:
        return self.plugin_code

    def configure(
        self, target: Any = None, *, flags: Optional[str] = None, **changes: Any
    ) -> List[HandlerEntry]:
        """Update router-wide options, or per-entry overrides for ``target``."""
        if flags:
            changes = {**parse_flags(flags), **changes}
        merged = self.Options.model_validate({**self._base.model_dump(), **changes})
        if target is None:
            self._base = merged
            return []
        entries = self.router.select_entries(target)
        if not entries:
            raise KeyError(f"No entries matching {target!r} for plugin '{self.name}'")
        validated = {key: getattr(merged, key) for key in changes}
        for entry in entries:
            self._overrides.setdefault(entry, {}).update(validated)
        return entries

    def options(self, entry: Optional[HandlerEntry] = None) -> "BasePlugin.Options":
        override = self._overrides.get(entry) if entry is not None else None
        if not override:
            return self._base
        return self._base.model_copy(update=override)

    def on_register(self, entry: HandlerEntry) -> None:  # pragma: no cover - default no-op
        """Hook run when the entry is registered."""

    def around(self, ctx: Any, entry: HandlerEntry, position: int, call_next: Callable) -> Any:
        return call_next(ctx)
