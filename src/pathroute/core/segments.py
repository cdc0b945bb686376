"""Path segmentation primitives (source of truth).

Pure helpers shared by registration and dispatch. Nothing here knows about
the routing tree.

``segment_path(path)``
    Strips leading/trailing ``/``, splits on ``/`` and drops empty segments
    produced by repeated separators::

        segment_path("/a//b/")      -> ["a", "b"]
        segment_path("")            -> []
        segment_path("/users/:id")  -> ["users", ":id"]

    Wildcard segments (``:name``) are returned verbatim; interpreting them is
    the routing node's job.

``is_wildcard(name)`` / ``match_segment(name, segment)``
    A registered name starting with ``WILDCARD_MARKER`` matches any single
    incoming segment; any other name matches only itself.

``extract_params(pattern, segments)``
    Pairs a registered pattern with an incoming path (both as segment lists)
    and returns ``{wildcard_name_without_marker: value}``. Positions beyond
    the shorter list are ignored.
"""

from __future__ import annotations

from typing import Dict, List, Sequence

__all__ = [
    "SEPARATOR",
    "WILDCARD_MARKER",
    "segment_path",
    "is_wildcard",
    "match_segment",
    "extract_params",
]

SEPARATOR = "/"
WILDCARD_MARKER = ":"


def segment_path(path: str) -> List[str]:
    """Split ``path`` into its non-empty segments."""
    return [part for part in path.strip(SEPARATOR).split(SEPARATOR) if part]


def is_wildcard(name: str) -> bool:
    return name.startswith(WILDCARD_MARKER)


def match_segment(name: str, segment: str) -> bool:
    """Return True when a node called ``name`` accepts ``segment``."""
    return name == segment or is_wildcard(name)


def extract_params(pattern: Sequence[str], segments: Sequence[str]) -> Dict[str, str]:
    params: Dict[str, str] = {}
    for name, value in zip(pattern, segments):
        if is_wildcard(name):
            params[name[len(WILDCARD_MARKER) :]] = value
    return params
