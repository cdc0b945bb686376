"""Per-dispatch response context (source of truth).

One :class:`ResponseContext` is created for every dispatch and handed to each
executable in turn. It is the only object handlers see.

State machine
-------------
``DispatchState``: ``PENDING`` (built) → ``RUNNING`` (first executable
invoked) → ``DONE`` (finalized, or the executable list ran out), or
``PENDING`` → ``NOT_FOUND`` (no executable matched; terminal).

Response data
-------------
- ``status`` (int, default 200) via ``set_status``.
- ``headers`` (dict, insertion ordered, last write wins) via ``set_header``.
- ``body`` (str) via ``write`` (appends).

Continuation
------------
``advance()`` (alias ``next()``) calls the closure supplied by the router,
which runs the next pending executable inline. Returning from a handler
without calling it stops the chain for this request.

Finalization
------------
``finalize()`` hands ``(status, headers, body)`` to the transport ``sink``
exactly once. Afterwards ``advance()`` and ``finalize()`` do nothing and
mutations are dropped with a warning on the ``pathroute`` logger.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

__all__ = ["DispatchState", "ResponseContext", "Sink"]

logger = logging.getLogger("pathroute")

Sink = Callable[[int, Dict[str, str], str], None]


class DispatchState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    NOT_FOUND = "not_found"


class ResponseContext:
    """Mutable response state plus the continuation for one dispatch."""

    __slots__ = (
        "path",
        "segments",
        "status",
        "headers",
        "body",
        "state",
        "_advance",
        "_sink",
        "_finalized",
    )

    def __init__(
        self,
        advance: Callable[["ResponseContext"], None],
        *,
        path: str = "",
        segments: Sequence[str] = (),
        sink: Optional[Sink] = None,
    ) -> None:
        self.path = path
        self.segments: Tuple[str, ...] = tuple(segments)
        self.status = 200
        self.headers: Dict[str, str] = {}
        self.body = ""
        self.state = DispatchState.PENDING
        self._advance = advance
        self._sink = sink
        self._finalized = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    def set_status(self, status: int) -> None:
        if self._reject_after_finalize("set_status"):
            return
        self.status = int(status)

    def set_header(self, key: str, value: str) -> None:
        if self._reject_after_finalize("set_header"):
            return
        self.headers[key] = value

    def write(self, text: str) -> None:
        if self._reject_after_finalize("write"):
            return
        self.body += text

    def advance(self) -> Any:
        """Run the next pending executable, if any.

        Returns whatever the router's continuation returns: ``None`` for a
        synchronous dispatch, an awaitable for an asynchronous one.
        """
        return self._advance(self)

    next = advance

    def finalize(self) -> None:
        """Hand the response to the sink; only the first call has an effect."""
        if self._finalized:
            return
        self._finalized = True
        if self.state is not DispatchState.NOT_FOUND:
            self.state = DispatchState.DONE
        if self._sink is not None:
            self._sink(self.status, dict(self.headers), self.body)

    done = finalize

    def _reject_after_finalize(self, operation: str) -> bool:
        if not self._finalized:
            return False
        logger.warning("%s ignored: response for %r already finalized", operation, self.path)
        return True

    def __repr__(self) -> str:
        return f"<ResponseContext {self.path!r} status={self.status} state={self.state.value}>"
