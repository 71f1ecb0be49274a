"""Explicit change notification for form state.

Fields and forms do not rely on ambient observability.  Every node owns a
``ChangeNotifier``; mutations call ``notifier.mark("attr", ...)`` and
dependents either ``listen()`` synchronously or ``subscribe()`` from an
async task.  Derived values (``has_error``, ``error``, ...) are plain
properties recomputed on read, so they are always consistent with the last
emitted event.

Components:

- ``ChangeEvent``: emitted once per node per transaction.
- ``ChangeNotifier``: per-node broadcast channel.
- ``transaction()``: batches marks across any number of nodes into one
  event per node, delivered when the outermost transaction exits.

Example::

    unsubscribe = form.changes.listen(lambda event: redraw(event.changed))

    with transaction():
        field.on_change("new value")
        form.clear_form_error()
    # -> one ChangeEvent for field, one for form
"""

from __future__ import annotations

import asyncio
import contextlib
import contextvars
import logging
import threading
from collections.abc import AsyncIterator, Callable, Iterator
from dataclasses import dataclass
from typing import Any, TypeAlias

logger = logging.getLogger("formtree.reactive")

Listener: TypeAlias = Callable[["ChangeEvent"], None]


# ---------------------------------------------------------------------------
# Change Events
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """Emitted by a node after one or more attributes changed.

    Attributes:
        source: The field or form whose state changed.
        changed: Names of the attributes that changed
            (e.g., ``{"validating", "form_error"}``).
    """

    source: Any
    changed: frozenset[str]


# ---------------------------------------------------------------------------
# Transactions
# ---------------------------------------------------------------------------

# notifier -> attribute names marked while the transaction is open
_pending: contextvars.ContextVar[dict[ChangeNotifier, set[str]] | None] = (
    contextvars.ContextVar("formtree_pending", default=None)
)


@contextlib.contextmanager
def transaction() -> Iterator[None]:
    """Batch every mark made inside the block into one event per node.

    Nested transactions join the outermost one.  Events are delivered when
    the outermost block exits, including when it exits with an exception,
    since the marked state has already been mutated.
    """
    if _pending.get() is not None:
        yield
        return

    pending: dict[ChangeNotifier, set[str]] = {}
    token = _pending.set(pending)
    try:
        yield
    finally:
        _pending.reset(token)
        for notifier, changed in pending.items():
            notifier.emit(ChangeEvent(source=notifier.owner, changed=frozenset(changed)))


def in_transaction() -> bool:
    """True while a transaction is open in the current context."""
    return _pending.get() is not None


def detached_context() -> contextvars.Context:
    """A copy of the current context with no open transaction.

    Background tasks spawned from inside a transaction must run in this,
    otherwise their marks land in a batch that was already flushed.
    """
    ctx = contextvars.copy_context()
    ctx.run(_pending.set, None)
    return ctx


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------

class ChangeNotifier:
    """Broadcast channel for one node's change events.

    Synchronous listeners run inline when an event is emitted; a failing
    listener is logged and does not affect the others.  Async subscribers
    each get their own ``asyncio.Queue``, fed with ``put_nowait`` so
    emitting never blocks (events are dropped for a full queue).
    """

    __slots__ = ("_listeners", "_lock", "_queues", "owner")

    def __init__(self, owner: Any) -> None:
        self.owner = owner
        self._listeners: list[Listener] = []
        self._queues: set[asyncio.Queue[ChangeEvent | None]] = set()
        self._lock = threading.Lock()

    def mark(self, *changed: str) -> None:
        """Record that attributes changed.

        Inside a transaction the names are batched; otherwise an event is
        emitted immediately.
        """
        pending = _pending.get()
        if pending is None:
            self.emit(ChangeEvent(source=self.owner, changed=frozenset(changed)))
            return
        pending.setdefault(self, set()).update(changed)

    def emit(self, event: ChangeEvent) -> None:
        """Deliver an event to every listener and subscriber."""
        with self._lock:
            listeners = list(self._listeners)
            queues = set(self._queues)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Change listener %r failed for %s", listener, type(self.owner).__name__,
                )
        for queue in queues:
            with contextlib.suppress(asyncio.QueueFull):
                queue.put_nowait(event)

    def listen(self, listener: Listener) -> Callable[[], None]:
        """Register a synchronous listener.  Returns an unsubscribe callable."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock, contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return unsubscribe

    async def subscribe(self) -> AsyncIterator[ChangeEvent]:
        """Yield change events as they are emitted.

        The subscription is cleaned up when the iterator exits or when
        ``close()`` is called.
        """
        queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue(maxsize=256)
        with self._lock:
            self._queues.add(queue)
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event
        finally:
            with self._lock:
                self._queues.discard(queue)

    def close(self) -> None:
        """Signal all async subscribers to stop."""
        with self._lock:
            queues = set(self._queues)
            self._queues.clear()
        for queue in queues:
            with contextlib.suppress(asyncio.QueueFull):
                queue.put_nowait(None)
