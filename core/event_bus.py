"""Synchronous in-process dispatcher with ordered and one-shot listeners."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import nullcontext
from typing import TYPE_CHECKING, Any, Callable, ContextManager, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple, Union

from core.errors import ConfigurationError
from core.events import TraceKind, TraceRecord
from core.listeners import ListenerHandle

if TYPE_CHECKING:
    from tracing.sinks.base import TraceSink

LOGGER = logging.getLogger(__name__)

Listener = Union[ListenerHandle, Callable[..., Any]]


def _check_event(event: Hashable) -> Hashable:
    if event is None or (isinstance(event, str) and not event.strip()):
        raise ConfigurationError("event key must be a non-empty value")
    try:
        hash(event)
    except TypeError as exc:
        raise ConfigurationError(f"event key must be hashable, got {type(event).__name__}") from exc
    return event


class _Registration:
    """One subscription entry; entries are matched by identity, handles by equality."""

    __slots__ = ("handle", "once", "claimed")

    def __init__(self, handle: ListenerHandle, once: bool) -> None:
        self.handle = handle
        self.once = once
        # set while a publish pass owns this one-shot entry
        self.claimed = False


class Dispatcher:
    """Publish/subscribe registry shared by producers and listeners.

    Listeners run synchronously in registration order. ``publish`` works on a
    snapshot taken before the first call, so listeners that subscribe or
    unsubscribe (themselves or others) during a pass only affect the next
    ``publish`` of that event. Listeners whose handle became invalid are
    skipped but stay registered until unsubscribed.

    Each ``subscribe``/``subscribe_once`` call creates its own registration.
    Once-cleanup removes only the registration the pass snapshotted, so a
    one-shot listener may re-arm itself from inside its own call.

    With ``thread_safe=True`` every registry read and write is serialized
    under one re-entrant lock; listener code and trace sinks always run
    outside of it.
    """

    def __init__(
        self,
        trace_sink: Optional[TraceSink] = None,
        *,
        debug: bool = False,
        allow_duplicates: bool = True,
        thread_safe: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._listeners: Dict[Hashable, List[_Registration]] = {}
        self._trace_sink = trace_sink
        self._debug = debug
        self._allow_duplicates = allow_duplicates
        self._clock = clock
        self._lock: ContextManager[Any] = threading.RLock() if thread_safe else nullcontext()

    @property
    def debug(self) -> bool:
        return self._debug

    def toggle_debug(self) -> None:
        """Flip whether trace records are forwarded to the trace sink."""

        self._debug = not self._debug
        LOGGER.info("Dispatcher tracing %s", "enabled" if self._debug else "disabled")

    # registration -----------------------------------------------------

    def subscribe(self, event: Hashable, listener: Listener) -> None:
        """Append ``listener`` to the ordered listeners of ``event``."""

        handle = self._register(event, listener, once=False)
        if self._tracing:
            self._trace(TraceKind.SUB, event, (handle.describe(),), count=self._count(event))

    def subscribe_once(self, event: Hashable, listener: Listener) -> None:
        """Like :meth:`subscribe`, but the listener is removed after it next fires."""

        handle = self._register(event, listener, once=True)
        if self._tracing:
            self._trace(TraceKind.SUB_ONCE, event, (handle.describe(),), count=self._count(event))

    def unsubscribe(self, event: Hashable, listener: Listener) -> None:
        """Remove every registration of ``listener`` for ``event``.

        Unknown events and listeners that were never registered are ignored.
        """

        _check_event(event)
        handle = ListenerHandle.wrap(listener)
        with self._lock:
            removed = self._remove(event, lambda entry: entry.handle == handle)
        if removed:
            LOGGER.debug("Unsubscribed %s from %r (%d entries)", handle.describe(), event, removed)
        if self._tracing:
            self._trace(TraceKind.OFF, event, (handle.describe(),), count=removed)

    def _register(self, event: Hashable, listener: Listener, once: bool) -> ListenerHandle:
        _check_event(event)
        handle = ListenerHandle.wrap(listener)
        with self._lock:
            registered = self._listeners.setdefault(event, [])
            existing = None
            if not self._allow_duplicates:
                # an entry owned by a running pass is about to be removed, so it does not count
                existing = next(
                    (entry for entry in registered if entry.handle == handle and not entry.claimed),
                    None,
                )
            if existing is None:
                registered.append(_Registration(handle, once))
            elif once:
                existing.once = True
        LOGGER.debug("Subscribed %s to %r%s", handle.describe(), event, " (once)" if once else "")
        return handle

    def _remove(self, event: Hashable, match: Callable[[_Registration], bool]) -> int:
        """Drop matching entries and empty keys; caller holds the lock."""

        registered = self._listeners.get(event)
        if registered is None:
            return 0
        kept = [entry for entry in registered if not match(entry)]
        if kept:
            self._listeners[event] = kept
        else:
            del self._listeners[event]
        return len(registered) - len(kept)

    # dispatch ---------------------------------------------------------

    def publish(self, event: Hashable, *args: Any) -> None:
        """Invoke the current listeners of ``event`` in order with ``args``."""

        _check_event(event)
        snapshot = self._snapshot(event)
        if self._tracing:
            self._trace(
                TraceKind.EMIT,
                event,
                tuple(entry.handle.describe() for entry, _ in snapshot),
                args=args,
                count=len(snapshot),
            )

        reached = 0
        try:
            for entry, claimed in snapshot:
                reached += 1
                try:
                    entry.handle.invoke(*args)
                except Exception as exc:
                    LOGGER.exception("Listener %s failed while handling %r", entry.handle.describe(), event)
                    if self._tracing:
                        self._trace(
                            TraceKind.FAIL,
                            event,
                            (entry.handle.describe(),),
                            args=args,
                            count=1,
                            detail={"error": type(exc).__name__, "message": str(exc)},
                        )
                finally:
                    if claimed:
                        self._finish_once(event, entry)
        finally:
            # a BaseException escaped: one-shots never attempted stay registered for the next pass
            unreached = [entry for entry, claimed in snapshot[reached:] if claimed]
            if unreached:
                with self._lock:
                    for entry in unreached:
                        entry.claimed = False

    def _snapshot(self, event: Hashable) -> List[Tuple[_Registration, bool]]:
        with self._lock:
            snapshot: List[Tuple[_Registration, bool]] = []
            for entry in self._listeners.get(event, ()):
                if entry.claimed:
                    continue
                if not entry.handle.is_valid():
                    continue
                claimed = entry.once
                if claimed:
                    entry.claimed = True
                snapshot.append((entry, claimed))
            return snapshot

    def _finish_once(self, event: Hashable, entry: _Registration) -> None:
        with self._lock:
            entry.claimed = False
            # only this entry; registrations made during the pass survive
            if self._remove(event, lambda candidate: candidate is entry):
                LOGGER.debug("Removed one-shot listener %s from %r", entry.handle.describe(), event)

    # introspection ----------------------------------------------------

    def listeners(self, event: Hashable) -> Tuple[ListenerHandle, ...]:
        """Registered handles for ``event`` in notification order."""

        with self._lock:
            return tuple(entry.handle for entry in self._listeners.get(event, ()))

    def has_listeners(self, event: Hashable) -> bool:
        with self._lock:
            return event in self._listeners

    def is_once(self, event: Hashable, listener: Listener) -> bool:
        handle = ListenerHandle.wrap(listener)
        with self._lock:
            return any(entry.once and entry.handle == handle for entry in self._listeners.get(event, ()))

    def events(self) -> Tuple[Hashable, ...]:
        with self._lock:
            return tuple(self._listeners)

    def _count(self, event: Hashable) -> int:
        with self._lock:
            return len(self._listeners.get(event, ()))

    # tracing ----------------------------------------------------------

    @property
    def _tracing(self) -> bool:
        return self._debug and self._trace_sink is not None

    def _trace(
        self,
        kind: TraceKind,
        event: Hashable,
        listeners: Iterable[str],
        args: Tuple[Any, ...] = (),
        count: int = 0,
        detail: Optional[Mapping[str, Any]] = None,
    ) -> None:
        record = TraceRecord(
            kind=kind,
            event=event,
            ts=self._clock(),
            listeners=tuple(listeners),
            args=tuple(args),
            count=count,
            detail=dict(detail or {}),
        )
        sink = self._trace_sink
        if sink is None:
            return
        try:
            sink.handle(record)
        except Exception:
            LOGGER.exception("Trace sink %s failed on %s record", getattr(sink, "name", sink), kind.value)

    # lifecycle --------------------------------------------------------

    def close(self) -> None:
        """Drop every subscription and close the trace sink if it supports it."""

        with self._lock:
            dropped = sum(len(entries) for entries in self._listeners.values())
            self._listeners.clear()
        close = getattr(self._trace_sink, "close", None)
        if callable(close):
            try:
                close()
            except Exception:
                LOGGER.exception("Failed to close trace sink")
        LOGGER.info("Dispatcher closed, %d subscriptions dropped", dropped)


__all__ = ["Dispatcher", "Listener"]
