"""Store — one shared object, many fine-grained subscribers.

The store owns the current value, wrapped in a LiveView. Two kinds of events:
- change: a field of the current value was written. Subscribers whose
  dependencies match get on_property_change(prop, current, previous).
- reinit: set() replaced the whole value. Every subscriber gets
  on_reinit(current, previous, is_initial).

After the subscribers, the store-wide listeners (on_change_prop and
on_change_reinit) run once per event, unfiltered.

Everything is synchronous: set() and field writes return only after every
callback has run. A failing callback is logged and the rest still run.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Generic, Hashable, Iterable, TypeVar

from proxyctx.dependencies import changed
from proxyctx.errors import EnvironmentUnsupported
from proxyctx.interceptor import detach, wrap
from proxyctx.subscribers import PropertyCallback, SubscriberRegistry

logger = logging.getLogger("proxyctx.store")

T = TypeVar("T")


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()

Interceptor = Callable[[Any, "Store"], Any]
ChangePropListener = Callable[[Hashable, Any, Any], None]
ChangeReinitListener = Callable[[Any, Any, bool], None]


def _safe_call(fn: Callable, *args: Any) -> None:
    try:
        fn(*args)
    except Exception:
        logger.exception("Listener %r failed", fn)


class Store(Generic[T]):
    """Holds the current value and dispatches change and reinit events."""

    def __init__(
        self,
        initial: T,
        on_change_prop: ChangePropListener | None = None,
        on_change_reinit: ChangeReinitListener | None = None,
        *,
        interceptor: Interceptor | None = wrap,
    ) -> None:
        if interceptor is None or not callable(interceptor):
            raise EnvironmentUnsupported(interceptor)
        self._interceptor = interceptor
        self._lock = threading.RLock()
        self._subscribers = SubscriberRegistry()
        self._value: Any = UNSET
        self.on_change_prop = on_change_prop
        self.on_change_reinit = on_change_reinit
        self.set(initial)

    def get(self) -> T:
        """The current live value (UNSET only while the first set() runs)."""
        return self._value

    def set(self, value: T) -> T:
        """Replace the whole value. Same value is a no-op; returns the current value."""
        with self._lock:
            previous = self._value
            if not changed(previous, value):
                return previous

            detach(previous)
            if self._subscribers.closed:
                # Disposed: keep the value readable but never wrap or notify.
                self._value = value
                return value

            is_initial = previous is UNSET
            if is_initial:
                previous = None
            self._value = self._interceptor(value, self)
            logger.debug("Reinit (initial=%s): %r", is_initial, self._value)
            self.emit_reinit(self._value, previous, is_initial)
            return self._value

    def subscribe(
        self,
        on_property_change: PropertyCallback | None,
        on_reinit: Callable[[Any, Any, bool], None] | None = None,
        dependencies: Iterable[Any] | None = None,
    ) -> int:
        """Register a subscriber. Returns an id for unsubscribe().

        dependencies: None or [] for every write, otherwise any mix of keys,
        paths and predicates (see proxyctx.dependencies).
        """
        with self._lock:
            return self._subscribers.add(on_property_change, on_reinit, dependencies)

    def unsubscribe(self, sub_id: int) -> None:
        """Remove a subscriber. Unknown or already-removed ids are ignored."""
        with self._lock:
            self._subscribers.discard(sub_id)

    def emit_change(self, prop: Hashable, current: Any, previous: Any) -> None:
        """Notify matching subscribers of a field write, then the store-wide listener."""
        with self._lock:
            if self._subscribers.closed:
                return
            obj = self._value
            for sub in self._subscribers.snapshot():
                if sub.on_property_change is None:
                    continue
                try:
                    wanted = sub.wants(prop, current, previous, obj)
                except Exception:
                    logger.exception("Dependency check for subscriber %d failed", sub.id)
                    continue
                if wanted:
                    _safe_call(sub.on_property_change, prop, current, previous)

            if self.on_change_prop is not None:
                _safe_call(self.on_change_prop, prop, current, previous)

    def emit_reinit(self, current: Any, previous: Any, is_initial: bool = False) -> None:
        """Notify every subscriber of a whole-value replacement, then the store-wide listener."""
        with self._lock:
            if self._subscribers.closed:
                return
            for sub in self._subscribers.snapshot():
                if sub.on_reinit is not None:
                    _safe_call(sub.on_reinit, current, previous, is_initial)

            if self.on_change_reinit is not None:
                _safe_call(self.on_change_reinit, current, previous, is_initial)

    def dispose(self) -> None:
        """Release every subscriber and stop reporting writes.

        Afterwards set() still replaces the value, unwrapped and silently, and
        subscribe() hands out ids that are never notified.
        """
        with self._lock:
            if self._subscribers.closed:
                return
            count = len(self._subscribers)
            self._subscribers.close()
            detach(self._value)
            logger.debug("Disposed store with %d subscribers", count)

    def __len__(self) -> int:
        return len(self._subscribers)

    def __repr__(self) -> str:
        return f"Store({self._value!r}, subscribers={len(self._subscribers)})"


def create_store(
    initial: T,
    on_change_prop: ChangePropListener | None = None,
    on_change_reinit: ChangeReinitListener | None = None,
    *,
    interceptor: Interceptor | None = wrap,
) -> Store[T]:
    """Factory for Store.

    Usage:
        store = create_store({"a": 1, "b": 2})
        log = []
        store.subscribe(lambda p, c, prev: log.append((p, c, prev)), None, ["a"])

        store.get()["a"] = 2
        # log == [("a", 2, 1)]

        store.get()["b"] = 3
        # log == [("a", 2, 1)] — "b" isn't a dependency
    """
    return Store(initial, on_change_prop, on_change_reinit, interceptor=interceptor)
