"""Named contexts — attach a store to a scope and look it up from inside.

A ProxyContext is a name plus a contextvars slot. provide() builds a store,
attaches it for the duration of a with-block and disposes it on exit.
use_proxy_context() finds the attached store, subscribes, and hands back a
ContextHandle; with no store attached it raises MissingProvider.

Usage:
    Settings = create_context("Settings")

    with Settings.provide({"theme": "light"}):
        handle = use_proxy_context(Settings, ["theme"], on_invalidate=redraw)
        handle.value["theme"] = "dark"   # redraw() runs
        handle.dispose()
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Callable, Generic, Hashable, Iterable, Iterator, TypeVar

from proxyctx.errors import EnvironmentUnsupported, MissingProvider
from proxyctx.interceptor import wrap
from proxyctx.store import ChangePropListener, ChangeReinitListener, Interceptor, Store

logger = logging.getLogger("proxyctx.context")

T = TypeVar("T")


class ProxyContext(Generic[T]):
    """A named slot that at most one store occupies at a time, per execution context."""

    __slots__ = ("name", "_interceptor", "_current")

    def __init__(self, name: str, *, interceptor: Interceptor | None = wrap) -> None:
        if interceptor is None or not callable(interceptor):
            raise EnvironmentUnsupported(interceptor)
        self.name = name
        self._interceptor = interceptor
        self._current: contextvars.ContextVar[Store[T] | None] = contextvars.ContextVar(
            f"proxyctx:{name}", default=None
        )

    @contextmanager
    def provide(
        self,
        value: T,
        on_change_prop: ChangePropListener | None = None,
        on_change_reinit: ChangeReinitListener | None = None,
    ) -> Iterator[Store[T]]:
        """Attach a fresh store holding value for the duration of the block."""
        store = Store(value, on_change_prop, on_change_reinit, interceptor=self._interceptor)
        token = self._current.set(store)
        logger.debug("Providing %s", self.name)
        try:
            yield store
        finally:
            self._current.reset(token)
            store.dispose()

    def current(self) -> Store[T]:
        """The attached store. Raises MissingProvider if there is none."""
        store = self._current.get()
        if store is None:
            raise MissingProvider(self.name)
        return store

    @property
    def attached(self) -> bool:
        return self._current.get() is not None

    def __repr__(self) -> str:
        state = "attached" if self.attached else "detached"
        return f"ProxyContext({self.name!r}, {state})"


def create_context(name: str, *, interceptor: Interceptor | None = wrap) -> ProxyContext:
    """Create a named context. Fails with EnvironmentUnsupported if interception is unavailable."""
    return ProxyContext(name, interceptor=interceptor)


class ContextHandle(Generic[T]):
    """One consumer's subscription to a context's store.

    Unpacks as (value, set) so callers can write `value, set_value = handle`.
    """

    __slots__ = ("_store", "_id")

    def __init__(self, store: Store[T], sub_id: int) -> None:
        self._store = store
        self._id: int | None = sub_id

    @property
    def value(self) -> T:
        """Always the store's latest live value."""
        return self._store.get()

    def set(self, value: T) -> T:
        return self._store.set(value)

    @property
    def store(self) -> Store[T]:
        return self._store

    @property
    def disposed(self) -> bool:
        return self._id is None

    def dispose(self) -> None:
        """Unsubscribe. Safe to call more than once."""
        if self._id is not None:
            self._store.unsubscribe(self._id)
            self._id = None

    def __iter__(self):
        return iter((self.value, self.set))

    def __enter__(self) -> ContextHandle[T]:
        return self

    def __exit__(self, *exc) -> None:
        self.dispose()

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else f"id={self._id}"
        return f"ContextHandle({state})"


def use_proxy_context(
    context: ProxyContext[T],
    dependencies: Iterable[Any] | None = None,
    on_change_prop: Callable[[Hashable, Any, Any], None] | None = None,
    on_change_reinit: Callable[[Any, Any, bool], None] | None = None,
    listen_reinit: bool = True,
    on_invalidate: Callable[[], None] | None = None,
) -> ContextHandle[T]:
    """Subscribe to the store attached to context.

    on_invalidate() is the host's redraw hook: it runs for every matching
    property change, and for reinits when listen_reinit is true. The
    on_change_* callbacks run after it, reinit ones regardless of listen_reinit.
    """
    store = context.current()

    def _on_prop(prop, current, previous):
        if on_invalidate is not None:
            on_invalidate()
        if on_change_prop is not None:
            on_change_prop(prop, current, previous)

    def _on_reinit(current, previous, is_initial):
        if listen_reinit and on_invalidate is not None:
            on_invalidate()
        if on_change_reinit is not None:
            on_change_reinit(current, previous, is_initial)

    sub_id = store.subscribe(_on_prop, _on_reinit, dependencies)
    return ContextHandle(store, sub_id)
