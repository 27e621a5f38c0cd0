"""Live views — transparent wrappers that report every write to their store.

A LiveView forwards reads to the wrapped object. Writes run in a fixed order:
capture the old value, perform the write on the real object (so property
setters and __setattr__ overrides run first), re-read the value the object
actually kept, then call store.emit_change(key, new, old) before returning.

Attribute writes (view.x = 1) and item writes (view["x"] = 1) are both
intercepted, as are the matching deletes. Anything missing reads as None.

Methods looked up through a view are handed out as thunks that resolve the
store's *current* value when called, so a method reference taken before a
store.set() keeps acting on the live value afterwards.
"""

from __future__ import annotations

import functools
import types
from typing import TYPE_CHECKING, Any, Callable, Hashable

from proxyctx.dependencies import SCALAR_TYPES

if TYPE_CHECKING:
    from proxyctx.store import Store


def _target(view: LiveView) -> Any:
    return object.__getattribute__(view, "_view_target")


def _store(view: LiveView) -> Store | None:
    return object.__getattribute__(view, "_view_store")


def _read_attr(target: Any, name: str) -> Any:
    return getattr(target, name, None)


def _read_item(target: Any, key: Hashable) -> Any:
    try:
        return target[key]
    except (KeyError, IndexError, TypeError):
        return None


def _intercept(view: LiveView, key: Hashable, write: Callable[[], None], read: Callable[[], Any]) -> None:
    store = _store(view)
    if store is None:
        write()
        return
    with store._lock:
        old = read()
        write()
        new = read()
        store.emit_change(key, new, old)


class LiveView:
    """Interception layer over one object, bound to one store."""

    __slots__ = ("_view_target", "_view_store")

    def __init__(self, target: Any, store: Store) -> None:
        object.__setattr__(self, "_view_target", target)
        object.__setattr__(self, "_view_store", store)

    # --- Reads (forward) ---

    def __getattr__(self, name: str) -> Any:
        target = _target(self)
        value = getattr(target, name)
        store = _store(self)
        if store is None or not callable(value):
            return value
        return _bind_live(store, target, name, value)

    def __getitem__(self, key: Hashable) -> Any:
        return _target(self)[key]

    def __len__(self) -> int:
        return len(_target(self))

    def __iter__(self):
        return iter(_target(self))

    def __contains__(self, item: Any) -> bool:
        return item in _target(self)

    def __bool__(self) -> bool:
        return bool(_target(self))

    def __eq__(self, other: Any) -> bool:
        return _target(self) == unwrap(other)

    def __ne__(self, other: Any) -> bool:
        return not self == other

    __hash__ = None  # type: ignore[assignment]

    def __dir__(self):
        return dir(_target(self))

    def __str__(self) -> str:
        return str(_target(self))

    def __repr__(self) -> str:
        return f"LiveView({_target(self)!r})"

    # --- Writes (intercept) ---

    def __setattr__(self, name: str, value: Any) -> None:
        target = _target(self)
        _intercept(
            self,
            name,
            lambda: setattr(target, name, value),
            lambda: _read_attr(target, name),
        )

    def __delattr__(self, name: str) -> None:
        target = _target(self)
        _intercept(
            self,
            name,
            lambda: delattr(target, name),
            lambda: _read_attr(target, name),
        )

    def __setitem__(self, key: Hashable, value: Any) -> None:
        target = _target(self)

        def _write():
            target[key] = value

        _intercept(self, key, _write, lambda: _read_item(target, key))

    def __delitem__(self, key: Hashable) -> None:
        target = _target(self)

        def _write():
            del target[key]

        _intercept(self, key, _write, lambda: _read_item(target, key))


def _bind_live(store: Store, target: Any, name: str, value: Callable) -> Callable:
    """Rebind a method of target so it runs against the store's current value."""
    if isinstance(value, types.MethodType) and value.__self__ is target:
        func = value.__func__

        @functools.wraps(func)
        def _live_method(*args, **kwargs):
            return func(store.get(), *args, **kwargs)

        return _live_method

    if getattr(value, "__self__", None) is target and not isinstance(value, type):
        # Builtin methods (dict.get, list.index...) need the real object as receiver.
        @functools.wraps(value)
        def _live_builtin(*args, **kwargs):
            return getattr(unwrap(store.get()), name)(*args, **kwargs)

        return _live_builtin

    return value


def wrap(value: Any, store: Store) -> Any:
    """Wrap value in a LiveView for store. None and scalars pass through verbatim."""
    if isinstance(value, SCALAR_TYPES):
        return value
    return LiveView(unwrap(value), store)


def unwrap(value: Any) -> Any:
    """The object behind a LiveView, or value itself if it isn't one."""
    if isinstance(value, LiveView):
        return _target(value)
    return value


def detach(view: Any) -> None:
    """Stop a view from reporting writes. Reads and writes keep forwarding."""
    if isinstance(view, LiveView):
        object.__setattr__(view, "_view_store", None)
