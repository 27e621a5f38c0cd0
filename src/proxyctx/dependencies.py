"""Dependency descriptors — how a subscriber declares which writes it cares about.

A descriptor is one of:
- a property key (any hashable): matches writes to that key whose value changed.
- a property path (list or tuple): the first element is the key being written,
  the rest is walked on both the new and old value; matches when the leaves differ.
- a predicate callable (property, current, previous[, obj]) -> bool: matches whenever
  it returns truthy, with no change check of its own.
- None or False: disabled, never matches.

A subscriber with no dependencies (None or empty) matches every write.
Multiple descriptors combine with OR.
"""

from __future__ import annotations

import inspect
import math
from collections.abc import Mapping, Sequence
from typing import Any, Callable, Hashable, Iterable

Predicate = Callable[[Hashable, Any, Any, Any], bool]

SCALAR_TYPES = (type(None), bool, int, float, complex, str, bytes)

KEY = "key"
PATH = "path"
PREDICATE = "predicate"
DISABLED = "disabled"


def changed(previous: Any, current: Any) -> bool:
    """Strict inequality: scalars compare by value, everything else by identity."""
    if previous is current:
        return isinstance(current, float) and math.isnan(current)
    if isinstance(previous, SCALAR_TYPES) and isinstance(current, SCALAR_TYPES):
        # True == 1 in Python, but they are different values here.
        if type(previous) is bool or type(current) is bool:
            return type(previous) is not type(current) or previous != current
        return previous != current
    return True


def resolve_path(value: Any, keys: Iterable[Hashable]) -> Any:
    """Walk keys from value. Anything missing along the way resolves to None."""
    for key in keys:
        if value is None:
            return None
        if isinstance(value, Mapping):
            value = value.get(key)
        elif isinstance(key, int) and isinstance(value, Sequence) and not isinstance(value, str):
            try:
                value = value[key]
            except IndexError:
                return None
        elif isinstance(key, str):
            value = getattr(value, key, None)
        else:
            return None
    return value


class Dependency:
    """A normalized dependency descriptor."""

    __slots__ = ("kind", "descriptor", "predicate")

    def __init__(self, kind: str, descriptor: Any, predicate: Predicate) -> None:
        self.kind = kind
        self.descriptor = descriptor
        self.predicate = predicate

    def matches(self, prop: Hashable, current: Any, previous: Any, obj: Any = None) -> bool:
        if self.kind == DISABLED:
            return False
        if self.kind == PREDICATE:
            return bool(self.predicate(prop, current, previous, obj))
        if self.kind == KEY and not changed(previous, current):
            return False
        return self.predicate(prop, current, previous, obj)

    def __repr__(self) -> str:
        return f"Dependency({self.kind}, {self.descriptor!r})"


def _never(prop, current, previous, obj) -> bool:
    return False


def _adapt_predicate(fn: Callable) -> Predicate:
    """Let predicates that don't care about the whole object take three arguments."""
    try:
        params = inspect.signature(fn).parameters.values()
    except (TypeError, ValueError):
        return fn
    positional = 0
    for param in params:
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return fn
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1
    if positional >= 4:
        return fn
    return lambda prop, current, previous, obj: fn(prop, current, previous)


def normalize(descriptor: Any) -> Dependency:
    """Turn a raw descriptor into a Dependency.

    Raises TypeError for descriptors of an unsupported type and ValueError for
    an empty path. Disabled descriptors never raise.
    """
    if descriptor is None or descriptor is False:
        return Dependency(DISABLED, descriptor, _never)

    if isinstance(descriptor, (list, tuple)):
        if not descriptor:
            raise ValueError("A dependency path needs at least one key")
        first, rest = descriptor[0], tuple(descriptor[1:])

        def _path(prop, current, previous, obj):
            if prop != first:
                return False
            return changed(resolve_path(previous, rest), resolve_path(current, rest))

        return Dependency(PATH, tuple(descriptor), _path)

    if callable(descriptor):
        return Dependency(PREDICATE, descriptor, _adapt_predicate(descriptor))

    try:
        hash(descriptor)
    except TypeError:
        raise TypeError(
            f"Unsupported dependency descriptor {descriptor!r}; expected a key, "
            f"a path, a callable, None or False"
        ) from None

    return Dependency(KEY, descriptor, lambda prop, current, previous, obj: prop == descriptor)


def normalize_all(descriptors: Iterable[Any] | None) -> tuple[Dependency, ...] | None:
    """Normalize a dependency list. None and empty lists both mean "everything"."""
    if descriptors is None:
        return None
    if isinstance(descriptors, (str, bytes)) or not isinstance(descriptors, Iterable):
        raise TypeError(f"Dependencies must be a sequence of descriptors, got {descriptors!r}")
    normalized = tuple(normalize(d) for d in descriptors)
    return normalized or None


def matches(
    dependencies: tuple[Dependency, ...] | None,
    prop: Hashable,
    current: Any,
    previous: Any,
    obj: Any = None,
) -> bool:
    """Does a write of prop from previous to current concern these dependencies?"""
    if not dependencies:
        return True
    return any(dep.matches(prop, current, previous, obj) for dep in dependencies)
