"""Subscriber registry — plain records of who listens to a store.

Each store owns one registry. Dispatch never iterates the live dict: it takes
a snapshot first, so callbacks may subscribe or unsubscribe freely while an
emission is in flight. Changes apply from the next emission on.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Callable, Hashable, Iterable

from proxyctx.dependencies import Dependency, matches, normalize_all

logger = logging.getLogger("proxyctx.subscribers")

PropertyCallback = Callable[[Hashable, Any, Any], None]
ReinitCallback = Callable[[Any, Any, bool], None]


class Subscriber:
    """One registered listener pair plus its dependencies."""

    __slots__ = ("id", "dependencies", "on_property_change", "on_reinit")

    def __init__(
        self,
        id: int,
        dependencies: tuple[Dependency, ...] | None,
        on_property_change: PropertyCallback | None,
        on_reinit: ReinitCallback | None,
    ) -> None:
        self.id = id
        self.dependencies = dependencies
        self.on_property_change = on_property_change
        self.on_reinit = on_reinit

    def wants(self, prop: Hashable, current: Any, previous: Any, obj: Any = None) -> bool:
        return matches(self.dependencies, prop, current, previous, obj)

    def __repr__(self) -> str:
        deps = "*" if self.dependencies is None else list(self.dependencies)
        return f"Subscriber({self.id}, deps={deps})"


class SubscriberRegistry:
    """Id-keyed subscriber records with snapshot iteration."""

    def __init__(self) -> None:
        self._subscribers: dict[int, Subscriber] = {}
        self._ids = itertools.count(1)
        self._closed = False

    def add(
        self,
        on_property_change: PropertyCallback | None,
        on_reinit: ReinitCallback | None,
        dependencies: Iterable[Any] | None = None,
    ) -> int:
        """Register a subscriber. Returns its id, unique for this registry's lifetime."""
        # Normalize before taking an id so a bad descriptor leaves no trace.
        deps = normalize_all(dependencies)
        sub_id = next(self._ids)
        if self._closed:
            logger.debug("Registry closed, subscriber %d not recorded", sub_id)
            return sub_id
        self._subscribers[sub_id] = Subscriber(sub_id, deps, on_property_change, on_reinit)
        logger.debug("Subscribed %d (deps=%r)", sub_id, deps)
        return sub_id

    def discard(self, sub_id: int) -> None:
        """Remove a subscriber. Unknown ids are ignored."""
        if self._subscribers.pop(sub_id, None) is not None:
            logger.debug("Unsubscribed %d", sub_id)

    def snapshot(self) -> list[Subscriber]:
        """Subscribers in registration order, frozen at call time."""
        return list(self._subscribers.values())

    def close(self) -> None:
        """Drop every record. Later adds still get ids but are never stored."""
        self._closed = True
        self._subscribers.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._subscribers)
