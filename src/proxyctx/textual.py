"""Textual integration for proxyctx. Opt-in — requires textual.

bind() redraws widgets when a store fires. Writes made on the UI thread
refresh inline. Writes from worker threads hand the refresh to a short-lived
courier thread, which waits on app.call_from_thread while the writer returns
and releases the store lock. No store callback waits on the UI thread.
"""

import logging
import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

logger = logging.getLogger("proxyctx.textual")

# ids of apps whose bound refreshes are on hold; entries live only inside pause().
_held: set[int] = set()


@contextmanager
def pause(app):
    """Hold every refresh bound to app, e.g. while a screen swaps its widgets."""
    _held.add(id(app))
    try:
        yield
    finally:
        _held.discard(id(app))


def is_safe(app) -> bool:
    """True when app is running and not inside pause()."""
    return app.is_running and id(app) not in _held


def bind(app, store, refresh, dependencies=None, *, listen_reinit=True):
    """Call refresh() on the UI thread whenever store fires for dependencies.

    Held refreshes (pause, app not running) are dropped, not replayed.
    NoMatches from widget queries is swallowed. Other errors are logged, by the
    store for inline refreshes and here for marshalled ones. Worker-thread
    bursts collapse into one pending refresh.
    Returns a function that removes the binding.
    """
    ui_thread = threading.get_ident()
    courier_lock = threading.Lock()
    courier_pending = [False]

    def _redraw():
        try:
            refresh()
        except NoMatches:
            pass

    def _deliver():
        with courier_lock:
            courier_pending[0] = False
        try:
            app.call_from_thread(_redraw)
        except Exception:
            logger.exception("Marshalled refresh %r failed", refresh)

    def _on_event():
        if not is_safe(app):
            return
        if threading.get_ident() == ui_thread:
            _redraw()
            return
        with courier_lock:
            if courier_pending[0]:
                return
            courier_pending[0] = True
        threading.Thread(target=_deliver, daemon=True).start()

    def _on_reinit(current, previous, is_initial):
        if listen_reinit:
            _on_event()

    sub_id = store.subscribe(lambda prop, current, previous: _on_event(), _on_reinit, dependencies)
    return lambda: store.unsubscribe(sub_id)
