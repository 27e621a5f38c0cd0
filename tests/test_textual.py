"""Tests for proxyctx.textual — binding store events to widget refreshes."""

import logging
import queue
import threading

import pytest
from textual.css.query import NoMatches

from proxyctx import Store
from proxyctx import textual as stx


class _InlineApp:
    """Stand-in App whose call_from_thread runs the callback on the calling thread."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self.marshalled = []

    def call_from_thread(self, fn, *args):
        self.marshalled.append(threading.get_ident())
        return fn(*args)


class _EventLoopApp:
    """Stand-in App whose call_from_thread blocks until the UI thread drains it.

    Mirrors Textual: the worker waits for the event loop to run the callback.
    """

    def __init__(self):
        self.is_running = True
        self._inbox = queue.Queue()

    def call_from_thread(self, fn, *args):
        done = threading.Event()
        self._inbox.put((fn, args, done))
        if not done.wait(timeout=5):
            raise TimeoutError("UI thread never ran the callback")

    def run_one(self, timeout):
        fn, args, done = self._inbox.get(timeout=timeout)
        try:
            fn(*args)
        finally:
            done.set()


class TestBind:
    def test_skips_when_not_running(self):
        app = _InlineApp(is_running=False)
        s = Store({"title": "a"})
        redraws = []
        stx.bind(app, s, lambda: redraws.append(1))
        s.get()["title"] = "b"
        assert redraws == []

    def test_skips_while_paused(self):
        app = _InlineApp()
        s = Store({"title": "a"})
        redraws = []
        stx.bind(app, s, lambda: redraws.append(1))
        with stx.pause(app):
            s.get()["title"] = "b"
        s.get()["title"] = "c"
        assert redraws == [1]

    def test_refresh_sees_new_value(self):
        app = _InlineApp()
        s = Store({"title": "a"})
        seen = []
        stx.bind(app, s, lambda: seen.append(s.get()["title"]))
        s.get()["title"] = "b"
        assert seen == ["b"]

    def test_respects_dependencies(self):
        app = _InlineApp()
        s = Store({"title": "a", "footer": "x"})
        redraws = []
        stx.bind(app, s, lambda: redraws.append(1), ["title"])
        s.get()["footer"] = "y"
        assert redraws == []
        s.get()["title"] = "b"
        assert redraws == [1]

    def test_reinit_refreshes(self):
        app = _InlineApp()
        s = Store({"title": "a"})
        redraws = []
        stx.bind(app, s, lambda: redraws.append(1), [False])
        s.set({"title": "b"})
        assert redraws == [1]

    def test_reinit_ignored_when_not_listening(self):
        app = _InlineApp()
        s = Store({"title": "a"})
        redraws = []
        stx.bind(app, s, lambda: redraws.append(1), listen_reinit=False)
        s.set({"title": "b"})
        assert redraws == []

    def test_missing_widget_is_ignored(self, caplog):
        app = _InlineApp()
        s = Store({"title": "a"})

        def _query_gone_widget():
            raise NoMatches("#title")

        stx.bind(app, s, _query_gone_widget)
        with caplog.at_level(logging.ERROR, logger="proxyctx.store"):
            s.get()["title"] = "b"
        assert "failed" not in caplog.text

    def test_other_errors_logged_by_store(self, caplog):
        app = _InlineApp()
        s = Store({"title": "a"})

        def _broken_refresh():
            raise ValueError("bad layout")

        stx.bind(app, s, _broken_refresh)
        with caplog.at_level(logging.ERROR, logger="proxyctx.store"):
            s.get()["title"] = "b"
        assert "bad layout" in caplog.text

    def test_unbind(self):
        app = _InlineApp()
        s = Store({"title": "a"})
        redraws = []
        unbind = stx.bind(app, s, lambda: redraws.append(1))
        s.get()["title"] = "b"
        unbind()
        unbind()
        s.get()["title"] = "c"
        assert redraws == [1]


class TestWorkerThreads:
    def test_worker_write_is_marshalled(self):
        app = _InlineApp()
        s = Store({"progress": 0})
        redrawn = threading.Event()
        stx.bind(app, s, redrawn.set)

        worker = threading.Thread(target=lambda: s.get().__setitem__("progress", 50))
        worker.start()
        worker.join(timeout=2)

        assert redrawn.wait(timeout=2)
        assert len(app.marshalled) == 1

    def test_worker_write_does_not_wait_for_ui(self):
        app = _EventLoopApp()
        s = Store({"progress": 0, "status": "idle"})
        ui_thread = threading.get_ident()
        redraw_threads = []
        stx.bind(app, s, lambda: redraw_threads.append(threading.get_ident()))

        worker = threading.Thread(target=lambda: s.get().__setitem__("progress", 50))
        worker.start()
        worker.join(timeout=2)
        assert not worker.is_alive(), "worker write blocked on the UI thread"

        # A UI-thread write to the same store must not wait on the worker.
        s.get()["status"] = "busy"
        app.run_one(timeout=2)

        assert redraw_threads == [ui_thread, ui_thread]
        assert s.get()["progress"] == 50

    def test_marshal_failure_is_logged(self):
        class _ClosedApp(_InlineApp):
            def call_from_thread(self, fn, *args):
                raise RuntimeError("app is shutting down")

        class _Signal(logging.Handler):
            def __init__(self):
                super().__init__(logging.ERROR)
                self.records = []
                self.seen = threading.Event()

            def emit(self, record):
                self.records.append(record)
                self.seen.set()

        signal = _Signal()
        stx.logger.addHandler(signal)
        try:
            s = Store({"progress": 0})
            stx.bind(_ClosedApp(), s, lambda: None)
            threading.Thread(target=lambda: s.get().__setitem__("progress", 1)).start()
            assert signal.seen.wait(timeout=2)
        finally:
            stx.logger.removeHandler(signal)
        assert "shutting down" in str(signal.records[0].exc_info[1])


class TestPause:
    def test_nested_apps_are_tracked_separately(self):
        main_app, dialog_app = _InlineApp(), _InlineApp()
        with stx.pause(main_app):
            assert not stx.is_safe(main_app)
            assert stx.is_safe(dialog_app)
        assert stx.is_safe(main_app)

    def test_released_after_error(self):
        app = _InlineApp()
        with pytest.raises(KeyError):
            with stx.pause(app):
                raise KeyError("widget")
        assert stx.is_safe(app)

    def test_leaves_app_attributes_alone(self):
        app = _InlineApp()
        before = dict(vars(app))
        with stx.pause(app):
            assert dict(vars(app)) == before
        assert dict(vars(app)) == before

    def test_not_running_is_never_safe(self):
        assert not stx.is_safe(_InlineApp(is_running=False))
