"""Tests for the engine handle and render executor (no real browser)."""

from __future__ import annotations

import threading
import time
from unittest.mock import MagicMock

import pytest

from schedule_poster.exceptions import (
    CaptureFailure,
    ContentLoadFailure,
    EngineCrash,
    EngineLaunchFailure,
    RenderFailure,
)
from schedule_poster.renderer.png_engine import (
    BrowserSession,
    EngineHandle,
    EngineState,
    RenderExecutor,
    _SETTLE_JS,
)
from schedule_poster.renderer.themes import get_theme
from schedule_poster.schedule.models import CanvasSize, Page


def _make_session(connected: bool = True) -> BrowserSession:
    browser = MagicMock()
    browser.is_connected.return_value = connected
    surface = browser.new_context.return_value.new_page.return_value
    surface.screenshot.return_value = b"\x89PNG-bytes"
    return BrowserSession(playwright=MagicMock(), browser=browser)


class _Launcher:
    """Counts launches and hands out fresh fake sessions."""

    def __init__(self, delay: float = 0.0, fail_times: int = 0):
        self.delay = delay
        self.fail_times = fail_times
        self.sessions: list[BrowserSession] = []
        self._lock = threading.Lock()

    def __call__(self) -> BrowserSession:
        if self.delay:
            time.sleep(self.delay)
        with self._lock:
            if self.fail_times > 0:
                self.fail_times -= 1
                raise RuntimeError("chromium missing")
            session = _make_session()
            self.sessions.append(session)
            return session


def _executor(launcher: _Launcher, **kwargs) -> RenderExecutor:
    kwargs.setdefault("markup_renderer", lambda *args: "<html><body>poster</body></html>")
    return RenderExecutor(EngineHandle(launcher), **kwargs)


PAGE = Page(index=1, total=1, day_groups=[])
THEME = get_theme("samewave")
SIZE = CanvasSize(1080, 1350)


# ── EngineHandle ──────────────────────────────────────────────────────


class TestEngineHandleLifecycle:

    def test_starts_uninitialized(self):
        assert EngineHandle(_Launcher()).state is EngineState.UNINITIALIZED

    def test_lazy_launch_then_reuse(self):
        launcher = _Launcher()
        handle = EngineHandle(launcher)
        first = handle.get()
        second = handle.get()
        assert first is second
        assert len(launcher.sessions) == 1
        assert handle.state is EngineState.READY

    def test_single_flight_under_concurrent_first_callers(self):
        launcher = _Launcher(delay=0.05)
        handle = EngineHandle(launcher)
        results = []
        threads = [threading.Thread(target=lambda: results.append(handle.get())) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(launcher.sessions) == 1
        assert all(r is launcher.sessions[0] for r in results)

    def test_failed_launch_is_not_cached(self):
        launcher = _Launcher(fail_times=1)
        handle = EngineHandle(launcher)
        with pytest.raises(EngineLaunchFailure) as info:
            handle.get()
        assert isinstance(info.value.__cause__, RuntimeError)
        assert handle.state is EngineState.INVALIDATED

        session = handle.get()
        assert session is launcher.sessions[0]
        assert handle.state is EngineState.READY

    def test_invalidate_closes_and_relaunches(self):
        launcher = _Launcher()
        handle = EngineHandle(launcher)
        old = handle.get()
        handle.invalidate("test")
        assert handle.state is EngineState.INVALIDATED
        old.browser.close.assert_called_once()
        old.playwright.stop.assert_called_once()

        new = handle.get()
        assert new is not old
        assert handle.launch_count == 2

    def test_idle_disconnect_detected_on_next_get(self):
        launcher = _Launcher()
        handle = EngineHandle(launcher)
        old = handle.get()
        old.browser.is_connected.return_value = False
        new = handle.get()
        assert new is not old
        old.browser.close.assert_called_once()

    def test_disconnected_event_invalidates(self):
        launcher = _Launcher()
        handle = EngineHandle(launcher)
        session = handle.get()
        event, callback = session.browser.on.call_args[0]
        assert event == "disconnected"
        callback(session.browser)
        assert handle.state is EngineState.INVALIDATED
        assert handle.get() is not session

    def test_close_is_terminal(self):
        launcher = _Launcher()
        handle = EngineHandle(launcher)
        session = handle.get()
        handle.close()
        assert handle.state is EngineState.CLOSED
        session.browser.close.assert_called_once()
        with pytest.raises(EngineLaunchFailure):
            handle.get()

    def test_close_before_launch(self):
        handle = EngineHandle(_Launcher())
        handle.close()
        assert handle.state is EngineState.CLOSED

    def test_teardown_errors_logged_not_raised(self, caplog):
        launcher = _Launcher()
        handle = EngineHandle(launcher)
        session = handle.get()
        session.browser.close.side_effect = RuntimeError("already gone")
        with caplog.at_level("WARNING"):
            handle.close()
        assert "Error closing browser" in caplog.text
        session.playwright.stop.assert_called_once()


# ── RenderExecutor ────────────────────────────────────────────────────


class TestRenderExecutorSuccess:

    def test_returns_png_bytes(self):
        launcher = _Launcher()
        assert _executor(launcher).render(PAGE, THEME, SIZE) == b"\x89PNG-bytes"

    def test_surface_sized_exactly_with_scale_one(self):
        launcher = _Launcher()
        _executor(launcher).render(PAGE, THEME, CanvasSize(800, 600))
        browser = launcher.sessions[0].browser
        browser.new_context.assert_called_once_with(
            viewport={"width": 800, "height": 600}, device_scale_factor=1,
        )
        surface = browser.new_context.return_value.new_page.return_value
        _, kwargs = surface.screenshot.call_args
        assert kwargs["clip"] == {"x": 0, "y": 0, "width": 800, "height": 600}
        assert kwargs["type"] == "png"

    def test_waits_for_dom_not_network_idle(self):
        launcher = _Launcher()
        _executor(launcher, content_timeout_ms=5000).render(PAGE, THEME, SIZE)
        surface = launcher.sessions[0].browser.new_context.return_value.new_page.return_value
        args, kwargs = surface.set_content.call_args
        assert args[0] == "<html><body>poster</body></html>"
        assert kwargs["wait_until"] == "domcontentloaded"
        assert kwargs["timeout"] == 5000

    def test_settle_is_bounded(self):
        launcher = _Launcher()
        _executor(launcher, settle_ms=250).render(PAGE, THEME, SIZE)
        surface = launcher.sessions[0].browser.new_context.return_value.new_page.return_value
        script, timeout_ms = surface.evaluate.call_args[0]
        assert script == _SETTLE_JS
        assert timeout_ms == 250
        surface.wait_for_function.assert_not_called()

    def test_settle_script_forces_layout_before_waiting_on_fonts(self):
        layout = _SETTLE_JS.index("document.body.offsetHeight")
        assert "face.load()" in _SETTLE_JS
        assert _SETTLE_JS.index("document.fonts.ready") > layout
        assert "img.complete" in _SETTLE_JS
        assert "setTimeout(() => resolve(false), timeoutMs)" in _SETTLE_JS

    def test_settle_timeout_is_not_an_error(self):
        launcher = _Launcher()
        executor = _executor(launcher)
        executor.handle.get()
        surface = launcher.sessions[0].browser.new_context.return_value.new_page.return_value
        surface.evaluate.return_value = False
        assert executor.render(PAGE, THEME, SIZE) == b"\x89PNG-bytes"
        surface.screenshot.assert_called_once()

    def test_settle_error_is_not_an_error(self):
        launcher = _Launcher()
        executor = _executor(launcher)
        executor.handle.get()
        surface = launcher.sessions[0].browser.new_context.return_value.new_page.return_value
        surface.evaluate.side_effect = RuntimeError("execution context destroyed")
        assert executor.render(PAGE, THEME, SIZE) == b"\x89PNG-bytes"

    def test_settle_skipped_when_zero(self):
        launcher = _Launcher()
        _executor(launcher, settle_ms=0).render(PAGE, THEME, SIZE)
        surface = launcher.sessions[0].browser.new_context.return_value.new_page.return_value
        surface.evaluate.assert_not_called()

    def test_context_closed_and_engine_reused(self):
        launcher = _Launcher()
        executor = _executor(launcher)
        executor.render(PAGE, THEME, SIZE)
        executor.render(PAGE, THEME, SIZE)
        browser = launcher.sessions[0].browser
        assert len(launcher.sessions) == 1
        assert browser.new_context.return_value.close.call_count == 2

    def test_markup_gets_page_theme_size(self):
        calls = []
        launcher = _Launcher()
        executor = _executor(launcher, markup_renderer=lambda *args: calls.append(args) or "<p/>")
        executor.render(PAGE, THEME, SIZE)
        assert calls == [(PAGE, THEME, SIZE, None)]


class TestRenderExecutorFailures:

    def _primed(self, launcher: _Launcher, **kwargs):
        executor = _executor(launcher, **kwargs)
        session = executor.handle.get()
        context = session.browser.new_context.return_value
        return executor, session, context, context.new_page.return_value

    def test_content_load_failure(self):
        launcher = _Launcher()
        executor, session, context, surface = self._primed(launcher)
        surface.set_content.side_effect = RuntimeError("Timeout 15000ms exceeded")

        with pytest.raises(ContentLoadFailure) as info:
            executor.render(PAGE, THEME, SIZE)
        assert isinstance(info.value.__cause__, RuntimeError)
        context.close.assert_called_once()
        assert executor.handle.state is EngineState.INVALIDATED
        session.browser.close.assert_called_once()

    def test_capture_failure(self):
        launcher = _Launcher()
        executor, session, context, surface = self._primed(launcher)
        surface.screenshot.side_effect = RuntimeError("capture failed")

        with pytest.raises(CaptureFailure):
            executor.render(PAGE, THEME, SIZE)
        context.close.assert_called_once()
        assert executor.handle.state is EngineState.INVALIDATED

    def test_context_creation_failure(self):
        launcher = _Launcher()
        executor, session, context, _ = self._primed(launcher)
        session.browser.new_context.side_effect = RuntimeError("Target closed")

        with pytest.raises(ContentLoadFailure):
            executor.render(PAGE, THEME, SIZE)
        context.close.assert_not_called()
        assert executor.handle.state is EngineState.INVALIDATED

    def test_crash_mid_job(self):
        launcher = _Launcher()
        executor, session, context, surface = self._primed(launcher)

        def _crash(*args, **kwargs):
            session.browser.is_connected.return_value = False
            raise RuntimeError("Browser has been closed")

        surface.set_content.side_effect = _crash
        with pytest.raises(EngineCrash):
            executor.render(PAGE, THEME, SIZE)
        context.close.assert_called_once()

    def test_release_error_does_not_mask_result(self, caplog):
        launcher = _Launcher()
        executor, _, context, _ = self._primed(launcher)
        context.close.side_effect = RuntimeError("context already closed")
        with caplog.at_level("WARNING"):
            assert executor.render(PAGE, THEME, SIZE) == b"\x89PNG-bytes"
        assert "Error closing render context" in caplog.text

    def test_launch_failure(self):
        launcher = _Launcher(fail_times=1)
        executor = _executor(launcher)
        with pytest.raises(EngineLaunchFailure):
            executor.render(PAGE, THEME, SIZE)
        assert executor.render(PAGE, THEME, SIZE) == b"\x89PNG-bytes"

    def test_next_job_gets_fresh_engine(self):
        launcher = _Launcher()
        executor, session, _, surface = self._primed(launcher)
        surface.screenshot.side_effect = RuntimeError("boom")
        with pytest.raises(RenderFailure):
            executor.render(PAGE, THEME, SIZE)

        assert executor.render(PAGE, THEME, SIZE) == b"\x89PNG-bytes"
        assert len(launcher.sessions) == 2
        assert executor.handle.launch_count == 2

    def test_markup_error_does_not_touch_engine(self):
        launcher = _Launcher()

        def _broken(*args):
            raise KeyError("template variable")

        executor = _executor(launcher, markup_renderer=_broken)
        with pytest.raises(RenderFailure) as info:
            executor.render(PAGE, THEME, SIZE)
        assert type(info.value) is RenderFailure
        assert launcher.sessions == []
        assert executor.handle.state is EngineState.UNINITIALIZED
