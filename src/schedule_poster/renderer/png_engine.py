"""Playwright-based PNG rendering engine.

One headless Chromium instance is launched lazily and reused for every
poster page. Each render gets its own browser context (viewport sized to
the canvas, device scale factor 1) that is always closed afterwards. Any
failure that may have left the browser in a bad state invalidates the
shared handle so the next job starts from a fresh browser.

Playwright's sync API is bound to the thread that started it, so all
calls into an :class:`EngineHandle` and :class:`RenderExecutor` must come
from the render queue's single worker thread.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from schedule_poster.exceptions import (
    CaptureFailure,
    ContentLoadFailure,
    EngineCrash,
    EngineLaunchFailure,
    RenderFailure,
)
from schedule_poster.renderer.html_renderer import PosterOptions, render_markup
from schedule_poster.renderer.themes import Theme
from schedule_poster.schedule.models import CanvasSize, Page

logger = logging.getLogger(__name__)

DEFAULT_CHROMIUM_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")
DEFAULT_SETTLE_MS = 400
DEFAULT_CONTENT_TIMEOUT_MS = 15000

# Forces layout so used @font-face rules start loading, kicks off any
# declared face still unloaded, then resolves true once fonts and <img>
# elements are done (loaded or failed), or false after timeoutMs.
_SETTLE_JS = """async (timeoutMs) => {
  if (document.body) {
    void document.body.offsetHeight;
  }
  const waits = [];
  if (document.fonts) {
    document.fonts.forEach((face) => {
      if (face.status === "unloaded") {
        face.load().catch(() => {});
      }
    });
    waits.push(document.fonts.ready);
  }
  for (const img of Array.from(document.images)) {
    if (!img.complete) {
      waits.push(new Promise((resolve) => {
        img.addEventListener("load", resolve, { once: true });
        img.addEventListener("error", resolve, { once: true });
      }));
    }
  }
  const ready = Promise.all(waits).then(() => true);
  const expired = new Promise((resolve) => setTimeout(() => resolve(false), timeoutMs));
  return Promise.race([ready, expired]);
}"""


class EngineState(Enum):
    UNINITIALIZED = "uninitialized"
    LAUNCHING = "launching"
    READY = "ready"
    INVALIDATED = "invalidated"
    CLOSED = "closed"


@dataclass
class BrowserSession:
    """A running Playwright driver plus its Chromium browser."""
    playwright: Any
    browser: Any

    def is_connected(self) -> bool:
        try:
            return bool(self.browser.is_connected())
        except Exception:
            return False

    def close(self) -> None:
        """Close the browser and stop the driver; errors are logged only."""
        try:
            self.browser.close()
        except Exception:
            logger.warning("Error closing browser", exc_info=True)
        try:
            self.playwright.stop()
        except Exception:
            logger.warning("Error stopping Playwright", exc_info=True)


def launch_chromium(args: tuple[str, ...] = DEFAULT_CHROMIUM_ARGS) -> BrowserSession:
    """Start Playwright and launch headless Chromium."""
    from playwright.sync_api import sync_playwright

    pw = sync_playwright().start()
    try:
        browser = pw.chromium.launch(args=list(args))
    except Exception:
        pw.stop()
        raise
    return BrowserSession(playwright=pw, browser=browser)


class EngineHandle:
    """Lazily launched, reusable browser session.

    ``get()`` is single-flight: callers arriving while a launch is in
    progress wait for that launch instead of starting another. A failed
    launch leaves the handle INVALIDATED, never READY.
    """

    def __init__(self, launcher: Callable[[], BrowserSession] | None = None) -> None:
        self._launcher = launcher or launch_chromium
        self._lock = threading.Lock()
        self._session: Optional[BrowserSession] = None
        self._state = EngineState.UNINITIALIZED
        self.launch_count = 0

    @property
    def state(self) -> EngineState:
        return self._state

    def get(self) -> BrowserSession:
        with self._lock:
            if self._state is EngineState.CLOSED:
                raise EngineLaunchFailure("Render engine has been shut down")
            if self._session is not None:
                if self._state is EngineState.READY and self._session.is_connected():
                    return self._session
                logger.warning("Browser no longer usable; relaunching")
                self._discard()

            self._state = EngineState.LAUNCHING
            logger.info("Launching headless Chromium")
            session = None
            try:
                session = self._launcher()
                session.browser.on("disconnected", self._on_disconnected)
            except Exception as exc:
                self._state = EngineState.INVALIDATED
                if session is not None:
                    session.close()
                raise EngineLaunchFailure("Could not launch headless Chromium") from exc

            self._session = session
            self._state = EngineState.READY
            self.launch_count += 1
            return session

    def invalidate(self, reason: str = "") -> None:
        """Drop the current browser so the next ``get()`` relaunches."""
        with self._lock:
            if self._state is EngineState.CLOSED:
                return
            logger.warning("Invalidating render engine%s", f": {reason}" if reason else "")
            self._discard()
            self._state = EngineState.INVALIDATED

    def close(self) -> None:
        """Shut the browser down for good (process exit)."""
        with self._lock:
            if self._session is not None:
                logger.info("Shutting down render engine")
            self._discard()
            self._state = EngineState.CLOSED

    def _discard(self) -> None:
        session, self._session = self._session, None
        if session is not None:
            session.close()

    def _on_disconnected(self, *_args) -> None:
        # Runs on the worker thread while Playwright dispatches events;
        # only flag the state, the session is discarded on next get().
        if self._state is EngineState.READY:
            logger.warning("Browser disconnected")
            self._state = EngineState.INVALIDATED


class RenderExecutor:
    """Renders one poster page to PNG bytes on the shared engine."""

    def __init__(
        self,
        handle: EngineHandle | None = None,
        *,
        settle_ms: int = DEFAULT_SETTLE_MS,
        content_timeout_ms: int = DEFAULT_CONTENT_TIMEOUT_MS,
        markup_renderer: Callable[..., str] = render_markup,
    ) -> None:
        self.handle = handle or EngineHandle()
        self.settle_ms = settle_ms
        self.content_timeout_ms = content_timeout_ms
        self._markup_renderer = markup_renderer

    def render(
        self,
        page: Page,
        theme: Theme,
        size: CanvasSize,
        options: PosterOptions | None = None,
    ) -> bytes:
        """Render ``page`` with ``theme`` at exactly ``size`` and return PNG bytes.

        Raises:
            RenderFailure: on any failure. Engine-level failures are raised
                as a subclass and have already invalidated the handle.
        """
        try:
            markup = self._markup_renderer(page, theme, size, options)
        except Exception as exc:
            raise RenderFailure(f"Could not build markup for page {page.index}") from exc

        try:
            session = self.handle.get()
            return self._render_in_surface(session, markup, size)
        except RenderFailure as exc:
            if not isinstance(exc, EngineLaunchFailure):
                self.handle.invalidate(type(exc).__name__)
            raise

    def _render_in_surface(self, session: BrowserSession, markup: str, size: CanvasSize) -> bytes:
        context = None
        try:
            try:
                context = session.browser.new_context(
                    viewport={"width": size.width, "height": size.height},
                    device_scale_factor=1,
                )
                surface = context.new_page()
                surface.set_content(
                    markup,
                    wait_until="domcontentloaded",
                    timeout=self.content_timeout_ms,
                )
            except Exception as exc:
                raise self._classify(session, exc, ContentLoadFailure,
                                     "Could not load poster markup") from exc

            self._settle(surface)

            try:
                png = surface.screenshot(
                    type="png",
                    clip={"x": 0, "y": 0, "width": size.width, "height": size.height},
                    timeout=self.content_timeout_ms,
                )
            except Exception as exc:
                raise self._classify(session, exc, CaptureFailure,
                                     "Could not capture poster screenshot") from exc
            logger.debug("Captured %dx%d poster (%d bytes)", size.width, size.height, len(png))
            return png
        finally:
            if context is not None:
                try:
                    context.close()
                except Exception:
                    logger.warning("Error closing render context", exc_info=True)

    def _settle(self, surface) -> None:
        """Wait briefly for web fonts and images; running out of time is fine."""
        if self.settle_ms <= 0:
            return
        try:
            settled = surface.evaluate(_SETTLE_JS, self.settle_ms)
        except Exception as exc:
            logger.debug("Settle check failed: %s", exc)
            return
        if not settled:
            logger.debug("Assets not settled after %d ms", self.settle_ms)

    @staticmethod
    def _classify(session: BrowserSession, exc: Exception, default: type, message: str) -> RenderFailure:
        if not session.is_connected():
            return EngineCrash(f"Browser disconnected during render: {exc}")
        return default(f"{message}: {exc}")
