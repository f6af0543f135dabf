"""Render service — the only way into the shared render engine.

Wires the executor behind the FIFO queue and runs the whole-schedule
pipeline: normalized day groups → pages → markup → PNG per page.
"""

from __future__ import annotations

import io
import logging
import threading
from concurrent.futures import Future
from typing import Optional

from PIL import Image

from schedule_poster.config import Settings
from schedule_poster.layout.paginator import paginate_or_blank
from schedule_poster.renderer.html_renderer import PosterOptions
from schedule_poster.renderer.png_engine import EngineHandle, RenderExecutor, launch_chromium
from schedule_poster.renderer.render_queue import RenderQueue
from schedule_poster.renderer.themes import Theme
from schedule_poster.schedule.models import CanvasSize, DayGroup, Page, PageImage

logger = logging.getLogger(__name__)


def png_size(data: bytes) -> tuple[int, int]:
    """Return (width, height) of a PNG image."""
    with Image.open(io.BytesIO(data)) as img:
        return img.size


class RenderService:
    """Serialized access to one :class:`RenderExecutor`."""

    def __init__(self, executor: RenderExecutor, queue: RenderQueue | None = None) -> None:
        self.executor = executor
        self.queue = queue or RenderQueue()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RenderService":
        args = settings.chromium_args
        handle = EngineHandle(launcher=lambda: launch_chromium(args))
        executor = RenderExecutor(
            handle,
            settle_ms=settings.settle_ms,
            content_timeout_ms=settings.content_timeout_ms,
        )
        return cls(executor)

    def submit_render(
        self,
        page: Page,
        theme: Theme,
        size: CanvasSize,
        options: PosterOptions | None = None,
    ) -> Future:
        """Queue one page; the Future resolves to PNG bytes or raises RenderFailure."""
        return self.queue.submit(self.executor.render, page, theme, size, options)

    def render_pages(
        self,
        pages: list[Page],
        theme: Theme,
        size: CanvasSize,
        options: PosterOptions | None = None,
    ) -> list[PageImage]:
        """Render every page, blocking; raises on the first failed page."""
        futures = [self.submit_render(page, theme, size, options) for page in pages]
        images = []
        for page, future in zip(pages, futures):
            data = future.result()
            width, height = png_size(data)
            if (width, height) != (size.width, size.height):
                logger.warning("Page %d rendered at %dx%d, expected %dx%d",
                               page.index, width, height, size.width, size.height)
            images.append(PageImage(
                page_index=page.index,
                page_total=page.total,
                image_bytes=data,
                width=width,
                height=height,
            ))
        return images

    def render_schedule(
        self,
        groups: list[DayGroup],
        theme: Theme,
        size: CanvasSize,
        options: PosterOptions | None = None,
    ) -> list[PageImage]:
        """Paginate ``groups`` with the theme's layout and render all pages."""
        pages = paginate_or_blank(groups, theme.layout)
        logger.info("Rendering %d poster page(s) with theme %s at %dx%d",
                    len(pages), theme.name, size.width, size.height)
        return self.render_pages(pages, theme, size, options)

    def shutdown(self) -> None:
        """Drain queued renders, then close the browser on the worker thread."""
        self.queue.shutdown(wait=True, final=self.executor.handle.close)


# ── Process-wide instance ─────────────────────────────────────────────

_service: Optional[RenderService] = None
_service_lock = threading.Lock()


def get_render_service(settings: Settings | None = None) -> RenderService:
    """Return the process-wide service, creating it on first use."""
    global _service
    with _service_lock:
        if _service is None or _service.queue.closed:
            if settings is None:
                from schedule_poster.config import load_settings
                settings = load_settings()
            _service = RenderService.from_settings(settings)
        return _service


def shutdown_render_service() -> None:
    """Tear down the process-wide service if it was ever started."""
    global _service
    with _service_lock:
        service, _service = _service, None
    if service is not None:
        service.shutdown()
