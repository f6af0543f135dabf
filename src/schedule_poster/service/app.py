"""FastAPI app exposing the poster renderer over HTTP."""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from fastapi.staticfiles import StaticFiles

from schedule_poster.config import Settings, asset_dir_candidates, load_settings
from schedule_poster.exceptions import RenderFailure, ValidationError
from schedule_poster.layout.paginator import paginate_or_blank
from schedule_poster.renderer.html_renderer import PosterOptions
from schedule_poster.renderer.themes import Theme, get_theme
from schedule_poster.schedule.models import CanvasSize, Page
from schedule_poster.schedule.normalize import normalize_payload
from schedule_poster.service.render_service import (
    RenderService,
    get_render_service,
    png_size,
    shutdown_render_service,
)
from schedule_poster.version import __version__

logger = logging.getLogger(__name__)


def public_base_url(request: Request) -> str:
    """Public origin of this service, honouring reverse-proxy headers."""
    xf_proto = request.headers.get("x-forwarded-proto", "").split(",")[0].strip()
    xf_host = request.headers.get("x-forwarded-host", "").split(",")[0].strip()
    proto = xf_proto or "https"
    host = xf_host or request.headers.get("host", "") or request.url.netloc
    return f"{proto}://{host}"


async def _read_payload(request: Request) -> dict:
    body = await request.body()
    if not body.strip():
        return {}
    try:
        data = json.loads(body)
    except ValueError as exc:
        raise ValidationError("Invalid JSON body") from exc
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    return data


def create_app(
    settings: Optional[Settings] = None,
    service: Optional[RenderService] = None,
) -> FastAPI:
    """Build the HTTP app; the render service is shut down with the app."""
    settings = settings or load_settings()
    owns_service = service is None
    service = service or get_render_service(settings)
    default_size = CanvasSize(settings.canvas_width, settings.canvas_height)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        logger.info("Shutting down render service")
        if owns_service:
            await asyncio.to_thread(shutdown_render_service)
        else:
            await asyncio.to_thread(service.shutdown)

    app = FastAPI(title="Schedule Poster Renderer", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.render_service = service

    if settings.assets_dir is not None:
        logger.info("Serving Assets from: %s", settings.assets_dir)
        for prefix in ("/Assets", "/assets"):
            app.mount(prefix, StaticFiles(directory=str(settings.assets_dir)),
                      name=prefix.strip("/"))
    else:
        logger.warning("Assets folder not found. Tried: %s",
                       [str(p) for p in asset_dir_candidates()])

    @app.exception_handler(ValidationError)
    async def _validation_error(_request: Request, exc: ValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RenderFailure)
    async def _render_failure(_request: Request, exc: RenderFailure):
        logger.error("Render failed: %s", exc, exc_info=exc)
        return JSONResponse(status_code=500, content={"error": "Render failed"})

    def _prepare(data: dict, request: Request) -> tuple[list[Page], Theme, CanvasSize, PosterOptions]:
        theme = get_theme(data.get("theme"), default=settings.default_theme).with_overrides(data)
        size = CanvasSize.from_payload(data.get("size"), default_size)
        groups = normalize_payload(data)
        pages = paginate_or_blank(groups, theme.layout)
        options = PosterOptions.from_payload(
            data, base_url=public_base_url(request), assets_dir=settings.assets_dir,
        )
        return pages, theme, size, options

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/debug/assets")
    async def debug_assets():
        assets_dir: Optional[Path] = settings.assets_dir
        return {
            "cwd": str(Path.cwd()),
            "candidates": [str(p) for p in asset_dir_candidates()],
            "assetsDir": str(assets_dir) if assets_dir else None,
            "foundIcon": bool(assets_dir and (assets_dir / "Icon.png").exists()),
            "foundFont": bool(assets_dir and (assets_dir / "MainFont.woff2").exists()),
        }

    @app.post("/render")
    async def render(request: Request, page: int = 1):
        data = await _read_payload(request)
        pages, theme, size, options = _prepare(data, request)
        if not 1 <= page <= len(pages):
            raise ValidationError(f"Page {page} out of range (1-{len(pages)})")
        target = pages[page - 1]
        png = await asyncio.wrap_future(service.submit_render(target, theme, size, options))
        return Response(
            content=png,
            media_type="image/png",
            headers={"X-Page-Index": str(target.index), "X-Page-Total": str(target.total)},
        )

    @app.post("/render/pages")
    async def render_pages(request: Request):
        data = await _read_payload(request)
        pages, theme, size, options = _prepare(data, request)
        futures = [service.submit_render(p, theme, size, options) for p in pages]
        results = []
        for target, future in zip(pages, futures):
            png = await asyncio.wrap_future(future)
            width, height = png_size(png)
            results.append({
                "page_index": target.index,
                "page_total": target.total,
                "width": width,
                "height": height,
                "image_base64": base64.b64encode(png).decode(),
            })
        return {"pages": results}

    return app
