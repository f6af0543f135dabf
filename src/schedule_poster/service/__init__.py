"""HTTP service package — FastAPI app over the serialized render service."""

from __future__ import annotations

from schedule_poster.service.render_service import (
    RenderService,
    get_render_service,
    shutdown_render_service,
)

__all__ = ["RenderService", "get_render_service", "shutdown_render_service"]
