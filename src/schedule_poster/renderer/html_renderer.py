"""HTML poster markup using Jinja2 templates.

Builds the template context for one paginated page and renders the
theme's template. The result is a complete HTML document sized to the
canvas, ready to be loaded by the PNG engine.
"""

from __future__ import annotations

import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from schedule_poster.renderer.filters import setup_jinja_env
from schedule_poster.renderer.themes import Theme
from schedule_poster.schedule.models import CanvasSize, Page

logger = logging.getLogger(__name__)

_MIME_BY_SUFFIX = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".woff2": "font/woff2",
    ".woff": "font/woff",
    ".ttf": "font/ttf",
    ".otf": "font/otf",
}

_env = None


def _get_env():
    global _env
    if _env is None:
        _env = setup_jinja_env()
    return _env


@dataclass
class PosterOptions:
    """Per-request presentation options that are not part of the theme."""
    header_right: str = ""
    tz_abbrev: str = ""
    font_url: str = ""
    logo_url: str = ""
    base_url: str = ""                  # public origin serving /Assets
    assets_dir: Optional[Path] = None   # local fallback when no base_url

    @classmethod
    def from_payload(
        cls, data: dict, base_url: str = "", assets_dir: Optional[Path] = None,
    ) -> "PosterOptions":
        return cls(
            header_right=str(data.get("headerRight") or data.get("dateRange") or ""),
            tz_abbrev=str(data.get("tzAbbrev") or ""),
            font_url=str(data.get("fontUrl") or ""),
            logo_url=str(data.get("logoUrl") or ""),
            base_url=base_url.rstrip("/"),
            assets_dir=assets_dir,
        )


# ── Asset helpers ─────────────────────────────────────────────────────

def _asset_to_data_uri(path: Path) -> str:
    """Convert a local asset to a base64 data URI.

    Formats Chromium may not decode inline (TIFF, BMP, ...) are
    re-encoded as PNG.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    mime = _MIME_BY_SUFFIX.get(suffix)
    if mime is None:
        from PIL import Image
        with Image.open(path) as img:
            buf = io.BytesIO()
            img.save(buf, format="PNG")
        data = base64.b64encode(buf.getvalue()).decode()
        return f"data:image/png;base64,{data}"
    data = base64.b64encode(path.read_bytes()).decode()
    return f"data:{mime};base64,{data}"


def resolve_asset_url(explicit: str, filename: str, options: PosterOptions) -> str:
    """Pick the URL for a theme asset.

    Explicit payload URL > public ``/Assets`` URL > inlined local file.
    Returns "" when none is available so the template can omit it.
    """
    if explicit:
        return explicit
    if not filename:
        return ""
    if options.base_url:
        return f"{options.base_url}/Assets/{filename}"
    if options.assets_dir is not None:
        local = Path(options.assets_dir) / filename
        if local.is_file():
            return _asset_to_data_uri(local)
        logger.debug("Asset %s not found in %s", filename, options.assets_dir)
    return ""


# ── Context + render ──────────────────────────────────────────────────

def build_poster_context(
    page: Page, theme: Theme, size: CanvasSize, options: PosterOptions,
) -> dict:
    """Assemble the template variables for one poster page."""
    return {
        "width": size.width,
        "height": size.height,
        "theme": theme,
        "bg_color": theme.bg_color,
        "ink_color": theme.ink_color,
        "font_family": theme.font_family,
        "font_url": resolve_asset_url(options.font_url, theme.font_file, options),
        "logo_url": resolve_asset_url(options.logo_url, theme.logo_file, options),
        "logo_alt": theme.logo_alt,
        "header_left": theme.header_left,
        "header_right": options.header_right,
        "tz_abbrev": options.tz_abbrev,
        "day_groups": page.day_groups,
        "page_index": page.index,
        "page_total": page.total,
        "show_page_numbers": theme.show_page_numbers and page.total > 1,
    }


def render_markup(
    page: Page, theme: Theme, size: CanvasSize, options: PosterOptions | None = None,
) -> str:
    """Render the complete HTML document for one poster page."""
    options = options or PosterOptions()
    context = build_poster_context(page, theme, size, options)
    template = _get_env().get_template(theme.template)
    return template.render(**context)
