"""Poster rendering package — HTML/CSS + Playwright (headless Chromium) to PNG."""

from __future__ import annotations

from schedule_poster.renderer.html_renderer import PosterOptions, render_markup
from schedule_poster.renderer.png_engine import EngineHandle, RenderExecutor
from schedule_poster.renderer.render_queue import RenderQueue
from schedule_poster.renderer.themes import Theme, get_theme, theme_names

__all__ = [
    "EngineHandle",
    "PosterOptions",
    "RenderExecutor",
    "RenderQueue",
    "Theme",
    "get_theme",
    "render_markup",
    "theme_names",
]
