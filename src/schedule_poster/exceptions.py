"""Custom exception hierarchy for schedule_poster."""

from __future__ import annotations


class PosterError(Exception):
    """Base exception for all schedule_poster errors."""


class ValidationError(PosterError):
    """Malformed schedule entries, payloads, or layout configuration."""


class RenderFailure(PosterError):
    """A poster page could not be rendered.

    The originating error is kept as ``__cause__`` for diagnostics.
    """


class EngineLaunchFailure(RenderFailure):
    """Headless Chromium could not be started."""


class ContentLoadFailure(RenderFailure):
    """The poster markup could not be loaded into the render surface."""


class CaptureFailure(RenderFailure):
    """The screenshot of the render surface failed."""


class EngineCrash(RenderFailure):
    """The browser disconnected or crashed mid-job."""


class RenderQueueClosed(RenderFailure):
    """A job was submitted after the render queue shut down."""
