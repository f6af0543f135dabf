"""Schedule poster renderer — weekly schedules as paginated PNG posters."""

from schedule_poster.version import __version__

__all__ = ["__version__"]
