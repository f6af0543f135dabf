"""Schedule data model and payload normalization."""

from schedule_poster.schedule.models import (
    CanvasSize,
    DayGroup,
    Page,
    PageImage,
    PaginationConfig,
    ScheduleEntry,
    Weekday,
)
from schedule_poster.schedule.normalize import normalize_payload

__all__ = [
    "CanvasSize",
    "DayGroup",
    "Page",
    "PageImage",
    "PaginationConfig",
    "ScheduleEntry",
    "Weekday",
    "normalize_payload",
]
