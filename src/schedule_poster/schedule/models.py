"""Data models for schedule entries, day groups, and poster pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from schedule_poster.exceptions import ValidationError

DEFAULT_CANVAS_WIDTH = 1080
DEFAULT_CANVAS_HEIGHT = 1350


class Weekday(Enum):
    MON = "mon"
    TUE = "tue"
    WED = "wed"
    THU = "thu"
    FRI = "fri"
    SAT = "sat"
    SUN = "sun"

    @property
    def label(self) -> str:
        return _WEEKDAY_LABELS[self]

    @classmethod
    def parse(cls, value: object) -> "Weekday":
        """Parse "mon", "Monday", "MON" etc. into a Weekday."""
        if isinstance(value, Weekday):
            return value
        text = str(value or "").strip().lower()
        if len(text) >= 3:
            for day in cls:
                if text[:3] == day.value and _WEEKDAY_LABELS[day].lower().startswith(text):
                    return day
        raise ValidationError(f"Unknown weekday: {value!r}")

    @classmethod
    def from_datetime(cls, dt: datetime) -> "Weekday":
        return list(cls)[dt.weekday()]


_WEEKDAY_LABELS: dict[Weekday, str] = {
    Weekday.MON: "Monday",
    Weekday.TUE: "Tuesday",
    Weekday.WED: "Wednesday",
    Weekday.THU: "Thursday",
    Weekday.FRI: "Friday",
    Weekday.SAT: "Saturday",
    Weekday.SUN: "Sunday",
}


@dataclass(frozen=True)
class ScheduleEntry:
    day_key: Optional[Weekday]          # None for undated "items" rows
    label: str                          # show / event title, may be empty
    start: Optional[datetime] = None    # None for display-only legacy rows
    sort_key: float = 0.0               # non-decreasing with start
    time_label: str = ""                # preformatted time text from legacy rows


@dataclass
class DayGroup:
    """Entries sharing one calendar day — never split across pages."""
    day_key: Optional[Weekday]
    entries: list[ScheduleEntry] = field(default_factory=list)
    title: str = ""                     # e.g. "Monday 3/2"; defaults to weekday label

    @property
    def heading(self) -> str:
        if self.title:
            return self.title
        return self.day_key.label if self.day_key is not None else ""


@dataclass
class Page:
    index: int                          # 1-based
    total: int
    day_groups: list[DayGroup] = field(default_factory=list)

    @property
    def entries(self) -> list[ScheduleEntry]:
        return [e for g in self.day_groups for e in g.entries]


@dataclass(frozen=True)
class PaginationConfig:
    max_lines_per_page: int = 24
    day_header_cost: int = 2
    chars_per_line: int = 34

    def __post_init__(self) -> None:
        if self.max_lines_per_page <= 0:
            raise ValidationError("max_lines_per_page must be > 0")
        if self.day_header_cost < 0:
            raise ValidationError("day_header_cost must be >= 0")
        if self.chars_per_line <= 0:
            raise ValidationError("chars_per_line must be > 0")


@dataclass(frozen=True)
class CanvasSize:
    width: int = DEFAULT_CANVAS_WIDTH
    height: int = DEFAULT_CANVAS_HEIGHT

    def __post_init__(self) -> None:
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValidationError(f"Canvas {name} must be a positive integer, got {value!r}")

    @classmethod
    def from_payload(cls, data: object, default: "CanvasSize | None" = None) -> "CanvasSize":
        """Build a size from ``{"width": .., "height": ..}``, falling back per field."""
        default = default or cls()
        if not isinstance(data, dict):
            return default
        width = data.get("width", default.width)
        height = data.get("height", default.height)
        try:
            if isinstance(width, str):
                width = int(width)
            if isinstance(height, str):
                height = int(height)
        except ValueError as exc:
            raise ValidationError(f"Invalid canvas size: {data!r}") from exc
        return cls(width=width, height=height)


@dataclass
class PageImage:
    """One rendered poster page."""
    page_index: int
    page_total: int
    image_bytes: bytes
    width: int
    height: int
