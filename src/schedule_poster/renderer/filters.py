"""Jinja2 template filters and environment setup."""

from __future__ import annotations

import re
from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from schedule_poster.schedule.models import ScheduleEntry

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates" / "html"

_CSS_COLOR_RE = re.compile(
    r"^(#[0-9a-fA-F]{3,8}|[a-zA-Z]{3,20}|rgba?\(\s*[\d.,\s%]+\)|hsla?\(\s*[\d.,\s%deg]+\))$"
)


def clock_time(dt: datetime | None) -> str:
    """Format a start instant as "8:00 PM" (no leading zero)."""
    if dt is None:
        return ""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d} {suffix}"


def entry_time(entry: ScheduleEntry, tz_abbrev: str = "") -> str:
    """Display time for an entry: legacy text as given, else the clock time."""
    if entry.time_label:
        return entry.time_label
    text = clock_time(entry.start)
    if text and tz_abbrev:
        text = f"{text} {tz_abbrev}"
    return text


def css_color(value: str, fallback: str = "#000000") -> str:
    """Pass through simple CSS colour values; anything else gets the fallback."""
    value = (value or "").strip()
    if _CSS_COLOR_RE.match(value):
        return value
    return fallback


def css_url(value: str) -> str:
    """Make a URL safe to drop inside ``url("...")``."""
    return (value or "").replace("\\", "%5C").replace('"', "%22").replace("\n", "")


def setup_jinja_env() -> Environment:
    """Create and configure the Jinja2 template environment."""
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(["html"]),  # labels come from request bodies
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["clock_time"] = clock_time
    env.filters["entry_time"] = entry_time
    env.filters["css_color"] = css_color
    env.filters["css_url"] = css_url
    return env
