"""Poster themes — template, palette, assets, and line-budget layout.

Every visual variant of the poster is a :class:`Theme`. The render core is
the same for all of them; only the template and the layout numbers the
paginator works with change.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

from schedule_poster.exceptions import ValidationError
from schedule_poster.schedule.models import PaginationConfig


@dataclass(frozen=True)
class Theme:
    name: str
    template: str                       # file under templates/html
    layout: PaginationConfig = field(default_factory=PaginationConfig)
    bg_color: str = "#41E14D"
    ink_color: str = "#0B0C0F"
    font_family: str = "SWRCustom"
    font_file: str = "MainFont.woff2"   # under the assets directory
    logo_file: str = "Icon.png"
    logo_alt: str = ""
    header_left: str = ""
    show_page_numbers: bool = True

    def with_overrides(self, data: dict) -> "Theme":
        """Apply per-request colour/header overrides from a payload."""
        changes = {}
        if data.get("bgColor"):
            changes["bg_color"] = str(data["bgColor"])
        if data.get("inkColor"):
            changes["ink_color"] = str(data["inkColor"])
        if data.get("headerLeft"):
            changes["header_left"] = str(data["headerLeft"])
        return replace(self, **changes) if changes else self


THEMES: dict[str, Theme] = {}


def register_theme(theme: Theme) -> Theme:
    THEMES[theme.name] = theme
    return theme


def get_theme(name: str | None, default: str = "samewave") -> Theme:
    """Look up a registered theme by name (case-insensitive)."""
    key = (name or default).strip().lower()
    try:
        return THEMES[key]
    except KeyError:
        raise ValidationError(
            f"Unknown theme {name!r}; available: {', '.join(sorted(THEMES))}"
        ) from None


def theme_names() -> list[str]:
    return sorted(THEMES)


# ── Built-in themes ──────────────────────────────────────────────────
# chars_per_line is tuned to the monospace body font at each theme's
# label column width on a 1080px canvas.

register_theme(Theme(
    name="samewave",
    template="table.html",
    layout=PaginationConfig(max_lines_per_page=30, day_header_cost=2, chars_per_line=34),
    logo_alt="Samewave Radio logo",
    header_left="THIS WEEK ON SAMEWAVE RADIO",
))

register_theme(Theme(
    name="midnight",
    template="agenda.html",
    layout=PaginationConfig(max_lines_per_page=22, day_header_cost=3, chars_per_line=28),
    bg_color="#0B0C0F",
    ink_color="#F2F2F2",
    logo_alt="Samewave Radio logo",
    header_left="THIS WEEK ON SAMEWAVE RADIO",
))

register_theme(Theme(
    name="paper",
    template="agenda.html",
    layout=PaginationConfig(max_lines_per_page=22, day_header_cost=3, chars_per_line=28),
    bg_color="#F4EFE3",
    ink_color="#1D1A16",
    logo_alt="Samewave Radio logo",
    header_left="THIS WEEK ON SAMEWAVE RADIO",
    show_page_numbers=False,
))
