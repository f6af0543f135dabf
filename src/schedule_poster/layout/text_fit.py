"""Approximate line-wrap cost model.

Character counting stands in for glyph measurement. Each theme tunes
``chars_per_line`` against its font and column width; the residual error
is absorbed by the page budget.
"""

from __future__ import annotations

import math

from schedule_poster.exceptions import ValidationError
from schedule_poster.schedule.models import DayGroup, PaginationConfig


def estimate_lines(text: str | None, chars_per_line: int) -> int:
    """Estimate how many rendered lines ``text`` wraps to (always >= 1)."""
    if chars_per_line <= 0:
        raise ValidationError("chars_per_line must be > 0")
    trimmed = (text or "").strip()
    if not trimmed:
        return 1
    return max(1, math.ceil(len(trimmed) / chars_per_line))


def group_cost(group: DayGroup, config: PaginationConfig) -> int:
    """Header lines plus the estimated lines of every entry in the group."""
    return config.day_header_cost + sum(
        estimate_lines(entry.label, config.chars_per_line) for entry in group.entries
    )
