"""Greedy day-group pagination under a fixed line budget."""

from __future__ import annotations

import logging

from schedule_poster.exceptions import ValidationError
from schedule_poster.layout.text_fit import group_cost
from schedule_poster.schedule.models import DayGroup, Page, PaginationConfig

logger = logging.getLogger(__name__)


def paginate(groups: list[DayGroup], config: PaginationConfig) -> list[Page]:
    """Pack day groups into pages in a single greedy pass.

    A group is never split. A new page starts when the next group would
    push the running cost past ``config.max_lines_per_page``. A group that
    alone exceeds the budget still gets a page of its own (it overflows
    the canvas rather than being dropped).

    Entries come out in exactly the order they went in.
    """
    chunks: list[list[DayGroup]] = []
    current: list[DayGroup] = []
    used = 0

    for group in groups:
        if not group.entries:
            raise ValidationError(f"Day group {group.heading or '(undated)'} has no entries")

        cost = group_cost(group, config)
        if current and used + cost > config.max_lines_per_page:
            chunks.append(current)
            current = []
            used = 0

        if cost > config.max_lines_per_page:
            logger.warning(
                "Day group %s costs %d lines, over the %d-line page budget; "
                "it will overflow its page",
                group.heading, cost, config.max_lines_per_page,
            )

        current.append(group)
        used += cost

    if current:
        chunks.append(current)

    total = len(chunks)
    pages = [Page(index=i, total=total, day_groups=chunk)
             for i, chunk in enumerate(chunks, start=1)]
    logger.debug("Paginated %d day groups into %d pages", len(groups), total)
    return pages


def paginate_or_blank(groups: list[DayGroup], config: PaginationConfig) -> list[Page]:
    """Like :func:`paginate`, but an empty schedule still yields one blank page."""
    pages = paginate(groups, config)
    if not pages:
        return [Page(index=1, total=1, day_groups=[])]
    return pages
