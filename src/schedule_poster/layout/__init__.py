"""Line-budget layout: text cost estimation and page packing."""

from __future__ import annotations

from schedule_poster.layout.paginator import paginate, paginate_or_blank
from schedule_poster.layout.text_fit import estimate_lines, group_cost

__all__ = ["estimate_lines", "group_cost", "paginate", "paginate_or_blank"]
