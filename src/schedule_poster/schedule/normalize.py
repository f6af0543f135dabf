"""Request payload → DayGroup normalization.

Accepts four payload shapes:

  - ``items: [{left, right}]`` — preformatted rows; ``right`` usually
    starts with a weekday ("Mon 8PM"). Checked first when non-empty.
  - ``days: [{day, title?, entries: [{label, start}]}]`` — grouped entries
    with ISO-8601 start instants.
  - ``entries: [{label, start}]`` — a flat list, grouped here by local
    calendar date in ``timezone``.
  - ``days: [{day, rows: [{time, line}]}]`` — legacy rows whose times are
    display text only.

Empty day groups are dropped so pagination only ever sees non-empty groups.
"""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from schedule_poster.exceptions import ValidationError
from schedule_poster.schedule.models import DayGroup, ScheduleEntry, Weekday

logger = logging.getLogger(__name__)


def resolve_timezone(name: object) -> Optional[tzinfo]:
    """Look up an IANA zone name; empty means "leave instants as given"."""
    if not name:
        return None
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(f"Unknown timezone: {name!r}") from exc


def parse_instant(value: object, tz: Optional[tzinfo] = None) -> datetime:
    """Parse an ISO-8601 start time.

    Naive values are interpreted in ``tz``; aware values are converted to
    it so that grouping by calendar date happens in the poster's zone.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value or "").strip()
        if not text:
            raise ValidationError("Entry is missing a start time")
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as exc:
            raise ValidationError(f"Invalid start time: {value!r}") from exc
    if tz is not None:
        dt = dt.replace(tzinfo=tz) if dt.tzinfo is None else dt.astimezone(tz)
    return dt


def _sort_key(dt: datetime) -> float:
    if dt.tzinfo is None:
        # Naive instants only ever compare with each other.
        return (dt - datetime(1970, 1, 1)).total_seconds()
    return dt.timestamp()


def _entry_label(raw: dict) -> str:
    label = raw.get("label", raw.get("title", ""))
    return "" if label is None else str(label)


def _build_entries(day: Weekday, raw_entries: list, tz: Optional[tzinfo]) -> list[ScheduleEntry]:
    entries = []
    for raw in raw_entries:
        if not isinstance(raw, dict):
            raise ValidationError(f"Schedule entry must be an object, got {type(raw).__name__}")
        start = parse_instant(raw.get("start", raw.get("startInstant")), tz)
        entries.append(ScheduleEntry(
            day_key=day,
            label=_entry_label(raw),
            start=start,
            sort_key=_sort_key(start),
        ))
    # sorted() is stable, so equal instants keep payload order
    return sorted(entries, key=lambda e: e.sort_key)


def _build_legacy_rows(day: Weekday, rows: list, tz_abbrev: str) -> list[ScheduleEntry]:
    entries = []
    suffix = f" {tz_abbrev}" if tz_abbrev else ""
    for pos, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ValidationError(f"Schedule row must be an object, got {type(row).__name__}")
        time_text = str(row.get("time") or "").strip()
        entries.append(ScheduleEntry(
            day_key=day,
            label=str(row.get("line") or ""),
            time_label=f"{time_text}{suffix}".strip() if time_text else "",
            sort_key=float(pos),
        ))
    return entries


def groups_from_days(days: list, tz: Optional[tzinfo] = None, tz_abbrev: str = "") -> list[DayGroup]:
    """Normalize a ``days`` array (entries or legacy rows) into DayGroups."""
    if not isinstance(days, list):
        raise ValidationError("'days' must be a list")

    groups = []
    for raw_day in days:
        if not isinstance(raw_day, dict):
            raise ValidationError("Each day must be an object")
        day = Weekday.parse(raw_day.get("day", raw_day.get("dayKey")))
        title = str(raw_day.get("title") or "")

        if "entries" in raw_day:
            raw_entries = raw_day.get("entries") or []
            if not isinstance(raw_entries, list):
                raise ValidationError(f"'entries' for {day.value} must be a list")
            entries = _build_entries(day, raw_entries, tz)
        else:
            rows = raw_day.get("rows") or []
            if not isinstance(rows, list):
                raise ValidationError(f"'rows' for {day.value} must be a list")
            entries = _build_legacy_rows(day, rows, tz_abbrev)

        if not entries:
            logger.debug("Dropping empty day group %s", day.value)
            continue
        groups.append(DayGroup(day_key=day, entries=entries, title=title))
    return groups


def groups_from_entries(raw_entries: list, tz: Optional[tzinfo] = None) -> list[DayGroup]:
    """Group a flat entry list by local calendar date, in date order."""
    if not isinstance(raw_entries, list):
        raise ValidationError("'entries' must be a list")

    parsed = []
    for raw in raw_entries:
        if not isinstance(raw, dict):
            raise ValidationError(f"Schedule entry must be an object, got {type(raw).__name__}")
        start = parse_instant(raw.get("start", raw.get("startInstant")), tz)
        parsed.append((start, _entry_label(raw)))
    parsed.sort(key=lambda item: _sort_key(item[0]))

    groups: list[DayGroup] = []
    current_date = None
    for start, label in parsed:
        day = Weekday.from_datetime(start)
        if start.date() != current_date:
            current_date = start.date()
            groups.append(DayGroup(
                day_key=day,
                title=f"{day.label} {start.month}/{start.day}",
            ))
        groups[-1].entries.append(ScheduleEntry(
            day_key=day, label=label, start=start, sort_key=_sort_key(start),
        ))
    return groups


def _split_weekday(text: str) -> tuple[Optional[Weekday], str]:
    """Split a leading weekday token off ``text`` ("Mon 8PM" -> MON, "8PM")."""
    head, _, rest = text.partition(" ")
    try:
        day = Weekday.parse(head.rstrip(".,:"))
    except ValidationError:
        return None, text
    return day, rest.strip()


def groups_from_items(items: list) -> list[DayGroup]:
    """Group preformatted ``{left, right}`` rows, keeping payload order.

    Consecutive rows whose ``right`` starts with the same weekday share a
    DayGroup. Rows without a weekday token form undated groups, which
    render without a heading and show ``right`` verbatim.
    """
    if not isinstance(items, list):
        raise ValidationError("'items' must be a list")

    groups: list[DayGroup] = []
    for pos, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"Schedule item must be an object, got {type(raw).__name__}")
        right = str(raw.get("right") or "").strip()
        day, time_label = _split_weekday(right)
        if not groups or groups[-1].day_key is not day:
            groups.append(DayGroup(day_key=day))
        groups[-1].entries.append(ScheduleEntry(
            day_key=day,
            label=str(raw.get("left") or ""),
            time_label=time_label,
            sort_key=float(pos),
        ))
    return groups


def normalize_payload(data: dict) -> list[DayGroup]:
    """Turn a render request body into an ordered list of non-empty DayGroups."""
    if not isinstance(data, dict):
        raise ValidationError("Payload must be a JSON object")

    tz = resolve_timezone(data.get("timezone"))
    tz_abbrev = str(data.get("tzAbbrev") or "")

    items = data.get("items")
    if isinstance(items, list) and items:
        return groups_from_items(items)
    if data.get("entries") is not None:
        return groups_from_entries(data["entries"], tz)
    if data.get("days") is not None:
        return groups_from_days(data["days"], tz, tz_abbrev)
    return []
