from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Any, Dict, List, Sequence
from zoneinfo import ZoneInfo

import requests
from icalendar import Calendar

from ..core.scheduler import RenderContext
from ..errors import RenderError
from .templates import render_html


@dataclass
class CalendarEvent:
    start: datetime
    end: datetime
    summary: str
    location: str
    all_day: bool


def _as_datetime(value, tz: tzinfo) -> datetime:
    """Normalize an ICS date or datetime to an aware datetime in `tz`."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=tz)
        return value.astimezone(tz)
    return datetime.combine(value, time.min, tzinfo=tz)


def parse_events(ics_data: bytes, period_start: datetime, period_end: datetime, tz: tzinfo) -> List[CalendarEvent]:
    """Events overlapping [period_start, period_end], sorted by start."""
    try:
        cal = Calendar.from_ical(ics_data)
    except ValueError as e:
        raise RenderError(f"unable to parse calendar: {e}") from e

    events = []
    for component in cal.walk("VEVENT"):
        dtstart = component.get("DTSTART")
        if dtstart is None:
            continue
        raw_start = dtstart.dt
        all_day = isinstance(raw_start, date) and not isinstance(raw_start, datetime)

        start = _as_datetime(raw_start, tz)
        dtend = component.get("DTEND")
        if dtend is not None:
            end = _as_datetime(dtend.dt, tz)
        else:
            end = start + (timedelta(days=1) if all_day else timedelta())

        if end < period_start or start > period_end:
            continue

        events.append(CalendarEvent(
            start=start,
            end=end,
            summary=str(component.get("SUMMARY", "")),
            location=str(component.get("LOCATION", "")),
            all_day=all_day,
        ))

    events.sort(key=lambda e: e.start)
    return events


def build_columns(events: Sequence[CalendarEvent], col_count: int, per_col: int) -> List[List[CalendarEvent]]:
    """Fill columns top to bottom; once all are full the rest stay in the last one."""
    cols: List[List[CalendarEvent]] = [[] for _ in range(col_count)]
    if not cols:
        return cols
    col_idx = 0
    count_in_col = 0
    for event in events:
        cols[col_idx].append(event)
        count_in_col += 1
        if count_in_col >= per_col:
            col_idx = min(col_idx + 1, col_count - 1)
            count_in_col = 0
    return cols


def add_month(day: date) -> date:
    year, month = (day.year + 1, 1) if day.month == 12 else (day.year, day.month + 1)
    # Clamp to the last day of the target month
    while True:
        try:
            return day.replace(year=year, month=month)
        except ValueError:
            day -= timedelta(days=1)


def make_calendar_renderer(settings: Dict[str, Any]):
    tz = ZoneInfo(settings.get("timezone", "Europe/Berlin"))
    columns = int(settings.get("columns", 3))
    per_column = int(settings.get("per_column", 8))

    def render_calendar(ctx: RenderContext) -> str:
        url = settings.get("ics_url")
        if not url:
            raise RenderError("calendar.ics_url is not configured")
        try:
            response = requests.get(url, timeout=ctx.fetch_timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RenderError(f"unable to load events: {e}") from e
        ctx.check()

        today = datetime.now(tz).date()
        period_start = datetime.combine(today, time.min, tzinfo=tz)
        period_end = datetime.combine(add_month(today), time.min, tzinfo=tz)
        events = parse_events(response.content, period_start, period_end, tz)

        last_day = period_end.date() - timedelta(days=1)
        return render_html(
            "calendar.html",
            range=f"{today:%d.%m.} – {last_day:%d.%m.}",
            columns=build_columns(events, columns, per_column),
        )

    return render_calendar
