"""Service for calendar month ranges and month-grid layout."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Iterable

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, rrule

from collabhub.domain.models import CalendarDay, CalendarEvent

SUNDAY = 6  # date.weekday() numbering


def month_bounds(anchor: date) -> tuple[date, date]:
    """Return the first and last day of *anchor*'s month."""
    first = anchor.replace(day=1)
    return first, first + relativedelta(months=1, days=-1)


def shift_month(anchor: date, months: int) -> date:
    """First day of the month *months* away from *anchor*'s month."""
    return anchor.replace(day=1) + relativedelta(months=months)


def events_on(day: date, events: Iterable[CalendarEvent]) -> list[CalendarEvent]:
    return sorted((e for e in events if e.event_date == day), key=lambda e: e.start_time)


def month_grid(
    anchor: date,
    events: Iterable[CalendarEvent],
    *,
    week_start: int = SUNDAY,
) -> list[list[CalendarDay]]:
    """Lay out *anchor*'s month as full weeks, padding with neighbouring days.

    Each cell carries that day's events ordered by start time.
    """
    first, last = month_bounds(anchor)
    grid_start = first - timedelta(days=(first.weekday() - week_start) % 7)
    grid_end = last + timedelta(days=(week_start - 1 - last.weekday()) % 7)

    by_day: dict[date, list[CalendarEvent]] = defaultdict(list)
    for event in events:
        by_day[event.event_date].append(event)

    cells = [
        CalendarDay(
            day=dt.date(),
            in_month=dt.month == first.month,
            events=sorted(by_day.get(dt.date(), []), key=lambda e: e.start_time),
        )
        for dt in rrule(
            DAILY,
            dtstart=datetime.combine(grid_start, time.min),
            until=datetime.combine(grid_end, time.min),
        )
    ]
    return [cells[i : i + 7] for i in range(0, len(cells), 7)]
