"""Service for detecting booking and deadline conflicts between intervals."""

from __future__ import annotations

from typing import Iterable

from collabhub.domain.models import (
    Booking,
    BookingStatus,
    ConflictReport,
    Interval,
    Task,
    end_of_day,
    start_of_day,
)


def overlaps(a: Interval, b: Interval) -> bool:
    """Return True when the closed ranges of *a* and *b* share at least one instant.

    Overlap rule: conflict if a.start <= b.end AND b.start <= a.end.
    Boundary touches (a.end == b.start) ARE conflicts.
    """
    return a.start <= b.end and b.start <= a.end


def find_conflicts(candidate: Interval, existing: Iterable[Interval]) -> list[Interval]:
    """Return existing intervals on the candidate's resource that overlap it.

    Order follows *existing*; callers message the first match.
    """
    return [
        interval
        for interval in existing
        if interval.resource_id == candidate.resource_id and overlaps(candidate, interval)
    ]


def check_booking(candidate: Interval, bookings: Iterable[Booking]) -> ConflictReport:
    """Check a proposed booking against known bookings; cancelled ones never conflict."""
    conflicts = [
        booking
        for booking in bookings
        if booking.status != BookingStatus.CANCELLED
        and find_conflicts(candidate, [booking.as_interval()])
    ]
    return ConflictReport(candidate=candidate, conflicts=conflicts)


def deadline_clashes(candidate: Interval, tasks: Iterable[Task]) -> list[Task]:
    """Return active tasks due on the same calendar day(s) as *candidate*.

    Deadlines are points; both sides are widened to whole days so two tasks
    due on the same day clash regardless of the time of day.
    """
    window = Interval(
        resource_id=candidate.resource_id,
        start=start_of_day(candidate.start.date()),
        end=end_of_day(candidate.end.date()),
    )
    clashes: list[Task] = []
    for task in tasks:
        if not task.is_active or task.id == candidate.source_id:
            continue
        due = task.as_interval()
        day = Interval.whole_days(due.resource_id, due.start.date(), due.end.date())
        if day.resource_id == window.resource_id and overlaps(window, day):
            clashes.append(task)
    return clashes
