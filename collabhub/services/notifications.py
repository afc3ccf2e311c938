"""Service for turning polled tasks, events and bookings into reminder notifications."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta
from typing import Iterable

from pydantic import BaseModel

from collabhub.domain.models import (
    Booking,
    BookingStatus,
    CalendarEvent,
    NotificationKind,
    NotificationRecord,
    NotificationType,
    Task,
    TaskUrgency,
)
from collabhub.repos.memory import DismissedKeyRepository

TASK_URGENT_WINDOW = timedelta(hours=2)
TASK_DUE_SOON_WINDOW = timedelta(hours=24)
EVENT_LOOKAHEAD = timedelta(hours=2)
EVENT_IMMINENT_WINDOW = timedelta(minutes=60)


def notification_key(kind: NotificationKind, source_id: str) -> str:
    return f"{kind}-{source_id}"


def source_revision(record: BaseModel) -> str:
    """Stable fingerprint of a source record; changes whenever the record does."""
    updated_at = getattr(record, "updated_at", None)
    if isinstance(updated_at, datetime):
        return updated_at.isoformat()
    return hashlib.sha1(record.model_dump_json().encode("utf-8")).hexdigest()


def _elapsed(delta: timedelta) -> str:
    minutes = int(delta.total_seconds() // 60)
    if minutes < 60:
        return f"{max(minutes, 1)} minutes"
    if minutes < 24 * 60:
        return f"{minutes // 60} hours"
    return f"{minutes // (24 * 60)} days"


def describe_task(task: Task, now: datetime) -> tuple[str, NotificationType] | None:
    """Classify a task by time to deadline; None when it deserves no reminder."""
    if not task.is_active:
        return None
    remaining = task.deadline - now
    if remaining < timedelta(0):
        return (
            f"Overdue task: {task.title} was due {_elapsed(-remaining)} ago",
            NotificationType.URGENT,
        )
    if remaining <= TASK_URGENT_WINDOW:
        minutes = max(int(remaining.total_seconds() // 60), 1)
        return f"Urgent task: {task.title} due in {minutes} minutes", NotificationType.URGENT
    if remaining <= TASK_DUE_SOON_WINDOW:
        hours = int(remaining.total_seconds() // 3600)
        return f"Task due soon: {task.title} due in {hours} hours", NotificationType.INFO
    if task.urgency == TaskUrgency.URGENT:
        return (
            f"Urgent task: {task.title} due {task.deadline:%b %d, %Y}",
            NotificationType.URGENT,
        )
    return None


def describe_event(event: CalendarEvent, now: datetime) -> str | None:
    until = event.starts_at - now
    if until < timedelta(0) or until > EVENT_LOOKAHEAD:
        return None
    if until <= EVENT_IMMINENT_WINDOW:
        minutes = int(until.total_seconds() // 60)
        return f"Meeting in {minutes} minutes: {event.title}"
    return f"Upcoming: {event.title} at {event.starts_at:%H:%M}"


def describe_booking(booking: Booking, now: datetime) -> str | None:
    if booking.status == BookingStatus.CANCELLED:
        return None
    today = now.date()
    name = booking.equipment_name or "equipment"
    if booking.start_date == today:
        return f"Equipment booking: {name} starts today"
    if booking.start_date == today + timedelta(days=1):
        return f"Equipment booking: {name} starts tomorrow"
    return None


def generate_notifications(
    tasks: Iterable[Task],
    events: Iterable[CalendarEvent],
    bookings: Iterable[Booking],
    *,
    now: datetime,
    dismissed: DismissedKeyRepository,
) -> list[NotificationRecord]:
    """Build one generation pass of reminders.

    Order is tasks, then events, then bookings, each in the order given.
    Records whose key was dismissed at the source's current revision are
    skipped.
    """
    records: list[NotificationRecord] = []

    def _emit(
        kind: NotificationKind,
        source: BaseModel,
        source_id: str,
        message: str,
        type_: NotificationType,
    ) -> None:
        key = notification_key(kind, source_id)
        revision = source_revision(source)
        if dismissed.is_dismissed(key, revision):
            return
        records.append(
            NotificationRecord(
                key=key,
                kind=kind,
                source_id=source_id,
                revision=revision,
                message=message,
                type=type_,
                timestamp=now,
            )
        )

    for task in tasks:
        described = describe_task(task, now)
        if described is not None:
            _emit(NotificationKind.TASK, task, task.id, *described)

    for event in events:
        message = describe_event(event, now)
        if message is not None:
            _emit(NotificationKind.EVENT, event, event.id, message, NotificationType.MEETING)

    for booking in bookings:
        message = describe_booking(booking, now)
        if message is not None:
            _emit(NotificationKind.BOOKING, booking, booking.id, message, NotificationType.SHIPPING)

    return records
