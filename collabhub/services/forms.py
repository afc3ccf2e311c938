"""Client-side form validation; every check runs before any request is sent."""

from __future__ import annotations

from datetime import date, datetime, time, timezone

import dateparser

from collabhub.domain.models import (
    BookingDraft,
    Equipment,
    EventDraft,
    LoginRequest,
    ProjectDraft,
    ProjectStatus,
    RegisterRequest,
    TaskDraft,
    TaskUrgency,
    TermDraft,
)
from collabhub.errors import FormValidationError

MIN_PASSWORD_LENGTH = 6


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


def parse_deadline(raw: str | datetime | None, now: datetime) -> datetime | None:
    """Parse a typed deadline ("2025-12-01", "tomorrow 5pm") into a UTC datetime."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=timezone.utc)
    if not raw or not raw.strip():
        return None
    settings = {
        "PREFER_DATES_FROM": "future",
        "RELATIVE_BASE": now.replace(tzinfo=None),
        "RETURN_AS_TIMEZONE_AWARE": False,
    }
    result = dateparser.parse(raw.strip(), settings=settings)
    if result is None:
        return None
    return result.replace(tzinfo=timezone.utc)


def validate_login(email: str, password: str) -> LoginRequest:
    if _blank(email) or not password:
        raise FormValidationError("Please enter your email and password")
    return LoginRequest(email=email.strip(), password=password)


def validate_registration(
    *,
    email: str,
    password: str,
    confirm_password: str,
    first_name: str,
    last_name: str,
    department: str = "IT",
) -> RegisterRequest:
    if _blank(email) or not password or _blank(first_name) or _blank(last_name):
        raise FormValidationError("Please fill in all required fields")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise FormValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters", field="password"
        )
    if password != confirm_password:
        raise FormValidationError("Passwords do not match", field="confirm_password")
    if "@" not in email:
        raise FormValidationError("Please enter a valid email address", field="email")
    return RegisterRequest(
        email=email.strip(),
        password=password,
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        department=department,
    )


def validate_task(
    *,
    title: str,
    deadline: str | datetime | None,
    now: datetime,
    description: str | None = None,
    urgency: TaskUrgency = TaskUrgency.MEDIUM,
    department: str = "IT",
    project_id: str | None = None,
    assignee_id: str | None = None,
) -> TaskDraft:
    if _blank(title):
        raise FormValidationError("Please enter a task title", field="title")
    if deadline is None or (isinstance(deadline, str) and _blank(deadline)):
        raise FormValidationError("Please enter a deadline", field="deadline")
    parsed = parse_deadline(deadline, now)
    if parsed is None:
        raise FormValidationError(f"Could not understand deadline {deadline!r}", field="deadline")
    return TaskDraft(
        title=title.strip(),
        description=description.strip() if description else None,
        urgency=urgency,
        department=department,
        deadline=parsed,
        project_id=project_id,
        assignee_id=assignee_id,
    )


def validate_booking(
    *,
    equipment: Equipment | None,
    start_date: date | None,
    end_date: date | None,
    purpose: str = "",
) -> BookingDraft:
    if equipment is None:
        raise FormValidationError("Please choose equipment to book", field="equipment")
    if not equipment.is_bookable:
        raise FormValidationError(
            f"{equipment.name} is not available for booking ({equipment.status})",
            field="equipment",
        )
    if start_date is None or end_date is None:
        raise FormValidationError("Please choose a start and end date", field="start_date")
    if start_date > end_date:
        raise FormValidationError(
            "End date must be on or after the start date", field="end_date"
        )
    return BookingDraft(
        equipment_id=equipment.id,
        start_date=start_date,
        end_date=end_date,
        purpose=purpose.strip(),
    )


def validate_term(*, term: str, definition: str, category: str = "General") -> TermDraft:
    if _blank(term) or _blank(definition):
        raise FormValidationError("Please enter both a term and a definition")
    return TermDraft(term=term.strip(), definition=definition.strip(), category=category)


def validate_project(
    *,
    name: str,
    description: str | None = None,
    status: ProjectStatus = ProjectStatus.ACTIVE,
    member_ids: list[str] | None = None,
) -> ProjectDraft:
    if _blank(name):
        raise FormValidationError("Please enter a project name", field="name")
    return ProjectDraft(
        name=name.strip(),
        description=description.strip() if description else None,
        status=status,
        member_ids=member_ids,
    )


def validate_event(
    *,
    title: str,
    event_date: date | None,
    start_time: time | None,
    end_time: time | None = None,
    event_type: str = "meeting",
    description: str | None = None,
    location: str | None = None,
) -> EventDraft:
    if _blank(title):
        raise FormValidationError("Please enter an event title", field="title")
    if event_date is None or start_time is None:
        raise FormValidationError("Please choose a date and start time", field="event_date")
    if end_time is not None and end_time < start_time:
        raise FormValidationError("End time must be after the start time", field="end_time")
    return EventDraft(
        title=title.strip(),
        description=description,
        event_type=event_type,
        event_date=event_date,
        start_time=start_time,
        end_time=end_time,
        location=location,
    )


def validate_location(location: str) -> str:
    if _blank(location):
        raise FormValidationError("Please choose a location", field="location")
    return location.strip()
