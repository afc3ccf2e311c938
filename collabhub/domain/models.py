"""Domain models for the collaboration hub client."""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import StrEnum
from typing import Any, Generic, TypeVar

from dateutil.parser import isoparse
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

T = TypeVar("T")

# Resource id used for a user's own deadlines when a task has no assignee.
SELF_CALENDAR = "me"


class TaskUrgency(StrEnum):
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class EquipmentStatus(StrEnum):
    AVAILABLE = "available"
    BOOKED = "booked"
    IN_USE = "in-use"
    MAINTENANCE = "maintenance"


class BookingStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProjectStatus(StrEnum):
    ACTIVE = "active"
    ON_HOLD = "on-hold"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class MemberRole(StrEnum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class MutationKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationState(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class NotificationKind(StrEnum):
    TASK = "task"
    EVENT = "event"
    BOOKING = "booking"
    SERVER = "server"


class NotificationType(StrEnum):
    URGENT = "urgent"
    MEETING = "meeting"
    SHIPPING = "shipping"
    INFO = "info"
    SUCCESS = "success"


class PushPermission(StrEnum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


def coerce_datetime(value: Any) -> Any:
    """Normalise a wire timestamp (ISO string, date or datetime) to aware UTC."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        return as_utc(isoparse(value))
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return start_of_day(value)
    return value


def coerce_date(value: Any) -> Any:
    """Normalise a wire date; full timestamps are truncated to their day."""
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        return isoparse(value).date()
    if isinstance(value, datetime):
        return value.date()
    return value


class WireModel(BaseModel):
    """Base for models exchanged with the backend (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------


class Interval(BaseModel):
    """Closed time range ``[start, end]`` on a single resource."""

    model_config = ConfigDict(frozen=True)

    resource_id: str
    start: datetime
    end: datetime
    source_id: str | None = None
    label: str | None = None

    @field_validator("start", "end", mode="before")
    @classmethod
    def _utc(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @model_validator(mode="after")
    def _start_not_after_end(self) -> Interval:
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    @classmethod
    def whole_days(
        cls,
        resource_id: str,
        start_date: date,
        end_date: date,
        *,
        source_id: str | None = None,
        label: str | None = None,
    ) -> Interval:
        """Day-granularity range from the start of *start_date* to the end of *end_date*."""
        return cls(
            resource_id=resource_id,
            start=start_of_day(start_date),
            end=end_of_day(end_date),
            source_id=source_id,
            label=label,
        )

    @classmethod
    def point(
        cls,
        resource_id: str,
        at: datetime,
        *,
        source_id: str | None = None,
        label: str | None = None,
    ) -> Interval:
        return cls(resource_id=resource_id, start=at, end=at, source_id=source_id, label=label)


# ---------------------------------------------------------------------------
# Wire models
# ---------------------------------------------------------------------------


class ApiErrorBody(BaseModel):
    code: str = "UNKNOWN"
    message: str = "An error occurred"


class ApiEnvelope(BaseModel):
    success: bool
    data: Any = None
    error: ApiErrorBody | None = None


class UserSummary(WireModel):
    id: str
    first_name: str = ""
    last_name: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class User(WireModel):
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    department: str = ""
    role: str = "member"
    is_active: bool = True
    last_login: datetime | None = None
    created_at: datetime | None = None

    @field_validator("last_login", "created_at", mode="before")
    @classmethod
    def _dates(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AuthSession(WireModel):
    user: User
    token: str
    expires_at: datetime | None = None

    @field_validator("expires_at", mode="before")
    @classmethod
    def _expires(cls, value: Any) -> Any:
        return coerce_datetime(value)


class Task(WireModel):
    id: str
    title: str
    description: str | None = None
    urgency: TaskUrgency = TaskUrgency.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    department: str | None = None
    project_id: str | None = None
    project_name: str | None = None
    assignee_id: str | None = None
    deadline: datetime
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    is_completed: bool = Field(
        False, validation_alias=AliasChoices("isCompleted", "is_completed", "completed")
    )

    @field_validator("deadline", "completed_at", "created_at", "updated_at", mode="before")
    @classmethod
    def _dates(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @property
    def is_active(self) -> bool:
        return not self.is_completed and self.status != TaskStatus.COMPLETED

    def as_interval(self) -> Interval:
        """Zero-width interval at the deadline on the assignee's calendar."""
        return Interval.point(
            self.assignee_id or SELF_CALENDAR,
            self.deadline,
            source_id=self.id,
            label=self.title,
        )


class Equipment(WireModel):
    id: str
    name: str
    category: str = ""
    location: str = ""
    status: EquipmentStatus = EquipmentStatus.AVAILABLE
    serial_number: str | None = None
    notes: str | None = None

    @property
    def is_bookable(self) -> bool:
        return self.status not in (EquipmentStatus.MAINTENANCE, EquipmentStatus.IN_USE)


class Booking(WireModel):
    id: str
    equipment_id: str
    equipment_name: str | None = None
    user_id: str | None = None
    booked_by: str | None = None
    department: str | None = None
    start_date: date
    end_date: date
    purpose: str = ""
    status: BookingStatus = BookingStatus.CONFIRMED
    created_at: datetime | None = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _days(cls, value: Any) -> Any:
        return coerce_date(value)

    @field_validator("created_at", mode="before")
    @classmethod
    def _created(cls, value: Any) -> Any:
        return coerce_datetime(value)

    def as_interval(self) -> Interval:
        return Interval.whole_days(
            self.equipment_id,
            self.start_date,
            self.end_date,
            source_id=self.id,
            label=self.booked_by,
        )


class BookingConflict(WireModel):
    booking_id: str
    booked_by: str | None = None
    department: str | None = None
    start_date: date
    end_date: date

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _days(cls, value: Any) -> Any:
        return coerce_date(value)

    def as_booking(self, equipment_id: str) -> Booking:
        return Booking(
            id=self.booking_id,
            equipment_id=equipment_id,
            booked_by=self.booked_by,
            department=self.department,
            start_date=self.start_date,
            end_date=self.end_date,
        )


class Availability(WireModel):
    is_available: bool
    conflicts: list[BookingConflict] = Field(default_factory=list)


class CalendarEvent(WireModel):
    id: str
    title: str
    description: str | None = None
    event_type: str = Field(
        "meeting", validation_alias=AliasChoices("eventType", "event_type", "type")
    )
    event_date: date = Field(validation_alias=AliasChoices("eventDate", "event_date", "date"))
    start_time: time = Field(
        time(9, 0), validation_alias=AliasChoices("startTime", "start_time")
    )
    end_time: time | None = Field(None, validation_alias=AliasChoices("endTime", "end_time"))
    location: str | None = None
    meeting_url: str | None = None
    department: str | None = None
    updated_at: datetime | None = None

    @field_validator("event_date", mode="before")
    @classmethod
    def _day(cls, value: Any) -> Any:
        return coerce_date(value)

    @field_validator("updated_at", mode="before")
    @classmethod
    def _updated(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(
            self.event_date, self.start_time.replace(tzinfo=None), tzinfo=timezone.utc
        )

    def as_interval(self, resource_id: str = "calendar") -> Interval:
        start = self.starts_at
        end = start
        if self.end_time is not None:
            candidate = datetime.combine(
                self.event_date, self.end_time.replace(tzinfo=None), tzinfo=timezone.utc
            )
            if candidate >= start:
                end = candidate
        return Interval(resource_id=resource_id, start=start, end=end, source_id=self.id, label=self.title)


class GlossaryTerm(WireModel):
    id: str
    term: str
    definition: str
    category: str = "General"
    category_id: str | None = None
    department: str | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_category(cls, data: Any) -> Any:
        # The backend nests the category as {"id": ..., "name": ...}.
        if isinstance(data, dict) and isinstance(data.get("category"), dict):
            nested = data["category"]
            data = {**data, "category": nested.get("name") or "General"}
            data.setdefault("categoryId", nested.get("id"))
        if isinstance(data, dict) and data.get("category") is None:
            data = {**data, "category": "General"}
        return data

    @field_validator("updated_at", mode="before")
    @classmethod
    def _updated(cls, value: Any) -> Any:
        return coerce_datetime(value)


class CheckInRecord(WireModel):
    id: str
    user_id: str | None = None
    location: str
    check_in_time: datetime
    check_out_time: datetime | None = None
    notes: str | None = None
    duration: str | None = None

    @field_validator("check_in_time", "check_out_time", mode="before")
    @classmethod
    def _times(cls, value: Any) -> Any:
        return coerce_datetime(value)

    @property
    def is_active(self) -> bool:
        return self.check_out_time is None


class ActiveCheckIn(WireModel):
    user: UserSummary
    location: str
    check_in_time: datetime
    duration: str | None = None

    @field_validator("check_in_time", mode="before")
    @classmethod
    def _time(cls, value: Any) -> Any:
        return coerce_datetime(value)


class Project(WireModel):
    id: str
    name: str
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    created_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    member_count: int = 0
    task_count: int = 0

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _dates(cls, value: Any) -> Any:
        return coerce_datetime(value)


class ProjectMember(WireModel):
    id: str
    user_id: str
    name: str = ""
    role: MemberRole = MemberRole.MEMBER
    added_at: datetime | None = None

    @field_validator("added_at", mode="before")
    @classmethod
    def _added(cls, value: Any) -> Any:
        return coerce_datetime(value)


class ServerNotification(WireModel):
    id: str
    notification_type: str = Field(
        "info",
        validation_alias=AliasChoices("notificationType", "notification_type", "type"),
    )
    title: str = ""
    message: str = ""
    related_entity_type: str | None = None
    related_entity_id: str | None = None
    is_read: bool = Field(False, validation_alias=AliasChoices("isRead", "is_read", "read"))
    created_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _message_from_title(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("message") and data.get("title"):
            data = {**data, "message": data["title"]}
        return data

    @field_validator("created_at", mode="before")
    @classmethod
    def _created(cls, value: Any) -> Any:
        return coerce_datetime(value)


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class LoginRequest(WireModel):
    email: str
    password: str


class RegisterRequest(WireModel):
    email: str
    password: str
    first_name: str
    last_name: str
    department: str = "IT"


class TaskDraft(WireModel):
    title: str
    description: str | None = None
    urgency: TaskUrgency = TaskUrgency.MEDIUM
    department: str = "IT"
    deadline: datetime
    project_id: str | None = None
    assignee_id: str | None = None
    is_completed: bool = False

    @field_validator("deadline", mode="before")
    @classmethod
    def _deadline(cls, value: Any) -> Any:
        return coerce_datetime(value)


class BookingDraft(WireModel):
    equipment_id: str = Field(exclude=True)
    start_date: date
    end_date: date
    purpose: str = ""

    @model_validator(mode="after")
    def _ordered(self) -> BookingDraft:
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class TermDraft(WireModel):
    term: str
    definition: str
    category: str = "General"
    category_id: str | None = None
    department: str | None = None


class EventDraft(WireModel):
    title: str
    description: str | None = None
    event_type: str = "meeting"
    event_date: date
    start_time: time
    end_time: time | None = None
    location: str | None = None
    department: str | None = None


class ProjectDraft(WireModel):
    name: str
    description: str | None = None
    status: ProjectStatus = ProjectStatus.ACTIVE
    member_ids: list[str] | None = None


# ---------------------------------------------------------------------------
# Client-side derived state
# ---------------------------------------------------------------------------


class OptimisticEntity(BaseModel, Generic[T]):
    """A row in a visible list, tagged with its reconciliation state."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    local_id: str
    server_id: str | None = None
    state: MutationState = MutationState.PENDING
    value: T

    @property
    def key(self) -> str:
        return self.server_id or self.local_id


class PendingMutation(BaseModel):
    """One optimistic mutation: ``pending -> confirmed | failed``.

    ``snapshot`` is the entity as it was before the local change and is what a
    rollback restores.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: MutationKind
    key: str
    snapshot: OptimisticEntity | None = None
    position: int | None = None
    previous_key: str | None = None
    state: MutationState = MutationState.PENDING

    def settle(self, state: MutationState) -> PendingMutation:
        if self.state != MutationState.PENDING:
            raise ValueError(f"mutation for {self.key!r} already {self.state}")
        if state == MutationState.PENDING:
            raise ValueError("a mutation can only settle as confirmed or failed")
        return self.model_copy(update={"state": state})


class MutationResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: MutationKind
    key: str
    state: MutationState
    value: Any = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.state == MutationState.CONFIRMED


class ConflictReport(BaseModel):
    """Outcome of checking a proposed booking against existing ones."""

    candidate: Interval
    conflicts: list[Booking] = Field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return bool(self.conflicts)

    @property
    def message(self) -> str | None:
        if not self.conflicts:
            return None
        first = self.conflicts[0]
        who = first.booked_by or "another user"
        return (
            f"This equipment is already booked by {who} "
            f"from {first.start_date.isoformat()} to {first.end_date.isoformat()}"
        )


class NotificationRecord(BaseModel):
    """One row of the notification centre: a generated reminder or a server notification.

    Generated reminders are never persisted; server rows carry the backend id
    as ``source_id``.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    kind: NotificationKind
    source_id: str
    revision: str
    message: str
    type: NotificationType
    read: bool = False
    timestamp: datetime = Field(default_factory=utcnow)

    @property
    def is_server(self) -> bool:
        return self.kind == NotificationKind.SERVER

    @classmethod
    def from_server(cls, notification: ServerNotification) -> NotificationRecord:
        try:
            type_ = NotificationType(notification.notification_type)
        except ValueError:
            type_ = NotificationType.INFO
        return cls(
            key=f"{NotificationKind.SERVER}-{notification.id}",
            kind=NotificationKind.SERVER,
            source_id=notification.id,
            revision=notification.created_at.isoformat() if notification.created_at else "",
            message=notification.message,
            type=type_,
            read=notification.is_read,
            timestamp=notification.created_at or utcnow(),
        )


class ImportReport(BaseModel):
    added: list[str] = Field(default_factory=list)
    updated: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class CalendarDay(BaseModel):
    day: date
    in_month: bool
    events: list[CalendarEvent] = Field(default_factory=list)


class AuthOutcome(BaseModel):
    success: bool
    error: str | None = None


class PushMessage(BaseModel):
    title: str
    body: str
    tag: str
    icon: str = "/favicon.ico"
    require_interaction: bool = False
    data: dict = Field(default_factory=dict)
