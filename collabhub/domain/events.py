"""Domain events published on the client's event bus."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from collabhub.domain.models import MutationKind, NotificationRecord, ServerNotification


class SessionExpired(BaseModel):
    """Fired when the backend rejects the stored credential."""

    reason: str = "Session expired. Please log in again."


class SessionEstablished(BaseModel):
    """Fired after a successful login or registration."""

    user_id: str


class MutationConfirmed(BaseModel):
    """Fired when an optimistic mutation is accepted by the backend."""

    collection: str
    kind: MutationKind
    key: str
    local_id: str | None = None


class MutationRolledBack(BaseModel):
    """Fired after an optimistic mutation failed and its local change was reverted."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    collection: str
    kind: MutationKind
    key: str
    error: Exception


class NotificationsGenerated(BaseModel):
    """Fired after each notification generation pass."""

    generated_at: datetime
    records: list[NotificationRecord]


class UnreadNotificationsFound(BaseModel):
    """Fired by the unread check when the inbox holds unread server notifications."""

    notifications: list[ServerNotification]
