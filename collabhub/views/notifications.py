"""Notification centre: generated reminders, the server inbox and the polling timers."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from datetime import datetime
from typing import Any, Awaitable, Callable

from collabhub.api.client import HubApiClient
from collabhub.domain.bus import EventBus
from collabhub.domain.events import NotificationsGenerated, UnreadNotificationsFound
from collabhub.domain.models import (
    MutationResult,
    MutationState,
    NotificationRecord,
    NotificationType,
    ServerNotification,
    utcnow,
)
from collabhub.errors import RemoteError
from collabhub.repos.memory import DismissedKeyRepository
from collabhub.services.notifications import generate_notifications
from collabhub.services.optimistic import OptimisticCollection
from collabhub.services.scheduler import PeriodicTask

logger = logging.getLogger(__name__)

REGENERATE_INTERVAL = 300.0
UNREAD_CHECK_INTERVAL = 30.0


def _mark_read(record: NotificationRecord) -> NotificationRecord:
    return record.model_copy(update={"read": True})


class NotificationCenter:
    """Holds the visible notifications and keeps them fresh while mounted.

    Regeneration rebuilds the list from the current tasks, events, bookings and
    server inbox; read flags survive as long as the source is unchanged.
    Dismissed rows stay hidden until their source changes.
    """

    def __init__(
        self,
        client: HubApiClient,
        *,
        dismissed: DismissedKeyRepository | None = None,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = utcnow,
        regenerate_interval: float = REGENERATE_INTERVAL,
        unread_interval: float = UNREAD_CHECK_INTERVAL,
    ) -> None:
        self._client = client
        self._bus = bus
        self._clock = clock
        self.dismissed = dismissed or DismissedKeyRepository()
        self.items: OptimisticCollection[NotificationRecord] = OptimisticCollection(
            "notifications", id_of=lambda record: record.key, bus=bus
        )
        self._regenerate_timer = PeriodicTask(
            "notifications:regenerate", regenerate_interval, self.regenerate
        )
        self._unread_timer = PeriodicTask(
            "notifications:unread", unread_interval, self.check_unread
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def mounted(self) -> bool:
        return self._regenerate_timer.running

    def mount(self) -> None:
        self._regenerate_timer.start()
        self._unread_timer.start()

    async def unmount(self) -> None:
        await self._regenerate_timer.stop()
        await self._unread_timer.stop()

    def reset(self) -> None:
        self.items.clear()

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    async def _fetch(self, label: str, call: Callable[[], Awaitable[list[Any]]]) -> list[Any]:
        try:
            return await call()
        except RemoteError as exc:
            logger.warning("Could not load %s for notifications: %s", label, exc)
            return []

    async def regenerate(self) -> list[NotificationRecord]:
        tasks, events, bookings, inbox = await asyncio.gather(
            self._fetch("tasks", self._client.list_tasks),
            self._fetch("events", self._client.list_events),
            self._fetch("bookings", self._client.my_bookings),
            self._fetch("notifications", self._client.list_notifications),
        )
        now = self._clock()
        generated = generate_notifications(
            tasks, events, bookings, now=now, dismissed=self.dismissed
        )
        server = [
            record
            for record in map(NotificationRecord.from_server, inbox)
            if not self.dismissed.is_dismissed(record.key, record.revision)
        ]

        # A read flag still waiting on the backend is not carried over.
        already_read = {
            (entity.value.key, entity.value.revision)
            for entity in self.items.entities()
            if entity.value.read
            and entity.state == MutationState.CONFIRMED
            and not self.items.is_in_flight(entity.key)
        }
        records = [
            _mark_read(record) if (record.key, record.revision) in already_read else record
            for record in generated + server
        ]
        self.items.replace_all(records)
        logger.debug("Generated %d notifications", len(records))
        if self._bus is not None:
            self._bus.publish(NotificationsGenerated(generated_at=now, records=records))
        return records

    async def check_unread(self) -> list[ServerNotification]:
        """Poll the server inbox and announce unread notifications."""
        inbox = await self._fetch("notifications", self._client.list_notifications)
        unread = [notification for notification in inbox if not notification.is_read]
        if unread and self._bus is not None:
            self._bus.publish(UnreadNotificationsFound(notifications=unread))
        return unread

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    def unread(self) -> list[NotificationRecord]:
        return [record for record in self.items if not record.read]

    def read(self) -> list[NotificationRecord]:
        return [record for record in self.items if record.read]

    @property
    def unread_count(self) -> int:
        return len(self.unread())

    def counts(self) -> dict[NotificationType, int]:
        tally = Counter(record.type for record in self.items)
        return {type_: tally.get(type_, 0) for type_ in NotificationType}

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def mark_read(self, key: str) -> MutationResult | None:
        """Mark one row read; only server rows are reported to the backend."""
        record = self.items.get(key)
        if record is None:
            raise KeyError(key)
        if not record.is_server:
            self.items.apply_local(key, _mark_read)
            return None

        async def _push(_: NotificationRecord) -> None:
            await self._client.mark_notification_read(record.source_id)

        return await self.items.update(key, _mark_read, _push)

    async def mark_all_read(self) -> bool:
        """Mark every row read; the whole list reverts if the backend refuses."""
        snapshot = self.items.snapshot()
        self.items.apply_all(_mark_read)
        if not any(entity.value.is_server for entity in snapshot):
            return True
        try:
            await self._client.mark_all_notifications_read()
        except RemoteError as exc:
            logger.warning("Mark all read failed, reverting: %s", exc)
            self.items.restore(snapshot)
            return False
        except (Exception, asyncio.CancelledError):
            self.items.restore(snapshot)
            raise
        return True

    def dismiss(self, key: str) -> None:
        record = self.items.remove_local(key)
        self.dismissed.dismiss(record.key, record.revision)

    def clear_all(self) -> None:
        for record in self.items:
            self.dismissed.dismiss(record.key, record.revision)
        self.items.clear()
