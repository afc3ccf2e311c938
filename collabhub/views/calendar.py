"""Calendar: one month of events at a time."""

from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import Callable

from collabhub.api.client import HubApiClient
from collabhub.domain.bus import EventBus
from collabhub.domain.models import CalendarDay, CalendarEvent, MutationResult, utcnow
from collabhub.errors import RemoteError
from collabhub.services.calendar import events_on, month_bounds, month_grid, shift_month
from collabhub.services.forms import validate_event
from collabhub.services.optimistic import OptimisticCollection, new_local_id

logger = logging.getLogger(__name__)


class CalendarView:
    def __init__(
        self,
        client: HubApiClient,
        *,
        bus: EventBus | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._client = client
        self.month = clock().date().replace(day=1)
        self.events: OptimisticCollection[CalendarEvent] = OptimisticCollection("events", bus=bus)
        self.error: str | None = None

    @property
    def range(self) -> tuple[date, date]:
        return month_bounds(self.month)

    async def load(self) -> list[CalendarEvent]:
        start, end = self.range
        try:
            events = await self._client.list_events(start_date=start, end_date=end)
        except RemoteError as exc:
            logger.warning("Could not load events for %s: %s", self.month, exc)
            self.error = str(exc)
            self.events.clear()
            return []
        self.error = None
        self.events.replace_all(events)
        return events

    def reset(self) -> None:
        self.events.clear()
        self.error = None

    async def go_to(self, month: date) -> list[CalendarEvent]:
        self.month = month.replace(day=1)
        return await self.load()

    async def next_month(self) -> list[CalendarEvent]:
        return await self.go_to(shift_month(self.month, 1))

    async def previous_month(self) -> list[CalendarEvent]:
        return await self.go_to(shift_month(self.month, -1))

    def grid(self) -> list[list[CalendarDay]]:
        return month_grid(self.month, self.events)

    def on(self, day: date) -> list[CalendarEvent]:
        return events_on(day, self.events)

    async def create_event(
        self,
        *,
        title: str,
        event_date: date | None,
        start_time: time | None,
        end_time: time | None = None,
        event_type: str = "meeting",
        description: str | None = None,
        location: str | None = None,
    ) -> MutationResult:
        draft = validate_event(
            title=title,
            event_date=event_date,
            start_time=start_time,
            end_time=end_time,
            event_type=event_type,
            description=description,
            location=location,
        )
        local_id = new_local_id("event")
        provisional = CalendarEvent(
            id=local_id,
            title=draft.title,
            description=draft.description,
            event_type=draft.event_type,
            event_date=draft.event_date,
            start_time=draft.start_time,
            end_time=draft.end_time,
            location=draft.location,
        )
        return await self.events.create(
            local_id, provisional, lambda: self._client.create_event(draft)
        )
