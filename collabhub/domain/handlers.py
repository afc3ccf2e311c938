"""Domain event handlers, wired up when the hub is built."""

from __future__ import annotations

import logging
from typing import Iterable, Protocol

from collabhub.domain.bus import EventBus
from collabhub.domain.events import (
    MutationConfirmed,
    MutationRolledBack,
    NotificationsGenerated,
    SessionExpired,
    UnreadNotificationsFound,
)
from collabhub.services.push import BrowserNotifier

logger = logging.getLogger(__name__)


class Resettable(Protocol):
    def reset(self) -> None: ...


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the views and notifier."""

    def __init__(
        self,
        bus: EventBus,
        views: Iterable[Resettable],
        notifier: BrowserNotifier | None = None,
    ) -> None:
        self.bus = bus
        self.views = list(views)
        self.notifier = notifier
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(SessionExpired, self.on_session_expired)
        self.bus.subscribe(MutationConfirmed, self.on_mutation_confirmed)
        self.bus.subscribe(MutationRolledBack, self.on_mutation_rolled_back)
        self.bus.subscribe(NotificationsGenerated, self.on_notifications_generated)
        self.bus.subscribe(UnreadNotificationsFound, self.on_unread_found)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_session_expired(self, event: SessionExpired) -> None:
        # Nothing fetched under the old credential stays on screen.
        for view in self.views:
            view.reset()
        logger.warning("Session ended, cleared %d views: %s", len(self.views), event.reason)

    def on_mutation_confirmed(self, event: MutationConfirmed) -> None:
        if event.local_id and event.local_id != event.key:
            logger.info("%s: %s is now %s", event.collection, event.local_id, event.key)

    def on_mutation_rolled_back(self, event: MutationRolledBack) -> None:
        logger.info(
            "%s: %s of %s reverted (%s)",
            event.collection,
            event.kind,
            event.key,
            type(event.error).__name__,
        )

    def on_notifications_generated(self, event: NotificationsGenerated) -> None:
        logger.debug("%d notifications at %s", len(event.records), event.generated_at)

    def on_unread_found(self, event: UnreadNotificationsFound) -> None:
        if self.notifier is None:
            return
        shown = self.notifier.show_unread(event.notifications)
        if shown:
            logger.info("Showed %d browser notifications", shown)
