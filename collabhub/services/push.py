"""Browser notification delivery, deduplicated by tag."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Awaitable, Callable, Iterable

from collabhub.domain.models import PushMessage, PushPermission, ServerNotification
from collabhub.repos.memory import ShownTagRepository

logger = logging.getLogger(__name__)

ShowCallable = Callable[[PushMessage], None]
PermissionPrompt = Callable[[], Awaitable[PushPermission]]


class BrowserNotifier:
    """Fire-and-forget display of browser notifications.

    *show* is the host's display primitive; without one, notifications are
    unsupported and every call is a logged no-op. A tag is shown at most once
    per session.
    """

    def __init__(
        self,
        show: ShowCallable | None = None,
        *,
        prompt: PermissionPrompt | None = None,
        permission: PushPermission = PushPermission.DEFAULT,
        tags: ShownTagRepository | None = None,
    ) -> None:
        self._show = show
        self._prompt = prompt
        self.permission = permission
        self.tags = tags or ShownTagRepository()

    @property
    def supported(self) -> bool:
        return self._show is not None

    async def request_permission(self) -> PushPermission:
        if not self.supported or self._prompt is None:
            logger.warning("Notifications are not supported in this environment")
            return PushPermission.DENIED
        try:
            self.permission = PushPermission(await self._prompt())
        except Exception:
            logger.exception("Error requesting notification permission")
            return PushPermission.DENIED
        return self.permission

    def show(self, message: PushMessage) -> bool:
        """Display *message* unless unsupported, not permitted, or already shown."""
        if not self.supported:
            logger.warning("Notifications are not supported in this environment")
            return False
        if self.permission != PushPermission.GRANTED:
            logger.warning("Notification permission not granted")
            return False
        if not self.tags.mark(message.tag):
            return False
        try:
            self._show(message)
        except Exception:
            logger.exception("Error showing notification %s", message.tag)
            return False
        return True

    def show_unread(self, notifications: Iterable[ServerNotification]) -> int:
        shown = 0
        for notification in notifications:
            if notification.is_read:
                continue
            message = PushMessage(
                title=notification.title or "Notification",
                body=notification.message,
                tag=f"notification-{notification.id}",
                data={"id": notification.id},
            )
            if self.show(message):
                shown += 1
        return shown

    def show_check_in(self, user_name: str, location: str, check_in_time: datetime) -> bool:
        return self.show(
            PushMessage(
                title=f"{user_name} has checked in",
                body=f"{location}\n{check_in_time:%H:%M}",
                tag=f"checkin-{user_name}-{check_in_time.isoformat()}",
            )
        )
