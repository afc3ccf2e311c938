"""Location tracker: who is checked in where, and the user's own check-in."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable

from collabhub.api.client import HubApiClient
from collabhub.domain.models import ActiveCheckIn, CheckInRecord, utcnow
from collabhub.errors import FormValidationError, RemoteError
from collabhub.services.forms import validate_location
from collabhub.services.optimistic import new_local_id
from collabhub.services.push import BrowserNotifier

logger = logging.getLogger(__name__)


class LocationTracker:
    def __init__(
        self,
        client: HubApiClient,
        *,
        notifier: BrowserNotifier | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._clock = clock
        self.check_ins: list[ActiveCheckIn] = []
        self.today: list[CheckInRecord] = []
        self.my_status: CheckInRecord | None = None
        self.error: str | None = None
        self._loaded = False

    @property
    def is_checked_in(self) -> bool:
        return self.my_status is not None and self.my_status.is_active

    async def load(self) -> None:
        """Refresh all three lists; new check-ins by colleagues raise a browser notification."""
        current, today, mine = await asyncio.gather(
            self._client.current_check_ins(),
            self._client.today_records(),
            self._client.my_status(),
            return_exceptions=True,
        )
        self.error = None
        for label, result in (("check-ins", current), ("today", today), ("status", mine)):
            if isinstance(result, RemoteError):
                logger.warning("Could not load location %s: %s", label, result)
                self.error = self.error or str(result)
            elif isinstance(result, BaseException):
                raise result

        if not isinstance(current, BaseException):
            self._announce(current)
            self.check_ins = current
        else:
            self.check_ins = []
        self.today = [] if isinstance(today, BaseException) else today
        self.my_status = None if isinstance(mine, BaseException) else mine
        self._loaded = True

    def reset(self) -> None:
        self.check_ins = []
        self.today = []
        self.my_status = None
        self.error = None
        self._loaded = False

    def _announce(self, current: list[ActiveCheckIn]) -> None:
        if self._notifier is None or not self._loaded:
            return
        me = self._client.session.user
        known = {(c.user.id, c.check_in_time) for c in self.check_ins}
        for check_in in current:
            if (check_in.user.id, check_in.check_in_time) in known:
                continue
            if me is not None and check_in.user.id == me.id:
                continue
            self._notifier.show_check_in(
                check_in.user.full_name, check_in.location, check_in.check_in_time
            )

    async def check_in(self, location: str) -> bool:
        """Show the user as checked in at once; revert if the backend refuses."""
        location = validate_location(location)
        if self.is_checked_in:
            raise FormValidationError(
                f"Already checked in at {self.my_status.location}", field="location"
            )
        me = self._client.session.user
        provisional = CheckInRecord(
            id=new_local_id("checkin"),
            user_id=me.id if me else None,
            location=location,
            check_in_time=self._clock(),
        )
        return await self._swap_status(provisional, lambda: self._client.check_in(location))

    async def check_out(self) -> bool:
        if not self.is_checked_in:
            raise FormValidationError("You are not checked in")
        provisional = self.my_status.model_copy(update={"check_out_time": self._clock()})
        return await self._swap_status(provisional, self._client.check_out)

    async def _swap_status(self, provisional: CheckInRecord, remote) -> bool:
        previous = self.my_status
        self.my_status = provisional
        try:
            confirmed = await remote()
        except RemoteError as exc:
            logger.warning("Location update failed, reverting: %s", exc)
            self.my_status = previous
            self.error = str(exc)
            return False
        except (Exception, asyncio.CancelledError):
            self.my_status = previous
            raise
        self.my_status = confirmed
        self.error = None
        return True
