"""Equipment booking: catalogue, known bookings and the booking form."""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from collabhub.api.client import HubApiClient
from collabhub.domain.bus import EventBus
from collabhub.domain.models import (
    Booking,
    BookingDraft,
    BookingStatus,
    ConflictReport,
    Equipment,
    Interval,
    MutationResult,
)
from collabhub.errors import FormValidationError, RemoteError
from collabhub.services.conflicts import check_booking
from collabhub.services.forms import validate_booking
from collabhub.services.optimistic import OptimisticCollection, new_local_id

logger = logging.getLogger(__name__)


class EquipmentBookingView:
    def __init__(self, client: HubApiClient, *, bus: EventBus | None = None) -> None:
        self.client = client
        self.equipment: list[Equipment] = []
        self.bookings: OptimisticCollection[Booking] = OptimisticCollection("bookings", bus=bus)
        self.error: str | None = None

    async def load(self) -> None:
        """Fetch the catalogue and all bookings; each degrades to empty on its own."""
        equipment, bookings = await asyncio.gather(
            self.client.list_equipment(),
            self.client.list_bookings(),
            return_exceptions=True,
        )
        self.error = None
        if isinstance(equipment, RemoteError):
            logger.warning("Could not load equipment: %s", equipment)
            self.error = str(equipment)
            equipment = []
        elif isinstance(equipment, BaseException):
            raise equipment
        if isinstance(bookings, RemoteError):
            logger.warning("Could not load bookings: %s", bookings)
            self.error = self.error or str(bookings)
            bookings = []
        elif isinstance(bookings, BaseException):
            raise bookings
        self.equipment = equipment
        self.bookings.replace_all(bookings)

    def reset(self) -> None:
        self.equipment = []
        self.bookings.clear()
        self.error = None

    def find(self, equipment_id: str) -> Equipment | None:
        return next((item for item in self.equipment if item.id == equipment_id), None)

    def search(self, query: str) -> list[Equipment]:
        needle = query.strip().lower()
        if not needle:
            return list(self.equipment)
        return [
            item
            for item in self.equipment
            if needle in item.name.lower()
            or needle in item.category.lower()
            or needle in item.location.lower()
        ]

    def bookings_for(self, equipment_id: str) -> list[Booking]:
        return [
            booking
            for booking in self.bookings
            if booking.equipment_id == equipment_id and booking.status != BookingStatus.CANCELLED
        ]

    def check_conflicts(self, equipment_id: str, start_date: date, end_date: date) -> ConflictReport:
        candidate = Interval.whole_days(equipment_id, start_date, end_date)
        return check_booking(candidate, self.bookings)

    def form(self, equipment_id: str | None = None) -> BookingForm:
        form = BookingForm(self)
        if equipment_id is not None:
            form.select(equipment_id)
        return form

    async def book(self, draft: BookingDraft) -> MutationResult:
        local_id = new_local_id("booking")
        equipment = self.find(draft.equipment_id)
        user = self.client.session.user
        provisional = Booking(
            id=local_id,
            equipment_id=draft.equipment_id,
            equipment_name=equipment.name if equipment else None,
            user_id=user.id if user else None,
            booked_by=user.full_name if user else None,
            start_date=draft.start_date,
            end_date=draft.end_date,
            purpose=draft.purpose,
            status=BookingStatus.PENDING,
        )
        return await self.bookings.create(
            local_id, provisional, lambda: self.client.book_equipment(draft)
        )

    async def cancel_booking(self, key: str) -> MutationResult:
        return await self.bookings.delete(key, lambda: self.client.cancel_booking(key))


class BookingForm:
    """State of the booking form for one piece of equipment.

    The conflict check re-runs whenever the equipment or the dates change;
    while it reports a conflict the form cannot be submitted.
    """

    def __init__(self, view: EquipmentBookingView) -> None:
        self._view = view
        self.equipment: Equipment | None = None
        self.start_date: date | None = None
        self.end_date: date | None = None
        self.purpose = ""
        self.conflict: ConflictReport | None = None
        self.error: str | None = None

    def select(self, equipment_id: str) -> None:
        equipment = self._view.find(equipment_id)
        if equipment is None:
            raise KeyError(equipment_id)
        self.equipment = equipment
        self._recheck()

    def set_dates(self, start_date: date | None, end_date: date | None) -> None:
        self.start_date = start_date
        self.end_date = end_date
        self._recheck()

    @property
    def conflict_warning(self) -> str | None:
        if self.conflict is None:
            return None
        return self.conflict.message

    @property
    def can_submit(self) -> bool:
        return (
            self.equipment is not None
            and self.equipment.is_bookable
            and self.start_date is not None
            and self.end_date is not None
            and self.error is None
            and self.conflict_warning is None
        )

    def _recheck(self) -> None:
        self.conflict = None
        self.error = None
        if self.equipment is None or self.start_date is None or self.end_date is None:
            return
        try:
            validate_booking(
                equipment=self.equipment, start_date=self.start_date, end_date=self.end_date
            )
        except FormValidationError as exc:
            self.error = exc.message
            return
        self.conflict = self._view.check_conflicts(
            self.equipment.id, self.start_date, self.end_date
        )

    async def confirm_availability(self) -> bool:
        """Ask the backend as well; its conflicts replace the local ones when it answers."""
        if self.equipment is None or self.start_date is None or self.end_date is None:
            return False
        try:
            availability = await self._view.client.check_availability(
                self.equipment.id, self.start_date, self.end_date
            )
        except RemoteError as exc:
            logger.warning("Availability check failed, keeping local result: %s", exc)
            return self.conflict_warning is None
        self.conflict = ConflictReport(
            candidate=Interval.whole_days(self.equipment.id, self.start_date, self.end_date),
            conflicts=[conflict.as_booking(self.equipment.id) for conflict in availability.conflicts],
        )
        if not availability.is_available and not self.conflict.has_conflict:
            self.error = "This equipment is not available for the selected dates"
        return availability.is_available and not self.conflict.has_conflict

    async def submit(self) -> MutationResult:
        """Validate and book; nothing is sent while a conflict is flagged."""
        if self.conflict_warning is not None:
            raise FormValidationError(self.conflict_warning, field="start_date")
        if self.error is not None:
            raise FormValidationError(self.error, field="start_date")
        draft = validate_booking(
            equipment=self.equipment,
            start_date=self.start_date,
            end_date=self.end_date,
            purpose=self.purpose,
        )
        result = await self._view.book(draft)
        if result.ok:
            self.start_date = None
            self.end_date = None
            self.purpose = ""
            self.conflict = None
        return result
