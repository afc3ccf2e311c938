"""Async client for the hub's REST backend.

Every endpoint answers with the envelope ``{success, data?, error?}``. The
client unwraps it and raises from the ``collabhub.errors`` taxonomy:

* no response at all -> ``TransportError``
* HTTP 401 -> the session is expired, then ``SessionExpiredError``
* non-2xx or ``success: false`` -> ``RequestRejectedError``
* a body that is not an envelope or a payload of the wrong shape ->
  ``UnexpectedResponseError``
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import httpx
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from collabhub.api import mappers
from collabhub.api.session import SessionContext
from collabhub.domain.models import (
    ActiveCheckIn,
    ApiEnvelope,
    ApiErrorBody,
    AuthSession,
    Availability,
    Booking,
    BookingDraft,
    CalendarEvent,
    CheckInRecord,
    Equipment,
    EventDraft,
    GlossaryTerm,
    LoginRequest,
    MemberRole,
    Project,
    ProjectDraft,
    ProjectMember,
    ProjectStatus,
    RegisterRequest,
    ServerNotification,
    Task,
    TaskDraft,
    TaskStatus,
    TaskUrgency,
    TermDraft,
    User,
)
from collabhub.errors import (
    RequestRejectedError,
    SessionExpiredError,
    TransportError,
    UnexpectedResponseError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8080/api"


def _payload(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _params(**values: Any) -> dict[str, str]:
    params = {}
    for name, value in values.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        elif isinstance(value, date):
            value = value.isoformat()
        params[name] = str(value)
    return params


def _error_body(body: Any) -> ApiErrorBody:
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        try:
            return ApiErrorBody.model_validate(body["error"])
        except ValidationError:
            pass
    return ApiErrorBody()


class HubApiClient:
    """Typed access to every backend endpoint the hub uses.

    The bearer token is read from *session* on each request, so a login or an
    expiry is seen by the next call without rebuilding the client. Pass
    *http_client* to share a connection pool or to mount a test transport.
    """

    def __init__(
        self,
        session: SessionContext,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.session = session
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> HubApiClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        expire_on_401: bool = True,
    ) -> Any:
        """Send one request and return the envelope's ``data``."""
        headers = {"Accept": "application/json"}
        if self.session.token:
            headers["Authorization"] = f"Bearer {self.session.token}"
        try:
            response = await self._http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 401 and expire_on_401:
            self.session.expire()
            raise SessionExpiredError()

        try:
            body = response.json()
        except ValueError as exc:
            if not response.is_success:
                raise RequestRejectedError(
                    response.status_code, response.reason_phrase or "An error occurred"
                ) from exc
            raise UnexpectedResponseError(f"{method} {path} returned invalid JSON") from exc

        if not response.is_success:
            error = _error_body(body)
            raise RequestRejectedError(response.status_code, error.message, error.code)

        try:
            envelope = ApiEnvelope.model_validate(body)
        except ValidationError as exc:
            raise UnexpectedResponseError(
                f"{method} {path} returned a body without a response envelope"
            ) from exc
        if not envelope.success:
            error = envelope.error or ApiErrorBody()
            raise RequestRejectedError(response.status_code, error.message, error.code)
        return envelope.data

    # ------------------------------------------------------------------
    # Auth and users
    # ------------------------------------------------------------------

    async def login(self, credentials: LoginRequest) -> AuthSession:
        data = await self._request(
            "POST", "/auth/login", json=_payload(credentials), expire_on_401=False
        )
        session = mappers.auth_session(data)
        self.session.establish(session)
        return session

    async def register(self, request: RegisterRequest) -> AuthSession:
        data = await self._request(
            "POST", "/auth/register", json=_payload(request), expire_on_401=False
        )
        session = mappers.auth_session(data)
        self.session.establish(session)
        return session

    async def logout(self) -> None:
        """Tell the backend, then forget the local credential whatever it answered."""
        try:
            await self._request("POST", "/auth/logout", expire_on_401=False)
        finally:
            self.session.clear()

    async def refresh_token(self) -> str:
        token = mappers.token(await self._request("POST", "/auth/refresh"))
        self.session.refresh(token)
        return token

    async def get_me(self) -> User:
        return mappers.one(User, await self._request("GET", "/users/me"), "user")

    async def update_me(self, **changes: Any) -> User:
        body = {to_camel(name): value for name, value in changes.items() if value is not None}
        user = mappers.one(User, await self._request("PUT", "/users/me", json=body), "user")
        self.session.update_user(user)
        return user

    async def list_users(self) -> list[User]:
        return mappers.many(User, await self._request("GET", "/users"), "users")

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    async def list_tasks(
        self,
        *,
        status: TaskStatus | None = None,
        urgency: TaskUrgency | None = None,
        department: str | None = None,
        project_id: str | None = None,
        completed: bool | None = None,
    ) -> list[Task]:
        params = _params(
            status=status,
            urgency=urgency,
            department=department,
            projectId=project_id,
            completed=completed,
        )
        return mappers.many(Task, await self._request("GET", "/tasks", params=params), "tasks")

    async def urgent_tasks(self) -> list[Task]:
        return mappers.many(Task, await self._request("GET", "/tasks/urgent"), "tasks")

    async def create_task(self, draft: TaskDraft) -> Task:
        data = await self._request("POST", "/tasks", json=_payload(draft))
        return mappers.one(Task, data, "task")

    async def update_task(self, task_id: str, draft: TaskDraft) -> Task:
        data = await self._request("PUT", f"/tasks/{task_id}", json=_payload(draft))
        return mappers.one(Task, data, "task")

    async def set_task_status(self, task_id: str, status: TaskStatus) -> TaskStatus:
        data = await self._request(
            "PATCH", f"/tasks/{task_id}/status", json={"status": str(status)}
        )
        return mappers.task_status(data)

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    # ------------------------------------------------------------------
    # Equipment
    # ------------------------------------------------------------------

    async def list_equipment(self) -> list[Equipment]:
        return mappers.many(Equipment, await self._request("GET", "/equipment"), "equipment")

    async def get_equipment(self, equipment_id: str) -> Equipment:
        data = await self._request("GET", f"/equipment/{equipment_id}")
        return mappers.one(Equipment, data, "equipment")

    async def create_equipment(
        self,
        *,
        name: str,
        category: str,
        location: str,
        serial_number: str | None = None,
        notes: str | None = None,
    ) -> Equipment:
        body = {"name": name, "category": category, "location": location}
        if serial_number:
            body["serialNumber"] = serial_number
        if notes:
            body["notes"] = notes
        data = await self._request("POST", "/equipment", json=body)
        return mappers.one(Equipment, data, "equipment")

    async def list_bookings(self) -> list[Booking]:
        data = await self._request("GET", "/equipment/bookings")
        return mappers.many(Booking, data, "bookings")

    async def my_bookings(self) -> list[Booking]:
        data = await self._request("GET", "/equipment/bookings/me")
        return mappers.many(Booking, data, "bookings")

    async def book_equipment(self, draft: BookingDraft) -> Booking:
        data = await self._request(
            "POST", f"/equipment/{draft.equipment_id}/bookings", json=_payload(draft)
        )
        return mappers.one(Booking, data, "booking")

    async def check_availability(
        self, equipment_id: str, start_date: date, end_date: date
    ) -> Availability:
        data = await self._request(
            "POST",
            f"/equipment/{equipment_id}/check-availability",
            json={"startDate": start_date.isoformat(), "endDate": end_date.isoformat()},
        )
        return mappers.validate(Availability, data)

    async def cancel_booking(self, booking_id: str) -> None:
        await self._request("DELETE", f"/equipment/bookings/{booking_id}")

    # ------------------------------------------------------------------
    # Glossary
    # ------------------------------------------------------------------

    async def list_terms(
        self, *, search: str | None = None, category: str | None = None
    ) -> list[GlossaryTerm]:
        data = await self._request(
            "GET", "/glossary/terms", params=_params(search=search or None, category=category)
        )
        return mappers.many(GlossaryTerm, data, "terms")

    async def create_term(self, draft: TermDraft) -> GlossaryTerm:
        data = await self._request("POST", "/glossary/terms", json=_payload(draft))
        return mappers.one(GlossaryTerm, data, "term")

    async def update_term(self, term_id: str, draft: TermDraft) -> GlossaryTerm:
        data = await self._request("PUT", f"/glossary/terms/{term_id}", json=_payload(draft))
        return mappers.one(GlossaryTerm, data, "term")

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    async def current_check_ins(self) -> list[ActiveCheckIn]:
        data = await self._request("GET", "/locations/current")
        return mappers.many(ActiveCheckIn, data, "activeCheckIns")

    async def today_records(self) -> list[CheckInRecord]:
        data = await self._request("GET", "/locations/today")
        return mappers.many(CheckInRecord, data, "records")

    async def all_records(self) -> list[CheckInRecord]:
        data = await self._request("GET", "/locations/all")
        return mappers.many(CheckInRecord, data, "records")

    async def my_history(self, *, limit: int | None = None) -> list[CheckInRecord]:
        data = await self._request("GET", "/locations/history/me", params=_params(limit=limit))
        return mappers.many(CheckInRecord, data, "history")

    async def my_status(self) -> CheckInRecord | None:
        """Most recent check-in record of the signed-in user, if any."""
        data = await self._request("GET", "/locations/history/me", params=_params(limit=1))
        return mappers.first_or_none(CheckInRecord, data, "history")

    async def check_in(self, location: str) -> CheckInRecord:
        data = await self._request("POST", "/locations/check-in", json={"location": location})
        return mappers.one(CheckInRecord, data, "record")

    async def check_out(self) -> CheckInRecord:
        data = await self._request("POST", "/locations/check-out", json={})
        return mappers.one(CheckInRecord, data, "record")

    # ------------------------------------------------------------------
    # Calendar
    # ------------------------------------------------------------------

    async def list_events(
        self, *, start_date: date | None = None, end_date: date | None = None
    ) -> list[CalendarEvent]:
        data = await self._request(
            "GET",
            "/calendar/events",
            params=_params(startDate=start_date, endDate=end_date),
        )
        return mappers.many(CalendarEvent, data, "events")

    async def create_event(self, draft: EventDraft) -> CalendarEvent:
        data = await self._request("POST", "/calendar/events", json=_payload(draft))
        return mappers.one(CalendarEvent, data, "event")

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    async def list_projects(self, *, status: ProjectStatus | None = None) -> list[Project]:
        data = await self._request("GET", "/projects", params=_params(status=status))
        return mappers.many(Project, data, "projects")

    async def get_project(self, project_id: str) -> Project:
        data = await self._request("GET", f"/projects/{project_id}")
        return mappers.one(Project, data, "project")

    async def create_project(self, draft: ProjectDraft) -> Project:
        data = await self._request("POST", "/projects", json=_payload(draft))
        return mappers.one(Project, data, "project")

    async def update_project(self, project_id: str, draft: ProjectDraft) -> Project:
        data = await self._request("PUT", f"/projects/{project_id}", json=_payload(draft))
        return mappers.one(Project, data, "project")

    async def delete_project(self, project_id: str) -> None:
        await self._request("DELETE", f"/projects/{project_id}")

    async def project_members(self, project_id: str) -> list[ProjectMember]:
        data = await self._request("GET", f"/projects/{project_id}/members")
        return mappers.many(ProjectMember, data, "members")

    async def add_project_member(
        self, project_id: str, user_id: str, role: MemberRole = MemberRole.MEMBER
    ) -> ProjectMember:
        data = await self._request(
            "POST",
            f"/projects/{project_id}/members",
            json={"userId": user_id, "role": str(role)},
        )
        return mappers.one(ProjectMember, data, "member")

    async def remove_project_member(self, project_id: str, user_id: str) -> None:
        await self._request("DELETE", f"/projects/{project_id}/members/{user_id}")

    async def project_tasks(self, project_id: str) -> list[Task]:
        data = await self._request("GET", f"/projects/{project_id}/tasks")
        return mappers.many(Task, data, "tasks")

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    async def list_notifications(self) -> list[ServerNotification]:
        data = await self._request("GET", "/notifications")
        return mappers.many(ServerNotification, data, "notifications")

    async def mark_notification_read(self, notification_id: str) -> None:
        await self._request("PATCH", f"/notifications/{notification_id}/read")

    async def mark_all_notifications_read(self) -> None:
        await self._request("PATCH", "/notifications/read-all")
