"""In-process fake of the hub backend, served to the client through httpx.ASGITransport.

Routes answer with the same envelope as the real backend. Tests seed the
stores directly, hold a route open with ``gate(name)`` and make it fail with
``fail(name, status)``.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

TOKEN = "tok-1"

USER = {
    "id": "u-1",
    "email": "ada@example.com",
    "firstName": "Ada",
    "lastName": "Lovelace",
    "department": "IT",
    "role": "member",
}


def ok(data: Any = None) -> dict:
    return {"success": True, "data": data}


def error(status: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={"success": False, "error": {"code": code, "message": message}},
    )


class FakeBackend:
    """State behind the fake routes."""

    def __init__(self) -> None:
        self.password = "secret1"
        self.token = TOKEN
        self.tasks: list[dict] = []
        self.equipment: list[dict] = []
        self.bookings: list[dict] = []
        self.terms: list[dict] = []
        self.events: list[dict] = []
        self.notifications: list[dict] = []
        self.projects: list[dict] = []
        self.members: dict[str, list[dict]] = {}
        self.users: list[dict] = [USER]
        self.check_ins: list[dict] = []
        self.history: list[dict] = []
        self.requests: list[tuple[str, str]] = []
        self.failures: dict[str, int] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.next_ids: dict[str, str] = {}
        self._ids = itertools.count(100)

    def fail(self, name: str, status: int = 500) -> None:
        self.failures[name] = status

    def gate(self, name: str) -> asyncio.Event:
        self.gates[name] = asyncio.Event()
        return self.gates[name]

    def new_id(self, kind: str) -> str:
        return self.next_ids.pop(kind, None) or f"{kind}-{next(self._ids)}"

    async def hold(self, name: str) -> JSONResponse | None:
        gate = self.gates.get(name)
        if gate is not None:
            await gate.wait()
        status = self.failures.get(name)
        if status is not None:
            return error(status, "INJECTED", f"{name} failed")
        return None


def create_app(backend: FakeBackend) -> FastAPI:
    app = FastAPI(title="Fake Collaboration Hub")
    api = APIRouter(prefix="/api")

    @app.middleware("http")
    async def record_and_authorise(request: Request, call_next):
        path = request.url.path.removeprefix("/api")
        backend.requests.append((request.method, path))
        public = path in ("/auth/login", "/auth/register")
        if not public and request.headers.get("authorization") != f"Bearer {backend.token}":
            return error(401, "UNAUTHORIZED", "Invalid or expired token")
        return await call_next(request)

    # ── Auth and users ────────────────────────────────────────────────

    @api.post("/auth/login")
    async def login(request: Request):
        body = await request.json()
        if body.get("email") != USER["email"] or body.get("password") != backend.password:
            return error(401, "INVALID_CREDENTIALS", "Invalid email or password")
        return ok({"token": backend.token, "user": USER, "expiresAt": "2030-01-01T00:00:00Z"})

    @api.post("/auth/register")
    async def register(request: Request):
        body = await request.json()
        if body.get("email") == USER["email"]:
            return error(409, "EMAIL_TAKEN", "An account with this email already exists")
        user = {**USER, "id": backend.new_id("u"), **body}
        user.pop("password", None)
        return ok({"token": backend.token, "user": user})

    @api.post("/auth/logout")
    async def logout():
        return ok()

    @api.post("/auth/refresh")
    async def refresh():
        backend.token = backend.new_id("tok")
        return ok({"token": backend.token})

    @api.get("/users/me")
    async def me():
        return ok({"user": backend.users[0]})

    @api.put("/users/me")
    async def update_me(request: Request):
        body = await request.json()
        backend.users[0] = {**backend.users[0], **body}
        return ok({"user": backend.users[0]})

    @api.get("/users")
    async def list_users():
        return ok({"users": backend.users, "total": len(backend.users)})

    # ── Tasks ─────────────────────────────────────────────────────────

    @api.get("/tasks")
    async def list_tasks():
        if failed := await backend.hold("list_tasks"):
            return failed
        return ok({"tasks": backend.tasks, "pagination": {"total": len(backend.tasks)}})

    @api.get("/tasks/urgent")
    async def urgent_tasks():
        urgent = [task for task in backend.tasks if task.get("urgency") == "urgent"]
        return ok({"tasks": urgent})

    @api.post("/tasks")
    async def create_task(request: Request):
        body = await request.json()
        if failed := await backend.hold("create_task"):
            return failed
        task = {
            **body,
            "id": backend.new_id("t"),
            "status": "pending",
            "isCompleted": False,
            "createdAt": "2025-11-30T12:00:00Z",
        }
        backend.tasks.append(task)
        return JSONResponse(status_code=201, content=ok({"task": task}))

    @api.patch("/tasks/{task_id}/status")
    async def task_status(task_id: str, request: Request):
        body = await request.json()
        if failed := await backend.hold("task_status"):
            return failed
        return ok({"task": {"id": task_id, "status": body["status"]}})

    @api.delete("/tasks/{task_id}")
    async def delete_task(task_id: str):
        if failed := await backend.hold("delete_task"):
            return failed
        backend.tasks = [task for task in backend.tasks if task["id"] != task_id]
        return {"success": True, "message": "Task deleted"}

    # ── Equipment ─────────────────────────────────────────────────────

    @api.get("/equipment")
    async def list_equipment():
        if failed := await backend.hold("list_equipment"):
            return failed
        return ok({"equipment": backend.equipment})

    @api.get("/equipment/bookings")
    async def list_bookings():
        if failed := await backend.hold("list_bookings"):
            return failed
        return ok({"bookings": backend.bookings})

    @api.get("/equipment/bookings/me")
    async def my_bookings():
        if failed := await backend.hold("my_bookings"):
            return failed
        mine = [booking for booking in backend.bookings if booking.get("userId") == USER["id"]]
        return ok({"bookings": mine})

    @api.get("/equipment/{equipment_id}")
    async def get_equipment(equipment_id: str):
        for item in backend.equipment:
            if item["id"] == equipment_id:
                return ok({"equipment": item})
        return error(404, "NOT_FOUND", "Equipment not found")

    @api.post("/equipment")
    async def create_equipment(request: Request):
        body = await request.json()
        item = {**body, "id": backend.new_id("E"), "status": "available"}
        backend.equipment.append(item)
        return JSONResponse(status_code=201, content=ok({"equipment": item}))

    @api.post("/equipment/{equipment_id}/bookings")
    async def book(equipment_id: str, request: Request):
        body = await request.json()
        if failed := await backend.hold("book_equipment"):
            return failed
        booking = {
            **body,
            "id": backend.new_id("b"),
            "equipmentId": equipment_id,
            "userId": USER["id"],
            "bookedBy": "Ada Lovelace",
            "status": "confirmed",
        }
        backend.bookings.append(booking)
        return JSONResponse(status_code=201, content=ok({"booking": booking}))

    @api.post("/equipment/{equipment_id}/check-availability")
    async def check_availability(equipment_id: str, request: Request):
        body = await request.json()
        conflicts = [
            {
                "bookingId": booking["id"],
                "bookedBy": booking.get("bookedBy"),
                "startDate": booking["startDate"],
                "endDate": booking["endDate"],
            }
            for booking in backend.bookings
            if booking["equipmentId"] == equipment_id
            and booking["startDate"] <= body["endDate"]
            and body["startDate"] <= booking["endDate"]
        ]
        return ok({"isAvailable": not conflicts, "conflicts": conflicts})

    @api.delete("/equipment/bookings/{booking_id}")
    async def cancel_booking(booking_id: str):
        if failed := await backend.hold("cancel_booking"):
            return failed
        backend.bookings = [b for b in backend.bookings if b["id"] != booking_id]
        return {"success": True, "message": "Booking cancelled"}

    # ── Glossary ──────────────────────────────────────────────────────

    @api.get("/glossary/terms")
    async def list_terms():
        return ok({"terms": backend.terms})

    @api.post("/glossary/terms")
    async def create_term(request: Request):
        body = await request.json()
        if failed := await backend.hold("create_term"):
            return failed
        term = {
            "id": backend.new_id("g"),
            "term": body["term"],
            "definition": body["definition"],
            "category": {"id": "c-1", "name": body.get("category") or "General"},
        }
        backend.terms.append(term)
        return JSONResponse(status_code=201, content=ok({"term": term}))

    @api.put("/glossary/terms/{term_id}")
    async def update_term(term_id: str, request: Request):
        body = await request.json()
        if failed := await backend.hold("update_term"):
            return failed
        for term in backend.terms:
            if term["id"] == term_id:
                term["definition"] = body["definition"]
                return ok({"term": term})
        return error(404, "NOT_FOUND", "Term not found")

    # ── Locations ─────────────────────────────────────────────────────

    @api.get("/locations/current")
    async def current_check_ins():
        return ok({"activeCheckIns": backend.check_ins})

    @api.get("/locations/today")
    async def today_records():
        return ok({"records": backend.history, "total": len(backend.history)})

    @api.get("/locations/all")
    async def all_records():
        return ok({"records": backend.history, "total": len(backend.history)})

    @api.get("/locations/history/me")
    async def my_history(limit: int | None = None):
        history = backend.history[:limit] if limit else backend.history
        return ok({"history": history})

    @api.post("/locations/check-in")
    async def check_in(request: Request):
        body = await request.json()
        if failed := await backend.hold("check_in"):
            return failed
        record = {
            "id": backend.new_id("l"),
            "userId": USER["id"],
            "location": body["location"],
            "checkInTime": "2025-11-30T12:00:00Z",
        }
        backend.history.insert(0, record)
        return ok({"record": record})

    @api.post("/locations/check-out")
    async def check_out():
        if failed := await backend.hold("check_out"):
            return failed
        record = {**backend.history[0], "checkOutTime": "2025-11-30T17:00:00Z"}
        backend.history[0] = record
        return ok({"record": record})

    # ── Calendar ──────────────────────────────────────────────────────

    @api.get("/calendar/events")
    async def list_events(startDate: str | None = None, endDate: str | None = None):
        if failed := await backend.hold("list_events"):
            return failed
        events = [
            event
            for event in backend.events
            if (startDate is None or event["eventDate"] >= startDate)
            and (endDate is None or event["eventDate"] <= endDate)
        ]
        return ok({"events": events})

    @api.post("/calendar/events")
    async def create_event(request: Request):
        body = await request.json()
        event = {**body, "id": backend.new_id("e")}
        backend.events.append(event)
        return JSONResponse(status_code=201, content=ok({"event": event}))

    # ── Projects ──────────────────────────────────────────────────────

    @api.get("/projects")
    async def list_projects():
        return ok({"projects": backend.projects, "total": len(backend.projects)})

    @api.post("/projects")
    async def create_project(request: Request):
        body = await request.json()
        if failed := await backend.hold("create_project"):
            return failed
        project = {
            "id": backend.new_id("p"),
            "name": body["name"],
            "description": body.get("description"),
            "status": body.get("status", "active"),
            "createdBy": USER["id"],
            "memberCount": 1,
            "taskCount": 0,
        }
        backend.projects.append(project)
        return JSONResponse(status_code=201, content=ok({"project": project}))

    @api.put("/projects/{project_id}")
    async def update_project(project_id: str, request: Request):
        body = await request.json()
        if failed := await backend.hold("update_project"):
            return failed
        for project in backend.projects:
            if project["id"] == project_id:
                project.update(body)
                return ok({"project": project})
        return error(404, "NOT_FOUND", "Project not found")

    @api.delete("/projects/{project_id}")
    async def delete_project(project_id: str):
        if failed := await backend.hold("delete_project"):
            return failed
        backend.projects = [p for p in backend.projects if p["id"] != project_id]
        return {"success": True, "message": "Project deleted"}

    @api.get("/projects/{project_id}/members")
    async def project_members(project_id: str):
        members = backend.members.get(project_id, [])
        return ok({"members": members, "total": len(members)})

    @api.post("/projects/{project_id}/members")
    async def add_member(project_id: str, request: Request):
        body = await request.json()
        if failed := await backend.hold("add_member"):
            return failed
        member = {
            "id": backend.new_id("pm"),
            "userId": body["userId"],
            "name": "Grace Hopper",
            "role": body.get("role", "member"),
        }
        backend.members.setdefault(project_id, []).append(member)
        return JSONResponse(status_code=201, content=ok({"member": member}))

    @api.delete("/projects/{project_id}/members/{user_id}")
    async def remove_member(project_id: str, user_id: str):
        if failed := await backend.hold("remove_member"):
            return failed
        backend.members[project_id] = [
            m for m in backend.members.get(project_id, []) if m["userId"] != user_id
        ]
        return {"success": True, "message": "Member removed"}

    @api.get("/projects/{project_id}/tasks")
    async def project_tasks(project_id: str):
        tasks = [task for task in backend.tasks if task.get("projectId") == project_id]
        return ok({"tasks": tasks, "total": len(tasks)})

    # ── Notifications ─────────────────────────────────────────────────

    @api.get("/notifications")
    async def list_notifications():
        if failed := await backend.hold("list_notifications"):
            return failed
        return ok({"notifications": backend.notifications})

    @api.patch("/notifications/read-all")
    async def mark_all_read():
        if failed := await backend.hold("mark_all_read"):
            return failed
        for notification in backend.notifications:
            notification["isRead"] = True
        return ok()

    @api.patch("/notifications/{notification_id}/read")
    async def mark_read(notification_id: str):
        if failed := await backend.hold("mark_read"):
            return failed
        for notification in backend.notifications:
            if notification["id"] == notification_id:
                notification["isRead"] = True
        return ok()

    app.include_router(api)
    return app
