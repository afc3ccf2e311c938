"""Tests for the glossary, location, project and calendar views."""

from __future__ import annotations

from datetime import date, datetime, time, timezone

import pytest

from collabhub.domain.models import PushPermission
from collabhub.errors import FormValidationError
from collabhub.services.push import BrowserNotifier
from collabhub.views.calendar import CalendarView
from collabhub.views.locations import LocationTracker

_NOW = datetime(2025, 11, 30, 12, 0, tzinfo=timezone.utc)


def _term(term_id: str, term: str, definition: str, category: str = "Hardware") -> dict:
    return {
        "id": term_id,
        "term": term,
        "definition": definition,
        "category": {"id": f"c-{category.lower()}", "name": category},
    }


# ---------------------------------------------------------------------------
# Glossary
# ---------------------------------------------------------------------------


async def test_glossary_flattens_nested_category(hub, backend):
    backend.terms = [_term("g-1", "PCB", "Printed circuit board")]
    [term] = await hub.glossary.load()
    assert term.category == "Hardware"
    assert term.category_id == "c-hardware"
    assert hub.glossary.categories() == ["Hardware"]


async def test_glossary_add_is_optimistic_and_removed_on_error(hub, backend):
    backend.fail("create_term", 500)
    result = await hub.glossary.add_term(term="FPGA", definition="Field-programmable gate array")
    assert not result.ok
    assert len(hub.glossary.terms) == 0


async def test_glossary_filter_by_search_and_category(hub, backend):
    backend.terms = [
        _term("g-1", "PCB", "Printed circuit board"),
        _term("g-2", "API", "Application programming interface", "Software"),
    ]
    await hub.glossary.load()
    assert [t.id for t in hub.glossary.filter("circuit")] == ["g-1"]
    assert [t.id for t in hub.glossary.filter(category="Software")] == ["g-2"]


async def test_glossary_import_reports_added_updated_unchanged(hub, backend):
    backend.terms = [
        _term("g-1", "PCB", "Printed circuit board"),
        _term("g-2", "API", "Application programming interface", "Software"),
    ]
    await hub.glossary.load()
    csv_text = (
        "Term,Definition,Category\n"
        "pcb,Printed circuit board,hardware\n"
        'API,"A contract, between programs",Software\n'
        "FPGA,Field-programmable gate array,Hardware\n"
    )

    report = await hub.glossary.import_csv(csv_text)

    assert report.unchanged == ["PCB"]
    assert report.updated == ["API"]
    assert report.added == ["FPGA"]
    assert report.failed == []
    assert hub.glossary.terms.get("g-2").definition == "A contract, between programs"
    assert [t.term for t in hub.glossary.terms] == ["PCB", "API", "FPGA"]


async def test_glossary_export_then_reimport_changes_nothing(hub, backend):
    backend.terms = [
        _term("g-1", "PCB", "Printed circuit board"),
        _term("g-2", "SLA", 'A "service level", agreed in writing', "Operations"),
    ]
    await hub.glossary.load()
    exported = hub.glossary.export_csv()
    sent = len(backend.requests)

    report = await hub.glossary.import_csv(exported)

    assert report.added == []
    assert report.updated == []
    assert report.failed == []
    assert report.unchanged == ["PCB", "SLA"]
    assert len(backend.requests) == sent
    assert hub.glossary.terms.get("g-2").definition == 'A "service level", agreed in writing'


async def test_glossary_import_of_malformed_file_changes_nothing(hub, backend):
    with pytest.raises(FormValidationError):
        await hub.glossary.import_csv("Term,Definition\nPCB\n")
    assert backend.requests == []


async def test_glossary_export(hub, backend):
    backend.terms = [_term("g-1", "PCB", "Printed circuit board")]
    await hub.glossary.load()
    assert hub.glossary.export_csv().splitlines()[1] == '"PCB","Printed circuit board","Hardware"'


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


@pytest.fixture()
def tracker(api) -> LocationTracker:
    return LocationTracker(api, clock=lambda: _NOW)


async def test_check_in_then_out(tracker, backend):
    await tracker.load()
    assert not tracker.is_checked_in

    assert await tracker.check_in("Lab 2") is True
    assert tracker.is_checked_in
    assert tracker.my_status.location == "Lab 2"

    assert await tracker.check_out() is True
    assert not tracker.is_checked_in


async def test_failed_check_in_reverts(tracker, backend):
    backend.fail("check_in", 500)
    assert await tracker.check_in("Lab 2") is False
    assert tracker.my_status is None
    assert tracker.error is not None


async def test_double_check_in_is_refused(tracker):
    await tracker.check_in("Lab 2")
    with pytest.raises(FormValidationError):
        await tracker.check_in("Lab 3")


async def test_new_colleague_check_in_is_pushed(api, backend):
    shown: list = []
    tracker = LocationTracker(
        api, notifier=BrowserNotifier(shown.append, permission=PushPermission.GRANTED)
    )
    await tracker.load()
    backend.check_ins = [
        {
            "user": {"id": "u-2", "firstName": "Grace", "lastName": "Hopper"},
            "location": "Lab 2",
            "checkInTime": "2025-11-30T09:05:00Z",
        }
    ]

    await tracker.load()
    await tracker.load()

    assert [m.title for m in shown] == ["Grace Hopper has checked in"]


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


async def test_project_create_and_rejected_delete(hub, backend):
    result = await hub.projects.create_project(name="Sensor rig")
    assert result.ok
    key = result.key

    backend.fail("delete_project", 500)
    deleted = await hub.projects.delete_project(key)

    assert not deleted.ok
    assert hub.projects.projects.keys() == [key]


async def test_project_update_reverts_on_failure(hub, backend):
    backend.projects = [{"id": "p-1", "name": "Sensor rig", "status": "active"}]
    await hub.projects.load()
    backend.fail("update_project", 500)

    await hub.projects.update_project("p-1", name="Renamed")

    assert hub.projects.projects.get("p-1").name == "Sensor rig"


async def test_project_members(hub, backend):
    backend.projects = [{"id": "p-1", "name": "Sensor rig"}]
    backend.tasks = [{"id": "t-1", "title": "Wire up", "deadline": "2025-12-01", "projectId": "p-1"}]
    await hub.projects.load()
    await hub.projects.open("p-1")
    assert [t.id for t in hub.projects.tasks] == ["t-1"]

    added = await hub.projects.add_member("u-2")
    assert added.ok
    assert hub.projects.members.get("u-2").name == "Grace Hopper"

    removed = await hub.projects.remove_member("u-2")
    assert removed.ok
    assert len(hub.projects.members) == 0


async def test_member_actions_need_an_open_project(hub):
    with pytest.raises(LookupError):
        await hub.projects.add_member("u-2")


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


async def test_calendar_fetches_the_visible_month(api, backend):
    backend.events = [
        {"id": "e-1", "title": "Standup", "eventDate": "2025-11-11", "startTime": "09:00:00"},
        {"id": "e-2", "title": "Retro", "eventDate": "2025-12-02", "startTime": "15:00:00"},
    ]
    calendar = CalendarView(api, clock=lambda: _NOW)

    events = await calendar.load()
    assert [e.id for e in events] == ["e-1"]
    assert calendar.range == (date(2025, 11, 1), date(2025, 11, 30))
    assert [e.id for e in calendar.on(date(2025, 11, 11))] == ["e-1"]

    await calendar.next_month()
    assert calendar.month == date(2025, 12, 1)
    assert [e.id for e in calendar.events] == ["e-2"]


async def test_calendar_create_event(api, backend):
    calendar = CalendarView(api, clock=lambda: _NOW)
    result = await calendar.create_event(
        title="Design review", event_date=date(2025, 11, 20), start_time=time(14, 0)
    )
    assert result.ok
    assert calendar.events.get(result.key).start_time == time(14, 0)
