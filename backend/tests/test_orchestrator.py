import asyncio
import threading

import pytest
from sqlalchemy import select

from app.api.routes.timetable import ClientDisconnected, run_until_disconnected
from app.core.exceptions import ClientInputError, ResourceNotFoundError
from app.models.activity_log import ActivityLog
from app.models.course import Course
from app.models.timetable import Timetable
from app.models.user import User, UserRole
from app.schemas.timetable import AutoGenerateRequest, TimetableUpdate
from app.services import orchestrator as orchestrator_module
from app.services.fallback_dataset import fallback_request
from app.services.orchestrator import TimetableOrchestrator, parse_scheduling_request
from app.services.timetable_repository import TimetableRepository


def add_user(db, name: str, role: UserRole, **fields) -> User:
    user = User(name=name, email=f"{name.lower()}@example.com", hashed_password="x", role=role, **fields)
    db.add(user)
    db.commit()
    return user


def seed(db) -> dict[str, User]:
    users = {
        "admin": add_user(db, "Admin", UserRole.admin, lab_capacity=20),
        "teacher": add_user(db, "Teacher", UserRole.teacher, department="CS"),
        "student": add_user(db, "Student", UserRole.student, program="ECE"),
        "inactive": add_user(db, "Ghost", UserRole.student, is_active=False),
    }
    db.add(Course(code="CS101", name="Intro", credits=4))
    db.add(Course(code="OLD100", name="Retired", credits=3, is_active=False))
    db.commit()
    return users


def test_auto_generate_logs_activity_and_reconciles(db_session, engine_stub):
    users = seed(db_session)
    orchestrator = TimetableOrchestrator(db_session, engine_stub.client())

    record = asyncio.run(orchestrator.auto_generate(users["admin"], AutoGenerateRequest(name="Run")))

    sent = engine_stub.generate_calls()[0]
    assert [course["course_code"] for course in sent["courses"]] == ["CS101"]
    assert sent["student_groups"][0]["students"] == ["S001"]
    assert sent["rooms"][1]["capacity"] == 20
    assert record.meta["identifiers"]["students"] == {"S001": users["student"].id}

    entries = list(db_session.execute(select(ActivityLog)).scalars())
    assert [(entry.action, entry.entity_id, entry.user_id) for entry in entries] == [
        ("timetable.generate", record.id, users["admin"].id)
    ]
    assert entries[0].details["dataset"] == "real"

    view = orchestrator.get_for_user(users["student"].id)
    assert view.role == "student"
    # Default calendar, sorted: the first slot is Fri_09.
    assert view.schedule["Fri_09"]["student_id"] == "S001"
    assert orchestrator.get_for_user(users["admin"].id).schedule is None
    with pytest.raises(ResourceNotFoundError):
        orchestrator.get_for_user("missing")


def test_auto_generate_names_only_the_empty_categories(db_session, engine_stub):
    admin = add_user(db_session, "Admin", UserRole.admin)
    add_user(db_session, "Teacher", UserRole.teacher)
    orchestrator = TimetableOrchestrator(db_session, engine_stub.client())

    with pytest.raises(ClientInputError) as exc_info:
        asyncio.run(orchestrator.auto_generate(admin, AutoGenerateRequest()))

    assert exc_info.value.details["empty_categories"] == ["students", "courses"]
    assert engine_stub.calls == []
    assert db_session.execute(select(Timetable)).first() is None


def test_update_and_delete_are_logged(db_session, engine_stub):
    users = seed(db_session)
    orchestrator = TimetableOrchestrator(db_session, engine_stub.client())
    record = asyncio.run(orchestrator.auto_generate(users["admin"], AutoGenerateRequest()))

    orchestrator.update(users["admin"], record.id, TimetableUpdate(name="Renamed"))
    orchestrator.delete(users["admin"], record.id)

    actions = [entry.action for entry in db_session.execute(select(ActivityLog)).scalars()]
    assert actions == ["timetable.generate", "timetable.update", "timetable.delete"]
    assert orchestrator.list_all() == []


def test_parse_scheduling_request_rejects_non_objects():
    for value in [None, {}, [], "text"]:
        with pytest.raises(ClientInputError) as exc_info:
            parse_scheduling_request(value)
        assert exc_info.value.details["fields"] == ["input_data"]


class FakeRequest:
    method = "POST"

    class url:
        path = "/api/timetables/auto-generate"

    def __init__(self, disconnected: bool) -> None:
        self.disconnected = disconnected

    async def is_disconnected(self) -> bool:
        return self.disconnected


def test_disconnect_cancels_pending_work(monkeypatch):
    monkeypatch.setattr("app.api.routes.timetable.DISCONNECT_POLL_SECONDS", 0.01)
    state = {"cancelled": False, "finished": False}

    async def slow_generate():
        try:
            await asyncio.sleep(30)
            state["finished"] = True
        except asyncio.CancelledError:
            state["cancelled"] = True
            raise

    with pytest.raises(ClientDisconnected):
        asyncio.run(run_until_disconnected(FakeRequest(disconnected=True), slow_generate()))
    assert state == {"cancelled": True, "finished": False}


def test_connected_client_gets_the_result(monkeypatch):
    monkeypatch.setattr("app.api.routes.timetable.DISCONNECT_POLL_SECONDS", 0.01)

    async def quick():
        await asyncio.sleep(0.03)
        return "done"

    assert asyncio.run(run_until_disconnected(FakeRequest(disconnected=False), quick())) == "done"


def test_database_work_runs_off_the_event_loop_thread(db_session, engine_stub, monkeypatch):
    users = seed(db_session)
    orchestrator = TimetableOrchestrator(db_session, engine_stub.client())
    threads: dict[str, int] = {}

    real_load_roster = orchestrator_module.load_roster
    real_save = TimetableRepository.save

    def recording_load_roster(db, admin=None):
        threads["roster"] = threading.get_ident()
        return real_load_roster(db, admin=admin)

    def recording_save(self, record):
        threads["save"] = threading.get_ident()
        return real_save(self, record)

    monkeypatch.setattr(orchestrator_module, "load_roster", recording_load_roster)
    monkeypatch.setattr(TimetableRepository, "save", recording_save)

    async def scenario():
        threads["loop"] = threading.get_ident()
        return await orchestrator.auto_generate(users["admin"], AutoGenerateRequest())

    record = asyncio.run(scenario())

    assert record.is_active is True
    assert threads["roster"] != threads["loop"]
    assert threads["save"] != threads["loop"]


def test_validate_forwards_the_callers_input_unchanged(db_session, engine_stub):
    orchestrator = TimetableOrchestrator(db_session, engine_stub.client())
    input_data = fallback_request().to_payload()
    input_data["courses"][0]["course_code"] = "cs101"
    input_data["notes"] = "draft for review"

    report = asyncio.run(orchestrator.validate(input_data))

    assert report == {"valid": True, "issues": []}
    assert engine_stub.calls == [("/api/validate", input_data)]
