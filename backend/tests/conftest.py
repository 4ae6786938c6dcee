import json
import os

# Settings are read once at import time; point the app at an in-memory
# database and a fake engine host before anything imports it.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("SCHEDULING_ENGINE_URL", "http://engine.test")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db, get_solver_client
from app.db.base import Base
from app.main import app
from app.services.solver_client import SolverClient

ENGINE_URL = "http://engine.test"


def solved_result(body: dict) -> dict:
    """A minimal engine answer that echoes the ids it was sent."""
    slot = (body.get("time_slots") or ["Mon_09"])[0]
    course = body["courses"][0]["course_code"]
    faculty_id = body["faculty"][0]["faculty_id"]
    entry = {"course_code": course, "faculty_id": faculty_id, "room_id": "R101"}
    students = [student for group in body["student_groups"] for student in group["students"]]
    return {
        "assignments": {slot: [entry]},
        "faculty_timetables": {faculty_id: {slot: entry}},
        "student_timetables": {student: {slot: {**entry, "student_id": student}} for student in students},
        "violations": [],
        "metadata": {"solver": "stub"},
    }


class EngineStub:
    """Stand-in for the scheduling engine, served through ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict]] = []
        self._responses: list[tuple[int, object]] = []
        self.error: Exception | None = None

    def queue(self, status_code: int, body: object) -> None:
        self._responses.append((status_code, body))

    def generate_calls(self) -> list[dict]:
        return [body for path, body in self.calls if path == "/api/generate"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content or b"{}")
        self.calls.append((request.url.path, body))
        if self.error is not None:
            raise self.error
        if self._responses:
            status_code, payload = self._responses.pop(0)
        elif request.url.path == "/api/validate":
            status_code, payload = 200, {"valid": True, "issues": []}
        else:
            status_code, payload = 200, solved_result(body)
        return httpx.Response(status_code, json=payload)

    def client(self) -> SolverClient:
        return SolverClient(ENGINE_URL, transport=httpx.MockTransport(self.handler))


@pytest.fixture()
def engine_stub():
    return EngineStub()


@pytest.fixture()
def db_session():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def client(engine_stub):
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_solver_client] = engine_stub.client

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    engine.dispose()
