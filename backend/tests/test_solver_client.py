import asyncio

import httpx
import pytest

from app.core.exceptions import (
    ConfigurationError,
    SolverError,
    SolverInfeasibilityError,
    SolverInfrastructureError,
)
from app.services.fallback_dataset import fallback_request
from app.services.repair import repair_request
from app.services.solver_client import SolverClient, extract_error_message, should_fallback

from conftest import EngineStub


def real_request():
    request = fallback_request()
    request.courses[0].course_code = "REAL101"
    request.faculty[0].expertise = ["REAL101", "HS101"]
    return request


@pytest.mark.parametrize(
    "message",
    [
        "No feasible student timetable found",
        "Solver says: NO FEASIBLE TIMETABLE",
        "no feasible assignment for course CS101",
    ],
)
def test_should_fallback_on_infeasibility_phrases(message):
    assert should_fallback(message) is True


@pytest.mark.parametrize(
    "message",
    ["invalid schema", "feasible timetable found", "no timetable", "", None, 500, {"message": "no feasible timetable"}],
)
def test_should_not_fallback_otherwise(message):
    assert should_fallback(message) is False


def test_extract_error_message_prefers_known_keys():
    assert extract_error_message(httpx.Response(500, json={"detail": "d", "error": "e"})) == "e"
    assert extract_error_message(httpx.Response(500, json={"message": "", "detail": "d"})) == "d"
    assert extract_error_message(httpx.Response(502, text="Bad gateway")) == "Bad gateway"
    assert extract_error_message(httpx.Response(503)) == "HTTP 503"


def test_fallback_dataset_is_self_consistent():
    report = repair_request(fallback_request())
    assert report.changes == []
    assert fallback_request() is not fallback_request()


def test_submit_success_uses_real_dataset():
    stub = EngineStub()
    outcome = asyncio.run(stub.client().submit(real_request()))

    assert outcome.dataset == "real"
    assert outcome.fallback_used is False
    assert outcome.fallback_reason is None
    assert len(stub.generate_calls()) == 1
    assert stub.generate_calls()[0]["courses"][0]["course_code"] == "REAL101"
    assert "lab" not in stub.generate_calls()[0]["courses"][1]["components"]


def test_infeasibility_triggers_exactly_one_fallback():
    stub = EngineStub()
    stub.queue(500, {"message": "No feasible student timetable found"})
    outcome = asyncio.run(stub.client().submit(real_request()))

    assert outcome.fallback_used is True
    assert outcome.dataset == "mock"
    assert "No feasible student timetable found" in outcome.fallback_reason
    calls = stub.generate_calls()
    assert len(calls) == 2
    assert calls[1] == fallback_request().to_payload()
    assert outcome.result.assignments


def test_fallback_failure_reports_both_errors():
    stub = EngineStub()
    stub.queue(422, {"error": "No feasible assignment"})
    stub.queue(500, {"detail": "engine crashed"})

    with pytest.raises(SolverInfeasibilityError) as exc_info:
        asyncio.run(stub.client().submit(real_request()))

    details = exc_info.value.details
    assert details["original_error"] == "No feasible assignment"
    assert details["fallback_error"] == "engine crashed"
    assert details["fallback_category"] == "solver"
    assert len(stub.generate_calls()) == 2


def test_other_engine_errors_do_not_fall_back():
    stub = EngineStub()
    stub.queue(400, {"error": "invalid schema"})

    with pytest.raises(SolverError) as exc_info:
        asyncio.run(stub.client().submit(real_request()))

    assert exc_info.value.message == "invalid schema"
    assert exc_info.value.status_code == 502
    assert exc_info.value.details["engine_status"] == 400
    assert len(stub.generate_calls()) == 1


@pytest.mark.parametrize(
    ("error", "reason"),
    [
        (httpx.ConnectError("connection refused"), "connect"),
        (httpx.ReadTimeout("timed out"), "timeout"),
        (httpx.RemoteProtocolError("peer closed"), "transport"),
    ],
)
def test_transport_failures_are_infrastructure_errors(error, reason):
    stub = EngineStub()
    stub.error = error

    with pytest.raises(SolverInfrastructureError) as exc_info:
        asyncio.run(stub.client().submit(real_request()))

    assert exc_info.value.details["reason"] == reason
    assert exc_info.value.status_code == 503
    assert len(stub.calls) == 1


@pytest.mark.parametrize("body", [["not", "an", "object"], "plain string"])
def test_non_object_success_body_is_a_solver_error(body):
    stub = EngineStub()
    stub.queue(200, body)
    with pytest.raises(SolverError):
        asyncio.run(stub.client().generate(real_request()))


def test_validate_passes_engine_report_through():
    stub = EngineStub()
    stub.queue(200, {"valid": False, "issues": [{"code": "X"}]})
    report = asyncio.run(stub.client().validate({"time_slots": ["Mon_09"]}))

    assert report == {"valid": False, "issues": [{"code": "X"}]}
    assert stub.calls[0][0] == "/api/validate"


def test_client_requires_engine_url():
    with pytest.raises(ConfigurationError):
        SolverClient("")


def test_cancelling_submit_aborts_the_call():
    started = asyncio.Event()

    async def slow_handler(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.sleep(30)
        return httpx.Response(200, json={})

    async def scenario():
        client = SolverClient("http://engine.test", transport=httpx.MockTransport(slow_handler))
        task = asyncio.create_task(client.submit(real_request()))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
