"""Generate and manage stored timetables.

``TimetableOrchestrator`` drives the pipeline for one call:

    roster -> compile -> repair -> solver (with one fallback) -> re-key -> persist

Roster loading, compilation and persistence are blocking database work and
run in a worker thread; the solver call is awaited on the event loop and is
the point where a cancelled request stops, before anything is written.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from functools import partial
from typing import Any

from anyio import to_thread
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from app.core.exceptions import ClientInputError, ResourceNotFoundError
from app.models.timetable import Timetable
from app.models.user import User, UserRole
from app.schemas.scheduling import SchedulingRequest
from app.schemas.timetable import (
    AutoGenerateRequest,
    GenerateFromInputRequest,
    TimetableSummary,
    TimetableUpdate,
    UserTimetableOut,
)
from app.services.audit import log_timetable_activity
from app.services.compiler import CompiledRequest, RequestCompiler
from app.services.identifiers import IdentifierMapper
from app.services.reconciler import find_user_timetable, rekey_timetables
from app.services.repair import RepairReport, repair_request
from app.services.roster import load_roster
from app.services.solver_client import SolverClient, SolverOutcome
from app.services.timetable_repository import TimetableRepository

logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _field_path(location: tuple) -> str:
    return ".".join(str(part) for part in location) or "input_data"


def parse_scheduling_request(input_data: Any) -> SchedulingRequest:
    """Parse caller-supplied engine input, reporting every offending field path."""
    if not isinstance(input_data, dict) or not input_data:
        raise ClientInputError("input_data is required", details={"fields": ["input_data"]})
    try:
        return SchedulingRequest.model_validate(input_data)
    except PydanticValidationError as exc:
        fields = list(dict.fromkeys(_field_path(error["loc"]) for error in exc.errors()))
        raise ClientInputError(
            f"Invalid scheduling input: {', '.join(fields)}",
            details={
                "fields": fields,
                "errors": exc.errors(include_url=False, include_context=False, include_input=False),
            },
        ) from exc


def build_metadata(
    outcome: SolverOutcome,
    *,
    source: str,
    report: RepairReport,
    identifiers: IdentifierMapper,
) -> dict[str, Any]:
    metadata = dict(outcome.result.metadata)
    metadata.update(
        {
            "fallbackUsed": outcome.fallback_used,
            "fallbackReason": outcome.fallback_reason,
            "dataset": outcome.dataset,
            "source": source,
            "repairs": list(report.changes),
            "identifiers": identifiers.to_dict(),
        }
    )
    if outcome.fallback_used:
        metadata["submittedRequest"] = outcome.submitted_request.to_payload()
    return metadata


class TimetableOrchestrator:
    def __init__(
        self,
        db: Session,
        solver: SolverClient,
        *,
        compiler: RequestCompiler | None = None,
    ) -> None:
        self.db = db
        self.solver = solver
        self.compiler = compiler or RequestCompiler()
        self.repository = TimetableRepository(db)

    async def auto_generate(self, actor: User, params: AutoGenerateRequest) -> Timetable:
        compiled, report = await to_thread.run_sync(self._compile_roster, actor, params.time_limit)
        outcome = await self.solver.submit(report.request)
        persist = partial(
            self._persist,
            actor,
            params,
            report=report,
            outcome=outcome,
            identifiers=compiled.identifiers,
            source="auto",
            default_name=f"Auto-Generated Timetable {_timestamp()}",
        )
        return await to_thread.run_sync(persist)

    async def generate_from_explicit_input(self, actor: User, params: GenerateFromInputRequest) -> Timetable:
        request = parse_scheduling_request(params.input_data)
        report = repair_request(request)
        outcome = await self.solver.submit(report.request)
        persist = partial(
            self._persist,
            actor,
            params,
            report=report,
            outcome=outcome,
            identifiers=IdentifierMapper(),
            source="manual",
            default_name=f"Timetable {_timestamp()}",
        )
        return await to_thread.run_sync(persist)

    async def validate(self, input_data: Any) -> Any:
        parse_scheduling_request(input_data)
        return await self.solver.validate(input_data)

    def _compile_roster(self, actor: User, time_limit: int | None) -> tuple[CompiledRequest, RepairReport]:
        roster = load_roster(self.db, admin=actor)
        empty = roster.empty_categories()
        if empty:
            raise ClientInputError(
                f"Cannot generate a timetable: no active {', '.join(empty)} found",
                details={"empty_categories": empty},
            )
        logger.info(
            "Auto-generating timetable from roster: %d students, %d teachers, %d courses",
            len(roster.students),
            len(roster.teachers),
            len(roster.courses),
        )
        compiled = self.compiler.compile(roster, time_limit=time_limit)
        return compiled, repair_request(compiled.request)

    def _persist(
        self,
        actor: User,
        params,
        *,
        report: RepairReport,
        outcome: SolverOutcome,
        identifiers: IdentifierMapper,
        source: str,
        default_name: str,
    ) -> Timetable:
        result = outcome.result
        # The fallback dataset has its own F###/S### ids; they must not be
        # translated through the roster mapping.
        if outcome.fallback_used:
            identifiers = IdentifierMapper()

        record = Timetable(
            id=str(uuid.uuid4()),
            name=params.name or default_name,
            semester=params.semester,
            academic_year=params.academic_year,
            input_data=report.request.to_payload(),
            generated_data=result.model_dump(mode="json"),
            assignments=result.assignments,
            faculty_timetables=rekey_timetables(result.faculty_timetables, identifiers),
            student_timetables=rekey_timetables(result.student_timetables, identifiers),
            violations=result.violations,
            meta=build_metadata(outcome, source=source, report=report, identifiers=identifiers),
            is_active=True,
            created_by_id=actor.id,
        )
        log_timetable_activity(
            self.db,
            actor=actor,
            action="generate",
            record=record,
            source=source,
            dataset=outcome.dataset,
            fallback_used=outcome.fallback_used,
        )
        saved = self.repository.save(record)
        logger.info(
            "Stored timetable %s from %s dataset (%d assignments, %d violations)",
            saved.id,
            outcome.dataset,
            len(saved.assignments or {}),
            len(saved.violations or []),
        )
        return saved

    def get_active(self) -> Timetable:
        record = self.repository.get_active()
        if record is None:
            raise ResourceNotFoundError(
                "Timetable", "active", "No timetable found. Generate a timetable first."
            )
        return record

    def get_by_id(self, timetable_id: str) -> Timetable:
        return self.repository.get(timetable_id)

    def list_all(self, is_active: bool | None = None) -> list[Timetable]:
        return self.repository.list(is_active=is_active)

    def get_for_user(self, user_id: str) -> UserTimetableOut:
        target = self.db.get(User, user_id)
        if target is None:
            raise ResourceNotFoundError("User", user_id)
        record = self.get_active()
        schedule = None
        if target.role != UserRole.admin:
            schedule = find_user_timetable(record, target)
        return UserTimetableOut(
            user_id=target.id,
            role=target.role.value,
            timetable=TimetableSummary.model_validate(record),
            schedule=schedule,
        )

    def update(self, actor: User, timetable_id: str, patch: TimetableUpdate) -> Timetable:
        record = self.repository.get(timetable_id)
        changes = patch.model_dump(exclude_unset=True)
        log_timetable_activity(self.db, actor=actor, action="update", record=record, changes=changes)
        return self.repository.update(timetable_id, changes)

    def delete(self, actor: User, timetable_id: str) -> None:
        record = self.repository.get(timetable_id)
        log_timetable_activity(self.db, actor=actor, action="delete", record=record)
        self.repository.delete(timetable_id)
