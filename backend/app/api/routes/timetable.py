import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from app.api.deps import get_current_user, get_orchestrator, require_roles
from app.models.user import User, UserRole
from app.schemas.timetable import (
    AutoGenerateRequest,
    GenerateFromInputRequest,
    TimetableOut,
    TimetableSummary,
    TimetableUpdate,
    UserTimetableOut,
    ValidateInputRequest,
)
from app.services.orchestrator import TimetableOrchestrator

router = APIRouter()
logger = logging.getLogger(__name__)

DISCONNECT_POLL_SECONDS = 0.5
CLIENT_CLOSED_REQUEST = 499

T = TypeVar("T")


class ClientDisconnected(Exception):
    pass


async def run_until_disconnected(request: Request, work: Awaitable[T]) -> T:
    """Await ``work`` but cancel it as soon as the client goes away."""
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_SECONDS)
            if done:
                return task.result()
            if await request.is_disconnected():
                logger.warning("Client disconnected during %s %s; cancelling", request.method, request.url.path)
                task.cancel()
                await asyncio.wait({task})
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


async def _generate(request: Request, work: Awaitable[T]) -> T | Response:
    try:
        return await run_until_disconnected(request, work)
    except ClientDisconnected:
        return Response(status_code=CLIENT_CLOSED_REQUEST)


@router.post("/auto-generate", response_model=TimetableOut, status_code=status.HTTP_201_CREATED)
async def auto_generate_timetable(
    request: Request,
    payload: AutoGenerateRequest | None = None,
    current_user: User = Depends(require_roles(UserRole.admin)),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
):
    return await _generate(request, orchestrator.auto_generate(current_user, payload or AutoGenerateRequest()))


@router.post("/", response_model=TimetableOut, status_code=status.HTTP_201_CREATED)
async def generate_from_input(
    request: Request,
    payload: GenerateFromInputRequest,
    current_user: User = Depends(require_roles(UserRole.admin)),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
):
    return await _generate(request, orchestrator.generate_from_explicit_input(current_user, payload))


@router.post("/validate")
async def validate_input(
    payload: ValidateInputRequest,
    current_user: User = Depends(require_roles(UserRole.admin)),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
) -> Any:
    return await orchestrator.validate(payload.input_data)


@router.get("/", response_model=list[TimetableSummary])
def list_timetables(
    is_active: bool | None = Query(default=None),
    current_user: User = Depends(require_roles(UserRole.admin)),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
) -> list[TimetableSummary]:
    return orchestrator.list_all(is_active=is_active)


@router.get("/active", response_model=TimetableOut)
def get_active_timetable(
    current_user: User = Depends(get_current_user),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
) -> TimetableOut:
    return orchestrator.get_active()


@router.get("/user/{user_id}", response_model=UserTimetableOut)
def get_user_timetable(
    user_id: str,
    current_user: User = Depends(get_current_user),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
) -> UserTimetableOut:
    if current_user.id != user_id and current_user.role != UserRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized access")
    return orchestrator.get_for_user(user_id)


@router.get("/{timetable_id}", response_model=TimetableOut)
def get_timetable(
    timetable_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
) -> TimetableOut:
    return orchestrator.get_by_id(timetable_id)


@router.put("/{timetable_id}", response_model=TimetableOut)
def update_timetable(
    timetable_id: str,
    payload: TimetableUpdate,
    current_user: User = Depends(require_roles(UserRole.admin)),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
) -> TimetableOut:
    return orchestrator.update(current_user, timetable_id, payload)


@router.delete("/{timetable_id}")
def delete_timetable(
    timetable_id: str,
    current_user: User = Depends(require_roles(UserRole.admin)),
    orchestrator: TimetableOrchestrator = Depends(get_orchestrator),
) -> dict:
    orchestrator.delete(current_user, timetable_id)
    return {"success": True}
