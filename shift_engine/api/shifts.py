"""시프트 라우터 — 배정 가능 시프트 조회, 수동 생성, 취소, 배정/해제.

Shift Router — Open-shift listing, ad-hoc creation, cancellation and the
assignment endpoints nested under /shifts/{shift_id}/assignments.
"""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.api.deps import get_assignment_engine, get_shift_service
from shift_engine.database import get_db
from shift_engine.schemas.assignment import AssignmentOutcomeResponse, AssignmentResponse, AssignWorkerRequest
from shift_engine.schemas.common import PaginatedResponse
from shift_engine.schemas.shift import AdhocShiftCreate, ShiftResponse
from shift_engine.services.assignment_service import (
    AssignmentEngine,
    to_assignment_response,
    to_outcome_response,
)
from shift_engine.services.shift_service import ShiftService

router: APIRouter = APIRouter()


@router.get("/open", response_model=PaginatedResponse)
async def list_open_shifts(
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[ShiftService, Depends(get_shift_service)],
    facility_id: Annotated[UUID | None, Query()] = None,
    specialty: Annotated[str | None, Query()] = None,
    date_from: Annotated[date | None, Query()] = None,
    date_to: Annotated[date | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> dict:
    """배정 가능한 시프트 목록 (open / partially_filled, 날짜순).

    List shifts still accepting workers, ordered by date and start time.
    """
    shifts, total = await service.list_open_shifts(
        db, facility_id, specialty, date_from, date_to, page, per_page
    )
    return {"items": service.to_responses(shifts), "total": total, "page": page, "per_page": per_page}


@router.post("", response_model=ShiftResponse, status_code=201)
async def create_adhoc_shift(
    data: AdhocShiftCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[ShiftService, Depends(get_shift_service)],
) -> ShiftResponse:
    """템플릿 없이 시프트를 생성합니다 (Create a one-off shift)."""
    return service.to_response(await service.create_adhoc_shift(db, data))


@router.get("/{shift_id}", response_model=ShiftResponse)
async def get_shift(
    shift_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[ShiftService, Depends(get_shift_service)],
) -> ShiftResponse:
    return service.to_response(await service.get_shift(db, shift_id))


@router.post("/{shift_id}/cancel", response_model=ShiftResponse)
async def cancel_shift(
    shift_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[ShiftService, Depends(get_shift_service)],
) -> ShiftResponse:
    """시프트를 취소합니다 — 이후 배정 불가 (Cancel; later assigns are rejected)."""
    return service.to_response(await service.cancel_shift(db, shift_id))


# === 배정 (Assignments) ===

@router.get("/{shift_id}/assignments", response_model=list[AssignmentResponse])
async def list_assignments(
    shift_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
    include_history: Annotated[bool, Query()] = True,
) -> list[AssignmentResponse]:
    """시프트의 배정 목록 — 해제 이력 포함 가능.

    List a shift's assignments, optionally including unassigned history.
    """
    assignments = await engine.get_assignments(db, shift_id, include_history)
    return [to_assignment_response(a) for a in assignments]


@router.post("/{shift_id}/assignments", response_model=AssignmentOutcomeResponse, status_code=201)
async def assign_worker(
    shift_id: UUID,
    data: AssignWorkerRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> AssignmentOutcomeResponse:
    """근무자를 시프트에 배정합니다.

    Assign a worker. Rejections carry ``{"code", "message", "context"}``
    with the error kind in ``code``.
    """
    assignment, shift = await engine.assign(db, shift_id, data.worker_id, data.assigned_by)
    return to_outcome_response(assignment, shift)


@router.delete("/{shift_id}/assignments/{worker_id}", response_model=AssignmentOutcomeResponse)
async def unassign_worker(
    shift_id: UUID,
    worker_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Annotated[AssignmentEngine, Depends(get_assignment_engine)],
) -> AssignmentOutcomeResponse:
    """근무자 배정을 해제합니다 (Unassign a worker)."""
    assignment, shift = await engine.unassign(db, shift_id, worker_id)
    return to_outcome_response(assignment, shift)
