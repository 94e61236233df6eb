"""유지보수 라우터 — 일괄 생성, 누락 날짜 보고, 충원 카운터 감사.

Maintenance Router — Operator endpoints for the periodic generation run,
the missing-date report and the fill-count audit.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.api.deps import get_shift_service, get_template_service
from shift_engine.database import get_db
from shift_engine.schemas.shift import FillAuditResponse
from shift_engine.schemas.template import GenerationRunResponse, MissingDatesResponse
from shift_engine.services.shift_service import ShiftService
from shift_engine.services.template_service import TemplateService

router: APIRouter = APIRouter()


@router.post("/generate", response_model=GenerationRunResponse)
async def generate_active_templates(
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> GenerationRunResponse:
    """활성 템플릿 전체를 게시 기간만큼 전개합니다 (Same work as the daily job)."""
    return await service.generate_for_active_templates(db)


@router.get("/missing-dates", response_model=list[MissingDatesResponse])
async def find_missing_dates(
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
    days_ahead: Annotated[int | None, Query(ge=1, le=365)] = None,
) -> list[MissingDatesResponse]:
    return await service.find_missing_dates(db, days_ahead)


@router.post("/fill-audit", response_model=FillAuditResponse)
async def audit_fill_counts(
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[ShiftService, Depends(get_shift_service)],
    repair: Annotated[bool, Query()] = False,
) -> FillAuditResponse:
    """filled_count와 활성 배정 수를 비교하고 선택적으로 복구합니다.

    Compare counters with active assignments; ``repair=true`` fixes drift.
    """
    return await service.audit_fill_counts(db, repair)
