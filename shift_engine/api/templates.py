"""시프트 템플릿 라우터 — 템플릿 CRUD 및 생명주기 엔드포인트.

Shift Template Router — CRUD and lifecycle endpoints for shift templates.
Services own their transactions; routers only translate HTTP to service calls.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.api.deps import get_template_service
from shift_engine.database import get_db
from shift_engine.schemas.common import PaginatedResponse
from shift_engine.schemas.template import (
    ReconcileResponse,
    RegenerationResponse,
    ShiftTemplateActiveUpdate,
    ShiftTemplateCreate,
    ShiftTemplateResponse,
    ShiftTemplateUpdate,
)
from shift_engine.services.template_service import TemplateService, to_template_response

router: APIRouter = APIRouter()


@router.get("", response_model=PaginatedResponse)
async def list_templates(
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
    facility_id: Annotated[UUID | None, Query()] = None,
    is_active: Annotated[bool | None, Query()] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    per_page: Annotated[int, Query(ge=1, le=100)] = 20,
) -> dict:
    """템플릿 목록을 조회합니다 (시설/활성 필터).

    List templates, optionally filtered by facility and active flag.
    """
    templates, total = await service.list_templates(db, facility_id, is_active, page, per_page)
    return {
        "items": [to_template_response(t).model_dump(mode="json") for t in templates],
        "total": total,
        "page": page,
        "per_page": per_page,
    }


@router.post("", response_model=ShiftTemplateResponse, status_code=201)
async def create_template(
    data: ShiftTemplateCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ShiftTemplateResponse:
    """템플릿을 생성하고 활성이면 게시 기간만큼 시프트를 생성합니다.

    Create a template; an active template is expanded immediately.
    """
    template = await service.create_template(db, data)
    return to_template_response(template)


@router.get("/{template_id}", response_model=ShiftTemplateResponse)
async def get_template(
    template_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ShiftTemplateResponse:
    return to_template_response(await service.get_template(db, template_id))


@router.patch("/{template_id}", response_model=ShiftTemplateResponse)
async def update_template(
    template_id: UUID,
    data: ShiftTemplateUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ShiftTemplateResponse:
    """템플릿을 수정합니다 — 활성 템플릿은 미배정 미래 시프트를 다시 생성.

    Update a template; an active template regenerates its unassigned future shifts.
    """
    template = await service.update_template(db, template_id, data)
    return to_template_response(template)


@router.put("/{template_id}/active", response_model=ShiftTemplateResponse)
async def set_template_active(
    template_id: UUID,
    data: ShiftTemplateActiveUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ShiftTemplateResponse:
    """템플릿 활성/비활성 전환 (Activate or deactivate a template)."""
    template = await service.set_template_active(db, template_id, data.is_active)
    return to_template_response(template)


@router.post("/{template_id}/regenerate", response_model=RegenerationResponse)
async def regenerate_shifts(
    template_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> RegenerationResponse:
    """미배정 미래 시프트를 삭제하고 다시 생성합니다.

    Purge unassigned future shifts and expand again (active templates only).
    """
    generated: int = await service.regenerate_shifts(db, template_id)
    return RegenerationResponse(template_id=str(template_id), generated_count=generated)


@router.post("/{template_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_instances(
    template_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ReconcileResponse:
    return await service.reconcile_instances(db, template_id)
