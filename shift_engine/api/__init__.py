"""API 라우터 패키지 — 모든 엔진 엔드포인트 통합.

API Router package — Aggregates the engine endpoints into a single router
for inclusion in the FastAPI application under /api/v1.

Included routers:
    - templates: 시프트 템플릿 생명주기 (Template CRUD, activation, regeneration)
    - shifts: 시프트 조회/생성/취소 및 배정 (Shifts and nested assignments)
    - maintenance: 일괄 생성, 누락 날짜, 카운터 감사 (Operator maintenance)
"""

from fastapi import APIRouter

from shift_engine.api.maintenance import router as maintenance_router
from shift_engine.api.shifts import router as shifts_router
from shift_engine.api.templates import router as templates_router

api_router: APIRouter = APIRouter()

api_router.include_router(templates_router, prefix="/templates", tags=["Shift Templates"])
api_router.include_router(shifts_router, prefix="/shifts", tags=["Shifts"])
api_router.include_router(maintenance_router, prefix="/maintenance", tags=["Maintenance"])
