"""FastAPI 의존성 주입 모듈 — 엔진 서비스 제공자.

FastAPI dependency injection module — Providers for the engine services.
Routers receive services through these functions, so tests (and deployments
with other directories or event sinks) can swap them with
``app.dependency_overrides``.
"""

from shift_engine.services.assignment_service import AssignmentEngine, assignment_engine
from shift_engine.services.shift_service import ShiftService, shift_service
from shift_engine.services.template_service import TemplateService, template_service


def get_assignment_engine() -> AssignmentEngine:
    return assignment_engine


def get_template_service() -> TemplateService:
    return template_service


def get_shift_service() -> ShiftService:
    return shift_service
