"""SQLAlchemy ORM 모델 패키지 — 모든 도메인 모델의 중앙 임포트 지점.

SQLAlchemy ORM models package — Central import point for all domain models.
Importing from this package ensures all models are registered with the
SQLAlchemy metadata, which is required for Alembic migrations and
relationship resolution.

Modules:
    directory: 시설, 근무자 읽기 모델 (Facility and worker read models)
    template: 시프트 템플릿 (Recurring shift templates)
    shift: 시프트 인스턴스 (Dated shift instances)
    assignment: 시프트 배정 (Worker assignments with history)
"""

from shift_engine.models.directory import Facility, Worker
from shift_engine.models.template import ShiftTemplate
from shift_engine.models.shift import ShiftInstance
from shift_engine.models.assignment import ShiftAssignment

__all__ = [
    "Facility", "Worker",
    "ShiftTemplate",
    "ShiftInstance",
    "ShiftAssignment",
]
