"""시프트 템플릿 Pydantic 스키마.

Shift template request/response schemas.
Pattern rules (weekday range, staff bounds, horizon) are enforced by the
template service so they surface as InvalidRecurrencePattern errors rather
than generic 422 responses.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

Urgency = Literal["low", "medium", "high", "critical"]


class ShiftTemplateCreate(BaseModel):
    """시프트 템플릿 생성 요청 스키마.

    Attributes:
        weekdays: 근무 요일, 0=일요일 … 6=토요일 (Weekday pattern, 0 = Sunday)
        start_time: 시작 시각 "HH:MM" (Wall-clock start)
        end_time: 종료 시각 "HH:MM", 시작보다 이르면 익일 종료 (Earlier than start = ends next day)
        horizon_days: 게시 기간, 생략 시 기본값 (Rolling horizon; server default when omitted)
    """

    name: str = Field(min_length=1, max_length=255)
    facility_id: UUID
    department: str = Field(min_length=1, max_length=100)
    specialty: str = Field(min_length=1, max_length=100)
    weekdays: list[int]
    start_time: time
    end_time: time
    min_staff: int = 1
    max_staff: int = 1
    hourly_rate: Decimal | None = None
    horizon_days: int | None = None
    urgency: Urgency = "medium"
    notes: str | None = None
    is_active: bool = True


class ShiftTemplateUpdate(BaseModel):
    """시프트 템플릿 수정 요청 — 전달된 필드만 반영 (exclude_unset patch).

    Activation is changed through the dedicated activation endpoint.
    """

    name: str | None = Field(default=None, min_length=1, max_length=255)
    department: str | None = Field(default=None, min_length=1, max_length=100)
    specialty: str | None = Field(default=None, min_length=1, max_length=100)
    weekdays: list[int] | None = None
    start_time: time | None = None
    end_time: time | None = None
    min_staff: int | None = None
    max_staff: int | None = None
    hourly_rate: Decimal | None = None
    horizon_days: int | None = None
    urgency: Urgency | None = None
    notes: str | None = None


class ShiftTemplateActiveUpdate(BaseModel):
    is_active: bool


class ShiftTemplateResponse(BaseModel):
    id: str
    name: str
    facility_id: str
    department: str
    specialty: str
    weekdays: list[int]
    start_time: str  # "HH:MM"
    end_time: str  # "HH:MM"
    min_staff: int
    max_staff: int
    hourly_rate: Decimal | None
    horizon_days: int
    urgency: str
    notes: str | None
    is_active: bool
    generated_shifts_count: int
    created_at: datetime
    updated_at: datetime


class RegenerationResponse(BaseModel):
    """재생성 결과 — 새로 생성된 인스턴스 수 (Newly created instance count)."""

    template_id: str
    generated_count: int


class MissingDatesResponse(BaseModel):
    """생성 누락 날짜 — 패턴상 필요하지만 인스턴스가 없는 날짜.

    Pattern dates inside the horizon that have no instance yet.
    """

    template_id: str
    template_name: str
    dates: list[date]


class ReconcileResponse(BaseModel):
    """인스턴스 정합성 점검 결과 (Instance reconciliation report)."""

    template_id: str
    fixed: int
    issues: list[str]


class GenerationRunResponse(BaseModel):
    """활성 템플릿 일괄 생성 결과 (Periodic generation run summary)."""

    templates: int
    generated_count: int
    failed_template_ids: list[str]
