"""시프트 인스턴스 Pydantic 스키마.

Shift instance request/response schemas.
"""

from datetime import date, datetime, time
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from shift_engine.schemas.template import Urgency


class AdhocShiftCreate(BaseModel):
    """수동 시프트 생성 요청 — 템플릿 없이 직접 생성 (template_id = None).

    Ad-hoc shift creation request; capacity is explicit and frozen.
    """

    facility_id: UUID
    department: str = Field(min_length=1, max_length=100)
    specialty: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=255)
    shift_date: date
    start_time: time
    end_time: time
    capacity: int = Field(default=1, ge=1)
    urgency: Urgency = "medium"
    hourly_rate: Decimal | None = None
    notes: str | None = None


class ShiftResponse(BaseModel):
    id: str
    template_id: str | None
    slot_index: int | None
    facility_id: str
    department: str
    specialty: str
    title: str
    shift_date: date
    start_time: str  # "HH:MM"
    end_time: str  # "HH:MM"
    duration_hours: float
    capacity: int
    filled_count: int
    status: str
    urgency: str
    hourly_rate: Decimal | None
    notes: str | None
    created_at: datetime


class FillAuditEntry(BaseModel):
    """filled_count와 활성 배정 수가 어긋난 시프트 (A shift whose counter drifted)."""

    shift_id: str
    filled_count: int
    active_assignments: int
    status: str
    expected_status: str


class FillAuditResponse(BaseModel):
    checked: int
    drifted: list[FillAuditEntry]
    repaired: bool
