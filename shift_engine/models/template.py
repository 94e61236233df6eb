"""시프트 템플릿 SQLAlchemy ORM 모델 정의.

Shift template SQLAlchemy ORM model definitions.
A template is a recurring staffing need that the recurrence expander
materializes into dated shift instances over a rolling horizon.

Tables:
    - shift_templates: 반복 근무 정의 (Recurring staffing definitions)
"""

import uuid
from datetime import datetime, time, timezone
from decimal import Decimal
from sqlalchemy import String, DateTime, Integer, Numeric, Text, Time, Boolean, CheckConstraint, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shift_engine.database import Base, JSONDocument


class ShiftTemplate(Base):
    """시프트 템플릿 모델 — 요일 패턴 기반 반복 인력 수요.

    Shift template model — Weekly recurring staffing need for a facility
    department and specialty.

    Weekday Encoding:
        weekdays는 0=일요일 … 6=토요일 정수 목록입니다.
        (weekdays is a list of ints where 0 = Sunday … 6 = Saturday.)

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        name: 템플릿 이름 (Template display name, copied into instance titles)
        facility_id: 시설 FK (Facility that owns the need)
        department: 부서 (Department, e.g. "ICU")
        specialty: 요구 전문 분야 (Required worker specialty, e.g. "RN")
        weekdays: 근무 요일 목록 (Weekday pattern)
        start_time: 시작 시각 (Wall-clock start)
        end_time: 종료 시각, 자정 넘김 가능 (Wall-clock end, may wrap past midnight)
        min_staff: 날짜별 생성 슬롯 수 (Slots generated per date)
        max_staff: 최대 인원 (Upper staffing bound, >= min_staff)
        hourly_rate: 시급 (Hourly rate, informational)
        horizon_days: 게시 기간(일) (Rolling horizon length in days)
        urgency: 생성 시프트 긴급도 (Urgency copied onto generated instances)
        is_active: 활성 상태 — 비활성 템플릿은 확장되지 않음 (Inactive templates are never expanded)
        generated_shifts_count: 누적 생성 시프트 수 (Running total of created instances)
    """

    __tablename__ = "shift_templates"

    # 템플릿 고유 식별자 — Template unique identifier (UUID v4, auto-generated)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 시설 FK — Owning facility (RESTRICT: 시프트 이력이 있는 시설은 삭제 불가)
    facility_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("facilities.id", ondelete="RESTRICT"), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)
    # 요일 패턴 — JSONB array [0..6], 0=Sunday
    weekdays: Mapped[list[int]] = mapped_column(JSONDocument, nullable=False, default=list)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    min_staff: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    max_staff: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    horizon_days: Mapped[int] = mapped_column(Integer, nullable=False, default=14)
    urgency: Mapped[str] = mapped_column(String(20), default="medium")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    # 누적 생성 수 — Incremented by the expander with the number of rows it inserted
    generated_shifts_count: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        CheckConstraint("min_staff >= 1 AND max_staff >= min_staff", name="ck_shift_templates_staff_bounds"),
        Index("ix_shift_templates_facility_active", "facility_id", "is_active"),
    )
