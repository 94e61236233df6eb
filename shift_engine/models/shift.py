"""시프트 인스턴스 SQLAlchemy ORM 모델 정의.

Shift instance SQLAlchemy ORM model definitions.
A shift instance is a dated, capacity-bound unit of work, either generated
from a template slot (deterministic id) or created ad-hoc (random id).

Tables:
    - shift_instances: 날짜별 시프트 (Dated shifts with capacity counters)

Status Flow:
    open → partially_filled → filled (배정/해제에 따라 양방향, derived from filled_count)
    any → cancelled (취소 후 배정 불가, no assignment accepted afterwards)
"""

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from sqlalchemy import String, DateTime, Date, Integer, Numeric, Text, Time, CheckConstraint, ForeignKey, Index, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shift_engine.database import Base
from shift_engine.utils.time_window import shift_hours

# 시프트 상태 — Shift status values
SHIFT_OPEN: str = "open"
SHIFT_PARTIALLY_FILLED: str = "partially_filled"
SHIFT_FILLED: str = "filled"
SHIFT_CANCELLED: str = "cancelled"

# 배정 가능한 상태 — Statuses listed as open shifts
OPEN_STATUSES: tuple[str, ...] = (SHIFT_OPEN, SHIFT_PARTIALLY_FILLED)

URGENCY_LEVELS: tuple[str, ...] = ("low", "medium", "high", "critical")


def status_of(filled: int, capacity: int) -> str:
    """배정 인원과 정원으로 충원 상태를 계산합니다.

    Derive the fill status from the filled count and capacity.
    Cancellation is not derived; callers keep a cancelled status as-is.
    """
    if filled <= 0:
        return SHIFT_OPEN
    if filled < capacity:
        return SHIFT_PARTIALLY_FILLED
    return SHIFT_FILLED


class ShiftInstance(Base):
    """시프트 인스턴스 모델 — 정원 카운터를 가진 날짜별 근무.

    Shift instance model — Dated shift with a frozen capacity and a
    filled counter maintained exclusively by the assignment engine.

    Attributes:
        id: 고유 식별자 (Deterministic slot id for template rows, uuid4 for ad-hoc)
        template_id: 원본 템플릿 FK, 수동 생성 시 None (Source template, None for ad-hoc)
        slot_index: 날짜 내 슬롯 번호 (Slot position within the date, template rows only)
        shift_date: 근무 날짜 (Calendar date the shift starts on)
        capacity: 정원, 생성 시 고정 (Capacity frozen at creation)
        filled_count: 현재 배정 인원 (Active assignment count)
        status: 충원 상태 (open / partially_filled / filled / cancelled)
        urgency: 긴급도 (low / medium / high / critical)

    Constraints:
        uq_shift_instance_template_slot: 템플릿+날짜+슬롯 중복 방지
            (Second dedup guard next to the deterministic primary key)
    """

    __tablename__ = "shift_instances"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("shift_templates.id", ondelete="SET NULL"), nullable=True)
    slot_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    facility_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("facilities.id", ondelete="RESTRICT"), nullable=False)
    department: Mapped[str] = mapped_column(String(100), nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    shift_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    filled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SHIFT_OPEN)
    urgency: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")
    hourly_rate: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint("template_id", "shift_date", "slot_index", name="uq_shift_instance_template_slot"),
        CheckConstraint("filled_count >= 0 AND filled_count <= capacity", name="ck_shift_instances_fill_bounds"),
        Index("ix_shift_instances_template_date", "template_id", "shift_date"),
        Index("ix_shift_instances_facility_date_status", "facility_id", "shift_date", "status"),
        Index("ix_shift_instances_specialty_date", "specialty", "shift_date"),
    )

    @property
    def duration_hours(self) -> float:
        """근무 시간(시간 단위) — 자정을 넘기는 시프트 포함 (Overnight aware)."""
        return shift_hours(self.start_time, self.end_time)
