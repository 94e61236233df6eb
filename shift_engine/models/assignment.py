"""시프트 배정 SQLAlchemy ORM 모델 정의.

Shift assignment SQLAlchemy ORM model definitions.
Links a worker to a shift instance. Unassignment is a soft transition so the
full history stays queryable for audit; rows are never hard-deleted.

Tables:
    - shift_assignments: 근무자-시프트 배정 이력 (Worker-to-shift assignment history)

JSON Snapshot Structure (shift_snapshot):
    배정 시점의 시프트 정보를 복사합니다. 재생성으로 인스턴스가 삭제되어도 이력이 남습니다.
    Copied from the shift at assignment time so history survives instance cleanup:
    {
        "shift_date": "2026-10-19",
        "start_time": "07:00",
        "end_time": "19:00",
        "facility_id": "…",
        "department": "ICU",
        "specialty": "RN"
    }
"""

import uuid
from datetime import datetime, timezone
from typing import Any
from sqlalchemy import String, DateTime, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shift_engine.database import Base, JSONDocument

# 배정 상태 — Assignment status values
ASSIGNMENT_ACTIVE: str = "assigned"
ASSIGNMENT_INACTIVE: str = "unassigned"


class ShiftAssignment(Base):
    """시프트 배정 모델.

    Shift assignment model. The number of rows with status "assigned" for a
    shift always equals that shift's filled_count.

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        shift_instance_id: 시프트 FK, 인스턴스 삭제 시 NULL (Shift, nulled when the instance is purged)
        worker_id: 근무자 FK (Assigned worker)
        assigned_by: 배정자 UUID (Who made the assignment)
        assigned_at: 배정 일시 UTC (Assignment timestamp)
        status: "assigned" | "unassigned"
        unassigned_at: 해제 일시 UTC (Unassignment timestamp)
        shift_snapshot: 배정 시점 시프트 정보 (Shift details frozen at assignment time)

    Constraints:
        uq_shift_assignment_active_pair: 활성 배정은 (시프트, 근무자)당 하나
            (At most one active assignment per shift and worker)
    """

    __tablename__ = "shift_assignments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    shift_instance_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("shift_instances.id", ondelete="SET NULL"), nullable=True)
    worker_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("workers.id", ondelete="RESTRICT"), nullable=False)
    assigned_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ASSIGNMENT_ACTIVE)
    unassigned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    shift_snapshot: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument, nullable=True)

    __table_args__ = (
        Index(
            "uq_shift_assignment_active_pair",
            "shift_instance_id",
            "worker_id",
            unique=True,
            postgresql_where=text("status = 'assigned'"),
            sqlite_where=text("status = 'assigned'"),
        ),
        Index("ix_shift_assignments_worker_status", "worker_id", "status"),
    )

    # 관계 — Relationships (충돌 검사에서 contains_eager로 로드)
    shift = relationship("ShiftInstance", lazy="raise")
