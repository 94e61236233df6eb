"""시프트 배정 레포지토리 — 배정 관련 DB 쿼리 담당.

Shift Assignment Repository — Handles all assignment-related database queries,
including the worker-window scan used by conflict detection.
"""

from datetime import date, datetime, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager

from shift_engine.models.assignment import ASSIGNMENT_ACTIVE, ASSIGNMENT_INACTIVE, ShiftAssignment
from shift_engine.models.shift import SHIFT_CANCELLED, ShiftInstance
from shift_engine.repositories.base import BaseRepository


class ShiftAssignmentRepository(BaseRepository[ShiftAssignment]):
    """시프트 배정 레포지토리.

    Extends:
        BaseRepository[ShiftAssignment]
    """

    def __init__(self) -> None:
        super().__init__(ShiftAssignment)

    async def get_active(
        self,
        db: AsyncSession,
        shift_id: UUID,
        worker_id: UUID,
    ) -> ShiftAssignment | None:
        """(시프트, 근무자) 활성 배정을 조회합니다 (Active assignment for the pair)."""
        result = await db.execute(
            select(ShiftAssignment).where(
                ShiftAssignment.shift_instance_id == shift_id,
                ShiftAssignment.worker_id == worker_id,
                ShiftAssignment.status == ASSIGNMENT_ACTIVE,
            )
        )
        return result.scalar_one_or_none()

    async def get_for_shift(
        self,
        db: AsyncSession,
        shift_id: UUID,
        include_history: bool = True,
    ) -> Sequence[ShiftAssignment]:
        """시프트의 배정 목록 — 해제 이력 포함 여부 선택.

        List a shift's assignments, newest first, optionally including
        unassigned history rows.
        """
        query = select(ShiftAssignment).where(ShiftAssignment.shift_instance_id == shift_id)
        if not include_history:
            query = query.where(ShiftAssignment.status == ASSIGNMENT_ACTIVE)
        query = query.order_by(ShiftAssignment.assigned_at.desc())
        result = await db.execute(query)
        return result.scalars().all()

    async def get_worker_active_near(
        self,
        db: AsyncSession,
        worker_id: UUID,
        date_from: date,
        date_to: date,
        exclude_shift_id: UUID | None = None,
    ) -> Sequence[ShiftAssignment]:
        """근무자의 활성 배정 중 시프트 날짜가 범위 안인 것을 조회합니다.

        Worker's active assignments whose (non-cancelled) shift falls within
        [date_from, date_to], with the shift eagerly loaded, in chronological order.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            worker_id: 근무자 UUID (Worker UUID)
            date_from: 시작 날짜 (Inclusive lower bound on shift date)
            date_to: 종료 날짜 (Inclusive upper bound on shift date)
            exclude_shift_id: 제외할 시프트 (Shift to ignore, e.g. the candidate itself)

        Returns:
            Sequence[ShiftAssignment]: shift가 로드된 배정 목록 (Assignments with .shift loaded)
        """
        query = (
            select(ShiftAssignment)
            .join(ShiftAssignment.shift)
            .options(contains_eager(ShiftAssignment.shift))
            .where(
                ShiftAssignment.worker_id == worker_id,
                ShiftAssignment.status == ASSIGNMENT_ACTIVE,
                ShiftInstance.status != SHIFT_CANCELLED,
                ShiftInstance.shift_date >= date_from,
                ShiftInstance.shift_date <= date_to,
            )
            .order_by(ShiftInstance.shift_date, ShiftInstance.start_time)
        )
        if exclude_shift_id is not None:
            query = query.where(ShiftInstance.id != exclude_shift_id)
        result = await db.execute(query.execution_options(populate_existing=True))
        return result.scalars().all()

    async def deactivate(self, db: AsyncSession, assignment_id: UUID) -> bool:
        """활성 배정을 해제 상태로 전환합니다 (소프트 전환).

        Conditionally transition an active assignment to unassigned.
        Returns False if another request already unassigned it.
        """
        result = await db.execute(
            update(ShiftAssignment)
            .where(
                ShiftAssignment.id == assignment_id,
                ShiftAssignment.status == ASSIGNMENT_ACTIVE,
            )
            .values(status=ASSIGNMENT_INACTIVE, unassigned_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def count_active_by_shift(self, db: AsyncSession) -> dict[UUID, int]:
        """시프트별 활성 배정 수 (Active assignment count per shift)."""
        result = await db.execute(
            select(ShiftAssignment.shift_instance_id, func.count())
            .where(
                ShiftAssignment.status == ASSIGNMENT_ACTIVE,
                ShiftAssignment.shift_instance_id.is_not(None),
            )
            .group_by(ShiftAssignment.shift_instance_id)
        )
        return {shift_id: count for shift_id, count in result.all()}


# 싱글턴 인스턴스 — Singleton instance
shift_assignment_repository: ShiftAssignmentRepository = ShiftAssignmentRepository()
