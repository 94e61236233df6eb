"""시프트 인스턴스 레포지토리 — 인스턴스 관련 DB 쿼리 담당.

Shift Instance Repository — Handles all shift-instance database queries.
This repository is the sole writer of ``filled_count`` and ``status``: both
change only through the conditional UPDATE statements below, which makes the
check-and-increment a single atomic statement per shift.
"""

from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import Select, case, delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models.shift import (
    OPEN_STATUSES,
    SHIFT_CANCELLED,
    SHIFT_FILLED,
    SHIFT_OPEN,
    SHIFT_PARTIALLY_FILLED,
    ShiftInstance,
)
from shift_engine.repositories.base import BaseRepository


def _insert_ignoring_conflicts(dialect_name: str, values: dict[str, Any]):
    """방언별 INSERT … ON CONFLICT DO NOTHING 문을 만듭니다.

    Build an upsert-or-conflict insert for the active dialect. The conflict
    target is left open so both the primary key and the
    (template_id, shift_date, slot_index) constraint deduplicate.
    """
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        return pg_insert(ShiftInstance).values(**values).on_conflict_do_nothing()
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        return sqlite_insert(ShiftInstance).values(**values).on_conflict_do_nothing()
    return None


class ShiftInstanceRepository(BaseRepository[ShiftInstance]):
    """시프트 인스턴스 레포지토리.

    Extends:
        BaseRepository[ShiftInstance]
    """

    def __init__(self) -> None:
        super().__init__(ShiftInstance)

    # --- 생성/정리 (Generation and cleanup) ---

    async def insert_if_absent(self, db: AsyncSession, values: dict[str, Any]) -> bool:
        """인스턴스를 삽입하고, 같은 id가 이미 있으면 아무것도 하지 않습니다.

        Insert a shift instance unless one with the same id (or template slot)
        already exists.

        Returns:
            bool: 실제로 삽입되었는지 여부 (Whether a row was inserted)
        """
        stmt = _insert_ignoring_conflicts(db.get_bind().dialect.name, values)
        if stmt is None:
            # 방언 미지원 — check-then-insert fallback for other dialects
            if await db.get(ShiftInstance, values["id"]) is not None:
                return False
            db.add(ShiftInstance(**values))
            await db.flush()
            return True
        result = await db.execute(stmt)
        return result.rowcount == 1

    async def refresh_unassigned(
        self,
        db: AsyncSession,
        shift_id: UUID,
        values: dict[str, Any],
    ) -> bool:
        """미배정 인스턴스의 정적 필드를 템플릿 값으로 갱신합니다.

        Overwrite static fields of an instance only while nobody is assigned.

        Returns:
            bool: 갱신 여부 (Whether the row was updated)
        """
        result = await db.execute(
            update(ShiftInstance)
            .where(
                ShiftInstance.id == shift_id,
                ShiftInstance.filled_count == 0,
                ShiftInstance.status != SHIFT_CANCELLED,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def purge_unassigned_future(
        self,
        db: AsyncSession,
        template_id: UUID,
        from_date: date,
    ) -> int:
        """템플릿의 미배정 미래 인스턴스를 삭제합니다.

        Delete every instance of the template dated ``from_date`` or later
        that has nobody assigned. Instances with filled_count > 0 are never touched.

        Returns:
            int: 삭제된 인스턴스 수 (Number of deleted instances)
        """
        result = await db.execute(
            delete(ShiftInstance)
            .where(
                ShiftInstance.template_id == template_id,
                ShiftInstance.shift_date >= from_date,
                ShiftInstance.filled_count == 0,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def delete_unassigned(self, db: AsyncSession, shift_id: UUID) -> bool:
        """단일 미배정 인스턴스 삭제 (Delete one instance if nobody is assigned)."""
        result = await db.execute(
            delete(ShiftInstance)
            .where(ShiftInstance.id == shift_id, ShiftInstance.filled_count == 0)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def get_dates_in_window(
        self,
        db: AsyncSession,
        template_id: UUID,
        start: date,
        end: date,
    ) -> set[date]:
        """기간 내 인스턴스가 존재하는 날짜 집합 (Dates that already have instances)."""
        result = await db.execute(
            select(ShiftInstance.shift_date)
            .where(
                ShiftInstance.template_id == template_id,
                ShiftInstance.shift_date >= start,
                ShiftInstance.shift_date <= end,
            )
            .distinct()
        )
        return set(result.scalars().all())

    async def get_future_for_template(
        self,
        db: AsyncSession,
        template_id: UUID,
        from_date: date,
    ) -> Sequence[ShiftInstance]:
        result = await db.execute(
            select(ShiftInstance)
            .where(
                ShiftInstance.template_id == template_id,
                ShiftInstance.shift_date >= from_date,
            )
            .order_by(ShiftInstance.shift_date, ShiftInstance.slot_index)
        )
        return result.scalars().all()

    # --- 정원 카운터 (Capacity counter) ---

    async def reserve_seat(self, db: AsyncSession, shift_id: UUID) -> bool:
        """정원이 남아 있으면 filled_count를 1 증가시키고 상태를 재계산합니다.

        Conditionally increment filled_count and recompute status in one
        statement: ``UPDATE … SET filled_count = filled_count + 1
        WHERE id = ? AND filled_count < capacity AND status != 'cancelled'``.

        Returns:
            bool: 영향받은 행이 정확히 1개인지 (Whether exactly one row was updated)
        """
        filled_after = ShiftInstance.filled_count + 1
        result = await db.execute(
            update(ShiftInstance)
            .where(
                ShiftInstance.id == shift_id,
                ShiftInstance.filled_count < ShiftInstance.capacity,
                ShiftInstance.status != SHIFT_CANCELLED,
            )
            .values(
                filled_count=filled_after,
                status=case(
                    (filled_after >= ShiftInstance.capacity, SHIFT_FILLED),
                    else_=SHIFT_PARTIALLY_FILLED,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def release_seat(self, db: AsyncSession, shift_id: UUID) -> bool:
        """filled_count를 1 감소시키고 상태를 재계산합니다 (0 미만 불가).

        Conditionally decrement filled_count; status never drops below open
        and a cancelled shift stays cancelled.
        """
        filled_after = ShiftInstance.filled_count - 1
        result = await db.execute(
            update(ShiftInstance)
            .where(ShiftInstance.id == shift_id, ShiftInstance.filled_count > 0)
            .values(
                filled_count=filled_after,
                status=case(
                    (ShiftInstance.status == SHIFT_CANCELLED, SHIFT_CANCELLED),
                    (filled_after <= 0, SHIFT_OPEN),
                    (filled_after >= ShiftInstance.capacity, SHIFT_FILLED),
                    else_=SHIFT_PARTIALLY_FILLED,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def set_fill_state(
        self,
        db: AsyncSession,
        shift_id: UUID,
        filled_count: int,
        status: str,
    ) -> None:
        """감사 복구용 — Overwrite the counter pair (fill-count repair only)."""
        await db.execute(
            update(ShiftInstance)
            .where(ShiftInstance.id == shift_id)
            .values(filled_count=filled_count, status=status)
            .execution_options(synchronize_session=False)
        )

    async def mark_cancelled(self, db: AsyncSession, shift_id: UUID) -> bool:
        result = await db.execute(
            update(ShiftInstance)
            .where(ShiftInstance.id == shift_id, ShiftInstance.status != SHIFT_CANCELLED)
            .values(status=SHIFT_CANCELLED)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # --- 조회 (Queries) ---

    async def get_open(
        self,
        db: AsyncSession,
        facility_id: UUID | None = None,
        specialty: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[ShiftInstance], int]:
        """배정 가능한 시프트를 페이지네이션하여 조회합니다.

        Retrieve paginated shifts that still accept workers
        (status open or partially_filled), ordered chronologically.
        """
        query: Select = select(ShiftInstance).where(ShiftInstance.status.in_(OPEN_STATUSES))
        if facility_id is not None:
            query = query.where(ShiftInstance.facility_id == facility_id)
        if specialty is not None:
            query = query.where(ShiftInstance.specialty == specialty)
        if date_from is not None:
            query = query.where(ShiftInstance.shift_date >= date_from)
        if date_to is not None:
            query = query.where(ShiftInstance.shift_date <= date_to)
        query = query.order_by(
            ShiftInstance.shift_date,
            ShiftInstance.start_time,
            ShiftInstance.slot_index,
        )
        return await self.get_paginated(db, query, page, per_page)

    async def get_all_fill_states(self, db: AsyncSession) -> Sequence[tuple[UUID, int, int, str]]:
        """모든 인스턴스의 (id, filled_count, capacity, status) — audit input."""
        result = await db.execute(
            select(
                ShiftInstance.id,
                ShiftInstance.filled_count,
                ShiftInstance.capacity,
                ShiftInstance.status,
            )
        )
        return [tuple(row) for row in result.all()]


# 싱글턴 인스턴스 — Singleton instance
shift_instance_repository: ShiftInstanceRepository = ShiftInstanceRepository()
