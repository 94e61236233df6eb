"""시프트 템플릿 레포지토리 — 템플릿 관련 DB 쿼리 담당.

Shift Template Repository — Handles all template-related database queries.
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models.template import ShiftTemplate
from shift_engine.repositories.base import BaseRepository


class ShiftTemplateRepository(BaseRepository[ShiftTemplate]):
    """시프트 템플릿 레포지토리.

    Extends:
        BaseRepository[ShiftTemplate]
    """

    def __init__(self) -> None:
        super().__init__(ShiftTemplate)

    async def get_by_filters(
        self,
        db: AsyncSession,
        facility_id: UUID | None = None,
        is_active: bool | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[ShiftTemplate], int]:
        """필터 조건에 맞는 템플릿을 페이지네이션하여 조회합니다.

        Retrieve paginated templates, optionally filtered by facility and active flag.
        """
        query: Select = select(ShiftTemplate)
        if facility_id is not None:
            query = query.where(ShiftTemplate.facility_id == facility_id)
        if is_active is not None:
            query = query.where(ShiftTemplate.is_active == is_active)
        query = query.order_by(ShiftTemplate.created_at.desc(), ShiftTemplate.name)
        return await self.get_paginated(db, query, page, per_page)

    async def get_active(self, db: AsyncSession) -> Sequence[ShiftTemplate]:
        """활성 템플릿 전체 — 주기적 생성 작업용 (All active templates for the periodic job)."""
        result = await db.execute(
            select(ShiftTemplate)
            .where(ShiftTemplate.is_active.is_(True))
            .order_by(ShiftTemplate.created_at)
        )
        return result.scalars().all()

    async def increment_generated_count(
        self,
        db: AsyncSession,
        template_id: UUID,
        amount: int,
    ) -> None:
        """누적 생성 수를 원자적으로 증가시킵니다 (Atomic counter increment)."""
        if amount <= 0:
            return
        await db.execute(
            update(ShiftTemplate)
            .where(ShiftTemplate.id == template_id)
            .values(generated_shifts_count=ShiftTemplate.generated_shifts_count + amount)
            .execution_options(synchronize_session=False)
        )


# 싱글턴 인스턴스 — Singleton instance
shift_template_repository: ShiftTemplateRepository = ShiftTemplateRepository()
