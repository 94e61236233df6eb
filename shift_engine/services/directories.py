"""디렉터리 서비스 — 외부 시설/근무자 시스템 조회 인터페이스.

Directory services — Narrow read interfaces to the external facility and
worker systems. The engine depends only on the Protocols; the SQL
implementations read the mirrored ``facilities`` and ``workers`` tables.
"""

from typing import Protocol
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models.directory import Facility, Worker


class WorkerProfile(BaseModel):
    """배정 검증에 필요한 근무자 정보 (Worker facts needed for assignment)."""

    id: UUID
    specialty: str
    is_active: bool


class WorkerDirectory(Protocol):
    async def get_worker(self, db: AsyncSession, worker_id: UUID) -> WorkerProfile | None: ...


class FacilityDirectory(Protocol):
    async def facility_exists(self, db: AsyncSession, facility_id: UUID) -> bool: ...


class SqlWorkerDirectory:
    """workers 미러 테이블 기반 근무자 디렉터리."""

    async def get_worker(self, db: AsyncSession, worker_id: UUID) -> WorkerProfile | None:
        result = await db.execute(
            select(Worker.id, Worker.specialty, Worker.is_active).where(Worker.id == worker_id)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return WorkerProfile(id=row.id, specialty=row.specialty, is_active=row.is_active)


class SqlFacilityDirectory:
    """facilities 미러 테이블 기반 시설 디렉터리 — 비활성 시설은 없는 것으로 취급."""

    async def facility_exists(self, db: AsyncSession, facility_id: UUID) -> bool:
        result = await db.execute(
            select(Facility.id).where(Facility.id == facility_id, Facility.is_active.is_(True))
        )
        return result.scalar_one_or_none() is not None
