"""충돌 검사기 — 근무자의 기존 배정과 시간이 겹치는지 확인합니다.

Conflict Detector — Checks whether a candidate shift overlaps any of a
worker's active assignments. Shifts are compared as absolute half-open
minute intervals, so an overnight shift ending 07:00 conflicts with a shift
starting 06:00 the next day, while one starting exactly 07:00 does not.
"""

from datetime import date, time, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models.assignment import ShiftAssignment
from shift_engine.repositories.assignment_repository import shift_assignment_repository
from shift_engine.utils.time_window import Interval, format_hhmm, overlaps, shift_interval

# 하루 이상 근무는 없으므로 ±1일만 조사 — no shift spans more than 24 hours
_SCAN_DAYS: int = 1


def conflict_context(assignment: ShiftAssignment) -> dict[str, Any]:
    """충돌 배정의 진단 정보 (Diagnostic context for ScheduleConflict)."""
    shift = assignment.shift
    return {
        "assignment_id": assignment.id,
        "shift_id": shift.id,
        "shift_date": shift.shift_date.isoformat(),
        "start_time": format_hhmm(shift.start_time),
        "end_time": format_hhmm(shift.end_time),
        "facility_id": shift.facility_id,
    }


class ConflictDetector:
    """근무 시간 충돌 검사기."""

    async def find_conflict(
        self,
        db: AsyncSession,
        worker_id: UUID,
        shift_date: date,
        start_time: time,
        end_time: time,
        exclude_shift_id: UUID | None = None,
    ) -> ShiftAssignment | None:
        """후보 시프트와 겹치는 근무자의 첫 번째 활성 배정을 찾습니다.

        Find the chronologically first active assignment of the worker whose
        (non-cancelled) shift overlaps the candidate.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            worker_id: 근무자 UUID (Worker UUID)
            shift_date: 후보 시프트 날짜 (Candidate shift date)
            start_time: 후보 시작 시각 (Candidate start)
            end_time: 후보 종료 시각 (Candidate end, overnight aware)
            exclude_shift_id: 비교에서 제외할 시프트 (Usually the candidate itself)

        Returns:
            ShiftAssignment | None: 충돌 배정, shift 로드됨 (Conflicting assignment with .shift loaded)
        """
        candidate: Interval = shift_interval(shift_date, start_time, end_time)
        nearby = await shift_assignment_repository.get_worker_active_near(
            db,
            worker_id,
            shift_date - timedelta(days=_SCAN_DAYS),
            shift_date + timedelta(days=_SCAN_DAYS),
            exclude_shift_id=exclude_shift_id,
        )
        for assignment in nearby:
            existing = assignment.shift
            if overlaps(candidate, shift_interval(existing.shift_date, existing.start_time, existing.end_time)):
                return assignment
        return None

    async def has_conflict(
        self,
        db: AsyncSession,
        worker_id: UUID,
        shift_date: date,
        start_time: time,
        end_time: time,
        exclude_shift_id: UUID | None = None,
    ) -> tuple[bool, dict[str, Any] | None]:
        """(충돌 여부, 충돌 배정 정보) — (conflict?, conflicting assignment context)."""
        found = await self.find_conflict(db, worker_id, shift_date, start_time, end_time, exclude_shift_id)
        if found is None:
            return False, None
        return True, conflict_context(found)


conflict_detector: ConflictDetector = ConflictDetector()
