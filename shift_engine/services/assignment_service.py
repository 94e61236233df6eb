"""배정 엔진 — 근무자를 시프트에 배정/해제하는 비즈니스 로직.

Assignment Engine — Assigns and unassigns workers under hard constraints:
exact specialty match, capacity limits, and time-overlap conflicts with the
worker's other shifts.

Validation order (assign):
    1. 시프트 존재 및 미취소 — ShiftNotFound
    2. 근무자 존재 및 활성 — WorkerNotFound
    3. 전문 분야 일치 — SpecialtyMismatch
    4. 중복 배정 없음 — AlreadyAssigned
    5. 정원 여유 — CapacityExceeded
    6. 근무 시간 충돌 없음 — ScheduleConflict

Atomicity:
    검증과 카운터 증가, 배정 행 삽입이 한 트랜잭션에서 실행됩니다. 좌석 확보는
    조건부 UPDATE 한 문장으로 이루어지므로 동시 요청이 정원을 넘길 수 없습니다.
    Validation, the seat reservation and the assignment insert share one
    transaction. The seat is taken by a single conditional UPDATE, so
    concurrent requests can never push filled_count past capacity. Events are
    published only after the commit.
"""

import logging
from typing import Any, Sequence
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models.assignment import ASSIGNMENT_ACTIVE, ShiftAssignment
from shift_engine.models.shift import SHIFT_CANCELLED, ShiftInstance
from shift_engine.repositories.assignment_repository import shift_assignment_repository
from shift_engine.repositories.shift_repository import shift_instance_repository
from shift_engine.schemas.assignment import AssignmentOutcomeResponse, AssignmentResponse
from shift_engine.services.conflict import ConflictDetector, conflict_context, conflict_detector
from shift_engine.services.directories import SqlWorkerDirectory, WorkerDirectory, WorkerProfile
from shift_engine.services.event_sink import EventSink, EventType, build_event_sink, publish_event
from shift_engine.services.shift_service import to_shift_response
from shift_engine.utils.exceptions import (
    AlreadyAssignedError,
    AssignmentNotFoundError,
    CapacityExceededError,
    ScheduleConflictError,
    ShiftNotFoundError,
    SpecialtyMismatchError,
    WorkerNotFoundError,
)
from shift_engine.utils.locks import KeyedLock
from shift_engine.utils.time_window import format_hhmm
from shift_engine.utils.transaction import atomic

logger = logging.getLogger(__name__)


def shift_snapshot(shift: ShiftInstance) -> dict[str, Any]:
    """배정 시점의 시프트 정보 스냅샷 (Shift details frozen onto the assignment)."""
    return {
        "shift_date": shift.shift_date.isoformat(),
        "start_time": format_hhmm(shift.start_time),
        "end_time": format_hhmm(shift.end_time),
        "facility_id": str(shift.facility_id),
        "department": shift.department,
        "specialty": shift.specialty,
        "title": shift.title,
    }


def to_assignment_response(assignment: ShiftAssignment) -> AssignmentResponse:
    return AssignmentResponse(
        id=str(assignment.id),
        shift_instance_id=str(assignment.shift_instance_id) if assignment.shift_instance_id else None,
        worker_id=str(assignment.worker_id),
        assigned_by=str(assignment.assigned_by) if assignment.assigned_by else None,
        assigned_at=assignment.assigned_at,
        status=assignment.status,
        unassigned_at=assignment.unassigned_at,
        shift_snapshot=assignment.shift_snapshot,
    )


def to_outcome_response(assignment: ShiftAssignment, shift: ShiftInstance) -> AssignmentOutcomeResponse:
    return AssignmentOutcomeResponse(
        assignment=to_assignment_response(assignment),
        shift=to_shift_response(shift),
    )


class AssignmentEngine:
    """배정 엔진.

    Assignment engine enforcing specialty, capacity and conflict rules.
    Collaborators are injected so tests and alternative deployments can
    swap the worker directory, the event sink or the conflict detector.
    """

    def __init__(
        self,
        worker_directory: WorkerDirectory | None = None,
        event_sink: EventSink | None = None,
        conflicts: ConflictDetector | None = None,
    ) -> None:
        self.worker_directory: WorkerDirectory = worker_directory or SqlWorkerDirectory()
        self.event_sink: EventSink = event_sink or build_event_sink()
        self.conflicts: ConflictDetector = conflicts or conflict_detector
        # 근무자 단위 직렬화 — same-worker assigns run one at a time in this process
        self._worker_locks: KeyedLock = KeyedLock()

    async def _load_assignable_shift(self, db: AsyncSession, shift_id: UUID) -> ShiftInstance:
        shift: ShiftInstance | None = await shift_instance_repository.get_by_id(db, shift_id)
        if shift is None:
            raise ShiftNotFoundError(shift_id)
        if shift.status == SHIFT_CANCELLED:
            raise ShiftNotFoundError(shift_id, cancelled=True)
        return shift

    async def _load_qualified_worker(
        self,
        db: AsyncSession,
        worker_id: UUID,
        shift: ShiftInstance,
    ) -> WorkerProfile:
        worker: WorkerProfile | None = await self.worker_directory.get_worker(db, worker_id)
        if worker is None:
            raise WorkerNotFoundError(worker_id)
        if not worker.is_active:
            raise WorkerNotFoundError(worker_id, inactive=True)
        # 정확히 일치해야 함 — exact, case-sensitive match
        if worker.specialty != shift.specialty:
            raise SpecialtyMismatchError(worker.specialty, shift.specialty)
        return worker

    async def _ensure_no_conflict(self, db: AsyncSession, worker_id: UUID, shift: ShiftInstance) -> None:
        found: ShiftAssignment | None = await self.conflicts.find_conflict(
            db,
            worker_id,
            shift.shift_date,
            shift.start_time,
            shift.end_time,
            exclude_shift_id=shift.id,
        )
        if found is not None:
            raise ScheduleConflictError(worker_id, conflict_context(found))

    async def assign(
        self,
        db: AsyncSession,
        shift_id: UUID,
        worker_id: UUID,
        assigned_by: UUID | None = None,
    ) -> tuple[ShiftAssignment, ShiftInstance]:
        """근무자를 시프트에 배정합니다.

        Assign a worker to a shift.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            shift_id: 시프트 UUID (Shift UUID)
            worker_id: 근무자 UUID (Worker UUID)
            assigned_by: 배정자 UUID (Acting user, recorded on the assignment)

        Returns:
            tuple[ShiftAssignment, ShiftInstance]: 배정 레코드와 갱신된 시프트
                (The new assignment and the shift with its updated fill state)

        Raises:
            ShiftNotFoundError: 시프트가 없거나 취소됨 (Missing or cancelled shift)
            WorkerNotFoundError: 근무자가 없거나 비활성 (Unknown or inactive worker)
            SpecialtyMismatchError: 전문 분야 불일치 (Specialty differs)
            AlreadyAssignedError: 이미 배정됨 (Active assignment exists)
            CapacityExceededError: 정원 초과 (Shift is full)
            ScheduleConflictError: 다른 배정과 시간 겹침 (Overlapping assignment)
        """
        try:
            async with self._worker_locks.hold(worker_id):
                async with atomic(db):
                    shift: ShiftInstance = await self._load_assignable_shift(db, shift_id)
                    await self._load_qualified_worker(db, worker_id, shift)

                    if await shift_assignment_repository.get_active(db, shift_id, worker_id) is not None:
                        raise AlreadyAssignedError(shift_id, worker_id)
                    if shift.filled_count >= shift.capacity:
                        raise CapacityExceededError(shift_id, shift.capacity)
                    await self._ensure_no_conflict(db, worker_id, shift)

                    # 조건부 증가 — conditional increment, must hit exactly one row
                    if not await shift_instance_repository.reserve_seat(db, shift_id):
                        raise CapacityExceededError(shift_id, shift.capacity)

                    # 좌석 확보 후 같은 트랜잭션에서 재검사 — re-check before the insert
                    await self._ensure_no_conflict(db, worker_id, shift)

                    assignment: ShiftAssignment = ShiftAssignment(
                        shift_instance_id=shift_id,
                        worker_id=worker_id,
                        assigned_by=assigned_by,
                        status=ASSIGNMENT_ACTIVE,
                        shift_snapshot=shift_snapshot(shift),
                    )
                    db.add(assignment)
                    try:
                        await db.flush()
                    except IntegrityError as exc:
                        # 부분 유니크 인덱스 위반 — concurrent duplicate for the pair
                        raise AlreadyAssignedError(shift_id, worker_id) from exc
        except HTTPException as exc:
            logger.info(
                "Assignment rejected: shift=%s worker=%s code=%s",
                shift_id, worker_id, getattr(exc, "code", exc.status_code),
            )
            raise

        await db.refresh(shift)
        logger.info(
            "Assigned worker %s to shift %s (%d/%d)",
            worker_id, shift_id, shift.filled_count, shift.capacity,
        )
        await publish_event(self.event_sink, EventType.ASSIGNMENT_CREATED, {
            "assignment_id": str(assignment.id),
            "shift_id": str(shift.id),
            "worker_id": str(worker_id),
            "assigned_by": str(assigned_by) if assigned_by else None,
            "shift_date": shift.shift_date.isoformat(),
            "filled_count": shift.filled_count,
            "capacity": shift.capacity,
            "status": shift.status,
        })
        return assignment, shift

    async def unassign(
        self,
        db: AsyncSession,
        shift_id: UUID,
        worker_id: UUID,
    ) -> tuple[ShiftAssignment, ShiftInstance]:
        """근무자 배정을 해제합니다 — 최소 사전 통보 규칙 없음.

        Unassign a worker. The assignment row becomes "unassigned" and the
        shift's filled_count drops by one; a cancelled shift stays cancelled.

        Raises:
            ShiftNotFoundError: 시프트가 없을 때 (Unknown shift)
            AssignmentNotFoundError: 활성 배정이 없을 때 (No active assignment)
        """
        async with atomic(db):
            shift: ShiftInstance | None = await shift_instance_repository.get_by_id(db, shift_id)
            if shift is None:
                raise ShiftNotFoundError(shift_id)
            assignment: ShiftAssignment | None = await shift_assignment_repository.get_active(
                db, shift_id, worker_id
            )
            # 조건부 전환 실패 = 동시 해제 — a concurrent unassign won the race
            if assignment is None or not await shift_assignment_repository.deactivate(db, assignment.id):
                raise AssignmentNotFoundError(shift_id, worker_id)
            await shift_instance_repository.release_seat(db, shift_id)

        await db.refresh(assignment)
        await db.refresh(shift)
        logger.info(
            "Unassigned worker %s from shift %s (%d/%d)",
            worker_id, shift_id, shift.filled_count, shift.capacity,
        )
        await publish_event(self.event_sink, EventType.ASSIGNMENT_REMOVED, {
            "assignment_id": str(assignment.id),
            "shift_id": str(shift.id),
            "worker_id": str(worker_id),
            "shift_date": shift.shift_date.isoformat(),
            "filled_count": shift.filled_count,
            "capacity": shift.capacity,
            "status": shift.status,
        })
        return assignment, shift

    async def get_assignments(
        self,
        db: AsyncSession,
        shift_id: UUID,
        include_history: bool = True,
    ) -> Sequence[ShiftAssignment]:
        """시프트의 배정 목록 (Assignments of a shift, newest first)."""
        if await shift_instance_repository.get_by_id(db, shift_id) is None:
            raise ShiftNotFoundError(shift_id)
        return await shift_assignment_repository.get_for_shift(db, shift_id, include_history)


assignment_engine: AssignmentEngine = AssignmentEngine()
