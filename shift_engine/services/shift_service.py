"""시프트 서비스 — 시프트 인스턴스 조회/생성/취소 비즈니스 로직.

Shift Service — Business logic for shift instances: the open-shift listing,
ad-hoc shift creation, cancellation, and the fill-count audit that compares
each shift's counter with its active assignments.
"""

import logging
from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models.shift import SHIFT_CANCELLED, SHIFT_OPEN, ShiftInstance, status_of
from shift_engine.repositories.assignment_repository import shift_assignment_repository
from shift_engine.repositories.shift_repository import shift_instance_repository
from shift_engine.schemas.shift import AdhocShiftCreate, FillAuditEntry, FillAuditResponse, ShiftResponse
from shift_engine.services.directories import FacilityDirectory, SqlFacilityDirectory
from shift_engine.services.event_sink import EventSink, EventType, build_event_sink, publish_event
from shift_engine.utils.exceptions import FacilityNotFoundError, ShiftNotFoundError
from shift_engine.utils.time_window import format_hhmm
from shift_engine.utils.transaction import atomic

logger = logging.getLogger(__name__)


def to_shift_response(shift: ShiftInstance) -> ShiftResponse:
    """시프트 모델을 응답 스키마로 변환합니다 (Convert a ShiftInstance to ShiftResponse)."""
    return ShiftResponse(
        id=str(shift.id),
        template_id=str(shift.template_id) if shift.template_id else None,
        slot_index=shift.slot_index,
        facility_id=str(shift.facility_id),
        department=shift.department,
        specialty=shift.specialty,
        title=shift.title,
        shift_date=shift.shift_date,
        start_time=format_hhmm(shift.start_time),
        end_time=format_hhmm(shift.end_time),
        duration_hours=shift.duration_hours,
        capacity=shift.capacity,
        filled_count=shift.filled_count,
        status=shift.status,
        urgency=shift.urgency,
        hourly_rate=shift.hourly_rate,
        notes=shift.notes,
        created_at=shift.created_at,
    )


class ShiftService:
    """시프트 인스턴스 서비스.

    Service handling shift listing, ad-hoc creation, cancellation and
    the fill-count audit.
    """

    def __init__(
        self,
        facility_directory: FacilityDirectory | None = None,
        event_sink: EventSink | None = None,
    ) -> None:
        self.facility_directory: FacilityDirectory = facility_directory or SqlFacilityDirectory()
        self.event_sink: EventSink = event_sink or build_event_sink()

    async def list_open_shifts(
        self,
        db: AsyncSession,
        facility_id: UUID | None = None,
        specialty: str | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[ShiftInstance], int]:
        """배정 가능한 시프트 목록 — open 또는 partially_filled, 날짜/시각 순.

        List shifts still accepting workers, ordered by date and start time.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            facility_id: 시설 필터 (Facility filter)
            specialty: 전문 분야 필터 (Specialty filter, exact match)
            date_from: 시작 날짜 (Inclusive lower bound)
            date_to: 종료 날짜 (Inclusive upper bound)
            page: 페이지 번호 (Page number)
            per_page: 페이지당 항목 수 (Items per page)

        Returns:
            tuple[Sequence[ShiftInstance], int]: (시프트 목록, 전체 개수) (Shifts, total count)
        """
        return await shift_instance_repository.get_open(
            db,
            facility_id=facility_id,
            specialty=specialty,
            date_from=date_from,
            date_to=date_to,
            page=page,
            per_page=per_page,
        )

    async def get_shift(self, db: AsyncSession, shift_id: UUID) -> ShiftInstance:
        """시프트 단건 조회 — 취소된 시프트도 반환 (Cancelled shifts are still readable)."""
        shift: ShiftInstance | None = await shift_instance_repository.get_by_id(db, shift_id)
        if shift is None:
            raise ShiftNotFoundError(shift_id)
        return shift

    async def create_adhoc_shift(self, db: AsyncSession, data: AdhocShiftCreate) -> ShiftInstance:
        """템플릿 없이 시프트를 직접 생성합니다.

        Create a one-off shift with an explicit capacity. The instance gets a
        random id and no template link, so regeneration never touches it.

        Raises:
            FacilityNotFoundError: 시설이 없거나 비활성일 때 (Unknown or inactive facility)
        """
        async with atomic(db):
            if not await self.facility_directory.facility_exists(db, data.facility_id):
                raise FacilityNotFoundError(data.facility_id)
            shift: ShiftInstance = await shift_instance_repository.create(db, {
                **data.model_dump(),
                "template_id": None,
                "slot_index": None,
                "filled_count": 0,
                "status": SHIFT_OPEN,
            })
        logger.info("Created ad-hoc shift %s on %s (capacity %d)", shift.id, shift.shift_date, shift.capacity)
        return shift

    async def cancel_shift(self, db: AsyncSession, shift_id: UUID) -> ShiftInstance:
        """시프트를 취소합니다 — 이후 배정은 거부됩니다.

        Cancel a shift. Active assignments are kept for the record and listed
        in the ShiftCancelled event so downstream systems can notify workers;
        cancelling an already cancelled shift is a no-op without an event.

        Raises:
            ShiftNotFoundError: 시프트가 없을 때 (Unknown shift)
        """
        async with atomic(db):
            shift: ShiftInstance | None = await shift_instance_repository.get_by_id(db, shift_id)
            if shift is None:
                raise ShiftNotFoundError(shift_id)
            changed: bool = await shift_instance_repository.mark_cancelled(db, shift_id)
            active = await shift_assignment_repository.get_for_shift(db, shift_id, include_history=False)
            worker_ids: list[str] = [str(a.worker_id) for a in active]
        await db.refresh(shift)

        if changed:
            logger.info("Cancelled shift %s with %d active assignments", shift_id, len(worker_ids))
            await publish_event(self.event_sink, EventType.SHIFT_CANCELLED, {
                "shift_id": str(shift.id),
                "template_id": str(shift.template_id) if shift.template_id else None,
                "shift_date": shift.shift_date.isoformat(),
                "worker_ids": worker_ids,
            })
        return shift

    async def audit_fill_counts(self, db: AsyncSession, repair: bool = False) -> FillAuditResponse:
        """filled_count와 활성 배정 수를 비교합니다.

        Compare every shift's filled_count with its number of active
        assignments and report drift. With ``repair=True`` the counter and
        status of drifted shifts are rewritten from the assignment rows.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            repair: 불일치 복구 여부 (Rewrite drifted counters)

        Returns:
            FillAuditResponse: 검사 수, 불일치 목록, 복구 여부
        """
        drifted: list[FillAuditEntry] = []
        async with atomic(db):
            states = await shift_instance_repository.get_all_fill_states(db)
            active_counts: dict[UUID, int] = await shift_assignment_repository.count_active_by_shift(db)

            for shift_id, filled, capacity, current_status in states:
                active: int = active_counts.get(shift_id, 0)
                expected_status: str = (
                    SHIFT_CANCELLED if current_status == SHIFT_CANCELLED else status_of(active, capacity)
                )
                if filled == active and current_status == expected_status:
                    continue
                drifted.append(FillAuditEntry(
                    shift_id=str(shift_id),
                    filled_count=filled,
                    active_assignments=active,
                    status=current_status,
                    expected_status=expected_status,
                ))
                if repair:
                    await shift_instance_repository.set_fill_state(db, shift_id, active, expected_status)

        if drifted:
            logger.warning("Fill-count audit found %d drifted shifts (repair=%s)", len(drifted), repair)
        return FillAuditResponse(checked=len(states), drifted=drifted, repaired=repair and bool(drifted))

    def to_response(self, shift: ShiftInstance) -> ShiftResponse:
        return to_shift_response(shift)

    def to_responses(self, shifts: Sequence[ShiftInstance]) -> list[dict[str, Any]]:
        return [to_shift_response(s).model_dump(mode="json") for s in shifts]


shift_service: ShiftService = ShiftService()
