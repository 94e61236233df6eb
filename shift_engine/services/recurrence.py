"""반복 확장기 — 템플릿의 요일 패턴을 날짜별 시프트 인스턴스로 전개합니다.

Recurrence Expander — Turns a template's weekly pattern into concrete shift
instances over a date window.

Instance model:
    날짜마다 min_staff 개의 단일 인원 슬롯을 생성합니다 (capacity = 1).
    Each pattern date gets ``min_staff`` single-worker slot instances, so
    every required position fills independently.

Idempotency:
    슬롯 id는 (template_id, date, slot) 의 uuid5 이며 INSERT … ON CONFLICT DO
    NOTHING 으로 삽입됩니다. 같은 창을 몇 번 다시 실행해도 중복이 생기지 않고,
    중간에 실패한 실행은 그대로 재시도하면 이어서 진행됩니다.
    Slot ids are uuid5 digests of (template_id, date, slot) inserted with
    ON CONFLICT DO NOTHING; reruns never duplicate and interrupted runs resume.

Checkpoints:
    호출자가 checkpoint 를 넘기면 슬롯마다 호출되어 커밋됩니다. k 번째 인스턴스에서
    실패해도 이미 커밋된 0..k-1 인스턴스는 남습니다.
    When a ``checkpoint`` is given it runs after every slot, so a failure on
    instance k never rolls back instances 0..k-1.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.models.shift import SHIFT_OPEN
from shift_engine.models.template import ShiftTemplate
from shift_engine.repositories.shift_repository import shift_instance_repository
from shift_engine.repositories.template_repository import shift_template_repository
from shift_engine.utils.dates import date_range, scheduling_today, sunday_weekday

logger = logging.getLogger(__name__)

# 슬롯 id 네임스페이스 — 변경 시 기존 인스턴스와 id가 달라지므로 고정
SLOT_NAMESPACE: uuid.UUID = uuid.UUID("a4f0c1d2-7b3e-5c9a-8e6f-1d2c3b4a5f60")

# 템플릿 슬롯당 정원 — one worker per generated slot
SLOT_CAPACITY: int = 1


def slot_id(template_id: uuid.UUID, shift_date: date, slot_index: int) -> uuid.UUID:
    """템플릿 슬롯의 결정적 id (Deterministic id of a template slot)."""
    return uuid.uuid5(SLOT_NAMESPACE, f"{template_id}:{shift_date.isoformat()}:{slot_index}")


def pattern_dates(weekdays: list[int], start: date, end: date) -> list[date]:
    """[start, end] 중 요일 패턴에 맞는 날짜 목록 (0=Sunday pattern)."""
    wanted: set[int] = set(weekdays)
    return [d for d in date_range(start, end) if sunday_weekday(d) in wanted]


def template_static_values(template: ShiftTemplate) -> dict[str, Any]:
    """템플릿에서 인스턴스로 복사되는 정적 필드 (Static fields copied onto instances)."""
    return {
        "facility_id": template.facility_id,
        "department": template.department,
        "specialty": template.specialty,
        "title": template.name,
        "start_time": template.start_time,
        "end_time": template.end_time,
        "urgency": template.urgency,
        "hourly_rate": template.hourly_rate,
    }


@dataclass
class ExpansionResult:
    generated: int = 0
    removed: int = 0
    refreshed: int = 0


class RecurrenceExpander:
    """반복 확장기."""

    async def purge_unassigned_future(
        self,
        db: AsyncSession,
        template: ShiftTemplate,
        today: date | None = None,
    ) -> int:
        """오늘 이후의 미배정 인스턴스를 삭제합니다 — 배정된 인스턴스는 유지.

        Delete the template's instances dated today or later with nobody
        assigned; instances with filled_count > 0 keep the worker commitment.
        """
        removed: int = await shift_instance_repository.purge_unassigned_future(
            db, template.id, today or scheduling_today()
        )
        if removed:
            logger.info("Purged %d unassigned future shifts of template %s", removed, template.id)
        return removed

    async def expand_detailed(
        self,
        db: AsyncSession,
        template: ShiftTemplate,
        window_start: date,
        window_end: date,
        *,
        preserve_assigned: bool = False,
        skip_existing: bool = True,
        today: date | None = None,
        checkpoint: Callable[[], Awaitable[None]] | None = None,
    ) -> ExpansionResult:
        """템플릿을 [window_start, window_end] 기간으로 전개합니다.

        Expand the template over the inclusive window.

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            template: 전개할 템플릿 (Template to expand)
            window_start: 시작 날짜 (Inclusive window start)
            window_end: 종료 날짜 (Inclusive window end)
            preserve_assigned: 재생성 모드 — 먼저 미배정 미래 인스턴스를 삭제
                (Regeneration mode: purge unassigned future instances first)
            skip_existing: False면 기존 미배정 슬롯의 정적 필드를 템플릿 값으로 갱신
                (When False, refresh static fields of existing unassigned slots)
            today: 기준 날짜, 테스트용 (Reference "today", defaults to the scheduling clock)
            checkpoint: 슬롯마다 호출되는 커밋 콜백 (Awaited after each slot, typically a commit)

        Returns:
            ExpansionResult: 생성/삭제/갱신 수 (Generated, removed, refreshed counts)
        """
        result: ExpansionResult = ExpansionResult()
        today = today or scheduling_today()

        if preserve_assigned:
            result.removed = await self.purge_unassigned_future(db, template, today)

        # 비활성 템플릿은 생성하지 않음 — inactive templates never generate
        if not template.is_active or window_end < window_start:
            return result

        template_id: uuid.UUID = template.id
        min_staff: int = template.min_staff
        static: dict[str, Any] = template_static_values(template)
        for shift_date in pattern_dates(template.weekdays, window_start, window_end):
            for slot_index in range(min_staff):
                instance_id: uuid.UUID = slot_id(template_id, shift_date, slot_index)
                inserted: bool = await shift_instance_repository.insert_if_absent(db, {
                    "id": instance_id,
                    "template_id": template_id,
                    "slot_index": slot_index,
                    "shift_date": shift_date,
                    "capacity": SLOT_CAPACITY,
                    "filled_count": 0,
                    "status": SHIFT_OPEN,
                    **static,
                })
                if inserted:
                    # 카운터는 같은 커밋에 포함 — counter commits with the row it counts
                    await shift_template_repository.increment_generated_count(db, template_id, 1)
                    result.generated += 1
                elif not skip_existing and await shift_instance_repository.refresh_unassigned(
                    db, instance_id, static
                ):
                    result.refreshed += 1
                else:
                    # 변경 없음 — nothing written for this slot
                    continue
                if checkpoint is not None:
                    await checkpoint()

        logger.info(
            "Expanded template %s over %s..%s: generated=%d removed=%d refreshed=%d",
            template_id, window_start, window_end,
            result.generated, result.removed, result.refreshed,
        )
        return result

    async def expand(
        self,
        db: AsyncSession,
        template: ShiftTemplate,
        window_start: date,
        window_end: date,
        *,
        preserve_assigned: bool = False,
        skip_existing: bool = True,
        today: date | None = None,
        checkpoint: Callable[[], Awaitable[None]] | None = None,
    ) -> int:
        """전개 후 새로 생성된 인스턴스 수만 반환합니다 (Returns generatedCount)."""
        result: ExpansionResult = await self.expand_detailed(
            db,
            template,
            window_start,
            window_end,
            preserve_assigned=preserve_assigned,
            skip_existing=skip_existing,
            today=today,
            checkpoint=checkpoint,
        )
        return result.generated


recurrence_expander: RecurrenceExpander = RecurrenceExpander()
