"""시프트 템플릿 서비스 — 템플릿 생명주기와 시프트 생성 비즈니스 로직.

Template Service — Business logic for the shift-template lifecycle
(create, update, activate/deactivate, regenerate) and the maintenance
operations built on the recurrence expander: the periodic generation run,
the missing-date report and instance reconciliation.

Serialization:
    같은 템플릿에 대한 생성 작업은 동시에 하나만 실행됩니다. 프로세스 내에서는
    키 잠금으로, 프로세스 간에는 템플릿 행의 FOR UPDATE NOWAIT 로 직렬화하며
    이미 실행 중이면 RegenerationInProgress 로 즉시 거절합니다.
    Generation for one template runs one at a time: a keyed in-process lock
    plus FOR UPDATE NOWAIT on the template row. A busy template is rejected
    immediately with RegenerationInProgress instead of queueing.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.config import settings
from shift_engine.models.shift import SHIFT_CANCELLED
from shift_engine.models.template import ShiftTemplate
from shift_engine.repositories.shift_repository import shift_instance_repository
from shift_engine.repositories.template_repository import shift_template_repository
from shift_engine.schemas.template import (
    GenerationRunResponse,
    MissingDatesResponse,
    ReconcileResponse,
    ShiftTemplateCreate,
    ShiftTemplateResponse,
    ShiftTemplateUpdate,
)
from shift_engine.services.directories import FacilityDirectory, SqlFacilityDirectory
from shift_engine.services.event_sink import EventSink, EventType, build_event_sink, publish_event
from shift_engine.services.recurrence import (
    ExpansionResult,
    RecurrenceExpander,
    pattern_dates,
    recurrence_expander,
)
from shift_engine.utils.dates import WEEKDAY_NAMES, horizon_window, scheduling_today, sunday_weekday
from shift_engine.utils.exceptions import (
    FacilityNotFoundError,
    InvalidRecurrencePatternError,
    RegenerationInProgressError,
    TemplateNotFoundError,
)
from shift_engine.utils.locks import KeyedLock
from shift_engine.utils.time_window import format_hhmm
from shift_engine.utils.transaction import atomic

logger = logging.getLogger(__name__)

# PostgreSQL lock_not_available — FOR UPDATE NOWAIT 실패 코드
_LOCK_NOT_AVAILABLE: str = "55P03"

# 값이 None이어도 반영하는 필드 — nullable columns a patch may clear
_CLEARABLE_FIELDS: frozenset[str] = frozenset({"hourly_rate", "notes"})


def _is_lock_not_available(exc: DBAPIError) -> bool:
    orig = exc.orig
    return getattr(orig, "pgcode", None) == _LOCK_NOT_AVAILABLE or getattr(orig, "sqlstate", None) == _LOCK_NOT_AVAILABLE


def validate_pattern(
    weekdays: list[int],
    min_staff: int,
    max_staff: int,
    horizon_days: int,
    is_active: bool,
) -> list[int]:
    """반복 패턴을 검증하고 정규화된 요일 목록을 반환합니다.

    Validate a recurrence pattern and return the sorted, de-duplicated
    weekday list.

    Raises:
        InvalidRecurrencePatternError: 요일 범위, 빈 요일(활성), 인원 범위, 기간 오류
    """
    if any(not isinstance(d, int) or isinstance(d, bool) or not 0 <= d <= 6 for d in weekdays):
        raise InvalidRecurrencePatternError(
            "Weekdays must be integers between 0 (Sunday) and 6 (Saturday)", weekdays=weekdays
        )
    if is_active and not weekdays:
        raise InvalidRecurrencePatternError("An active template needs at least one weekday")
    if min_staff < 1:
        raise InvalidRecurrencePatternError("min_staff must be at least 1", min_staff=min_staff)
    if max_staff < min_staff:
        raise InvalidRecurrencePatternError(
            "max_staff must be greater than or equal to min_staff",
            min_staff=min_staff,
            max_staff=max_staff,
        )
    if not 1 <= horizon_days <= settings.MAX_HORIZON_DAYS:
        raise InvalidRecurrencePatternError(
            f"horizon_days must be between 1 and {settings.MAX_HORIZON_DAYS}", horizon_days=horizon_days
        )
    return sorted(set(weekdays))


def to_template_response(template: ShiftTemplate) -> ShiftTemplateResponse:
    return ShiftTemplateResponse(
        id=str(template.id),
        name=template.name,
        facility_id=str(template.facility_id),
        department=template.department,
        specialty=template.specialty,
        weekdays=list(template.weekdays),
        start_time=format_hhmm(template.start_time),
        end_time=format_hhmm(template.end_time),
        min_staff=template.min_staff,
        max_staff=template.max_staff,
        hourly_rate=template.hourly_rate,
        horizon_days=template.horizon_days,
        urgency=template.urgency,
        notes=template.notes,
        is_active=template.is_active,
        generated_shifts_count=template.generated_shifts_count,
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


class TemplateService:
    """시프트 템플릿 서비스.

    Template lifecycle service. Every operation that creates or removes
    instances runs under the per-template generation lock. Expansion commits
    after each written slot, so a failed run keeps the instances already
    written and a retry resumes from there; events are published after the
    final commit.
    """

    def __init__(
        self,
        facility_directory: FacilityDirectory | None = None,
        event_sink: EventSink | None = None,
        expander: RecurrenceExpander | None = None,
    ) -> None:
        self.facility_directory: FacilityDirectory = facility_directory or SqlFacilityDirectory()
        self.event_sink: EventSink = event_sink or build_event_sink()
        self.expander: RecurrenceExpander = expander or recurrence_expander
        self._generation_locks: KeyedLock = KeyedLock()

    # --- 내부 헬퍼 (Internal helpers) ---

    async def _lock_template_row(self, db: AsyncSession, template_id: UUID) -> ShiftTemplate:
        try:
            template: ShiftTemplate | None = await shift_template_repository.get_by_id(
                db, template_id, for_update=True
            )
        except DBAPIError as exc:
            if _is_lock_not_available(exc):
                raise RegenerationInProgressError(template_id) from exc
            raise
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    @asynccontextmanager
    async def _generation(self, db: AsyncSession, template_id: UUID) -> AsyncIterator[ShiftTemplate]:
        """템플릿 생성 잠금 + 트랜잭션 (Generation lock plus one transaction).

        Raises:
            RegenerationInProgressError: 같은 템플릿 작업이 진행 중일 때
            TemplateNotFoundError: 템플릿이 없을 때
        """
        if self._generation_locks.locked(template_id):
            raise RegenerationInProgressError(template_id)
        async with self._generation_locks.hold(template_id):
            async with atomic(db):
                yield await self._lock_template_row(db, template_id)

    def _checkpoint(self, db: AsyncSession, template_id: UUID) -> Callable[[], Awaitable[None]]:
        """슬롯별 커밋 후 템플릿 행을 다시 잠급니다.

        Commit the slots expanded so far, then take the template row lock
        again for the rest of the run.
        """
        async def commit_and_relock() -> None:
            await db.commit()
            await self._lock_template_row(db, template_id)

        return commit_and_relock

    async def _publish_generated(
        self,
        template: ShiftTemplate,
        result: ExpansionResult,
        window: tuple[date, date],
    ) -> None:
        if not (result.generated or result.removed):
            return
        await publish_event(self.event_sink, EventType.SHIFTS_GENERATED, {
            "template_id": str(template.id),
            "generated_count": result.generated,
            "removed_count": result.removed,
            "window_start": window[0].isoformat(),
            "window_end": window[1].isoformat(),
        })

    # --- 조회 (Queries) ---

    async def get_template(self, db: AsyncSession, template_id: UUID) -> ShiftTemplate:
        template: ShiftTemplate | None = await shift_template_repository.get_by_id(db, template_id)
        if template is None:
            raise TemplateNotFoundError(template_id)
        return template

    async def list_templates(
        self,
        db: AsyncSession,
        facility_id: UUID | None = None,
        is_active: bool | None = None,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[Sequence[ShiftTemplate], int]:
        return await shift_template_repository.get_by_filters(db, facility_id, is_active, page, per_page)

    # --- 생명주기 (Lifecycle) ---

    async def create_template(
        self,
        db: AsyncSession,
        data: ShiftTemplateCreate,
        today: date | None = None,
    ) -> ShiftTemplate:
        """템플릿을 생성하고, 활성이면 게시 기간만큼 즉시 전개합니다.

        Create a template; an active template is expanded right away over
        [today, today + horizon_days - 1].

        Args:
            db: 비동기 데이터베이스 세션 (Async database session)
            data: 템플릿 생성 데이터 (Template creation data)
            today: 기준 날짜 (Reference date, defaults to the scheduling clock)

        Returns:
            ShiftTemplate: 생성된 템플릿 (Created template)

        Raises:
            InvalidRecurrencePatternError: 패턴 오류 (Invalid pattern)
            FacilityNotFoundError: 시설이 없거나 비활성 (Unknown or inactive facility)
        """
        today = today or scheduling_today()
        horizon_days: int = (
            data.horizon_days if data.horizon_days is not None else settings.DEFAULT_HORIZON_DAYS
        )
        weekdays: list[int] = validate_pattern(
            data.weekdays, data.min_staff, data.max_staff, horizon_days, data.is_active
        )
        window: tuple[date, date] = horizon_window(today, horizon_days)
        result: ExpansionResult = ExpansionResult()

        async with atomic(db):
            if not await self.facility_directory.facility_exists(db, data.facility_id):
                raise FacilityNotFoundError(data.facility_id)
            template: ShiftTemplate = await shift_template_repository.create(db, {
                **data.model_dump(exclude={"weekdays", "horizon_days"}),
                "weekdays": weekdays,
                "horizon_days": horizon_days,
                "generated_shifts_count": 0,
            })
            if template.is_active:
                result = await self.expander.expand_detailed(
                    db, template, *window, today=today, checkpoint=db.commit
                )
        await db.refresh(template)

        logger.info("Created template %s (%s), generated %d shifts", template.id, template.name, result.generated)
        await self._publish_generated(template, result, window)
        return template

    async def update_template(
        self,
        db: AsyncSession,
        template_id: UUID,
        patch: ShiftTemplateUpdate,
        today: date | None = None,
    ) -> ShiftTemplate:
        """템플릿을 수정하고, 활성이면 미배정 미래 시프트를 다시 생성합니다.

        Apply a partial update. For an active template the unassigned future
        instances are purged and the horizon is expanded again from the new
        values; assigned instances keep their original details.

        Raises:
            TemplateNotFoundError: 템플릿이 없을 때
            InvalidRecurrencePatternError: 수정 결과 패턴이 잘못되었을 때
            RegenerationInProgressError: 같은 템플릿 작업이 진행 중일 때
        """
        today = today or scheduling_today()
        changes: dict[str, Any] = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or field in _CLEARABLE_FIELDS
        }
        result: ExpansionResult = ExpansionResult()

        async with self._generation(db, template_id) as template:
            weekdays: list[int] = validate_pattern(
                changes.get("weekdays", template.weekdays),
                changes.get("min_staff", template.min_staff),
                changes.get("max_staff", template.max_staff),
                changes.get("horizon_days", template.horizon_days),
                template.is_active,
            )
            if "weekdays" in changes:
                changes["weekdays"] = weekdays
            template = await shift_template_repository.update(db, template, changes)
            window: tuple[date, date] = horizon_window(today, template.horizon_days)
            if template.is_active:
                result = await self.expander.expand_detailed(
                    db, template, *window, preserve_assigned=True, today=today,
                    checkpoint=self._checkpoint(db, template_id),
                )
        await db.refresh(template)

        logger.info("Updated template %s fields=%s", template_id, sorted(changes))
        await publish_event(self.event_sink, EventType.TEMPLATE_UPDATED, {
            "template_id": str(template.id),
            "changed_fields": sorted(changes),
            "is_active": template.is_active,
        })
        await self._publish_generated(template, result, window)
        return template

    async def set_template_active(
        self,
        db: AsyncSession,
        template_id: UUID,
        is_active: bool,
        today: date | None = None,
    ) -> ShiftTemplate:
        """템플릿 활성 상태를 변경합니다.

        Deactivation only flips the flag: existing instances stay untouched
        until the next regeneration. Activation expands the horizon again.
        """
        today = today or scheduling_today()
        result: ExpansionResult = ExpansionResult()

        async with self._generation(db, template_id) as template:
            if is_active:
                validate_pattern(
                    template.weekdays, template.min_staff, template.max_staff, template.horizon_days, True
                )
            template = await shift_template_repository.update(db, template, {"is_active": is_active})
            window: tuple[date, date] = horizon_window(today, template.horizon_days)
            if is_active:
                result = await self.expander.expand_detailed(
                    db, template, *window, today=today, checkpoint=self._checkpoint(db, template_id)
                )
        await db.refresh(template)

        logger.info("Template %s is_active=%s", template_id, is_active)
        await publish_event(self.event_sink, EventType.TEMPLATE_UPDATED, {
            "template_id": str(template.id),
            "changed_fields": ["is_active"],
            "is_active": template.is_active,
        })
        await self._publish_generated(template, result, window)
        return template

    async def regenerate_shifts(
        self,
        db: AsyncSession,
        template_id: UUID,
        today: date | None = None,
    ) -> int:
        """미배정 미래 시프트를 삭제하고 다시 생성합니다.

        Purge unassigned future instances, then expand the horizon if the
        template is active. An inactive template only gets the purge.

        Returns:
            int: 새로 생성된 인스턴스 수, 비활성이면 0 (generatedCount, 0 when inactive)
        """
        today = today or scheduling_today()
        async with self._generation(db, template_id) as template:
            window: tuple[date, date] = horizon_window(today, template.horizon_days)
            result: ExpansionResult = await self.expander.expand_detailed(
                db, template, *window, preserve_assigned=True, today=today,
                checkpoint=self._checkpoint(db, template_id),
            )
        await db.refresh(template)
        await self._publish_generated(template, result, window)
        return result.generated

    # --- 유지보수 (Maintenance) ---

    async def generate_for_active_templates(
        self,
        db: AsyncSession,
        today: date | None = None,
    ) -> GenerationRunResponse:
        """모든 활성 템플릿을 게시 기간만큼 전개합니다 — 주기 작업용.

        Expand every active template over its rolling horizon, committing per
        slot. A failing template keeps the instances it already committed, is
        logged and skipped, so one bad template never blocks the rest of the
        run.
        """
        today = today or scheduling_today()
        template_ids: list[UUID] = [t.id for t in await shift_template_repository.get_active(db)]
        generated: int = 0
        failed: list[str] = []

        for template_id in template_ids:
            result: ExpansionResult = ExpansionResult()
            try:
                async with self._generation(db, template_id) as template:
                    window: tuple[date, date] = horizon_window(today, template.horizon_days)
                    if template.is_active:
                        result = await self.expander.expand_detailed(
                            db, template, *window, today=today, checkpoint=self._checkpoint(db, template_id)
                        )
            except Exception:
                logger.exception("Shift generation failed for template %s", template_id)
                failed.append(str(template_id))
                continue
            generated += result.generated
            await self._publish_generated(template, result, window)

        logger.info(
            "Generation run for %s: %d templates, %d shifts created, %d failed",
            today, len(template_ids), generated, len(failed),
        )
        return GenerationRunResponse(
            templates=len(template_ids),
            generated_count=generated,
            failed_template_ids=failed,
        )

    async def find_missing_dates(
        self,
        db: AsyncSession,
        days_ahead: int | None = None,
        today: date | None = None,
    ) -> list[MissingDatesResponse]:
        """활성 템플릿별로 인스턴스가 없는 패턴 날짜를 찾습니다.

        For each active template, list pattern dates in the look-ahead window
        that have no instance at all. ``days_ahead`` defaults to each
        template's own horizon.
        """
        today = today or scheduling_today()
        report: list[MissingDatesResponse] = []
        for template in await shift_template_repository.get_active(db):
            start, end = horizon_window(
                today, days_ahead if days_ahead is not None else template.horizon_days
            )
            existing: set[date] = await shift_instance_repository.get_dates_in_window(db, template.id, start, end)
            missing: list[date] = [d for d in pattern_dates(template.weekdays, start, end) if d not in existing]
            if missing:
                report.append(MissingDatesResponse(
                    template_id=str(template.id),
                    template_name=template.name,
                    dates=missing,
                ))
        return report

    async def reconcile_instances(
        self,
        db: AsyncSession,
        template_id: UUID,
        today: date | None = None,
    ) -> ReconcileResponse:
        """미래 인스턴스를 템플릿 현재 값과 대조하여 정리합니다.

        Compare the template's future instances with its current pattern:

        - 패턴에 없는 요일 또는 남는 슬롯의 미배정 인스턴스 — 삭제
          (unassigned rows on a weekday outside the pattern or beyond min_staff: deleted)
        - 시각이 달라진 미배정 인스턴스 — 템플릿 시각으로 수정
          (unassigned rows with drifted times: corrected)
        - 배정된 인스턴스 — 수정하지 않고 보고만 함 (assigned rows: reported only)

        Returns:
            ReconcileResponse: 수정 수와 문제 목록 (Fixed count and issue list)
        """
        today = today or scheduling_today()
        fixed: int = 0
        issues: list[str] = []

        async with self._generation(db, template_id) as template:
            weekdays: set[int] = set(template.weekdays)
            times: dict[str, Any] = {"start_time": template.start_time, "end_time": template.end_time}
            for shift in await shift_instance_repository.get_future_for_template(db, template.id, today):
                if shift.status == SHIFT_CANCELLED:
                    continue
                weekday: int = sunday_weekday(shift.shift_date)
                stray: bool = weekday not in weekdays or (shift.slot_index or 0) >= template.min_staff
                drifted: bool = shift.start_time != template.start_time or shift.end_time != template.end_time
                if not (stray or drifted):
                    continue

                label: str = f"{shift.shift_date} ({WEEKDAY_NAMES[weekday]}) slot {shift.slot_index}"
                if shift.filled_count > 0:
                    reason: str = "is outside the current pattern" if stray else "has outdated times"
                    issues.append(f"{label} {reason} but has assigned workers")
                elif stray:
                    if await shift_instance_repository.delete_unassigned(db, shift.id):
                        fixed += 1
                elif await shift_instance_repository.refresh_unassigned(db, shift.id, times):
                    fixed += 1

        logger.info("Reconciled template %s: fixed=%d issues=%d", template_id, fixed, len(issues))
        return ReconcileResponse(template_id=str(template_id), fixed=fixed, issues=issues)


template_service: TemplateService = TemplateService()
