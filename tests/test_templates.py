"""템플릿 서비스 테스트.

Template service tests — creation with immediate expansion, pattern
validation, update-driven regeneration, activation toggles, generation
locking and the maintenance operations.
"""

import uuid
from datetime import date, time, timedelta

import pytest
from sqlalchemy import select

from shift_engine.models.shift import ShiftInstance
from shift_engine.repositories.shift_repository import shift_instance_repository
from shift_engine.schemas.template import ShiftTemplateUpdate
from shift_engine.services.event_sink import EventType
from shift_engine.services.recurrence import RecurrenceExpander
from shift_engine.services.template_service import TemplateService
from shift_engine.utils.exceptions import (
    FacilityNotFoundError,
    InvalidRecurrencePatternError,
    RegenerationInProgressError,
    TemplateNotFoundError,
)

from tests.conftest import template_payload

MONDAY = date(2026, 10, 19)
NEXT_MONDAY = MONDAY + timedelta(days=7)


async def rows_of(db, template_id) -> list[ShiftInstance]:
    result = await db.execute(
        select(ShiftInstance)
        .where(ShiftInstance.template_id == template_id)
        .order_by(ShiftInstance.shift_date, ShiftInstance.slot_index)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


class TestCreateTemplate:
    async def test_active_template_expands_horizon(self, db, facility, template_service, events):
        """월/수, min_staff 2, 14일 → 즉시 8개 인스턴스."""
        template = await template_service.create_template(db, template_payload(facility), today=MONDAY)

        rows = await rows_of(db, template.id)
        assert len(rows) == 8
        assert template.generated_shifts_count == 8
        assert {r.shift_date for r in rows} == {
            MONDAY, MONDAY + timedelta(days=2), NEXT_MONDAY, NEXT_MONDAY + timedelta(days=2),
        }
        generated = events.of_type(EventType.SHIFTS_GENERATED)
        assert generated == [{
            "template_id": str(template.id),
            "generated_count": 8,
            "removed_count": 0,
            "window_start": "2026-10-19",
            "window_end": "2026-11-01",
        }]

    async def test_weekdays_are_normalized(self, db, facility, template_service):
        template = await template_service.create_template(
            db, template_payload(facility, weekdays=[3, 1, 3]), today=MONDAY
        )
        assert template.weekdays == [1, 3]

    async def test_default_horizon_applies(self, db, facility, template_service):
        template = await template_service.create_template(
            db, template_payload(facility, horizon_days=None), today=MONDAY
        )
        assert template.horizon_days == 14

    async def test_inactive_template_may_have_no_weekdays(self, db, facility, template_service, events):
        template = await template_service.create_template(
            db, template_payload(facility, weekdays=[], is_active=False), today=MONDAY
        )
        assert template.generated_shifts_count == 0
        assert await rows_of(db, template.id) == []
        assert events.events == []

    @pytest.mark.parametrize(
        "overrides",
        [
            {"weekdays": []},
            {"weekdays": [1, 7]},
            {"weekdays": [-1]},
            {"min_staff": 3, "max_staff": 2},
            {"min_staff": 0},
            {"horizon_days": 0},
            {"horizon_days": 91},
        ],
    )
    async def test_invalid_pattern_rejected(self, db, facility, template_service, overrides):
        with pytest.raises(InvalidRecurrencePatternError) as exc_info:
            await template_service.create_template(db, template_payload(facility, **overrides), today=MONDAY)

        assert exc_info.value.status_code == 400
        _, total = await template_service.list_templates(db)
        assert total == 0

    async def test_unknown_facility(self, db, facility, template_service):
        with pytest.raises(FacilityNotFoundError):
            await template_service.create_template(
                db, template_payload(facility, facility_id=uuid.uuid4()), today=MONDAY
            )
        _, total = await template_service.list_templates(db)
        assert total == 0


class TestUpdateTemplate:
    async def test_update_regenerates_but_keeps_assigned(
        self, db, facility, worker, template_service, assignment_engine, events
    ):
        """시각 변경 → 미배정 인스턴스만 새 시각으로 재생성, 배정 인스턴스 유지."""
        template = await template_service.create_template(db, template_payload(facility), today=MONDAY)
        taken = (await rows_of(db, template.id))[0]
        await assignment_engine.assign(db, taken.id, worker.id)

        await template_service.update_template(
            db, template.id, ShiftTemplateUpdate(start_time=time(8, 0)), today=MONDAY
        )

        rows = {r.id: r for r in await rows_of(db, template.id)}
        assert len(rows) == 8
        assert rows[taken.id].start_time == time(7, 0)
        assert rows[taken.id].filled_count == 1
        assert all(r.start_time == time(8, 0) for i, r in rows.items() if i != taken.id)
        updated = events.of_type(EventType.TEMPLATE_UPDATED)
        assert updated[-1]["changed_fields"] == ["start_time"]
        assert events.of_type(EventType.SHIFTS_GENERATED)[-1]["removed_count"] == 7

    async def test_lowering_min_staff_shrinks_future(self, db, facility, template_service):
        template = await template_service.create_template(db, template_payload(facility), today=MONDAY)

        await template_service.update_template(db, template.id, ShiftTemplateUpdate(min_staff=1), today=MONDAY)

        rows = await rows_of(db, template.id)
        assert len(rows) == 4
        assert {r.slot_index for r in rows} == {0}

    async def test_invalid_update_leaves_template_unchanged(self, db, facility, template_service):
        template_id = (await template_service.create_template(db, template_payload(facility), today=MONDAY)).id

        with pytest.raises(InvalidRecurrencePatternError):
            await template_service.update_template(
                db, template_id, ShiftTemplateUpdate(max_staff=1), today=MONDAY
            )

        reloaded = await template_service.get_template(db, template_id)
        assert (reloaded.min_staff, reloaded.max_staff) == (2, 3)
        assert len(await rows_of(db, template_id)) == 8

    async def test_notes_can_be_cleared(self, db, facility, template_service):
        template = await template_service.create_template(
            db, template_payload(facility, notes="bring badge"), today=MONDAY
        )
        updated = await template_service.update_template(
            db, template.id, ShiftTemplateUpdate(notes=None), today=MONDAY
        )
        assert updated.notes is None

    async def test_unknown_template(self, db, template_service):
        with pytest.raises(TemplateNotFoundError):
            await template_service.update_template(db, uuid.uuid4(), ShiftTemplateUpdate(name="x"))


class TestActivationAndRegeneration:
    async def test_deactivate_then_regenerate_purges_unassigned(
        self, db, facility, worker, template_service, assignment_engine, events
    ):
        """비활성화는 아무것도 지우지 않고, 재생성이 미배정 3개를 삭제하고 0을 반환."""
        template = await template_service.create_template(
            db, template_payload(facility, min_staff=1, max_staff=1), today=MONDAY
        )
        rows = await rows_of(db, template.id)
        assert len(rows) == 4
        await assignment_engine.assign(db, rows[0].id, worker.id)

        await template_service.set_template_active(db, template.id, False, today=MONDAY)
        assert len(await rows_of(db, template.id)) == 4

        generated = await template_service.regenerate_shifts(db, template.id, today=MONDAY)

        assert generated == 0
        remaining = await rows_of(db, template.id)
        assert [r.id for r in remaining] == [rows[0].id]
        assert events.of_type(EventType.SHIFTS_GENERATED)[-1]["removed_count"] == 3

        reactivated = await template_service.set_template_active(db, template.id, True, today=MONDAY)
        assert reactivated.is_active is True
        assert len(await rows_of(db, template.id)) == 4

    async def test_regenerate_active_template_is_idempotent(self, db, facility, template_service):
        template = await template_service.create_template(db, template_payload(facility), today=MONDAY)
        first_ids = {r.id for r in await rows_of(db, template.id)}

        generated = await template_service.regenerate_shifts(db, template.id, today=MONDAY)

        assert generated == 8
        assert {r.id for r in await rows_of(db, template.id)} == first_ids

    async def test_activation_rejects_empty_pattern(self, db, facility, template_service):
        template = await template_service.create_template(
            db, template_payload(facility, weekdays=[], is_active=False), today=MONDAY
        )
        with pytest.raises(InvalidRecurrencePatternError):
            await template_service.set_template_active(db, template.id, True, today=MONDAY)

    async def test_busy_template_rejects_second_generation(self, db, facility, template_service):
        template = await template_service.create_template(db, template_payload(facility), today=MONDAY)

        async with template_service._generation_locks.hold(template.id):
            with pytest.raises(RegenerationInProgressError) as exc_info:
                await template_service.regenerate_shifts(db, template.id, today=MONDAY)

        assert exc_info.value.headers == {"Retry-After": "2"}
        assert len(await rows_of(db, template.id)) == 8

    async def test_regenerate_unknown_template(self, db, template_service):
        with pytest.raises(TemplateNotFoundError):
            await template_service.regenerate_shifts(db, uuid.uuid4(), today=MONDAY)


class FlakyExpander(RecurrenceExpander):
    """지정한 템플릿에서만 실패하는 확장기 (Fails for one template)."""

    def __init__(self, failing_id: uuid.UUID) -> None:
        self.failing_id = failing_id

    async def expand_detailed(self, db, template, window_start, window_end, **kwargs):
        if template.id == self.failing_id:
            raise RuntimeError("expansion failed")
        return await super().expand_detailed(db, template, window_start, window_end, **kwargs)


class TestMaintenance:
    async def test_generation_run_fills_rolled_horizon(self, db, facility, template_service):
        """일주일 후 실행 → 새로 기간에 들어온 날짜만 생성."""
        await template_service.create_template(db, template_payload(facility), today=MONDAY)
        await template_service.create_template(
            db, template_payload(facility, name="Off", is_active=False), today=MONDAY
        )

        run = await template_service.generate_for_active_templates(db, today=NEXT_MONDAY)

        assert run.templates == 1
        assert run.generated_count == 4
        assert run.failed_template_ids == []

    async def test_generation_run_skips_failing_template(self, db, facility, template_service, events):
        good = await template_service.create_template(db, template_payload(facility), today=MONDAY)
        bad = await template_service.create_template(
            db, template_payload(facility, name="Broken"), today=MONDAY
        )
        good_id, bad_id = good.id, bad.id
        flaky = TemplateService(event_sink=events, expander=FlakyExpander(bad_id))

        run = await flaky.generate_for_active_templates(db, today=NEXT_MONDAY)

        assert run.templates == 2
        assert run.failed_template_ids == [str(bad_id)]
        assert run.generated_count == 4
        assert len(await rows_of(db, good_id)) == 12
        assert len(await rows_of(db, bad_id)) == 8

    async def test_generation_run_keeps_instances_before_failure(
        self, db, facility, template_service, monkeypatch
    ):
        """11/2 두 슬롯은 커밋, 11/4 첫 슬롯에서 실패 → 10개 유지."""
        template_id = (await template_service.create_template(db, template_payload(facility), today=MONDAY)).id
        original = shift_instance_repository.insert_if_absent
        new_inserts: list[date] = []

        async def insert_if_absent(session, values):
            if values["shift_date"] >= date(2026, 11, 2):
                new_inserts.append(values["shift_date"])
                if len(new_inserts) == 3:
                    raise RuntimeError("insert failed")
            return await original(session, values)

        monkeypatch.setattr(shift_instance_repository, "insert_if_absent", insert_if_absent)

        run = await template_service.generate_for_active_templates(db, today=NEXT_MONDAY)

        assert run.failed_template_ids == [str(template_id)]
        rows = await rows_of(db, template_id)
        assert len(rows) == 10
        assert max(r.shift_date for r in rows) == date(2026, 11, 2)
        template = await template_service.get_template(db, template_id)
        assert template.generated_shifts_count == 10

    async def test_find_missing_dates(self, db, facility, template_service):
        template = await template_service.create_template(db, template_payload(facility), today=MONDAY)

        report = await template_service.find_missing_dates(db, days_ahead=14, today=NEXT_MONDAY)

        assert len(report) == 1
        assert report[0].template_id == str(template.id)
        assert report[0].dates == [date(2026, 11, 2), date(2026, 11, 4)]

    async def test_zero_days_ahead_checks_only_today(self, db, facility, template_service):
        """days_ahead=0 은 템플릿 기간으로 대체되지 않음 (0 is not treated as unset)."""
        await template_service.create_template(db, template_payload(facility), today=MONDAY)

        assert await template_service.find_missing_dates(db, days_ahead=0, today=NEXT_MONDAY) == []

    async def test_no_missing_dates_right_after_creation(self, db, facility, template_service):
        await template_service.create_template(db, template_payload(facility), today=MONDAY)
        assert await template_service.find_missing_dates(db, today=MONDAY) == []

    async def test_reconcile_fixes_unassigned_and_reports_assigned(
        self, db, facility, worker, template_service, assignment_engine
    ):
        """패턴 변경 후 점검 — 미배정은 수정/삭제, 배정은 보고만."""
        template = await template_service.create_template(db, template_payload(facility), today=MONDAY)
        wednesday_slot = next(
            r for r in await rows_of(db, template.id)
            if r.shift_date == MONDAY + timedelta(days=2) and r.slot_index == 0
        )
        await assignment_engine.assign(db, wednesday_slot.id, worker.id)
        # 재생성 없이 템플릿만 변경 — pattern drifts away from the stored instances
        template.weekdays = [1]
        template.min_staff = 1
        template.start_time = time(8, 0)
        await db.commit()

        report = await template_service.reconcile_instances(db, template.id, today=MONDAY)

        assert report.fixed == 7
        assert len(report.issues) == 1
        assert "2026-10-21 (Wed) slot 0" in report.issues[0]
        rows = await rows_of(db, template.id)
        assert {(r.shift_date, r.slot_index) for r in rows} == {
            (MONDAY, 0), (MONDAY + timedelta(days=2), 0), (NEXT_MONDAY, 0),
        }
        assert all(r.start_time == time(8, 0) for r in rows if r.id != wednesday_slot.id)
