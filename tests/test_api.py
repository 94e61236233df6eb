"""HTTP API 테스트 — 라우터와 오류 응답 형식.

HTTP API tests — Router wiring, status codes and the
``{"detail": {"code", "message", "context"}}`` error body.
"""

import uuid
from datetime import time, timedelta

from shift_engine.utils.dates import scheduling_today

from tests.conftest import make_shift

API = "/api/v1"


def template_body(facility, **overrides):
    body = {
        "name": "ICU Day",
        "facility_id": str(facility.id),
        "department": "ICU",
        "specialty": "RN",
        "weekdays": [1, 3],
        "start_time": "07:00",
        "end_time": "19:00",
        "min_staff": 2,
        "max_staff": 3,
        "horizon_days": 14,
    }
    body.update(overrides)
    return body


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestTemplateEndpoints:
    async def test_create_and_fetch(self, client, facility):
        response = await client.post(f"{API}/templates", json=template_body(facility))

        assert response.status_code == 201
        created = response.json()
        # 14일 창에는 월/수가 정확히 두 번씩 들어감 — two Mondays and two Wednesdays
        assert created["generated_shifts_count"] == 8
        assert created["weekdays"] == [1, 3]
        assert created["start_time"] == "07:00"

        fetched = await client.get(f"{API}/templates/{created['id']}")
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "ICU Day"

        listing = await client.get(f"{API}/templates", params={"facility_id": str(facility.id)})
        assert listing.json()["total"] == 1

    async def test_invalid_pattern(self, client, facility):
        response = await client.post(f"{API}/templates", json=template_body(facility, min_staff=3, max_staff=2))

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "InvalidRecurrencePattern"

    async def test_unknown_template(self, client):
        response = await client.get(f"{API}/templates/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "TemplateNotFound"

    async def test_patch_and_deactivate(self, client, facility):
        template_id = (await client.post(f"{API}/templates", json=template_body(facility))).json()["id"]

        patched = await client.patch(f"{API}/templates/{template_id}", json={"end_time": "19:30"})
        assert patched.status_code == 200
        assert patched.json()["end_time"] == "19:30"

        toggled = await client.put(f"{API}/templates/{template_id}/active", json={"is_active": False})
        assert toggled.json()["is_active"] is False

        regenerated = await client.post(f"{API}/templates/{template_id}/regenerate")
        assert regenerated.status_code == 200
        assert regenerated.json() == {"template_id": template_id, "generated_count": 0}

        open_shifts = await client.get(f"{API}/shifts/open")
        assert open_shifts.json()["total"] == 0

    async def test_regenerate_while_busy(self, client, facility, template_service):
        template_id = (await client.post(f"{API}/templates", json=template_body(facility))).json()["id"]

        async with template_service._generation_locks.hold(uuid.UUID(template_id)):
            response = await client.post(f"{API}/templates/{template_id}/regenerate")

        assert response.status_code == 409
        assert response.headers["retry-after"] == "2"
        assert response.json()["detail"]["code"] == "RegenerationInProgress"

    async def test_reconcile_clean_template(self, client, facility):
        template_id = (await client.post(f"{API}/templates", json=template_body(facility))).json()["id"]

        response = await client.post(f"{API}/templates/{template_id}/reconcile")

        assert response.json() == {"template_id": template_id, "fixed": 0, "issues": []}


class TestShiftEndpoints:
    async def test_open_shifts_listing(self, client, facility):
        await client.post(f"{API}/templates", json=template_body(facility))

        response = await client.get(f"{API}/shifts/open", params={"specialty": "RN", "per_page": 3})

        body = response.json()
        assert body["total"] == 8
        assert len(body["items"]) == 3
        dates = [item["shift_date"] for item in body["items"]]
        assert dates == sorted(dates)

    async def test_adhoc_create_and_cancel(self, client, facility):
        response = await client.post(f"{API}/shifts", json={
            "facility_id": str(facility.id),
            "department": "ER",
            "specialty": "RN",
            "title": "ER surge",
            "shift_date": str(scheduling_today()),
            "start_time": "19:00",
            "end_time": "07:00",
            "capacity": 2,
        })
        assert response.status_code == 201
        shift = response.json()
        assert shift["duration_hours"] == 12.0
        assert shift["template_id"] is None

        cancelled = await client.post(f"{API}/shifts/{shift['id']}/cancel")
        assert cancelled.json()["status"] == "cancelled"

        fetched = await client.get(f"{API}/shifts/{shift['id']}")
        assert fetched.json()["status"] == "cancelled"

    async def test_validation_error_is_422(self, client):
        response = await client.post(f"{API}/shifts", json={"department": "ER"})
        assert response.status_code == 422


class TestAssignmentEndpoints:
    async def test_assign_list_unassign(self, db, client, facility, worker):
        shift = await make_shift(db, facility, scheduling_today() + timedelta(days=1))

        assigned = await client.post(
            f"{API}/shifts/{shift.id}/assignments", json={"worker_id": str(worker.id)}
        )
        assert assigned.status_code == 201
        outcome = assigned.json()
        assert outcome["shift"]["status"] == "filled"
        assert outcome["assignment"]["worker_id"] == str(worker.id)

        listing = await client.get(f"{API}/shifts/{shift.id}/assignments")
        assert [a["status"] for a in listing.json()] == ["assigned"]

        removed = await client.delete(f"{API}/shifts/{shift.id}/assignments/{worker.id}")
        assert removed.status_code == 200
        assert removed.json()["shift"]["filled_count"] == 0
        assert removed.json()["assignment"]["status"] == "unassigned"

        active_only = await client.get(
            f"{API}/shifts/{shift.id}/assignments", params={"include_history": "false"}
        )
        assert active_only.json() == []

    async def test_schedule_conflict_body(self, db, client, facility, worker):
        day = scheduling_today() + timedelta(days=1)
        first = await make_shift(db, facility, day, time(7, 0), time(19, 0))
        second = await make_shift(db, facility, day, time(12, 0), time(20, 0))
        first_id = first.id
        await client.post(f"{API}/shifts/{first_id}/assignments", json={"worker_id": str(worker.id)})

        response = await client.post(f"{API}/shifts/{second.id}/assignments", json={"worker_id": str(worker.id)})

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "ScheduleConflict"
        assert detail["context"]["conflicting_assignment"]["shift_id"] == str(first_id)

    async def test_specialty_mismatch_is_400(self, db, client, facility, lpn_worker):
        shift = await make_shift(db, facility, scheduling_today())

        response = await client.post(f"{API}/shifts/{shift.id}/assignments", json={"worker_id": str(lpn_worker.id)})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "SpecialtyMismatch"

    async def test_unassign_missing_assignment(self, db, client, facility, worker):
        shift = await make_shift(db, facility, scheduling_today())

        response = await client.delete(f"{API}/shifts/{shift.id}/assignments/{worker.id}")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "AssignmentNotFound"


class TestMaintenanceEndpoints:
    async def test_generate_and_missing_dates(self, client, facility):
        await client.post(f"{API}/templates", json=template_body(facility))

        run = await client.post(f"{API}/maintenance/generate")
        assert run.status_code == 200
        assert run.json() == {"templates": 1, "generated_count": 0, "failed_template_ids": []}

        missing = await client.get(f"{API}/maintenance/missing-dates")
        assert missing.json() == []

    async def test_fill_audit(self, client, db, facility, worker):
        shift = await make_shift(db, facility, scheduling_today())
        await client.post(f"{API}/shifts/{shift.id}/assignments", json={"worker_id": str(worker.id)})

        response = await client.post(f"{API}/maintenance/fill-audit", params={"repair": "true"})

        assert response.json() == {"checked": 1, "drifted": [], "repaired": False}
