"""테스트 인프라 — 테스트별 임시 DB, 세션, httpx 클라이언트 픽스처.

Test infrastructure — Per-test database, session, and httpx client fixtures.
Each test gets a fresh SQLite (aiosqlite) file database in its tmp_path;
set TEST_DATABASE_URL to run the suite against PostgreSQL instead, in which
case the schema is dropped and recreated for every test.

Engine services commit their own transactions, so data fixtures commit too:
a rejected operation rolls back to the fixture state, not past it.
"""

import os
from collections.abc import AsyncGenerator
from datetime import date, time
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shift_engine.api.deps import get_assignment_engine, get_shift_service, get_template_service
from shift_engine.database import Base, get_db
from shift_engine.main import app
from shift_engine.models import *  # noqa: F401,F403 — register all models with metadata
from shift_engine.models.directory import Facility, Worker
from shift_engine.models.shift import SHIFT_OPEN, ShiftInstance
from shift_engine.schemas.template import ShiftTemplateCreate
from shift_engine.services.assignment_service import AssignmentEngine
from shift_engine.services.event_sink import EventType
from shift_engine.services.shift_service import ShiftService
from shift_engine.services.template_service import TemplateService


# ---------------------------------------------------------------------------
# 이벤트 싱크 테스트 더블 — Event sink test doubles
# ---------------------------------------------------------------------------
class RecordingEventSink:
    """발행된 이벤트를 기록합니다 (Records every published event)."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        self.events.append((event_type, payload))

    def of_type(self, event_type: EventType) -> list[dict[str, Any]]:
        return [payload for name, payload in self.events if name == event_type.value]


class FailingEventSink:
    """항상 실패하는 싱크 (Sink whose publish always raises)."""

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        raise RuntimeError("sink unavailable")


# ---------------------------------------------------------------------------
# Function-scoped: 엔진, 세션, 클라이언트
# ---------------------------------------------------------------------------
def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진 — 매 테스트마다 스키마를 새로 만듭니다."""
    url: str = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'shift_engine.db'}"
    eng = create_async_engine(url, echo=False)
    if eng.dialect.name == "sqlite":
        event.listen(eng.sync_engine, "connect", _enable_sqlite_foreign_keys)

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def events() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def assignment_engine(events: RecordingEventSink) -> AssignmentEngine:
    return AssignmentEngine(event_sink=events)


@pytest.fixture
def template_service(events: RecordingEventSink) -> TemplateService:
    return TemplateService(event_sink=events)


@pytest.fixture
def shift_service(events: RecordingEventSink) -> ShiftService:
    return ShiftService(event_sink=events)


@pytest_asyncio.fixture
async def client(
    db: AsyncSession,
    assignment_engine: AssignmentEngine,
    template_service: TemplateService,
    shift_service: ShiftService,
) -> AsyncGenerator[AsyncClient, None]:
    """FastAPI 테스트 클라이언트 — DB 세션과 엔진 서비스를 오버라이드합니다."""
    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_assignment_engine] = lambda: assignment_engine
    app.dependency_overrides[get_template_service] = lambda: template_service
    app.dependency_overrides[get_shift_service] = lambda: shift_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# 헬퍼 픽스처: 테스트용 데이터 생성
# ---------------------------------------------------------------------------
async def _persist(db: AsyncSession, obj: Any) -> Any:
    db.add(obj)
    await db.commit()
    await db.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def facility(db: AsyncSession) -> Facility:
    """테스트 시설을 생성합니다."""
    return await _persist(db, Facility(name="General Hospital"))


@pytest_asyncio.fixture
async def worker(db: AsyncSession) -> Worker:
    """RN 근무자를 생성합니다."""
    return await _persist(db, Worker(full_name="Dana Park", specialty="RN"))


@pytest_asyncio.fixture
async def other_worker(db: AsyncSession) -> Worker:
    """두 번째 RN 근무자를 생성합니다."""
    return await _persist(db, Worker(full_name="Sam Lee", specialty="RN"))


@pytest_asyncio.fixture
async def lpn_worker(db: AsyncSession) -> Worker:
    """LPN 근무자 — 전문 분야 불일치 테스트용."""
    return await _persist(db, Worker(full_name="Alex Kim", specialty="LPN"))


def template_payload(facility: Facility, **overrides: Any) -> ShiftTemplateCreate:
    """기본값이 채워진 템플릿 생성 요청 (Mon/Wed 07:00-19:00, 2 slots)."""
    data: dict[str, Any] = {
        "name": "ICU Day",
        "facility_id": facility.id,
        "department": "ICU",
        "specialty": "RN",
        "weekdays": [1, 3],
        "start_time": time(7, 0),
        "end_time": time(19, 0),
        "min_staff": 2,
        "max_staff": 3,
        "horizon_days": 14,
    }
    data.update(overrides)
    return ShiftTemplateCreate(**data)


async def make_shift(
    db: AsyncSession,
    facility: Facility,
    shift_date: date,
    start: time = time(7, 0),
    end: time = time(19, 0),
    capacity: int = 1,
    specialty: str = "RN",
    **extra: Any,
) -> ShiftInstance:
    """수동(ad-hoc) 시프트를 직접 생성하고 커밋합니다."""
    return await _persist(db, ShiftInstance(
        facility_id=facility.id,
        department="ICU",
        specialty=specialty,
        title="ICU Cover",
        shift_date=shift_date,
        start_time=start,
        end_time=end,
        capacity=capacity,
        filled_count=0,
        status=SHIFT_OPEN,
        **extra,
    ))
