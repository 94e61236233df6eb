"""디렉터리 읽기 모델 — 외부 시스템이 소유하는 시설/근무자 미러 테이블.

Directory read models — Mirrors of facility and worker records owned by the
external facility-management and user systems. The engine never writes these
tables; it only reads them through the directory interfaces.

Tables:
    - facilities: 의료 시설 (Healthcare facilities)
    - workers: 근무자 프로필 (Worker profiles with a single specialty)
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import String, Boolean, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from shift_engine.database import Base


class Facility(Base):
    """시설 모델 — 템플릿 생성 시 존재 여부 확인에만 사용.

    Facility model — Only consulted to verify a facility exists
    when a template or ad-hoc shift is created.
    """

    __tablename__ = "facilities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 활성 상태 — 비활성 시설은 존재하지 않는 것으로 취급 (Inactive facilities count as missing)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))


class Worker(Base):
    """근무자 모델 — 배정 시 전문 분야 검증에 사용.

    Worker model — Consulted for specialty validation on assignment.

    Attributes:
        id: 고유 식별자 UUID (Unique identifier)
        full_name: 이름 (Display name)
        specialty: 전문 분야, 정확히 일치해야 배정 가능 (Specialty, must match exactly)
        is_active: 활성 상태 (Active status flag)
    """

    __tablename__ = "workers"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    specialty: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
