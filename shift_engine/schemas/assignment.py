"""시프트 배정 Pydantic 스키마.

Shift assignment request/response schemas.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from shift_engine.schemas.shift import ShiftResponse


class AssignWorkerRequest(BaseModel):
    """배정 요청 스키마.

    Attributes:
        worker_id: 배정할 근무자 UUID (Worker to assign)
        assigned_by: 배정자 UUID, 인증 계층이 채움 (Actor, supplied by the calling layer)
    """

    worker_id: UUID
    assigned_by: UUID | None = None


class AssignmentResponse(BaseModel):
    id: str
    shift_instance_id: str | None
    worker_id: str
    assigned_by: str | None
    assigned_at: datetime
    status: str
    unassigned_at: datetime | None
    shift_snapshot: dict[str, Any] | None


class AssignmentOutcomeResponse(BaseModel):
    """배정/해제 결과 — 배정 레코드와 갱신된 시프트 상태.

    Assignment record together with the shift's updated fill state.
    """

    assignment: AssignmentResponse
    shift: ShiftResponse
