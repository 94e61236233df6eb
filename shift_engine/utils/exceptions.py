"""커스텀 HTTP 예외 클래스 모듈.

Custom HTTP exception classes module.
Provides pre-configured HTTPException subclasses for common error patterns
and one subclass per engine error kind. Every engine error carries a stable
``code`` (the error kind) and a ``context`` dict; the HTTP detail payload is
``{"code": ..., "message": ..., "context": {...}}`` so callers can branch on
the kind without parsing messages.

Usage:
    from shift_engine.utils.exceptions import ShiftNotFoundError
    raise ShiftNotFoundError(shift_id)
"""

from typing import Any
from uuid import UUID

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    """404 Not Found 예외 — 요청한 리소스를 찾을 수 없을 때 사용.

    Args:
        detail: 오류 메시지 (Error message, default: "Resource not found")
    """

    def __init__(self, detail: Any = "Resource not found") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class DuplicateError(HTTPException):
    """409 Conflict 예외 — 현재 상태와 충돌하는 요청에 사용.

    409 Conflict exception.
    Raised when a request conflicts with the current state
    (e.g. duplicate active assignment, full shift, overlapping schedule).
    """

    def __init__(self, detail: Any = "Resource already exists", headers: dict[str, str] | None = None) -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail, headers=headers)


class BadRequestError(HTTPException):
    """400 Bad Request 예외 — 비즈니스 규칙 검증 실패 시 사용.

    Raised when the request data is invalid beyond what Pydantic validation catches.
    """

    def __init__(self, detail: Any = "Bad request") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def _error_detail(code: str, message: str, context: dict[str, Any]) -> dict[str, Any]:
    return {"code": code, "message": message, "context": context}


def _stringify(context: dict[str, Any]) -> dict[str, Any]:
    """UUID 값을 문자열로 바꿔 JSON 응답에 실을 수 있게 합니다."""
    return {k: str(v) if isinstance(v, UUID) else v for k, v in context.items()}


class EngineErrorMixin:
    """엔진 오류 공통 속성 — Shared ``code``/``context`` attributes."""

    code: str = "EngineError"
    context: dict[str, Any]


# === 조회 실패 (Lookup failures) ===

class TemplateNotFoundError(EngineErrorMixin, NotFoundError):
    code = "TemplateNotFound"

    def __init__(self, template_id: UUID) -> None:
        self.context = _stringify({"template_id": template_id})
        super().__init__(_error_detail(self.code, "Shift template not found", self.context))


class ShiftNotFoundError(EngineErrorMixin, NotFoundError):
    """시프트가 없거나 취소된 경우 — Shift missing or cancelled."""

    code = "ShiftNotFound"

    def __init__(self, shift_id: UUID, cancelled: bool = False) -> None:
        self.context = _stringify({"shift_id": shift_id, "cancelled": cancelled})
        message: str = "Shift has been cancelled" if cancelled else "Shift not found"
        super().__init__(_error_detail(self.code, message, self.context))


class AssignmentNotFoundError(EngineErrorMixin, NotFoundError):
    code = "AssignmentNotFound"

    def __init__(self, shift_id: UUID, worker_id: UUID) -> None:
        self.context = _stringify({"shift_id": shift_id, "worker_id": worker_id})
        super().__init__(_error_detail(self.code, "No active assignment for this worker on this shift", self.context))


class WorkerNotFoundError(EngineErrorMixin, NotFoundError):
    """근무자가 디렉터리에 없거나 비활성 — Unknown or inactive worker."""

    code = "WorkerNotFound"

    def __init__(self, worker_id: UUID, inactive: bool = False) -> None:
        self.context = _stringify({"worker_id": worker_id, "inactive": inactive})
        message: str = "Worker is inactive" if inactive else "Worker not found"
        super().__init__(_error_detail(self.code, message, self.context))


class FacilityNotFoundError(EngineErrorMixin, NotFoundError):
    code = "FacilityNotFound"

    def __init__(self, facility_id: UUID) -> None:
        self.context = _stringify({"facility_id": facility_id})
        super().__init__(_error_detail(self.code, "Facility not found", self.context))


# === 검증 실패 (Validation failures) ===

class InvalidRecurrencePatternError(EngineErrorMixin, BadRequestError):
    """반복 패턴 오류 — 빈 요일 집합(활성), max_staff < min_staff 등.

    Invalid recurrence pattern: empty weekday set on an active template,
    max_staff < min_staff, min_staff < 1, weekday out of range, bad horizon.
    """

    code = "InvalidRecurrencePattern"

    def __init__(self, reason: str, **context: Any) -> None:
        self.context = _stringify({"reason": reason, **context})
        super().__init__(_error_detail(self.code, reason, self.context))


class SpecialtyMismatchError(EngineErrorMixin, BadRequestError):
    code = "SpecialtyMismatch"

    def __init__(self, worker_specialty: str, shift_specialty: str) -> None:
        self.context = {"worker_specialty": worker_specialty, "shift_specialty": shift_specialty}
        super().__init__(_error_detail(
            self.code,
            f"Worker specialty '{worker_specialty}' does not match shift specialty '{shift_specialty}'",
            self.context,
        ))


# === 상태 충돌 (State conflicts) ===

class AlreadyAssignedError(EngineErrorMixin, DuplicateError):
    code = "AlreadyAssigned"

    def __init__(self, shift_id: UUID, worker_id: UUID) -> None:
        self.context = _stringify({"shift_id": shift_id, "worker_id": worker_id})
        super().__init__(_error_detail(self.code, "Worker is already assigned to this shift", self.context))


class CapacityExceededError(EngineErrorMixin, DuplicateError):
    code = "CapacityExceeded"

    def __init__(self, shift_id: UUID, capacity: int) -> None:
        self.context = _stringify({"shift_id": shift_id, "capacity": capacity})
        super().__init__(_error_detail(self.code, "Shift is already at capacity", self.context))


class ScheduleConflictError(EngineErrorMixin, DuplicateError):
    """근무 시간 겹침 — context에 충돌 배정 정보를 담습니다.

    The context carries the conflicting assignment for user-facing diagnostics.
    """

    code = "ScheduleConflict"

    def __init__(self, worker_id: UUID, conflicting_assignment: dict[str, Any]) -> None:
        self.context = _stringify({"worker_id": worker_id})
        self.context["conflicting_assignment"] = _stringify(conflicting_assignment)
        super().__init__(_error_detail(self.code, "Worker has an overlapping shift", self.context))


class RegenerationInProgressError(EngineErrorMixin, DuplicateError):
    """같은 템플릿의 재생성이 진행 중 — 잠시 후 재시도 (retry-after semantics)."""

    code = "RegenerationInProgress"
    retry_after_seconds: int = 2

    def __init__(self, template_id: UUID) -> None:
        self.context = _stringify({"template_id": template_id, "retry_after": self.retry_after_seconds})
        super().__init__(
            _error_detail(self.code, "Shift generation for this template is already running", self.context),
            headers={"Retry-After": str(self.retry_after_seconds)},
        )
