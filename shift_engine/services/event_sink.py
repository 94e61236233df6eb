"""이벤트 싱크 — 배정/취소/생성 이벤트를 하위 시스템에 전달합니다.

Event sink — Delivers assignment, cancellation and generation events to
downstream notification and audit consumers. Delivery is best-effort:
``publish_event`` bounds every publish with a timeout and logs failures,
so a broken sink never fails or rolls back the operation that emitted it.
"""

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from axiom_py import Client as AxiomClient

from shift_engine.config import Settings, settings

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """엔진 이벤트 유형 (Engine event types)."""

    ASSIGNMENT_CREATED = "AssignmentCreated"
    ASSIGNMENT_REMOVED = "AssignmentRemoved"
    SHIFTS_GENERATED = "ShiftsGenerated"
    SHIFT_CANCELLED = "ShiftCancelled"
    TEMPLATE_UPDATED = "TemplateUpdated"


class EventSink(Protocol):
    async def publish(self, event_type: str, payload: dict[str, Any]) -> None: ...


class LoggingEventSink:
    """로거로 이벤트를 출력하는 싱크 — 기본 구현 (Default sink: structured log line)."""

    def __init__(self, logger_name: str = "shift_engine.events") -> None:
        self._logger: logging.Logger = logging.getLogger(logger_name)

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        self._logger.info("%s %s", event_type, payload)


class AxiomEventSink:
    """Axiom 이벤트 데이터셋으로 전송하는 싱크.

    Sink that ingests events into an Axiom dataset. The Axiom client is
    synchronous, so ingestion runs in a worker thread.
    """

    def __init__(self, token: str, dataset: str) -> None:
        self._client: AxiomClient = AxiomClient(token=token)
        self._dataset: str = dataset

    async def publish(self, event_type: str, payload: dict[str, Any]) -> None:
        event: dict[str, Any] = {
            "event_type": event_type,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        await asyncio.to_thread(self._client.ingest_events, self._dataset, [event])


def build_event_sink(config: Settings = settings) -> EventSink:
    """설정에 맞는 이벤트 싱크를 생성합니다.

    Build the sink selected by ``EVENT_SINK``. Falls back to the logging sink
    when Axiom is selected but not configured.
    """
    if config.EVENT_SINK == "axiom":
        if config.AXIOM_API_TOKEN and config.AXIOM_EVENTS_DATASET:
            return AxiomEventSink(config.AXIOM_API_TOKEN, config.AXIOM_EVENTS_DATASET)
        logger.warning("EVENT_SINK=axiom but Axiom token/dataset missing; using log sink")
    return LoggingEventSink()


async def publish_event(
    sink: EventSink,
    event_type: EventType,
    payload: dict[str, Any],
    timeout: float | None = None,
) -> bool:
    """이벤트를 전송하고 실패 시 로그만 남깁니다 (fire-and-forget).

    Publish an event; failures and timeouts are logged, never raised.

    Returns:
        bool: 전송 성공 여부 (Whether the sink accepted the event)
    """
    limit: float = timeout if timeout is not None else settings.EVENT_PUBLISH_TIMEOUT_SECONDS
    try:
        await asyncio.wait_for(sink.publish(event_type.value, payload), timeout=limit)
    except Exception:
        logger.warning("Event publish failed: %s", event_type.value, exc_info=True)
        return False
    return True
