"""Axiom API 로깅 미들웨어.

Axiom API logging middleware.
Captures request/response data for every API call and ingests one
structured event per request into Axiom: method, path, params, masked
body, status code, duration, and for failed requests the engine error
code and message. Without Axiom credentials the middleware passes through.
"""

import asyncio
import json
import logging
import re
import time
from typing import Any

from axiom_py import Client as AxiomClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from shift_engine.config import settings

logger = logging.getLogger(__name__)

# 마스킹 대상 필드 패턴 — Fields to mask in request bodies and params
_SENSITIVE_KEYS = re.compile(
    r"(password|secret|token|authorization|api_key|apikey|credential)",
    re.IGNORECASE,
)

# 로깅 제외 경로 — Paths excluded from logging
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

_MAX_ERROR_LEN: int = 500


def _mask(data: Any, depth: int = 0) -> Any:
    """민감 필드 재귀 마스킹 — Recursively mask sensitive fields."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {k: "***" if _SENSITIVE_KEYS.search(k) else _mask(v, depth + 1) for k, v in data.items()}
    if isinstance(data, list):
        return [_mask(item, depth + 1) for item in data[:20]]
    return data


def _error_fields(body: bytes) -> dict[str, Any]:
    """오류 응답 본문에서 코드/메시지를 추출합니다.

    Pull the error kind and message out of an error response. Engine errors
    carry ``{"detail": {"code", "message", "context"}}``; validation errors
    carry a list; anything else is kept as truncated text.
    """
    try:
        payload: Any = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return {"error": body.decode("utf-8", errors="replace")[:_MAX_ERROR_LEN]}

    detail: Any = payload.get("detail", payload) if isinstance(payload, dict) else payload
    if isinstance(detail, dict) and "code" in detail:
        return {"error_code": detail["code"], "error": str(detail.get("message", ""))[:_MAX_ERROR_LEN]}
    return {"error": json.dumps(detail, default=str)[:_MAX_ERROR_LEN]}


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """모든 API 요청/응답을 Axiom에 로깅하는 미들웨어.

    Middleware that logs all API requests and responses to Axiom.
    Ingestion runs in a worker thread and its failures are logged locally,
    so a slow or broken Axiom never affects the response.
    """

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self._client: AxiomClient | None = None
        self._dataset: str = settings.AXIOM_DATASET

        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    async def _read_json_body(self, request: Request) -> Any:
        if request.method not in ("POST", "PUT", "PATCH"):
            return None
        body_bytes: bytes = await request.body()
        if not body_bytes:
            return None
        try:
            return _mask(json.loads(body_bytes))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return "(non-json body)"

    async def _ingest(self, event: dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._client.ingest_events, self._dataset, [event])
        except Exception:
            logger.warning("Axiom request-log ingest failed for %s %s", event["method"], event["path"], exc_info=True)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # Axiom 미설정 또는 제외 경로 — pass through
        if self._client is None or request.url.path in _SKIP_PATHS:
            return await call_next(request)

        started: float = time.perf_counter()
        event: dict[str, Any] = {"method": request.method, "path": request.url.path, "status_code": 500}
        if request.query_params:
            event["query_params"] = _mask(dict(request.query_params))
        request_body: Any = await self._read_json_body(request)
        if request_body is not None:
            event["request_body"] = request_body

        try:
            response: Response = await call_next(request)
            event["status_code"] = response.status_code

            if response.status_code >= 400:
                # 오류 본문을 읽은 뒤 다시 감싸서 반환 — consume, inspect, re-wrap
                resp_body: bytes = b""
                async for chunk in response.body_iterator:
                    resp_body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
                event.update(_error_fields(resp_body))
                response = Response(
                    content=resp_body,
                    status_code=response.status_code,
                    headers=dict(response.headers),
                    media_type=response.media_type,
                )
        except Exception as exc:
            event["error"] = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            event["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            if request.path_params:
                event["path_params"] = dict(request.path_params)
            await self._ingest(event)

        return response
