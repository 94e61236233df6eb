"""트랜잭션 유틸리티 — 엔진 변경 작업의 원자적 커밋.

Transaction utility — Atomic commit boundary for engine mutations.
Every mutation runs under a request-scoped timeout; it commits on success
and rolls back on any error, timeout, or cancellation, so a failed operation
never leaves a partially written filled_count or assignment behind.
Work the block commits itself (expansion checkpoints) stays committed; only
the tail after the last commit is rolled back.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from shift_engine.config import settings


@asynccontextmanager
async def atomic(db: AsyncSession, timeout: float | None = None) -> AsyncIterator[AsyncSession]:
    """작업 블록을 하나의 트랜잭션으로 실행합니다.

    Run the enclosed block as a single transaction.

    Args:
        db: 비동기 데이터베이스 세션 (Async database session)
        timeout: 제한 시간(초), None이면 설정값 사용 (Seconds; defaults to OPERATION_TIMEOUT_SECONDS)

    Yields:
        AsyncSession: 같은 세션 (The same session)
    """
    limit: float = timeout if timeout is not None else settings.OPERATION_TIMEOUT_SECONDS
    try:
        async with asyncio.timeout(limit):
            yield db
            await db.commit()
    except BaseException:
        # 요청 취소(CancelledError)도 롤백 대상 — cancellation rolls back too
        await db.rollback()
        raise
