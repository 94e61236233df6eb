"""일일 시프트 생성 작업 — 모든 활성 템플릿의 게시 기간을 채웁니다.

Daily shift generation job — Tops up the rolling horizon of every active
template. Each template commits on its own; a failing template is logged
and skipped. Safe to rerun: slot ids are deterministic, so a second run on
the same day creates nothing.

Usage:
    python -m shift_engine.jobs.daily_generation

Exit status:
    0 — 모든 템플릿 성공 (every template succeeded)
    1 — 하나 이상 실패 (one or more templates failed)
"""

import asyncio
import logging
import sys

from shift_engine.config import settings
from shift_engine.database import async_session, engine
from shift_engine.schemas.template import GenerationRunResponse
from shift_engine.services.template_service import template_service
from shift_engine.utils.log_config import configure_logging

logger = logging.getLogger(__name__)


async def run() -> GenerationRunResponse:
    """활성 템플릿 전체에 대해 생성 작업을 한 번 실행합니다."""
    async with async_session() as db:
        summary: GenerationRunResponse = await template_service.generate_for_active_templates(db)
    await engine.dispose()
    return summary


def main() -> int:
    configure_logging(settings.LOG_LEVEL)
    summary: GenerationRunResponse = asyncio.run(run())
    logger.info(
        "Daily generation finished: %d templates, %d shifts created",
        summary.templates, summary.generated_count,
    )
    if summary.failed_template_ids:
        logger.error("Templates that failed: %s", ", ".join(summary.failed_template_ids))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
