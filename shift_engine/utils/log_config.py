"""로깅 설정 모듈.

Logging configuration module. Sets a single root format for the API process
and the generation job; modules obtain loggers via ``logging.getLogger(__name__)``.
"""

import logging

_FORMAT: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """루트 로거를 한 번 설정합니다 (Configure the root logger once)."""
    logging.basicConfig(level=level.upper(), format=_FORMAT)
