import logging
import json
import uuid
from datetime import datetime, timezone
from contextvars import ContextVar

from core.config import settings

# 요청별 상관관계 ID (같은 요청 내에서는 어디서든 동일한 correlation_id에 접근 가능)
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

CORRELATION_ID_HEADER = "X-Correlation-ID"


class JsonFormatter(logging.Formatter):
    """
    로그를 JSON 형식으로 출력하는 포매터

    {"timestamp": "...", "level": "INFO", "message": "...", "correlation_id": "..."}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "correlation_id": correlation_id_var.get("-"),
        }

        # 추가 필드가 있으면 병합 (예: username, duration_ms 등)
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def get_logger(name: str) -> logging.Logger:
    """구조화된 JSON 로거 생성"""
    logger = logging.getLogger(name)

    # 중복 핸들러 방지
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(settings.log_level.upper())
        logger.propagate = False

    return logger


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str | None:
    value = correlation_id_var.get("-")
    return None if value == "-" else value
