"""요청 상관관계 및 구조화 로깅(Request correlation and structured logging)."""
from __future__ import annotations

import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from .config import get_settings

# 요청 단위 상관관계 ID(Per-request correlation ID)
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="system")


def get_request_id() -> str:
    """요청 ID 조회(Retrieve the current request ID)."""

    return request_id_ctx.get()


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """요청 ID를 주입하는 JSON 포매터(JSON formatter with request ID injection)."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if "timestamp" not in log_record:
            log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record.pop("asctime", None)

        log_record["request_id"] = get_request_id()
        log_record.setdefault("level", record.levelname)
        log_record.setdefault("name", record.name)
        log_record.setdefault("service", get_settings().app_name)
