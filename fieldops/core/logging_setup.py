from __future__ import annotations

import json
import logging
import os
import re
from datetime import datetime, timezone
from typing import Optional

from fieldops.core.request_context import current_request_context

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# values are masked whether written as key=value or as a JSON member
_SENSITIVE_KEYS = r"(?:[a-z_]*token|password|[a-z_]*secret|code_verifier)"
_SENSITIVE_PATTERNS = [
    re.compile(r"(authorization[\"']?\s*[:=]\s*[\"']?(?:bearer|basic)\s+)([^\s\"',}]+)", re.IGNORECASE),
    re.compile(r"(" + _SENSITIVE_KEYS + r"[\"']?\s*[:=]\s*[\"']?)([^\s\"',}]+)", re.IGNORECASE),
]

_CONTEXT_FIELDS = ("request_id", "user_id", "company_id")
_EXTRA_FIELDS = ("endpoint", "method", "status_code", "duration_ms")


def mask_secrets(value: str) -> str:
    for pattern in _SENSITIVE_PATTERNS:
        value = pattern.sub(r"\1***", value)
    return value


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        bound = current_request_context()
        bound_fields = bound.log_fields() if bound is not None else {}

        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": mask_secrets(self.formatMessage(record)),
        }
        for key in _CONTEXT_FIELDS:
            value = getattr(record, key, None)
            payload[key] = value if value is not None else bound_fields.get(key)
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = mask_secrets(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: Optional[str] = None) -> None:
    level = (level or LOG_LEVEL).upper()
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter("%(message)s"))
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(level)
    # httpx logs full request URLs, which carry OAuth codes on the Xero callback
    logging.getLogger("httpx").setLevel(max(logging.getLevelName(level), logging.WARNING))
