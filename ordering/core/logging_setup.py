from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

from ordering.core.config import LOG_LEVEL
from ordering.core.request_context import get_request_id, get_tenant_id, get_tenant_identifier

_SECRET_PATTERNS = (
    re.compile(r"(bearer\s+)([^\s\"']+)", re.IGNORECASE),
    re.compile(r"((?:x-platform-token|api[_-]?key|token)\s*[:=]\s*)([^\s\",}]+)", re.IGNORECASE),
)
# e-mail de cliente aparece em logs de recibo
_EMAIL_PATTERN = re.compile(r"\b([A-Za-z0-9._%+-])[A-Za-z0-9._%+-]*@([A-Za-z0-9.-]+\.[A-Za-z]{2,})\b")

_RECORD_FIELDS = (
    "endpoint",
    "method",
    "status_code",
    "duration_ms",
    "order_id",
    "order_number",
    "integration",
)


def mask_sensitive(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(r"\1***", text)
    return _EMAIL_PATTERN.sub(r"\1***@\2", text)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, with request and tenant correlation ids."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": mask_sensitive(record.getMessage()),
            "request_id": getattr(record, "request_id", None) or get_request_id(),
            "tenant_id": getattr(record, "tenant_id", None) or get_tenant_id(),
            "tenant": get_tenant_identifier(),
        }
        for name in _RECORD_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = mask_sensitive(self.formatException(record.exc_info))
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str | None = None) -> None:
    level = (level or LOG_LEVEL).upper()
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in ("uvicorn", "uvicorn.error"):
        logging.getLogger(name).setLevel(level)
    # o ObservabilityMiddleware já registra cada requisição
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
