from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Iterable, Mapping

from ..middlewares import principal_ctx_var, request_id_ctx_var

# Libraries that log per-glyph or per-request detail at INFO.
NOISY_LOGGERS = ("fontTools", "fpdf", "PIL", "httpx", "httpcore")


class JsonLogFormatter(logging.Formatter):
    """One JSON object per record, tagged with the service and request context."""

    def __init__(self, service: str = "devicebook") -> None:
        super().__init__()
        self.service = service

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "level": record.levelname,
            "service": self.service,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = request_id_ctx_var.get()
        if request_id:
            payload["request_id"] = request_id
        principal = principal_ctx_var.get()
        if principal:
            payload["principal"] = principal
        extra = getattr(record, "extra_data", None)
        if isinstance(extra, Mapping):
            payload.update(extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str)


def configure_logging(
    level: str = "INFO",
    *,
    service: str = "devicebook",
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter(service))
    logging.root.handlers = [handler]
    logging.root.setLevel(level.upper())
    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
