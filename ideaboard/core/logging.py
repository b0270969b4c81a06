import json
import logging
import sys
from datetime import datetime, timezone
from typing import TextIO

from ideaboard.core.request_context import principal_id_ctx, request_id_ctx

TEXT_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s [req=%(request_id)s user=%(user_id)s] %(message)s"
)

# Library loggers that drown request logs at DEBUG/INFO.
QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "asyncio": logging.WARNING,
}


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        record.user_id = principal_id_ctx.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line, tagged with the request and acting user."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception_type"] = record.exc_info[0].__name__
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "text",
    *,
    stream: TextIO | None = None,
) -> None:
    level = getattr(logging, log_level.upper(), logging.INFO)
    normalized_format = (log_format or "text").strip().lower()

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    if normalized_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    for name, floor in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(max(level, floor))
