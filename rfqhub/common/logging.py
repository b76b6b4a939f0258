"""Application logging setup.

Call ``setup_logging()`` once at process start (API lifespan or Celery worker
boot); modules grab their logger with ``get_logger("area.module")``.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from rfqhub.config import settings

ROOT_LOGGER = "rfqhub"

_configured = False


class JSONFormatter(logging.Formatter):
    """One JSON object per line for log shipping."""

    EXTRA_KEYS = ("channel", "recipient", "event", "rfq_id", "quote_id", "duration_ms")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in self.EXTRA_KEYS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    global _configured
    if _configured:
        return

    if json_logs is None:
        json_logs = settings.APP_ENV == "production"

    handler = logging.StreamHandler(sys.stdout)
    if json_logs:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%H:%M:%S")
        )

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel((level or settings.LOG_LEVEL).upper())
    root.addHandler(handler)
    root.propagate = False

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
