"""
Logging setup.

One stream handler on the root logger, formatted as JSON lines or plain text
depending on ``settings.log_format``. Modules log through
``logging.getLogger(__name__)``.
"""
import json
import logging
import sys
from datetime import datetime, timezone

from cipherpost.config import settings


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON object."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry)


TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging() -> None:
    """Install the configured handler on the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel(settings.log_level.upper())

    for handler in list(root.handlers):
        if getattr(handler, "_cipherpost", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._cipherpost = True
    if settings.log_format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)
