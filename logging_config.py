import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_STANDARD_ATTRIBUTES = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
    "message", "asctime",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; keys passed through `extra=` are kept"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRIBUTES and key not in payload:
                payload[key] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    converter = time.gmtime

    def __init__(self):
        super().__init__("%(asctime)sZ | %(levelname)s | %(name)s | %(message)s")


class LoggingSettings(BaseSettings):
    """Logging defaults read from EQ_BENCHMARK_LOG_LEVEL and EQ_BENCHMARK_LOG_FORMAT"""

    model_config = SettingsConfigDict(env_prefix="EQ_BENCHMARK_LOG_", env_ignore_empty=True, extra="ignore")

    level: str = Field(default="INFO")
    format: str = Field(default="text")

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        text = str(value or "").strip().upper()
        if text in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            return text
        return "INFO"

    @field_validator("format")
    @classmethod
    def _normalize_format(cls, value: str) -> str:
        return "json" if str(value or "").strip().lower() == "json" else "text"


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    override_root_handlers: bool = False,
) -> logging.Logger:
    """Configure the root logger for batch runs.

    Level and format fall back to EQ_BENCHMARK_LOG_LEVEL and
    EQ_BENCHMARK_LOG_FORMAT ("text" or "json"). Handlers installed by the
    host application are left in place unless override_root_handlers is set.
    """
    settings = LoggingSettings(**{key: value for key, value in (("level", level), ("format", fmt)) if value})
    level, fmt = settings.level, settings.format

    root = logging.getLogger()
    root.setLevel(level)

    if root.handlers and not override_root_handlers:
        return root

    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if fmt == "json" else TextFormatter())
    root.addHandler(handler)
    return root
