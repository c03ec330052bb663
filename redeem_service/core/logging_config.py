"""Structured logging configuration.

Every log line is a JSON object carrying:
- ISO8601 timestamp
- Log level
- Logger name
- Event type (for filtering)
- Service metadata

Access tokens travel in the download query string, so every handler also
carries a `TokenRedactionFilter` that scrubs them before the record is
formatted. Redemption codes are never logged in the first place.
"""

import logging
import re
import sys
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

from .config import get_settings

# token=<value> in query strings (uvicorn access log, request URLs)
TOKEN_QUERY_PATTERN = re.compile(r"(token=)[^&\s\"']+")
TOKEN_REDACTED = "[TOKEN_REDACTED]"


def redact_token_from_query(text: str) -> str:
    """Replace the value of every `token=` query parameter."""
    return TOKEN_QUERY_PATTERN.sub(rf"\1{TOKEN_REDACTED}", text)


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service metadata and an event type."""

    def __init__(self, *args, **kwargs):
        super().__init__(
            *args,
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={
                "asctime": "@timestamp",
                "levelname": "level",
                "name": "logger",
            },
            **kwargs
        )

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["@timestamp"] = datetime.now(timezone.utc).isoformat()

        settings = get_settings()
        log_record["service"] = {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }

        if "level" in log_record:
            log_record["level"] = log_record["level"].upper()

        if "event_type" not in log_record:
            log_record["event_type"] = f"log.{record.name}"


class TokenRedactionFilter(logging.Filter):
    """Logging filter that redacts access tokens from log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact_token_from_query(record.msg)

        if record.args:
            if isinstance(record.args, tuple):
                record.args = tuple(
                    redact_token_from_query(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )
            elif isinstance(record.args, dict):
                record.args = {
                    k: redact_token_from_query(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }

        return True


def _build_formatter(json_output: bool) -> logging.Formatter:
    if json_output:
        return ServiceJsonFormatter()
    return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def configure_logging() -> None:
    """Configure logging for the application.

    Sets up a stdout handler (JSON or plain text), token redaction, and
    reroutes the uvicorn loggers through the same handler. Call this at
    application startup.
    """
    settings = get_settings()
    formatter = _build_formatter(settings.LOG_JSON)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.LOG_LEVEL)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(TokenRedactionFilter())
    root_logger.addHandler(console_handler)

    _configure_uvicorn_loggers(formatter)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "event_type": "system.startup.logging_configured",
            "log_level": settings.LOG_LEVEL,
            "json": settings.LOG_JSON,
        },
    )


def _configure_uvicorn_loggers(formatter: logging.Formatter) -> None:
    for logger_name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        handler.addFilter(TokenRedactionFilter())
        logger.addHandler(handler)
        logger.propagate = False
