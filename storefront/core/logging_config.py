"""Structured logging configuration.

Emits JSON log lines suitable for any JSON-based log aggregation system
(ELK, CloudWatch, Datadog). Every record carries:
- ISO8601 timestamp
- Log level and logger name
- Service metadata
- Event type (for filtering)

Security events (token issuance, rejection, revocation) are tagged so that
alerting rules can select them without parsing messages.
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pythonjsonlogger import jsonlogger

from storefront.core.config import settings


# Log directory for file-based shipping
LOG_DIR = Path("/var/log/storefront")


class SIEMJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service and event metadata."""

    def __init__(self, *args, **kwargs):
        super().__init__(
            *args,
            fmt='%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={
                'asctime': '@timestamp',
                'levelname': 'level',
                'name': 'logger',
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

        log_record['@timestamp'] = datetime.now(timezone.utc).isoformat()

        log_record['service'] = {
            'name': settings.APP_NAME,
            'version': settings.APP_VERSION,
            'environment': settings.ENVIRONMENT,
        }

        if 'level' in log_record:
            log_record['level'] = log_record['level'].upper()

        if 'event_type' not in log_record:
            log_record['event_type'] = f"log.{record.name}"

        log_record['source'] = {
            'file': record.pathname,
            'line': record.lineno,
            'function': record.funcName,
        }


class SecurityEventFilter(logging.Filter):
    """Filter to tag security-relevant events with 'is_security_event'."""

    SECURITY_LOGGERS = {
        'security.events',
        'security.admin',
    }

    SECURITY_KEYWORDS = {
        'token', 'denied', 'blocked', 'revoked', 'rejected',
        'enumeration', 'rate limit', 'security',
    }

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, 'is_security_event', False):
            return True

        is_security_logger = any(
            record.name.startswith(logger)
            for logger in self.SECURITY_LOGGERS
        )

        msg_lower = str(record.getMessage()).lower()
        has_security_keyword = any(
            keyword in msg_lower
            for keyword in self.SECURITY_KEYWORDS
        )

        record.is_security_event = is_security_logger or has_security_keyword
        return True  # Always allow through


class _SecurityOnlyFilter(logging.Filter):
    """Filter that only allows security events."""

    def filter(self, record: logging.LogRecord) -> bool:
        return getattr(record, 'is_security_event', False)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure structured logging for the application.

    Sets up:
    1. Console handler with JSON formatting
    2. Rotating file handlers (if the log directory exists)
    3. Security event tagging

    Call this at application startup.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    json_formatter = SIEMJsonFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(json_formatter)
    console_handler.addFilter(SecurityEventFilter())
    root_logger.addHandler(console_handler)

    if LOG_DIR.exists():
        _setup_file_handlers(json_formatter)

    _configure_uvicorn_loggers(json_formatter)

    logging.info(
        "Logging configured",
        extra={
            "event_type": "system.startup.logging_configured",
            "log_level": logging.getLevelName(level),
            "file_logging": LOG_DIR.exists(),
        }
    )


def _setup_file_handlers(formatter: logging.Formatter) -> None:
    """Set up rotating file handlers for application and security logs."""
    root_logger = logging.getLogger()

    # Application logs - rotated daily, keep 30 days
    app_handler = logging.handlers.TimedRotatingFileHandler(
        LOG_DIR / "application.log",
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
    )
    app_handler.setFormatter(formatter)
    app_handler.addFilter(SecurityEventFilter())
    root_logger.addHandler(app_handler)

    # Security logs - separate file for SIEM, keep 365 days
    security_handler = logging.handlers.TimedRotatingFileHandler(
        LOG_DIR / "security.log",
        when="midnight",
        interval=1,
        backupCount=365,
        encoding="utf-8",
    )
    security_handler.setFormatter(formatter)
    security_handler.addFilter(SecurityEventFilter())
    security_handler.addFilter(_SecurityOnlyFilter())
    root_logger.addHandler(security_handler)


def _configure_uvicorn_loggers(formatter: logging.Formatter) -> None:
    """Configure uvicorn loggers to use JSON format."""
    for logger_name in ['uvicorn', 'uvicorn.error', 'uvicorn.access']:
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
