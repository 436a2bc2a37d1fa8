"""
Centralized logging configuration for the passcode engine.

This module sets up structured logging with:
- Environment-based configuration (dev vs production)
- JSON formatting for production, pretty console for development
- Redaction of secrets and plaintext passcodes
"""

import logging
import os
import sys
from datetime import datetime, timezone

import structlog
from structlog.types import EventDict, Processor


# Environment configuration
ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"

# Log level configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json" if IS_PRODUCTION else "console")

# Keys redacted wherever they appear
REDACTED_FIELDS = {
    "password",
    "token",
    "secret",
    "authorization",
    "mongodb_uri",
    "code",
    "otp",
    "otp_code",
}

# Substrings that mark a key as sensitive
REDACTED_SUBSTRINGS = ("password", "token", "secret")

_STRUCTURAL_KEYS = {"level", "event", "timestamp", "logger"}


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs.

    Plaintext passcodes must only be logged masked, so ``code``-like keys
    are wiped here as a last line. Masked values go under ``masked_code``.
    """
    for key in list(event_dict.keys()):
        if key in _STRUCTURAL_KEYS:
            continue
        lowered = key.lower()
        if lowered in REDACTED_FIELDS or any(
            sensitive in lowered for sensitive in REDACTED_SUBSTRINGS
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = LOG_FORMAT) -> None:
    """
    Configure structlog with appropriate processors for the environment.

    Production: JSON formatting for easy parsing
    Development: Pretty console formatting with colors
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event_to=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = LOG_LEVEL) -> None:
    """
    Configure standard library logging to work with structlog.

    Sets up the log level and a stdout handler.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)

    # Silence pymongo debug logs (connection pool, server monitoring, etc.)
    for name in (
        "pymongo",
        "pymongo.connection",
        "pymongo.serverSelection",
        "pymongo.command",
        "pymongo.topology",
    ):
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging(log_level: str = LOG_LEVEL, log_format: str = LOG_FORMAT) -> None:
    """
    Initialize logging system for the application.

    Runs once at import with environment defaults; create_app() calls it
    again with the values from LoggingSettings.
    """
    configure_stdlib_logging(log_level)
    configure_structlog(log_format)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_initialized",
        env=ENV,
        log_level=log_level,
        log_format=log_format,
    )


# Initialize logging when module is imported
setup_logging()
