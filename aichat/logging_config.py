"""
Structured JSON Logging Configuration.

This module provides:
- JSON-formatted log output for easy parsing by log aggregators
- Sensitive data redaction (endpoint keys, bearer tokens, Redis passwords)
- Environment-aware configuration (JSON in production, human-readable in dev)
- Noise reduction from chatty libraries

Usage:
    from aichat.logging_config import setup_logging
    setup_logging()  # Call once at application startup
"""

import json
import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any


# ==============================================================================
# Sensitive Data Patterns for Redaction
# ==============================================================================

SENSITIVE_PATTERNS = [
    (
        re.compile(r'(api[_-]?key\s*[=:]\s*)["\']?[\w-]{8,}["\']?', re.IGNORECASE),
        r"\1[REDACTED]",
    ),
    (re.compile(r"(bearer\s+)[\w.-]{8,}", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(x-api-key\s*[=:]\s*)\S+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(redis://:[^@]+@)", re.IGNORECASE), r"redis://:[REDACTED]@"),
    (
        re.compile(r'(secret\s*[=:]\s*)["\']?[\w-]{10,}["\']?', re.IGNORECASE),
        r"\1[REDACTED]",
    ),
]


def redact_sensitive_data(message: str) -> str:
    """
    Redact sensitive information from log messages.

    Args:
        message: The log message to redact

    Returns:
        Message with sensitive data replaced with [REDACTED]
    """
    if not isinstance(message, str):
        return str(message)

    result = message
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


# ==============================================================================
# JSON Log Formatter
# ==============================================================================


class JSONFormatter(logging.Formatter):
    """
    Format log records as JSON for structured logging.

    Output includes timestamp, level, logger, message (redacted), module,
    function, line, exception info if present, and any fields passed via
    ``extra={...}`` (for example ``seq`` or ``attempt``).
    """

    # Fields to exclude from 'extra' (standard LogRecord attributes)
    RESERVED_ATTRS = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "asctime",
        "taskName",
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as a JSON string."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": redact_sensitive_data(record.getMessage()),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = redact_sensitive_data(
                self.formatException(record.exc_info)
            )

        for key, value in record.__dict__.items():
            if key not in self.RESERVED_ATTRS:
                if isinstance(value, str):
                    value = redact_sensitive_data(value)
                log_data[key] = value

        return json.dumps(log_data, default=str)


# ==============================================================================
# Human-Readable Formatter (for development)
# ==============================================================================


class ColoredFormatter(logging.Formatter):
    """
    Human-readable colored formatter for development.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        record.msg = redact_sensitive_data(str(record.msg))

        formatted = super().format(record)
        return f"{color}{formatted}{reset}"


# ==============================================================================
# Setup Function
# ==============================================================================


def setup_logging() -> None:
    """
    Configure application logging based on environment.

    - Production (ENV=production): JSON format to stdout
    - Development: Colored human-readable format

    Log level comes from LOG_LEVEL (default: INFO).
    """
    env = os.getenv("ENV", "development")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        log_level = "INFO"

    # Clear any existing handlers (important for testing)
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if env == "production":
        formatter = JSONFormatter()
    else:
        formatter = ColoredFormatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    noisy_loggers = [
        "uvicorn.access",
        "uvicorn.error",
        "aiohttp.access",
        "aiohttp.client",
        "redis",
    ]

    for logger_name in noisy_loggers:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(
        f"Logging configured: level={log_level}, format={'JSON' if env == 'production' else 'colored'}"
    )
