"""
Logging configuration with masking of participant identifiers and an audit
trail for regulated flow steps.
"""
import logging
import re
from typing import Any

from assistant.core.config import settings


LOGGER_NAME = "assistant"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Participant identifiers never reach log output in clear text
MASK_PATTERNS = [
    (re.compile(r"""(["'])email\1:\s*(["'])[^"']*\2""", re.IGNORECASE), r"\1email\1: \2***@***\2"),
    (re.compile(r"""(["'])ssn\1:\s*(["'])[^"']*\2""", re.IGNORECASE), r"\1ssn\1: \2***-**-****\2"),
    (re.compile(r"""(["'])(account_number|bank_account|routing_number)\1:\s*(["'])[^"']*\3""", re.IGNORECASE),
     r"\1\2\1: \3***\3"),
    (re.compile(r"\b\d{3}-\d{2}-\d{4}\b"), "***-**-****"),
]


class MaskingFormatter(logging.Formatter):
    """Formatter that masks sensitive participant fields."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    level = logging.DEBUG if settings.DEBUG else logging.INFO
    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(level)

    if not app_logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(MaskingFormatter(LOG_FORMAT))
        app_logger.addHandler(console_handler)

    return app_logger


# Global logger instance
logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, always under the application logger."""
    if name == LOGGER_NAME or name.startswith(f"{LOGGER_NAME}."):
        return logging.getLogger(name)
    return logger.getChild(name)


def log_audit_event(
    event_type: str,
    actor_id: str,
    actor_type: str,
    details: dict[str, Any],
) -> None:
    """Record one regulated dialogue event (flow start, completion, cancel, reset)."""
    rendered = ", ".join(f"{key}={details[key]!r}" for key in sorted(details))
    logger.info(f"AUDIT: {event_type} | actor={actor_id} ({actor_type}) | details={{{rendered}}}")
