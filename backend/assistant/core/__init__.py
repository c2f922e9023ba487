"""
Core module exports
"""
from assistant.core.config import settings, get_settings, Settings
from assistant.core.logging import logger, get_logger, log_audit_event

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "logger",
    "get_logger",
    "log_audit_event",
]
