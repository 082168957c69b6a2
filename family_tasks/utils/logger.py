"""
Logging utilities.

Provides process-wide handler setup and structured JSON event logging.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """
    Attach a stdout handler to the root logger.

    Args:
        level: Logging level name
    """
    root = logging.getLogger()
    root.setLevel(level)

    # Prevent adding handlers multiple times
    if any(getattr(handler, "_family_tasks", False) for handler in root.handlers):
        return

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    console_handler._family_tasks = True
    root.addHandler(console_handler)


def mask_phone(phone_number: Optional[str]) -> str:
    """Keep only the last four digits of a phone number."""
    if not phone_number:
        return "<none>"
    digits = phone_number.strip()
    if len(digits) <= 4:
        return "***"
    return "*" * (len(digits) - 4) + digits[-4:]


class StructuredLogger:
    """Logger that emits one JSON document per event."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def _log_structured(self, level: int, message: str, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": logging.getLevelName(level),
            "message": message,
            "service": self.logger.name,
        }
        log_data.update(kwargs)
        self.logger.log(level, json.dumps(log_data, default=str))

    def debug(self, message: str, **kwargs):
        self._log_structured(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log_structured(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_structured(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_structured(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an error event with the active traceback."""
        if self.logger.isEnabledFor(logging.ERROR):
            log_data = {
                "timestamp": datetime.utcnow().isoformat(),
                "level": "ERROR",
                "message": message,
                "service": self.logger.name,
                "exception": True,
            }
            log_data.update(kwargs)
            self.logger.exception(json.dumps(log_data, default=str))


def get_logger(service_name: str) -> StructuredLogger:
    """
    Get a structured logger for the specified component.

    Args:
        service_name: Logger name

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(service_name)
