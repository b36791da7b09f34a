"""Logging utilities for the hrosc bridge."""
import logging
import sys
import os
import threading
from typing import Optional


# Guards handler installation when the BLE loop and pacing thread log at once
_logger_init_lock = threading.Lock()


class BridgeFormatter(logging.Formatter):
    """Compact single-line formatter.

    Format: [{level[0]} {time} {module_basename[:9]}] {message}
    Example: [I 14:23:45.123 pacer    ] Idle → Draining
    """

    def format(self, record):
        level_char = record.levelname[0]

        module_name = record.name.split('.')[-1]
        module_padded = module_name[:9].ljust(9)

        timestamp = self.formatTime(record, "%H:%M:%S")
        msecs = f"{record.msecs:03.0f}"

        prefix = f"[{level_char} {timestamp}.{msecs} {module_padded}]"
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{prefix} {message}"


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get logger for an hrosc component.

    Args:
        name: Component name (usually __name__)
        level: Optional level (DEBUG/INFO/WARNING/ERROR)
               Falls back to HROSC_LOG_LEVEL env var, then INFO

    Returns:
        Configured logger instance

    Example:
        >>> from hrosc.log import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("Subscribed to heart rate")
        [I 14:23:45.123 ble      ] Subscribed to heart rate
    """
    logger = logging.getLogger(name)

    if level is None:
        level = os.getenv("HROSC_LOG_LEVEL", "INFO")

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    with _logger_init_lock:
        if not logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(BridgeFormatter())
            logger.addHandler(handler)

    return logger


def set_level(level: str) -> None:
    """Apply a level to every hrosc logger created so far."""
    resolved = getattr(logging, level.upper(), logging.INFO)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if name.startswith("hrosc") and isinstance(logger, logging.Logger):
            logger.setLevel(resolved)
