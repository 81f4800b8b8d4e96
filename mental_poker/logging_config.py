"""
Logging configuration for mental poker peers and simulations.
"""
import logging
import sys
from datetime import datetime
from typing import List, Optional

from mental_poker.config import LOG_CONFIG


class HumanReadableFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        return f"{timestamp} | {record.levelname:<8} | {record.name} | {record.getMessage()}"


def setup_logging(level: Optional[str] = None, stream=None) -> None:
    """Set up logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR); defaults to LOG_CONFIG
        stream: Console stream; defaults to stdout
    """
    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(HumanReadableFormatter())
    handlers: List[logging.Handler] = [console_handler]

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or LOG_CONFIG["level"]).upper()))

    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
