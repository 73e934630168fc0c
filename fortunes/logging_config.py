"""
Logging setup for the Fortunes command-line tools.

Library modules only create ``logging.getLogger(__name__)`` loggers and
log at DEBUG. The CLIs call ``setup_logging`` once; nothing else touches
handlers.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional, TextIO


class StandardFormatter(logging.Formatter):
    """Compact text formatter: ``LEVEL [logger] message``."""

    def format(self, record: logging.LogRecord) -> str:
        result = f"{record.levelname:8s} [{record.name}] {record.getMessage()}"
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result


def setup_logging(log_level: str = "WARNING", stream: Optional[TextIO] = None) -> None:
    """
    Route ``fortunes`` logging to stderr.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        stream: Where to write; defaults to stderr so quotes on stdout
            stay clean
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)
    package_logger = logging.getLogger("fortunes")

    for handler in package_logger.handlers[:]:
        package_logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(StandardFormatter())
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    package_logger.debug("Logging initialized: level=%s", log_level.upper())
