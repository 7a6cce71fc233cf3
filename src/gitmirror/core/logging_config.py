"""Logging setup for gitmirror processes."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Rotate at 5 MB, keep 5 old files
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5


def setup_logging(level: str | int = logging.INFO, log_file: Path | None = None) -> logging.Logger:
    """Configure logging to output to stdout and, optionally, a rotating file.

    Args:
        level: Level name or number for the ``gitmirror`` logger.
        log_file: Optional path of a log file.

    Returns:
        The configured ``gitmirror`` logger.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger("gitmirror")
    root_logger.setLevel(level if isinstance(level, int) else level.upper())

    # Replace handlers from a previous call
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(formatter)
    root_logger.addHandler(stdout_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    return root_logger
