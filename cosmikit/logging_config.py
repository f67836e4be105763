"""Logging configuration with file rotation."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILENAME = "cosmikit.log"

# Top-level packages whose loggers receive the application handlers.
APP_LOGGERS = ("cosmikit", "gui", "kit_engine")


def setup_logging(log_dir: Path, console_level: int | str = logging.INFO) -> Path:
    """
    Configure application logging.

    Writes DEBUG and above to a rotating `cosmikit.log` (5 MB per file, 3
    backups) and console_level and above to stderr.

    Parameters
    ----------
    log_dir:
        Directory for log files. Created if missing.
    console_level:
        Minimum level for console output, as a logging level or its name.

    Returns
    -------
    Path
        The main log file path.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / LOG_FILENAME

    detailed_formatter = logging.Formatter(
        "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    simple_formatter = logging.Formatter("%(levelname)-8s | %(name)s | %(message)s")

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(simple_formatter)

    for name in APP_LOGGERS:
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        # Repeated calls replace handlers rather than stacking them.
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        logger.addHandler(file_handler)
        logger.addHandler(console_handler)

    log = logging.getLogger(__name__)
    log.info("Logging initialized: %s", log_path)
    log.debug("Platform: %s, Python: %s", sys.platform, sys.version.split()[0])
    return log_path
