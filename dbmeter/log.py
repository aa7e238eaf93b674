"""
Logging setup for the meter.

Modules log through ``logging.getLogger(__name__)``; the entry points call
:func:`setup_logging` once to attach a console handler and, optionally, a
log file.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

from appdirs import user_log_dir

from .constants import SETTINGS_APPLICATION, SETTINGS_ORGANISATION

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Colour-coded level names when writing to a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        if not sys.stdout.isatty():
            return text
        color = self.COLORS.get(record.levelname, "")
        return text.replace(
            f"[{record.levelname}]", f"[{color}{record.levelname}{self.RESET}]", 1
        )


def default_log_file() -> Path:
    return Path(user_log_dir(SETTINGS_APPLICATION, SETTINGS_ORGANISATION)) / "dbmeter.log"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    debug: bool = False,
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Also write to this file when given.
        debug: Shortcut for ``level="DEBUG"``.

    Returns:
        The root logger.
    """
    if debug:
        level = "DEBUG"
    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)
    console.setFormatter(ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            root.warning("Cannot write log file %s: %s", log_file, e)
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(file_handler)

    return root


__all__ = ["ColoredFormatter", "default_log_file", "setup_logging"]
