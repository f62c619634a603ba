"""
Logging Configuration
=====================
One call, ``setup_logging()``, at process start (``main.py``). Every module
logs through ``logging.getLogger(__name__)``.

Handlers:
    - stderr, coloured by level (uvicorn writes there too)
    - LOG_DIR/testfixer_YYYYMMDD.log, plain text

httpx logs every request at INFO; those loggers are raised to WARNING so
CircleCI/GitHub/OpenAI traffic does not drown out pipeline progress.
"""
import logging
import sys
import os
from datetime import datetime

from testfixer.core.config import LOG_DIR

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_RESET = "\x1b[0m"
_LEVEL_COLOURS = {
    logging.DEBUG: "\x1b[36m",
    logging.INFO: "\x1b[32m",
    logging.WARNING: "\x1b[33m",
    logging.ERROR: "\x1b[31m",
    logging.CRITICAL: "\x1b[31;1m",
}

_APP_LOGGERS = ["testfixer", "main", "uvicorn", "uvicorn.error", "uvicorn.access"]
_NOISY_LOGGERS = ["httpx", "httpcore"]


class ColoredFormatter(logging.Formatter):
    """Wraps each record in its level's ANSI colour."""

    def __init__(self) -> None:
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)
        self._by_level = {
            level: logging.Formatter(colour + LOG_FORMAT + _RESET, datefmt=DATE_FORMAT)
            for level, colour in _LEVEL_COLOURS.items()
        }

    def format(self, record):
        # Custom levels use the uncoloured format
        formatter = self._by_level.get(record.levelno)
        if formatter is None:
            return super().format(record)
        return formatter.format(record)


def _log_file_path(log_dir: str) -> str:
    return os.path.join(log_dir, f"testfixer_{datetime.now().strftime('%Y%m%d')}.log")


def setup_logging(level=logging.INFO, log_dir: str = LOG_DIR, log_to_file: bool = True):
    """
    Install the console (and optionally file) handlers on the root logger.

    Safe to call more than once: existing root handlers are replaced, so
    reloads under ``uvicorn --reload`` do not duplicate output.
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(ColoredFormatter())
    root_logger.addHandler(console_handler)

    if log_to_file:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(_log_file_path(log_dir))
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    for name in _APP_LOGGERS:
        app_logger = logging.getLogger(name)
        app_logger.setLevel(level)
        app_logger.propagate = True

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root_logger.info("Logging initialized (console%s).", " + file" if log_to_file else "")
