"""Logging for the retargeting pipeline.

All loggers live under the ``posepuppet`` namespace. The console gets a
colored single-line format; an optional log file receives the same lines
uncolored, which is where per-frame DEBUG output from long replays ends up.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO


ROOT_LOGGER_NAME = "posepuppet"

CONSOLE_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)-28s │ %(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-28s | %(message)s"

# Marks handlers installed by setup_logging so a second call can replace them
_HANDLER_TAG = "_posepuppet_handler"


class ColoredFormatter(logging.Formatter):
    """Colors the level and logger name of console lines."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    NAME_COLOR = "\033[34m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Color a copy; file handlers see the same record
        colored = logging.makeLogRecord(record.__dict__)
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        colored.levelname = f"{color}{record.levelname}{self.RESET}"
        colored.name = f"{self.NAME_COLOR}{record.name}{self.RESET}"
        return super().format(colored)


def _parse_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def _tagged(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _HANDLER_TAG, True)
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: str = "logs",
    stream: Optional[TextIO] = None
) -> logging.Logger:
    """
    Configure the posepuppet logger tree.

    Calling again replaces the handlers installed by the previous call,
    so a later ``--debug`` or a new log file takes effect.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file name prefix; a timestamp is appended
        log_dir: Directory for log files
        stream: Console stream (defaults to stdout)

    Returns:
        The ``posepuppet`` logger

    Raises:
        ValueError: if the level name is unknown
    """
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(_parse_level(level))

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = _tagged(logging.StreamHandler(stream or sys.stdout))
    console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_path = log_path / f"{log_file}_{datetime.now():%Y%m%d_%H%M%S}.log"

        file_handler = _tagged(logging.FileHandler(file_path))
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root_logger.addHandler(file_handler)
        root_logger.info(f"Logging to file: {file_path}")

    return root_logger


def get_logger(name: str) -> logging.Logger:
    """Named logger under the posepuppet namespace, e.g. ``get_logger("motion.mirror")``."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
