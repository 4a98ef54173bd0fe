"""Application logger setup."""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Union
import os

from slidermix.util import ensure_dir_exists

BUILD_TYPE_NONE = ""
BUILD_TYPE_DEV = "dev"
BUILD_TYPE_RELEASE = "release"

LOG_DIRECTORY = "logs"
LOG_FILENAME = "slidermix-latest-run.log"
ROOT_LOGGER_NAME = "slidermix"

_LEVEL_COLOURS = {
    logging.DEBUG: "35",
    logging.INFO: "34",
    logging.WARNING: "33",
    logging.ERROR: "31",
    logging.CRITICAL: "31",
}


class _ReadableFormatter(logging.Formatter):
    """Tab-separated time, level, padded logger name and message."""

    def __init__(self, colour: bool) -> None:
        super().__init__()
        self._colour = colour

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        return datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self._colour:
            code = _LEVEL_COLOURS.get(record.levelno, "31")
            level = f"\x1b[{code}m{level}\x1b[0m"
        line = f"{self.formatTime(record)}\t{level}\t{record.name:<27}\t{record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def new_logger(
    build_type: str = BUILD_TYPE_NONE,
    log_directory: Union[str, os.PathLike] = LOG_DIRECTORY,
) -> logging.Logger:
    """Configure and return the application's root logger.

    Release builds log INFO and above to a file in ``log_directory``; any other
    build logs DEBUG and above to stderr with coloured levels.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if build_type == BUILD_TYPE_RELEASE:
        ensure_dir_exists(log_directory)
        handler = logging.FileHandler(
            Path(log_directory) / LOG_FILENAME, mode="a", encoding="utf-8"
        )
        handler.setFormatter(_ReadableFormatter(colour=False))
        logger.setLevel(logging.INFO)
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(_ReadableFormatter(colour=True))
        logger.setLevel(logging.DEBUG)

    logger.addHandler(handler)
    logger.propagate = False
    return logger