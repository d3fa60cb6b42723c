"""
Log handlers and the logging setup of the command-line tool.
"""

from __future__ import annotations

import logging
import sys
from os import PathLike
from pathlib import Path

from tqdm.auto import tqdm

log = logging.getLogger(__name__)

LOGGING_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGING_DATEFMT = "%Y-%m-%d %I:%M %p"


def _formatter() -> logging.Formatter:
    return logging.Formatter(fmt=LOGGING_FORMAT, datefmt=LOGGING_DATEFMT)


class TqdmLoggingHandler(logging.Handler):
    """
    Writes records to stderr through ``tqdm.write`` so running upload and download bars are redrawn
    below the message instead of being torn apart.
    """

    def emit(self, record):
        try:
            tqdm.write(self.format(record), file=sys.stderr)
        except Exception:
            self.handleError(record)


def add_filelogger(file_path: str | PathLike, level: str = "INFO", logger_name: str | None = None) -> None:
    """
    Additionally write the records of a logger to a file.

    :param file_path: log file, appended to if it exists
    :param level: minimum level written to the file, e.g. 'DEBUG'
    :param logger_name: logger to attach to, the root logger if None
    """
    logger = logging.getLogger(logger_name)

    handler = logging.FileHandler(Path(file_path))
    handler.setLevel(level.upper())
    handler.setFormatter(_formatter())
    logger.addHandler(handler)
    log.info("Writing %s records of %s to %s", level.upper(), logger.name, file_path)


def setup_cli_logging(log_file: str | None, log_level: str):
    """
    Route all records of the command-line tool to stderr, and optionally to ``log_file``.

    Handlers installed before (e.g. by ``logging.basicConfig``) are replaced, so that a record is
    printed once.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level.upper())

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = TqdmLoggingHandler()
    console_handler.setFormatter(_formatter())
    root_logger.addHandler(console_handler)

    if log_file:
        add_filelogger(log_file, log_level)

    log.debug("Logging to stderr at level %s", log_level.upper())
