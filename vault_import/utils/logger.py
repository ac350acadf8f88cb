"""
Logging for the Vault Import service.

All module loggers live under the ``vault_import`` package logger, which owns
the handlers:
- Daily log file (YYYYMMDD prefix) with size-based rotation
- Colorized console output via colorlog

Engine modules attach structured context through ``extra=`` (owner, round,
resource...). Both formatters render that context after the message, e.g.::

    INFO     vault_import.engine.retry - ciphers: DONE, total: 5, error: 1, rounds: 1 [label=ciphers round=1 pending=1]
"""

import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import colorlog

from vault_import.config import LoggingConfig

PACKAGE_LOGGER = "vault_import"

# ``extra=`` keys rendered after the message, in this order
CONTEXT_FIELDS = (
    "owner_id",
    "label",
    "round",
    "pending",
    "failed_attempts",
    "unresolved",
    "resource",
    "target_units",
    "poll",
    "parent_index",
)

CONSOLE_FORMAT = (
    "%(log_color)s%(levelname)-8s%(reset)s "
    "%(cyan)s%(name)s%(reset)s - %(message)s%(context)s"
)

LOG_COLORS = {
    "DEBUG": "white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "bold_red",
}


def format_context(record: logging.LogRecord) -> str:
    """Render the known ``extra=`` fields of a record as `` [key=value ...]``."""
    parts = [
        f"{key}={getattr(record, key)}"
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    ]
    return f" [{' '.join(parts)}]" if parts else ""


class ContextFormatter(logging.Formatter):
    """File formatter; the format string may use ``%(context)s``."""

    def format(self, record: logging.LogRecord) -> str:
        record.context = format_context(record)
        return super().format(record)


class ColoredContextFormatter(colorlog.ColoredFormatter):
    """Console formatter with colors and the record's context."""

    def format(self, record: logging.LogRecord) -> str:
        record.context = format_context(record)
        return super().format(record)


def log_file_path(name: str) -> Path:
    """Today's log file for a logger, e.g. ``logs/20261019_vault_import.log``."""
    date_prefix = datetime.now().strftime("%Y%m%d")
    return LoggingConfig.LOG_DIR / f"{date_prefix}_{name.replace('.', '_').lower()}.log"


def setup_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Attach the file and console handlers to a logger once.

    Args:
        name: Logger name (default: the package logger)

    Returns:
        The configured logger; repeated calls return it unchanged
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    LoggingConfig.ensure_log_directory()
    level = getattr(logging, LoggingConfig.LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    file_handler = RotatingFileHandler(
        filename=log_file_path(name),
        maxBytes=LoggingConfig.MAX_LOG_SIZE,
        backupCount=LoggingConfig.BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        ContextFormatter(fmt=LoggingConfig.LOG_FORMAT, datefmt=LoggingConfig.DATE_FORMAT)
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        ColoredContextFormatter(
            fmt=CONSOLE_FORMAT, datefmt=LoggingConfig.DATE_FORMAT, log_colors=LOG_COLORS
        )
    )

    logger.addHandler(file_handler)
    logger.addHandler(console_handler)
    return logger


def get_import_logger(level: Optional[str] = None) -> logging.Logger:
    """
    Get the package logger every engine module propagates into.

    Args:
        level: Optional level name overriding the configured one for the
            logger and its console output (the file keeps everything)
    """
    logger = setup_logger(PACKAGE_LOGGER)

    if level:
        numeric = getattr(logging, level.upper())
        logger.setLevel(numeric)
        for handler in logger.handlers:
            if not isinstance(handler, RotatingFileHandler):
                handler.setLevel(numeric)

    return logger
