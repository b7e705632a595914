"""Logging configuration module for the timer engine.

This module provides centralized logging configuration, formatters and
handlers, ensuring consistent logging across the engine and its
collaborators.
"""

import logging
import os
import re
from inspect import getmodulename

from supervisor.timer_engine_config import LoggingConfig


class CustomLogRecord(logging.LogRecord):
    """Log record carrying the short module name.

    Extends the standard LogRecord with ``module_name`` for the log format.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.module_name = getmodulename(self.pathname) or self.module


class ModuleNameFormatter(logging.Formatter):
    """Formatter that tolerates records created outside CustomLogRecord."""

    def format(self, record):
        """Format a log record, filling in ``module_name`` when missing.

        Args:
            record: The LogRecord instance to format.

        Returns:
            The formatted log message string.
        """
        if not hasattr(record, "module_name"):
            record.module_name = record.module
        return super().format(record)


LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(module_name)s] %(message)s"


def configure_logging(logging_config: LoggingConfig):
    """Configure logging based on the provided logging configuration.

    Args:
        logging_config: Configuration object containing logging settings.
    """
    log_level = logging.getLevelName(logging_config.log_level.upper())
    log_file = logging_config.log_file
    disable_console_logging = logging_config.disable_console_logging
    log_file_max_size = (
        logging_config.log_file_max_size * 1024 * 1024
    )  # Convert from MB to bytes

    logging.setLogRecordFactory(CustomLogRecord)
    formatter = ModuleNameFormatter(LOG_FORMAT)
    handlers = []

    if log_file:
        log_file = log_file.strip()
        log_file = re.sub(r"/+", "/", log_file)

        if not os.path.isabs(log_file):
            log_file = os.path.join(os.getcwd(), log_file)

        log_dir = os.path.dirname(log_file)
        if not os.path.exists(log_dir):
            os.makedirs(log_dir)

        if os.path.exists(log_file) and os.path.getsize(log_file) > log_file_max_size:
            # Keep only the newest tail of an oversized log.
            with open(log_file, "r+") as f:
                data = f.read()
                f.seek(0)
                f.write(data[len(data) - log_file_max_size :])
                f.truncate()

        handlers.append(logging.FileHandler(log_file))

    if not disable_console_logging:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    for logger_name, level in (logging_config.loggers or {}).items():
        logging.getLogger(logger_name).setLevel(logging.getLevelName(level.upper()))
