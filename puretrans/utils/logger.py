"""Logging utilities."""

import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger as loguru_logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Route records from stdlib loggers (library modules) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logger(
    name: str = "puretrans",
    level: str = "INFO",
    log_file: Optional[str] = None,
    intercept_stdlib: bool = True
) -> "LoguruWrapper":
    """
    Set up logger with configuration.

    Args:
        name: Root stdlib logger to intercept
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path (rotated at 10 MB)
        intercept_stdlib: Forward ``logging.getLogger(name)`` records to loguru

    Returns:
        Configured logger
    """
    loguru_logger.remove()
    loguru_logger.add(sys.stderr, level=level.upper(), format=LOG_FORMAT)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        loguru_logger.add(
            log_file,
            level=level.upper(),
            rotation="10 MB",
            retention="1 week"
        )

    if intercept_stdlib:
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
        std_logger.propagate = False

    return LoguruWrapper(loguru_logger)


def get_logger(name: str = "puretrans") -> "LoguruWrapper":
    """Get a logger bound to ``name``."""
    return LoguruWrapper(loguru_logger.bind(component=name))


class LoguruWrapper:
    """Wrapper for loguru to standard logging interface."""

    def __init__(self, logger):
        self._logger = logger

    def debug(self, msg, *args, **kwargs):
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self._logger.critical(msg, *args, **kwargs)

    def exception(self, msg, *args, **kwargs):
        self._logger.exception(msg, *args, **kwargs)
