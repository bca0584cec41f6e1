"""
Logging configuration for chatrelay

Modules log through the standard ``logging`` module; ``setup_logging``
routes those records into loguru sinks (a rotating file and the console).
"""
import logging
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from ..config import config

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {thread.name} | {name}:{function}:{line} - {message}"
CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)

# Per-stream chatter (subscribe, keep-alive, job runs) stays at DEBUG
NOISY_LOGGERS = ("apscheduler", "werkzeug")


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru."""

    def emit(self, record):
        # Get corresponding Loguru level if it exists
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: Optional[str] = None, log_file: Optional[Path] = None, console: bool = True):
    """Configure application logging

    Args:
        level: Minimum level, defaults to ``config.LOG_LEVEL``
        log_file: File sink path, defaults to ``config.LOG_FILE``
        console: Also log to stdout
    """
    level = (level or config.LOG_LEVEL).upper()
    log_file = Path(log_file or config.LOG_FILE)

    logger.remove()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Stream threads log concurrently; enqueue keeps file writes ordered
    logger.add(
        log_file,
        rotation="100 MB",
        retention="14 days",
        level=level,
        format=FILE_FORMAT,
        backtrace=True,
        diagnose=False,
        enqueue=True,
    )
    if console:
        logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT, colorize=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"Logging configured ({level}, file {log_file})")
    return logger
