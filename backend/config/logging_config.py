"""Logging configuration for Character Forge."""
import os
import sys
from datetime import datetime
from loguru import logger

from utils.paths import get_writable_dir


SESSION_ID = datetime.now().strftime("%Y%m%d_%H%M%S")

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:{line} - <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} - {message}"


def configure_logging(log_level: str = None, log_to_files: bool = True):
    """Configure Loguru logging.

    Args:
        log_level: Console level, defaults to the LOG_LEVEL environment variable
        log_to_files: Also write a rotating session log and an error log
    """
    logger.remove()

    log_filter = os.getenv("LOG_FILTER", "")
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()

    if log_filter:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=CONSOLE_FORMAT,
            filter=lambda record: log_filter in record["name"]
        )
    else:
        logger.add(sys.stderr, level=log_level, format=CONSOLE_FORMAT)

    if log_to_files:
        log_dir = get_writable_dir("logs")

        logger.add(
            log_dir / f"charforge_{SESSION_ID}.log",
            rotation="5 MB",
            retention=5,
            level="DEBUG",
            format=FILE_FORMAT
        )

        logger.add(
            log_dir / "error.log",
            rotation="10 MB",
            retention="14 days",
            level="ERROR",
            format=FILE_FORMAT
        )

    return logger
